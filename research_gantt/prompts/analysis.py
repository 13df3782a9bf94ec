from datetime import date

from research_gantt.prompts import ESCAPE_REMINDER, PromptSpec
from research_gantt.providers.claude_client import ModelConfig

SYSTEM_TEMPLATE = """You are a senior project management analyst. Your job is to analyze the provided research and a user prompt to build a detailed analysis for *one single task*.

The 'Research Content' may contain raw HTML (from .docx files) and Markdown (from .md files). You MUST parse these.

You MUST respond with *only* a valid JSON object matching the schema.

**CRITICAL RULES FOR ANALYSIS:**
1.  **NO INFERENCE:** For 'taskName', 'facts', and 'assumptions', you MUST use key phrases and data extracted *directly* from the provided text. Copy phrases verbatim; do not paraphrase.
2.  **CITE SOURCES & URLS (HIERARCHY):** You MUST find a source and a URL (if possible) for every 'fact' and 'assumption'. Follow this logic, in order:
    a.  **PRIORITY 1 (HTML Link):** Search for an HTML <a> tag near the fact.
        - 'source': The text inside the tag (e.g., "example.com").
        - 'url': The href attribute (e.g., "https://example.com/article/nine").
    b.  **PRIORITY 2 (Markdown Link):** Search for a Markdown link [text](url) near the fact.
        - 'source': The text part.
        - 'url': The url part.
    c.  **PRIORITY 3 (Fallback):** If no link is found, use the filename as the 'source'.
        - 'source': The filename (e.g., "FileA.docx") from the "--- Start of file: ... ---" wrapper.
        - 'url': You MUST set this to null.
3.  **DETERMINE STATUS:** Determine the task's 'status' ("completed", "in-progress", or "not-started") based on the current date (assume "{today}") and the task's dates. Use "n/a" only when the task has no dates at all.
4.  **PROVIDE RATIONALE:** You MUST provide a 'rationale' for 'in-progress' and 'not-started' tasks, analyzing the likelihood of on-time completion based on the 'facts' and 'assumptions'. For 'completed' tasks provide a 'summary' instead.
5.  **CLEAN STRINGS:** All string values MUST be valid JSON strings. You MUST properly escape any characters that would break JSON, such as double quotes (\\") and newlines (\\n)."""

_CITED_ITEM = {
    "type": "object",
    "properties": {
        "source": {"type": "string"},
        "url": {"type": ["string", "null"]},
    },
    "required": ["source"],
}

ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "taskName": {"type": "string"},
        "startDate": {"type": "string"},
        "endDate": {"type": "string"},
        "status": {"type": "string", "enum": ["completed", "in-progress", "not-started", "n/a"]},
        "facts": {
            "type": "array",
            "items": {
                **_CITED_ITEM,
                "properties": {"fact": {"type": "string"}, **_CITED_ITEM["properties"]},
                "required": ["fact", "source"],
            },
        },
        "assumptions": {
            "type": "array",
            "items": {
                **_CITED_ITEM,
                "properties": {"assumption": {"type": "string"}, **_CITED_ITEM["properties"]},
                "required": ["assumption", "source"],
            },
        },
        "rationale": {"type": "string"},
        "summary": {"type": "string"},
    },
    "required": ["taskName", "status"],
}

ANALYSIS_CONFIG = ModelConfig(max_output_tokens=4096, temperature=0.0, top_k=1)


def analysis_prompt(reference_date: date) -> PromptSpec:
    return PromptSpec(
        name="task-analysis",
        version="1",
        system=SYSTEM_TEMPLATE.replace("{today}", reference_date.strftime("%d %B %Y")),
        schema=ANALYSIS_SCHEMA,
        config=ANALYSIS_CONFIG,
    )


def build_user_message(task_name: str, entity: str, corpus: str) -> str:
    return (
        f"{ESCAPE_REMINDER}\n\n"
        f"Research Content:\n{corpus}\n\n"
        "**YOUR TASK:** Provide a full, detailed analysis for this specific task:\n"
        f'  - Entity: "{entity}"\n'
        f'  - Task Name: "{task_name}"'
    )
