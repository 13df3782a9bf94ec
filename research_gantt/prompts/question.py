from research_gantt.prompts import PromptSpec
from research_gantt.providers.claude_client import ModelConfig

FALLBACK_ANSWER = "I'm sorry, I don't have enough information in the provided files to answer that question."

SYSTEM_TEMPLATE = """You are a project analyst. Your job is to answer a user's question about a specific task.

**CRITICAL RULES:**
1.  **GROUNDING:** You MUST answer the question *only* using the information in the provided 'Research Content'.
2.  **CONTEXT:** Your answer MUST be in the context of the task: "{task_name}" (for entity: "{entity}").
3.  **NO SPECULATION:** If the answer cannot be found in the 'Research Content', you MUST respond with exactly: "{fallback}"
4.  **CONCISE:** Keep your answer concise and to the point.
5.  **NO PREAMBLE:** Do not start your response with "Based on the research..." just answer the question directly."""

QUESTION_CONFIG = ModelConfig(max_output_tokens=1024, temperature=0.1, top_k=1)


def question_prompt(task_name: str, entity: str) -> PromptSpec:
    system = (
        SYSTEM_TEMPLATE.replace("{task_name}", task_name)
        .replace("{entity}", entity)
        .replace("{fallback}", FALLBACK_ANSWER)
    )
    return PromptSpec(name="task-question", version="1", system=system, config=QUESTION_CONFIG)


def build_user_message(question: str, corpus: str) -> str:
    return f"Research Content:\n{corpus}\n\n**User Question:** {question}"
