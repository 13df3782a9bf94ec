from research_gantt.models import PALETTE
from research_gantt.prompts import ESCAPE_REMINDER, PromptSpec
from research_gantt.providers.claude_client import ModelConfig

SYSTEM_PROMPT = """You are an expert project management analyst. Your job is to analyze a user's prompt and research files to build a complete Gantt chart data object.

You MUST respond with *only* a valid JSON object matching the schema.

**CRITICAL LOGIC:**
1.  **TIME HORIZON:** First, check the user's prompt for an *explicitly requested* time range (e.g., "2020-2030").
    - If found, use that range.
    - If NOT found, find the *earliest* and *latest* date in all the research to create the range.
2.  **TIME INTERVAL:** Based on the *total duration* of that range, you MUST choose an interval:
    - 0-3 months total: Use "Weeks" (e.g., ["W1 2026", "W2 2026"]), ISO week numbers.
    - 4-12 months total: Use "Months" (e.g., ["Jan 2026", "Feb 2026"])
    - 1-3 years total: Use "Quarters" (e.g., ["Q1 2026", "Q2 2026"])
    - 3+ years total: You MUST use "Years" (e.g., ["2020", "2021", "2022"])
3.  **CHART DATA:** Create the 'data' array.
    - First, identify all logical swimlanes (e.g., "Regulatory Drivers", "JPMorgan Chase"). Add an object for each: { "title": "Swimlane Name", "isSwimlane": true, "entity": "Swimlane Name" }
    - Immediately after each swimlane, add all tasks that belong to it: { "title": "Task Name", "isSwimlane": false, "entity": "Swimlane Name", "bar": { ... } }
    - **DO NOT** create empty swimlanes.
4.  **BAR LOGIC:**
    - 'startCol' is the 1-based index of the 'timeColumns' array where the task begins.
    - 'endCol' is the 1-based index of the 'timeColumns' array where the task ends, **PLUS ONE**.
    - A task in "2022" has startCol: 3, endCol: 4 (if 2020 is col 1).
    - If a date is "Q1 2024" and the interval is "Years", map it to the "2024" column index.
    - If a date is unknown, the 'bar' object must be { "startCol": null, "endCol": null, "color": "..." }.
5.  **COLORS & LEGEND:** This is a two-step process.
    a.  **Step 1: Find Cross-Swimlane Themes:** First, analyze ALL tasks from ALL swimlanes. Try to find logical, thematic groupings (e.g., "Regulatory Activity", "Product Launch", "Internal Review").
    b.  **Step 2: Assign Colors:** The available color names are: {palette}.
        * **PRIORITY:** You MUST prioritize using the colors in this order: "priority-red" first, then "medium-red", then "mid-grey". Only use "light-grey", "white", and "dark-blue" if you identify more than 3 logical groupings and need more colors.
        * **IF you find 2-6 strong thematic groupings:** Assign a unique color from the available list (respecting the priority) to each theme. Color ALL tasks belonging to that theme with its assigned color.
        * **IF you do this:** You MUST populate the 'legend' array, e.g., "legend": [{ "color": "priority-red", "label": "Regulatory Activity" }, { "color": "medium-red", "label": "Product Launch" }].
        * **FALLBACK:** If you *cannot* find any logical themes, assign a *single, different* color (respecting the priority) to each swimlane (e.g., all tasks under "Swimlane A" are "priority-red", all tasks under "Swimlane B" are "medium-red").
        * **IF you use the FALLBACK:** The 'legend' array MUST be an empty array [].
6.  **SANITIZATION:** All string values MUST be valid JSON strings. You MUST properly escape any characters that would break JSON, such as double quotes (\\") and newlines (\\n), within the string value itself.""".replace(
    "{palette}", ", ".join(f'"{c}"' for c in PALETTE)
)

GANTT_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "timeColumns": {"type": "array", "items": {"type": "string"}},
        "data": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "isSwimlane": {"type": "boolean"},
                    "entity": {"type": "string"},
                    "bar": {
                        "type": "object",
                        "properties": {
                            "startCol": {"type": ["integer", "null"]},
                            "endCol": {"type": ["integer", "null"]},
                            "color": {"type": "string", "enum": list(PALETTE)},
                        },
                    },
                },
                "required": ["title", "isSwimlane", "entity"],
            },
        },
        "legend": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "color": {"type": "string", "enum": list(PALETTE)},
                    "label": {"type": "string"},
                },
                "required": ["color", "label"],
            },
        },
    },
    "required": ["title", "timeColumns", "data", "legend"],
}

CHART_PROMPT = PromptSpec(
    name="gantt-chart",
    version="1",
    system=SYSTEM_PROMPT,
    schema=GANTT_SCHEMA,
    config=ModelConfig(max_output_tokens=8192, temperature=0.0, top_k=1),
)


def build_user_message(instruction: str, corpus: str) -> str:
    return f'User Prompt: "{instruction}"\n\n{ESCAPE_REMINDER}\n\nResearch Content:\n{corpus}'
