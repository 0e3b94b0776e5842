from typing import Optional

STEP1_SCHEMA = """{
  "tasks": [
    {
      "taskId": string,
      "title": string,
      "description": string,
      "subTasks": [
        {
          "subTaskId": string,
          "title": string,
          "description": string
        }
      ]
    }
  ]
}"""

STEP2_SCHEMA = """{
  "tasks": [
    {
      "taskId": string,
      "title": string,
      "description": string,
      "subTasks": [
        {
          "subTaskId": string,
          "title": string,
          "description": string,
          "recommendedLCATs": [string]
        }
      ],
      "recommendedLCATs": [string]
    }
  ]
}"""

STEP3_SCHEMA = """{
  "tasks": [
    {
      "taskId": string,      // or subTaskId if it's a subTask
      "lcat": string,        // from recommendedLCATs
      "hours": number,
      "mathRationale": string,
      "basis": string
    }
  ]
}"""


def step1_reasoning_prompt(rfp_text: str) -> str:
    return f"""
You are an AI that generates a detailed, multi-level staffing plan for Government contracting proposals.
We'll do this in 3 steps, but for now, just focus on STEP 1 and provide your reasoning in free-form text.

**STEP 1**:
- Identify all top-level tasks and subTasks from the RFP.
- Some tasks might have hierarchical references (like C.5.1 or Subtask 3.2.1).
- We'll parse your text into JSON afterward, so you don't need to strictly format it here.

In the final JSON, we plan to use this schema:
{STEP1_SCHEMA}

RFP TEXT:
-------------
{rfp_text}
-------------
""".strip()


def step1_parser_system() -> str:
    return f"""
You are a JSON parser. Return ONLY valid JSON - no code blocks,
no triple backticks, no parentheses, and no extra commentary.
Strip out any markdown or code-fence formatting. The schema is:

{STEP1_SCHEMA}
""".strip()


def step2_reasoning_prompt(step1_json: str) -> str:
    return f"""
You are an AI continuing the same process (STEP 2 now).
We have the following tasks/subTasks from Step 1:

{step1_json}

**STEP 2**:
- Assign recommended labor categories (LCATs).
- If a task has subTasks, each subTask gets recommendedLCATs and the task itself gets none.
- If a task has no subTasks, the task itself gets recommendedLCATs.

In the final JSON, we use:
{STEP2_SCHEMA}

Please provide your reasoning in free-form text (no need to produce JSON here).
""".strip()


def step2_parser_system() -> str:
    return f"""
You are a JSON parser. The user will give free-form text describing tasks/subTasks and recommended labor categories.
Output ONLY valid JSON - no code blocks or triple backticks. The structure is:

{STEP2_SCHEMA}

Return only valid JSON, no extra text or parentheses.
""".strip()


def _format_hours(value: float) -> str:
    return f"{value:g}"


def step3_reasoning_prompt(
    step2_json: str,
    approach: str,
    total_fte: Optional[float],
    hours_per_fte: float,
) -> str:
    per_fte = _format_hours(hours_per_fte)
    if approach == "top_down":
        approach_rules = f"""
- Approach = "top_down". We have totalFTE = {_format_hours(total_fte or 0)}.
  - Convert totalFTE to hours ({_format_hours(total_fte or 0)} FTE x {per_fte} hours per FTE), distribute among tasks/subTasks, then break down by labor categories.
  - Show the FTE to hours conversion in each "mathRationale", e.g. 0.5 FTE x {per_fte} hours = {_format_hours(hours_per_fte / 2)} hours.
  - The hours across all lines must add up to the converted total."""
    else:
        approach_rules = """
- Approach = "bottom_up".
  - Derive hours from textual references, workload provided, or workload assumptions.
  - Provide a very detailed "mathRationale" for each set of lcat and hours. This should look like 250 tickets x .5 hours per ticket = 125 hours.
  - Always provide "basis": the RFP evidence or assumption the workload comes from."""
    approach_rules = approach_rules.strip("\n")

    return f"""
You are an AI continuing the same process (STEP 3).
We have the tasks/subTasks + recommendedLCATs from Step 2:

{step2_json}

**STEP 3**:
- Provide final hours estimates at the subTask level if subTasks exist, else at the task level.
- Produce one line per (task or subTask, labor category) pair.
- Assume {per_fte} hours per FTE unless the user provides a different value.
- The Program Manager should have a max of {per_fte} hours unless OCONUS.
{approach_rules}
- Every line needs a non-empty "mathRationale" and "basis".

In the final JSON, we use:
{STEP3_SCHEMA}

Please provide your reasoning in free-form text. We'll parse it next.
""".strip()


def step3_parser_system() -> str:
    return f"""
You are a JSON parser. The user is providing free-form text describing final hours distribution.
Output ONLY valid JSON with this structure:

{STEP3_SCHEMA}

No code blocks, no triple backticks, no parentheses. Only valid JSON - no commentary.
""".strip()
