"""Prompt construction for the primary evaluation and premium insights."""

from __future__ import annotations

TRUNCATION_MARKER = "... [code truncated after {limit} characters]"

GRADING_CRITERIA = """\
Grade strictly. Use the whole scale:
- 9-10: correct, complete, idiomatic, handles edge cases, production ready.
- 7-8: correct with minor style or robustness issues.
- 5-6: works for the main case but misses edge cases or has clear quality problems.
- 3-4: partially working, significant bugs or missing requirements.
- 1-2: does not address the task or does not run.
A submission without code cannot score above 4."""


def truncate_code(code: str | None, *, limit: int) -> str | None:
    if code is None or len(code) <= limit:
        return code
    return code[:limit] + "\n" + TRUNCATION_MARKER.format(limit=limit)


def build_evaluation_prompt(
    *,
    title: str,
    description: str,
    code: str | None,
    language: str | None,
    max_code_chars: int = 10_000,
) -> str:
    code = truncate_code(code, limit=max_code_chars)
    code_section = f"CODE SUBMITTED:\n{code}" if code else "No code was submitted for this task."
    language_section = f"PROGRAMMING LANGUAGE: {language}" if language else ""

    return f"""\
You are an expert code reviewer and technical interviewer. Evaluate the following coding task \
submission and provide detailed feedback.

TASK TITLE: {title}

TASK DESCRIPTION: {description}

{code_section}

{language_section}

{GRADING_CRITERIA}

Respond with a single JSON object in exactly this shape:
{{
  "score": <number between 1-10, where 10 is excellent>,
  "strengths": [<array of strings highlighting what was done well>],
  "improvements": [<array of strings suggesting areas for improvement>],
  "feedback": "<overall feedback paragraph>",
  "suggestions": [<array of specific actionable suggestions>]
}}

Be constructive, specific, and helpful. Consider code quality, best practices, problem-solving \
approach, and completeness.

Do NOT include anything outside the JSON. Do NOT wrap it in markdown fences.""".strip()


def build_premium_insights_prompt(
    *,
    title: str,
    description: str,
    code: str | None,
    language: str | None,
    score: float,
    feedback: str,
    max_code_chars: int = 10_000,
) -> str:
    code = truncate_code(code, limit=max_code_chars)
    code_section = f"CODE SUBMITTED:\n{code}" if code else "No code was submitted for this task."
    language_section = f"PROGRAMMING LANGUAGE: {language}" if language else ""

    return f"""\
You are a principal engineer writing an in-depth review of a coding task submission that has \
already been graded.

TASK TITLE: {title}

TASK DESCRIPTION: {description}

{code_section}

{language_section}

GRADE ALREADY ASSIGNED: {score}/10
REVIEWER FEEDBACK: {feedback}

Respond with a single JSON object in exactly this shape:
{{
  "architecture": "<analysis of structure and design>",
  "performance": "<analysis of time/space complexity and hot spots>",
  "security": "<analysis of security concerns, or why there are none>",
  "codeQuality": <number 0-100>,
  "industryAverage": <number 0-100, typical score for this kind of task>,
  "topPerformers": <number 0-100, typical score of the top 10 percent>,
  "expertRecommendations": {{
    "immediate": [<array of strings>],
    "future": [<array of strings>]
  }},
  "learningPath": {{
    "nextSkills": [<array of strings>],
    "resources": [<array of strings>]
  }},
  "correctedCode": "<the full corrected source code as one JSON string>"
}}

"correctedCode" must be a JSON string with newlines escaped as \\n, never a markdown block.
Do NOT include anything outside the JSON.""".strip()
