"""Prompt node: render the evaluation prompt from task fields."""

from __future__ import annotations

from evalmate.evaluation.prompts import build_evaluation_prompt
from evalmate.graph.state import EvaluationState, WorkflowDeps


def run(state: EvaluationState, *, deps: WorkflowDeps) -> EvaluationState:
    code = state.get("code")
    telemetry = dict(state.get("telemetry", {}))
    telemetry["code_truncated"] = bool(code) and len(code) > deps.max_code_chars

    prompt = build_evaluation_prompt(
        title=state.get("title", ""),
        description=state.get("description", ""),
        code=code,
        language=state.get("language"),
        max_code_chars=deps.max_code_chars,
    )
    return {"prompt": prompt, "telemetry": telemetry}
