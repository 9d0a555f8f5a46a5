"""Insights node: best-effort premium analysis. Failures never fail the run."""

from __future__ import annotations

import logging

from evalmate.evaluation.normalizer import normalize_premium_insights
from evalmate.evaluation.prompts import build_premium_insights_prompt
from evalmate.graph.state import EvaluationState, WorkflowDeps

logger = logging.getLogger(__name__)


def run(state: EvaluationState, *, deps: WorkflowDeps) -> EvaluationState:
    evaluation = state.get("evaluation")
    if not deps.premium_insights_enabled or evaluation is None:
        return {"premium_insights": None}

    prompt = build_premium_insights_prompt(
        title=state.get("title", ""),
        description=state.get("description", ""),
        code=state.get("code"),
        language=state.get("language"),
        score=evaluation.score,
        feedback=evaluation.feedback,
        max_code_chars=deps.max_code_chars,
    )
    try:
        completion = deps.caller.complete(prompt, max_tokens=deps.insights_max_tokens)
        insights = normalize_premium_insights(completion.text)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "insights event=skipped task_id=%s error_type=%s detail=%s",
            state.get("task_id"),
            type(exc).__name__,
            str(exc)[:400],
        )
        return {"premium_insights": None, "insights_error": f"{type(exc).__name__}: {exc}"}

    return {"premium_insights": insights, "insights_error": None}
