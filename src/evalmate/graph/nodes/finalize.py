"""Finalize node: assemble the stored result object."""

from __future__ import annotations

from evalmate.graph.state import EvaluationState, WorkflowDeps


def run(state: EvaluationState, *, deps: WorkflowDeps) -> EvaluationState:
    evaluation = state.get("evaluation")
    if evaluation is None:
        return {"result": None}

    insights = state.get("premium_insights")
    if insights is not None:
        evaluation = evaluation.model_copy(update={"premium_insights": insights})
    return {"result": evaluation.to_record()}
