"""Normalize node: extract and validate the primary evaluation."""

from __future__ import annotations

from evalmate.errors import MalformedEvaluationError
from evalmate.evaluation.normalizer import normalize_evaluation
from evalmate.graph.state import EvaluationState, WorkflowDeps


def run(state: EvaluationState, *, deps: WorkflowDeps) -> EvaluationState:
    try:
        evaluation = normalize_evaluation(state.get("raw_output") or "")
    except MalformedEvaluationError as exc:
        return {"error": {"kind": "malformed_response", "detail": exc.message}}
    return {"evaluation": evaluation}
