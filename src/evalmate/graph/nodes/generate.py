"""Generate node: obtain a completion through the model-fallback caller."""

from __future__ import annotations

from dataclasses import asdict

from evalmate.errors import NoAvailableModelError
from evalmate.graph.state import EvaluationState, WorkflowDeps


def run(state: EvaluationState, *, deps: WorkflowDeps) -> EvaluationState:
    telemetry = dict(state.get("telemetry", {}))
    try:
        completion = deps.caller.complete(state.get("prompt", ""), max_tokens=deps.max_tokens)
    except NoAvailableModelError as exc:
        return {
            "error": {"kind": "gateway_unavailable", "detail": exc.message},
            "telemetry": telemetry,
        }

    telemetry["model"] = completion.model
    telemetry["used_probe"] = completion.used_probe
    telemetry["attempts"] = [asdict(attempt) for attempt in completion.attempts]
    return {
        "raw_output": completion.text,
        "model": completion.model,
        "telemetry": telemetry,
    }
