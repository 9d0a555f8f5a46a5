"""Typed state contract for the evaluation workflow."""

from dataclasses import dataclass
from typing import Any, TypedDict

from evalmate.evaluation.schemas import Evaluation, PremiumInsights
from evalmate.llm.fallback import ModelFallbackCaller


class EvaluationState(TypedDict, total=False):
    task_id: str
    title: str
    description: str
    code: str | None
    language: str | None
    prompt: str
    raw_output: str | None
    model: str | None
    evaluation: Evaluation | None
    premium_insights: PremiumInsights | None
    insights_error: str | None
    error: dict[str, str] | None
    result: dict[str, Any] | None
    telemetry: dict[str, Any]


@dataclass(frozen=True)
class WorkflowDeps:
    caller: ModelFallbackCaller
    max_tokens: int = 2000
    insights_max_tokens: int = 3000
    max_code_chars: int = 10_000
    premium_insights_enabled: bool = True


def initial_state(
    task_id: str,
    *,
    title: str,
    description: str,
    code: str | None = None,
    language: str | None = None,
) -> EvaluationState:
    return {
        "task_id": task_id,
        "title": title,
        "description": description,
        "code": code,
        "language": language,
        "prompt": "",
        "raw_output": None,
        "model": None,
        "evaluation": None,
        "premium_insights": None,
        "insights_error": None,
        "error": None,
        "result": None,
        "telemetry": {},
    }
