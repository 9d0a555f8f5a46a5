"""Turn raw model text into validated evaluation objects."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from evalmate.errors import MalformedEvaluationError
from evalmate.evaluation.schemas import Evaluation, PremiumInsights
from evalmate.llm.extraction import ExtractionResult, extract_json_object

logger = logging.getLogger(__name__)


def normalize_evaluation(text: str) -> Evaluation:
    extraction = _extract_or_raise(text, kind="evaluation")
    payload = dict(extraction.payload or {})
    payload.pop("premiumInsights", None)
    try:
        return Evaluation.model_validate(payload)
    except ValidationError as exc:
        raise MalformedEvaluationError(
            f"AI returned an evaluation, but format was invalid: {_summarize(exc)}"
        ) from exc


def normalize_premium_insights(text: str) -> PremiumInsights:
    extraction = _extract_or_raise(text, kind="premium_insights")
    try:
        return PremiumInsights.model_validate(extraction.payload)
    except ValidationError as exc:
        raise MalformedEvaluationError(
            f"AI returned premium insights, but format was invalid: {_summarize(exc)}"
        ) from exc


def _extract_or_raise(text: str, *, kind: str) -> ExtractionResult:
    extraction = extract_json_object(text)
    if not extraction.ok:
        logger.warning(
            "normalizer event=extraction_failed kind=%s error=%s raw=%s",
            kind,
            extraction.error,
            (text or "")[:400],
        )
        raise MalformedEvaluationError(f"Invalid JSON returned from AI: {extraction.error}")
    if extraction.caveats:
        logger.info(
            "normalizer event=repaired kind=%s status=%s caveats=%s",
            kind,
            extraction.status,
            extraction.caveats,
        )
    return extraction


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors()[:5]:
        location = ".".join(str(item) for item in err.get("loc", ()))
        parts.append(f"{location or '<root>'}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)
