"""Model-fallback caller: ordered preferred models, then a capability probe."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from evalmate.errors import NoAvailableModelError
from evalmate.llm.gateway import GatewayRequestError, InferenceGateway, ModelCallError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelAttempt:
    model: str
    ok: bool
    reason: str | None = None
    probed: bool = False


@dataclass(frozen=True)
class Completion:
    model: str
    text: str
    attempts: list[ModelAttempt] = field(default_factory=list)

    @property
    def used_probe(self) -> bool:
        return any(attempt.probed for attempt in self.attempts)


def rank_available_models(
    available: Sequence[str],
    *,
    preferred_families: Sequence[str],
    excluded_markers: Sequence[str] = (),
    skip: Sequence[str] = (),
) -> list[str]:
    """Order gateway-listed models by family preference.

    A model earns ``len(families) - index`` points for every preferred family name
    it contains. Excluded, already-tried and zero-score models are dropped.
    """
    skipped = {model.lower() for model in skip}
    families = [family.lower() for family in preferred_families]
    markers = [marker.lower() for marker in excluded_markers]

    scored: list[tuple[int, int, str]] = []
    for position, model in enumerate(dict.fromkeys(available)):
        lowered = model.lower()
        if lowered in skipped or any(marker in lowered for marker in markers):
            continue
        score = sum(
            len(families) - index for index, family in enumerate(families) if family in lowered
        )
        if score > 0:
            scored.append((-score, position, model))
    scored.sort()
    return [model for _, _, model in scored]


class ModelFallbackCaller:
    """Obtain a completion despite individual model unavailability."""

    def __init__(
        self,
        gateway: InferenceGateway,
        *,
        preferred_models: Sequence[str],
        preferred_families: Sequence[str],
        excluded_markers: Sequence[str] = (),
        temperature: float = 0.3,
    ) -> None:
        self.gateway = gateway
        self.preferred_models = list(preferred_models)
        self.preferred_families = list(preferred_families)
        self.excluded_markers = list(excluded_markers)
        self.temperature = temperature

    def complete(self, prompt: str, *, max_tokens: int) -> Completion:
        attempts: list[ModelAttempt] = []
        for model in self.preferred_models:
            text = self._try_model(model, prompt, max_tokens=max_tokens, attempts=attempts)
            if text is not None:
                return Completion(model=model, text=text, attempts=attempts)

        fallback = self._probe_fallback_model(tried=[attempt.model for attempt in attempts])
        if fallback is None:
            raise NoAvailableModelError("No available model to perform AI evaluation")

        text = self._try_model(
            fallback, prompt, max_tokens=max_tokens, attempts=attempts, probed=True
        )
        if text is None:
            raise NoAvailableModelError("No available model to perform AI evaluation")
        return Completion(model=fallback, text=text, attempts=attempts)

    def _try_model(
        self,
        model: str,
        prompt: str,
        *,
        max_tokens: int,
        attempts: list[ModelAttempt],
        probed: bool = False,
    ) -> str | None:
        try:
            text = self.gateway.chat_completion(
                model=model,
                prompt=prompt,
                temperature=self.temperature,
                max_tokens=max_tokens,
            )
        except ModelCallError as exc:
            logger.warning(
                "model_fallback event=attempt_failed model=%s status=%s reason=%s",
                model,
                exc.status,
                exc.reason[:400],
            )
            attempts.append(ModelAttempt(model=model, ok=False, reason=exc.reason, probed=probed))
            return None

        logger.info("model_fallback event=attempt_ok model=%s probed=%s", model, probed)
        attempts.append(ModelAttempt(model=model, ok=True, probed=probed))
        return text

    def _probe_fallback_model(self, *, tried: Sequence[str]) -> str | None:
        try:
            available = self.gateway.list_models()
        except GatewayRequestError as exc:
            logger.error("model_fallback event=probe_failed reason=%s", exc)
            return None

        ranked = rank_available_models(
            available,
            preferred_families=self.preferred_families,
            excluded_markers=self.excluded_markers,
            skip=tried,
        )
        logger.info(
            "model_fallback event=probe available=%d candidates=%s",
            len(available),
            ranked[:5],
        )
        return ranked[0] if ranked else None
