"""Inference gateway client, model fallback and JSON recovery."""

from evalmate.llm.extraction import ExtractionResult, extract_json_object, sanitize_json_text
from evalmate.llm.fallback import Completion, ModelAttempt, ModelFallbackCaller, rank_available_models
from evalmate.llm.gateway import (
    GatewayRequestError,
    HTTPInferenceGateway,
    InferenceGateway,
    ModelCallError,
)

__all__ = [
    "Completion",
    "ExtractionResult",
    "GatewayRequestError",
    "HTTPInferenceGateway",
    "InferenceGateway",
    "ModelAttempt",
    "ModelCallError",
    "ModelFallbackCaller",
    "extract_json_object",
    "rank_available_models",
    "sanitize_json_text",
]
