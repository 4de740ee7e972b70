from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from marketplace.common.errors import ExternalServiceUnavailable
from marketplace.common.http import JsonHttpTransport

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-004"
BASE_DIMENSION = 768
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class EmbeddingProvider(Protocol):
    dimension: int

    def embed_text(self, text: str) -> List[float]: ...


def normalize_vector(vector: Sequence[float]) -> List[float]:
    magnitude = math.sqrt(sum(value * value for value in vector))
    if magnitude == 0:
        return list(vector)
    return [value / magnitude for value in vector]


def ensure_dimensions(vector: Sequence[float], dimension: int) -> List[float]:
    """Pad with zeros or truncate so the vector matches ``dimension``."""
    if len(vector) == dimension:
        return list(vector)
    if len(vector) < dimension:
        return list(vector) + [0.0] * (dimension - len(vector))
    return list(vector[:dimension])


def validate_dimensions(vector: Sequence[float], dimension: int = BASE_DIMENSION) -> None:
    if len(vector) != dimension:
        raise ValueError(
            f"Vector dimension mismatch: expected {dimension}, got {len(vector)}; "
            "listing embeddings need to be rebuilt after a model change"
        )


def combine_embeddings(weighted: Iterable[Tuple[Sequence[float], float]], dimension: int = BASE_DIMENSION) -> List[float]:
    result = [0.0] * dimension
    total_weight = 0.0
    for vector, weight in weighted:
        for index, value in enumerate(ensure_dimensions(vector, dimension)):
            result[index] += value * weight
        total_weight += weight
    if total_weight > 0:
        result = [value / total_weight for value in result]
    return result


class GeminiEmbeddingProvider:
    """Google Generative Language ``embedContent`` client returning unit-length vectors."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = DEFAULT_MODEL,
        dimension: int = BASE_DIMENSION,
        base_url: str = GEMINI_BASE_URL,
        transport: Optional[JsonHttpTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._model = model
        self.dimension = dimension
        self._base_url = base_url.rstrip("/")
        self._transport = transport or JsonHttpTransport(service="embeddings")

    def embed_text(self, text: str) -> List[float]:
        cleaned = (text or "").strip()
        if not cleaned:
            return [0.0] * self.dimension
        response = self._transport.request(
            method="POST",
            url=f"{self._base_url}/models/{self._model}:embedContent",
            params={"key": self._api_key},
            json_body={
                "model": f"models/{self._model}",
                "content": {"parts": [{"text": cleaned}]},
            },
        )
        values = ((response or {}).get("embedding") or {}).get("values")
        if not values:
            raise ExternalServiceUnavailable("Embedding response had no values", service="embeddings")
        try:
            vector = [float(value) for value in values]
        except (TypeError, ValueError) as exc:
            raise ExternalServiceUnavailable("Embedding response was malformed", service="embeddings") from exc
        return normalize_vector(ensure_dimensions(vector, self.dimension))
