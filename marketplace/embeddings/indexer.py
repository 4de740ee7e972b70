from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from marketplace.common.enums import ListingStatus
from marketplace.common.errors import ExternalServiceUnavailable
from marketplace.embeddings.provider import (
    EmbeddingProvider,
    combine_embeddings,
    normalize_vector,
    validate_dimensions,
)
from marketplace.search.models import ListingRecord
from marketplace.search.repository import ListingRepository

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 0.4
DESCRIPTION_WEIGHT = 0.4
FEATURES_WEIGHT = 0.2


@dataclass(frozen=True)
class ReindexReport:
    embedded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def listing_text_parts(listing: ListingRecord) -> List[Tuple[str, float]]:
    """Weighted texts describing a listing; empty parts are left out."""
    features = ", ".join(part for part in (listing.district, *listing.amenities) if part)
    parts = [
        (listing.title, TITLE_WEIGHT),
        (listing.description or "", DESCRIPTION_WEIGHT),
        (features, FEATURES_WEIGHT),
    ]
    return [(text.strip(), weight) for text, weight in parts if text and text.strip()]


def embed_listing(provider: EmbeddingProvider, listing: ListingRecord) -> List[float]:
    weighted: List[Tuple[Sequence[float], float]] = []
    for text, weight in listing_text_parts(listing):
        vector = provider.embed_text(text)
        validate_dimensions(vector, provider.dimension)
        weighted.append((vector, weight))
    return normalize_vector(combine_embeddings(weighted, dimension=provider.dimension))


class ListingEmbeddingIndexer:
    """Populates listing embeddings used by semantic search."""

    def __init__(self, repository: ListingRepository, provider: EmbeddingProvider) -> None:
        self._repository = repository
        self._provider = provider

    def reindex(self, *, force: bool = False, limit: Optional[int] = None) -> ReindexReport:
        embedded: List[str] = []
        skipped: List[str] = []
        failed: List[str] = []
        for listing in self._repository.list():
            if limit is not None and len(embedded) >= limit:
                break
            if listing.status != ListingStatus.published or (listing.embedding is not None and not force):
                skipped.append(listing.listing_id)
                continue
            try:
                vector = embed_listing(self._provider, listing)
            except (ExternalServiceUnavailable, ValueError) as exc:
                logger.warning("Could not embed listing %s: %s", listing.listing_id, exc)
                failed.append(listing.listing_id)
                continue
            self._repository.set_embedding(listing.listing_id, vector)
            embedded.append(listing.listing_id)
        logger.info(
            "Listing embeddings rebuilt: %d embedded, %d skipped, %d failed",
            len(embedded),
            len(skipped),
            len(failed),
        )
        return ReindexReport(embedded=embedded, skipped=skipped, failed=failed)
