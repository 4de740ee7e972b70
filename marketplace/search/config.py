from __future__ import annotations

import os
from typing import Optional, Tuple

from marketplace.common.http import JsonHttpTransport
from marketplace.embeddings.cache import CachedEmbeddingProvider, EmbeddingCache
from marketplace.embeddings.provider import EmbeddingProvider, GeminiEmbeddingProvider
from marketplace.search.keyword import KeywordIndex, MeilisearchIndex
from marketplace.search.models import SearchConfig
from marketplace.search.observability import SearchObservability
from marketplace.search.repository import ListingRepository
from marketplace.search.service import SearchService


def load_search_config() -> SearchConfig:
    return SearchConfig(
        meilisearch_host=os.getenv("MEILISEARCH_HOST") or None,
        meilisearch_api_key=os.getenv("MEILISEARCH_API_KEY") or None,
        meilisearch_index=os.getenv("MEILISEARCH_INDEX", SearchConfig.meilisearch_index),
        google_ai_api_key=os.getenv("GOOGLE_AI_API_KEY") or None,
        embedding_model=os.getenv("EMBEDDING_MODEL", SearchConfig.embedding_model),
        embedding_dimension=int(os.getenv("EMBEDDING_DIMENSION", str(SearchConfig.embedding_dimension))),
        embedding_cache_size=int(os.getenv("EMBEDDING_CACHE_SIZE", str(SearchConfig.embedding_cache_size))),
        http_timeout_s=float(os.getenv("SEARCH_HTTP_TIMEOUT_S", str(SearchConfig.http_timeout_s))),
        retriever_timeout_s=float(os.getenv("RETRIEVER_TIMEOUT_S", str(SearchConfig.retriever_timeout_s))),
        max_workers=int(os.getenv("RETRIEVAL_MAX_WORKERS", str(SearchConfig.max_workers))),
        fusion_top_n=int(os.getenv("FUSION_TOP_N", str(SearchConfig.fusion_top_n))),
    )


def build_keyword_index(cfg: SearchConfig) -> Optional[KeywordIndex]:
    if not cfg.meilisearch_host:
        return None
    headers = {"Authorization": f"Bearer {cfg.meilisearch_api_key}"} if cfg.meilisearch_api_key else {}
    transport = JsonHttpTransport(service="meilisearch", timeout_s=cfg.http_timeout_s, default_headers=headers)
    return MeilisearchIndex(
        host=cfg.meilisearch_host,
        api_key=cfg.meilisearch_api_key,
        index=cfg.meilisearch_index,
        transport=transport,
    )


def build_embedding_provider(cfg: SearchConfig) -> Optional[EmbeddingProvider]:
    if not cfg.google_ai_api_key:
        return None
    provider = GeminiEmbeddingProvider(
        api_key=cfg.google_ai_api_key,
        model=cfg.embedding_model,
        dimension=cfg.embedding_dimension,
        transport=JsonHttpTransport(service="embeddings", timeout_s=cfg.http_timeout_s),
    )
    return CachedEmbeddingProvider(provider, EmbeddingCache(max_entries=cfg.embedding_cache_size))


def build_search_service(
    *,
    config: Optional[SearchConfig] = None,
    repository: Optional[ListingRepository] = None,
) -> Tuple[SearchService, ListingRepository, Optional[EmbeddingProvider]]:
    cfg = config or load_search_config()
    repo = repository or ListingRepository()
    provider = build_embedding_provider(cfg)
    service = SearchService(
        repo,
        keyword_index=build_keyword_index(cfg),
        embedding_provider=provider,
        config=cfg,
        observability=SearchObservability(),
    )
    return service, repo, provider
