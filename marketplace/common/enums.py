from enum import Enum


class SortMode(str, Enum):
    relevance = "relevance"
    price_asc = "price_asc"
    price_desc = "price_desc"
    distance = "distance"
    newest = "newest"


class ResultSource(str, Enum):
    structured = "structured"
    keyword = "keyword"
    semantic = "semantic"
    hybrid = "hybrid"


class SearchMode(str, Enum):
    structured = "structured"
    keyword = "keyword"
    semantic = "semantic"
    hybrid = "hybrid"


class ListingStatus(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"
