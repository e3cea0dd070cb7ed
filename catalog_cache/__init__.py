"""Client-side incremental cache and search engine for the PRH catalog."""
from catalog_cache.models import Author, Title, CatalogKind, LoadState, PLACEHOLDER
from catalog_cache.store import CacheStore
from catalog_cache.session import CatalogSession

__all__ = [
    "Author",
    "Title",
    "CatalogKind",
    "LoadState",
    "PLACEHOLDER",
    "CacheStore",
    "CatalogSession",
]
