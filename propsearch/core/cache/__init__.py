# propsearch/core/cache/__init__.py
from .search_cache import FileSearchCache, NullSearchCache, SearchCache, cache_key

__all__ = ["FileSearchCache", "NullSearchCache", "SearchCache", "cache_key"]
