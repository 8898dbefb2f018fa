from .semantic import CacheLookup, SemanticCache

__all__ = ["CacheLookup", "SemanticCache"]
