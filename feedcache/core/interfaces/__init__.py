from .cache import CacheTierBackend, KeyPredicate

__all__ = ["CacheTierBackend", "KeyPredicate"]
