"""Reference storage and identity backends."""

from .memory import InMemoryIdentityProvider, InMemoryStore

__all__ = [
    "InMemoryIdentityProvider",
    "InMemoryStore",
]
