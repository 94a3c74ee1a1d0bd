"""Storage collaborator interface and JSON-file implementation."""

from .store import JsonSessionStore, SessionStore

__all__ = ["JsonSessionStore", "SessionStore"]
