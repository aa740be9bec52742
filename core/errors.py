"""Error taxonomy for the cognitive engine and its collaborators."""

from __future__ import annotations


class MindError(Exception):
    """Base class for engine errors."""


class DecodeError(MindError):
    """Malformed envelope or payload; the message is dropped."""


class PersistenceWriteError(MindError):
    """Snapshot could not be written; the previous snapshot stays authoritative."""


class PersistenceReadError(MindError):
    """Snapshot could not be read; callers treat this as a fresh start."""


class NetworkBindError(MindError):
    """Listener could not bind; networking is disabled for the instance."""
