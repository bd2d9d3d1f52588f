"""
Exceptions raised by the card engine.
"""

from __future__ import annotations


class CardEngineError(Exception):
    """Base class for card engine errors."""


class FatalNoData(CardEngineError):
    """
    Nothing can be presented: no introduced items and nothing to introduce.

    Callers should prompt the user to add or import content.
    """


class StorageUnavailable(CardEngineError):
    """
    The storage collaborator failed.

    Raised by store adapters and propagated unmodified by the schedulers
    so the caller can offer a retry or reload.
    """
