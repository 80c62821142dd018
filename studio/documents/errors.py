"""Errors raised by the document layer."""
from __future__ import annotations


class PersistenceError(RuntimeError):
    """Raised when the backing store cannot read or write a collection."""


class ItemNotFoundError(LookupError):
    """Raised when a mutation targets an id that is not in the tree."""

    def __init__(self, item_id: str, label: str = "item") -> None:
        super().__init__(f"No {label} with id {item_id!r}.")
        self.item_id = item_id


class InvalidUpdateError(ValueError):
    """Raised when an update carries fields the target entity does not have."""
