"""Storage module."""

from .storage import DuplicateEmailError, IStorage, Storage

__all__ = ["DuplicateEmailError", "IStorage", "Storage"]
