"""Base key-value store abstraction for local persistence.

The local store treats its driver as an opaque get/set interface holding
text values. BaseKeyValueStore defines the interface that every driver
follows; drivers are frozen Pydantic models so they can be declared directly
in fidelis.yaml.
"""

from __future__ import annotations

import abc

import pydantic as pdt


class BaseKeyValueStore(abc.ABC, pdt.BaseModel, strict=True, frozen=True, extra="forbid"):
    """Abstract base class for key-value drivers."""

    kind: str

    @abc.abstractmethod
    def initialize(self) -> None:
        """Create tables/files if needed. Idempotent."""
        ...

    @abc.abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored under ``key`` or None if absent."""
        ...

    @abc.abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, overwriting any prior value."""
        ...

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        ...
