"""In-process key-value driver, used for tests and throwaway sessions."""

from __future__ import annotations

from typing import Literal

import pydantic as pdt

import fidelis.backends.base as base


class MemoryKeyValueStore(base.BaseKeyValueStore):
    """Dict-backed driver. Data lives as long as the instance."""

    kind: Literal["memory"] = "memory"

    _data: dict[str, str] = pdt.PrivateAttr(default_factory=dict)

    def initialize(self) -> None:
        pass

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
