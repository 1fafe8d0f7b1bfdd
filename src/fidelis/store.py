"""Local store: the whole dataset persisted as one record in a key-value driver."""

from __future__ import annotations

import time
from typing import Callable

from loguru import logger

import fidelis.backends.base as base
import fidelis.models as models

DATASET_KEY = "fidelis:dataset"
SYNC_URL_KEY = "fidelis:sync_url"

SaveHook = Callable[[models.Dataset], object]


class LocalStore:
    """Owns the persisted copy of the dataset.

    Every read rehydrates dates through ``Dataset.from_json``. ``save`` hands
    the written dataset to ``on_save`` (the sync push); the hook must not
    block or raise.
    """

    def __init__(self, driver: base.BaseKeyValueStore, on_save: SaveHook | None = None) -> None:
        self.driver = driver
        self.on_save = on_save

    def load(self) -> models.Dataset:
        """Return the stored dataset, seeding an empty one on first use."""
        raw = self.driver.get(DATASET_KEY)
        if raw is None:
            logger.debug("No dataset found, initializing an empty one")
            dataset = models.Dataset.empty()
            self.driver.set(DATASET_KEY, dataset.to_json())
            return dataset
        return models.Dataset.from_json(raw, context="Loading the local dataset")

    def save(self, dataset: models.Dataset) -> None:
        """Overwrite the stored dataset, then trigger the save hook."""
        self.replace(dataset)
        if self.on_save is not None:
            self.on_save(dataset)

    def replace(self, dataset: models.Dataset) -> None:
        """Overwrite the stored dataset without triggering the save hook."""
        t0 = time.perf_counter()
        self.driver.set(DATASET_KEY, dataset.to_json())
        logger.debug(
            f"Saved dataset: {(time.perf_counter() - t0) * 1000:.1f}ms "
            f"({len(dataset.customers)} customers, {len(dataset.cards)} cards, "
            f"{len(dataset.transactions)} transactions)"
        )
