# ============================================================================
# METRIC LABEL REGISTRY
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Metrics - Category label lifecycle
# PURPOSE: Keep exactly one series per entity as its category changes
# CREATED: 06 OCT 2026
# ============================================================================
"""
Metric Label Registry

A gauge like `database_up{instance="db1", error_reason="timeout"}` carries
the outcome category as a label. When the category changes, the old series
has to be deleted, otherwise the exposition keeps a stale
`error_reason="timeout"` line forever.

For each entity the registry remembers the last category it emitted:

    report(entity, B, value):
        previous A == B  -> set value only
        previous A != B  -> remove A series, then set B series

Collectors report from probe tasks on the event loop, which already
serializes them between awaits. The registry makes no assumption about
its caller's thread, so all state changes happen under one lock.
Sink calls are made while holding it so remove/set pairs are never
interleaved for the same metric.
"""

import logging
import threading
from typing import Dict, Iterable, Optional

from core.contracts import Category, EntityKey
from metrics.sink import ERROR_REASON, MetricSink

logger = logging.getLogger(__name__)


class MetricLabelRegistry:
    """Tracks the live category series of one gauge family."""

    def __init__(self, sink: MetricSink, metric: str, category_label: str = ERROR_REASON):
        self.sink = sink
        self.metric = metric
        self.category_label = category_label
        self._lock = threading.Lock()
        self._current: Dict[EntityKey, Category] = {}

    def report(self, entity: EntityKey, category: Category, value: float) -> None:
        """
        Publish the latest outcome for `entity`.

        Never raises: a sink failure is logged and the entity state is
        left at whatever was last written successfully.
        """
        with self._lock:
            previous = self._current.get(entity)
            try:
                category = Category(category)
                if previous is not None and previous != category:
                    self.sink.remove_series(
                        self.metric, entity.with_category(self.category_label, previous)
                    )
                    # Removed; a failed set below must not leave a stale entry.
                    del self._current[entity]
                self.sink.set_gauge(
                    self.metric, entity.with_category(self.category_label, category), value
                )
                self._current[entity] = category
            except Exception as e:
                logger.error(f"Failed to report {self.metric} for {entity.name}: {e}")

    def forget(self, entity: EntityKey) -> None:
        """Remove the entity's series and its state."""
        with self._lock:
            self._forget_locked(entity)

    def prune(self, active: Iterable[EntityKey]) -> int:
        """Forget every tracked entity not in `active`. Returns the count removed."""
        keep = set(active)
        with self._lock:
            stale = [entity for entity in self._current if entity not in keep]
            for entity in stale:
                self._forget_locked(entity)
        if stale:
            logger.info(f"Pruned {len(stale)} stale {self.metric} series")
        return len(stale)

    def _forget_locked(self, entity: EntityKey) -> None:
        previous = self._current.pop(entity, None)
        if previous is None:
            return
        try:
            self.sink.remove_series(
                self.metric, entity.with_category(self.category_label, previous)
            )
        except Exception as e:
            logger.error(f"Failed to remove {self.metric} series for {entity.name}: {e}")

    def current(self, entity: EntityKey) -> Optional[Category]:
        with self._lock:
            return self._current.get(entity)

    def snapshot(self) -> Dict[EntityKey, Category]:
        """Copy of the entity -> category map."""
        with self._lock:
            return dict(self._current)

    def __len__(self) -> int:
        with self._lock:
            return len(self._current)


__all__ = ["MetricLabelRegistry"]
