"""
Resource Watchers — per-resource change classification.

Every watched resource type has one watcher class. A watcher is pure: given
the previous slice of the checkpoint and a fresh snapshot page, it returns
the events for this cycle and the slice that replaces the old one. Nothing
is mutated in place; the detector performs the single store write.

Slices are always fully replaced from the current page (never unioned), so
an id that drops out of the page stops being tracked.

Usage:
    watcher = get_watcher(WatchedEvent.SALES_ORDER_FULFILLED)
    events, next_state = watcher.detect(previous_state, snapshot, since=last_poll_time)
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar

from polling.models import (
    EmittedEvent,
    ResourceState,
    SnapshotItem,
    UnsupportedWatchEventError,
    WatchedEvent,
)


@dataclass(frozen=True)
class StatusTransition:
    """Fires when an item moves into ``targets``.

    With ``from_statuses`` set, the previous status must be one of them;
    otherwise any recorded (truthy) previous status outside ``targets`` counts.
    A missing previous status never fires, so first sight is suppressed.
    """

    targets: frozenset[str]
    from_statuses: frozenset[str] | None = None

    def fires(self, previous: str | None, current: str | None) -> bool:
        if current not in self.targets or not previous:
            return False
        if self.from_statuses is None:
            return previous not in self.targets
        return previous in self.from_statuses


# ── Abstract watcher ──────────────────────────────────────────────────────


class ResourceWatcher(ABC):
    """Change classification for one resource type."""

    resource: ClassVar[str]
    actions: ClassVar[frozenset[str]]

    def __init__(self, event: WatchedEvent):
        event = WatchedEvent.parse(event)
        if event.resource != self.resource or event.action not in self.actions:
            raise UnsupportedWatchEventError(
                f"{type(self).__name__} cannot watch {event.value!r}"
            )
        self.event = event

    @abstractmethod
    def detect(
        self,
        previous: ResourceState,
        snapshot: list[SnapshotItem],
        since: datetime | None,
    ) -> tuple[list[EmittedEvent], ResourceState]:
        """Classify ``snapshot`` against ``previous``.

        Args:
            previous: The slice recorded by the last successful cycle.
            snapshot: The freshly fetched page, in API order.
            since: The previous poll time; None while bootstrapping.

        Returns:
            Events in snapshot order, and the slice to store next.
        """
        ...


class EntityWatcher(ResourceWatcher):
    """Watcher for entity collections tracked by id and/or status."""

    tracks_ids: ClassVar[bool] = True
    tracks_status: ClassVar[bool] = False
    transitions: ClassVar[dict[str, StatusTransition]] = {}

    def detect(
        self,
        previous: ResourceState,
        snapshot: list[SnapshotItem],
        since: datetime | None,
    ) -> tuple[list[EmittedEvent], ResourceState]:
        events: list[EmittedEvent] = []
        current_ids: set[str] = set()
        current_status: dict[str, str] = {}

        for item in snapshot:
            current_ids.add(item.id)
            if item.status is not None:
                current_status[item.id] = item.status
            if self._qualifies(item, previous, since):
                events.append(EmittedEvent(event=self.event.value, data=item.raw))

        next_state = ResourceState(
            known_ids=current_ids if self.tracks_ids else set(),
            status_by_id=current_status if self.tracks_status else {},
        )
        return events, next_state

    def _qualifies(self, item: SnapshotItem, previous: ResourceState, since: datetime | None) -> bool:
        action = self.event.action
        if action == "created":
            return item.id not in previous.known_ids
        if action == "updated":
            return (
                item.id in previous.known_ids
                and since is not None
                and item.updated_at is not None
                and item.updated_at > since
            )
        return self.transitions[action].fires(previous.status_by_id.get(item.id), item.status)


# ── Watcher registry ──────────────────────────────────────────────────────

_WATCHER_REGISTRY: dict[str, type[ResourceWatcher]] = {}


def register_watcher(watcher_cls: type[ResourceWatcher]) -> type[ResourceWatcher]:
    """Decorator: register a watcher class for its resource type."""
    _WATCHER_REGISTRY[watcher_cls.resource] = watcher_cls
    return watcher_cls


def get_watcher(event: WatchedEvent | str) -> ResourceWatcher:
    """Instantiate the watcher for ``event``.

    Raises:
        UnsupportedWatchEventError: For unknown events or unregistered resources.
    """
    event = WatchedEvent.parse(event)
    watcher_cls = _WATCHER_REGISTRY.get(event.resource)
    if watcher_cls is None:
        available = sorted(_WATCHER_REGISTRY)
        raise UnsupportedWatchEventError(
            f"No watcher registered for resource {event.resource!r}. Available: {available}"
        )
    return watcher_cls(event)


# ── Concrete watchers ─────────────────────────────────────────────────────


@register_watcher
class ProductWatcher(EntityWatcher):
    resource = "product"
    actions = frozenset({"created", "updated"})


@register_watcher
class SalesOrderWatcher(EntityWatcher):
    resource = "salesOrder"
    actions = frozenset({"created", "updated", "fulfilled"})
    tracks_status = True
    # A falsy previous status (including "") suppresses the event.
    transitions = {"fulfilled": StatusTransition(targets=frozenset({"Fulfilled"}))}


@register_watcher
class PurchaseOrderWatcher(EntityWatcher):
    resource = "purchaseOrder"
    actions = frozenset({"created", "received"})
    tracks_status = True
    transitions = {
        "received": StatusTransition(
            targets=frozenset({"Received", "PartiallyReceived"}),
            from_statuses=frozenset({"Open"}),
        )
    }


@register_watcher
class StockAdjustmentWatcher(EntityWatcher):
    resource = "stockAdjustment"
    actions = frozenset({"created"})


@register_watcher
class StockTransferWatcher(EntityWatcher):
    resource = "stockTransfer"
    actions = frozenset({"completed"})
    tracks_ids = False
    tracks_status = True
    transitions = {
        "completed": StatusTransition(
            targets=frozenset({"Completed"}),
            from_statuses=frozenset({"Open"}),
        )
    }


def _as_quantity(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        return int(number) if number.is_integer() else number
    return None


@register_watcher
class InventoryWatcher(ResourceWatcher):
    """Per-product quantity deltas from the inventory summary report."""

    resource = "inventory"
    actions = frozenset({"changed"})

    def detect(
        self,
        previous: ResourceState,
        snapshot: list[SnapshotItem],
        since: datetime | None,
    ) -> tuple[list[EmittedEvent], ResourceState]:
        events: list[EmittedEvent] = []
        current: dict[str, int | float] = {}

        for item in snapshot:
            quantity = _as_quantity(item.quantity)
            if quantity is None:
                continue
            current[item.id] = quantity

            before = previous.quantity_by_id.get(item.id)
            if before is None or before == quantity:
                continue
            events.append(
                EmittedEvent(
                    event=self.event.value,
                    data={
                        "product": item.raw.get("product"),
                        "productId": item.id,
                        "previousQuantity": before,
                        "currentQuantity": quantity,
                        "change": quantity - before,
                    },
                )
            )

        return events, ResourceState(quantity_by_id=current)
