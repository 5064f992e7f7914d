"""Core types for the polling change detector."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, Field, field_serializer

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


class UnsupportedWatchEventError(ValueError):
    """Raised at job setup when the configured event cannot be watched."""


class WatchedEvent(str, Enum):
    """The (resource, action) transitions an operator can watch."""

    PRODUCT_CREATED = "product.created"
    PRODUCT_UPDATED = "product.updated"
    SALES_ORDER_CREATED = "salesOrder.created"
    SALES_ORDER_UPDATED = "salesOrder.updated"
    SALES_ORDER_FULFILLED = "salesOrder.fulfilled"
    PURCHASE_ORDER_CREATED = "purchaseOrder.created"
    PURCHASE_ORDER_RECEIVED = "purchaseOrder.received"
    STOCK_ADJUSTMENT_CREATED = "stockAdjustment.created"
    STOCK_TRANSFER_COMPLETED = "stockTransfer.completed"
    INVENTORY_CHANGED = "inventory.changed"

    @classmethod
    def parse(cls, value: "str | WatchedEvent") -> "WatchedEvent":
        try:
            return cls(value)
        except ValueError:
            supported = ", ".join(e.value for e in cls)
            raise UnsupportedWatchEventError(
                f"Unsupported watch event {value!r}; expected one of: {supported}"
            ) from None

    @property
    def resource(self) -> str:
        return self.value.split(".", 1)[0]

    @property
    def action(self) -> str:
        return self.value.split(".", 1)[1]


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse inFlow ISO timestamps like '2026-02-26T08:30:00.1234567Z'.

    Returns None for missing or unparseable values; naive values are UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # .NET emits 7 fractional digits; datetime accepts at most 6.
        text = _FRACTION_RE.sub(r".\1", text)
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True, slots=True)
class SnapshotItem:
    """A normalized remote record from one snapshot page."""

    id: str
    status: str | None = None
    updated_at: datetime | None = None
    quantity: int | float | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EmittedEvent:
    event: str
    data: Mapping[str, Any]

    def to_item(self) -> dict[str, Any]:
        return {"json": {"event": self.event, "data": self.data}}


@dataclass(frozen=True, slots=True)
class PollOptions:
    location_filter: str | None = None
    category_filter: str | None = None


@dataclass(frozen=True, slots=True)
class PollJobConfig:
    """One polling job: a single watched event plus pass-through filters.

    Raises:
        UnsupportedWatchEventError: If ``event`` is not a known WatchedEvent.
    """

    event: WatchedEvent
    options: PollOptions = field(default_factory=PollOptions)
    job_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "event", WatchedEvent.parse(self.event))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PollJobConfig":
        options = payload.get("options") or {}
        return cls(
            event=payload.get("event", ""),
            options=PollOptions(
                location_filter=options.get("location_filter") or None,
                category_filter=options.get("category_filter") or None,
            ),
            job_id=payload.get("job_id") or None,
        )

    @property
    def key(self) -> str:
        """Checkpoint key; distinct filters get distinct checkpoints."""
        if self.job_id:
            return self.job_id
        parts = [self.event.value]
        if self.options.location_filter:
            parts.append(f"location={self.options.location_filter}")
        if self.options.category_filter:
            parts.append(f"category={self.options.category_filter}")
        return ":".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event.value,
            "options": {
                "location_filter": self.options.location_filter,
                "category_filter": self.options.category_filter,
            },
            "job_id": self.job_id,
        }


class ResourceState(BaseModel):
    """The slice of a checkpoint one resource watcher owns."""

    known_ids: set[str] = Field(default_factory=set)
    status_by_id: dict[str, str] = Field(default_factory=dict)
    quantity_by_id: dict[str, int | float] = Field(default_factory=dict)

    @field_serializer("known_ids")
    def _sorted_ids(self, ids: set[str]) -> list[str]:
        return sorted(ids)


class Checkpoint(BaseModel):
    """Per-job comparison baseline, replaced wholesale once per successful cycle."""

    last_poll_time: datetime | None = None
    resources: dict[str, ResourceState] = Field(default_factory=dict)

    @property
    def is_initialized(self) -> bool:
        return self.last_poll_time is not None

    def state_for(self, resource: str) -> ResourceState:
        state = self.resources.get(resource)
        return state.model_copy(deep=True) if state is not None else ResourceState()

    def advance(self, resource: str, state: ResourceState, polled_at: datetime) -> "Checkpoint":
        """Return a new checkpoint with ``resource`` replaced and the poll time stamped."""
        resources = {name: s.model_copy(deep=True) for name, s in self.resources.items()}
        resources[resource] = state
        return Checkpoint(last_poll_time=polled_at, resources=resources)
