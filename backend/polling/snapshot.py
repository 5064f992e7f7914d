"""
Snapshot Fetcher — one bounded page of the collection a job watches.

Only the first ``page_size`` records are fetched. A collection larger than
one page is only partially visible: changes outside the first page are not
detected, and an id that scrolls off and later returns looks new again.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from integrations.inflow import PAGE_SIZE, MalformedResponseError
from polling.models import PollOptions, SnapshotItem, WatchedEvent, parse_timestamp

logger = structlog.get_logger()

COLLECTION_PATHS: dict[str, str] = {
    "product": "/products",
    "salesOrder": "/salesOrders",
    "purchaseOrder": "/purchaseOrders",
    "stockAdjustment": "/stockAdjustments",
    "stockTransfer": "/stockTransfers",
    "inventory": "/reports/inventorySummary",
}

# Report rows are keyed by product, not by their own entity id.
REPORT_RESOURCES = frozenset({"inventory"})


class ResourceClient(Protocol):
    """What the fetcher needs from an API client."""

    async def fetch_page(self, collection_path: str, query: dict[str, Any]) -> list[dict[str, Any]]:
        """Return at most ``query["count"]`` raw records; raise on failure."""


class SnapshotFetcher:
    def __init__(self, client: ResourceClient, page_size: int = PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    def collection_path(self, event: WatchedEvent) -> str:
        return COLLECTION_PATHS[event.resource]

    def build_query(self, event: WatchedEvent, options: PollOptions) -> dict[str, Any]:
        query: dict[str, Any] = {"count": self.page_size}
        if event.resource in REPORT_RESOURCES:
            if options.location_filter:
                query["locationId"] = options.location_filter
            if options.category_filter:
                query["categoryId"] = options.category_filter
        else:
            if options.location_filter:
                query["filter[locationId]"] = options.location_filter
            if options.category_filter:
                query["filter[categoryId]"] = options.category_filter
        return query

    async def fetch(self, event: WatchedEvent, options: PollOptions | None = None) -> list[SnapshotItem]:
        """Fetch and normalize one page, preserving the API's order.

        Raises:
            InFlowAPIError: On HTTP / network failure.
            MalformedResponseError: If the body is not a list of objects.
        """
        path = self.collection_path(event)
        records = await self.client.fetch_page(path, self.build_query(event, options or PollOptions()))
        if not isinstance(records, list):
            raise MalformedResponseError(f"Expected a list from {path}, got {type(records).__name__}")

        items: list[SnapshotItem] = []
        for record in records:
            if not isinstance(record, dict):
                raise MalformedResponseError(f"Expected objects from {path}, got {type(record).__name__}")
            item = normalize_record(event.resource, record)
            if item is None:
                logger.warning("poll.snapshot.record_without_id", event=event.value, path=path)
                continue
            items.append(item)
        return items


def normalize_record(resource: str, record: dict[str, Any]) -> SnapshotItem | None:
    if resource in REPORT_RESOURCES:
        product_id = record.get("productId")
        if product_id in (None, ""):
            return None
        return SnapshotItem(
            id=str(product_id),
            quantity=record.get("quantityOnHand"),
            raw=record,
        )

    entity_id = record.get("entityId")
    if entity_id in (None, ""):
        return None
    status = record.get("status")
    return SnapshotItem(
        id=str(entity_id),
        status=str(status) if status is not None else None,
        updated_at=parse_timestamp(record.get("updatedAt")),
        raw=record,
    )
