"""
inFlow resource operations.

Thin request builders over :class:`integrations.inflow.InFlowClient`: each
resource class turns structured parameters into a query/body and calls one
endpoint. Nothing here keeps state between calls.

Usage:
    client = InFlowClient.from_settings(get_settings())
    orders = SalesOrders(client)
    open_orders = await orders.get_all(filters={"status": "Open"}, limit=25)
    await orders.fulfill(order_id, carrier="UPS", tracking_number="1Z...")
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from integrations.inflow import InFlowAPIError, InFlowClient

_GUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

ADDRESS_FIELDS = (
    "name",
    "attention",
    "address1",
    "address2",
    "city",
    "stateProvince",
    "postalCode",
    "country",
    "phone",
)


# ── Query / body helpers ──────────────────────────────────────────────────


def is_valid_guid(value: str) -> bool:
    return bool(_GUID_RE.match(value or ""))


def create_reference(value: str) -> dict[str, str]:
    """Reference an entity by GUID when possible, otherwise by name."""
    if is_valid_guid(value):
        return {"entityId": value}
    return {"name": value}


def clean_object(obj: dict[str, Any]) -> dict[str, Any]:
    """Drop ``None`` / empty-string values recursively; keep ``0`` and ``False``."""
    result: dict[str, Any] = {}
    for key, value in obj.items():
        if value is None or value == "":
            continue
        if isinstance(value, dict):
            cleaned = clean_object(value)
            if cleaned:
                result[key] = cleaned
        else:
            result[key] = value
    return result


def build_filter_params(filters: dict[str, Any] | None) -> dict[str, Any]:
    """Map ``{"status": "Open"}`` to inFlow's ``{"filter[status]": "Open"}``."""
    return {f"filter[{key}]": value for key, value in (filters or {}).items() if value not in (None, "")}


def build_include_params(includes: list[str] | None) -> str:
    return ",".join(includes or [])


def build_address(address: dict[str, Any]) -> dict[str, Any]:
    return {field: address[field] for field in ADDRESS_FIELDS if address.get(field)}


def build_order_items(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Normalize line items; ``productId`` / ``product`` may be a GUID or a name."""
    lines = []
    for item in items:
        line: dict[str, Any] = {
            "product": create_reference(item.get("productId") or item.get("product") or ""),
            "quantity": item.get("quantity"),
        }
        for key in ("unitPrice", "unitCost", "discount", "cost"):
            if item.get(key) is not None:
                line[key] = item[key]
        if item.get("locationId"):
            line["location"] = {"entityId": item["locationId"]}
        lines.append(line)
    return lines


def handle_empty_response(response: Any, operation: str) -> Any:
    if response is None or response == "":
        return {"success": True, "operation": operation}
    return response


# ── Resources ─────────────────────────────────────────────────────────────


class Resource:
    """Standard get / list / create / update / delete over one collection."""

    path: str = ""
    reference_fields: tuple[str, ...] = ()

    def __init__(self, client: InFlowClient):
        self.client = client

    def _item(self, entity_id: str, suffix: str = "") -> str:
        return f"{self.path}/{entity_id}{suffix}"

    def _body(self, fields: dict[str, Any]) -> dict[str, Any]:
        body = dict(fields)
        for key in self.reference_fields:
            if isinstance(body.get(key), str) and body[key]:
                body[key] = create_reference(body[key])
        if isinstance(body.get("orderItems"), list):
            body["orderItems"] = build_order_items(body["orderItems"])
        for key in ("address", "billingAddress", "shippingAddress"):
            if isinstance(body.get(key), dict):
                body[key] = build_address(body[key])
        return clean_object(body)

    async def get(self, entity_id: str, include: list[str] | None = None) -> Any:
        query = {"include": build_include_params(include)} if include else None
        return await self.client.request("GET", self._item(entity_id), query=query)

    async def get_all(
        self,
        *,
        return_all: bool = False,
        limit: int = 50,
        filters: dict[str, Any] | None = None,
        include: list[str] | None = None,
        **extra_query: Any,
    ) -> list[dict[str, Any]]:
        query: dict[str, Any] = build_filter_params(filters)
        if include:
            query["include"] = build_include_params(include)
        query.update(clean_object(extra_query))
        if return_all:
            return await self.client.list_all(self.path, query)
        query["count"] = limit
        return await self.client.fetch_page(self.path, query)

    async def create(self, **fields: Any) -> Any:
        return await self.client.request("POST", self.path, self._body(fields))

    async def update(self, entity_id: str, **fields: Any) -> Any:
        return await self.client.request("PUT", self._item(entity_id), self._body(fields))

    async def delete(self, entity_id: str) -> Any:
        response = await self.client.request("DELETE", self._item(entity_id))
        return handle_empty_response(response, "delete")


class Products(Resource):
    path = "/products"
    reference_fields = ("category",)

    async def get_inventory(self, product_id: str) -> Any:
        return await self.client.request("GET", self._item(product_id, "/inventory"))

    async def get_barcode(self, product_id: str) -> Any:
        return await self.client.request("GET", self._item(product_id, "/barcode"))

    async def get_pricing(self, product_id: str) -> Any:
        return await self.client.request("GET", self._item(product_id, "/pricing"))

    async def get_vendors(self, product_id: str) -> Any:
        return await self.client.request("GET", self._item(product_id, "/vendors"))


class SalesOrders(Resource):
    path = "/salesorders"
    reference_fields = ("customer",)

    async def fulfill(
        self,
        order_id: str,
        *,
        shipment_date: str | None = None,
        carrier: str | None = None,
        tracking_number: str | None = None,
        location_id: str | None = None,
    ) -> Any:
        body = clean_object(
            {
                "shipmentDate": shipment_date,
                "carrier": carrier,
                "trackingNumber": tracking_number,
                "location": {"entityId": location_id} if location_id else None,
            }
        )
        return await self.client.request("POST", self._item(order_id, "/fulfill"), body)

    async def void(self, order_id: str) -> Any:
        return await self.client.request("POST", self._item(order_id, "/void"))

    async def add_payment(
        self,
        order_id: str,
        amount: float,
        *,
        payment_date: str | None = None,
        payment_method: str | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> Any:
        body = clean_object(
            {
                "amount": amount,
                "paymentDate": payment_date or datetime.now(timezone.utc).isoformat(),
                "paymentMethod": payment_method,
                "reference": reference,
                "notes": notes,
            }
        )
        return await self.client.request("POST", self._item(order_id, "/payments"), body)

    async def get_payments(self, order_id: str) -> Any:
        return await self.client.request("GET", self._item(order_id, "/payments"))

    async def get_shipments(self, order_id: str) -> Any:
        return await self.client.request("GET", self._item(order_id, "/shipments"))


class PurchaseOrders(Resource):
    path = "/purchaseorders"
    reference_fields = ("vendor",)

    async def receive(self, order_id: str, **fields: Any) -> Any:
        return await self.client.request("POST", self._item(order_id, "/receive"), self._body(fields))

    async def close(self, order_id: str) -> Any:
        return await self.client.request("POST", self._item(order_id, "/close"))

    async def void(self, order_id: str) -> Any:
        return await self.client.request("POST", self._item(order_id, "/void"))

    async def get_receivings(self, order_id: str) -> Any:
        return await self.client.request("GET", self._item(order_id, "/receivings"))


class Customers(Resource):
    path = "/customers"
    reference_fields = ("pricingLevel",)

    async def get_orders(self, customer_id: str) -> Any:
        return await self.client.request("GET", self._item(customer_id, "/orders"))

    async def get_addresses(self, customer_id: str) -> Any:
        return await self.client.request("GET", self._item(customer_id, "/addresses"))

    async def add_address(self, customer_id: str, address: dict[str, Any]) -> Any:
        return await self.client.request("POST", self._item(customer_id, "/addresses"), build_address(address))

    async def get_balance(self, customer_id: str) -> Any:
        return await self.client.request("GET", self._item(customer_id, "/balance"))


class Vendors(Resource):
    path = "/vendors"

    async def get_purchase_orders(self, vendor_id: str) -> Any:
        return await self.client.request("GET", self._item(vendor_id, "/purchaseorders"))

    async def get_products(self, vendor_id: str) -> Any:
        return await self.client.request("GET", self._item(vendor_id, "/products"))

    async def add_product(
        self,
        vendor_id: str,
        product: str,
        *,
        vendor_sku: str | None = None,
        cost: float | None = None,
        is_default: bool | None = None,
    ) -> Any:
        body = clean_object(
            {
                "product": create_reference(product),
                "vendorSku": vendor_sku,
                "cost": cost,
                "isDefault": is_default,
            }
        )
        return await self.client.request("POST", self._item(vendor_id, "/products"), body)


class Locations(Resource):
    path = "/locations"

    async def get_inventory(self, location_id: str) -> Any:
        return await self.client.request("GET", self._item(location_id, "/inventory"))

    async def get_sublocations(self, location_id: str) -> Any:
        return await self.client.request("GET", self._item(location_id, "/sublocations"))


class StockAdjustments(Resource):
    path = "/stockadjustments"
    reference_fields = ("reason", "location")

    async def update(self, entity_id: str, **fields: Any) -> Any:
        raise InFlowAPIError('Operation "update" is not supported for Stock Adjustment resource')


class StockTransfers(Resource):
    path = "/stockTransfers"
    reference_fields = ("fromLocation", "toLocation")

    async def complete(self, transfer_id: str) -> Any:
        return await self.client.request("POST", self._item(transfer_id, "/complete"))

    async def void(self, transfer_id: str) -> Any:
        return await self.client.request("POST", self._item(transfer_id, "/void"))


class Categories(Resource):
    path = "/categories"
    reference_fields = ("parentCategory",)


class PricingLevels(Resource):
    path = "/pricingLevels"


class AdjustmentReasons(Resource):
    path = "/adjustmentReasons"


class Reports:
    """Read-only report queries; parameters are passed through as-is."""

    path = "/reports"

    def __init__(self, client: InFlowClient):
        self.client = client

    async def _run(self, name: str, **query: Any) -> Any:
        return await self.client.request("GET", f"{self.path}/{name}", query=clean_object(query))

    async def inventory_summary(
        self,
        *,
        location_id: str | None = None,
        category_id: str | None = None,
        include_inactive: bool | None = None,
        group_by: str | None = None,
    ) -> Any:
        return await self._run(
            "inventorySummary",
            locationId=location_id,
            categoryId=category_id,
            includeInactive=include_inactive,
            groupBy=group_by,
        )

    async def inventory_by_location(
        self,
        *,
        location_id: str | None = None,
        category_id: str | None = None,
        include_inactive: bool | None = None,
        group_by: str | None = None,
    ) -> Any:
        return await self._run(
            "inventoryByLocation",
            locationId=location_id,
            categoryId=category_id,
            includeInactive=include_inactive,
            groupBy=group_by,
        )

    async def sales(
        self,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        location_id: str | None = None,
        category_id: str | None = None,
        customer_id: str | None = None,
        group_by: str | None = None,
    ) -> Any:
        return await self._run(
            "sales",
            startDate=start_date,
            endDate=end_date,
            locationId=location_id,
            categoryId=category_id,
            customerId=customer_id,
            groupBy=group_by,
        )

    async def purchases(
        self,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        location_id: str | None = None,
        category_id: str | None = None,
        vendor_id: str | None = None,
        group_by: str | None = None,
    ) -> Any:
        return await self._run(
            "purchases",
            startDate=start_date,
            endDate=end_date,
            locationId=location_id,
            categoryId=category_id,
            vendorId=vendor_id,
            groupBy=group_by,
        )

    async def low_stock(
        self,
        *,
        location_id: str | None = None,
        category_id: str | None = None,
        include_inactive: bool | None = None,
    ) -> Any:
        return await self._run(
            "lowStock",
            locationId=location_id,
            categoryId=category_id,
            includeInactive=include_inactive,
        )

    async def valuation(
        self,
        *,
        location_id: str | None = None,
        category_id: str | None = None,
        include_inactive: bool | None = None,
        group_by: str | None = None,
    ) -> Any:
        return await self._run(
            "valuation",
            locationId=location_id,
            categoryId=category_id,
            includeInactive=include_inactive,
            groupBy=group_by,
        )

    async def movement(
        self,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        location_id: str | None = None,
        category_id: str | None = None,
        group_by: str | None = None,
    ) -> Any:
        return await self._run(
            "movement",
            startDate=start_date,
            endDate=end_date,
            locationId=location_id,
            categoryId=category_id,
            groupBy=group_by,
        )
