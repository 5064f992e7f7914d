"""
Tests for inFlow resource operations and their request builders.
"""

import pytest

from integrations.inflow import InFlowAPIError
from integrations.resources import (
    Customers,
    Products,
    PurchaseOrders,
    Reports,
    SalesOrders,
    StockAdjustments,
    StockTransfers,
    Vendors,
    build_address,
    build_filter_params,
    build_order_items,
    clean_object,
    create_reference,
    handle_empty_response,
    is_valid_guid,
)

GUID = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"


class RecordingClient:
    """Records every call instead of talking to inFlow."""

    def __init__(self, response=None):
        self.response = response
        self.requests = []
        self.pages = []
        self.listed = []

    async def request(self, method, endpoint, body=None, query=None):
        self.requests.append((method, endpoint, body, query))
        return self.response

    async def fetch_page(self, path, query):
        self.pages.append((path, query))
        return [{"entityId": "x"}]

    async def list_all(self, endpoint, query=None, limit=None):
        self.listed.append((endpoint, query))
        return [{"entityId": "x"}, {"entityId": "y"}]


@pytest.fixture
def client():
    return RecordingClient()


class TestHelpers:
    def test_guid_detection(self):
        assert is_valid_guid(GUID)
        assert is_valid_guid(GUID.upper())
        assert not is_valid_guid("Blue Widget")
        assert not is_valid_guid("")

    def test_reference_by_id_or_name(self):
        assert create_reference(GUID) == {"entityId": GUID}
        assert create_reference("Blue Widget") == {"name": "Blue Widget"}

    def test_clean_object_drops_empty_values_recursively(self):
        cleaned = clean_object({"a": None, "b": "", "c": 0, "d": False, "e": {"f": None}, "g": {"h": 1}})
        assert cleaned == {"c": 0, "d": False, "g": {"h": 1}}

    def test_filter_params(self):
        assert build_filter_params({"status": "Open", "customerId": None}) == {"filter[status]": "Open"}
        assert build_filter_params(None) == {}

    def test_address_keeps_known_non_empty_fields(self):
        address = build_address({"address1": "1 Main St", "city": "Toronto", "postalCode": "", "extra": "x"})
        assert address == {"address1": "1 Main St", "city": "Toronto"}

    def test_order_items(self):
        lines = build_order_items(
            [
                {"productId": GUID, "quantity": 2, "unitPrice": 9.5, "locationId": "LOC-1"},
                {"product": "Blue Widget", "quantity": 1, "discount": 0},
            ]
        )
        assert lines == [
            {"product": {"entityId": GUID}, "quantity": 2, "unitPrice": 9.5, "location": {"entityId": "LOC-1"}},
            {"product": {"name": "Blue Widget"}, "quantity": 1, "discount": 0},
        ]

    def test_empty_response_becomes_success(self):
        assert handle_empty_response(None, "delete") == {"success": True, "operation": "delete"}
        assert handle_empty_response({"ok": 1}, "delete") == {"ok": 1}


class TestResourceCrud:
    @pytest.mark.asyncio
    async def test_get_with_include(self, client):
        await Products(client).get("p1", include=["inventoryLines", "vendorItems"])

        assert client.requests == [("GET", "/products/p1", None, {"include": "inventoryLines,vendorItems"})]

    @pytest.mark.asyncio
    async def test_get_all_single_page(self, client):
        records = await SalesOrders(client).get_all(limit=10, filters={"status": "Open"}, sort="orderDate")

        assert records == [{"entityId": "x"}]
        assert client.pages == [("/salesorders", {"filter[status]": "Open", "sort": "orderDate", "count": 10})]

    @pytest.mark.asyncio
    async def test_get_all_every_page(self, client):
        records = await Vendors(client).get_all(return_all=True, include=["contacts"])

        assert len(records) == 2
        assert client.listed == [("/vendors", {"include": "contacts"})]

    @pytest.mark.asyncio
    async def test_create_resolves_references_and_cleans(self, client):
        await SalesOrders(client).create(
            customer="Acme Corp",
            orderItems=[{"productId": GUID, "quantity": 3}],
            shippingAddress={"city": "Toronto", "country": ""},
            remarks=None,
        )

        method, endpoint, body, _ = client.requests[0]
        assert (method, endpoint) == ("POST", "/salesorders")
        assert body == {
            "customer": {"name": "Acme Corp"},
            "orderItems": [{"product": {"entityId": GUID}, "quantity": 3}],
            "shippingAddress": {"city": "Toronto"},
        }

    @pytest.mark.asyncio
    async def test_update_uses_put(self, client):
        await Customers(client).update("c1", name="Acme", pricingLevel=GUID)

        assert client.requests == [("PUT", "/customers/c1", {"name": "Acme", "pricingLevel": {"entityId": GUID}}, None)]

    @pytest.mark.asyncio
    async def test_delete_reports_success_on_empty_body(self, client):
        result = await Products(client).delete("p1")

        assert result == {"success": True, "operation": "delete"}
        assert client.requests[0][:2] == ("DELETE", "/products/p1")

    @pytest.mark.asyncio
    async def test_stock_adjustments_cannot_be_updated(self, client):
        with pytest.raises(InFlowAPIError, match='"update" is not supported for Stock Adjustment'):
            await StockAdjustments(client).update("a1", remarks="x")
        assert client.requests == []


class TestResourceActions:
    @pytest.mark.asyncio
    async def test_fulfill_sales_order(self, client):
        await SalesOrders(client).fulfill("so1", carrier="UPS", tracking_number="1Z999", location_id="LOC-1")

        assert client.requests == [
            (
                "POST",
                "/salesorders/so1/fulfill",
                {"carrier": "UPS", "trackingNumber": "1Z999", "location": {"entityId": "LOC-1"}},
                None,
            )
        ]

    @pytest.mark.asyncio
    async def test_add_payment_defaults_date(self, client):
        await SalesOrders(client).add_payment("so1", 25.0, payment_method="Cash")

        _, endpoint, body, _ = client.requests[0]
        assert endpoint == "/salesorders/so1/payments"
        assert body["amount"] == 25.0
        assert body["paymentMethod"] == "Cash"
        assert "paymentDate" in body

    @pytest.mark.asyncio
    async def test_receive_purchase_order(self, client):
        await PurchaseOrders(client).receive("po1", orderItems=[{"product": "Bolt", "quantity": 5}])

        assert client.requests[0][:3] == (
            "POST",
            "/purchaseorders/po1/receive",
            {"orderItems": [{"product": {"name": "Bolt"}, "quantity": 5}]},
        )

    @pytest.mark.asyncio
    async def test_complete_stock_transfer(self, client):
        await StockTransfers(client).complete("st1")

        assert client.requests[0][:2] == ("POST", "/stockTransfers/st1/complete")

    @pytest.mark.asyncio
    async def test_vendor_add_product(self, client):
        await Vendors(client).add_product("v1", "Bolt", vendor_sku="B-1", cost=0.25)

        assert client.requests[0][2] == {"product": {"name": "Bolt"}, "vendorSku": "B-1", "cost": 0.25}

    @pytest.mark.asyncio
    async def test_customer_add_address(self, client):
        await Customers(client).add_address("c1", {"address1": "1 Main St", "notes": "ignored"})

        assert client.requests[0][:3] == ("POST", "/customers/c1/addresses", {"address1": "1 Main St"})


class TestReports:
    @pytest.mark.asyncio
    async def test_inventory_summary_passes_filters(self, client):
        await Reports(client).inventory_summary(location_id="LOC-1", include_inactive=False)

        assert client.requests == [
            ("GET", "/reports/inventorySummary", None, {"locationId": "LOC-1", "includeInactive": False})
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,name",
        [
            ("inventory_by_location", "inventoryByLocation"),
            ("sales", "sales"),
            ("purchases", "purchases"),
            ("low_stock", "lowStock"),
            ("valuation", "valuation"),
            ("movement", "movement"),
        ],
    )
    async def test_report_endpoints(self, client, method, name):
        await getattr(Reports(client), method)()

        assert client.requests == [("GET", f"/reports/{name}", None, {})]
