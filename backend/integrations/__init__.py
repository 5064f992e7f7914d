"""
inFlow Inventory integration package.

  - InFlowClient: authenticated HTTP access, single-page fetch, cursor paging
  - resources:    request builders for products, orders, stock and reports

Usage:
    from integrations import InFlowClient, SalesOrders

    client = InFlowClient.from_settings(get_settings())
    orders = await SalesOrders(client).get_all(filters={"status": "Open"})
"""

from integrations.inflow import PAGE_SIZE, InFlowAPIError, InFlowClient, MalformedResponseError
from integrations.resources import (
    AdjustmentReasons,
    Categories,
    Customers,
    Locations,
    PricingLevels,
    Products,
    PurchaseOrders,
    Reports,
    SalesOrders,
    StockAdjustments,
    StockTransfers,
    Vendors,
)

__all__ = [
    "PAGE_SIZE",
    "InFlowAPIError",
    "InFlowClient",
    "MalformedResponseError",
    "AdjustmentReasons",
    "Categories",
    "Customers",
    "Locations",
    "PricingLevels",
    "Products",
    "PurchaseOrders",
    "Reports",
    "SalesOrders",
    "StockAdjustments",
    "StockTransfers",
    "Vendors",
]
