from __future__ import annotations

from enum import Enum


class ResourceType(str, Enum):
    PRODUCT = "product"
    ORDER = "order"
    SHOP = "shop"
    USER = "user"
    CATEGORY = "category"
    DASHBOARD = "dashboard"
