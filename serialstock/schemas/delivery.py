# serialstock/schemas/delivery.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from serialstock.schemas.common import _Base


class CustomerInfo(_Base):
    name: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class ShippingLabel(_Base):
    label_number: Optional[str] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    destination: Optional[str] = None
    weight: Optional[str] = None
    dimensions: Optional[str] = None
    service_type: Optional[str] = None


class DeliveryRequest(_Base):
    """
    出库请求：selected_item_id 与 (batch_id | sku) 二选一；
    serial_number 仅在目标件尚未绑定序列号时用于当场绑定。
    """

    selected_item_id: Optional[int] = None
    batch_id: Optional[int] = None
    sku: Optional[str] = Field(default=None, max_length=64)
    quantity: int = 1
    serial_number: Optional[str] = Field(default=None, max_length=128)
    customer_info: CustomerInfo = Field(default_factory=CustomerInfo)
    shipping_label: Optional[ShippingLabel] = None
    tracking_number: Optional[str] = Field(default=None, max_length=128)
    notes: Optional[str] = None


class DeliveryIn(DeliveryRequest):
    actor: str = Field(min_length=1, max_length=64)


class DeliveryResult(_Base):
    delivery_id: int
    item_id: int
    serial_number: str
    batch_id: int
    product_name: str
    sku: str
    delivered_by: str
    delivery_date: datetime


class DeliveryOut(_Base):
    id: int
    item_id: int
    batch_id: int
    serial_number: str
    sku: str
    product_name: str
    customer_info: Dict[str, Any]
    shipping_label: Optional[Dict[str, Any]] = None
    tracking_number: Optional[str] = None
    delivered_by: str
    status: str
    created_at: datetime
