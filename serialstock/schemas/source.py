# serialstock/schemas/source.py
from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import Field

from serialstock.models.enums import InventorySource, ItemStatus
from serialstock.schemas.common import _Base


class PackageSource(_Base):
    """到货包裹 → NEW_ARRIVAL 批次，Item 初始 AVAILABLE。"""

    kind: Literal["package"] = "package"
    sku: str = Field(min_length=1, max_length=64)
    product_name: Optional[str] = Field(default=None, max_length=255)
    package_id: Optional[str] = Field(default=None, max_length=128)

    @property
    def inventory_source(self) -> InventorySource:
        return InventorySource.NEW_ARRIVAL

    @property
    def reference(self) -> str:
        return self.package_id or ""

    @property
    def initial_status(self) -> ItemStatus:
        return ItemStatus.AVAILABLE


class ReturnSource(_Base):
    """客户退货 → FROM_RETURN 批次，Item 初始 RETURNED。"""

    kind: Literal["return"] = "return"
    sku: str = Field(min_length=1, max_length=64)
    product_name: Optional[str] = Field(default=None, max_length=255)
    return_id: Optional[str] = Field(default=None, max_length=128)

    @property
    def inventory_source(self) -> InventorySource:
        return InventorySource.FROM_RETURN

    @property
    def reference(self) -> str:
        return self.return_id or ""

    @property
    def initial_status(self) -> ItemStatus:
        return ItemStatus.RETURNED


BatchSource = Annotated[Union[PackageSource, ReturnSource], Field(discriminator="kind")]
