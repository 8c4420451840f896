"""Cart schemas shared by the REST API and the storefront client"""
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator
from datetime import datetime
from typing import Any, Optional, List


class ProductSnapshot(BaseModel):
    """Product data captured when the item was added, not a live reference"""
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    price: float = Field(default=0.0, ge=0)
    images: List[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value) if value is not None else value


class CartLineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    product: ProductSnapshot
    quantity: int = Field(ge=1, le=100)
    item_total: float = Field(alias="itemTotal", ge=0)  # price * quantity

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value) if value is not None else value


class CartCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    # Raw items; invalid entries are dropped by the cart service
    products: List[Any] = Field(default_factory=list)


class CartUpdate(BaseModel):
    products: List[Any] = Field(default_factory=list)
    version: Optional[int] = Field(
        default=None, description="Reject the write with 409 unless it matches the stored version"
    )


class CartResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    user_id: int = Field(alias="userId")
    products: List[CartLineItem] = Field(default_factory=list)
    version: int = 1
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class CartTotals(BaseModel):
    total: int = 0  # sum of quantities
    amount_total: float = Field(default=0.0, alias="amountTotal")

    model_config = ConfigDict(populate_by_name=True, frozen=True)
