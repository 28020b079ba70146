"""
Database Schemas for the Sportswear Storefront

Each collection model maps to a MongoDB collection named after the lowercase
class name (Product -> "product", User -> "user", Order -> "order").
Request/response models for the order endpoints live at the bottom.
"""
import time
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

# Core domain models


class SizeStock(BaseModel):
    size: str
    quantity: int = Field(0, ge=0)


class ColorStock(BaseModel):
    color: str = Field(..., description="Color name or hex code, e.g. #FF0000")
    stock: int = Field(0, ge=0)
    sizeStock: List[SizeStock] = Field(default_factory=list)


class Product(BaseModel):
    userId: str = Field(..., description="Seller id")
    name: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    offerPrice: float = Field(..., ge=0)
    image: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    brand: Optional[str] = None
    stock: int = Field(0, ge=0)
    colors: List[ColorStock] = Field(default_factory=list)
    date: int = Field(default_factory=lambda: int(time.time()))


class User(BaseModel):
    name: str
    email: str
    imageUrl: Optional[str] = None
    cartItems: Dict[str, int] = Field(default_factory=dict)
    customDesigns: Dict[str, Any] = Field(default_factory=dict)


class OrderLine(BaseModel):
    product: str
    quantity: int = Field(..., gt=0)
    price: float = Field(..., ge=0, description="Unit price at the time of purchase")
    color: Optional[str] = None
    size: Optional[str] = None
    isCustomDesign: bool = False
    customDesignId: Optional[str] = None
    customDesignImage: Optional[str] = None
    designName: Optional[str] = None


class Order(BaseModel):
    userId: str
    address: Union[str, Dict[str, Any]]
    items: List[OrderLine]
    subtotal: float
    amount: int
    status: str = "Order Placed"
    paymentMethod: str = "COD"
    paymentStatus: str = "Pending"
    date: int = Field(default_factory=lambda: int(time.time()))


# Request/response


class OrderItemIn(BaseModel):
    product: str = Field(..., min_length=1, description="Cart key: id, id_color, id_color_size or custom_<designId>")
    quantity: int = Field(..., gt=0, strict=True)


class OrderRequest(BaseModel):
    address: Union[str, Dict[str, Any]]
    items: List[OrderItemIn] = Field(..., min_length=1)
    paymentMethod: Optional[str] = None
    paymentStatus: Optional[str] = None

    @field_validator("address")
    @classmethod
    def address_not_empty(cls, v):
        if not v:
            raise ValueError("address is required")
        return v


class OrderResult(BaseModel):
    success: bool
    message: str
    orderId: Optional[str] = None
    amount: Optional[int] = None
    cartCleared: Optional[bool] = None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
