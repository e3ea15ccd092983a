"""
Pydantic Schemas for Request/Response Validation

Covers:
- Sign-in and profile/navigation
- Menu catalog management
- Cart composition
- Bill submission and history
"""

from decimal import Decimal
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hotel_billing.models import MenuCategory, PaymentMethod


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# =============================================================================
# AUTH SCHEMAS
# =============================================================================

class SignInRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, examples=["staff@hotel.local"])
    password: str = Field(..., min_length=1, max_length=200)


class SessionResponse(BaseModel):
    """Returned after a successful sign-in."""
    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[datetime] = None
    role: Optional[str] = None
    role_label: str


class NavItem(BaseModel):
    label: str
    path: str


class ProfileResponse(BaseModel):
    """The signed-in user, their role and the screens they may open."""
    user_id: str
    email: Optional[str]
    role: Optional[str]
    role_label: str
    is_admin: bool
    navigation: List[NavItem]


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    detail: Optional[str] = None


# =============================================================================
# MENU SCHEMAS
# =============================================================================

class MenuItemCreate(BaseModel):
    """Request schema for adding a menu item."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Masala Dosa"])
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, examples=["120.00"])
    category: MenuCategory = Field(..., examples=["Breakfast"])
    available: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class MenuItemUpdate(MenuItemCreate):
    """Menu edits replace every editable field, as the edit form does."""
    pass


class MenuItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str]
    price: Decimal
    category: str
    available: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MenuListResponse(BaseModel):
    total: int
    items: List[MenuItemResponse]
    by_category: dict[str, List[MenuItemResponse]]


class MenuItemMutationResponse(BaseModel):
    success: bool = True
    message: str
    item: MenuItemResponse


# =============================================================================
# CART SCHEMAS
# =============================================================================

class CartAddRequest(BaseModel):
    menu_item_id: str = Field(..., min_length=1)


class CartQuantityRequest(BaseModel):
    delta: int = Field(..., ge=-1000, le=1000, examples=[1, -1])


class CustomerFields(BaseModel):
    """Optional customer details; empty strings are treated as not given."""
    customer_name: Optional[str] = Field(None, max_length=100)
    customer_phone: Optional[str] = Field(None, max_length=20)
    room_number: Optional[str] = Field(None, max_length=20)
    payment_method: Optional[PaymentMethod] = None

    @field_validator("customer_name", "customer_phone", "room_number")
    @classmethod
    def validate_optional_text(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)

    @field_validator("payment_method", mode="before")
    @classmethod
    def validate_payment_method(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CartLineResponse(BaseModel):
    menu_item_id: str
    name: str
    category: Optional[str]
    unit_price: Decimal
    quantity: int
    line_total: Decimal


class CartResponse(BaseModel):
    """Cart lines with totals rounded for display."""
    lines: List[CartLineResponse]
    line_count: int
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    room_number: Optional[str] = None
    payment_method: Optional[str] = None
    is_submitting: bool = False
    message: Optional[str] = None


# =============================================================================
# BILL SCHEMAS
# =============================================================================

class BillItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    menu_item_id: Optional[str]
    item_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class BillResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    bill_number: str
    customer_name: Optional[str]
    customer_phone: Optional[str]
    room_number: Optional[str]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    payment_method: Optional[str]
    created_by: str
    created_at: Optional[datetime]


class BillDetailResponse(BillResponse):
    items: List[BillItemResponse] = []


class BillCreateResponse(BaseModel):
    """Response after successfully creating a bill."""
    success: bool = True
    message: str
    bill_number: str
    bill: BillDetailResponse


class BillListResponse(BaseModel):
    total: int
    bills: List[BillResponse]


# =============================================================================
# MISC
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None
    redirect_to: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    auth_service: str
    timestamp: datetime
