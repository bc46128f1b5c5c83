# waterbot/models.py
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, model_validator

CENT = Decimal("0.01")
ORDER_STATUS_NEW = "New"
# NUMERIC(12, 2) ustunining yuqori chegarasi
MAX_MONEY = Decimal("9999999999.99")


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class SessionState(str, Enum):
    START = "Start"
    SELECTING_PRODUCT = "SelectingProduct"
    ENTERING_QUANTITY = "EnteringQuantity"
    AWAITING_PHONE_NUMBER = "AwaitingPhoneNumber"
    AWAITING_ADDRESS = "AwaitingAddress"
    AWAITING_DATE = "AwaitingDate"
    CONFIRMING_ORDER = "ConfirmingOrder"

    # admin: yangi mahsulot qo'shish va qoldiqni yangilash
    ADMIN_ADDING_PRODUCT_NAME = "AdminAddingProductName"
    ADMIN_ADDING_PRODUCT_DESCRIPTION = "AdminAddingProductDescription"
    ADMIN_ADDING_PRODUCT_PRICE = "AdminAddingProductPrice"
    ADMIN_ADDING_PRODUCT_IMAGE = "AdminAddingProductImage"
    ADMIN_ADDING_PRODUCT_STOCK = "AdminAddingProductStock"
    ADMIN_UPDATING_STOCK = "AdminUpdatingStock"

    @property
    def is_admin(self) -> bool:
        return self.value.startswith("Admin")

    @property
    def has_product(self) -> bool:
        return self in PRODUCT_STATES

    @property
    def has_draft(self) -> bool:
        return self in DRAFT_STATES


DRAFT_STATES = frozenset(
    {
        SessionState.AWAITING_PHONE_NUMBER,
        SessionState.AWAITING_ADDRESS,
        SessionState.AWAITING_DATE,
        SessionState.CONFIRMING_ORDER,
    }
)
PRODUCT_STATES = DRAFT_STATES | {SessionState.ENTERING_QUANTITY}


class Product(BaseModel):
    id: int
    name: str
    description: str = ""
    price: Decimal
    image_url: Optional[str] = None
    stock_quantity: int = 0
    is_available: bool = True


class ProductDraft(BaseModel):
    """
    Admin oqimida yig'ilgan, hali bazaga yozilmagan mahsulot.
    """
    name: str
    description: str = ""
    price: Decimal
    image_url: Optional[str] = None
    stock_quantity: int = Field(default=0, ge=0)


class Order(BaseModel):
    id: Optional[int] = None
    user_id: int
    product_id: int
    quantity: int = Field(gt=0)
    total_price: Decimal
    phone_number: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_date: Optional[date] = None
    delivery_time: Optional[time] = None
    status: str = ORDER_STATUS_NEW
    created_at: Optional[datetime] = None

    def is_complete(self) -> bool:
        return all(
            (
                self.phone_number,
                self.delivery_address,
                self.delivery_date is not None,
                self.delivery_time is not None,
            )
        )

    @property
    def delivery_at(self) -> Optional[datetime]:
        if self.delivery_date is None or self.delivery_time is None:
            return None
        return datetime.combine(self.delivery_date, self.delivery_time)


class Session(BaseModel):
    user_id: int
    state: SessionState = SessionState.START
    selected_product_id: Optional[int] = None
    selected_quantity: Optional[int] = None
    draft_order: Optional[Order] = None
    # "takrorlash" orqali kelgan draft tasdiqlash bosqichidan o'tadi
    repeat_of_order_id: Optional[int] = None
    scratch: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_state_data(self) -> "Session":
        if self.state.has_product != (self.selected_product_id is not None):
            raise ValueError(
                f"selected_product_id={self.selected_product_id!r} does not match state {self.state.value}"
            )
        if self.state.has_draft != (self.draft_order is not None):
            raise ValueError(f"draft_order presence does not match state {self.state.value}")
        if self.state.has_draft != (self.selected_quantity is not None):
            raise ValueError(f"selected_quantity presence does not match state {self.state.value}")
        if self.repeat_of_order_id is not None and not self.state.has_draft:
            raise ValueError(f"repeat_of_order_id is set outside the draft states ({self.state.value})")
        return self

    @classmethod
    def fresh(cls, user_id: int) -> "Session":
        return cls(user_id=user_id)
