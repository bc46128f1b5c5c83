# waterbot/effects.py
from dataclasses import dataclass, field
from datetime import date, time
from typing import List, Optional, Union

from .models import Product


@dataclass(frozen=True)
class Button:
    text: str
    payload: str


@dataclass(frozen=True)
class UserInput:
    """
    Transportdan kelgan bitta kirish: matn, kontakt, tugma payload yoki rasm.
    user_id = chat id.
    """
    user_id: int
    text: Optional[str] = None
    contact_phone: Optional[str] = None
    payload: Optional[str] = None
    photo_file_id: Optional[str] = None

    @property
    def command(self) -> Optional[str]:
        if not self.text or not self.text.startswith("/"):
            return None
        head = self.text.split(" ", 1)[0].lower()
        # /start@water_bot -> /start
        return head.split("@", 1)[0]


@dataclass(frozen=True)
class ShowPrompt:
    text: str
    buttons: List[List[Button]] = field(default_factory=list)
    request_contact: bool = False


@dataclass(frozen=True)
class ShowError:
    text: str


@dataclass(frozen=True)
class ShowConfirmation:
    order_id: int
    delivery_date: date
    delivery_time: time


@dataclass(frozen=True)
class ShowProduct:
    product: Product
    buttons: List[List[Button]] = field(default_factory=list)


@dataclass(frozen=True)
class ResetToMenu:
    pass


Effect = Union[ShowPrompt, ShowError, ShowConfirmation, ShowProduct, ResetToMenu]
