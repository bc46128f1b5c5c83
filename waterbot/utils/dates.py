# waterbot/utils/dates.py
import re
from dataclasses import dataclass
from datetime import datetime, time
from enum import Enum
from typing import Optional, Tuple

DATETIME_REGEX = re.compile(r"[0-9]{2}\.[0-9]{2}\.[0-9]{4} [0-9]{2}:[0-9]{2}")
DATETIME_FORMAT = "%d.%m.%Y %H:%M"


class SlotError(str, Enum):
    FORMAT = "format"
    INVALID = "invalid"
    NOT_FUTURE = "not_future"
    OUTSIDE_WINDOW = "outside_window"


@dataclass(frozen=True)
class DeliveryWindow:
    """
    Yetkazib berish vaqti: start <= t < end (yuqori chegara kirmaydi).
    """
    start: time = time(9, 0)
    end: time = time(21, 0)

    @classmethod
    def from_hours(cls, start_hour: int, end_hour: int) -> "DeliveryWindow":
        if not 0 <= start_hour < end_hour <= 24:
            raise ValueError(f"Invalid delivery window {start_hour}..{end_hour}")
        # 24 -> kun oxirigacha
        end = time(23, 59, 59, 999999) if end_hour == 24 else time(end_hour, 0)
        return cls(start=time(start_hour, 0), end=end)

    def contains(self, value: time) -> bool:
        return self.start <= value < self.end


def parse_delivery_datetime(text: Optional[str]) -> Tuple[Optional[datetime], Optional[SlotError]]:
    if not text:
        return None, SlotError.FORMAT

    candidate = text.strip()
    if not DATETIME_REGEX.fullmatch(candidate):
        return None, SlotError.FORMAT

    try:
        return datetime.strptime(candidate, DATETIME_FORMAT), None
    except ValueError:
        # 31.02.2099 yoki 25:00 kabi
        return None, SlotError.INVALID


def check_delivery_slot(
        value: datetime,
        now: datetime,
        window: DeliveryWindow,
) -> Optional[SlotError]:
    """
    Ikkala tekshiruv ham to'liq sana+vaqt bo'yicha:
      1) value qat'iy ravishda now dan keyin bo'lishi kerak
      2) kun vaqti window ichida bo'lishi kerak
    """
    if value <= now:
        return SlotError.NOT_FUTURE
    if not window.contains(value.time()):
        return SlotError.OUTSIDE_WINDOW
    return None
