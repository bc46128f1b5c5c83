# waterbot/utils/phones.py
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

# +79XXXXXXXXX: "+", "79" va yana 9 ta raqam
PHONE_REGEX = re.compile(r"\+79[0-9]{9}")


def normalize_phone_strict(raw: Optional[str]) -> Optional[str]:
    """
    Matn ko'rinishidagi telefonni qat'iy tekshiradi.
    Faqat bo'sh joylar olib tashlanadi, boshqa hech narsa "tuzatilmaydi".

    QAYTARADI: +79XXXXXXXXX yoki None
    """
    if not raw:
        return None

    candidate = raw.strip()
    if PHONE_REGEX.fullmatch(candidate):
        return candidate

    logger.debug("[PHONES] rejected %r", raw)
    return None


def normalize_contact_phone(raw: Optional[str]) -> Optional[str]:
    """
    Telegram kontaktida raqam ko'pincha "+" siz keladi (79001234567).
    """
    if not raw:
        return None

    candidate = raw.strip()
    if candidate and not candidate.startswith("+"):
        candidate = "+" + candidate
    return normalize_phone_strict(candidate)
