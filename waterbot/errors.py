# waterbot/errors.py
from typing import Optional


class WaterBotError(Exception):
    pass


class PersistenceFailure(WaterBotError):
    """
    Barcha urinishlar tugagandan keyin ko'tariladigan yakuniy xato.
    Oxirgi sabab `cause` da va `__cause__` da saqlanadi.
    """

    def __init__(self, operation: str, attempts: int, cause: Optional[BaseException] = None):
        self.operation = operation
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"{operation} failed after {attempts} attempts: {cause}")
