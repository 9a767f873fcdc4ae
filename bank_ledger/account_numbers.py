"""
Account Number Generation

Random fixed-length numeric account numbers (first digit non-zero),
checked against the live account store and retried on collision.
"""

import random
import secrets
from typing import Callable, Optional, TypeVar

from .errors import AccountAlreadyExists, GenerationExhausted
from .logging_config import get_logger

T = TypeVar("T")


class AccountNumberGenerator:
    """
    Produces unique account numbers.

    Uniqueness is checked against accounts that exist right now, so the
    number of a deleted account may be handed out again.
    """

    def __init__(
        self,
        exists: Callable[[str], bool],
        length: int = 10,
        max_attempts: int = 10,
        rng: Optional[random.Random] = None
    ):
        if length < 2:
            raise ValueError("Account numbers need at least 2 digits")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.exists = exists
        self.length = length
        self.max_attempts = max_attempts
        self.rng = rng or secrets.SystemRandom()
        self.logger = get_logger("bank_ledger.account_numbers")

    def draw(self) -> str:
        """Draw one candidate without checking the store"""
        first_digit = str(self.rng.randint(1, 9))
        rest = "".join(str(self.rng.randint(0, 9)) for _ in range(self.length - 1))
        return first_digit + rest

    def generate(self) -> str:
        """
        Return an account number not used by any existing account

        Raises:
            GenerationExhausted: if every attempt collided
        """
        return self.claim(lambda candidate: candidate)

    def claim(self, create: Callable[[str], T]) -> T:
        """
        Draw free numbers and pass each to ``create`` until one sticks.

        A number taken between the check and ``create`` (``create`` raises
        AccountAlreadyExists) counts as a collision and uses up an attempt.

        Raises:
            GenerationExhausted: if every attempt collided
        """
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.draw()
            if not self.exists(candidate):
                try:
                    return create(candidate)
                except AccountAlreadyExists:
                    pass
            self.logger.warning(
                f"Account number collision on attempt {attempt}/{self.max_attempts}"
            )

        raise GenerationExhausted(self.max_attempts)

    def is_valid(self, account_number: str) -> bool:
        """Check the fixed format: digits only, first digit 1-9"""
        return (
            isinstance(account_number, str)
            and len(account_number) == self.length
            and account_number.isdigit()
            and account_number.isascii()
            and account_number[0] != "0"
        )
