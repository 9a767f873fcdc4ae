"""
Tests for account number generation
"""

import pytest
import random

from bank_ledger.account_numbers import AccountNumberGenerator
from bank_ledger.errors import AccountAlreadyExists, GenerationExhausted


class TestAccountNumberGenerator:
    """Test account number format and collision handling"""

    def test_generated_numbers_are_well_formed(self):
        generator = AccountNumberGenerator(exists=lambda n: False, rng=random.Random(7))

        for _ in range(200):
            number = generator.generate()
            assert len(number) == 10
            assert number.isdigit()
            assert number[0] != "0"
            assert generator.is_valid(number)

    def test_custom_length(self):
        generator = AccountNumberGenerator(exists=lambda n: False, length=6)
        assert len(generator.generate()) == 6

    def test_retries_on_collision(self):
        taken = set()
        rng = random.Random(42)
        generator = AccountNumberGenerator(exists=taken.__contains__, rng=rng)

        # Replay the first draw so it collides
        first = generator.draw()
        taken.add(first)
        generator.rng = random.Random(42)

        number = generator.generate()
        assert number != first
        assert number not in taken

    def test_exhaustion(self):
        calls = []

        def always_taken(number):
            calls.append(number)
            return True

        generator = AccountNumberGenerator(exists=always_taken, max_attempts=3)

        with pytest.raises(GenerationExhausted) as exc_info:
            generator.generate()

        assert exc_info.value.attempts == 3
        assert len(calls) == 3

    def test_is_valid_rejects_bad_formats(self):
        generator = AccountNumberGenerator(exists=lambda n: False)

        assert not generator.is_valid("0123456789")
        assert not generator.is_valid("12345")
        assert not generator.is_valid("12345678901")
        assert not generator.is_valid("12345abcde")
        assert not generator.is_valid(1234567890)

    def test_rejects_bad_settings(self):
        with pytest.raises(ValueError):
            AccountNumberGenerator(exists=lambda n: False, length=1)
        with pytest.raises(ValueError):
            AccountNumberGenerator(exists=lambda n: False, max_attempts=0)

    def test_claim_retries_when_create_loses_a_race(self):
        generator = AccountNumberGenerator(exists=lambda n: False, rng=random.Random(3))
        attempted = []

        def create(number):
            attempted.append(number)
            if len(attempted) == 1:
                raise AccountAlreadyExists(number)
            return number

        assert generator.claim(create) == attempted[1]
        assert len(attempted) == 2

    def test_claim_exhaustion_counts_create_collisions(self):
        generator = AccountNumberGenerator(exists=lambda n: False, max_attempts=2)

        def always_taken(number):
            raise AccountAlreadyExists(number)

        with pytest.raises(GenerationExhausted) as exc_info:
            generator.claim(always_taken)
        assert exc_info.value.attempts == 2
