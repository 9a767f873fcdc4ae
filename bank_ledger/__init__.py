"""
Bank Ledger

Account balances and an append-only transaction ledger kept consistent
under concurrent deposits, withdrawals and transfers. All monetary values
use Decimal.
"""

__version__ = "1.0.0"
