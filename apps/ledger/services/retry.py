"""
Backoff for transactions that lost a race against another writer.
"""

import random

from django.conf import settings


def max_attempts() -> int:
    return max(1, settings.LEDGER_PURCHASE_MAX_RETRIES)


def backoff_delay(attempt: int) -> float:
    """Exponential backoff with full jitter, capped at LEDGER_RETRY_MAX_DELAY."""
    base = settings.LEDGER_RETRY_BASE_DELAY
    cap = settings.LEDGER_RETRY_MAX_DELAY
    ceiling = min(cap, base * (2 ** (attempt - 1)))
    return random.uniform(0, ceiling)
