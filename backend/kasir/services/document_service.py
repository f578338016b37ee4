# Overview: Human-readable transaction numbers.

from __future__ import annotations

import random
from datetime import datetime

from kasir.time_utils import utcnow

TRANSACTION_PREFIX = "TRX"

_rng = random.SystemRandom()


def generate_transaction_number(now: datetime | None = None, rng: random.Random | None = None) -> str:
    """
    TRX-YYYYMMDD-HHMMSS-NNN, UTC, NNN random 000-999.

    Uniqueness is enforced by the transactions.transaction_number constraint;
    a clash surfaces as a store failure and is not retried.
    """
    now = now or utcnow()
    rng = rng or _rng
    return f"{TRANSACTION_PREFIX}-{now:%Y%m%d}-{now:%H%M%S}-{rng.randrange(1000):03d}"
