"""
Tracking id generation.

Format: ``TRK-YYYYMMDD-RRRR-SUFFIX``

- ``YYYYMMDD``: creation date (UTC)
- ``RRRR``: random number in 1000..9999
- ``SUFFIX``: uppercase prefix of a random UUID's hex digits
"""

import re
import secrets
import uuid
from datetime import datetime
from typing import Optional

from parcelflow.app.core.config import settings
from parcelflow.app.core.timeutils import utcnow

MIN_SUFFIX_LENGTH = 4
MAX_SUFFIX_LENGTH = 32

TRACKING_ID_PATTERN = re.compile(r"^TRK-\d{8}-\d{4}-[A-Z0-9]{4,32}$")


def generate_tracking_id(now: Optional[datetime] = None, suffix_length: Optional[int] = None) -> str:
    """
    Generate a new tracking id.

    Uniqueness is finally enforced by the unique index on
    ``parcels.tracking_id``; the lifecycle engine retries on collision.
    """
    if suffix_length is None:
        suffix_length = settings.tracking_suffix_length
    if not MIN_SUFFIX_LENGTH <= suffix_length <= MAX_SUFFIX_LENGTH:
        raise ValueError(
            f"suffix_length must be between {MIN_SUFFIX_LENGTH} and {MAX_SUFFIX_LENGTH}"
        )

    now = now or utcnow()
    date_part = now.strftime("%Y%m%d")
    random_number = 1000 + secrets.randbelow(9000)
    suffix = uuid.uuid4().hex[:suffix_length].upper()

    return f"TRK-{date_part}-{random_number}-{suffix}"


def is_tracking_id(value: str) -> bool:
    return bool(TRACKING_ID_PATTERN.match(value or ""))
