"""Human-readable identifiers for incidents and users."""

import logging
import random
import string
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.errors import IdentifierExhaustedError
from app.models import Incident

logger = logging.getLogger(__name__)
settings = get_settings()

_BASE36 = string.digits + string.ascii_lowercase


def generate_incident_id(year: int | None = None) -> str:
    """Return ``INC-<year>-<nnnn>`` with a random zero-padded sequence."""
    year = year or datetime.now(UTC).year
    return f"INC-{year}-{random.randrange(10000):04d}"


def generate_user_id() -> str:
    """Return ``USER-`` followed by 22 random base36 characters."""
    return "USER-" + "".join(random.choices(_BASE36, k=22))


async def allocate_incident_id(
    db: AsyncSession,
    max_attempts: int = settings.incident_id_max_attempts,
) -> str:
    """
    Generate incident ids until one is not already stored.

    Collisions are expected as a year's 10,000 ids fill up; after
    ``max_attempts`` consecutive collisions the allocation gives up.

    Raises:
        IdentifierExhaustedError: every attempt collided
    """
    for attempt in range(max_attempts):
        candidate = generate_incident_id()
        result = await db.execute(select(Incident.id).where(Incident.id == candidate))
        if result.scalar_one_or_none() is None:
            return candidate
        logger.debug(f"Incident id collision on {candidate} (attempt {attempt + 1})")

    logger.error(f"Incident id allocation failed after {max_attempts} attempts")
    raise IdentifierExhaustedError()
