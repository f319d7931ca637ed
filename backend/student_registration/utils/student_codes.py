"""Generation of unique, human-readable student codes."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Callable, Optional

from ..errors import ExhaustedRetriesError

_LOGGER = logging.getLogger("registration.student_codes")

CODE_PREFIX = "STU"


def format_student_code(year: int, number: int) -> str:
    return f"{CODE_PREFIX}{year}{number:04d}"


def generate_student_code(
    code_exists: Callable[[str], bool],
    max_attempts: int,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> str:
    """Return `STU<year><4 digits>` not yet used according to `code_exists`.

    Candidates are drawn until one is free; after `max_attempts`
    collisions `ExhaustedRetriesError` is raised.
    """
    rng = rng or random.SystemRandom()
    year = (now or datetime.now(timezone.utc)).year
    for attempt in range(1, max_attempts + 1):
        code = format_student_code(year, rng.randint(1000, 9999))
        if not code_exists(code):
            return code
        _LOGGER.debug("student code collision %s (attempt %d/%d)", code, attempt, max_attempts)
    _LOGGER.error("no free student code after %d attempts", max_attempts)
    raise ExhaustedRetriesError(f"could not generate a unique student code after {max_attempts} attempts")
