"""
Anonymous participant-code generation.

A code is the project id, five random digits, then the current seconds value.
Uniqueness is not guaranteed here; IdentityResolver re-checks the store and
draws again on a collision.
"""
from __future__ import annotations

import secrets
from datetime import datetime
from typing import Callable, Optional

CODE_RANDOM_DIGITS = 5


def generate_participant_code(
    project_id: int,
    now: Optional[datetime] = None,
    randbelow: Callable[[int], int] = secrets.randbelow,
) -> str:
    now = now or datetime.now()
    digits = "".join(str(randbelow(10)) for _ in range(CODE_RANDOM_DIGITS))
    return f"{project_id}{digits}{now.second}"
