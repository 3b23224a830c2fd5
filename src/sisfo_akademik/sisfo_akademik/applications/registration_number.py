from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from ..core.constants import REGISTRATION_NUMBER_PREFIX


@dataclass
class RegistrationNumberGenerator:
    """Builds ``REG-YYYYMMDD-NNNN`` with a cryptographically random suffix.

    ``randbelow`` is injectable so tests can force collisions.
    """

    randbelow: Callable[[int], int] = field(default=secrets.randbelow)

    def generate(self, now: datetime) -> str:
        suffix = self.randbelow(10_000)
        return f"{REGISTRATION_NUMBER_PREFIX}-{now.strftime('%Y%m%d')}-{suffix:04d}"
