"""Circle invite codes.

Codes are 8 characters from A-Z and 0-9, drawn from a cryptographic random
source. Lookups are case-insensitive.
"""

from __future__ import annotations

import secrets
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from curio.db.models import Circle

INVITE_CHARSET = string.ascii_uppercase + string.digits
INVITE_LENGTH = 8
MAX_GENERATION_ATTEMPTS = 10


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CHARSET) for _ in range(INVITE_LENGTH))


def normalize_invite_code(code: str) -> str:
    """Uppercase and strip surrounding whitespace."""
    return code.strip().upper()


def is_valid_invite_code(code: str) -> bool:
    normalized = normalize_invite_code(code)
    return len(normalized) == INVITE_LENGTH and all(c in INVITE_CHARSET for c in normalized)


async def generate_unique_invite_code(db: AsyncSession) -> str:
    """An invite code not yet used by any circle."""
    for _ in range(MAX_GENERATION_ATTEMPTS):
        code = generate_invite_code()
        existing = await db.execute(select(Circle.id).where(Circle.invite_code == code))
        if existing.scalar_one_or_none() is None:
            return code
    msg = f"Failed to generate unique invite code after {MAX_GENERATION_ATTEMPTS} attempts"
    raise RuntimeError(msg)
