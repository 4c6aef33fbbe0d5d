"""Circle membership management.

Services flush but do not commit; the router commits. Business-rule
violations raise ValueError, unknown circles NotFound, and actions by
non-members or under-privileged members Forbidden.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from curio.circles.invite_codes import generate_unique_invite_code, is_valid_invite_code, normalize_invite_code
from curio.config import get_settings
from curio.db.models import Account, Circle, CircleMember
from curio.errors import Forbidden, NotFound

logger = logging.getLogger(__name__)

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
MANAGER_ROLES = frozenset({ROLE_OWNER, ROLE_ADMIN})


async def get_circle(db: AsyncSession, circle_id: int) -> Circle:
    circle = await db.get(Circle, circle_id)
    if circle is None:
        raise NotFound(f"Circle {circle_id} not found")
    return circle


async def get_membership(db: AsyncSession, circle_id: int, account_id: str) -> CircleMember | None:
    result = await db.execute(
        select(CircleMember).where(
            CircleMember.circle_id == circle_id,
            CircleMember.account_id == account_id,
        )
    )
    return result.scalar_one_or_none()


async def _require_membership(db: AsyncSession, circle_id: int, account_id: str) -> CircleMember:
    member = await get_membership(db, circle_id, account_id)
    if member is None:
        raise Forbidden("Not a member of this circle")
    return member


async def count_members(db: AsyncSession, circle_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(CircleMember).where(CircleMember.circle_id == circle_id)
    )
    return result.scalar_one()


async def create_circle(
    db: AsyncSession,
    owner_id: str,
    name: str,
    description: str | None = None,
) -> Circle:
    """Create a circle with a fresh invite code; the creator becomes its owner."""
    name = name.strip()
    if not name:
        raise ValueError("Circle name is required")

    now = datetime.now(timezone.utc)
    circle = Circle(
        name=name,
        description=description.strip() if description else None,
        invite_code=await generate_unique_invite_code(db),
        owner_id=owner_id,
        max_members=get_settings().circle_max_members,
        created_at=now,
    )
    db.add(circle)
    await db.flush()

    db.add(CircleMember(circle_id=circle.id, account_id=owner_id, role=ROLE_OWNER, joined_at=now))
    await db.flush()

    logger.info("Circle %d created by %s", circle.id, owner_id)
    return circle


async def join_circle(db: AsyncSession, account_id: str, invite_code: str) -> Circle:
    """Join a circle by invite code (case-insensitive)."""
    if not is_valid_invite_code(invite_code):
        raise ValueError("Invalid invite code")

    result = await db.execute(
        select(Circle).where(Circle.invite_code == normalize_invite_code(invite_code))
    )
    circle = result.scalar_one_or_none()
    if circle is None:
        raise NotFound("No circle with this invite code")

    if await get_membership(db, circle.id, account_id) is not None:
        raise ValueError("Already a member of this circle")
    if await count_members(db, circle.id) >= circle.max_members:
        raise ValueError(f"Circle is full (max {circle.max_members} members)")

    db.add(CircleMember(
        circle_id=circle.id,
        account_id=account_id,
        role=ROLE_MEMBER,
        joined_at=datetime.now(timezone.utc),
    ))
    await db.flush()

    logger.info("Account %s joined circle %d", account_id, circle.id)
    return circle


async def leave_or_delete_circle(db: AsyncSession, account_id: str, circle_id: int) -> str:
    """The owner deletes the circle; anyone else leaves it.

    Returns "deleted" or "left".
    """
    circle = await get_circle(db, circle_id)
    member = await _require_membership(db, circle_id, account_id)

    if member.role == ROLE_OWNER or circle.owner_id == account_id:
        await db.execute(delete(CircleMember).where(CircleMember.circle_id == circle_id))
        await db.delete(circle)
        await db.flush()
        logger.info("Circle %d deleted by owner %s", circle_id, account_id)
        return "deleted"

    await db.delete(member)
    await db.flush()
    logger.info("Account %s left circle %d", account_id, circle_id)
    return "left"


async def list_account_circles(db: AsyncSession, account_id: str) -> list[tuple[Circle, str, int]]:
    """Circles the account belongs to, as (circle, role, member_count), newest first."""
    member_counts = (
        select(CircleMember.circle_id, func.count().label("member_count"))
        .group_by(CircleMember.circle_id)
        .subquery()
    )
    result = await db.execute(
        select(Circle, CircleMember.role, member_counts.c.member_count)
        .join(CircleMember, CircleMember.circle_id == Circle.id)
        .join(member_counts, member_counts.c.circle_id == Circle.id)
        .where(CircleMember.account_id == account_id)
        .order_by(Circle.created_at.desc(), Circle.id.desc())
    )
    return [(circle, role, int(count)) for circle, role, count in result.all()]


async def get_circle_members(db: AsyncSession, circle_id: int) -> list[tuple[CircleMember, Account]]:
    result = await db.execute(
        select(CircleMember, Account)
        .join(Account, CircleMember.account_id == Account.id)
        .where(CircleMember.circle_id == circle_id)
        .order_by(CircleMember.joined_at, CircleMember.id)
    )
    return [(m, a) for m, a in result.all()]


async def get_circle_detail(
    db: AsyncSession,
    circle_id: int,
    viewer_id: str,
) -> tuple[Circle, CircleMember, list[tuple[CircleMember, Account]]]:
    """Circle, the viewer's membership and the roster. Members only."""
    circle = await get_circle(db, circle_id)
    viewer = await _require_membership(db, circle_id, viewer_id)
    return circle, viewer, await get_circle_members(db, circle_id)


async def regenerate_invite_code(db: AsyncSession, circle_id: int, account_id: str) -> str:
    """Replace the invite code (owner or admin). Old codes stop working."""
    circle = await get_circle(db, circle_id)
    member = await _require_membership(db, circle_id, account_id)
    if member.role not in MANAGER_ROLES:
        raise Forbidden("Only the owner or an admin can regenerate the invite code")

    circle.invite_code = await generate_unique_invite_code(db)
    await db.flush()
    return circle.invite_code


async def remove_member(db: AsyncSession, circle_id: int, actor_id: str, target_id: str) -> None:
    """Remove a member (owner or admin). The owner cannot be removed."""
    await get_circle(db, circle_id)
    actor = await _require_membership(db, circle_id, actor_id)
    if actor.role not in MANAGER_ROLES:
        raise Forbidden("Only the owner or an admin can remove members")
    if actor_id == target_id:
        raise ValueError("Use leave to remove yourself")

    target = await get_membership(db, circle_id, target_id)
    if target is None:
        raise NotFound("Member not found")
    if target.role == ROLE_OWNER:
        raise ValueError("The owner cannot be removed")
    if target.role == ROLE_ADMIN and actor.role != ROLE_OWNER:
        raise Forbidden("Only the owner can remove an admin")

    await db.delete(target)
    await db.flush()
    logger.info("Account %s removed from circle %d by %s", target_id, circle_id, actor_id)
