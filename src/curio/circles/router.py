"""Circle API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from curio.auth.dependencies import get_current_account
from curio.circles.schemas import (
    CircleDetailResponse,
    CircleListResponse,
    CircleMemberResponse,
    CircleResponse,
    CreateCircleRequest,
    InviteCodeResponse,
    JoinCircleRequest,
    LeaveCircleResponse,
)
from curio.circles.service import (
    MANAGER_ROLES,
    create_circle,
    get_circle_detail,
    join_circle,
    leave_or_delete_circle,
    list_account_circles,
    regenerate_invite_code,
    remove_member,
)
from curio.database import get_session
from curio.db.models import Account, Circle, CircleMember

router = APIRouter(prefix="/api/v1", tags=["Circles"])


def _detail_response(
    circle: Circle,
    viewer: CircleMember,
    members: list[tuple[CircleMember, Account]],
) -> CircleDetailResponse:
    return CircleDetailResponse(
        id=circle.id,
        name=circle.name,
        description=circle.description,
        owner_id=circle.owner_id,
        role=viewer.role,
        member_count=len(members),
        max_members=circle.max_members,
        created_at=circle.created_at,
        invite_code=circle.invite_code,
        members=[
            CircleMemberResponse(
                account_id=m.account_id,
                display_name=a.display_name,
                title=a.title,
                role=m.role,
                joined_at=m.joined_at,
            )
            for m, a in members
        ],
    )


@router.get("/circles", response_model=CircleListResponse)
async def list_circles_endpoint(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Circles the caller belongs to."""
    rows = await list_account_circles(db, account.id)
    return CircleListResponse(circles=[
        CircleResponse(
            id=circle.id,
            name=circle.name,
            description=circle.description,
            owner_id=circle.owner_id,
            role=role,
            member_count=count,
            max_members=circle.max_members,
            created_at=circle.created_at,
            invite_code=circle.invite_code if role in MANAGER_ROLES else None,
        )
        for circle, role, count in rows
    ])


@router.post("/circles", response_model=CircleDetailResponse, status_code=201)
async def create_circle_endpoint(
    body: CreateCircleRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Create a circle. The creator becomes the owner."""
    try:
        circle = await create_circle(db, account.id, body.name, body.description)
        await db.commit()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return _detail_response(*await get_circle_detail(db, circle.id, account.id))


@router.post("/circles/join", response_model=CircleDetailResponse)
async def join_circle_endpoint(
    body: JoinCircleRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Join a circle via invite code."""
    try:
        circle = await join_circle(db, account.id, body.invite_code)
        await db.commit()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return _detail_response(*await get_circle_detail(db, circle.id, account.id))


@router.get("/circles/{circle_id}", response_model=CircleDetailResponse)
async def get_circle_endpoint(
    circle_id: int,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Circle detail with roster (members only)."""
    return _detail_response(*await get_circle_detail(db, circle_id, account.id))


@router.delete("/circles/{circle_id}", response_model=LeaveCircleResponse)
async def leave_circle_endpoint(
    circle_id: int,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Leave the circle, or delete it when called by the owner."""
    action = await leave_or_delete_circle(db, account.id, circle_id)
    await db.commit()
    return LeaveCircleResponse(action=action)


@router.post("/circles/{circle_id}/invite-code", response_model=InviteCodeResponse)
async def regenerate_invite_code_endpoint(
    circle_id: int,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Issue a new invite code (owner or admin)."""
    code = await regenerate_invite_code(db, circle_id, account.id)
    await db.commit()
    return InviteCodeResponse(invite_code=code)


@router.delete("/circles/{circle_id}/members/{member_id}", status_code=204)
async def remove_member_endpoint(
    circle_id: int,
    member_id: str,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Remove a member from the circle (owner or admin)."""
    try:
        await remove_member(db, circle_id, account.id, member_id)
        await db.commit()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
