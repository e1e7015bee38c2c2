"""
Request dependencies: database session, LLM client and the acting user.

Identity is a stand-in for a real auth provider: the bearer token is the
user's id. The role on the User row decides which profile is loaded.
"""

from uuid import UUID
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.database import get_db
from therapy_copilot.llm.openrouter import OpenRouterClient
from therapy_copilot.models.user import Client, Therapist, User


def get_llm_client(request: Request) -> OpenRouterClient:
    """The shared client created at startup."""
    return request.app.state.llm


def _user_id_from_header(authorization: Optional[str]) -> UUID:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization")
    raw = authorization.replace("Bearer", "", 1).strip()
    if not raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization")
    try:
        return UUID(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, _user_id_from_header(authorization))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return user


async def get_current_therapist(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Therapist:
    if user.role != "THERAPIST":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Therapist access required")
    result = await db.execute(select(Therapist).where(Therapist.user_id == user.id))
    therapist = result.scalar_one_or_none()
    if not therapist:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Therapist profile not found")
    return therapist


async def get_current_client(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Client:
    if user.role != "CLIENT":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Client access required")
    result = await db.execute(select(Client).where(Client.user_id == user.id))
    client = result.scalar_one_or_none()
    if not client:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client profile not found")
    return client
