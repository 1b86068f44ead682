# routers/users.py — Profile, theme preference and account removal for the caller
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import cascade
from auth import AuthService, CurrentUser, check_password_policy, get_current_user
from database import get_db_session
from errors import NotFoundError
from models import Theme, User, to_iso

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


# --- Schemas ---

class UserOut(BaseModel):
    id: str
    name: str
    email: str
    theme: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    password: Optional[str] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else check_password_policy(v)


class ThemeUpdate(BaseModel):
    theme: Theme


# --- Helpers ---

def _user_to_out(u: User) -> UserOut:
    return UserOut(
        id=u.id,
        name=u.name,
        email=u.email,
        theme=u.theme.value if isinstance(u.theme, Theme) else (u.theme or Theme.LIGHT.value),
        created_at=to_iso(u.created_at),
        updated_at=to_iso(u.updated_at),
    )


async def _load_self(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


# --- Endpoints ---

@router.put("/profile", response_model=UserOut)
async def update_profile(
    data: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Update name, email or password; omitted fields are left alone"""
    me = await _load_self(db, user.id)

    if data.email is not None and data.email != me.email:
        stmt = select(User.id).where(User.email == data.email, User.id != me.id)
        if (await db.execute(stmt)).scalar_one_or_none():
            raise HTTPException(status_code=409, detail="Email is already in use")
        me.email = data.email
    if data.name is not None:
        me.name = data.name
    if data.password is not None:
        me.password_hash = AuthService.hash_password(data.password)

    await db.commit()
    await db.refresh(me)
    return _user_to_out(me)


@router.get("/theme")
async def get_theme(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    me = await _load_self(db, user.id)
    return {"theme": _user_to_out(me).theme}


@router.patch("/theme")
async def update_theme(
    data: ThemeUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Store the caller's UI theme (light, dark or violet)"""
    me = await _load_self(db, user.id)
    me.theme = data.theme
    await db.commit()
    return {"theme": data.theme.value}


@router.delete("/account", status_code=204)
async def delete_account(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete the caller together with every board they own"""
    await cascade.delete_account(db, user.id)
    return Response(status_code=204)
