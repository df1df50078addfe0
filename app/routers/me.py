from typing import Union

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import MessageResponse, UserOut, UserSettingsRequest
from app.schemas.software import UserDashboardStats
from app.security.deps import get_current_user
from app.security.passwords import hash_password, verify_password
from app.services.stats import get_user_download_count


router = APIRouter()


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return user


@router.put("/user/settings", response_model=Union[UserOut, MessageResponse])
def update_settings(
    payload: UserSettingsRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    # A password change is handled on its own, like a separate form
    if payload.current_password and payload.new_password:
        if not verify_password(payload.current_password, user.hashed_password):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
        user.hashed_password = hash_password(payload.new_password)
        db.add(user)
        db.commit()
        return MessageResponse(message="Password updated successfully")

    if payload.username and payload.username != user.username:
        if db.query(User).filter(User.username == payload.username).first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")
        user.username = payload.username
    if payload.email and payload.email != user.email:
        if db.query(User).filter(User.email == payload.email).first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
        user.email = payload.email
    db.add(user)
    db.commit()
    db.refresh(user)
    return UserOut.model_validate(user)


@router.get("/dashboard/stats", response_model=UserDashboardStats)
def dashboard_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> UserDashboardStats:
    return UserDashboardStats(total_downloads=get_user_download_count(db, user.id))
