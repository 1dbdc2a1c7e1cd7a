"""
Settings page: the current user and their notification preferences.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from insightgen.auth import get_or_create_user, require_user_email
from insightgen.database import SessionLocal
from insightgen.insight_models import UserPreferences
from insightgen.models import User
from insightgen.preferences import FAILURE_BANNER, SUCCESS_BANNER, save_preferences, user_to_dict

logger = logging.getLogger(__name__)
router = APIRouter()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    email: str = Depends(require_user_email),
    x_user_name: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    return get_or_create_user(db, email, x_user_name)


@router.get("/auth/me")
def me(user: User = Depends(get_current_user)):
    return user_to_dict(user)


@router.put("/auth/me/preferences")
def update_preferences(
    prefs: UserPreferences,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        saved = save_preferences(db, user, prefs)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Saving preferences for {user.email} failed: {e}")
        return JSONResponse(status_code=500, content={"message": FAILURE_BANNER})
    return {**user_to_dict(user, saved), "message": SUCCESS_BANNER}
