"""
Header identity. The caller's email arrives in X-User-Email; the first
request for an unknown email creates the user row.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException, status
from sqlalchemy.orm import Session

from insightgen.models import User

logger = logging.getLogger(__name__)


async def require_user_email(x_user_email: Optional[str] = Header(default=None, alias="X-User-Email")) -> str:
    """Require an X-User-Email header for endpoints that act as a user."""
    email = (x_user_email or "").strip().lower()
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Email header required",
        )
    return email


def get_or_create_user(db: Session, email: str, full_name: Optional[str] = None) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(email=email, full_name=full_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {email}")
    return user
