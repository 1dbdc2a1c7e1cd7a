"""
User notification preferences: load (stored object or default, never
merged) and save (whole object overwrites what is stored).
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from insightgen.insight_models import NotificationPreferences, UserPreferences
from insightgen.models import User

logger = logging.getLogger(__name__)

SUCCESS_BANNER = {"type": "success", "text": "Preferences saved successfully!", "dismiss_after_seconds": 3}
FAILURE_BANNER = {"type": "error", "text": "Failed to save preferences. Please try again.", "dismiss_after_seconds": None}


def load_preferences(user: User) -> UserPreferences:
    stored = {
        "weekly_digest": user.weekly_digest,
        "digest_day": user.digest_day,
        "notification_preferences": user.notification_preferences,
    }
    # Incomplete stored object: the whole default wins, nothing is filled in
    if any(v is None for v in stored.values()):
        return UserPreferences()
    if set(NotificationPreferences.model_fields) - set(stored["notification_preferences"]):
        return UserPreferences()
    return UserPreferences.model_validate(stored)


def save_preferences(db: Session, user: User, prefs: UserPreferences) -> UserPreferences:
    user.weekly_digest = prefs.weekly_digest
    user.digest_day = prefs.digest_day.value
    user.notification_preferences = prefs.notification_preferences.model_dump()
    db.commit()
    db.refresh(user)
    logger.info(f"Saved preferences for {user.email}")
    return load_preferences(user)


def user_to_dict(user: User, prefs: Optional[UserPreferences] = None) -> dict:
    prefs = prefs or load_preferences(user)
    return {
        "id": str(user.id),
        "email": user.email,
        "full_name": user.full_name,
        "preferences": prefs.model_dump(mode="json"),
    }
