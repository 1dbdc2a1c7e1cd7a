from sqlalchemy.exc import OperationalError

from insightgen import routes_settings
from insightgen.models import User
from insightgen.preferences import FAILURE_BANNER, SUCCESS_BANNER, load_preferences

ME = {"X-User-Email": "ana@example.com", "X-User-Name": "Ana"}

DEFAULTS = {
    "weekly_digest": True,
    "digest_day": "monday",
    "notification_preferences": {
        "anomaly_alerts": True,
        "forecast_updates": True,
        "data_sync_notifications": False,
    },
}


def test_identity_header_is_required(client):
    assert client.get("/auth/me").status_code == 401
    assert client.put("/auth/me/preferences", json=DEFAULTS).status_code == 401


def test_new_user_gets_default_preferences(client):
    me = client.get("/auth/me", headers=ME).json()
    assert me["email"] == "ana@example.com"
    assert me["full_name"] == "Ana"
    assert me["preferences"] == DEFAULTS


def test_save_overwrites_the_whole_object(client):
    prefs = {
        "weekly_digest": False,
        "digest_day": "Friday",
        "notification_preferences": {
            "anomaly_alerts": False,
            "forecast_updates": True,
            "data_sync_notifications": True,
        },
    }
    saved = client.put("/auth/me/preferences", json=prefs, headers=ME)
    assert saved.status_code == 200
    assert saved.json()["message"] == SUCCESS_BANNER
    assert saved.json()["preferences"]["digest_day"] == "friday"

    reloaded = client.get("/auth/me", headers=ME).json()["preferences"]
    assert reloaded == {**prefs, "digest_day": "friday"}


def test_invalid_day_is_rejected(client):
    resp = client.put("/auth/me/preferences", json={**DEFAULTS, "digest_day": "someday"}, headers=ME)
    assert resp.status_code == 422


def test_save_failure_answers_error_banner(client, monkeypatch):
    def broken_save(db, user, prefs):
        raise OperationalError("UPDATE users", {}, Exception("database is locked"))

    monkeypatch.setattr(routes_settings, "save_preferences", broken_save)
    resp = client.put("/auth/me/preferences", json=DEFAULTS, headers=ME)
    assert resp.status_code == 500
    assert resp.json()["message"] == FAILURE_BANNER
    assert FAILURE_BANNER["dismiss_after_seconds"] is None


def test_partially_stored_preferences_fall_back_to_the_whole_default():
    missing_day = User(
        email="ana@example.com",
        weekly_digest=False,
        digest_day=None,
        notification_preferences={"anomaly_alerts": False, "forecast_updates": False, "data_sync_notifications": True},
    )
    assert load_preferences(missing_day).model_dump(mode="json") == DEFAULTS

    missing_flag = User(
        email="ana@example.com",
        weekly_digest=False,
        digest_day="friday",
        notification_preferences={"anomaly_alerts": False},
    )
    assert load_preferences(missing_flag).model_dump(mode="json") == DEFAULTS


def test_complete_stored_preferences_are_returned_as_is():
    stored = {
        "weekly_digest": False,
        "digest_day": "sunday",
        "notification_preferences": {"anomaly_alerts": False, "forecast_updates": False, "data_sync_notifications": True},
    }
    user = User(email="ana@example.com", **stored)
    assert load_preferences(user).model_dump(mode="json") == stored
