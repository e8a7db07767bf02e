from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError
from pymongo.errors import ServerSelectionTimeoutError

from schemas import SiteConfig, SiteConfigUpdate
from site_config import load_site_config, save_site_config


def test_defaults_without_database():
    config = load_site_config(None)
    assert config.registration_enabled is True
    assert config.max_session_capacity == 50


def test_stored_values_override_defaults(mongo_db):
    mongo_db["siteConfig"].insert_one({"siteTitle": "Busan Speaking Club", "maxSessionCapacity": 25, "unknownKey": 1})
    config = load_site_config(mongo_db)
    assert config.site_title == "Busan Speaking Club"
    assert config.max_session_capacity == 25
    assert config.site_tagline == "Connect, Speak, Thrive"


def test_unreachable_store_falls_back_to_defaults():
    db = MagicMock()
    db.__getitem__.return_value.find_one.side_effect = ServerSelectionTimeoutError("no servers")
    assert load_site_config(db) == SiteConfig()


def test_invalid_stored_config_falls_back_to_defaults(mongo_db):
    mongo_db["siteConfig"].insert_one({"maxSessionCapacity": 0})
    assert load_site_config(mongo_db).max_session_capacity == 50


def test_snapshot_is_immutable():
    config = SiteConfig()
    with pytest.raises(ValidationError):
        config.registration_enabled = False


def test_save_returns_new_snapshot(mongo_db):
    before = load_site_config(mongo_db)
    after = save_site_config(mongo_db, SiteConfigUpdate(registration_enabled=False))
    assert before.registration_enabled is True
    assert after.registration_enabled is False
    assert load_site_config(mongo_db).registration_enabled is False


def test_refresh_endpoint_swaps_snapshot(client, mongo_db, make_item, form_payload, mentor_headers):
    item_id = make_item()
    mongo_db["siteConfig"].insert_one({"registrationEnabled": False})
    assert client.get("/api/site-config").json()["registrationEnabled"] is True

    refreshed = client.post("/api/admin/site-config/refresh", headers=mentor_headers)
    assert refreshed.json()["registrationEnabled"] is False

    response = client.post(f"/api/sessions/{item_id}/registrations", json=form_payload)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "registration_disabled"


def test_update_endpoint_persists_and_refreshes(client, mongo_db, mentor_headers):
    response = client.put("/api/admin/site-config", json={"maxSessionCapacity": 40}, headers=mentor_headers)
    assert response.json()["maxSessionCapacity"] == 40
    assert client.get("/api/site-config").json()["maxSessionCapacity"] == 40
    assert mongo_db["siteConfig"].count_documents({}) == 1
