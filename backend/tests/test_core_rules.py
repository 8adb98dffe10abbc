import sqlite3
import threading
import time

import pytest

from eventra.config import Settings, parse_bool_env, parse_csv_env
from eventra.errors import ForbiddenError
from eventra.policy import POLICY, authorize, authorize_identity, is_allowed
from eventra.services.booking_service import find_conflict, normalize_time, slot_lock_keys
from eventra.services.document_store import SqliteDocumentStore
from eventra.services.locks import KeyedLock
from eventra.services.matching import match_providers, provider_matches, target_roles


def _booking(**fields):
    base = {"id": "b1", "serviceId": "S1", "providerId": "P1", "eventDate": "2025-06-01", "eventTime": "14:00", "status": "pending"}
    return {**base, **fields}


def _conflict(bookings, **overrides):
    query = {"service_id": "S1", "provider_id": "P1", "event_date": "2025-06-01", "event_time": "14:00"}
    return find_conflict(bookings, **{**query, **overrides})


def test_normalize_time():
    assert normalize_time("14:00:00") == "14:00"
    assert normalize_time("9:30") == "9:30"
    assert normalize_time("9") == ""
    assert normalize_time(None) == ""


def test_conflict_on_same_service_or_provider():
    assert _conflict([_booking()])["id"] == "b1"
    assert _conflict([_booking(providerId="P2")]) is not None
    assert _conflict([_booking(serviceId="S2")]) is not None
    assert _conflict([_booking(serviceId="S2", providerId="P2")]) is None


def test_conflict_requires_active_status():
    for status in ("pending", "confirmed", "in_progress"):
        assert _conflict([_booking(status=status)]) is not None
    for status in ("declined", "cancelled", "completed"):
        assert _conflict([_booking(status=status)]) is None


def test_conflict_compares_date_and_normalized_time():
    assert _conflict([_booking(eventTime="14:00:00")]) is not None
    assert _conflict([_booking(eventTime="15:00")]) is None
    assert _conflict([_booking(eventDate="2025-06-02")]) is None
    assert _conflict([_booking(eventTime=None)], event_time=None) is not None
    assert _conflict([_booking(eventTime=None)]) is None


def test_conflict_ignores_the_booking_being_checked():
    assert _conflict([_booking()], exclude_id="b1") is None
    assert _conflict([_booking(), _booking(id="b2")], exclude_id="b1")["id"] == "b2"


def test_conflict_without_service_id_matches_on_provider_only():
    other_provider = {"id": "award", "providerId": "P9", "status": "confirmed", "eventDate": "2025-06-01"}
    assert _conflict([other_provider], service_id=None, event_time=None) is None
    same_provider = {**other_provider, "providerId": "P1"}
    assert _conflict([same_provider], service_id=None, event_time=None)["id"] == "award"


def test_slot_lock_keys_cover_each_known_side():
    assert slot_lock_keys("S1", "P1", "2025-06-01") == ["booking:service:S1:2025-06-01", "booking:provider:P1:2025-06-01"]
    assert slot_lock_keys(None, "P1", "2025-06-01") == ["booking:provider:P1:2025-06-01"]
    assert slot_lock_keys(None, None, "2025-06-01") == []


def test_conflict_reads_legacy_fields():
    legacy = {"id": "old", "serviceId": "S1", "status": "confirmed", "date": "2025-06-01", "time": "14:00"}
    assert _conflict([legacy])["id"] == "old"
    assert _conflict([{"id": "undated", "serviceId": "S1", "status": "pending"}]) is None


def test_target_roles():
    assert target_roles(False) == {"freelancer"}
    assert target_roles(True) == {"event_company", "caterer", "transport", "photographer"}


def test_provider_matching_rules():
    whole_team = {"needWholeTeam": True, "eventType": "wedding", "servicesNeeded": []}
    assert provider_matches({"role": "caterer", "approved": True}, whole_team)
    assert not provider_matches({"role": "caterer", "approved": False}, whole_team)
    assert not provider_matches({"role": "freelancer", "approved": True}, whole_team)
    assert provider_matches({"role": "event_company", "approved": True, "categories": ["wedding"]}, whole_team)
    assert not provider_matches({"role": "event_company", "approved": True, "categories": ["corporate"]}, whole_team)

    listed = {**whole_team, "servicesNeeded": ["event_company"]}
    assert provider_matches({"role": "event_company", "approved": True, "categories": []}, listed)
    other_services = {**whole_team, "servicesNeeded": ["caterer", "transport"]}
    assert provider_matches({"role": "event_company", "approved": True, "categories": ["corporate"]}, other_services)

    solo = {"needWholeTeam": False, "eventType": "wedding"}
    assert provider_matches({"role": "freelancer", "approved": True}, solo)
    assert not provider_matches({"role": "caterer", "approved": True}, solo)


def test_match_providers_filters_users():
    users = [
        {"id": "a", "role": "freelancer", "approved": True},
        {"id": "b", "role": "customer", "approved": True},
        {"id": "c", "role": "freelancer", "approved": False},
    ]
    assert [u["id"] for u in match_providers(users, {"needWholeTeam": False})] == ["a"]


def test_policy_table():
    assert is_allowed("customer", "booking.create")
    assert not is_allowed("caterer", "booking.create")
    assert is_allowed("freelancer", "bid_request.bid")
    assert not is_allowed("freelancer", "staff_job.post")
    with pytest.raises(KeyError):
        is_allowed("customer", "booking.teleport")
    with pytest.raises(ForbiddenError, match="Required roles: customer"):
        authorize("jobseeker", "bid_request.create")
    assert all(roles for roles in POLICY.values())


def test_unapproved_providers_only_reach_their_inbox():
    with pytest.raises(ForbiddenError, match="pending approval"):
        authorize_identity("freelancer", False, "freelancer.jobs")
    authorize_identity("freelancer", False, "notification.read")
    authorize_identity("customer", False, "booking.create")


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("ON_LOOKUP_FAILURE", "reject")
    monkeypatch.setenv("SERIALIZE_CONFLICT_CHECKS", "off")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")
    monkeypatch.setenv("AUTH_TOKEN_TTL_HOURS", "not-a-number")
    settings = Settings.from_env()
    assert settings.fail_open is False
    assert settings.serialize_conflict_checks is False
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.auth_token_ttl_hours == 24


def test_settings_ttl_non_positive_falls_back(monkeypatch):
    monkeypatch.setenv("AUTH_TOKEN_TTL_HOURS", "0")
    assert Settings.from_env().auth_token_ttl_hours == 24


def test_settings_reject_unknown_policy():
    with pytest.raises(ValueError):
        Settings(on_lookup_failure="shrug")
    with pytest.raises(ValueError):
        Settings(store_backend="mongo")


def test_env_parsers(monkeypatch):
    monkeypatch.delenv("EVENTRA_FLAG", raising=False)
    assert parse_bool_env("EVENTRA_FLAG", True) is True
    monkeypatch.setenv("EVENTRA_FLAG", "yes")
    assert parse_bool_env("EVENTRA_FLAG", False) is True
    monkeypatch.setenv("EVENTRA_LIST", " x , ,y ")
    assert parse_csv_env("EVENTRA_LIST", "*") == ["x", "y"]


def test_keyed_lock_serializes_same_key():
    locks = KeyedLock()
    inside = []
    overlaps = []

    def worker():
        with locks.hold("booking:S1:2025-06-01"):
            inside.append(1)
            if len(inside) > 1:
                overlaps.append(True)
            time.sleep(0.01)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert overlaps == []
    assert locks.active_keys() == 0


def test_keyed_lock_releases_on_error_and_can_be_disabled():
    locks = KeyedLock()
    with pytest.raises(RuntimeError):
        with locks.hold_many(["b", "a", "a"]):
            assert locks.active_keys() == 2
            raise RuntimeError("boom")
    assert locks.active_keys() == 0

    disabled = KeyedLock(enabled=False)
    with disabled.hold("x"):
        with disabled.hold("x"):
            assert disabled.active_keys() == 0


def test_sqlite_store_round_trip(tmp_path):
    store = SqliteDocumentStore(str(tmp_path / "docs.sqlite3"))
    doc_id = store.create("bookings", {"id": "ignored", "status": "pending", "nested": {"a": 1}})
    assert store.get("bookings", doc_id) == {"id": doc_id, "status": "pending", "nested": {"a": 1}}

    store.update("bookings", doc_id, {"status": "confirmed"})
    assert store.get("bookings", doc_id)["status"] == "confirmed"
    assert store.get("bookings", doc_id)["nested"] == {"a": 1}

    ids = store.create_many("notifications", [{"n": 1}, {"n": 2}])
    assert [doc["id"] for doc in store.list("notifications")] == ids

    store.delete("bookings", doc_id)
    assert store.get("bookings", doc_id) is None
    assert store.list("bookings") == []


def test_sqlite_store_tolerates_corrupt_rows(tmp_path):
    db_path = tmp_path / "docs.sqlite3"
    store = SqliteDocumentStore(str(db_path))
    with sqlite3.connect(str(db_path)) as conn:
        conn.execute("INSERT INTO documents (collection, id, data_json) VALUES (?, ?, ?)", ("users", "u1", "{bad"))
        conn.execute("INSERT INTO documents (collection, id, data_json) VALUES (?, ?, ?)", ("users", "u2", "42"))
        conn.commit()
    assert store.get("users", "u1") == {"id": "u1"}
    assert store.list("users") == [{"id": "u1"}, {"id": "u2"}]
