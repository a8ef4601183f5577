from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from starlette.requests import Request

from adonai.errors import QuotaUnavailableError
from adonai.models import AnonymousUsage, Profile
from adonai.services.identity import Identity
from adonai.services.quota import (
    UNKNOWN_IP,
    UNLIMITED_REMAINING,
    QuotaConfig,
    QuotaPeriod,
    QuotaPolicy,
    QuotaService,
    client_ip,
    evaluate,
    increment_account_usage,
    increment_anonymous_usage,
    purge_anonymous_usage,
    read_account_usage,
    read_anonymous_usage,
)
from tests.utils.fakes import BrokenDatabase

CONFIG = QuotaConfig(daily_limit=10)
TODAY = QuotaPeriod(date(2026, 3, 14))
YESTERDAY = QuotaPeriod(date(2026, 3, 13))


def _request(headers: dict[str, str] | None = None, client=("203.0.113.9", 5000)) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "POST", "path": "/", "headers": raw, "client": client})


@pytest.mark.parametrize("count", [0, 1, 5, 9])
def test_under_ceiling_not_limited(count):
    status = evaluate(count, CONFIG)
    assert status.limited is False
    assert status.remaining == 10 - count
    assert status.used == count


@pytest.mark.parametrize("count", [10, 11, 250])
def test_at_or_over_ceiling_limited(count):
    status = evaluate(count, CONFIG)
    assert status.limited is True
    assert status.remaining == 0


def test_remaining_after_request_subtracts_current_request():
    assert evaluate(3, CONFIG).remaining_after_request() == 6
    assert evaluate(10, CONFIG).remaining_after_request() == 0


def test_quota_period_today_uses_utc():
    late_evening = datetime(2026, 3, 14, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert QuotaPeriod.today(late_evening).day == date(2026, 3, 15)


def test_account_count_from_other_day_reads_as_zero(database):
    with database.session() as db:
        db.add(Profile(id="u1", daily_question_count=10, last_question_date=YESTERDAY.day))
        db.commit()
        status = read_account_usage(db, "u1", TODAY, CONFIG)
    assert status.limited is False
    assert status.used == 0
    assert status.remaining == 10


def test_account_without_profile_has_full_allowance(database):
    with database.session() as db:
        status = read_account_usage(db, "ghost", TODAY, CONFIG)
    assert status.remaining == 10
    assert status.used == 0


@pytest.mark.parametrize("tier", ["premium", "admin"])
def test_unlimited_tiers_ignore_count(database, tier):
    with database.session() as db:
        db.add(Profile(id="vip", tier=tier, daily_question_count=9999, last_question_date=TODAY.day))
        db.commit()
        status = read_account_usage(db, "vip", TODAY, CONFIG)
    assert status.limited is False
    assert status.unlimited is True
    assert status.remaining_after_request() == UNLIMITED_REMAINING


def test_increment_same_day_adds_one(database):
    with database.session() as db:
        db.add(Profile(id="u1", daily_question_count=4, last_question_date=TODAY.day))
        db.commit()
        assert increment_account_usage(db, Identity(id="u1"), TODAY) == 5
        profile = db.get(Profile, "u1")
        assert profile.daily_question_count == 5
        assert profile.last_question_date == TODAY.day


def test_increment_new_day_resets_to_one(database):
    with database.session() as db:
        db.add(Profile(id="u1", daily_question_count=10, last_question_date=YESTERDAY.day))
        db.commit()
        assert increment_account_usage(db, Identity(id="u1"), TODAY) == 1


def test_increment_creates_missing_profile(database):
    with database.session() as db:
        identity = Identity(id="new-user", email="new-user@example.com", metadata={"full_name": "Lydia"})
        assert increment_account_usage(db, identity, TODAY) == 1
        profile = db.get(Profile, "new-user")
        assert profile.tier == "free"
        assert profile.email == "new-user@example.com"
        assert profile.display_name == "Lydia"


def test_anonymous_usage_is_per_ip_and_day(database):
    with database.session() as db:
        assert increment_anonymous_usage(db, "198.51.100.1", TODAY) == 1
        assert increment_anonymous_usage(db, "198.51.100.1", TODAY) == 2
        assert increment_anonymous_usage(db, "198.51.100.2", TODAY) == 1
        assert increment_anonymous_usage(db, "198.51.100.1", YESTERDAY) == 1

        assert read_anonymous_usage(db, "198.51.100.1", TODAY, CONFIG).used == 2
        assert read_anonymous_usage(db, "198.51.100.2", TODAY, CONFIG).used == 1
        assert read_anonymous_usage(db, "198.51.100.3", TODAY, CONFIG).used == 0
        assert db.query(AnonymousUsage).count() == 3


def test_purge_anonymous_usage_keeps_recent_rows(database):
    with database.session() as db:
        increment_anonymous_usage(db, "198.51.100.1", YESTERDAY)
        increment_anonymous_usage(db, "198.51.100.1", TODAY)
        assert purge_anonymous_usage(db, TODAY.day) == 1
        assert db.query(AnonymousUsage).count() == 1


def test_service_round_trip(database):
    service = QuotaService(database, CONFIG)
    identity = Identity(id="u1")

    async def _run():
        for _ in range(3):
            await service.increment(identity, "203.0.113.9", TODAY)
        return await service.check(identity, "203.0.113.9", TODAY)

    status = asyncio.run(_run())
    assert status.used == 3
    assert status.remaining == 7


def test_service_disabled_without_store():
    service = QuotaService(None, CONFIG)
    status = asyncio.run(service.check(None, "203.0.113.9", TODAY))
    assert status.unlimited is True
    assert status.limited is False


def test_fail_open_policy_allows_request(caplog):
    service = QuotaService(BrokenDatabase(), CONFIG, QuotaPolicy.FAIL_OPEN)
    status = asyncio.run(service.check(None, "203.0.113.9", TODAY))
    assert status.limited is False
    assert status.remaining == UNLIMITED_REMAINING
    assert "Rate limit check failed" in caplog.text


def test_fail_closed_policy_rejects_request():
    service = QuotaService(BrokenDatabase(), CONFIG, QuotaPolicy.FAIL_CLOSED)
    with pytest.raises(QuotaUnavailableError):
        asyncio.run(service.check(None, "203.0.113.9", TODAY))


def test_increment_store_failure_is_swallowed(caplog):
    service = QuotaService(BrokenDatabase(), CONFIG)
    asyncio.run(service.increment(Identity(id="u1"), "203.0.113.9", TODAY))
    assert "Failed to increment usage" in caplog.text


def test_client_ip_prefers_first_forwarded_for():
    request = _request({"X-Forwarded-For": " 198.51.100.7 , 10.0.0.1", "X-Real-IP": "10.0.0.2"})
    assert client_ip(request) == "198.51.100.7"


def test_client_ip_falls_back_to_real_ip():
    assert client_ip(_request({"X-Real-IP": "10.0.0.2"})) == "10.0.0.2"


@pytest.mark.parametrize("xff", ["", "   ", " , 10.0.0.1"])
def test_client_ip_ignores_empty_forwarded_for(xff):
    assert client_ip(_request({"X-Forwarded-For": xff})) == "203.0.113.9"


def test_client_ip_sentinel_without_peer():
    assert client_ip(_request(client=None)) == UNKNOWN_IP
