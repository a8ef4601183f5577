from __future__ import annotations

from adonai.config import Settings


def test_defaults(monkeypatch):
    for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_KEY", "DATABASE_URL", "UNLIMITED_TIERS"):
        monkeypatch.delenv(name, raising=False)
    cfg = Settings(_env_file=None)
    assert cfg.daily_limit_free == 10
    assert cfg.unlimited_tiers == ["premium", "admin"]
    assert cfg.openai_model == "gpt-4o"
    assert cfg.port == 3000
    assert cfg.supabase_configured is False
    assert cfg.storage_configured is False


def test_unlimited_tiers_from_env(monkeypatch):
    monkeypatch.setenv("UNLIMITED_TIERS", "Premium, admin ,staff")
    cfg = Settings(_env_file=None)
    assert cfg.unlimited_tiers == ["premium", "admin", "staff"]


def test_storage_needs_supabase_and_database_url(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.test")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "service")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    cfg = Settings(_env_file=None)
    assert cfg.supabase_configured is True
    assert cfg.storage_configured is False

    monkeypatch.setenv("DATABASE_URL", "postgresql://postgres@db.project.supabase.test/postgres")
    assert Settings(_env_file=None).storage_configured is True
