"""Tests for application wiring: revocation backend, mailer and purge task."""

import asyncio
import time
import uuid

import pytest
from sqlalchemy import select

from plotdesk.main import _purge_loop, create_app, create_mailer, create_revocation_store
from plotdesk.models.password_reset import PasswordReset
from plotdesk.services.mailer import LogMailer, SmtpMailer
from plotdesk.services.revocation import DatabaseRevocationStore, MemoryRevocationStore


class TestCreateRevocationStore:
    def test_memory_backend(self, settings, monkeypatch):
        monkeypatch.setattr(settings, "revocation_backend", "memory")
        assert isinstance(create_revocation_store(), MemoryRevocationStore)

    def test_database_backend(self, settings, monkeypatch):
        monkeypatch.setattr(settings, "revocation_backend", "database")
        assert isinstance(create_revocation_store(), DatabaseRevocationStore)


class TestCreateMailer:
    def test_logs_without_smtp_host(self, settings, monkeypatch):
        monkeypatch.setattr(settings, "smtp_host", "")
        assert isinstance(create_mailer(), LogMailer)

    def test_smtp_when_configured(self, settings, monkeypatch):
        monkeypatch.setattr(settings, "smtp_host", "mail.example.com")
        monkeypatch.setattr(settings, "smtp_port", 465)
        monkeypatch.setattr(settings, "smtp_use_tls", False)
        mailer = create_mailer()
        assert isinstance(mailer, SmtpMailer)
        assert mailer.host == "mail.example.com"
        assert mailer.port == 465
        assert mailer.use_tls is False


@pytest.mark.asyncio
async def test_purge_loop_drops_expired_entries(settings, monkeypatch, session_factory):
    monkeypatch.setattr(settings, "revocation_purge_interval_seconds", 0)
    monkeypatch.setattr(settings, "refresh_token_mode", "stateless")

    store = MemoryRevocationStore()
    now = time.time()
    await store.revoke("access-expiring", int(now) + 1)
    await store.revoke("access-live", int(now) + 3600)
    # Let the first entry lapse without waiting for it
    store._clock = lambda: now + 5

    async with session_factory() as db:
        for token_hash, expires_at in (("a" * 64, int(now) - 1), ("b" * 64, int(now) + 300)):
            db.add(
                PasswordReset(account_id=uuid.uuid4(), token_hash=token_hash, expires_at=expires_at)
            )
        await db.commit()

    task = asyncio.create_task(_purge_loop(store, session_factory))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(store) == 1
    assert await store.is_revoked("access-live")
    async with session_factory() as db:
        remaining = (await db.execute(select(PasswordReset.token_hash))).scalars().all()
    assert remaining == ["b" * 64]


def _route_paths(app) -> set[str]:
    return {path for route in app.routes if (path := getattr(route, "path", None))}


def test_metrics_endpoint_only_when_enabled(settings, monkeypatch):
    monkeypatch.setattr(settings, "enable_metrics", False)
    assert "/metrics" not in _route_paths(create_app())

    monkeypatch.setattr(settings, "enable_metrics", True)
    assert "/metrics" in _route_paths(create_app())
