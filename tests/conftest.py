"""Shared fixtures for the account lifecycle tests."""

from __future__ import annotations

import pytest

from portfolio_api.services.accounts import AccountService
from portfolio_api.utils.config import Settings
from tests.fakes import Clock, InMemoryAccountStore, RecordingMailer


PASSWORD = "S3cret-pass"


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        access_token_secret="test-access-secret",
        refresh_token_secret="test-refresh-secret",
        frontend_url="https://portfolio.example.com",
        cookie_secure=True,
    )


@pytest.fixture()
def store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def service(store, mailer, test_settings, clock) -> AccountService:
    return AccountService(store, mailer, test_settings, clock)


@pytest.fixture()
def make_user(service, store):
    """Register an account and put it in the requested state directly."""

    def _make(username: str = "alice", email: str | None = None, *, verified: bool = True,
              two_factor: bool = False, role: str = "user", password: str = PASSWORD):
        public = service.register(
            full_name=f"{username.title()} Example",
            email=email or f"{username}@x.com",
            username=username,
            password=password,
        )
        return store.update_fields(
            public["id"],
            is_email_verified=verified,
            is_two_factor_enabled=two_factor,
            role=role,
        )

    return _make
