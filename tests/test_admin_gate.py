from datetime import datetime, timedelta, timezone

import pytest

from lager_intake.authorization.admin_gate import (
    ADMIN_VERIFIER_KEY,
    AdminGate,
    AdminSession,
    AuthenticationError,
    AuthorizationError,
    require_admin,
)
from lager_intake.scanner.validation import ContentHasher
from lager_intake.storage.settings import SettingsStore


@pytest.fixture
def settings(store):
    return SettingsStore(store)


@pytest.fixture
def admin(settings):
    return AdminGate(settings)


def test_sha256_digest_is_stable():
    hasher = ContentHasher()
    assert hasher.digest(b"abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert hasher.digest_text("abc") == hasher.digest(b"abc")


def test_verifier_is_salted():
    hasher = ContentHasher()
    first = hasher.make_verifier("1234")
    second = hasher.make_verifier("1234")

    assert first != second
    assert "1234" not in first
    assert hasher.verify("1234", first)
    assert hasher.verify("1234", second)
    assert not hasher.verify("4321", first)
    assert not hasher.verify("1234", "no-separator")


def test_first_pin_needs_no_session(admin, settings):
    assert not admin.has_credential()
    admin.set_credential("2468")

    assert admin.has_credential()
    assert "2468" not in settings.get(ADMIN_VERIFIER_KEY)


def test_login(admin):
    admin.set_credential("2468")

    session = admin.login("2468", "chef")
    assert session.actor == "chef"
    assert session.is_valid()
    assert require_admin(session) is session

    with pytest.raises(AuthenticationError):
        admin.login("0000", "chef")


def test_login_without_pin_fails(admin):
    with pytest.raises(AuthenticationError):
        admin.login("2468", "chef")


def test_changing_pin_requires_session(admin):
    admin.set_credential("2468")
    with pytest.raises(AuthorizationError):
        admin.set_credential("1357")

    admin.set_credential("1357", admin.login("2468", "chef"))
    admin.login("1357", "chef")
    with pytest.raises(AuthenticationError):
        admin.login("2468", "chef")


def test_empty_pin_refused(admin):
    with pytest.raises(ValueError):
        admin.set_credential("")


def test_expired_or_missing_session_is_refused():
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    expired = AdminSession(actor="chef", granted_at=past, expires_at=past + timedelta(minutes=15))

    with pytest.raises(AuthorizationError):
        require_admin(expired)
    with pytest.raises(AuthorizationError):
        require_admin(None)
    assert require_admin(AdminSession(actor="chef", granted_at=past))


def test_prune_with_admin_session(registry, admin, make_page):
    doc = registry.create("LS-9", "Würth", "2025-03-01", "tablet")
    pages = [registry.attach_page(doc.id, make_page(), "tablet") for _ in range(2)]
    admin.set_credential("2468")

    removed = registry.prune_pages(doc.id, admin.login("2468", "chef"))

    assert removed == 2
    assert registry.pages(doc.id) == []
    assert not any(registry.blobs.exists(p.storage_uri) for p in pages)
    assert registry.history(doc.id)[-1].user == "chef"


def test_settings_flags(settings):
    assert settings.flag("sync_enabled", True) is True
    settings.set("sync_enabled", False)
    assert settings.flag("sync_enabled", True) is False
    assert settings.as_dict() == {"sync_enabled": False}
    assert settings.delete("sync_enabled") is True
    assert settings.get("sync_enabled") is None
