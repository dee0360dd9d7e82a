from datetime import timedelta

import pytest

from api.errors import (
    AccountExists,
    BadRequest,
    InvalidCredentials,
    InvalidToken,
    NotConfigured,
    NotFound,
    TokenExpired,
    TokenRevoked,
    Unauthorized,
)
from models.base_model import utcnow
from models.refresh_token import RefreshToken
from utils.security import hash_token


def test_register_then_login(service, registered):
    user, password = registered

    assert user["email"] == "alice@example.com"
    assert user["role"] == "customer"
    assert "password_hash" not in user

    result = service.login("alice@example.com", password)
    assert result["user"]["email"] == "alice@example.com"
    assert result["user"]["id"] == user["id"]
    assert result["access_token"]
    assert result["refresh_token"]
    assert result["expires_at"] > utcnow()


def test_register_new_user_is_unverified(service, registered):
    user, _ = registered
    stored = service.store.find_user_by_id(user["id"])
    assert stored.is_verified is False
    assert stored.google_id is None
    assert stored.password_hash != registered[1]


def test_register_duplicate_email_any_case(service, registered):
    with pytest.raises(AccountExists):
        service.register("ALICE@example.COM", "another-password", "Other Alice")


def test_register_duplicate_phone(service, registered):
    with pytest.raises(AccountExists):
        service.register("carol@example.com", "another-password", "Carol", phone="+15550001111")


def test_register_privileged_role_falls_back_to_customer(service):
    user = service.register("mallory@example.com", "password123", "Mallory", role="super_admin")
    assert user["role"] == "customer"


def test_register_manager(service):
    user = service.register("manny@example.com", "password123", "Manny", role="manager")
    assert user["role"] == "manager"


def test_login_failures_share_one_kind(service, registered):
    _, password = registered
    with pytest.raises(InvalidCredentials) as wrong_password:
        service.login("alice@example.com", "not-the-password")
    with pytest.raises(InvalidCredentials) as unknown_user:
        service.login("nobody@example.com", password)

    assert type(wrong_password.value) is type(unknown_user.value)
    assert wrong_password.value.error == unknown_user.value.error == "INVALID_CREDENTIALS"


def test_login_by_phone(service, registered):
    user, password = registered
    result = service.login("+15550001111", password)
    assert result["user"]["id"] == user["id"]


def test_login_google_only_account_without_password(service, identity_verifier):
    identity_verifier.add("tok", subject_id="g-1", email="gina@example.com")
    service.federated_login("tok")
    with pytest.raises(InvalidCredentials):
        service.login("gina@example.com", "anything-at-all")


def test_fresh_refresh_token_is_active(service, registered):
    _, password = registered
    result = service.login("alice@example.com", password)

    record = service.store.find_refresh_token(hash_token(result["refresh_token"]))
    assert record is not None
    assert record.is_revoked is False
    assert record.is_expired(utcnow()) is False
    assert record.token_hash != result["refresh_token"]


def test_refresh_is_not_rotated(service, registered):
    _, password = registered
    token = service.login("alice@example.com", password)["refresh_token"]

    first = service.refresh(token)
    second = service.refresh(token)
    assert first["user"]["email"] == "alice@example.com"
    assert service.issuer.verify_access(second["access_token"])["sub"] == first["user"]["id"]


def test_refresh_uses_current_role(service, registered):
    user, password = registered
    token = service.login("alice@example.com", password)["refresh_token"]

    stored = service.store.find_user_by_id(user["id"])
    stored.role = "manager"
    stored.tenant_id = "tenant-1"
    service.store.storage.save()

    claims = service.issuer.verify_access(service.refresh(token)["access_token"])
    assert claims["role"] == "manager"
    assert claims["tenant_id"] == "tenant-1"


def test_refresh_failures(service):
    with pytest.raises(Unauthorized):
        service.refresh(None)
    with pytest.raises(Unauthorized):
        service.refresh("")
    with pytest.raises(InvalidToken):
        service.refresh("never-issued")


def test_logout_revokes(service, registered):
    _, password = registered
    token = service.login("alice@example.com", password)["refresh_token"]

    service.logout(token)
    with pytest.raises(TokenRevoked):
        service.refresh(token)


def test_logout_is_idempotent(service, registered):
    _, password = registered
    token = service.login("alice@example.com", password)["refresh_token"]

    service.logout(token)
    service.logout(token)
    service.logout("never-issued")
    service.logout(None)


def test_logout_all_only_touches_that_user(service, registered):
    user, password = registered
    service.register("bob@example.com", "bob-password", "Bob")
    tokens = [service.login("alice@example.com", password)["refresh_token"] for _ in range(3)]
    bob_token = service.login("bob@example.com", "bob-password")["refresh_token"]

    service.logout_all(user["id"])

    for token in tokens:
        with pytest.raises(TokenRevoked):
            service.refresh(token)
    assert service.refresh(bob_token)["user"]["email"] == "bob@example.com"


def test_expired_refresh_token(service, registered):
    user, _ = registered
    service.store.create_refresh_token(user["id"], hash_token("old-token"), utcnow() - timedelta(seconds=1))

    with pytest.raises(TokenExpired):
        service.refresh("old-token")


def test_revoked_wins_over_expired(service, registered):
    user, _ = registered
    service.store.create_refresh_token(user["id"], hash_token("old-token"), utcnow() - timedelta(days=1))
    service.logout("old-token")

    with pytest.raises(TokenRevoked):
        service.refresh("old-token")


def test_federated_login_creates_one_user(service, identity_verifier):
    identity_verifier.add(
        "tok", subject_id="g-42", email="New.User@Example.com", display_name="New User",
        picture_url="https://example.com/p.png",
    )

    first = service.federated_login("tok")
    second = service.federated_login("tok")

    assert first["user"]["id"] == second["user"]["id"]
    assert first["user"]["email"] == "new.user@example.com"
    assert first["user"]["avatar_url"] == "https://example.com/p.png"
    stored = service.store.find_user_by_google_id("g-42")
    assert stored.is_verified is True
    assert stored.password_hash is None
    assert stored.role == "customer"
    assert identity_verifier.calls[0][1] == service.google_client_id


def test_federated_login_derives_name_from_email(service, identity_verifier):
    identity_verifier.add("tok", subject_id="g-1", email="washfan@example.com")
    assert service.federated_login("tok")["user"]["full_name"] == "washfan"


def test_federated_login_links_existing_password_account(service, registered, identity_verifier):
    user, password = registered
    original_hash = service.store.find_user_by_id(user["id"]).password_hash
    identity_verifier.add(
        "tok", subject_id="g-7", email="alice@example.com", picture_url="https://example.com/a.png"
    )

    result = service.federated_login("tok")

    assert result["user"]["id"] == user["id"]
    stored = service.store.find_user_by_id(user["id"])
    assert stored.google_id == "g-7"
    assert stored.is_verified is True
    assert stored.password_hash == original_hash
    assert stored.avatar_url == "https://example.com/a.png"
    # password login keeps working after linking
    assert service.login("alice@example.com", password)["user"]["id"] == user["id"]


def test_linking_keeps_existing_avatar(service, registered, identity_verifier):
    user, _ = registered
    stored = service.store.find_user_by_id(user["id"])
    service.store.update_user(stored, avatar_url="/uploads/avatars/mine.png")
    identity_verifier.add("tok", subject_id="g-7", email="alice@example.com", picture_url="https://example.com/a.png")

    service.federated_login("tok")
    assert service.store.find_user_by_id(user["id"]).avatar_url == "/uploads/avatars/mine.png"


def test_subject_id_wins_over_email(service, registered, identity_verifier):
    identity_verifier.add("first", subject_id="g-9", email="gus@example.com")
    gus = service.federated_login("first")["user"]
    # provider now reports a different email that belongs to alice
    identity_verifier.add("second", subject_id="g-9", email="alice@example.com")

    assert service.federated_login("second")["user"]["id"] == gus["id"]


def test_federated_login_invalid_assertion(service):
    with pytest.raises(InvalidCredentials):
        service.federated_login("forged")


def test_federated_login_without_email(service, identity_verifier):
    identity_verifier.add("tok", subject_id="g-1", email=None)
    with pytest.raises(BadRequest):
        service.federated_login("tok")


def test_federated_login_not_configured(service, identity_verifier):
    identity_verifier.add("tok", subject_id="g-1", email="x@example.com")
    service.google_client_id = None
    with pytest.raises(NotConfigured):
        service.federated_login("tok")
    assert identity_verifier.calls == []


def test_change_password(service, registered):
    user, password = registered
    service.change_password(user["id"], password, "brand-new-password")

    with pytest.raises(InvalidCredentials):
        service.login("alice@example.com", password)
    assert service.login("alice@example.com", "brand-new-password")["user"]["id"] == user["id"]


def test_change_password_wrong_current(service, registered):
    user, _ = registered
    with pytest.raises(InvalidCredentials):
        service.change_password(user["id"], "wrong-current", "brand-new-password")
    with pytest.raises(InvalidCredentials):
        service.change_password(user["id"], None, "brand-new-password")


def test_change_password_sets_first_password_for_google_account(service, identity_verifier):
    identity_verifier.add("tok", subject_id="g-1", email="gina@example.com")
    user = service.federated_login("tok")["user"]

    service.change_password(user["id"], None, "first-password")
    assert service.login("gina@example.com", "first-password")["user"]["id"] == user["id"]


def test_change_password_keeps_sessions(service, registered):
    user, password = registered
    token = service.login("alice@example.com", password)["refresh_token"]
    service.change_password(user["id"], password, "brand-new-password")
    assert service.refresh(token)["user"]["id"] == user["id"]


def test_change_password_unknown_user(service):
    with pytest.raises(NotFound):
        service.change_password("missing", "a", "brand-new-password")


def test_profile(service, registered):
    user, _ = registered
    profile = service.get_profile(user["id"])
    assert profile["phone"] == "+15550001111"
    assert profile["is_verified"] is False
    assert profile["has_password"] is True

    updated = service.update_profile(user["id"], full_name="Alice Smith", phone=None)
    assert updated["full_name"] == "Alice Smith"
    assert updated["phone"] is None


def test_update_profile_phone_conflict(service, registered):
    other = service.register("bob@example.com", "bob-password", "Bob")
    with pytest.raises(AccountExists):
        service.update_profile(other["id"], phone="+15550001111")


def test_profile_unknown_user(service):
    with pytest.raises(NotFound):
        service.get_profile("missing")


def test_cleanup_tokens(service, registered):
    user, password = registered
    live = service.login("alice@example.com", password)["refresh_token"]
    revoked = service.login("alice@example.com", password)["refresh_token"]
    service.logout(revoked)
    service.store.create_refresh_token(user["id"], hash_token("old"), utcnow() - timedelta(hours=1))

    assert service.cleanup_tokens() == 2
    session = service.store.session
    assert session.query(RefreshToken).count() == 1
    assert service.refresh(live)["user"]["id"] == user["id"]


def test_register_race_reports_account_exists(service, registered, monkeypatch):
    # a concurrent registration committed between the lookup and the insert
    monkeypatch.setattr(service.store, "find_user_by_email", lambda email: None)
    with pytest.raises(AccountExists):
        service.register("alice@example.com", "another-password", "Alice Again")


def test_federated_create_race_reports_account_exists(service, registered, identity_verifier, monkeypatch):
    identity_verifier.add("tok", subject_id="g-55", email="alice@example.com")
    monkeypatch.setattr(service.store, "find_user_by_email", lambda email: None)
    with pytest.raises(AccountExists):
        service.federated_login("tok")
    assert service.store.find_user_by_google_id("g-55") is None


def test_unverified_google_email_does_not_link(service, registered, identity_verifier):
    user, _ = registered
    identity_verifier.add("tok", subject_id="g-8", email="alice@example.com", email_verified=False)

    with pytest.raises(InvalidCredentials):
        service.federated_login("tok")
    assert service.store.find_user_by_id(user["id"]).google_id is None


def test_unverified_google_email_can_still_create(service, identity_verifier):
    identity_verifier.add("tok", subject_id="g-8", email="fresh@example.com", email_verified=False)
    assert service.federated_login("tok")["user"]["email"] == "fresh@example.com"
