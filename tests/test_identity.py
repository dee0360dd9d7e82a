import pytest

from utils import identity
from utils.identity import GoogleIdentityVerifier, InvalidAssertion

AUDIENCE = "client-id.apps.googleusercontent.com"


def test_valid_google_token(monkeypatch):
    seen = {}

    def fake_verify(token, request, audience=None):
        seen["audience"] = audience
        return {
            "iss": "https://accounts.google.com",
            "sub": "1234567890",
            "email": "bob@example.com",
            "name": "Bob",
            "picture": "https://example.com/bob.png",
        }

    monkeypatch.setattr(identity.id_token, "verify_oauth2_token", fake_verify)
    result = GoogleIdentityVerifier(request=object()).verify("raw-token", AUDIENCE)

    assert seen["audience"] == AUDIENCE
    assert result.subject_id == "1234567890"
    assert result.email == "bob@example.com"
    assert result.display_name == "Bob"
    assert result.picture_url == "https://example.com/bob.png"


@pytest.mark.parametrize("error", [ValueError("Token expired"), ValueError("Wrong audience")])
def test_verification_errors_fail_closed(monkeypatch, error):
    def fake_verify(token, request, audience=None):
        raise error

    monkeypatch.setattr(identity.id_token, "verify_oauth2_token", fake_verify)
    with pytest.raises(InvalidAssertion):
        GoogleIdentityVerifier(request=object()).verify("raw-token", AUDIENCE)


def test_untrusted_issuer(monkeypatch):
    monkeypatch.setattr(
        identity.id_token,
        "verify_oauth2_token",
        lambda token, request, audience=None: {"iss": "evil.example.com", "sub": "1"},
    )
    with pytest.raises(InvalidAssertion):
        GoogleIdentityVerifier(request=object()).verify("raw-token", AUDIENCE)


def test_empty_assertion():
    with pytest.raises(InvalidAssertion):
        GoogleIdentityVerifier(request=object()).verify("", AUDIENCE)


@pytest.mark.parametrize("claim, expected", [(True, True), ("true", True), (False, False), (None, False)])
def test_email_verified_claim(monkeypatch, claim, expected):
    claims = {"iss": "accounts.google.com", "sub": "1", "email": "x@example.com"}
    if claim is not None:
        claims["email_verified"] = claim
    monkeypatch.setattr(identity.id_token, "verify_oauth2_token", lambda token, request, audience=None: claims)

    assert GoogleIdentityVerifier(request=object()).verify("raw", AUDIENCE).email_verified is expected
