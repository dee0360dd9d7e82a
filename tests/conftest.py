import pytest

from api import create_app
from utils.identity import FederatedIdentity, IdentityVerifier, InvalidAssertion


class FakeIdentityVerifier(IdentityVerifier):
    """Accepts only the tokens registered with add()."""

    def __init__(self):
        self.identities = {}
        self.calls = []

    def add(self, raw_assertion, subject_id, email, display_name=None, picture_url=None, email_verified=True):
        self.identities[raw_assertion] = FederatedIdentity(
            subject_id=subject_id,
            email=email,
            display_name=display_name,
            picture_url=picture_url,
            email_verified=email_verified,
        )

    def verify(self, raw_assertion, expected_audience):
        self.calls.append((raw_assertion, expected_audience))
        try:
            return self.identities[raw_assertion]
        except KeyError:
            raise InvalidAssertion("unknown token")


@pytest.fixture
def identity_verifier():
    return FakeIdentityVerifier()


@pytest.fixture
def app(identity_verifier):
    app = create_app("testing", identity_verifier=identity_verifier)
    with app.app_context():
        yield app


@pytest.fixture
def service(app):
    return app.extensions["auth_service"]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registered(service):
    """A password account: (user view, password)."""
    password = "correct horse battery"
    user = service.register("Alice@Example.com", password, "Alice Doe", phone="+15550001111")
    return user, password
