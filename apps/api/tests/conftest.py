import time

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt
import pytest

from config import settings
from main import app
from routers import rate_limit
from services.identity_token import clear_signing_key_cache


AUTH_PROJECT_ID = "moai-test"
SIGNING_KID = "moai-test-key"


def generate_signing_key():
    """Return (private PEM, public JWK) for a fresh RS256 key."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
    public_jwk = jwk.construct(public_pem, algorithm="RS256").to_dict()
    public_jwk["kid"] = SIGNING_KID
    return private_pem, public_jwk


def sign_id_token(private_pem: str, user_id: str, email: str, **overrides) -> str:
    now = int(time.time())
    claims = {
        "iss": f"{settings.AUTH_ISSUER_PREFIX}{AUTH_PROJECT_ID}",
        "aud": AUTH_PROJECT_ID,
        "sub": user_id,
        "email": email,
        "email_verified": True,
        "iat": now,
        "auth_time": now,
        "exp": now + 3600,
    }
    claims.update(overrides)
    claims = {key: value for key, value in claims.items() if value is not None}
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": SIGNING_KID})


@pytest.fixture(scope="session")
def provider_signing_key():
    return generate_signing_key()


@pytest.fixture
def identity_provider(monkeypatch, provider_signing_key):
    """Point ID-token verification at a local key; returns a token issuer."""
    private_pem, public_jwk = provider_signing_key

    async def fake_fetch_signing_keys():
        return [public_jwk]

    monkeypatch.setattr(settings, "AUTH_PROJECT_ID", AUTH_PROJECT_ID)
    monkeypatch.setattr("services.identity_token._fetch_signing_keys", fake_fetch_signing_keys)
    clear_signing_key_cache()

    def issue(user_id: str, email: str, **overrides) -> str:
        return sign_id_token(private_pem, user_id, email, **overrides)

    yield issue
    clear_signing_key_cache()


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest.fixture(autouse=True)
def empty_admin_allow_list(monkeypatch):
    """Nobody moderates unless a test opts in by setting ADMIN_EMAILS."""
    monkeypatch.setattr(settings, "ADMIN_EMAILS", [])
