from datetime import timedelta

import jwt
import pytest

from app.core.exceptions import InvalidToken
from app.core.security import PasswordHasher, TokenIssuer, extract_bearer_token

from conftest import JWT_SECRET


def test_password_round_trip(hasher):
    hashed = hasher.hash("s3cret!")

    assert hashed != "s3cret!"
    assert hasher.verify("s3cret!", hashed)
    assert not hasher.verify("wrong", hashed)


def test_default_cost_factor_is_ten():
    hashed = PasswordHasher().hash("pw")
    assert hashed.startswith("$2b$10$")


def test_verify_rejects_malformed_hash(hasher):
    assert not hasher.verify("pw", "not-a-bcrypt-hash")


def test_access_token_claims_and_validity(token_issuer):
    token = token_issuer.issue(subject="9999999999", email="a@b.com")
    claims = jwt.decode(token, JWT_SECRET, algorithms=["HS256"])

    assert claims["uid"] == "9999999999"
    assert claims["email"] == "a@b.com"
    assert claims["exp"] - claims["iat"] == int(timedelta(days=7).total_seconds())


def test_decode_rejects_foreign_signature(token_issuer):
    other = TokenIssuer(secret="another-secret-key-that-is-long-enough-too")
    token = other.issue(subject="1", email="a@b.com")

    with pytest.raises(InvalidToken):
        token_issuer.decode(token)


def test_verification_token_is_not_an_access_token(token_issuer):
    token = token_issuer.issue_email_verification("a@b.com")

    assert token_issuer.decode_email_verification(token) == "a@b.com"
    with pytest.raises(InvalidToken):
        token_issuer.decode(token)


def test_access_token_is_not_a_verification_token(token_issuer):
    token = token_issuer.issue(subject="1", email="a@b.com")
    with pytest.raises(InvalidToken):
        token_issuer.decode_email_verification(token)


def test_expired_token_rejected():
    issuer = TokenIssuer(secret=JWT_SECRET, expiry_days=-1)
    token = issuer.issue(subject="1", email="a@b.com")

    with pytest.raises(InvalidToken) as exc:
        issuer.decode(token)
    assert exc.value.message == "Token expired"


def test_missing_secret_is_rejected():
    with pytest.raises(ValueError):
        TokenIssuer(secret="")


@pytest.mark.parametrize("header, expected", [
    ("Bearer abc", "abc"),
    ("bearer  abc ", "abc"),
    ("abc", "abc"),
    ("", None),
    (None, None),
])
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected
