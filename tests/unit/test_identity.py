"""
Unit tests for bearer token resolution.
"""

import time

import jwt
import pytest

from playerlink.errors import AuthorizationError, NotFoundError
from playerlink.identity import IdentityResolver, issue_token

SECRET = "test-jwt-secret"


@pytest.fixture
def resolver(store):
    return IdentityResolver(store, SECRET)


def test_issue_token_claims():
    claims = jwt.decode(issue_token("user-1", SECRET, username="ava"), SECRET, algorithms=["HS256"])

    assert claims["userId"] == "user-1"
    assert claims["sub"] == "user-1"
    assert claims["username"] == "ava"
    assert claims["exp"] > claims["iat"]


def test_resolve_returns_profile(resolver, web2_profile):
    identity = resolver.resolve(f"Bearer {issue_token(web2_profile['id'], SECRET)}")

    assert identity.user_id == web2_profile["id"]
    assert identity.profile["username"] == "ava"


def test_sub_claim_fallback(resolver, web2_profile):
    token = jwt.encode({"sub": web2_profile["id"], "exp": int(time.time()) + 60}, SECRET, algorithm="HS256")

    assert resolver.resolve(f"Bearer {token}").user_id == web2_profile["id"]


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Token xyz"])
def test_missing_header(resolver, header):
    with pytest.raises(AuthorizationError, match="missing or invalid auth header"):
        resolver.resolve(header)


def test_wrong_secret(resolver, web2_profile):
    token = issue_token(web2_profile["id"], "another-secret")

    with pytest.raises(AuthorizationError, match="invalid token"):
        resolver.resolve(f"Bearer {token}")


def test_expired_token(resolver, web2_profile):
    token = jwt.encode({"userId": web2_profile["id"], "exp": int(time.time()) - 10}, SECRET, algorithm="HS256")

    with pytest.raises(AuthorizationError):
        resolver.resolve(f"Bearer {token}")


def test_token_without_subject(resolver):
    token = jwt.encode({"exp": int(time.time()) + 60}, SECRET, algorithm="HS256")

    with pytest.raises(AuthorizationError):
        resolver.resolve(f"Bearer {token}")


def test_unknown_profile(resolver):
    with pytest.raises(NotFoundError, match="Profile not found"):
        resolver.resolve(f"Bearer {issue_token('ghost', SECRET)}")
