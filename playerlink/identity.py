"""Bearer-token identity resolution and token issuing."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jwt

from playerlink.audit_logger import get_audit_logger
from playerlink.errors import AuthorizationError, NotFoundError


@dataclass(frozen=True)
class Identity:
    """An authenticated user and the profile snapshot read at resolution time."""

    user_id: str
    profile: Dict[str, Any] = field(default_factory=dict)


def issue_token(
    user_id: str,
    secret: str,
    algorithm: str = "HS256",
    expires_hours: int = 24 * 7,
    username: Optional[str] = None,
) -> str:
    """Issue a signed token carrying ``userId`` and ``username`` claims."""
    now = int(time.time())
    payload: Dict[str, Any] = {
        "userId": user_id,
        "username": username,
        "sub": user_id,
        "iat": now,
        "exp": now + expires_hours * 3600,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


class IdentityResolver:
    """Maps an ``Authorization`` header to an ``Identity``."""

    def __init__(self, store, secret: str, algorithm: str = "HS256"):
        self.store = store
        self.secret = secret
        self.algorithm = algorithm
        self._audit = get_audit_logger()

    def verify_token(self, token: str) -> str:
        """Return the user id carried by ``token``."""
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError:
            self._audit.log_auth_failure("invalid_token")
            raise AuthorizationError("Unauthorized - invalid token") from None

        user_id = claims.get("userId") or claims.get("sub")
        if not user_id:
            self._audit.log_auth_failure("missing_subject")
            raise AuthorizationError("Unauthorized - invalid token")
        return str(user_id)

    def resolve(self, authorization: Optional[str]) -> Identity:
        """
        Resolve a bearer credential to an identity.

        Raises:
            AuthorizationError: header missing, malformed, or token invalid
            NotFoundError: token valid but no profile row exists
        """
        if not authorization or not authorization.startswith("Bearer "):
            self._audit.log_auth_failure("missing_header")
            raise AuthorizationError("Unauthorized - missing or invalid auth header")

        user_id = self.verify_token(authorization[len("Bearer "):].strip())
        profile = self.store.get_profile(user_id)
        if not profile:
            raise NotFoundError("Profile not found")
        return Identity(user_id=user_id, profile=profile)
