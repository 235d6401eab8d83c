"""
NoteForge Backend - Session Gate
=================================

What:  Decides whether a request carries a valid auth-provider session.
How:   Access tokens are HS256 JWTs issued by the managed auth provider
       (audience "authenticated"). They are verified locally with python-jose
       against the project's JWT secret; no call to the provider is made.
Who:   GET / and GET /login redirects, `require_session` on the content routes.

Token sources, in order: `Authorization: Bearer <jwt>`, then the session
cookie (`sb-access-token` by default).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from jose import JWTError, jwt

logger = logging.getLogger(__name__)


@dataclass
class UserSession:
    user_id: str
    email: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Returns the token of an `Authorization: Bearer <token>` header value."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


class SessionGate:
    def __init__(
        self,
        jwt_secret: str,
        audience: Optional[str] = "authenticated",
        algorithms: Sequence[str] = ("HS256",),
        cookie_name: str = "sb-access-token",
    ):
        self.jwt_secret = jwt_secret
        self.audience = audience
        self.algorithms = list(algorithms)
        self.cookie_name = cookie_name
        if not jwt_secret:
            logger.warning("No JWT secret configured; every session will be rejected")

    def resolve(self, token: Optional[str]) -> Optional[UserSession]:
        """Returns the session for a valid token, None for anything else."""
        if not token or not self.jwt_secret:
            return None
        try:
            claims = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=self.algorithms,
                audience=self.audience,
            )
        except JWTError as e:
            logger.info("Rejected access token: %s", str(e))
            return None

        user_id = claims.get("sub")
        if not user_id:
            logger.info("Rejected access token without subject")
            return None
        return UserSession(user_id=str(user_id), email=claims.get("email"), claims=claims)

    def resolve_request(
        self,
        authorization: Optional[str],
        cookies: Dict[str, str],
    ) -> Optional[UserSession]:
        token = extract_bearer_token(authorization) or cookies.get(self.cookie_name)
        return self.resolve(token)
