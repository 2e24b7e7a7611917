"""JWT access tokens signed with a shared secret (HS256).

Tokens are issued by the portal's identity provider; this service only
verifies them. ``create_access_token`` exists for tooling and tests.
"""
from datetime import datetime, timedelta
from typing import Dict, Optional

import jwt

from journey.config import settings


class JWTAuth:
    """JWT verification handler."""

    def __init__(self, secret_key: str | None = None, algorithm: str | None = None):
        self.secret_key = secret_key or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.access_token_expire_minutes = 60

    def create_access_token(
        self,
        user_id: str,
        email: str,
        role: str,
        additional_claims: Optional[Dict] = None,
    ) -> str:
        """
        Create a signed access token.

        Args:
            user_id: Operator identifier
            email: Operator e-mail
            role: Admin, Marketing or Analyst
            additional_claims: Extra JWT claims

        Returns:
            Encoded JWT token
        """
        now = datetime.utcnow()
        claims = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "iat": now,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
            "type": "access",
        }
        if additional_claims:
            claims.update(additional_claims)

        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify_access_token(self, token: str) -> Dict:
        """
        Verify and decode an access token.

        Raises:
            jwt.ExpiredSignatureError: If token is expired
            jwt.InvalidTokenError: If token is invalid or not an access token
        """
        payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        if payload.get("type") != "access":
            raise jwt.InvalidTokenError("Not an access token")
        return payload


# Global JWT auth instance
jwt_auth = JWTAuth()
