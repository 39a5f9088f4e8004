"""
FlowTime backend - bearer token lifecycle

Issues, verifies and refreshes HS256-signed JWTs. Two token classes exist:
access tokens authorize resource requests, refresh tokens only mint new
access tokens. Verification always checks signature, expiry and class.
"""

import datetime
import logging
from typing import Any, Dict, Optional

import jwt

from errors import InvalidToken

logger = logging.getLogger(__name__)

ACCESS = 'access'
REFRESH = 'refresh'


class TokenService:
    def __init__(self, secret: str, access_expires: int = 3600,
                 refresh_expires: int = 30 * 24 * 3600, algorithm: str = 'HS256'):
        self.secret = secret
        self.access_expires = access_expires
        self.refresh_expires = refresh_expires
        self.algorithm = algorithm

    @classmethod
    def from_config(cls, config) -> 'TokenService':
        """Build from a Flask config mapping"""
        return cls(
            config['JWT_SECRET_KEY'],
            access_expires=config.get('ACCESS_TOKEN_EXPIRES', 3600),
            refresh_expires=config.get('REFRESH_TOKEN_EXPIRES', 30 * 24 * 3600),
            algorithm=config.get('JWT_ALGORITHM', 'HS256'),
        )

    def _encode(self, user_id: str, token_type: str, lifetime: int, **extra) -> str:
        now = datetime.datetime.now(datetime.timezone.utc)
        payload = {
            'user_id': user_id,
            'sub': user_id,
            'type': token_type,
            'iat': now,
            'exp': now + datetime.timedelta(seconds=lifetime),
        }
        payload.update(extra)
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def create_access_token(self, user_id: str, email: Optional[str] = None) -> str:
        return self._encode(user_id, ACCESS, self.access_expires, email=email)

    def create_refresh_token(self, user_id: str) -> str:
        return self._encode(user_id, REFRESH, self.refresh_expires)

    def issue(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """Sign an access/refresh pair for a user record"""
        return {
            'access_token': self.create_access_token(user['id'], user.get('email')),
            'refresh_token': self.create_refresh_token(user['id']),
            'expires_in': self.access_expires,
        }

    def verify(self, token: str, token_type: str = ACCESS) -> Dict[str, Any]:
        """Return the claims of a valid token of the given class, else raise InvalidToken"""
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={'require': ['exp', 'iat']},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise InvalidToken('Token expired')
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            raise InvalidToken('Invalid token')

        if claims.get('type') != token_type:
            logger.warning(f"Token class mismatch: expected {token_type}, got {claims.get('type')}")
            raise InvalidToken(f'Invalid token type: expected {token_type} token')
        if not claims.get('user_id'):
            raise InvalidToken('Token has no subject')

        return claims

    def refresh(self, refresh_token: str) -> Dict[str, Any]:
        """Mint a new access token from a refresh token; the refresh token is returned as-is"""
        try:
            claims = self.verify(refresh_token, token_type=REFRESH)
        except InvalidToken:
            raise InvalidToken('Invalid refresh token')

        return {
            'access_token': self.create_access_token(claims['user_id'], claims.get('email')),
            'refresh_token': refresh_token,
            'expires_in': self.access_expires,
        }

    def revoke(self, token: Optional[str] = None) -> bool:
        # No server-side token state exists; tokens lapse at expiry.
        return True
