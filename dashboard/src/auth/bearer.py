"""
Bearer token authentication for the dashboard API.

Parses API tokens from the API_TOKENS setting (``token:user_id`` pairs) and
resolves incoming ``Authorization: Bearer {token}`` headers to a user id.
Tokens are compared in constant time via secrets.compare_digest.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
import secrets

from fastapi import HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)


def parse_api_tokens(raw: str) -> dict[str, str]:
    """Parse API_TOKENS into a token-to-user mapping.

    Format: "token1:user1,token2:user2"

    Entries without a colon, or with an empty token or user id, are skipped
    with a warning naming only their position.

    Args:
        raw: The raw comma-separated token:user_id string.

    Returns:
        dict[str, str]: Mapping of token -> user_id.
    """
    if not raw or not raw.strip():
        return {}

    token_map: dict[str, str] = {}
    for idx, entry in enumerate(raw.split(",")):
        token, sep, user_id = entry.strip().partition(":")
        token = token.strip()
        user_id = user_id.strip()
        if not sep or not token or not user_id:
            logger.warning("Skipping malformed API_TOKENS entry at position %d", idx)
            continue
        token_map[token] = user_id
    return token_map


def verify_bearer_token(token: str, token_map: dict[str, str]) -> str | None:
    """Return the user id of a valid token, or None.

    Every configured token is compared with secrets.compare_digest so the
    time taken does not depend on which token matched.
    """
    if not token:
        return None

    matched: str | None = None
    for registered_token, user_id in token_map.items():
        if secrets.compare_digest(
            token.encode("utf-8"), registered_token.encode("utf-8")
        ):
            matched = user_id
    return matched


class BearerAuth:
    """FastAPI-compatible Bearer token authentication.

    Attributes:
        token_map: Mapping of valid token -> user_id.
        scheme: FastAPI HTTPBearer security scheme.
    """

    def __init__(self, token_map: dict[str, str]) -> None:
        self.token_map = token_map
        self.scheme = HTTPBearer(auto_error=False)

    def resolve(self, token: str | None) -> str | None:
        """Return the user id of a raw token (used by WebSocket routes)."""
        return verify_bearer_token(token or "", self.token_map)

    async def verify(self, request: Request) -> str:
        """Validate the request's bearer token and return its user id.

        Raises:
            HTTPException: 401 if the token is missing or invalid.
        """
        credentials: HTTPAuthorizationCredentials | None = await self.scheme(request)

        if credentials is None:
            raise HTTPException(
                status_code=401,
                detail="Missing authorization credentials.",
                headers={"WWW-Authenticate": "Bearer"},
            )

        user_id = verify_bearer_token(credentials.credentials, self.token_map)
        if user_id is None:
            raise HTTPException(
                status_code=401,
                detail="Invalid or expired token.",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return user_id
