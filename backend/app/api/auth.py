"""Request authentication.

Dashboard routes trust an opaque ``X-User-Id`` header carrying the identity
provider's subject id and create the user on first sight. The protocol
endpoint only accepts already-known users, either by that header or by a
bearer access token.
"""

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from backend.app.api.dependencies import get_user_repository
from backend.app.db.context import RequestContext
from backend.app.db.repositories import UserRepository
from backend.app.errors import AuthError
from backend.app.security.tokens import parse_token, verify_secret

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
MAX_EXTERNAL_ID_LENGTH = 255


def _clean_external_id(x_user_id: str | None) -> str | None:
    if x_user_id is None:
        return None
    external_id = x_user_id.strip()
    if not external_id or len(external_id) > MAX_EXTERNAL_ID_LENGTH:
        return None
    return external_id


async def get_current_context(
    users: Annotated[UserRepository, Depends(get_user_repository)],
    x_user_id: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Resolve the dashboard caller, creating the user on first request.

    Args:
        users: User repository
        x_user_id: Identity-provider subject id

    Returns:
        RequestContext for the caller

    Raises:
        HTTPException: 401 if the header is missing or malformed
    """
    external_id = _clean_external_id(x_user_id)
    if external_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing or invalid {USER_ID_HEADER} header",
        )

    user = await users.get_or_create(external_id)
    return RequestContext(user_id=user.user_id, external_id=user.external_id)


async def resolve_protocol_context(
    users: UserRepository,
    *,
    x_user_id: str | None,
    authorization: str | None,
) -> RequestContext:
    """Resolve the protocol endpoint caller without creating users.

    A bearer token takes precedence over the user id header.

    Raises:
        AuthError: If no credential is present or none matches a known user
    """
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthError("Invalid authorization header format")

        parsed = parse_token(token)
        user = await users.get_by_token_id(parsed.token_id)
        if user is None or not user.mcp_token_hash:
            raise AuthError("Invalid access token")
        if not verify_secret(parsed.secret, user.mcp_token_hash):
            logger.warning(f"Access token secret mismatch for token id {parsed.token_id}")
            raise AuthError("Invalid access token")
        return RequestContext(user_id=user.user_id, external_id=user.external_id)

    external_id = _clean_external_id(x_user_id)
    if external_id is None:
        raise AuthError(f"Missing {USER_ID_HEADER} header or bearer token")

    user = await users.get_by_external_id(external_id)
    if user is None:
        raise AuthError("Invalid user ID")
    return RequestContext(user_id=user.user_id, external_id=user.external_id)
