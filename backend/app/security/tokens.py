"""Protocol access tokens.

Tokens have the form ``inky_<token_id>_<secret>``. The token id is stored in
clear so a presented token can be looked up directly; only a salted digest of
the secret is stored, so the full token is shown to the user exactly once.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass

from backend.app.errors import AuthError

TOKEN_PREFIX = "inky"
TOKEN_ID_BYTES = 8
SECRET_BYTES = 32
SALT_BYTES = 16


@dataclass(frozen=True)
class ParsedToken:
    """Token split into its lookup id and secret."""

    token_id: str
    secret: str


@dataclass(frozen=True)
class IssuedToken:
    """Freshly generated token and the values to persist for it."""

    token: str
    token_id: str
    secret_hash: str


def generate_token() -> IssuedToken:
    """Generate a new token and the salted hash of its secret."""
    # Hex ids never contain the "_" separator
    token_id = secrets.token_hex(TOKEN_ID_BYTES)
    secret = secrets.token_urlsafe(SECRET_BYTES)
    return IssuedToken(
        token=f"{TOKEN_PREFIX}_{token_id}_{secret}",
        token_id=token_id,
        secret_hash=hash_secret(secret),
    )


def hash_secret(secret: str, salt: str | None = None) -> str:
    """Salted SHA-256 of a token secret, formatted as ``salt$digest``."""
    salt = salt if salt is not None else secrets.token_hex(SALT_BYTES)
    digest = hashlib.sha256(f"{salt}{secret}".encode("utf-8")).hexdigest()
    return f"{salt}${digest}"


def verify_secret(secret: str, stored: str) -> bool:
    """Constant-time check of a secret against a stored ``salt$digest``."""
    salt, sep, _ = stored.partition("$")
    if not sep:
        return False
    return hmac.compare_digest(hash_secret(secret, salt), stored)


def parse_token(token: str) -> ParsedToken:
    """Split a presented token into id and secret.

    Raises:
        AuthError: If the token is not of the form inky_<token_id>_<secret>
    """
    parts = token.strip().split("_", 2)
    if len(parts) != 3 or parts[0] != TOKEN_PREFIX or not parts[1] or not parts[2]:
        raise AuthError("Malformed access token")
    return ParsedToken(token_id=parts[1], secret=parts[2])
