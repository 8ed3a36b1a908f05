"""Tests for protocol access tokens."""

import pytest

from backend.app.errors import AuthError
from backend.app.security.tokens import generate_token, hash_secret, parse_token, verify_secret


def test_generated_token_round_trips_through_parse() -> None:
    """The issued token parses back to its id and a secret matching the stored hash."""
    issued = generate_token()

    parsed = parse_token(issued.token)

    assert issued.token.startswith("inky_")
    assert parsed.token_id == issued.token_id
    assert verify_secret(parsed.secret, issued.secret_hash)


def test_stored_hash_never_contains_secret() -> None:
    """Only the salt and digest are persisted."""
    issued = generate_token()
    secret = parse_token(issued.token).secret

    assert secret not in issued.secret_hash
    assert issued.secret_hash.count("$") == 1


def test_hash_is_salted() -> None:
    """Same secret hashes differently under different salts."""
    assert hash_secret("s3cret") != hash_secret("s3cret")
    assert hash_secret("s3cret", salt="abc") == hash_secret("s3cret", salt="abc")


def test_verify_rejects_wrong_secret_and_garbage() -> None:
    """Wrong secrets and malformed stored values fail verification."""
    stored = hash_secret("right")

    assert not verify_secret("wrong", stored)
    assert not verify_secret("right", "no-separator")


def test_secret_may_contain_underscores() -> None:
    """Only the first two separators split the token."""
    parsed = parse_token("inky_abc123_se_cr_et")

    assert parsed.token_id == "abc123"
    assert parsed.secret == "se_cr_et"


@pytest.mark.parametrize("token", ["", "inky", "inky_abc", "other_abc_def", "inky__secret"])
def test_parse_rejects_malformed_tokens(token: str) -> None:
    """Tokens not shaped inky_<id>_<secret> are rejected."""
    with pytest.raises(AuthError):
        parse_token(token)
