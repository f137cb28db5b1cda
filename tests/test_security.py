import pytest

from backend.app.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)


def test_password_hashing_not_plain():
    plain = "password123"
    hashed = get_password_hash(plain)
    assert hashed and hashed != plain


def test_verify_password():
    hashed = get_password_hash("secret")
    assert verify_password("secret", hashed)
    assert not verify_password("wrong", hashed)


def test_access_token_expiration():
    token = create_access_token(user_id=7, expires_minutes=-1)
    with pytest.raises(ValueError):
        decode_access_token(token)


def test_token_subject_is_user_id_string():
    payload = decode_access_token(create_access_token(user_id=123))
    assert payload["sub"] == "123"
    assert "exp" in payload


def test_malformed_token_raises_value_error():
    with pytest.raises(ValueError):
        decode_access_token("invalid.token.value")
