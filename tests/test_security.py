"""Tests for bearer-token verification and password hashing."""

import time
from datetime import timedelta

import pytest
from jose import jwt

from config import Settings
from errors import InvalidToken, Unauthenticated
from security import (
    Claims,
    authenticate,
    create_access_token,
    decode_token,
    hash_password,
    parse_bearer,
    peek_claims,
    verify_password,
)

SETTINGS = Settings(jwt_secret="unit-secret")
CLAIMS = Claims(id="64b000000000000000000001", username="alice", role="buyer")


class TestPasswordHashing:
    @pytest.mark.parametrize("password", ["pw123", "päss wörd", "x" * 50])
    def test_hash_round_trip(self, password):
        hashed = hash_password(password)

        assert hashed != password
        assert verify_password(password, hashed)
        assert not verify_password(password + "!", hashed)

    def test_verify_rejects_garbage_hash(self):
        assert not verify_password("pw123", "not-a-hash")
        assert not verify_password("pw123", "")


class TestParseBearer:
    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic abc", "token-only"])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(Unauthenticated):
            parse_bearer(header)

    def test_extracts_token(self):
        assert parse_bearer("Bearer abc.def.ghi") == "abc.def.ghi"
        assert parse_bearer("bearer abc") == "abc"


class TestTokens:
    def test_round_trip(self):
        token = create_access_token(CLAIMS, SETTINGS)

        assert decode_token(token, SETTINGS) == CLAIMS
        assert authenticate(f"Bearer {token}", SETTINGS) == CLAIMS

    def test_payload_and_expiry(self):
        token = create_access_token(CLAIMS, SETTINGS)
        payload = jwt.decode(token, "unit-secret", algorithms=["HS256"])

        assert payload["id"] == CLAIMS.id
        assert payload["username"] == "alice"
        assert payload["role"] == "buyer"
        assert 3500 <= payload["exp"] - time.time() <= 3601

    def test_expired_token(self):
        token = create_access_token(CLAIMS, SETTINGS, expires_delta=timedelta(seconds=-5))

        with pytest.raises(InvalidToken):
            decode_token(token, SETTINGS)

    def test_wrong_secret(self):
        token = create_access_token(CLAIMS, Settings(jwt_secret="other"))

        with pytest.raises(InvalidToken):
            decode_token(token, SETTINGS)

    def test_garbage_token(self):
        with pytest.raises(InvalidToken):
            authenticate("Bearer not-a-jwt", SETTINGS)

    def test_payload_missing_role(self):
        token = jwt.encode({"id": "1", "username": "x"}, "unit-secret", algorithm="HS256")

        with pytest.raises(InvalidToken):
            decode_token(token, SETTINGS)

    def test_unknown_role(self):
        token = jwt.encode({"id": "1", "username": "x", "role": "root"}, "unit-secret", algorithm="HS256")

        with pytest.raises(InvalidToken):
            decode_token(token, SETTINGS)


class TestPeekClaims:
    def test_valid(self):
        token = create_access_token(CLAIMS, SETTINGS)
        assert peek_claims(f"Bearer {token}", SETTINGS) == CLAIMS

    @pytest.mark.parametrize("header", [None, "Bearer junk", "Basic abc"])
    def test_never_raises(self, header):
        assert peek_claims(header, SETTINGS) is None
