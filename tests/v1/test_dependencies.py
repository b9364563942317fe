# tests/v1/test_dependencies.py
"""Tests for API dependencies module."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from crypto_heaven.api.v1.dependencies import (
    create_access_token,
    get_current_user,
    get_token_subject,
)
from crypto_heaven.core.settings import settings


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestGetTokenSubject:
    """Test bearer token verification."""

    def test_valid_token(self):
        token = create_access_token("user_abc")
        assert get_token_subject(_credentials(token)) == "user_abc"

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "user_abc"}, "not-the-secret", algorithm=settings.jwt_algorithm)
        with pytest.raises(HTTPException) as exc_info:
            get_token_subject(_credentials(token))
        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc_info.value.detail == "Could not validate credentials"

    def test_expired_token(self):
        token = jwt.encode(
            {"sub": "user_abc", "exp": datetime.now(UTC) - timedelta(minutes=1)},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(HTTPException) as exc_info:
            get_token_subject(_credentials(token))
        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED

    def test_missing_subject(self):
        token = jwt.encode({"scope": "chat"}, settings.secret_key, algorithm=settings.jwt_algorithm)
        with pytest.raises(HTTPException) as exc_info:
            get_token_subject(_credentials(token))
        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED

    def test_audience_enforced(self, monkeypatch):
        monkeypatch.setattr(settings, "jwt_audience", "crypto-heaven")
        good = create_access_token("user_abc")
        bad = jwt.encode(
            {"sub": "user_abc", "aud": "someone-else"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        assert get_token_subject(_credentials(good)) == "user_abc"
        with pytest.raises(HTTPException):
            get_token_subject(_credentials(bad))


class TestGetCurrentUser:
    """Test the get_current_user dependency function."""

    def test_known_user(self, db_session, test_user):
        user = get_current_user(test_user.external_id, db_session)
        assert user.id == test_user.id

    def test_unknown_user(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            get_current_user("user_missing", db_session)
        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc_info.value.detail == "User not found"

    def test_endpoint_rejects_unknown_subject(self, client):
        headers = {"Authorization": f"Bearer {create_access_token('user_missing')}"}
        response = client.post("/api/v1/communities/org_x/join", headers=headers)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
