"""Shared API dependencies for authentication and common functionality."""

from datetime import UTC, datetime, timedelta
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from crypto_heaven.core.settings import settings
from crypto_heaven.db.session import get_db
from crypto_heaven.models import User

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(subject: str, extra_claims: dict[str, str] | None = None) -> str:
    """Create a JWT for ``subject`` (the identity provider's user id).

    Tokens are normally minted by the identity provider; this helper exists
    for tooling and tests.
    """
    to_encode: dict[str, object] = {"sub": subject}
    if extra_claims:
        to_encode.update(extra_claims)
    if settings.jwt_audience and "aud" not in to_encode:
        to_encode["aud"] = settings.jwt_audience
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def get_token_subject(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> str:
    """Return the verified ``sub`` claim of the bearer token.

    Raises:
        HTTPException: If the token is invalid, expired, or has no subject
    """
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as err:
        raise _credentials_error() from err

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise _credentials_error()
    return subject


TokenSubjectDep = Annotated[str, Depends(get_token_subject)]


def get_current_user(subject: TokenSubjectDep, db: SessionDep) -> User:
    """Get the current authenticated user from the JWT subject.

    Args:
        subject: Verified token subject (external user id)
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If no profile exists for the subject
    """
    user = db.query(User).filter(User.external_id == subject).first()
    if user is None:
        raise _credentials_error("User not found")
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
