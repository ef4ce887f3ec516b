"""Session token management: JWT access/refresh pairs with refresh token rotation."""

import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.exc import IntegrityError

from config import get_settings
from models.user import User, hash_refresh_token
from schemas.user import AuthResponse, UserView
from services.credential_store import CredentialStore
from services.errors import (
    AuthFailureReason,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    UnauthorizedError,
)
from services.password_hashing import PasswordHasher

settings = get_settings()
logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _constant_time_compare(a: str, b: str) -> bool:
    """
    Constant-time string comparison to prevent timing attacks.
    Uses hmac.compare_digest for cryptographically secure comparison.
    """
    return hmac.compare_digest(a.encode('utf-8'), b.encode('utf-8'))


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; they are stored as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass
class TokenPair:
    """Represents a pair of access and refresh tokens."""
    access_token: str
    refresh_token: str
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime


def _signing_key(token_type: str) -> str:
    if token_type == REFRESH_TOKEN_TYPE:
        return settings.effective_refresh_secret_key
    return settings.SECRET_KEY


def _encode_token(claims: dict, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        **claims,
        "exp": now + expires_delta,
        "iat": now,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "jti": str(uuid4()),
        "type": token_type,
    }
    return jwt.encode(to_encode, _signing_key(token_type), algorithm=settings.ALGORITHM)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a short-lived, stateless access token.

    Carries the user id (``sub``), username and email.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {"sub": str(user.id), "username": user.username, "email": user.email}
    return _encode_token(claims, ACCESS_TOKEN_TYPE, expires_delta)


def create_refresh_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Create a long-lived refresh token; its random jti makes every token unique."""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode_token({"sub": str(user_id)}, REFRESH_TOKEN_TYPE, expires_delta)


def token_expiry(token: str) -> datetime:
    """Read the expiry embedded in a token we just signed."""
    claims = jwt.get_unverified_claims(token)
    return datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict:
    """
    Verify a JWT and return its payload.

    Args:
        token: The JWT token to verify
        expected_type: Expected token type ("access" or "refresh")

    Raises:
        UnauthorizedError: reason ``expired`` for a lapsed signature,
            ``malformed`` for anything else that fails verification
    """
    try:
        payload = jwt.decode(
            token,
            _signing_key(expected_type),
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except ExpiredSignatureError:
        raise UnauthorizedError(f"{expected_type.capitalize()} token expired", AuthFailureReason.EXPIRED)
    except JWTError:
        raise UnauthorizedError(f"Invalid {expected_type} token", AuthFailureReason.MALFORMED)

    if payload.get("type") != expected_type:
        raise UnauthorizedError(f"Invalid {expected_type} token", AuthFailureReason.MALFORMED)

    try:
        payload["sub"] = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedError(f"Invalid {expected_type} token", AuthFailureReason.MALFORMED)
    return payload


def generate_token_pair(user: User) -> TokenPair:
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user.id)
    return TokenPair(
        access_token=access_token,
        refresh_token=refresh_token,
        access_token_expires_at=token_expiry(access_token),
        refresh_token_expires_at=token_expiry(refresh_token),
    )


class SessionTokenManager:
    """
    Issues, verifies and rotates token pairs for users.

    Each user has at most one valid refresh token: its hash and expiry are
    stored on the user row and replaced in one UPDATE on every login,
    registration or refresh. Overwriting the hash is what invalidates the
    previous refresh token.
    """

    def __init__(self, store: CredentialStore, hasher: Optional[PasswordHasher] = None):
        self.store = store
        self.hasher = hasher or PasswordHasher()

    async def authenticate(self, username: str, password: str) -> User:
        """
        Check a username/password pair.

        Unknown users and wrong passwords raise the same error, and the
        unknown-user path still pays for one hash verification.
        """
        user = await self.store.find_by_username(username)
        if user is None:
            self.hasher.dummy_verify()
            logger.warning("Login failed: unknown username")
            raise InvalidCredentialsError()

        if not self.hasher.verify(password, user.password_hash):
            logger.warning(f"Login failed: wrong password for user {user.id}")
            raise InvalidCredentialsError()

        return user

    async def login(self, username: str, password: str) -> AuthResponse:
        user = await self.authenticate(username, password)
        return await self.issue_tokens(user)

    async def register(
        self,
        username: str,
        password: str,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> AuthResponse:
        """
        Create a user and issue its first token pair.

        No existence check is made before the insert; the unique
        constraints decide, so two concurrent registrations of the same
        username cannot both succeed.
        """
        password_hash = self.hasher.hash(password)
        try:
            user = await self.store.create(
                username=username,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
            )
        except IntegrityError as e:
            await self.store.rollback()
            logger.warning("Registration rejected: username or email already exists")
            raise ConflictError("Username or email already exists", entity="User") from e

        logger.info(f"Registered user {user.id}")
        return await self.issue_tokens(user)

    async def issue_tokens(self, user: User) -> AuthResponse:
        """Issue a new pair and store its refresh hash, expiry and login time at once."""
        return await self._rotate(user, expected_refresh_token_hash=None)

    async def refresh_tokens(self, presented_refresh_token: str) -> AuthResponse:
        """
        Exchange a refresh token for a new pair (single use).

        Raises:
            UnauthorizedError: ``malformed``/``expired`` when the JWT itself
                fails verification, ``revoked`` when no session is stored or
                the token is not the current one, ``expired`` when the stored
                expiry has passed
        """
        payload = decode_token(presented_refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        user_id = payload["sub"]

        user = await self.store.find_by_id(user_id)
        if user is None or not user.refresh_token_hash:
            logger.warning(f"Refresh attempt without an active session for user {user_id}")
            raise UnauthorizedError("Refresh token is not valid", AuthFailureReason.REVOKED)

        presented_hash = hash_refresh_token(presented_refresh_token)
        if not _constant_time_compare(presented_hash, user.refresh_token_hash):
            logger.warning(f"Stale or foreign refresh token presented for user {user_id}")
            raise UnauthorizedError("Refresh token is not valid", AuthFailureReason.REVOKED)

        expires_at = _as_utc(user.refresh_token_expires_at)
        if expires_at is None or expires_at <= datetime.now(timezone.utc):
            logger.warning(f"Expired refresh token presented for user {user_id}")
            raise UnauthorizedError("Refresh token expired", AuthFailureReason.EXPIRED)

        return await self._rotate(user, expected_refresh_token_hash=presented_hash)

    async def logout(self, user_id: int) -> None:
        """End the user's session; the outstanding refresh token stops working."""
        try:
            affected = await self.store.update_credentials(
                user_id, None, None, touch_last_login=False
            )
            if affected == 0:
                raise NotFoundError("User", user_id)
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise
        logger.info(f"Session cleared for user {user_id}")

    def verify_access_token(self, token: str) -> dict:
        """Return the claims of a valid access token (``sub`` as int)."""
        return decode_token(token, expected_type=ACCESS_TOKEN_TYPE)

    async def authenticate_access_token(self, token: str) -> dict:
        """
        Verify an access token and check its subject still exists.

        Raises:
            UnauthorizedError: ``expired``/``malformed`` from verification,
                ``revoked`` when the user row is gone
        """
        claims = self.verify_access_token(token)
        user = await self.store.find_by_id(claims["sub"])
        if user is None:
            logger.warning(f"Access token presented for missing user {claims['sub']}")
            raise UnauthorizedError("User not found", AuthFailureReason.REVOKED)
        return claims

    async def _rotate(self, user: User, expected_refresh_token_hash: Optional[str]) -> AuthResponse:
        pair = generate_token_pair(user)
        # Built before commit so no attribute reload is needed afterwards
        response = AuthResponse(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            access_token_expires_at=pair.access_token_expires_at,
            user=UserView.model_validate(user),
        )

        try:
            affected = await self.store.update_credentials(
                user.id,
                hash_refresh_token(pair.refresh_token),
                pair.refresh_token_expires_at,
                touch_last_login=True,
                expected_refresh_token_hash=expected_refresh_token_hash,
            )
            if affected == 0:
                if expected_refresh_token_hash is not None:
                    # A concurrent refresh with the same token rotated first
                    logger.warning(f"Refresh token for user {user.id} was already used")
                    raise UnauthorizedError(
                        "Refresh token is not valid", AuthFailureReason.REVOKED
                    )
                raise NotFoundError("User", user.id)
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise

        logger.info(f"Issued new token pair for user {user.id}")
        return response
