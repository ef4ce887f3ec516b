import hashlib

from db.database import Base
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func


def hash_refresh_token(token: str) -> str:
    """
    Hash a refresh token for secure storage.

    Uses SHA-256 which is appropriate for tokens (not passwords) because:
    - Tokens are high-entropy signed strings, not user-chosen passwords
    - No need for salting since every token carries a random jti
    - The whole token is hashed, with no input-length truncation
    """
    return hashlib.sha256(token.encode()).hexdigest()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    # SECURITY: only the SHA-256 hash of the current refresh token is stored.
    # refresh_token_hash and refresh_token_expires_at are always written together.
    refresh_token_hash = Column(String(64), nullable=True)
    refresh_token_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"

    @property
    def has_active_session(self) -> bool:
        return self.refresh_token_hash is not None
