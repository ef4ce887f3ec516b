"""Password hashing strategy."""

from passlib.context import CryptContext


class PasswordHasher:
    """
    One-way password hashing backed by a passlib CryptContext.

    The scheme list is the only algorithm-specific part; hashes produced by
    an older scheme listed there still verify.
    """

    def __init__(self, schemes: tuple[str, ...] = ("pbkdf2_sha256",)):
        self._context = CryptContext(schemes=list(schemes), deprecated="auto")

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, hashed: str) -> bool:
        try:
            return bool(self._context.verify(password, hashed))
        except (ValueError, TypeError):
            # Unrecognised or corrupted hash
            return False

    def dummy_verify(self) -> None:
        """Spend the same time as a real verification (unknown-user logins)."""
        self._context.dummy_verify()
