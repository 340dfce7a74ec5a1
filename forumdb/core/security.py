"""Password hashing for forum accounts."""

from passlib.context import CryptContext


# Password hashing context - supports PBKDF2 (primary) and bcrypt (legacy)
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    """Hash a password with PBKDF2; bcrypt hashes from older accounts still verify."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a stored hash."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unknown or malformed hash
        return False
