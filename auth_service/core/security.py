"""
Password hashing and session token signing.

Both are leaf components with no storage: the hasher produces
self-describing bcrypt strings, the signer produces compact HS256 JWTs whose
validity depends only on their content, the secret and the clock.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
import binascii
import secrets

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError
from jose.utils import base64url_decode, base64url_encode
from passlib.context import CryptContext
import structlog

from .exceptions import ExpiredError, InvalidSignatureError, MalformedError

logger = structlog.get_logger()

ACCESS_TOKEN_TYPE = "access"

# bcrypt ignores everything past this many bytes of input.
MAX_PASSWORD_BYTES = 72


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def password_too_long(plaintext: str) -> bool:
    return len(plaintext.encode("utf-8")) > MAX_PASSWORD_BYTES


class PasswordHasher:
    """One-way salted password hashing backed by passlib's bcrypt handler."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )
        self._dummy_hash: Optional[str] = None

    def hash(self, plaintext: str) -> str:
        """
        Generate a salted hash; the same input never yields the same output twice.

        Raises:
            ValueError: Password longer than MAX_PASSWORD_BYTES
        """
        if password_too_long(plaintext):
            raise ValueError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        """
        Verify a password against its hash.

        passlib compares digests in constant time. A hash it cannot identify
        counts as a mismatch, and so does a password too long to have been
        hashed in full.
        """
        if password_too_long(plaintext):
            return False
        try:
            return self._context.verify(plaintext, hashed)
        except (ValueError, TypeError):
            logger.warning("Unrecognised password hash format")
            return False

    def verify_dummy(self, plaintext: str) -> bool:
        """Burn the same CPU as a real verify so unknown users are not detectable by timing."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(secrets.token_urlsafe(16))
        self._context.verify(plaintext, self._dummy_hash)
        return False


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class SessionClaims:
    subject: str
    issued_at: datetime
    expires_at: datetime


class TokenSigner:
    """Issues and validates signed, expiring session tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expires_delta: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = utcnow,
    ):
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expires_delta = expires_delta
        self._clock = clock

    @property
    def expires_delta(self) -> timedelta:
        return self._expires_delta

    def issue(self, subject: str) -> IssuedToken:
        """
        Create a session token for ``subject``.

        Args:
            subject: Username the token asserts

        Returns:
            The encoded token and its expiry
        """
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + self._expires_delta
        claims = {
            "sub": subject,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "type": ACCESS_TOKEN_TYPE,
        }
        token = jwt.encode(claims, self._secret_key, algorithm=self._algorithm)
        return IssuedToken(token=token, expires_at=expires_at)

    def validate(self, token: str) -> SessionClaims:
        """
        Validate a session token and return its claims.

        Raises:
            MalformedError: Empty, not a string or has no segment separators at all
            InvalidSignatureError: Tampered (separators included), foreign secret,
                wrong token type or missing claims
            ExpiredError: Genuine but past its expiry
        """
        if not isinstance(token, str):
            raise MalformedError("token is not a string")

        if "." not in token:
            raise MalformedError("token is not a compact JWS")

        segments = token.split(".")
        if len(segments) != 3 or not all(segments):
            raise InvalidSignatureError("token does not have three segments")

        # Base64url leaves spare bits in the last character; reject encodings
        # that only differ there so every character is covered by the check.
        signature = segments[2].encode("ascii", errors="replace")
        try:
            if base64url_encode(base64url_decode(signature)) != signature:
                raise InvalidSignatureError("non-canonical signature encoding")
        except (binascii.Error, ValueError) as e:
            raise InvalidSignatureError("undecodable signature") from e

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError as e:
            raise ExpiredError("token has expired") from e
        except JWTError as e:
            raise InvalidSignatureError(str(e)) from e

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidSignatureError("unexpected token type")

        subject = payload.get("sub")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        if not subject or not isinstance(subject, str):
            raise InvalidSignatureError("token has no subject")
        if not isinstance(issued_at, int) or not isinstance(expires_at, int):
            raise InvalidSignatureError("token is missing timestamps")

        return SessionClaims(
            subject=subject,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )


def generate_verification_token() -> str:
    """256 bits from the OS CSPRNG, URL-safe."""
    return secrets.token_urlsafe(32)
