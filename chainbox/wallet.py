"""
Ephemeral signing identities bound to a running connector.

Only what test environments need: a freshly generated Ed25519 key and a wallet
object that pairs it with the shared connector.
"""

from typing import Generic, TypeVar

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from chainbox.errors import ChainboxError

T = TypeVar("T")


class Signer:
    """An Ed25519 key pair."""

    def __init__(self, private_key: ed25519.Ed25519PrivateKey):
        self._private_key = private_key

    @classmethod
    def generate(cls) -> "Signer":
        """Generate a fresh key pair.

        Raises:
            ChainboxError: If the crypto backend cannot generate Ed25519 keys.
        """
        try:
            return cls(ed25519.Ed25519PrivateKey.generate())
        except UnsupportedAlgorithm as e:
            raise ChainboxError(
                f"Failed to generate signing key: {e}", code="KEY_GENERATION_FAILED"
            ) from e

    @classmethod
    def from_bytes(cls, secret: bytes) -> "Signer":
        return cls(ed25519.Ed25519PrivateKey.from_private_bytes(secret))

    @property
    def public_key(self) -> bytes:
        return self._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)

    def verify(self, signature: bytes, message: bytes) -> bool:
        """Check ``signature`` against this signer's public key."""
        try:
            self._private_key.public_key().verify(signature, message)
        except InvalidSignature:
            return False
        return True


class Wallet(Generic[T]):
    """A signer bound to a shared connector reference."""

    def __init__(self, connector: T, signer: Signer):
        self.connector = connector
        self.signer = signer

    @property
    def public_key(self) -> bytes:
        return self.signer.public_key

    @property
    def account(self) -> str:
        """Hex-encoded public key, used as the account identifier."""
        return self.public_key.hex()

    def sign(self, message: bytes) -> bytes:
        return self.signer.sign(message)

    def __repr__(self) -> str:
        return f"Wallet(account={self.account!r}, connector={self.connector!r})"
