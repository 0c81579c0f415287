"""Sealed-box encryption of secret values for the platform's secret ingestion."""
import base64
import binascii
import logging

from nacl import exceptions as nacl_exceptions
from nacl import public

logger = logging.getLogger(__name__)

PUBLIC_KEY_SIZE = public.PublicKey.SIZE


class InvalidPublicKeyError(Exception):
    """The recipient public key is not valid base64 or not 32 bytes long."""
    pass


class SealError(Exception):
    """Sealing a single value failed."""
    pass


def decode_public_key(key_b64: str) -> bytes:
    """
    Decode a platform-supplied base64 public key.

    Args:
        key_b64: Key as returned by the public-key endpoint

    Returns:
        The raw 32-byte key

    Raises:
        InvalidPublicKeyError: If the text is not base64 or decodes to the wrong length
    """
    try:
        raw = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise InvalidPublicKeyError(f"Public key is not valid base64: {e}") from e

    if len(raw) != PUBLIC_KEY_SIZE:
        raise InvalidPublicKeyError(
            f"Public key must decode to {PUBLIC_KEY_SIZE} bytes, got {len(raw)}"
        )
    return raw


def seal(recipient_key: bytes, plaintext: bytes) -> bytes:
    """
    Encrypt plaintext so only the holder of the matching private key can read it.

    SealedBox generates a fresh ephemeral keypair on every call, so sealing the
    same plaintext twice yields different ciphertexts.

    Raises:
        SealError: If the key is rejected or encryption fails
    """
    try:
        box = public.SealedBox(public.PublicKey(recipient_key))
        return box.encrypt(plaintext)
    except (nacl_exceptions.CryptoError, TypeError, ValueError) as e:
        raise SealError(f"Failed to seal value: {e}") from e


def seal_to_base64(recipient_key: bytes, plaintext: str) -> str:
    """Seal a text value and encode the ciphertext for transport."""
    sealed = seal(recipient_key, plaintext.encode("utf-8"))
    return base64.b64encode(sealed).decode("ascii")
