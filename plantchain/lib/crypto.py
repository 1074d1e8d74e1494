"""
Cryptographic utilities for the PlantChain client.

SECURITY: All verification functions FAIL CLOSED - they return False on any
malformed key or signature. Nothing here raises on a bad signature.
"""
import hashlib
import os

from coincurve import PrivateKey, PublicKey
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF


SEAL_INFO = b"plantchain:user-decrypt:v1"
X25519_KEY_LEN = 32
NONCE_LEN = 12


def sha256_hex(data: str | bytes) -> str:
    """Compute SHA-256 hash and return as hex string."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def sha256_bytes(data: bytes) -> bytes:
    """Compute SHA-256 hash and return as bytes."""
    return hashlib.sha256(data).digest()


def strip_0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


# =============================================================================
# secp256k1 (co-processor input attestations)
# =============================================================================

def new_secp256k1_key(seed: bytes | None = None) -> PrivateKey:
    """Random key, or the key derived from SHA-256(seed) when a seed is given."""
    if seed is None:
        return PrivateKey()
    return PrivateKey(sha256_bytes(seed))


def sign_secp256k1(private_key: PrivateKey, message: bytes) -> str:
    """Sign SHA-256(message) and return the DER signature as hex."""
    return private_key.sign(message).hex()


def verify_secp256k1_signature(
    message: bytes,
    pubkey_hex: str,
    signature_hex: str,
) -> tuple[bool, str]:
    """
    Verify a DER secp256k1 signature over SHA-256(message).

    Returns:
        Tuple of (is_valid, message)
    """
    try:
        pubkey_bytes = bytes.fromhex(strip_0x(pubkey_hex))
        if len(pubkey_bytes) not in (33, 65):
            return False, f"Invalid public key length: {len(pubkey_bytes)} (expected 33 or 65)"

        pubkey = PublicKey(pubkey_bytes)
        sig_bytes = bytes.fromhex(strip_0x(signature_hex))

        if pubkey.verify(sig_bytes, message):
            return True, "Signature verified"
        return False, "Signature verification failed"

    except ValueError as e:
        return False, f"Invalid key or signature format: {e}"
    except Exception as e:
        return False, f"Verification error: {e}"


# =============================================================================
# X25519 sealing (ephemeral user-decrypt keypairs)
# =============================================================================

def generate_x25519_keypair() -> tuple[str, str]:
    """Return a fresh (public_key_hex, private_key_hex) pair."""
    private_key = X25519PrivateKey.generate()
    private_hex = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    ).hex()
    public_hex = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    ).hex()
    return public_hex, private_hex


def _derive_key(shared: bytes) -> bytes:
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=SEAL_INFO)
    return hkdf.derive(shared)


def seal_for_public_key(public_key_hex: str, plaintext: bytes) -> str:
    """
    Encrypt plaintext so only the holder of the matching X25519 private key
    can read it.

    Layout (hex): ephemeral_pub[32] || nonce[12] || AES-GCM ciphertext
    """
    recipient = X25519PublicKey.from_public_bytes(bytes.fromhex(strip_0x(public_key_hex)))
    ephemeral = X25519PrivateKey.generate()
    key = _derive_key(ephemeral.exchange(recipient))
    nonce = os.urandom(NONCE_LEN)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
    ephemeral_pub = ephemeral.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return (ephemeral_pub + nonce + ciphertext).hex()


def open_sealed(private_key_hex: str, sealed_hex: str) -> bytes:
    """
    Decrypt a payload produced by seal_for_public_key.

    Raises ValueError if the payload is malformed or was sealed for another key.
    """
    raw = bytes.fromhex(strip_0x(sealed_hex))
    if len(raw) <= X25519_KEY_LEN + NONCE_LEN:
        raise ValueError("Sealed payload too short")

    ephemeral_pub = X25519PublicKey.from_public_bytes(raw[:X25519_KEY_LEN])
    nonce = raw[X25519_KEY_LEN:X25519_KEY_LEN + NONCE_LEN]
    private_key = X25519PrivateKey.from_private_bytes(bytes.fromhex(strip_0x(private_key_hex)))
    key = _derive_key(private_key.exchange(ephemeral_pub))
    try:
        return AESGCM(key).decrypt(nonce, raw[X25519_KEY_LEN + NONCE_LEN:], None)
    except InvalidTag as e:
        raise ValueError("Sealed payload does not match this private key") from e
