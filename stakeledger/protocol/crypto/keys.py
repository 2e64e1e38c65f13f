from ecdsa import SigningKey, VerifyingKey, SECP256k1 # type: ignore
from ecdsa.util import sigencode_string, sigdecode_string # type: ignore
import os
from typing import Optional
from .hash import sha256

def generate_private_key(seed: Optional[str] = None) -> bytes:
    """
    Returns a 32-byte private key.

    With a seed the key is SHA256(seed), which gives reproducible actors for
    simulations. Never use seeded keys outside of a simulation.
    """
    if seed is not None:
        return sha256(seed.encode("utf-8"))
    return os.urandom(32)

def public_key_from_private(priv_bytes: bytes) -> bytes:
    """Returns compressed 33-byte public key from private key."""
    sk = SigningKey.from_string(priv_bytes, curve=SECP256k1)
    vk = sk.get_verifying_key()
    return vk.to_string("compressed")

def sign(message_hash: bytes, priv_bytes: bytes) -> bytes:
    """Signs a message hash with private key. Returns 64-byte (r,s) signature."""
    sk = SigningKey.from_string(priv_bytes, curve=SECP256k1)
    return sk.sign_digest_deterministic(message_hash, sigencode=sigencode_string)

def verify(message_hash: bytes, signature: bytes, pub_bytes: bytes) -> bool:
    """Verifies ECDSA signature."""
    try:
        vk = VerifyingKey.from_string(pub_bytes, curve=SECP256k1)
        return vk.verify_digest(signature, message_hash, sigdecode=sigdecode_string)
    except Exception:
        return False
