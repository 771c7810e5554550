# src/farmledger/crypto/sig.py
from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

Json = Dict[str, Any]


def _decode_bytes(s: str) -> bytes:
    s = s.strip()
    if not s:
        raise ValueError("empty string")
    # hex
    try:
        return bytes.fromhex(s)
    except Exception:
        pass
    # base64 / base64url
    try:
        padding = "=" * (-len(s) % 4)
        s2 = (s + padding).replace("-", "+").replace("_", "/")
        return base64.b64decode(s2)
    except Exception as e:
        raise ValueError("not hex or base64") from e


def canonical_tx_message(*, tx_type: str, signer: str, nonce: int, payload: Json) -> bytes:
    obj: Json = {
        "tx_type": str(tx_type),
        "signer": str(signer),
        "nonce": int(nonce),
        "payload": payload if isinstance(payload, dict) else {},
    }
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def address_from_pubkey(pubkey: str) -> str:
    """Participant address: 0x + last 20 bytes of sha256(raw pubkey)."""
    pk_b = _decode_bytes(pubkey)
    if len(pk_b) != 32:
        raise ValueError("ed25519 pubkey must be 32 bytes")
    return "0x" + hashlib.sha256(pk_b).digest()[-20:].hex()


def verify_ed25519_signature(*, message: bytes, sig: str, pubkey: str) -> bool:
    try:
        sig_b = _decode_bytes(sig)
        pk_b = _decode_bytes(pubkey)
        key = Ed25519PublicKey.from_public_bytes(pk_b)
        key.verify(sig_b, message)
        return True
    except (InvalidSignature, ValueError):
        return False


def sign_ed25519(*, message: bytes, privkey: str, encoding: str = "hex") -> str:
    """Sign a message with an Ed25519 private key.

    privkey: hex or base64/base64url string of a 32-byte seed.
    encoding: "hex" (default) or "b64".
    """
    pk_b = _decode_bytes(privkey)
    if len(pk_b) != 32:
        raise ValueError("ed25519 privkey must be a 32-byte seed")

    key = Ed25519PrivateKey.from_private_bytes(pk_b)
    sig_b = key.sign(message)
    if encoding == "hex":
        return sig_b.hex()
    if encoding in {"b64", "base64"}:
        return base64.b64encode(sig_b).decode("ascii")
    raise ValueError("unsupported encoding")


def verify_tx_envelope_dict(tx: Json) -> tuple[bool, str]:
    """Check sig over the canonical message and that signer matches pubkey.

    Returns (ok, reason). reason is "" on success.
    """
    pubkey = str(tx.get("pubkey") or "").strip()
    sig = str(tx.get("sig") or "").strip()
    if not pubkey or not sig:
        return False, "missing_signature"
    try:
        addr = address_from_pubkey(pubkey)
    except ValueError:
        return False, "bad_pubkey"
    if addr != str(tx.get("signer") or "").strip():
        return False, "signer_pubkey_mismatch"

    nonce = tx.get("nonce")
    if isinstance(nonce, bool) or not isinstance(nonce, int):
        return False, "bad_nonce"
    msg = canonical_tx_message(
        tx_type=str(tx.get("tx_type") or "").strip().upper(),
        signer=str(tx.get("signer") or "").strip(),
        nonce=nonce,
        payload=tx.get("payload") if isinstance(tx.get("payload"), dict) else {},
    )
    if not verify_ed25519_signature(message=msg, sig=sig, pubkey=pubkey):
        return False, "invalid_signature"
    return True, ""
