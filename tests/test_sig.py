from __future__ import annotations

import re

from farmledger.crypto.sig import (
    address_from_pubkey,
    canonical_tx_message,
    sign_ed25519,
    verify_ed25519_signature,
    verify_tx_envelope_dict,
)
from farmledger.testing.sigtools import address_for, deterministic_ed25519_keypair, signed_tx


def test_address_is_derived_from_pubkey() -> None:
    pk_hex, _ = deterministic_ed25519_keypair(label="alice")
    addr = address_from_pubkey(pk_hex)
    assert re.fullmatch(r"0x[0-9a-f]{40}", addr)
    assert addr == address_for("alice")
    assert addr != address_for("bob")


def test_canonical_message_is_key_order_independent() -> None:
    a = canonical_tx_message(tx_type="FARM_DEPOSIT", signer="0xabc", nonce=1, payload={"pid": 0, "amount": 5})
    b = canonical_tx_message(tx_type="FARM_DEPOSIT", signer="0xabc", nonce=1, payload={"amount": 5, "pid": 0})
    assert a == b


def test_sign_and_verify_with_seed() -> None:
    seed = "11" * 32
    msg = b"farm"
    sig = sign_ed25519(message=msg, privkey=seed)

    from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
    from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

    pub = (
        Ed25519PrivateKey.from_private_bytes(bytes.fromhex(seed))
        .public_key()
        .public_bytes(Encoding.Raw, PublicFormat.Raw)
        .hex()
    )
    assert verify_ed25519_signature(message=msg, sig=sig, pubkey=pub) is True
    assert verify_ed25519_signature(message=b"farm!", sig=sig, pubkey=pub) is False
    assert verify_ed25519_signature(message=msg, sig="zz", pubkey=pub) is False


def test_signed_envelope_verifies() -> None:
    tx = signed_tx(label="alice", tx_type="FARM_DEPOSIT", nonce=1, payload={"pid": 0, "amount": 100})
    assert verify_tx_envelope_dict(tx) == (True, "")


def test_tampered_payload_is_rejected() -> None:
    tx = signed_tx(label="alice", tx_type="FARM_DEPOSIT", nonce=1, payload={"pid": 0, "amount": 100})
    tx["payload"]["amount"] = 1_000_000
    assert verify_tx_envelope_dict(tx) == (False, "invalid_signature")

    tx = signed_tx(label="alice", tx_type="FARM_DEPOSIT", nonce=1, payload={"pid": 0, "amount": 100})
    tx["nonce"] = 2
    assert verify_tx_envelope_dict(tx) == (False, "invalid_signature")


def test_signer_must_match_pubkey() -> None:
    tx = signed_tx(label="mallory", tx_type="FARM_WITHDRAW", nonce=1, payload={"pid": 0, "amount": 1}, signer=address_for("alice"))
    assert verify_tx_envelope_dict(tx) == (False, "signer_pubkey_mismatch")


def test_missing_or_malformed_key_material() -> None:
    tx = signed_tx(label="alice", tx_type="FARM_HARVEST", nonce=1, payload={"pid": 0})
    assert verify_tx_envelope_dict({**tx, "sig": ""}) == (False, "missing_signature")
    assert verify_tx_envelope_dict({**tx, "pubkey": "abcd"}) == (False, "bad_pubkey")
    assert verify_tx_envelope_dict({**tx, "nonce": "1"}) == (False, "bad_nonce")
