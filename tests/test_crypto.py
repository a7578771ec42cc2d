"""Tests for worldsign crypto (keccak256 + secp256k1 signing/recovery)."""

import pytest
from eth_account import Account
from web3 import Web3

from worldsign.crypto import (
    decode_signature,
    derive_address,
    encode_signature,
    hash_message,
    load_private_key,
    recover_signer,
    sign_message,
    verify_signature,
)
from worldsign.errors import InvalidPrivateKey, InvalidSignatureParameters

from conftest import KNOWN_PERSONA_SIGNATURE, TEST_ADDRESS, TEST_PRIVATE_KEY


class TestLoadPrivateKey:
    def test_known_vector_address(self):
        assert derive_address(TEST_PRIVATE_KEY) == TEST_ADDRESS

    def test_prefix_optional(self):
        assert derive_address(TEST_PRIVATE_KEY[2:]) == TEST_ADDRESS

    def test_raw_bytes(self):
        assert derive_address(bytes.fromhex(TEST_PRIVATE_KEY[2:])) == TEST_ADDRESS

    def test_missing_key(self):
        with pytest.raises(InvalidPrivateKey, match="missing"):
            load_private_key(None)
        with pytest.raises(InvalidPrivateKey, match="missing"):
            load_private_key("")

    def test_non_hex(self):
        with pytest.raises(InvalidPrivateKey, match="hex"):
            load_private_key("0x" + "zz" * 32)

    def test_wrong_length(self):
        with pytest.raises(InvalidPrivateKey, match="32 bytes"):
            load_private_key("0x" + "ab" * 31)

    def test_key_above_curve_order_rejected(self):
        with pytest.raises(InvalidPrivateKey):
            load_private_key("0x" + "ff" * 32)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            load_private_key("nope")


class TestSignMessage:
    def test_format(self):
        sig = sign_message("hello", TEST_PRIVATE_KEY)
        assert len(sig) == 130
        assert not sig.startswith("0x")
        assert sig == sig.lower()
        assert sig[-2:] in ("1b", "1c")

    def test_deterministic(self):
        message = 'alicetest-ns0{"x":1}'
        assert sign_message(message, TEST_PRIVATE_KEY) == sign_message(message, TEST_PRIVATE_KEY)

    def test_different_messages_differ(self):
        assert sign_message("a", TEST_PRIVATE_KEY) != sign_message("b", TEST_PRIVATE_KEY)

    def test_matches_raw_hash_signature(self):
        message = "alicetest-ns0{}"
        signed = Account.unsafe_sign_hash(Web3.keccak(text=message), TEST_PRIVATE_KEY)
        assert sign_message(message, TEST_PRIVATE_KEY) == bytes(signed.signature).hex()

    def test_is_not_eip191(self, account):
        # Signatures cover the bare keccak hash, not the personal_sign digest
        from eth_account.messages import encode_defunct

        message = "hello"
        personal = Account.sign_message(encode_defunct(text=message), account.key)
        assert sign_message(message, account.key) != bytes(personal.signature).hex()

    def test_unicode_message(self, account):
        message = 'bobns0{"emote":"♥"}'
        sig = sign_message(message, account.key)
        assert recover_signer(message, sig) == account.address

    def test_invalid_key_raises_before_signing(self):
        with pytest.raises(InvalidPrivateKey):
            sign_message("hello", "0x1234")


class TestEncodeSignature:
    def test_parity_suffixes(self):
        assert encode_signature(1, 2, 27).endswith("1b")
        assert encode_signature(1, 2, 28).endswith("1c")

    def test_rejects_other_recovery_values(self):
        for v in (0, 1, 29, 35):
            with pytest.raises(InvalidSignatureParameters):
                encode_signature(1, 2, v)

    def test_pads_r_and_s(self):
        sig = encode_signature(1, 2, 27)
        assert sig == "00" * 31 + "01" + "00" * 31 + "02" + "1b"


class TestRecoverVerify:
    def test_round_trip(self, account):
        message = "persona-ns0{}"
        sig = sign_message(message, account.key)
        assert recover_signer(message, sig) == account.address
        assert verify_signature(account.address, message, sig)

    def test_known_vector_recovers(self):
        message = 'alicetest-ns0{"personaTag":"alice","signerAddress":"%s"}' % TEST_ADDRESS
        sig = sign_message(message, TEST_PRIVATE_KEY)
        assert sig == KNOWN_PERSONA_SIGNATURE
        assert recover_signer(message, sig) == TEST_ADDRESS

    def test_recovers_with_zero_one_parity_byte(self):
        message = 'alicetest-ns0{"personaTag":"alice","signerAddress":"%s"}' % TEST_ADDRESS
        sig = KNOWN_PERSONA_SIGNATURE[:-2] + "01"
        assert recover_signer(message, sig) == TEST_ADDRESS

    def test_accepts_0x_prefix_and_zero_one_parity(self, account):
        message = "m"
        sig = sign_message(message, account.key)
        parity = "00" if sig.endswith("1b") else "01"
        assert verify_signature(account.address, message, "0x" + sig)
        assert verify_signature(account.address, message, sig[:-2] + parity)

    def test_wrong_address_fails(self, account):
        other = Account.create()
        sig = sign_message("m", account.key)
        assert not verify_signature(other.address, "m", sig)

    def test_tampered_message_fails(self, account):
        sig = sign_message("original", account.key)
        assert not verify_signature(account.address, "tampered", sig)

    def test_case_insensitive_address(self, account):
        sig = sign_message("m", account.key)
        assert verify_signature(account.address.lower(), "m", sig)

    def test_malformed_signature(self):
        with pytest.raises(InvalidSignatureParameters):
            decode_signature("abcd")
        with pytest.raises(InvalidSignatureParameters):
            decode_signature("zz" * 65)
        with pytest.raises(InvalidSignatureParameters):
            decode_signature("00" * 64 + "05")
        assert not verify_signature(TEST_ADDRESS, "m", "abcd")


class TestHashMessage:
    def test_returns_32_bytes(self):
        assert len(hash_message("hello")) == 32

    def test_keccak_of_utf8(self):
        assert hash_message("♥") == bytes(Web3.keccak("♥".encode("utf-8")))
