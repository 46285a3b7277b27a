"""Tests for message assembly and signing."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from decorated_spl.assembler import FreshnessToken, assemble, required_signers, sign
from decorated_spl.errors import MissingSigner
from decorated_spl.launch import build_creation_instructions


@pytest.fixture
def creation_ixs(authority, mint_keypair, alice_record):
    plan = build_creation_instructions(
        mint_keypair.pubkey(), authority.pubkey(), alice_record, lamports=1_461_600
    )
    return plan.instructions


class TestAssemble:
    def test_empty_instruction_list(self, authority, blockhash):
        with pytest.raises(ValueError):
            assemble([], authority.pubkey(), blockhash)

    def test_required_signers_fee_payer_first(self, creation_ixs, authority, mint_keypair, blockhash):
        unsigned = assemble(creation_ixs, authority.pubkey(), blockhash)
        assert unsigned.required_signers == (authority.pubkey(), mint_keypair.pubkey())
        assert unsigned.message.header.num_required_signatures == 2
        assert unsigned.message.account_keys[0] == authority.pubkey()

    def test_fee_payer_always_required(self, creation_ixs, user):
        assert required_signers(creation_ixs, user)[0] == user

    def test_hash_is_wrapped_in_freshness_token(self, creation_ixs, authority, blockhash):
        unsigned = assemble(creation_ixs, authority.pubkey(), blockhash)
        assert unsigned.freshness == FreshnessToken(blockhash)
        assert unsigned.message.recent_blockhash == blockhash

    def test_message_bytes_deterministic(self, creation_ixs, authority, blockhash):
        first = assemble(creation_ixs, authority.pubkey(), blockhash).message_bytes()
        second = assemble(creation_ixs, authority.pubkey(), blockhash).message_bytes()
        assert first == second
        assert first[0] == 0x80

    def test_blockhash_changes_message(self, creation_ixs, authority, blockhash):
        first = assemble(creation_ixs, authority.pubkey(), blockhash).message_bytes()
        second = assemble(creation_ixs, authority.pubkey(), Hash(bytes([8]) * 32)).message_bytes()
        assert first != second


class TestSign:
    def test_signatures_verify(self, creation_ixs, authority, mint_keypair, blockhash):
        unsigned = assemble(creation_ixs, authority.pubkey(), blockhash)
        signed = sign(unsigned, [authority, mint_keypair])
        payload = unsigned.message_bytes()
        for pubkey, signature in signed.signatures.items():
            assert signature.verify(pubkey, payload)
        assert signed.signature == signed.signatures[authority.pubkey()]

    def test_signer_order_does_not_matter(self, creation_ixs, authority, mint_keypair, blockhash):
        unsigned = assemble(creation_ixs, authority.pubkey(), blockhash)
        assert sign(unsigned, [authority, mint_keypair]).to_bytes() == sign(unsigned, [mint_keypair, authority]).to_bytes()

    def test_missing_signer_raises_before_signing(self, creation_ixs, authority, mint_keypair, blockhash):
        unsigned = assemble(creation_ixs, authority.pubkey(), blockhash)
        partial = MagicMock()
        partial.pubkey.return_value = authority.pubkey()
        with pytest.raises(MissingSigner) as excinfo:
            sign(unsigned, [partial])
        assert excinfo.value.missing == [mint_keypair.pubkey()]
        partial.sign_message.assert_not_called()

    def test_extra_signers_are_ignored(self, creation_ixs, authority, mint_keypair, blockhash):
        unsigned = assemble(creation_ixs, authority.pubkey(), blockhash)
        signed = sign(unsigned, [authority, mint_keypair, Keypair.from_seed(bytes([42]) * 32)])
        assert set(signed.signatures) == {authority.pubkey(), mint_keypair.pubkey()}

    def test_wire_format(self, creation_ixs, authority, mint_keypair, blockhash):
        unsigned = assemble(creation_ixs, authority.pubkey(), blockhash)
        signed = sign(unsigned, [authority, mint_keypair])
        wire = signed.to_bytes()
        assert wire[0] == 2
        assert wire[1 + 64 * 2] == 0x80
        assert wire[1:65] == bytes(signed.signature)
        decoded = VersionedTransaction.from_bytes(wire)
        assert decoded.message == unsigned.message
        assert list(decoded.signatures) == [signed.signatures[authority.pubkey()], signed.signatures[mint_keypair.pubkey()]]
        assert base64.b64decode(signed.to_base64()) == wire

    def test_signatures_are_read_only(self, creation_ixs, authority, mint_keypair, blockhash):
        signed = sign(assemble(creation_ixs, authority.pubkey(), blockhash), [authority, mint_keypair])
        with pytest.raises(TypeError):
            signed.signatures[authority.pubkey()] = signed.signatures[mint_keypair.pubkey()]
