"""Shared test fixtures for the decorated-spl test suite."""

from __future__ import annotations

import struct
from typing import List, Optional

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from decorated_spl.assembler import FreshnessToken
from decorated_spl.metadata_schema import Creator, MetadataRecord
from decorated_spl.rpc import CONFIRMED, ConfirmationOutcome


class FakeSubmissionClient:
    """In-memory stand-in for the RPC submission client.

    Records every call in ``calls`` and hands out a new blockhash each time
    one is requested.
    """

    endpoint = "http://fake-rpc"

    def __init__(self, rent: int = 1_461_600, outcomes: Optional[List[ConfirmationOutcome]] = None):
        self.rent = rent
        self.outcomes = list(outcomes or [])
        self.accounts = {}
        self.calls: List[str] = []
        self.submitted: List[bytes] = []
        self.freshness_issued: List[FreshnessToken] = []
        self.confirm_freshness: List[Optional[FreshnessToken]] = []

    def minimum_rent_exempt_balance(self, size: int) -> int:
        self.calls.append("rent")
        return self.rent

    def current_freshness_token(self) -> FreshnessToken:
        self.calls.append("blockhash")
        token = FreshnessToken(Hash(bytes([len(self.freshness_issued) + 1]) * 32), 1000)
        self.freshness_issued.append(token)
        return token

    def submit(self, wire: bytes) -> Signature:
        self.calls.append("submit")
        self.submitted.append(bytes(wire))
        return Signature(bytes([len(self.submitted)]) * 64)

    def await_confirmation(self, signature: Signature, freshness: Optional[FreshnessToken] = None):
        self.calls.append("confirm")
        self.confirm_freshness.append(freshness)
        if self.outcomes:
            return self.outcomes.pop(0)
        return ConfirmationOutcome(CONFIRMED, signature)

    def get_account_data(self, address: Pubkey) -> Optional[bytes]:
        self.calls.append("account")
        return self.accounts.get(address)


def mint_account_bytes(
    mint_authority: Optional[Pubkey],
    supply: int = 0,
    decimals: int = 2,
    initialized: bool = True,
    freeze_authority: Optional[Pubkey] = None,
) -> bytes:
    data = struct.pack("<I", 1 if mint_authority else 0)
    data += bytes(mint_authority) if mint_authority else bytes(32)
    data += struct.pack("<QBB", supply, decimals, 1 if initialized else 0)
    data += struct.pack("<I", 1 if freeze_authority else 0)
    data += bytes(freeze_authority) if freeze_authority else bytes(32)
    return data


@pytest.fixture
def authority() -> Keypair:
    return Keypair.from_seed(bytes([1]) * 32)


@pytest.fixture
def mint_keypair() -> Keypair:
    return Keypair.from_seed(bytes([2]) * 32)


@pytest.fixture
def user() -> Pubkey:
    return Keypair.from_seed(bytes([3]) * 32).pubkey()


@pytest.fixture
def alice_record() -> MetadataRecord:
    return MetadataRecord(
        symbol="ALICE",
        name="0xAlice",
        uri="",
        seller_fee_basis_points=0,
        creators=None,
    )


@pytest.fixture
def creator_record() -> MetadataRecord:
    creators = [
        Creator(address=Keypair.from_seed(bytes([10 + i]) * 32).pubkey(), verified=i == 0, share=share)
        for i, share in enumerate((60, 40))
    ]
    return MetadataRecord(
        name="Alice Coin",
        symbol="ALICE",
        uri="https://example.com/alice.json",
        seller_fee_basis_points=500,
        creators=creators,
    )


@pytest.fixture
def fake_client() -> FakeSubmissionClient:
    return FakeSubmissionClient()


@pytest.fixture
def blockhash() -> Hash:
    return Hash(bytes([9]) * 32)
