"""Compile instructions into v0 messages and sign them.

Wire layout produced by ``SignedTransaction.to_bytes``::

    compact-u16 signature count, 64-byte signatures (account-table order)
    0x80 version prefix, header (3 x u8), compact account table,
    recent blockhash, compiled instructions, address lookups (empty)
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .errors import MissingSigner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FreshnessToken:
    blockhash: Hash
    last_valid_block_height: Optional[int] = None


@dataclass(frozen=True)
class UnsignedTransaction:
    instructions: Tuple[Instruction, ...]
    fee_payer: Pubkey
    freshness: FreshnessToken
    message: MessageV0
    required_signers: Tuple[Pubkey, ...] = field(default=())

    def message_bytes(self) -> bytes:
        return to_bytes_versioned(self.message)


@dataclass(frozen=True)
class SignedTransaction:
    unsigned: UnsignedTransaction
    signatures: Mapping[Pubkey, Signature]
    transaction: VersionedTransaction

    @property
    def signature(self) -> Signature:
        """The fee payer's signature, which doubles as the transaction id."""
        return self.signatures[self.unsigned.fee_payer]

    def to_bytes(self) -> bytes:
        return bytes(self.transaction)

    def to_base64(self) -> str:
        return base64.b64encode(self.to_bytes()).decode()


def required_signers(instructions: Sequence[Instruction], fee_payer: Pubkey) -> List[Pubkey]:
    """Fee payer first, then every signer account in first-seen order."""
    seen = [fee_payer]
    for ix in instructions:
        for meta in ix.accounts:
            if meta.is_signer and meta.pubkey not in seen:
                seen.append(meta.pubkey)
    return seen


def assemble(
    instructions: Sequence[Instruction],
    fee_payer: Pubkey,
    freshness: Union[FreshnessToken, Hash],
) -> UnsignedTransaction:
    if not instructions:
        raise ValueError("a transaction needs at least one instruction")
    if isinstance(freshness, Hash):
        freshness = FreshnessToken(freshness)
    ixs = tuple(instructions)
    message = MessageV0.try_compile(fee_payer, list(ixs), [], freshness.blockhash)
    signers = tuple(required_signers(ixs, fee_payer))
    logger.debug(
        "tx_assembled payer=%s instructions=%s signers=%s blockhash=%s",
        fee_payer,
        len(ixs),
        len(signers),
        freshness.blockhash,
    )
    return UnsignedTransaction(
        instructions=ixs,
        fee_payer=fee_payer,
        freshness=freshness,
        message=message,
        required_signers=signers,
    )


def sign(unsigned: UnsignedTransaction, signers: Iterable[Keypair]) -> SignedTransaction:
    keypairs = {kp.pubkey(): kp for kp in signers}
    missing = [pk for pk in unsigned.required_signers if pk not in keypairs]
    if missing:
        raise MissingSigner(missing)

    payload = unsigned.message_bytes()
    message = unsigned.message
    signer_keys = list(message.account_keys[: message.header.num_required_signatures])
    signatures = [keypairs[pk].sign_message(payload) for pk in signer_keys]
    unused = set(keypairs) - set(signer_keys)
    if unused:
        logger.debug("tx_sign_unused_keys count=%s", len(unused))
    transaction = VersionedTransaction.populate(message, signatures)
    return SignedTransaction(
        unsigned=unsigned,
        signatures=MappingProxyType(dict(zip(signer_keys, signatures))),
        transaction=transaction,
    )
