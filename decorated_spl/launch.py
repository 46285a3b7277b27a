"""Two-phase launch of a metadata-decorated SPL token.

Phase 1 creates the mint account, initializes it and attaches Metaplex
metadata in one transaction, and returns a ``ConfirmedMint`` only once the
ledger confirms it.  Phase 2 (associated token account + mint-to) only
accepts a ``ConfirmedMint``, so it cannot run against a mint that does not
exist yet.  Every transaction gets its own freshly fetched blockhash.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from .accounts import parse_mint
from .assembler import SignedTransaction, assemble, sign
from .config import DEFAULT_DECIMALS, DEFAULT_PROGRAMS, MINT_ACCOUNT_SIZE, ProgramIds
from .errors import ConfirmationTimeout, OnChainExecutionError, PhaseOrderError, SchemaEncodingError
from .metadata_schema import MetadataRecord, encode_create_metadata_args
from .pda import associated_token_address, metadata_address
from .rpc import FAILED, ConfirmationOutcome, SubmissionClient
from .tx_builder import (
    build_create_account_ix,
    build_create_associated_account_ix,
    build_create_metadata_ix,
    build_initialize_mint_ix,
    build_mint_to_ix,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreationPlan:
    mint: Pubkey
    metadata: Pubkey
    instructions: Tuple[Instruction, ...]


@dataclass(frozen=True)
class MintPlan:
    associated_account: Pubkey
    instructions: Tuple[Instruction, ...]


@dataclass(frozen=True)
class ConfirmedMint:
    """Proof that the mint exists on-chain; the ticket into phase 2."""

    mint: Pubkey
    metadata: Pubkey
    mint_authority: Pubkey
    decimals: int
    signature: Optional[Signature] = None


@dataclass(frozen=True)
class MintResult:
    associated_account: Pubkey
    amount: int
    signature: Signature


def check_creator_shares(record: MetadataRecord) -> None:
    if record.creators is not None and record.total_share() != 100:
        raise SchemaEncodingError(f"creator shares must total 100, got {record.total_share()}")


def build_creation_instructions(
    mint: Pubkey,
    authority: Pubkey,
    record: MetadataRecord,
    *,
    lamports: int,
    decimals: int = DEFAULT_DECIMALS,
    is_mutable: bool = True,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> CreationPlan:
    """CreateAccount, InitializeMint, CreateMetadata, all against ``mint``.

    ``authority`` pays, is mint authority and is metadata update authority.
    """
    metadata = metadata_address(mint, programs)
    payload = encode_create_metadata_args(record, is_mutable)
    instructions = (
        build_create_account_ix(
            authority, mint, lamports, MINT_ACCOUNT_SIZE, programs.token_program, programs=programs
        ),
        build_initialize_mint_ix(mint, decimals, authority, None, programs=programs),
        build_create_metadata_ix(metadata, mint, authority, authority, authority, payload, programs=programs),
    )
    return CreationPlan(mint=mint, metadata=metadata, instructions=instructions)


def build_mint_instructions(
    confirmed: ConfirmedMint,
    payer: Pubkey,
    owner: Pubkey,
    amount: int,
    *,
    create_account: bool = True,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> MintPlan:
    if not isinstance(confirmed, ConfirmedMint):
        raise PhaseOrderError("minting requires a ConfirmedMint from the creation phase")
    ata = associated_token_address(owner, confirmed.mint, programs)
    instructions = []
    if create_account:
        instructions.append(
            build_create_associated_account_ix(payer, ata, owner, confirmed.mint, programs=programs)
        )
    instructions.append(
        build_mint_to_ix(confirmed.mint, ata, confirmed.mint_authority, amount, programs=programs)
    )
    return MintPlan(associated_account=ata, instructions=tuple(instructions))


def raise_for_outcome(outcome: ConfirmationOutcome) -> None:
    if outcome.confirmed:
        return
    if outcome.status == FAILED:
        raise OnChainExecutionError(
            outcome.signature,
            outcome.reason,
            instruction_index=outcome.instruction_index,
            error_code=outcome.error_code,
        )
    raise ConfirmationTimeout(outcome.signature, outcome.reason or "confirmation not observed")


def _submit_and_confirm(client: SubmissionClient, signed: SignedTransaction) -> Signature:
    signature = client.submit(signed.to_bytes())
    outcome = client.await_confirmation(signature, signed.unsigned.freshness)
    raise_for_outcome(outcome)
    return signature


def prepare_creation(
    client: SubmissionClient,
    mint_keypair: Keypair,
    authority: Keypair,
    record: MetadataRecord,
    *,
    decimals: int = DEFAULT_DECIMALS,
    is_mutable: bool = True,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> Tuple[CreationPlan, SignedTransaction]:
    check_creator_shares(record)
    lamports = client.minimum_rent_exempt_balance(MINT_ACCOUNT_SIZE)
    plan = build_creation_instructions(
        mint_keypair.pubkey(),
        authority.pubkey(),
        record,
        lamports=lamports,
        decimals=decimals,
        is_mutable=is_mutable,
        programs=programs,
    )
    freshness = client.current_freshness_token()
    unsigned = assemble(plan.instructions, authority.pubkey(), freshness)
    return plan, sign(unsigned, [mint_keypair, authority])


def create_decorated_mint(
    client: SubmissionClient,
    mint_keypair: Keypair,
    authority: Keypair,
    record: MetadataRecord,
    *,
    decimals: int = DEFAULT_DECIMALS,
    is_mutable: bool = True,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> ConfirmedMint:
    plan, signed = prepare_creation(
        client,
        mint_keypair,
        authority,
        record,
        decimals=decimals,
        is_mutable=is_mutable,
        programs=programs,
    )
    logger.info(
        "mint_create_submitting mint=%s metadata=%s symbol=%s decimals=%s",
        plan.mint,
        plan.metadata,
        record.symbol,
        decimals,
    )
    signature = _submit_and_confirm(client, signed)
    logger.info("mint_created mint=%s sig=%s", plan.mint, signature)
    return ConfirmedMint(
        mint=plan.mint,
        metadata=plan.metadata,
        mint_authority=authority.pubkey(),
        decimals=decimals,
        signature=signature,
    )


def confirm_existing_mint(
    client: SubmissionClient,
    mint: Pubkey,
    authority: Pubkey,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> ConfirmedMint:
    """Check the ledger for an initialized mint controlled by ``authority``."""
    data = client.get_account_data(mint)
    if data is None:
        raise PhaseOrderError(f"Mint account {mint} not found on-chain")
    info = parse_mint(data)
    if not info.is_initialized:
        raise PhaseOrderError(f"Mint {mint} is not initialized")
    if info.mint_authority != authority:
        raise PhaseOrderError(
            f"Authority {authority} is not the mint authority of {mint}; on-chain authority is {info.mint_authority}"
        )
    return ConfirmedMint(
        mint=mint,
        metadata=metadata_address(mint, programs),
        mint_authority=authority,
        decimals=info.decimals,
    )


def prepare_mint_to(
    client: SubmissionClient,
    confirmed: ConfirmedMint,
    authority: Keypair,
    owner: Pubkey,
    amount: int,
    *,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> Tuple[MintPlan, SignedTransaction]:
    if not isinstance(confirmed, ConfirmedMint):
        raise PhaseOrderError("minting requires a ConfirmedMint from the creation phase")
    ata = associated_token_address(owner, confirmed.mint, programs)
    needs_ata = client.get_account_data(ata) is None
    if not needs_ata:
        logger.info("ata_exists owner=%s ata=%s", owner, ata)
    plan = build_mint_instructions(
        confirmed, authority.pubkey(), owner, amount, create_account=needs_ata, programs=programs
    )
    # never reuse the phase 1 blockhash; it may have expired while confirming
    freshness = client.current_freshness_token()
    unsigned = assemble(plan.instructions, authority.pubkey(), freshness)
    return plan, sign(unsigned, [authority])


def mint_to_owner(
    client: SubmissionClient,
    confirmed: ConfirmedMint,
    authority: Keypair,
    owner: Pubkey,
    amount: int,
    *,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> MintResult:
    plan, signed = prepare_mint_to(client, confirmed, authority, owner, amount, programs=programs)
    logger.info("mint_to_submitting mint=%s owner=%s ata=%s amount=%s", confirmed.mint, owner, plan.associated_account, amount)
    signature = _submit_and_confirm(client, signed)
    logger.info("mint_to_confirmed mint=%s ata=%s sig=%s", confirmed.mint, plan.associated_account, signature)
    return MintResult(associated_account=plan.associated_account, amount=amount, signature=signature)
