from __future__ import annotations

import base64
from typing import Optional, Sequence

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .config import DEFAULT_PROGRAMS, ProgramIds
from .errors import SchemaDecodingError, SchemaEncodingError

U8_MAX = 2**8 - 1
U64_MAX = 2**64 - 1

# System program instructions are bincode enums (u32 LE tag).
SYSTEM_CREATE_ACCOUNT = 0
# SPL token instructions use a single byte tag.
TOKEN_INITIALIZE_MINT = 0
TOKEN_MINT_TO = 7
METADATA_CREATE_METADATA_ACCOUNT = 0


def _u8(name: str, value: int) -> bytes:
    if not 0 <= value <= U8_MAX:
        raise SchemaEncodingError(f"{name} {value} does not fit in u8")
    return value.to_bytes(1, "little")


def _u64(name: str, value: int) -> bytes:
    if not 0 <= value <= U64_MAX:
        raise SchemaEncodingError(f"{name} {value} does not fit in u64")
    return value.to_bytes(8, "little")


def encode_create_account(lamports: int, space: int, owner: Pubkey) -> bytes:
    return (
        SYSTEM_CREATE_ACCOUNT.to_bytes(4, "little")
        + _u64("lamports", lamports)
        + _u64("space", space)
        + bytes(owner)
    )


def encode_initialize_mint(
    decimals: int, mint_authority: Pubkey, freeze_authority: Optional[Pubkey] = None
) -> bytes:
    data = bytes([TOKEN_INITIALIZE_MINT]) + _u8("decimals", decimals) + bytes(mint_authority)
    # COption<Pubkey> keeps its full width; an absent key is zero-filled
    if freeze_authority is None:
        return data + b"\x00" + bytes(32)
    return data + b"\x01" + bytes(freeze_authority)


def encode_mint_to(amount: int) -> bytes:
    return bytes([TOKEN_MINT_TO]) + _u64("amount", amount)


def build_create_account_ix(
    payer: Pubkey,
    new_account: Pubkey,
    lamports: int,
    space: int,
    owner: Pubkey,
    *,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> Instruction:
    data = encode_create_account(lamports, space, owner)
    accounts = [
        AccountMeta(payer, True, True),
        AccountMeta(new_account, True, True),
    ]
    return Instruction(programs.system_program, data, accounts)


def build_initialize_mint_ix(
    mint: Pubkey,
    decimals: int,
    mint_authority: Pubkey,
    freeze_authority: Optional[Pubkey] = None,
    *,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> Instruction:
    data = encode_initialize_mint(decimals, mint_authority, freeze_authority)
    accounts = [
        AccountMeta(mint, False, True),
        AccountMeta(programs.rent_sysvar, False, False),
    ]
    return Instruction(programs.token_program, data, accounts)


def build_create_metadata_ix(
    metadata: Pubkey,
    mint: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    update_authority: Pubkey,
    payload: bytes,
    *,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> Instruction:
    """CreateMetadataAccount; ``payload`` is the borsh record plus the mutability flag."""
    data = bytes([METADATA_CREATE_METADATA_ACCOUNT]) + bytes(payload)
    accounts = [
        AccountMeta(metadata, False, True),
        AccountMeta(mint, False, False),
        AccountMeta(mint_authority, True, False),
        AccountMeta(payer, True, True),
        AccountMeta(update_authority, False, False),
        AccountMeta(programs.system_program, False, False),
        AccountMeta(programs.rent_sysvar, False, False),
    ]
    return Instruction(programs.metadata_program, data, accounts)


def build_create_associated_account_ix(
    payer: Pubkey,
    associated_account: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    *,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> Instruction:
    # The associated token program reads the system program before the token program.
    accounts = [
        AccountMeta(payer, True, True),
        AccountMeta(associated_account, False, True),
        AccountMeta(owner, False, False),
        AccountMeta(mint, False, False),
        AccountMeta(programs.system_program, False, False),
        AccountMeta(programs.token_program, False, False),
        AccountMeta(programs.rent_sysvar, False, False),
    ]
    return Instruction(programs.associated_token_program, b"", accounts)


def build_mint_to_ix(
    mint: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
    amount: int,
    signers: Sequence[Pubkey] = (),
    *,
    programs: ProgramIds = DEFAULT_PROGRAMS,
) -> Instruction:
    data = encode_mint_to(amount)
    accounts = [
        AccountMeta(mint, False, True),
        AccountMeta(destination, False, True),
        # a multisig authority does not sign itself; its member keys do
        AccountMeta(authority, not signers, False),
    ]
    accounts.extend(AccountMeta(signer, True, False) for signer in signers)
    return Instruction(programs.token_program, data, accounts)


def parse_initialize_mint_data(data: bytes) -> dict:
    if len(data) < 35 or data[0] != TOKEN_INITIALIZE_MINT:
        raise SchemaDecodingError("not an InitializeMint instruction")
    freeze_authority = None
    if data[34] == 1:
        if len(data) < 67:
            raise SchemaDecodingError("InitializeMint freeze authority truncated")
        freeze_authority = Pubkey.from_bytes(data[35:67])
    return {
        "decimals": data[1],
        "mint_authority": Pubkey.from_bytes(data[2:34]),
        "freeze_authority": freeze_authority,
    }


def parse_mint_to_data(data: bytes) -> int:
    if len(data) != 9 or data[0] != TOKEN_MINT_TO:
        raise SchemaDecodingError("not a MintTo instruction")
    return int.from_bytes(data[1:9], "little")


def parse_create_account_data(data: bytes) -> dict:
    if len(data) != 52 or int.from_bytes(data[0:4], "little") != SYSTEM_CREATE_ACCOUNT:
        raise SchemaDecodingError("not a CreateAccount instruction")
    return {
        "lamports": int.from_bytes(data[4:12], "little"),
        "space": int.from_bytes(data[12:20], "little"),
        "owner": Pubkey.from_bytes(data[20:52]),
    }


def instruction_to_dict(ix: Instruction) -> dict:
    return {
        "program_id": str(ix.program_id),
        "keys": [
            {
                "pubkey": str(meta.pubkey),
                "is_signer": meta.is_signer,
                "is_writable": meta.is_writable,
            }
            for meta in ix.accounts
        ],
        "data": base64.b64encode(bytes(ix.data)).decode(),
    }
