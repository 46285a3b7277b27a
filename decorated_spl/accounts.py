from __future__ import annotations

import base64
import struct
from dataclasses import dataclass
from typing import Any, Optional

from solders.pubkey import Pubkey

from .config import MINT_ACCOUNT_SIZE
from .errors import SchemaDecodingError


@dataclass(frozen=True)
class MintInfo:
    mint_authority: Optional[Pubkey]
    supply: int
    decimals: int
    is_initialized: bool
    freeze_authority: Optional[Pubkey]


def account_data_bytes(raw_data: Any) -> bytes:
    if isinstance(raw_data, (bytes, bytearray)):
        return bytes(raw_data)
    # handle (data, encoding) tuple/list shape
    data_b64 = raw_data[0] if isinstance(raw_data, (list, tuple)) else raw_data
    return base64.b64decode(data_b64)


def parse_mint(data: bytes) -> MintInfo:
    # SPL Mint layout: https://github.com/solana-labs/solana-program-library/blob/master/token/program/src/state.rs#L20
    if len(data) < MINT_ACCOUNT_SIZE:
        raise SchemaDecodingError(f"Mint account too short: {len(data)} bytes")
    o = 0
    mint_auth_opt = struct.unpack_from("<I", data, o)[0]; o += 4
    mint_auth: Optional[Pubkey] = None
    if mint_auth_opt != 0:
        mint_auth = Pubkey.from_bytes(data[o:o + 32])
    o += 32
    supply = struct.unpack_from("<Q", data, o)[0]; o += 8
    decimals = data[o]; o += 1
    is_init = data[o] == 1; o += 1
    freeze_opt = struct.unpack_from("<I", data, o)[0]; o += 4
    freeze_auth: Optional[Pubkey] = None
    if freeze_opt != 0:
        freeze_auth = Pubkey.from_bytes(data[o:o + 32])
    return MintInfo(
        mint_authority=mint_auth,
        supply=supply,
        decimals=decimals,
        is_initialized=is_init,
        freeze_authority=freeze_auth,
    )
