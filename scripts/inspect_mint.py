"""
Print the on-chain mint and metadata accounts for a token and check that the
configured authority keypair controls it.

Usage: python scripts/inspect_mint.py <MINT_ADDRESS>
"""

import sys

from solders.pubkey import Pubkey

from decorated_spl.accounts import parse_mint
from decorated_spl.config import ProgramIds, get_settings
from decorated_spl.keypairs import load_keypair
from decorated_spl.metadata_schema import decode_metadata_account
from decorated_spl.pda import metadata_address
from decorated_spl.rpc import SolanaRpcSubmissionClient


def main(mint_addr: str) -> int:
    settings = get_settings()
    programs = ProgramIds.from_settings(settings)
    client = SolanaRpcSubmissionClient.from_settings(settings)
    mint_pub = Pubkey.from_string(mint_addr)

    print(f"Mint: {mint_pub}")
    print(f"RPC: {settings.rpc_url}")

    raw = client.get_account_data(mint_pub)
    if raw is None:
        print("Mint account not found on-chain or has no data")
        return 1
    parsed = parse_mint(raw)
    print(f"On-chain Mint Authority: {parsed.mint_authority}")
    print(f"On-chain Decimals: {parsed.decimals} Supply: {parsed.supply} Initialized: {parsed.is_initialized}")

    metadata_pub = metadata_address(mint_pub, programs)
    meta_raw = client.get_account_data(metadata_pub)
    if meta_raw is None:
        print(f"No metadata account at {metadata_pub}")
    else:
        meta = decode_metadata_account(meta_raw)
        print(f"Metadata {metadata_pub}: name={meta.data.name!r} symbol={meta.data.symbol!r} uri={meta.data.uri!r}")
        print(f"Update Authority: {meta.update_authority} Mutable: {meta.is_mutable}")

    if parsed.mint_authority is None:
        print("Mint authority is None (mint is frozen/immutable)")
        return 0
    if not settings.authority_keypair_path:
        return 0
    authority = load_keypair(settings.authority_keypair_path).pubkey()
    if parsed.mint_authority != authority:
        print(
            f"CONFIGURATION ERROR: Authority Key {authority} is not the owner of Mint {mint_pub}. "
            f"On-chain authority is {parsed.mint_authority}."
        )
        return 1
    print("Configuration OK: Authority key matches on-chain mint authority.")
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    sys.exit(main(sys.argv[1]))
