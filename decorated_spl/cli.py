"""
Create an SPL token with Metaplex metadata, then optionally mint to a user.

    decorated-spl launch --authority keys/authority.json --symbol ALICE --name 0xAlice \
        --mint-to <USER_ADDRESS> --amount 1300
    decorated-spl mint --authority keys/authority.json --mint <MINT> --to <USER> --amount 50

RPC endpoint, commitment, decimals and program ids come from the environment
or ``.env`` (see ``decorated_spl.config.Settings``).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .config import ProgramIds, Settings, get_settings
from .errors import DecoratedSplError
from .keypairs import load_keypair, write_keypair
from .launch import (
    confirm_existing_mint,
    create_decorated_mint,
    mint_to_owner,
    prepare_creation,
)
from .metadata_schema import MetadataRecord
from .rpc import SolanaRpcSubmissionClient
from .tx_builder import instruction_to_dict

logger = logging.getLogger("decorated_spl")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="decorated-spl", description=__doc__.strip().splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)

    launch = sub.add_parser("launch", help="create the mint and its metadata")
    launch.add_argument("--authority", help="authority keypair file (defaults to AUTHORITY_KEYPAIR_PATH)")
    launch.add_argument("--mint-keypair", help="mint keypair file; generated and saved here if missing")
    launch.add_argument("--symbol", required=True)
    launch.add_argument("--name", required=True)
    launch.add_argument("--uri", default="")
    launch.add_argument("--seller-fee-bps", type=int, default=0)
    launch.add_argument("--decimals", type=int, default=None)
    launch.add_argument("--immutable", action="store_true", help="lock the metadata after creation")
    launch.add_argument("--mint-to", dest="mint_to", help="owner address to mint the initial supply to")
    launch.add_argument("--amount", type=int, default=None, help="raw amount (smallest units); required with --mint-to")
    launch.add_argument("--dry-run", action="store_true", help="print the signed creation tx without sending")

    mint = sub.add_parser("mint", help="mint more of an existing token to an owner")
    mint.add_argument("--authority", help="mint authority keypair file")
    mint.add_argument("--mint", required=True)
    mint.add_argument("--to", required=True)
    mint.add_argument("--amount", type=int, required=True)
    return parser


def _authority(path: Optional[str], settings: Settings) -> Keypair:
    target = path or settings.authority_keypair_path
    if not target:
        raise DecoratedSplError("authority keypair not configured (--authority or AUTHORITY_KEYPAIR_PATH)")
    return load_keypair(target)


def _mint_keypair(path: Optional[str]) -> Keypair:
    if path is None:
        return Keypair()
    if Path(path).exists():
        return load_keypair(path)
    kp = Keypair()
    write_keypair(path, kp)
    return kp


def _check_amount(amount: Optional[int], flag: str) -> int:
    if amount is None:
        raise DecoratedSplError(f"--amount is required with {flag}")
    if amount <= 0:
        raise DecoratedSplError(f"--amount must be positive, got {amount}")
    return amount


def run_launch(args: argparse.Namespace, settings: Settings, client: SolanaRpcSubmissionClient) -> Dict[str, object]:
    if args.mint_to:
        _check_amount(args.amount, "--mint-to")
    programs = ProgramIds.from_settings(settings)
    authority = _authority(args.authority, settings)
    mint_kp = _mint_keypair(args.mint_keypair)
    decimals = settings.token_decimals if args.decimals is None else args.decimals
    record = MetadataRecord(
        name=args.name,
        symbol=args.symbol,
        uri=args.uri,
        seller_fee_basis_points=args.seller_fee_bps,
    )
    logger.info("launch_start mint=%s authority=%s rpc=%s", mint_kp.pubkey(), authority.pubkey(), client.endpoint)

    if args.dry_run:
        plan, signed = prepare_creation(
            client, mint_kp, authority, record, decimals=decimals, is_mutable=not args.immutable, programs=programs
        )
        return {
            "mint": str(plan.mint),
            "metadata": str(plan.metadata),
            "instructions": [instruction_to_dict(ix) for ix in plan.instructions],
            "transaction": signed.to_base64(),
        }

    confirmed = create_decorated_mint(
        client, mint_kp, authority, record, decimals=decimals, is_mutable=not args.immutable, programs=programs
    )
    summary: Dict[str, object] = {
        "mint": str(confirmed.mint),
        "metadata": str(confirmed.metadata),
        "decimals": confirmed.decimals,
        "mint_authority": str(confirmed.mint_authority),
        "create_sig": str(confirmed.signature),
    }
    if args.mint_to:
        result = mint_to_owner(
            client, confirmed, authority, Pubkey.from_string(args.mint_to), args.amount, programs=programs
        )
        summary["mint_to"] = {
            "owner": args.mint_to,
            "ata": str(result.associated_account),
            "amount": result.amount,
            "signature": str(result.signature),
        }
    return summary


def run_mint(args: argparse.Namespace, settings: Settings, client: SolanaRpcSubmissionClient) -> Dict[str, object]:
    _check_amount(args.amount, "mint")
    programs = ProgramIds.from_settings(settings)
    authority = _authority(args.authority, settings)
    confirmed = confirm_existing_mint(client, Pubkey.from_string(args.mint), authority.pubkey(), programs)
    result = mint_to_owner(client, confirmed, authority, Pubkey.from_string(args.to), args.amount, programs=programs)
    return {
        "mint": str(confirmed.mint),
        "owner": args.to,
        "ata": str(result.associated_account),
        "amount": result.amount,
        "signature": str(result.signature),
    }


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    handler = run_launch if args.command == "launch" else run_mint
    try:
        # pydantic ValidationError is a ValueError
        settings = get_settings()
        logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
        client = SolanaRpcSubmissionClient.from_settings(settings)
        summary = handler(args, settings, client)
    except (DecoratedSplError, ValueError) as exc:
        logger.error("%s_failed error=%s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
