"""Program-derived address derivation.

A PDA is ``sha256(seeds || bump || program_id || "ProgramDerivedAddress")``
for the highest bump byte whose digest is not a valid ed25519 point, so no
private key can ever sign for it.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Callable, Optional, Sequence, Tuple

from solders.pubkey import Pubkey

from .config import DEFAULT_PROGRAMS, ProgramIds
from .errors import DerivationExhausted, InvalidSeeds

logger = logging.getLogger(__name__)

PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEEDS = 16
MAX_SEED_LEN = 32

CurveCheck = Callable[[Pubkey], bool]


def _check_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise InvalidSeeds(f"at most {MAX_SEEDS} seeds allowed, got {len(seeds)}")
    for idx, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LEN:
            raise InvalidSeeds(f"seed {idx} is {len(seed)} bytes; max seed length is {MAX_SEED_LEN}")


def _hash_candidate(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey:
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes(program_id))
    hasher.update(PDA_MARKER)
    return Pubkey.from_bytes(hasher.digest())


def create_program_address(
    seeds: Sequence[bytes],
    program_id: Pubkey,
    *,
    is_on_curve: Optional[CurveCheck] = None,
) -> Pubkey:
    """Hash ``seeds`` (bump included) into an address; reject on-curve results."""
    seeds = [bytes(s) for s in seeds]
    _check_seeds(seeds)
    on_curve = is_on_curve or Pubkey.is_on_curve
    candidate = _hash_candidate(seeds, program_id)
    if on_curve(candidate):
        raise InvalidSeeds("derived address lies on the ed25519 curve")
    return candidate


def derive(
    seeds: Sequence[bytes],
    program_id: Pubkey,
    *,
    is_on_curve: Optional[CurveCheck] = None,
) -> Tuple[Pubkey, int]:
    seeds = [bytes(s) for s in seeds]
    # the bump byte is appended as one more seed
    _check_seeds(seeds + [b"\x00"])
    on_curve = is_on_curve or Pubkey.is_on_curve
    for bump in range(255, -1, -1):
        candidate = _hash_candidate(seeds + [bytes([bump])], program_id)
        if not on_curve(candidate):
            logger.debug("pda_derived program=%s address=%s bump=%s", program_id, candidate, bump)
            return candidate, bump
    raise DerivationExhausted(seeds, program_id)


def metadata_address(mint: Pubkey, programs: ProgramIds = DEFAULT_PROGRAMS) -> Pubkey:
    seeds = [b"metadata", bytes(programs.metadata_program), bytes(mint)]
    return derive(seeds, programs.metadata_program)[0]


def associated_token_address(
    owner: Pubkey, mint: Pubkey, programs: ProgramIds = DEFAULT_PROGRAMS
) -> Pubkey:
    seeds = [bytes(owner), bytes(programs.token_program), bytes(mint)]
    return derive(seeds, programs.associated_token_program)[0]
