from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Sequence, Union

from solders.keypair import Keypair

from .errors import KeypairFormatError

SECRET_KEY_LENGTH = 64
SEED_LENGTH = 32


def keypair_from_secret(secret: Union[bytes, bytearray, Sequence[int]]) -> Keypair:
    """Build a keypair from a 64-byte secret key (or a 32-byte seed)."""
    try:
        raw = bytes(secret)
    except (TypeError, ValueError) as exc:
        raise KeypairFormatError(f"secret key must be a byte array: {exc}") from exc
    if len(raw) == SEED_LENGTH:
        return Keypair.from_seed(raw)
    if len(raw) != SECRET_KEY_LENGTH:
        raise KeypairFormatError(f"secret key must be {SECRET_KEY_LENGTH} bytes, got {len(raw)}")
    try:
        return Keypair.from_bytes(raw)
    except Exception as exc:  # noqa: BLE001
        raise KeypairFormatError(f"invalid secret key: {exc}") from exc


def parse_keypair_json(data: Any) -> Keypair:
    if isinstance(data, list):
        return keypair_from_secret(data)
    if isinstance(data, dict) and "secretKey" in data:
        return keypair_from_secret(data["secretKey"])
    raise KeypairFormatError("Unsupported keypair file format")


def load_keypair(path: Union[str, Path]) -> Keypair:
    path = Path(path)
    if not path.exists():
        raise KeypairFormatError(f"Missing keypair at {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise KeypairFormatError(f"Failed to read keypair {path}: {exc}") from exc
    return parse_keypair_json(data)


def write_keypair(path: Union[str, Path], keypair: Keypair) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(list(bytes(keypair))))
    os.chmod(path, 0o600)
