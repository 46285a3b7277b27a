from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings
from solders.pubkey import Pubkey

from .errors import ConfigError

SYS_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
# Standard SPL Associated Token Program ID (same across clusters)
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
SYSVAR_RENT_ID = "SysvarRent111111111111111111111111111111111"

DEFAULT_DECIMALS = 2
# SPL Mint account: COption<Pubkey> + u64 + u8 + bool + COption<Pubkey>
MINT_ACCOUNT_SIZE = 82


class Settings(BaseSettings):
    solana_rpc: str = "https://api.devnet.solana.com"
    helius_rpc_url: str = ""
    commitment: str = "confirmed"
    request_timeout: float = 30
    confirm_timeout_seconds: float = 60
    confirm_poll_seconds: float = 0.5
    token_decimals: int = DEFAULT_DECIMALS
    authority_keypair_path: Optional[str] = None
    log_level: str = "INFO"
    system_program_id: str = SYS_PROGRAM_ID
    token_program_id: str = TOKEN_PROGRAM_ID
    associated_token_program_id: str = ASSOCIATED_TOKEN_PROGRAM_ID
    metadata_program_id: str = METADATA_PROGRAM_ID
    rent_sysvar_id: str = SYSVAR_RENT_ID

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def rpc_url(self) -> str:
        # Prefer Helius RPC if provided to improve reliability.
        return self.helius_rpc_url or self.solana_rpc


def load_pubkey(name: str, value: str) -> Pubkey:
    if not value:
        raise ConfigError(f"{name} must be set to a valid address")
    try:
        return Pubkey.from_string(value)
    except Exception as exc:  # noqa: BLE001
        raise ConfigError(f"{name} is not a valid pubkey: {exc}") from exc


@dataclass(frozen=True)
class ProgramIds:
    """Addresses of the on-chain programs the builders target.

    Passed explicitly to every builder so tests and private clusters can
    point at alternate deployments.
    """

    system_program: Pubkey
    token_program: Pubkey
    associated_token_program: Pubkey
    metadata_program: Pubkey
    rent_sysvar: Pubkey

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProgramIds":
        return cls(
            system_program=load_pubkey("SYSTEM_PROGRAM_ID", settings.system_program_id),
            token_program=load_pubkey("TOKEN_PROGRAM_ID", settings.token_program_id),
            associated_token_program=load_pubkey(
                "ASSOCIATED_TOKEN_PROGRAM_ID", settings.associated_token_program_id
            ),
            metadata_program=load_pubkey("METADATA_PROGRAM_ID", settings.metadata_program_id),
            rent_sysvar=load_pubkey("RENT_SYSVAR_ID", settings.rent_sysvar_id),
        )


DEFAULT_PROGRAMS = ProgramIds(
    system_program=Pubkey.from_string(SYS_PROGRAM_ID),
    token_program=Pubkey.from_string(TOKEN_PROGRAM_ID),
    associated_token_program=Pubkey.from_string(ASSOCIATED_TOKEN_PROGRAM_ID),
    metadata_program=Pubkey.from_string(METADATA_PROGRAM_ID),
    rent_sysvar=Pubkey.from_string(SYSVAR_RENT_ID),
)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
