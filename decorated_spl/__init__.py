"""Issue SPL tokens with Metaplex metadata."""

from .launch import ConfirmedMint, create_decorated_mint, mint_to_owner  # noqa: F401

__all__ = ["ConfirmedMint", "create_decorated_mint", "mint_to_owner"]
