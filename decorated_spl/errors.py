from __future__ import annotations

from typing import Iterable, List, Optional

from solders.pubkey import Pubkey
from solders.signature import Signature


class DecoratedSplError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(DecoratedSplError):
    pass


class DerivationError(DecoratedSplError):
    pass


class DerivationExhausted(DerivationError):
    """No off-curve address exists for these seeds; retrying will not help."""

    def __init__(self, seeds: Iterable[bytes], program_id: Pubkey) -> None:
        self.seeds = [bytes(s) for s in seeds]
        self.program_id = program_id
        super().__init__(f"no viable bump seed for program {program_id} ({len(self.seeds)} seeds)")


class InvalidSeeds(DerivationError):
    pass


class SchemaError(DecoratedSplError):
    pass


class SchemaEncodingError(SchemaError):
    pass


class SchemaDecodingError(SchemaError):
    pass


class KeypairFormatError(DecoratedSplError):
    pass


class MissingSigner(DecoratedSplError):
    def __init__(self, missing: List[Pubkey]) -> None:
        self.missing = list(missing)
        joined = ", ".join(str(pk) for pk in self.missing)
        super().__init__(f"missing signature for required signer(s): {joined}")


class SubmissionFailure(DecoratedSplError):
    """The RPC node refused the transaction or could not be reached.

    ``retryable`` is True for transport problems (resubmit the same bytes, or
    rebuild with a fresh blockhash) and False when the node rejected the
    payload itself.
    """

    def __init__(self, reason: str, *, retryable: bool = False) -> None:
        self.reason = reason
        self.retryable = retryable
        super().__init__(reason)


class ConfirmationTimeout(DecoratedSplError):
    """Submitted, but no confirmation was observed in time.

    The outcome is unknown; query the signature before resubmitting.
    """

    def __init__(self, signature: Signature, reason: str = "confirmation not observed") -> None:
        self.signature = signature
        self.reason = reason
        super().__init__(f"{reason}: {signature}")


class OnChainExecutionError(DecoratedSplError):
    def __init__(
        self,
        signature: Optional[Signature],
        reason: str,
        *,
        instruction_index: Optional[int] = None,
        error_code: Optional[int] = None,
    ) -> None:
        self.signature = signature
        self.reason = reason
        self.instruction_index = instruction_index
        self.error_code = error_code
        detail = reason
        if instruction_index is not None:
            detail = f"instruction {instruction_index}: {detail}"
        if error_code is not None:
            detail = f"{detail} (code {error_code})"
        super().__init__(detail)


class PhaseOrderError(DecoratedSplError):
    pass
