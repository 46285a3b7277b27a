"""Submission client: the four ledger calls the launch flow depends on.

``SolanaRpcSubmissionClient`` talks to a JSON-RPC node through solana-py and
turns node/transport failures into this package's error types.  Anything
that implements ``SubmissionClient`` (a test double, a different transport)
can be handed to the launch flow instead.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature

from .accounts import account_data_bytes
from .assembler import FreshnessToken
from .config import Settings
from .errors import OnChainExecutionError, SubmissionFailure

logger = logging.getLogger(__name__)

CONFIRMED = "confirmed"
FAILED = "failed"
TIMED_OUT = "timed_out"

_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}


@dataclass(frozen=True)
class ConfirmationOutcome:
    status: str
    signature: Signature
    reason: str = ""
    instruction_index: Optional[int] = None
    error_code: Optional[int] = None

    @property
    def confirmed(self) -> bool:
        return self.status == CONFIRMED


class SubmissionClient(Protocol):
    def minimum_rent_exempt_balance(self, size: int) -> int: ...

    def current_freshness_token(self) -> FreshnessToken: ...

    def submit(self, wire: bytes) -> Signature: ...

    def await_confirmation(
        self, signature: Signature, freshness: Optional[FreshnessToken] = None
    ) -> ConfirmationOutcome: ...

    def get_account_data(self, address: Pubkey) -> Optional[bytes]: ...


def instruction_error_details(err: Any) -> tuple:
    """Pull ``(instruction_index, custom_code)`` out of a transaction error."""
    index = getattr(err, "index", None)
    inner = getattr(err, "err", None)
    code = getattr(inner, "code", None)
    return index, code


def _status_rank(status: Any) -> int:
    conf = getattr(status, "confirmation_status", None)
    if conf is None:
        # nodes omit the field once the slot is rooted
        return _COMMITMENT_RANK["finalized"] if getattr(status, "confirmations", 0) is None else 0
    name = str(conf).rsplit(".", 1)[-1].lower()
    return _COMMITMENT_RANK.get(name, 0)


class SolanaRpcSubmissionClient:
    def __init__(
        self,
        endpoint: str,
        *,
        commitment: str = CONFIRMED,
        timeout: float = 30,
        confirm_timeout: float = 60,
        poll_interval: float = 0.5,
        client: Optional[Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if commitment not in _COMMITMENT_RANK:
            raise ValueError(f"unknown commitment {commitment!r}")
        self.endpoint = endpoint
        self.commitment = Commitment(commitment)
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._client = client or Client(endpoint, commitment=self.commitment, timeout=timeout)
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "SolanaRpcSubmissionClient":
        return cls(
            settings.rpc_url,
            commitment=settings.commitment,
            timeout=settings.request_timeout,
            confirm_timeout=settings.confirm_timeout_seconds,
            poll_interval=settings.confirm_poll_seconds,
            **kwargs,
        )

    def _call(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except (SolanaRpcException, httpx.HTTPError) as exc:
            logger.warning("rpc_transport_failed method=%s endpoint=%s error=%s", label, self.endpoint, exc)
            raise SubmissionFailure(f"{label} failed: {exc}", retryable=True) from exc
        except RPCException as exc:
            logger.warning("rpc_rejected method=%s error=%s", label, exc)
            raise SubmissionFailure(f"{label} rejected: {exc}") from exc

    def minimum_rent_exempt_balance(self, size: int) -> int:
        resp = self._call(
            "getMinimumBalanceForRentExemption",
            self._client.get_minimum_balance_for_rent_exemption,
            size,
        )
        return int(resp.value)

    def current_freshness_token(self) -> FreshnessToken:
        resp = self._call("getLatestBlockhash", self._client.get_latest_blockhash, self.commitment)
        value = resp.value
        return FreshnessToken(value.blockhash, value.last_valid_block_height)

    def submit(self, wire: bytes) -> Signature:
        opts = TxOpts(skip_confirmation=True, skip_preflight=False, preflight_commitment=self.commitment)
        try:
            resp = self._client.send_raw_transaction(bytes(wire), opts=opts)
        except (SolanaRpcException, httpx.HTTPError) as exc:
            logger.warning("tx_submit_transport_failed endpoint=%s error=%s", self.endpoint, exc)
            raise SubmissionFailure(f"sendTransaction failed: {exc}", retryable=True) from exc
        except RPCException as exc:
            payload = exc.args[0] if exc.args else None
            err = getattr(getattr(payload, "data", None), "err", None)
            if err is not None:
                index, code = instruction_error_details(err)
                logger.warning("tx_preflight_failed err=%s", err)
                raise OnChainExecutionError(None, str(err), instruction_index=index, error_code=code) from exc
            logger.warning("tx_submit_rejected error=%s", exc)
            raise SubmissionFailure(f"sendTransaction rejected: {exc}") from exc
        signature = resp.value
        logger.info("tx_submitted sig=%s", signature)
        return signature

    def await_confirmation(
        self, signature: Signature, freshness: Optional[FreshnessToken] = None
    ) -> ConfirmationOutcome:
        needed = _COMMITMENT_RANK[str(self.commitment)]
        deadline = self._clock() + self.confirm_timeout
        while True:
            resp = self._call("getSignatureStatuses", self._client.get_signature_statuses, [signature])
            status = resp.value[0] if resp.value else None
            if status is not None:
                if status.err is not None:
                    index, code = instruction_error_details(status.err)
                    logger.warning("tx_failed sig=%s err=%s", signature, status.err)
                    return ConfirmationOutcome(
                        FAILED, signature, str(status.err), instruction_index=index, error_code=code
                    )
                if _status_rank(status) >= needed:
                    logger.info("tx_confirmed sig=%s commitment=%s", signature, self.commitment)
                    return ConfirmationOutcome(CONFIRMED, signature)
            if freshness is not None and freshness.last_valid_block_height is not None:
                height = self._call("getBlockHeight", self._client.get_block_height, self.commitment).value
                if height > freshness.last_valid_block_height:
                    logger.warning("tx_expired sig=%s height=%s", signature, height)
                    return ConfirmationOutcome(TIMED_OUT, signature, "blockhash expired")
            if self._clock() >= deadline:
                logger.warning("tx_confirm_timeout sig=%s timeout=%s", signature, self.confirm_timeout)
                return ConfirmationOutcome(TIMED_OUT, signature, "confirmation timeout")
            self._sleep(self.poll_interval)

    def get_account_data(self, address: Pubkey) -> Optional[bytes]:
        resp = self._call("getAccountInfo", self._client.get_account_info, address, self.commitment)
        if resp.value is None:
            return None
        return account_data_bytes(resp.value.data)
