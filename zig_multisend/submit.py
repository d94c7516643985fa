"""
Submission controller.

Owns the load → normalize → assemble → sign → broadcast pipeline and the
caller-visible result/error slots in AppState. A send is one-shot: it never
retries, and a failed attempt has to be started again from the top.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from zig_multisend.batch import (
    Recipient,
    Source,
    TransferBatch,
    assemble_batch,
    format_amount,
    normalize_recipients,
    parse_recipients,
)
from zig_multisend.config import Fee, MultisendConfig
from zig_multisend.errors import (
    BroadcastTimeout,
    ErrorRecord,
    FileParseError,
    InvalidAmount,
    MultisendError,
    NetworkError,
    NotReady,
    SigningUnavailable,
    Stage,
    UnbalancedBatch,
)
from zig_multisend.session import SessionManager
from zig_multisend.state import AppState, SubmissionResult

logger = logging.getLogger(__name__)


class SubmissionController:
    def __init__(self, state: AppState, sessions: SessionManager, config: MultisendConfig):
        self.state = state
        self.sessions = sessions
        self.config = config
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def load_file(self, source: Optional[Source]) -> Union[list[Recipient], ErrorRecord]:
        """Parse a recipient file into the working set."""
        try:
            recipients = await asyncio.to_thread(parse_recipients, source)
        except MultisendError as e:
            self.state.clear_inputs()
            logger.warning("Could not load recipients: %s", e.message)
            return self.state.record_error(e)
        except Exception as e:
            self.state.clear_inputs()
            logger.exception("Unexpected error while loading recipients")
            return self.state.record_error(FileParseError(f"CSV parsing error: {e}"))

        self.state.recipients = recipients
        self.state.selected_file = source if isinstance(source, (str, Path)) else None
        self.state.error = None
        logger.info("Loaded %d recipients", len(recipients))
        return recipients

    def preview(self) -> tuple[TransferBatch, Fee]:
        """Validate and assemble the current working set without signing."""
        session = self.sessions.session
        if not session.connected:
            raise NotReady("Wallet not connected.")
        if not self.state.recipients:
            raise NotReady("CSV data is empty.")

        try:
            normalized = normalize_recipients(self.state.recipients, self.config.denom)
        except MultisendError:
            raise
        except Exception as e:
            raise InvalidAmount(f"Could not read amounts: {e}") from e

        try:
            batch = assemble_batch(session.address, self.config.denom, normalized)
        except MultisendError:
            raise
        except Exception as e:
            raise UnbalancedBatch(f"Could not assemble batch: {e}") from e

        fee = self.config.fee()
        return batch, fee

    async def send(self) -> Union[SubmissionResult, ErrorRecord]:
        """
        Run one send attempt and return its SubmissionResult or ErrorRecord.

        A second call while the first is still running is rejected with
        NotReady and never reaches the network client.
        """
        if self._in_flight:
            err = NotReady("A transaction is already being submitted.")
            logger.warning(err.message)
            return self.state.record_error(err)

        self._in_flight = True
        try:
            return await self._send()
        finally:
            self._in_flight = False

    async def _send(self) -> Union[SubmissionResult, ErrorRecord]:
        self.state.result = None
        self.state.error = None

        try:
            batch, fee = self.preview()
            client = self.sessions.session.client
            if client is None:
                raise SigningUnavailable("Signing client is not available.")
        except MultisendError as e:
            logger.warning("Send rejected: %s", e.message)
            return self.state.record_error(e)

        generation = self.state.generation
        try:
            response = await self._broadcast(client, batch, fee)
        except MultisendError as e:
            logger.warning("Transaction failed: %s", e.message)
            return self.state.record_error(e)

        result = SubmissionResult(tx_hash=response.transaction_hash)
        if self.state.generation != generation:
            logger.warning("Session changed during broadcast, not recording %s", result.tx_hash)
            return result

        self.state.result = result
        logger.info(
            "Sent %s %s to %d recipients: %s",
            format_amount(batch.total_amount), batch.denom, batch.recipient_count, result.tx_hash,
        )
        return result

    async def _broadcast(self, client, batch: TransferBatch, fee: Fee):
        timeout = self.config.broadcast_timeout
        try:
            task = asyncio.ensure_future(
                client.sign_and_broadcast(
                    batch.sender_address, [batch.to_message()], fee, self.config.memo
                )
            )
            if timeout is None:
                return await task
            # shielded: a submitted broadcast is never cancelled, only no longer awaited
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            task.add_done_callback(_log_late_broadcast)
            raise BroadcastTimeout(
                "Broadcast timed out; the transaction may still be included."
            ) from None
        except MultisendError:
            raise
        except Exception as e:
            raise NetworkError(f"Transaction error: {e}", stage=Stage.BROADCAST) from e


def _log_late_broadcast(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Timed-out broadcast failed later: %s", exc)
    else:
        logger.warning("Timed-out broadcast completed later: %s", task.result().transaction_hash)
