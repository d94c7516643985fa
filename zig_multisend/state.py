"""
In-memory application state shared by the session manager and the
submission controller.

One AppState exists per host (CLI run, bot, web handler). It starts out
Disconnected and empty; reset() is the teardown used on disconnect so
nothing loaded under one wallet is ever attributed to another.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from zig_multisend.batch import Recipient
from zig_multisend.errors import ErrorRecord, MultisendError


class SessionStatus(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class Session:
    """Wallet session. Owned exclusively by the SessionManager."""

    status: SessionStatus = SessionStatus.DISCONNECTED
    address: Optional[str] = None
    signer: Any = None  # offline signer from the wallet capability
    client: Any = None  # signing client bound to `signer`

    @property
    def connected(self) -> bool:
        return self.status is SessionStatus.CONNECTED


@dataclass(frozen=True)
class SubmissionResult:
    tx_hash: str


@dataclass
class AppState:
    session: Session = field(default_factory=Session)
    recipients: list[Recipient] = field(default_factory=list)
    selected_file: Optional[Union[str, Path]] = None
    result: Optional[SubmissionResult] = None
    error: Optional[ErrorRecord] = None
    generation: int = 0  # bumped on every disconnect

    def record_error(self, exc: MultisendError) -> ErrorRecord:
        """Store `exc` as the single current error, replacing any previous one."""
        self.error = exc.to_record()
        return self.error

    def clear_inputs(self) -> None:
        self.recipients = []
        self.selected_file = None

    def reset(self) -> None:
        """Return to the initial Disconnected/empty state."""
        self.session = Session()
        self.clear_inputs()
        self.result = None
        self.error = None
        self.generation += 1
