"""
Error taxonomy for ZIG Multisend.

Every failure in the pipeline is a MultisendError subclass carrying the
error kind, the pipeline stage it belongs to and a human-readable message.
Library code raises; the session manager and the submission controller
catch at their boundary and store a single ErrorRecord in the app state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Stage(Enum):
    """Pipeline stage an error is attributed to."""

    VALIDATION = "validation"
    ASSEMBLY = "assembly"
    SIGNING = "signing"
    BROADCAST = "broadcast"


class ErrorKind(Enum):
    WALLET_NOT_FOUND = "WalletNotFound"
    NO_FILE_SELECTED = "NoFileSelected"
    FILE_PARSE_ERROR = "FileParseError"
    EMPTY_OR_MALFORMED_INPUT = "EmptyOrMalformedInput"
    INVALID_AMOUNT = "InvalidAmount"
    EMPTY_BATCH = "EmptyBatch"
    UNBALANCED_BATCH = "UnbalancedBatch"
    NOT_READY = "NotReady"
    SIGNING_UNAVAILABLE = "SigningUnavailable"
    BROADCAST_TIMEOUT = "BroadcastTimeout"
    NETWORK_ERROR = "NetworkError"


@dataclass(frozen=True)
class ErrorRecord:
    """The caller-visible error slot value."""

    stage: Stage
    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class MultisendError(Exception):
    """Base class for all pipeline errors."""

    kind: ErrorKind = ErrorKind.NETWORK_ERROR
    stage: Stage = Stage.BROADCAST

    def __init__(self, message: str, stage: Stage | None = None):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(stage=self.stage, kind=self.kind, message=self.message)


class WalletNotFound(MultisendError):
    kind = ErrorKind.WALLET_NOT_FOUND
    stage = Stage.SIGNING


class NoFileSelected(MultisendError):
    kind = ErrorKind.NO_FILE_SELECTED
    stage = Stage.VALIDATION


class FileParseError(MultisendError):
    kind = ErrorKind.FILE_PARSE_ERROR
    stage = Stage.VALIDATION


class EmptyOrMalformedInput(MultisendError):
    kind = ErrorKind.EMPTY_OR_MALFORMED_INPUT
    stage = Stage.VALIDATION


class InvalidAmount(MultisendError):
    kind = ErrorKind.INVALID_AMOUNT
    stage = Stage.VALIDATION


class EmptyBatch(MultisendError):
    kind = ErrorKind.EMPTY_BATCH
    stage = Stage.ASSEMBLY


class UnbalancedBatch(MultisendError):
    kind = ErrorKind.UNBALANCED_BATCH
    stage = Stage.ASSEMBLY


class NotReady(MultisendError):
    kind = ErrorKind.NOT_READY
    stage = Stage.VALIDATION


class SigningUnavailable(MultisendError):
    kind = ErrorKind.SIGNING_UNAVAILABLE
    stage = Stage.SIGNING


class BroadcastTimeout(MultisendError):
    kind = ErrorKind.BROADCAST_TIMEOUT
    stage = Stage.BROADCAST


class NetworkError(MultisendError):
    """Catch-all for signing and broadcast failures."""

    kind = ErrorKind.NETWORK_ERROR
    stage = Stage.BROADCAST
