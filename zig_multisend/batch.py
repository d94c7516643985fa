"""
Core batch transfer logic for ZIG Multisend.

Turns an untrusted recipient file into a single cosmos.bank MsgMultiSend:
one input debiting the sender for the full total, one output per recipient.
The chain executes the message atomically, so either every recipient is
paid or none is.

Supports:
- CSV/JSON recipient list parsing (exact `address` / `amount` headers)
- Exact decimal unit conversion for the native micro denom
- Pass-through amounts for factory and IBC denoms
- Balanced multi-send assembly with invariant checks
"""

from __future__ import annotations

import contextlib
import csv
import decimal
import json
import logging
import re
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from pathlib import Path
from typing import IO, Iterable, Iterator, Union

from zig_multisend.config import NATIVE_DECIMALS, NATIVE_DENOM
from zig_multisend.errors import (
    EmptyBatch,
    EmptyOrMalformedInput,
    FileParseError,
    InvalidAmount,
    NoFileSelected,
    UnbalancedBatch,
)

logger = logging.getLogger(__name__)

MSG_MULTI_SEND_TYPE_URL = "/cosmos.bank.v1beta1.MsgMultiSend"

ADDRESS_FIELD = "address"
AMOUNT_FIELD = "amount"

EMPTY_INPUT_MESSAGE = "CSV is empty or missing 'address' and 'amount' headers."

# Plain decimal notation only; exponents and signs are rejected.
AMOUNT_PATTERN = re.compile(r"[0-9]+(?:\.[0-9]*)?|\.[0-9]+")
MAX_AMOUNT_CHARS = 100
# Largest value a cosmos sdk.Int (Coin.amount) can carry.
MAX_BASE_AMOUNT = Decimal(2**256 - 1)

Source = Union[str, Path, IO[str]]


@dataclass(frozen=True)
class Recipient:
    """A single payment recipient as read from the input file."""

    address: str
    raw_amount: str  # as entered, trimmed


@dataclass(frozen=True)
class NormalizedRecipient:
    """A recipient whose amount is expressed in base units of the batch denom."""

    address: str
    base_amount: Decimal


@dataclass(frozen=True)
class Coin:
    denom: str
    amount: Decimal

    def to_dict(self) -> dict:
        return {"denom": self.denom, "amount": format_amount(self.amount)}


@dataclass(frozen=True)
class BankEntry:
    """One side of a multi-send: an address and the coins it sends or receives."""

    address: str
    coins: list[Coin] = field(default_factory=list)

    @property
    def amount(self) -> Decimal:
        return exact_sum(c.amount for c in self.coins)

    def to_dict(self) -> dict:
        return {"address": self.address, "coins": [c.to_dict() for c in self.coins]}


@dataclass(frozen=True)
class TransferBatch:
    """A fully assembled multi-send, ready to be signed."""

    sender_address: str
    denom: str
    inputs: list[BankEntry]
    outputs: list[BankEntry]

    @property
    def total_amount(self) -> Decimal:
        return exact_sum(entry.amount for entry in self.inputs)

    @property
    def recipient_count(self) -> int:
        return len(self.outputs)

    def check(self) -> None:
        """Raise UnbalancedBatch unless the batch is well formed."""
        if len(self.inputs) != 1 or self.inputs[0].address != self.sender_address:
            raise UnbalancedBatch("Batch must have exactly one input from the sender")
        if not self.outputs:
            raise EmptyBatch("Batch has no outputs")

        denoms = {c.denom for entry in self.inputs + self.outputs for c in entry.coins}
        if denoms != {self.denom}:
            raise UnbalancedBatch(
                f"Batch mixes denoms {sorted(denoms)}, expected only {self.denom}"
            )

        total_out = exact_sum(entry.amount for entry in self.outputs)
        if self.total_amount != total_out:
            raise UnbalancedBatch(
                f"Input total {format_amount(self.total_amount)} does not match "
                f"output total {format_amount(total_out)}"
            )

    def to_message(self) -> dict:
        """Render as an encodable MsgMultiSend ({typeUrl, value})."""
        return {
            "typeUrl": MSG_MULTI_SEND_TYPE_URL,
            "value": {
                "inputs": [entry.to_dict() for entry in self.inputs],
                "outputs": [entry.to_dict() for entry in self.outputs],
            },
        }

    def summary(self) -> str:
        """Human-readable summary of the batch."""
        lines = [
            "=== ZIG Multisend Batch ===",
            f"Sender: {self.sender_address}",
            f"Denom: {self.denom}",
            f"Recipients: {self.recipient_count}",
            f"Total amount: {format_amount(self.total_amount)} {self.denom}",
        ]
        return "\n".join(lines)


# ── Decimal helpers ─────────────────────────────────────────────

@contextlib.contextmanager
def _exact_context() -> Iterator[decimal.Context]:
    # Additions and scaling are exact under MAX_PREC; Inexact trap guards the rest.
    with decimal.localcontext() as ctx:
        ctx.prec = decimal.MAX_PREC
        ctx.Emax = decimal.MAX_EMAX
        ctx.Emin = decimal.MIN_EMIN
        ctx.traps[decimal.Inexact] = True
        yield ctx


def exact_sum(values: Iterable[Decimal]) -> Decimal:
    with _exact_context():
        return sum(values, Decimal(0))


def format_amount(amount: Decimal) -> str:
    """Format a base-unit amount the way Coin.amount expects (no exponent)."""
    if amount == amount.to_integral_value():
        return str(int(amount))
    return format(amount, "f")


# ── Row Validator ───────────────────────────────────────────────

def _field(row: dict, name: str) -> str:
    value = row.get(name)
    if value is None:
        return ""
    return str(value).strip()


def _accept_rows(rows: Iterable[dict]) -> list[Recipient]:
    recipients = []
    for row_num, row in enumerate(rows, start=2):
        address = _field(row, ADDRESS_FIELD)
        amount = _field(row, AMOUNT_FIELD)
        if not address or not amount:
            logger.debug("Dropping row %d: missing address or amount", row_num)
            continue
        recipients.append(Recipient(address=address, raw_amount=amount))

    if not recipients:
        raise EmptyOrMalformedInput(EMPTY_INPUT_MESSAGE)
    return recipients


def _open_source(source: Source):
    if isinstance(source, (str, Path)):
        # utf-8-sig drops the BOM spreadsheet exports like to prepend
        return open(source, "r", newline="", encoding="utf-8-sig")
    return contextlib.nullcontext(source)


def parse_recipients_csv(source: Source) -> list[Recipient]:
    """
    Parse a CSV file of recipients.

    Expected format (header names are case-sensitive, extra columns ignored):
        address,amount
        zig1qy352eufqy352eufqy352eufqy352eufn6p9zn,2.5
        zig1xu7t8p4zyk3hrsjqnrafl5c0trfnu2dfc5aaxy,1

    Rows missing either field are dropped. Raises EmptyOrMalformedInput if
    nothing is left, FileParseError if the file cannot be read.
    """
    try:
        with _open_source(source) as f:
            rows = list(csv.DictReader(f))
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        raise FileParseError(f"CSV parsing error: {e}") from e

    return _accept_rows(rows)


def parse_recipients_json(source: Source) -> list[Recipient]:
    """
    Parse a JSON file of recipients.

    Expected format:
        [
            {"address": "zig1qy35...", "amount": "2.5"},
            {"address": "zig1xu7t...", "amount": 1}
        ]
    """
    try:
        with _open_source(source) as f:
            # keep numeric literals verbatim so no float ever touches an amount
            data = json.load(f, parse_float=str, parse_int=str)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FileParseError(f"CSV parsing error: {e}") from e

    if not isinstance(data, list):
        raise FileParseError("CSV parsing error: JSON must contain a list of recipient objects")

    return _accept_rows(entry for entry in data if isinstance(entry, dict))


def parse_recipients(source: Source | None) -> list[Recipient]:
    """Auto-detect file format and parse recipients."""
    if source is None or (isinstance(source, str) and not source.strip()):
        raise NoFileSelected("No file selected.")

    if not isinstance(source, (str, Path)):
        return parse_recipients_csv(source)

    suffix = Path(source).suffix.lower()
    if suffix == ".json":
        return parse_recipients_json(source)
    elif suffix in (".csv", ".tsv", ".txt"):
        return parse_recipients_csv(source)
    else:
        # Try CSV first, then JSON
        try:
            return parse_recipients_csv(source)
        except (FileParseError, EmptyOrMalformedInput) as csv_error:
            try:
                return parse_recipients_json(source)
            except (FileParseError, EmptyOrMalformedInput):
                raise csv_error


# ── Amount Normalizer ───────────────────────────────────────────

def normalize_amount(
    raw_amount: str,
    denom: str,
    native_denom: str = NATIVE_DENOM,
    decimals: int = NATIVE_DECIMALS,
) -> Decimal:
    """
    Convert a human-entered amount into base units of `denom`.

    For the native denom the amount is read in display units (ZIG) and
    scaled by 10**decimals, flooring anything below one base unit.
    Other denoms are assumed to already be in base units and pass through
    unscaled.

    Only plain decimal notation is accepted: no sign, no exponent, at most
    MAX_AMOUNT_CHARS characters, and a base amount no larger than a
    Coin.amount can hold.
    """
    text = str(raw_amount).strip()
    if text.startswith("-"):
        raise InvalidAmount(f"Amount must not be negative, got '{raw_amount}'")
    if len(text) > MAX_AMOUNT_CHARS or not AMOUNT_PATTERN.fullmatch(text):
        raise InvalidAmount(f"Invalid amount '{raw_amount}'")

    value = Decimal(text)
    if denom == native_denom:
        with _exact_context():
            value = value.scaleb(decimals).to_integral_value(rounding=ROUND_FLOOR)

    if value > MAX_BASE_AMOUNT:
        raise InvalidAmount(f"Amount '{raw_amount}' is too large")
    return value


def normalize_recipients(
    recipients: list[Recipient], denom: str
) -> list[NormalizedRecipient]:
    """Normalize every recipient, naming the offending one on failure."""
    normalized = []
    for r in recipients:
        try:
            base_amount = normalize_amount(r.raw_amount, denom)
        except InvalidAmount as e:
            raise InvalidAmount(f"{r.address}: {e.message}") from e
        normalized.append(NormalizedRecipient(address=r.address, base_amount=base_amount))
    return normalized


# ── Batch Assembler ─────────────────────────────────────────────

def assemble_batch(
    sender_address: str,
    denom: str,
    recipients: list[NormalizedRecipient],
) -> TransferBatch:
    """
    Build a balanced multi-send: one input from the sender carrying the
    exact total, one output per recipient in file order.
    """
    if not recipients:
        raise EmptyBatch("Cannot assemble a batch with no recipients")

    total_amount = exact_sum(r.base_amount for r in recipients)

    batch = TransferBatch(
        sender_address=sender_address,
        denom=denom,
        inputs=[BankEntry(sender_address, [Coin(denom, total_amount)])],
        outputs=[BankEntry(r.address, [Coin(denom, r.base_amount)]) for r in recipients],
    )
    batch.check()

    logger.debug(
        "Assembled batch: %d outputs, total %s %s",
        batch.recipient_count, format_amount(total_amount), denom,
    )
    return batch
