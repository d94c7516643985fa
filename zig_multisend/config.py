"""
Chain constants and user-editable settings.

Everything lives in memory for the lifetime of the process. The CLI maps
its flags onto MultisendConfig; nothing is read from the environment or
persisted to disk.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from zig_multisend.errors import InvalidAmount


# ── ZIGChain ────────────────────────────────────────────────────
CHAIN_ID = "zig-test-1"
ADDRESS_PREFIX = "zig"
DEFAULT_ENDPOINT = "rest+https://testnet-api.zigchain.com"

# Native micro-unit denom. 1 ZIG = 1,000,000 uzig.
NATIVE_DENOM = "uzig"
NATIVE_DECIMALS = 6

DEFAULT_GAS_LIMIT = "200000"
DEFAULT_FEE_AMOUNT = "150"  # in uzig

MEMO = "MultiSend"


@dataclass(frozen=True)
class Fee:
    """Transaction fee, independent of the batch being sent."""

    denom: str
    amount: int
    gas_limit: int

    def to_std_fee(self) -> dict:
        return {
            "amount": [{"denom": self.denom, "amount": str(self.amount)}],
            "gas": str(self.gas_limit),
        }


def _parse_uint(value: str, field_name: str) -> int:
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()):
        raise InvalidAmount(f"{field_name} must be a non-negative integer, got '{value}'")
    return int(text)


@dataclass
class MultisendConfig:
    """User-editable settings for a multisend session."""

    denom: str = NATIVE_DENOM
    gas_limit: str = DEFAULT_GAS_LIMIT  # string-encoded integer
    fee_amount: str = DEFAULT_FEE_AMOUNT  # string-encoded integer, native micro-unit
    chain_id: str = CHAIN_ID
    endpoint: str = DEFAULT_ENDPOINT
    address_prefix: str = ADDRESS_PREFIX
    account_index: int = 0
    memo: str = MEMO
    broadcast_timeout: Optional[float] = None  # seconds

    def fee(self) -> Fee:
        """Build the Fee from the configured gas limit and fee amount.

        The fee is always paid in the native denom, whatever is being sent.
        """
        return Fee(
            denom=NATIVE_DENOM,
            amount=_parse_uint(self.fee_amount, "Fee amount"),
            gas_limit=_parse_uint(self.gas_limit, "Gas limit"),
        )
