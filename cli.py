#!/usr/bin/env python3
"""
ZIG Multisend: CLI for batch payments on ZIGChain.

Usage:
    zig-multisend send --file <path> --mnemonic-file <path> [--denom <denom>] [--dry-run]
    zig-multisend validate --file <path> [--denom <denom>]
    zig-multisend generate-template --output <path> [--format csv|json] [--count <n>]

Examples:
    # Pay everyone in recipients.csv in uzig (amounts in ZIG)
    zig-multisend send --file recipients.csv --mnemonic-file ~/.zig/mnemonic

    # Send a factory token; amounts are already in base units
    zig-multisend send --file recipients.csv --mnemonic-file ~/.zig/mnemonic \\
        --denom factory/zig1.../token

    # Check a recipient list without connecting a wallet
    zig-multisend validate --file recipients.csv

    # Generate a template CSV file
    zig-multisend generate-template --output recipients.csv --count 5
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import json
import logging
import sys
from decimal import Decimal
from pathlib import Path

from zig_multisend import __version__
from zig_multisend.batch import (
    ADDRESS_FIELD,
    AMOUNT_FIELD,
    exact_sum,
    format_amount,
    normalize_recipients,
    parse_recipients,
)
from zig_multisend.chain import MnemonicWallet, connect_with_signer
from zig_multisend.config import (
    CHAIN_ID,
    DEFAULT_ENDPOINT,
    DEFAULT_FEE_AMOUNT,
    DEFAULT_GAS_LIMIT,
    NATIVE_DENOM,
    MultisendConfig,
)
from zig_multisend.errors import ErrorRecord, MultisendError
from zig_multisend.session import SessionManager
from zig_multisend.state import AppState
from zig_multisend.submit import SubmissionController


BANNER = r"""
  ____ ___ ____   __  __       _ _   _                    _
 |_  /|_ _/ ___| |  \/  |_   _| | |_(_)___  ___ _ __   __| |
  / /  | | |  _  | |\/| | | | | | __| / __|/ _ \ '_ \ / _` |
 /___||___\____| |_|  |_|\__,_|_|\__|_|___/\___|_| |_|\__,_|

  Batch Payments for ZIGChain
"""


def _config_from_args(args: argparse.Namespace) -> MultisendConfig:
    return MultisendConfig(
        denom=args.denom,
        gas_limit=args.gas_limit,
        fee_amount=args.fee_amount,
        chain_id=args.chain_id,
        endpoint=args.endpoint,
        account_index=args.account_index,
        broadcast_timeout=args.timeout,
    )


async def _send(args: argparse.Namespace, config: MultisendConfig, wallet) -> int:
    state = AppState()
    sessions = SessionManager(state, config, wallet, connect_with_signer)
    controller = SubmissionController(state, sessions, config)

    loaded = await controller.load_file(args.file)
    if isinstance(loaded, ErrorRecord):
        print(f"Error: {loaded.message}")
        return 1
    print(f"Loaded {len(loaded)} recipients from {args.file}")

    try:
        session = await sessions.connect()
    except MultisendError as e:
        print(f"Error: {e.message}")
        return 1

    print(f"Network: {config.chain_id} ({config.endpoint})")
    print(f"Wallet: {session.address}")
    print()

    try:
        batch, fee = controller.preview()
    except MultisendError as e:
        print(f"Error: {state.record_error(e).message}")
        return 1

    print(batch.summary())
    print(f"Fee: {fee.amount} {fee.denom}, gas limit {fee.gas_limit}")

    # Dry run
    if args.dry_run:
        print("\n[DRY RUN] Message that would be signed:")
        print(json.dumps(batch.to_message(), indent=2))
        print(json.dumps(fee.to_std_fee(), indent=2))
        sessions.disconnect()
        return 0

    # Confirm
    if not args.yes:
        response = input(
            f"\nProceed with transfer of {format_amount(batch.total_amount)} {batch.denom}? [y/N]: "
        )
        if response.lower() not in ("y", "yes"):
            print("Aborted.")
            sessions.disconnect()
            return 0

    print("\nSigning and broadcasting...")
    result = await controller.send()
    if isinstance(result, ErrorRecord):
        print(f"Error ({result.stage.value}): {result.message}")
        return 1

    print(f"TxHash: {result.tx_hash}")
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    """Execute a multisend."""
    print(BANNER)

    config = _config_from_args(args)
    wallet = MnemonicWallet.from_file(args.mnemonic_file, prefix=config.address_prefix)
    return asyncio.run(_send(args, config, wallet))


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a recipient list."""
    print(BANNER)

    try:
        recipients = parse_recipients(args.file)
        normalized = normalize_recipients(recipients, args.denom)
    except MultisendError as e:
        print(f"\n✗ {e.message}")
        return 1

    amounts = [r.base_amount for r in normalized]
    total = exact_sum(amounts)
    print(f"Loaded {len(normalized)} recipients from {args.file}")
    print(f"\n✓ All {len(normalized)} recipients are valid")
    print(f"  Total amount: {format_amount(total)} {args.denom}")
    print(f"  Min: {format_amount(min(amounts))} {args.denom}")
    print(f"  Max: {format_amount(max(amounts))} {args.denom}")

    # Show preview
    print(f"\nPreview (first 5):")
    for r in normalized[:5]:
        print(f"  {r.address} → {format_amount(r.base_amount)} {args.denom}")
    if len(normalized) > 5:
        print(f"  ... and {len(normalized) - 5} more")

    return 0


def _template_rows(count: int) -> list[dict]:
    # 1, 1.5, 2, ... ZIG so a default template totals a round number
    step = Decimal("0.5")
    return [
        {
            ADDRESS_FIELD: f"zig1recipient{n:03d}placeholder",
            AMOUNT_FIELD: str(Decimal(1) + step * (n - 1)),
        }
        for n in range(1, count + 1)
    ]


def cmd_generate_template(args: argparse.Namespace) -> int:
    """Write a sample recipient list with the `address` and `amount` columns."""
    print(BANNER)

    if args.count < 1:
        print("Error: --count must be at least 1")
        return 1

    output = Path(args.output)
    rows = _template_rows(args.count)

    if args.format == "json":
        output.write_text(json.dumps(rows, indent=2) + "\n", encoding="utf-8")
    else:
        with open(output, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=[ADDRESS_FIELD, AMOUNT_FIELD])
            writer.writeheader()
            writer.writerows(rows)

    print(f"Wrote {len(rows)} sample {args.format.upper()} rows to {output}")
    print(f"\nOnly '{ADDRESS_FIELD}' and '{AMOUNT_FIELD}' are read; other columns are ignored.")
    print(f"Amounts are in ZIG for {NATIVE_DENOM}, base units for any other denom.")
    print(f"Replace the placeholders, then check the list with:")
    print(f"  zig-multisend validate --file {output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zig-multisend",
        description="ZIG Multisend: Batch payments for ZIGChain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"zig-multisend {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Send command
    send_parser = subparsers.add_parser(
        "send", help="Execute a multisend transaction"
    )
    send_parser.add_argument(
        "--file", "-f", required=True, help="Path to recipient list (CSV or JSON)"
    )
    send_parser.add_argument(
        "--mnemonic-file", "-m", required=True, help="File holding the wallet mnemonic"
    )
    send_parser.add_argument(
        "--denom", "-d", default=NATIVE_DENOM,
        help=f"Token denom to send. Default: {NATIVE_DENOM}"
    )
    send_parser.add_argument(
        "--gas-limit", default=DEFAULT_GAS_LIMIT, help=f"Gas limit. Default: {DEFAULT_GAS_LIMIT}"
    )
    send_parser.add_argument(
        "--fee-amount", default=DEFAULT_FEE_AMOUNT,
        help=f"Fee in {NATIVE_DENOM}. Default: {DEFAULT_FEE_AMOUNT}"
    )
    send_parser.add_argument(
        "--endpoint", "-e", default=DEFAULT_ENDPOINT,
        help=f"cosmpy endpoint (rest+https://... or grpc+https://...). Default: {DEFAULT_ENDPOINT}"
    )
    send_parser.add_argument(
        "--chain-id", default=CHAIN_ID, help=f"Chain id. Default: {CHAIN_ID}"
    )
    send_parser.add_argument(
        "--account-index", type=int, default=0,
        help="Which wallet account to send from. Default: 0 (first)"
    )
    send_parser.add_argument(
        "--timeout", type=float, default=None,
        help="Seconds to wait for the broadcast before giving up"
    )
    send_parser.add_argument(
        "--dry-run", action="store_true",
        help="Print the assembled message without signing"
    )
    send_parser.add_argument(
        "--yes", "-y", action="store_true",
        help="Skip confirmation prompt"
    )

    # Validate command
    validate_parser = subparsers.add_parser(
        "validate", help="Validate a recipient list"
    )
    validate_parser.add_argument(
        "--file", "-f", required=True, help="Path to recipient list"
    )
    validate_parser.add_argument(
        "--denom", "-d", default=NATIVE_DENOM, help="Token denom the list is for"
    )

    # Generate template command
    template_parser = subparsers.add_parser(
        "generate-template", help="Generate a template recipient file"
    )
    template_parser.add_argument(
        "--output", "-o", default="recipients.csv", help="Output file path"
    )
    template_parser.add_argument(
        "--format", choices=["csv", "json"], default="csv", help="File format"
    )
    template_parser.add_argument(
        "--count", "-c", type=int, default=5, help="Number of sample recipients"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "send": cmd_send,
        "validate": cmd_validate,
        "generate-template": cmd_generate_template,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
