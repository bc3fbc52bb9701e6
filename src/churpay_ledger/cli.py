#!/usr/bin/env python3
"""Operator tools for the Churpay ledger.

Usage:
    churpay-ledger check-signature "https://sandbox.payfast.co.za/eng/process?merchant_id=...&signature=..."
    churpay-ledger verify-itn captured_itn.txt --passphrase "my passphrase"
    churpay-ledger fees 100.00
    churpay-ledger init-db --database-url sqlite+aiosqlite:///./churpay.db
"""

import argparse
import asyncio
import logging
import sys
from decimal import InvalidOperation
from typing import Optional
from urllib.parse import urlsplit, parse_qsl

from .config import FeeConfig, get_settings
from .database import create_async_engine, create_tables, get_database_url
from .fees import calculate_fees
from .gateway import generate_signature, compute_itn_signature, extract_signature, verify_itn_signature

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _passphrase(value: Optional[str]) -> str:
    if value is not None:
        return value.strip()
    return get_settings().passphrase


def check_signature(url: str, passphrase: str = "") -> int:
    """Recompute the signature of a checkout URL and compare.

    Returns:
        0 on match, 1 otherwise.
    """
    params = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
    submitted = (params.pop("signature", "") or "").strip()
    if not submitted:
        print("No signature in URL")
        return 1

    computed = generate_signature(params, passphrase)
    print(f"submitted: {submitted}")
    print(f"computed:  {computed}")
    if computed.lower() == submitted.lower():
        print("Signature OK")
        return 0
    print("Signature MISMATCH")
    return 1


def verify_itn_file(path: str, passphrase: str = "") -> int:
    """Verify the signature of a raw ITN body saved to ``path``."""
    with open(path, "r", encoding="utf-8") as f:
        raw_body = f.read().strip()

    submitted = extract_signature(raw_body)
    if not submitted:
        print("No signature in ITN body")
        return 1

    print(f"submitted: {submitted}")
    print(f"computed:  {compute_itn_signature(raw_body, passphrase)}")
    if verify_itn_signature(raw_body, passphrase):
        print("Signature OK")
        return 0
    print("Signature MISMATCH")
    return 1


def print_fees(amount: str, config: Optional[FeeConfig] = None) -> int:
    config = config or get_settings().fees
    try:
        breakdown = calculate_fees(amount, config)
    except (ValueError, InvalidOperation):
        logger.error(f"Invalid amount: {amount}")
        return 1

    print(f"amount:              {breakdown.amount:.2f}")
    print(f"platform fee:        {breakdown.platform_fee_amount:.2f} "
          f"({breakdown.platform_fee_fixed} + {breakdown.platform_fee_pct} x amount)")
    print(f"gross (payer pays):  {breakdown.amount_gross:.2f}")
    print(f"superadmin cut:      {breakdown.superadmin_cut_amount:.2f}")
    return 0


async def init_db_async(database_url: Optional[str] = None) -> int:
    """Create all tables in the target database."""
    url = database_url or get_database_url()
    engine = create_async_engine(database_url=url)
    try:
        await create_tables(engine)
    finally:
        await engine.dispose()
    logger.info(f"Tables created in {engine.url.render_as_string(hide_password=True)}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="churpay-ledger",
        description="Operator tools for PayFast reconciliation.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    check_parser = subparsers.add_parser(
        "check-signature",
        help="Verify the signature of a PayFast checkout URL",
    )
    check_parser.add_argument("url", help="Full checkout URL including the signature")
    check_parser.add_argument(
        "--passphrase",
        help="Merchant passphrase (default: PAYFAST_PASSPHRASE)",
    )

    itn_parser = subparsers.add_parser(
        "verify-itn",
        help="Verify the signature of a captured raw ITN body",
    )
    itn_parser.add_argument("file", help="File holding the raw form-encoded body")
    itn_parser.add_argument(
        "--passphrase",
        help="Merchant passphrase (default: PAYFAST_PASSPHRASE)",
    )

    fees_parser = subparsers.add_parser(
        "fees",
        help="Show the fee breakdown for a donation amount",
    )
    fees_parser.add_argument("amount", help="Base donation amount, e.g. 100.00")

    db_parser = subparsers.add_parser(
        "init-db",
        help="Create database tables",
    )
    db_parser.add_argument(
        "--database-url",
        help="Database URL (default: DATABASE_URL)",
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Optional list of command-line arguments (for testing).

    Returns:
        Exit code.
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == "check-signature":
        return check_signature(parsed_args.url, _passphrase(parsed_args.passphrase))

    if parsed_args.command == "verify-itn":
        try:
            return verify_itn_file(parsed_args.file, _passphrase(parsed_args.passphrase))
        except OSError as e:
            logger.error(f"Cannot read {parsed_args.file}: {e}")
            return 1

    if parsed_args.command == "fees":
        return print_fees(parsed_args.amount)

    if parsed_args.command == "init-db":
        return asyncio.run(init_db_async(parsed_args.database_url))

    return 0


if __name__ == "__main__":
    sys.exit(main())
