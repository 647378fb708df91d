#!/usr/bin/env python3
"""
LEDGERLOCK - Main Entry Point
=============================

Usage:
    ledgerlock serve --port 5000
    ledgerlock token 0x1C00B42fDeb1fe0F7b10c7c444645133423de484
    ledgerlock simulate --api-url http://localhost:5000/api/v1
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from ledgerlock.api.config import settings


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="ledgerlock",
        description="LEDGERLOCK - Ledger-backed access control",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-l", "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL,
        help=f"Logging level (default: {settings.LOG_LEVEL})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP gateway")
    serve.add_argument("--host", type=str, default=settings.HOST)
    serve.add_argument("--port", type=int, default=settings.PORT)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    token = subparsers.add_parser("token", help="Mint a signer token for an address")
    token.add_argument("address", type=str, help="Address the token signs for")
    token.add_argument(
        "--expires-minutes",
        type=int,
        default=None,
        help=f"Token lifetime (default: {settings.SIGNER_TOKEN_EXPIRE_MINUTES})",
    )

    simulate = subparsers.add_parser("simulate", help="Run the device simulation")
    simulate.add_argument(
        "--api-url",
        type=str,
        default=settings.SIMULATION_API_URL,
        help=f"Gateway base URL (default: {settings.SIMULATION_API_URL})",
    )
    simulate.add_argument(
        "--setup-only",
        action="store_true",
        help="Register devices and grant permissions, then exit",
    )

    return parser.parse_args(argv)


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "ledgerlock.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )
    return 0


def mint_token(args: argparse.Namespace) -> int:
    from ledgerlock.api.auth.jwt import create_signer_token

    print(create_signer_token(args.address, expires_minutes=args.expires_minutes))
    return 0


async def simulate(args: argparse.Namespace) -> int:
    from ledgerlock.simulation.runner import SimulationRunner

    logger = logging.getLogger("LEDGERLOCK_SIMULATION")

    async with SimulationRunner(base_url=args.api_url) as runner:
        if args.setup_only:
            await runner.setup()
            return 0

        logger.info("Simulation running. Press Ctrl+C to stop.")
        try:
            await runner.run_forever()
        except asyncio.CancelledError:
            logger.info("Shutdown requested...")

    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Synchronous entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        if args.command == "serve":
            exit_code = serve(args)
        elif args.command == "token":
            exit_code = mint_token(args)
        else:
            exit_code = asyncio.run(simulate(args))
    except KeyboardInterrupt:
        exit_code = 0
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
