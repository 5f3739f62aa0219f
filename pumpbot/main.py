#!/usr/bin/env python
import argparse
import asyncio
import logging
import sys
from typing import Callable, List, Optional

from loguru import logger

from pumpbot.config import (
    DEFAULT_DELAY_BETWEEN_TRADES,
    DEFAULT_SLIPPAGE,
    LOG_LEVEL,
    MAX_CYCLES,
)
from pumpbot.solana.chain_client import ChainClient
from pumpbot.solana.exceptions import PumpBotError
from pumpbot.solana.trade_executor import TradeExecutor
from pumpbot.solana.volume_orchestrator import VolumeOrchestrator
from pumpbot.solana.wallet_manager import load_keypair
from pumpbot.utils.validation_utils import (
    log_validation_result,
    validate_slippage,
    validate_sol_amount,
    validate_token_address,
    validate_token_amount,
)


def setup_logging(level: str = LOG_LEVEL):
    """Configure structured logging with loguru."""
    logger.remove()  # Remove default handler
    logger.add(
        "logs/pumpbot_{time}.log",
        rotation="1 day",
        retention="14 days",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}",
        serialize=True,  # JSON formatting for structured logs
    )

    # Also send logs to stdout
    logger.add(
        lambda msg: print(msg, end=""),
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"
    )

    # Redirect httpx/solana loggers to loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to loguru."""
    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _validated(validator: Callable, name: str):
    """Turn a (is_valid, value_or_error) validator into an argparse type."""
    def parse(text: str):
        is_valid, value = validator(text)
        log_validation_result(name, text, is_valid, None if is_valid else value)
        if not is_valid:
            raise argparse.ArgumentTypeError(value)
        return value
    return parse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="pump.fun trading and volume bot")
    parser.add_argument(
        "--slippage", "-s", type=_validated(validate_slippage, "slippage"), default=DEFAULT_SLIPPAGE,
        help=f"Slippage tolerance in percent (default: {DEFAULT_SLIPPAGE})"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("info", help="Show wallet address and SOL balance")

    mint_type = _validated(validate_token_address, "token_address")

    balance = subparsers.add_parser("balance", help="Show token balance for a mint")
    balance.add_argument("mint", type=mint_type)

    buy = subparsers.add_parser("buy", help="Buy a token with SOL")
    buy.add_argument("mint", type=mint_type)
    buy.add_argument("sol_amount", type=_validated(validate_sol_amount, "sol_amount"))

    sell = subparsers.add_parser("sell", help="Sell an amount of a token")
    sell.add_argument("mint", type=mint_type)
    sell.add_argument("token_amount", type=_validated(validate_token_amount, "token_amount"))

    sell_all = subparsers.add_parser("sell-all", help="Sell the entire balance of a token")
    sell_all.add_argument("mint", type=mint_type)

    volume = subparsers.add_parser("volume", help="Generate volume with buy/sell cycles")
    volume.add_argument("mint", type=mint_type)
    volume.add_argument("target_volume", type=_validated(validate_sol_amount, "target_volume"))
    volume.add_argument("per_trade_amount", type=_validated(validate_sol_amount, "per_trade_amount"))
    volume.add_argument(
        "--delay", "-d", type=float, default=DEFAULT_DELAY_BETWEEN_TRADES,
        help=f"Seconds between trades (default: {DEFAULT_DELAY_BETWEEN_TRADES})"
    )
    volume.add_argument(
        "--max-cycles", type=int, default=MAX_CYCLES,
        help=f"Safety limit on buy/sell cycles (default: {MAX_CYCLES})"
    )

    return parser


async def run_command(args: argparse.Namespace, executor: TradeExecutor) -> None:
    if args.command == "info":
        info = await executor.get_wallet_info()
        print(f"Address: {info.address}")
        print(f"SOL Balance: {info.sol_balance:.4f} SOL")

    elif args.command == "balance":
        balance = await executor.get_token_balance(args.mint)
        print(f"Token balance: {balance}")

    elif args.command == "buy":
        result = await executor.buy(args.mint, args.sol_amount, args.slippage)
        print(f"Buy transaction completed: {result.signature}")

    elif args.command == "sell":
        result = await executor.sell(args.mint, args.token_amount, args.slippage)
        print(f"Sell transaction completed: {result.signature}")

    elif args.command == "sell-all":
        result = await executor.sell_all(args.mint, args.slippage)
        print(f"Sell all transaction completed: {result.signature}")

    elif args.command == "volume":
        orchestrator = VolumeOrchestrator(executor, max_cycles=args.max_cycles)
        cancel_event = asyncio.Event()
        task = asyncio.ensure_future(orchestrator.generate_volume(
            args.mint, args.target_volume, args.per_trade_amount,
            slippage=args.slippage, delay=args.delay, cancel_event=cancel_event,
        ))
        try:
            summary = await asyncio.shield(task)
        except asyncio.CancelledError:
            # Let the current cycle finish, then report
            cancel_event.set()
            summary = await task
        print(summary.model_dump_json(indent=2))


async def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run one command and return the exit code."""
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        wallet = load_keypair()
    except PumpBotError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    chain = ChainClient()
    try:
        executor = TradeExecutor(chain, wallet)
        await run_command(args, executor)
        return 0
    except PumpBotError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        await chain.close()


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    cli()
