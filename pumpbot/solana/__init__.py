"""
Solana integration for the pump.fun bot.

This package contains modules for interacting with the Solana blockchain and
the pump.fun bonding-curve program: RPC access, token program detection,
curve pricing, trade execution and volume generation.
"""

from pumpbot.solana.models import (
    BondingCurve,
    CurveState,
    FeeConfig,
    GlobalParams,
    SessionState,
    TradeResult,
    VolumeSessionSummary,
)
from pumpbot.solana.exceptions import (
    PumpBotError,
    ConfigurationError,
    ChainQueryError,
    TradeError,
    InsufficientBalanceError,
    QuoteUnavailableError,
    InstructionBuildError,
    SubmissionError,
    NothingToSellError,
)
from pumpbot.solana.chain_client import ChainClient
from pumpbot.solana.token_program import detect_token_program, TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID
from pumpbot.solana.bonding_curve import quote_buy, quote_sell
from pumpbot.solana.pump_sdk import PumpSdk
from pumpbot.solana.trade_executor import TradeExecutor
from pumpbot.solana.volume_orchestrator import VolumeOrchestrator
from pumpbot.solana.wallet_manager import load_keypair
