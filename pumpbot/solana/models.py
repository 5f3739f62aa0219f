"""
Models for pump.fun trading operations.
"""
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class Fees(BaseModel):
    """Fee rates in basis points."""
    model_config = ConfigDict(frozen=True)

    lp_fee_bps: int = 0
    protocol_fee_bps: int = 0
    creator_fee_bps: int = 0


class FeeTier(BaseModel):
    """Fee rates that apply from a market cap threshold upward."""
    model_config = ConfigDict(frozen=True)

    market_cap_lamports_threshold: int
    fees: Fees


class FeeConfig(BaseModel):
    """Fee configuration account of the pump fees program."""
    model_config = ConfigDict(frozen=True)

    flat_fees: Fees = Field(default_factory=Fees)
    fee_tiers: List[FeeTier] = Field(default_factory=list)


class GlobalParams(BaseModel):
    """Global protocol parameters of the bonding-curve program."""
    model_config = ConfigDict(frozen=True)

    fee_recipient: str
    initial_virtual_token_reserves: int = 0
    initial_virtual_sol_reserves: int = 0
    initial_real_token_reserves: int = 0
    token_total_supply: int = 0
    fee_basis_points: int = 0
    creator_fee_basis_points: int = 0


class BondingCurve(BaseModel):
    """Reserve snapshot of a single token's bonding curve."""
    model_config = ConfigDict(frozen=True)

    virtual_token_reserves: int
    virtual_sol_reserves: int
    real_token_reserves: int
    real_sol_reserves: int
    token_total_supply: int = 0
    complete: bool = False
    creator: Optional[str] = None


class CurveState(BaseModel):
    """Everything a quote depends on, fetched within one trade attempt."""
    model_config = ConfigDict(frozen=True)

    global_params: GlobalParams
    bonding_curve: BondingCurve
    fee_config: Optional[FeeConfig] = None


class TradeDirection(str, Enum):
    BUY = "buy"
    SELL = "sell"


class TradeQuote(BaseModel):
    """A quote with its slippage bound, consumed immediately by instruction building."""
    model_config = ConfigDict(frozen=True)

    direction: TradeDirection
    sol_amount: int  # lamports: spend for buys, expected output for sells
    token_amount: int  # raw token units
    slippage: float
    max_sol_cost: Optional[int] = None
    min_sol_output: Optional[int] = None


class TradeResult(BaseModel):
    """Outcome of one confirmed trade."""
    model_config = ConfigDict(frozen=True)

    signature: str
    direction: TradeDirection
    mint: str
    sol_amount: int
    token_amount: int
    slippage: float
    token_program: str
    executed_at: datetime = Field(default_factory=datetime.now)


class TokenBalance(BaseModel):
    """Balance of the wallet's token account for one mint."""
    model_config = ConfigDict(frozen=True)

    amount: int = 0
    decimals: int = 0
    ui_amount: float = 0.0


class WalletInfo(BaseModel):
    """Information about the trading wallet."""
    address: str
    sol_balance: float


class SessionState(str, Enum):
    RUNNING = "running"
    STALLED = "stalled"
    COMPLETED = "completed"
    SAFETY_STOPPED = "safety_stopped"
    CANCELLED = "cancelled"


class StepFailure(BaseModel):
    """A failed step recorded by a volume session."""
    cycle: int
    step: str  # buy, sell or balance
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)


class VolumeSession(BaseModel):
    """Mutable progress of one volume generation run."""
    mint: str
    target_volume: Decimal
    per_trade_amount: Decimal
    generated_volume: Decimal = Decimal("0")
    cycles: int = 0
    buy_count: int = 0
    sell_count: int = 0
    failures: List[StepFailure] = Field(default_factory=list)
    trades: List[TradeResult] = Field(default_factory=list)
    state: SessionState = SessionState.RUNNING
    started_at: datetime = Field(default_factory=datetime.now)

    def add_volume(self, amount: Decimal):
        """Credit traded volume. The counter only ever grows."""
        if amount < 0:
            raise ValueError("Volume increments must be non-negative")
        self.generated_volume += amount

    def record_failure(self, step: str, message: str):
        self.failures.append(StepFailure(cycle=self.cycles, step=step, message=message))


class VolumeSessionSummary(BaseModel):
    """Final report of a volume generation run."""
    model_config = ConfigDict(frozen=True)

    success: bool
    state: SessionState
    mint: str
    target_volume: float
    generated_volume: float
    progress_pct: float
    total_cycles: int
    buy_count: int
    sell_count: int
    failure_count: int
    failures: List[StepFailure]
    duration_seconds: float
    initial_sol_balance: float
    final_sol_balance: float
    balance_change: float
