"""
Volume generation for pump.fun tokens.

Chains buy/sell cycles on a single wallet until a target notional volume is
reached, the wallet runs short of SOL, the cycle cap is hit, or the caller
cancels.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Optional

from loguru import logger

from pumpbot.config import (
    DEFAULT_DELAY_BETWEEN_TRADES,
    DEFAULT_SLIPPAGE,
    FEE_MARGIN_SOL,
    MAX_CYCLES,
    VOLUME_SUCCESS_THRESHOLD,
)
from pumpbot.solana.exceptions import ChainQueryError, TradeError
from pumpbot.solana.models import SessionState, VolumeSession, VolumeSessionSummary
from pumpbot.solana.trade_executor import MintLike, TradeExecutor


class VolumeOrchestrator:
    """
    Orchestrates buy/sell cycles towards a volume target.

    Per-step failures are recorded on the session instead of raised; a run
    always ends with a VolumeSessionSummary.
    """

    def __init__(self,
                 executor: TradeExecutor,
                 max_cycles: int = MAX_CYCLES,
                 fee_margin: float = FEE_MARGIN_SOL):
        """
        Initialize the orchestrator.

        Args:
            executor: TradeExecutor used for every trade
            max_cycles: Safety cap on buy/sell cycles per session
            fee_margin: SOL kept aside for network fees when checking balance
        """
        self.executor = executor
        self.max_cycles = max_cycles
        self.fee_margin = fee_margin

        logger.info(f"VolumeOrchestrator initialized (max {max_cycles} cycles)")

    async def _pace(self, delay: float):
        if delay > 0:
            await asyncio.sleep(delay)

    async def generate_volume(self,
                              mint: MintLike,
                              target_volume: float,
                              per_trade_amount: float,
                              slippage: float = DEFAULT_SLIPPAGE,
                              delay: float = DEFAULT_DELAY_BETWEEN_TRADES,
                              max_cycles: Optional[int] = None,
                              cancel_event: Optional[asyncio.Event] = None) -> VolumeSessionSummary:
        """
        Run buy/sell cycles until the target volume is reached.

        Sell-side volume is credited as per_trade_amount, not the SOL the
        curve actually returned.

        Args:
            mint: Token mint address
            target_volume: Target notional volume in SOL
            per_trade_amount: SOL spent on each buy
            slippage: Slippage tolerance in percent
            delay: Pause after each trade in seconds
            max_cycles: Overrides the orchestrator's cycle cap for this run
            cancel_event: Checked at every cycle boundary; set it to stop the run

        Returns:
            VolumeSessionSummary for the run
        """
        if target_volume <= 0:
            raise ValueError("Target volume must be positive")
        if per_trade_amount <= 0:
            raise ValueError("Per-trade amount must be positive")

        cycle_cap = self.max_cycles if max_cycles is None else max_cycles
        step_volume = Decimal(str(per_trade_amount))
        session = VolumeSession(
            mint=str(mint),
            target_volume=Decimal(str(target_volume)),
            per_trade_amount=step_volume,
        )

        logger.info(
            f"Starting volume session on {mint}: target {target_volume} SOL, "
            f"{per_trade_amount} SOL per trade, delay {delay}s",
            extra={"token_mint": str(mint), "target_volume": target_volume}
        )

        initial_balance = await self._read_balance()

        while session.generated_volume < session.target_volume:
            if session.cycles >= cycle_cap:
                logger.warning(f"Reached maximum cycles limit ({cycle_cap})")
                session.state = SessionState.SAFETY_STOPPED
                break

            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Volume session cancelled")
                session.state = SessionState.CANCELLED
                break

            try:
                balance = await self.executor.get_sol_balance()
            except ChainQueryError as e:
                session.cycles += 1
                logger.error(f"Balance check failed in cycle {session.cycles}: {e}")
                session.record_failure("balance", str(e))
                await self._pace(delay)
                continue

            required = per_trade_amount + self.fee_margin
            if balance < required:
                logger.warning(f"Insufficient balance: {balance:.4f} SOL, need {required:.4f} SOL")
                session.state = SessionState.STALLED
                break

            session.cycles += 1
            logger.info(
                f"Cycle {session.cycles}: {session.generated_volume}/{session.target_volume} SOL generated"
            )

            try:
                buy_result = await self.executor.buy(mint, per_trade_amount, slippage)
                session.buy_count += 1
                session.trades.append(buy_result)
                session.add_volume(step_volume)
            except TradeError as e:
                logger.error(f"Buy failed in cycle {session.cycles}: {e}")
                session.record_failure("buy", str(e))
                await self._pace(delay)
                continue
            await self._pace(delay)

            if session.generated_volume >= session.target_volume:
                break

            try:
                sell_result = await self.executor.sell_all(mint, slippage)
                session.sell_count += 1
                session.trades.append(sell_result)
                session.add_volume(step_volume)
            except TradeError as e:
                # Leftover tokens get picked up by the next cycle's sell
                logger.error(f"Sell failed in cycle {session.cycles}: {e}")
                session.record_failure("sell", str(e))
            await self._pace(delay)

        if session.state == SessionState.RUNNING:
            session.state = SessionState.COMPLETED

        final_balance = await self._read_balance()
        summary = self._summarize(session, initial_balance, final_balance)

        logger.info(
            f"Volume session {summary.state.value}: {summary.generated_volume}/{summary.target_volume} SOL "
            f"({summary.progress_pct:.1f}%), {summary.total_cycles} cycles, "
            f"{summary.buy_count} buys, {summary.sell_count} sells, {summary.failure_count} failures",
            extra={"token_mint": summary.mint, "state": summary.state.value}
        )
        return summary

    async def _read_balance(self) -> float:
        # Reporting only; a failed read should not fail the session
        try:
            return await self.executor.get_sol_balance()
        except ChainQueryError as e:
            logger.warning(f"Could not read SOL balance for session report: {e}")
            return 0.0

    def _summarize(self,
                   session: VolumeSession,
                   initial_balance: float,
                   final_balance: float) -> VolumeSessionSummary:
        target = session.target_volume
        generated = session.generated_volume
        progress = float(generated / target * 100) if target else 0.0

        return VolumeSessionSummary(
            success=generated >= target * Decimal(str(VOLUME_SUCCESS_THRESHOLD)),
            state=session.state,
            mint=session.mint,
            target_volume=float(target),
            generated_volume=float(generated),
            progress_pct=progress,
            total_cycles=session.cycles,
            buy_count=session.buy_count,
            sell_count=session.sell_count,
            failure_count=len(session.failures),
            failures=list(session.failures),
            duration_seconds=(datetime.now() - session.started_at).total_seconds(),
            initial_sol_balance=initial_balance,
            final_sol_balance=final_balance,
            balance_change=final_balance - initial_balance,
        )
