"""
Bonding curve pricing for pump.fun tokens.

All functions here are pure and work in integer lamports and raw token
units, so a quote can be re-derived exactly from the same curve snapshot.
"""

from decimal import Decimal, ROUND_DOWN
from typing import List

from pumpbot.config import LAMPORTS_PER_SOL
from pumpbot.solana.models import BondingCurve, CurveState, Fees, FeeTier

FEE_DENOMINATOR = 10_000
DEFAULT_PUBKEY = "11111111111111111111111111111111"


def _ceil_div(a: int, b: int) -> int:
    return (a + b - 1) // b


def has_creator(curve: BondingCurve) -> bool:
    return bool(curve.creator) and curve.creator != DEFAULT_PUBKEY


def bonding_curve_market_cap(curve: BondingCurve) -> int:
    """Market cap in lamports implied by the virtual reserves."""
    if curve.virtual_token_reserves == 0:
        return 0
    return curve.virtual_sol_reserves * curve.token_total_supply // curve.virtual_token_reserves


def calculate_fee_tier(fee_tiers: List[FeeTier], market_cap: int) -> Fees:
    """Pick the highest tier whose threshold the market cap has reached."""
    first_tier = fee_tiers[0]
    if market_cap < first_tier.market_cap_lamports_threshold:
        return first_tier.fees

    for tier in reversed(fee_tiers):
        if market_cap >= tier.market_cap_lamports_threshold:
            return tier.fees

    return first_tier.fees


def compute_fees(state: CurveState) -> Fees:
    """
    Fee rates in effect for a curve snapshot.

    A fee configuration, when present, overrides the global fee fields:
    tiered by market cap if it has tiers, flat otherwise.
    """
    if state.fee_config is not None:
        if state.fee_config.fee_tiers:
            market_cap = bonding_curve_market_cap(state.bonding_curve)
            return calculate_fee_tier(state.fee_config.fee_tiers, market_cap)
        return state.fee_config.flat_fees

    return Fees(
        protocol_fee_bps=state.global_params.fee_basis_points,
        creator_fee_bps=state.global_params.creator_fee_basis_points,
    )


def total_fee_bps(state: CurveState) -> int:
    fees = compute_fees(state)
    creator_fee = fees.creator_fee_bps if has_creator(state.bonding_curve) else 0
    return fees.protocol_fee_bps + creator_fee


def _net_buy_input(state: CurveState, sol_amount: int) -> int:
    # The program charges fees on top of the curve input, so strip them first.
    return (sol_amount - 1) * FEE_DENOMINATOR // (FEE_DENOMINATOR + total_fee_bps(state))


def quote_buy(state: CurveState, sol_amount: int) -> int:
    """
    Tokens received for spending sol_amount lamports.

    Returns 0 for a zero input or a migrated curve. Never exceeds the
    curve's real token reserves.
    """
    if sol_amount < 0:
        raise ValueError("Amount must be non-negative")

    curve = state.bonding_curve
    if sol_amount == 0 or curve.virtual_token_reserves == 0:
        return 0

    input_amount = _net_buy_input(state, sol_amount)
    tokens = input_amount * curve.virtual_token_reserves // (curve.virtual_sol_reserves + input_amount)
    return min(tokens, curve.real_token_reserves)


def quote_sell(state: CurveState, token_amount: int) -> int:
    """
    Lamports received for selling token_amount raw token units, net of fees.

    Returns 0 for a zero input or a migrated curve. Never exceeds the
    curve's real SOL reserves.
    """
    if token_amount < 0:
        raise ValueError("Amount must be non-negative")

    curve = state.bonding_curve
    if token_amount == 0 or curve.virtual_token_reserves == 0:
        return 0

    sol_cost = token_amount * curve.virtual_sol_reserves // (curve.virtual_token_reserves + token_amount)
    fee = _ceil_div(sol_cost * total_fee_bps(state), FEE_DENOMINATOR)
    return max(0, min(sol_cost - fee, curve.real_sol_reserves))


def buy_with_slippage(sol_amount: int, slippage: float) -> int:
    """Maximum SOL cost accepted for a buy at the given slippage percentage."""
    factor = Decimal(1) + Decimal(str(slippage)) / Decimal(100)
    return int((Decimal(sol_amount) * factor).to_integral_value(rounding=ROUND_DOWN))


def sell_with_slippage(sol_amount: int, slippage: float) -> int:
    """Minimum SOL output accepted for a sell at the given slippage percentage."""
    factor = Decimal(1) - Decimal(str(slippage)) / Decimal(100)
    return max(0, int((Decimal(sol_amount) * factor).to_integral_value(rounding=ROUND_DOWN)))


def apply_buy(state: CurveState, sol_amount: int) -> CurveState:
    """Curve snapshot as it would look after a buy of sol_amount lamports."""
    tokens = quote_buy(state, sol_amount)
    net_sol = _net_buy_input(state, sol_amount) if tokens else 0
    curve = state.bonding_curve
    updated = curve.model_copy(update={
        "virtual_token_reserves": curve.virtual_token_reserves - tokens,
        "virtual_sol_reserves": curve.virtual_sol_reserves + net_sol,
        "real_token_reserves": curve.real_token_reserves - tokens,
        "real_sol_reserves": curve.real_sol_reserves + net_sol,
    })
    return state.model_copy(update={"bonding_curve": updated})


def apply_sell(state: CurveState, token_amount: int) -> CurveState:
    """Curve snapshot as it would look after selling token_amount raw units."""
    curve = state.bonding_curve
    if token_amount == 0 or curve.virtual_token_reserves == 0:
        return state

    gross_sol = token_amount * curve.virtual_sol_reserves // (curve.virtual_token_reserves + token_amount)
    gross_sol = min(gross_sol, curve.real_sol_reserves)
    updated = curve.model_copy(update={
        "virtual_token_reserves": curve.virtual_token_reserves + token_amount,
        "virtual_sol_reserves": curve.virtual_sol_reserves - gross_sol,
        "real_token_reserves": curve.real_token_reserves + token_amount,
        "real_sol_reserves": curve.real_sol_reserves - gross_sol,
    })
    return state.model_copy(update={"bonding_curve": updated})


def price_per_token(curve: BondingCurve, decimals: int = 6) -> float:
    """Spot price in SOL per whole token."""
    if curve.virtual_token_reserves == 0:
        return 0.0
    return (curve.virtual_sol_reserves / LAMPORTS_PER_SOL) / (curve.virtual_token_reserves / 10 ** decimals)
