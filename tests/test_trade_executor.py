"""
Tests for TradeExecutor against an in-memory ledger
"""

import pytest
from solders.pubkey import Pubkey

from pumpbot.solana.exceptions import (
    ConfigurationError,
    InstructionBuildError,
    InsufficientBalanceError,
    NothingToSellError,
    QuoteUnavailableError,
    SubmissionError,
    TradeError,
)
from pumpbot.solana.models import TradeDirection
from pumpbot.solana.pump_sdk import BUY_DISCRIMINATOR, PUMP_PROGRAM_ID, PumpSdkError, SELL_DISCRIMINATOR
from pumpbot.solana.token_program import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID
from pumpbot.solana.trade_executor import TradeExecutor

from conftest import LAMPORTS, TOKEN_DECIMALS, make_curve


def _program_ids(transaction):
    message = transaction.message
    return [message.account_keys[ix.program_id_index] for ix in message.instructions]


def _pump_instruction_data(transaction):
    message = transaction.message
    for ix in message.instructions:
        if message.account_keys[ix.program_id_index] == PUMP_PROGRAM_ID:
            return bytes(ix.data)
    raise AssertionError("No pump.fun instruction in transaction")


# =============================================================================
# BUY
# =============================================================================

@pytest.mark.asyncio
async def test_buy_success(executor, chain, sdk, mint):
    result = await executor.buy(mint, 0.01, slippage=1)

    assert result.direction == TradeDirection.BUY
    assert result.mint == str(mint)
    assert result.sol_amount == 10_000_000
    assert result.token_amount > 0
    assert result.token_program == str(TOKEN_PROGRAM_ID)
    assert result.signature

    assert len(chain.submissions) == 1
    assert chain.token_amounts[mint] == result.token_amount


@pytest.mark.asyncio
async def test_buy_creates_token_account_and_sets_budget(executor, chain, mint):
    await executor.buy(mint, 0.01)

    programs = [str(p) for p in _program_ids(chain.submissions[0])]
    assert programs[0] == "ComputeBudget111111111111111111111111111111"
    assert programs[1] == "ComputeBudget111111111111111111111111111111"
    assert programs[2] == "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
    assert programs[3] == str(PUMP_PROGRAM_ID)


@pytest.mark.asyncio
async def test_buy_instruction_carries_slippage_bound(executor, chain, mint):
    result = await executor.buy(mint, 0.01, slippage=2)

    data = _pump_instruction_data(chain.submissions[0])
    assert data[:8] == BUY_DISCRIMINATOR
    assert int.from_bytes(data[8:16], "little") == result.token_amount
    assert int.from_bytes(data[16:24], "little") == 10_200_000


@pytest.mark.asyncio
async def test_buy_uses_token_2022_program(wallet, mint, sdk):
    chain = sdk.chain
    chain.add_mint(mint, owner=TOKEN_2022_PROGRAM_ID)
    executor = TradeExecutor(chain, wallet, sdk=sdk)

    result = await executor.buy(mint, 0.01)

    assert result.token_program == str(TOKEN_2022_PROGRAM_ID)


@pytest.mark.asyncio
async def test_buy_accepts_string_mint(executor, mint):
    result = await executor.buy(str(mint), 0.01)
    assert result.mint == str(mint)


@pytest.mark.asyncio
async def test_buy_insufficient_balance(executor, chain, sdk, mint):
    chain.lamports = 5_000_000

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await executor.buy(mint, 0.01)

    assert exc_info.value.required == 0.01
    assert exc_info.value.available == pytest.approx(0.005)
    assert sdk.fetch_count == 0
    assert chain.submissions == []


@pytest.mark.asyncio
async def test_buy_rejects_non_positive_amount(executor, chain, mint):
    with pytest.raises(ValueError):
        await executor.buy(mint, 0)
    assert chain.submissions == []


@pytest.mark.asyncio
async def test_buy_quote_unavailable_when_fetch_fails(executor, chain, sdk, mint):
    sdk.fail_fetch = True

    with pytest.raises(QuoteUnavailableError):
        await executor.buy(mint, 0.01)
    assert chain.submissions == []


@pytest.mark.asyncio
async def test_buy_quote_unavailable_on_migrated_curve(executor, chain, sdk, mint):
    sdk.state = sdk.state.model_copy(update={"bonding_curve": make_curve(complete=True)})

    with pytest.raises(QuoteUnavailableError, match="complete"):
        await executor.buy(mint, 0.01)
    assert chain.submissions == []


@pytest.mark.asyncio
async def test_buy_instruction_build_failure(executor, chain, sdk, mint, monkeypatch):
    def reject(**kwargs):
        raise PumpSdkError("Unsupported account layout")

    monkeypatch.setattr(sdk, "buy_instructions", reject)

    with pytest.raises(InstructionBuildError):
        await executor.buy(mint, 0.01)
    assert chain.submissions == []


@pytest.mark.asyncio
async def test_buy_submission_failure(executor, chain, mint):
    chain.fail_directions = {"buy"}

    with pytest.raises(SubmissionError):
        await executor.buy(mint, 0.01)
    assert mint not in chain.token_amounts


@pytest.mark.asyncio
async def test_trade_errors_share_a_base(executor, chain, mint):
    chain.lamports = 0
    with pytest.raises(TradeError):
        await executor.buy(mint, 0.01)


# =============================================================================
# SELL
# =============================================================================

@pytest.mark.asyncio
async def test_sell_converts_ui_amount_with_decimals(executor, chain, mint):
    chain.token_amounts[mint] = 5 * 10 ** TOKEN_DECIMALS

    result = await executor.sell(mint, 1.5, slippage=1)

    assert result.direction == TradeDirection.SELL
    assert result.token_amount == 1_500_000
    assert chain.token_amounts[mint] == 3_500_000

    data = _pump_instruction_data(chain.submissions[0])
    assert data[:8] == SELL_DISCRIMINATOR
    assert int.from_bytes(data[8:16], "little") == 1_500_000
    assert int.from_bytes(data[16:24], "little") < result.sol_amount


@pytest.mark.asyncio
async def test_sell_amount_rounding_to_zero(executor, chain, mint):
    with pytest.raises(NothingToSellError):
        await executor.sell(mint, 0.0000001)
    assert chain.submissions == []


@pytest.mark.asyncio
async def test_sell_missing_mint_account(executor, chain):
    unknown = Pubkey.new_unique()
    with pytest.raises(QuoteUnavailableError):
        await executor.sell(unknown, 1)
    assert chain.submissions == []


@pytest.mark.asyncio
async def test_sell_all_after_buy(executor, chain, mint):
    bought = await executor.buy(mint, 0.01)

    result = await executor.sell_all(mint)

    assert result.token_amount == bought.token_amount
    assert result.sol_amount < bought.sol_amount
    assert chain.token_amounts[mint] == 0
    assert len(chain.submissions) == 2


@pytest.mark.asyncio
async def test_sell_all_without_token_account(executor, chain, mint):
    with pytest.raises(NothingToSellError):
        await executor.sell_all(mint)
    assert chain.submissions == []


@pytest.mark.asyncio
async def test_sell_all_with_zero_balance(executor, chain, sdk, mint):
    chain.token_amounts[mint] = 0

    with pytest.raises(NothingToSellError):
        await executor.sell_all(mint)
    assert chain.submissions == []
    assert sdk.fetch_count == 0


@pytest.mark.asyncio
async def test_sell_submission_failure(executor, chain, mint):
    chain.token_amounts[mint] = 10 ** TOKEN_DECIMALS
    chain.fail_directions = {"sell"}

    with pytest.raises(SubmissionError):
        await executor.sell_all(mint)
    assert chain.token_amounts[mint] == 10 ** TOKEN_DECIMALS


# =============================================================================
# QUERIES AND CONFIGURATION
# =============================================================================

@pytest.mark.asyncio
async def test_balances_and_wallet_info(executor, chain, wallet, mint):
    chain.token_amounts[mint] = 2_500_000

    assert await executor.get_sol_balance() == 10.0
    assert await executor.get_token_balance(mint) == 2.5
    assert await executor.get_token_balance(Pubkey.new_unique()) == 0.0

    info = await executor.get_wallet_info()
    assert info.address == str(wallet.pubkey())
    assert info.sol_balance == 10.0


@pytest.mark.asyncio
async def test_detect_token_program(executor, mint):
    assert await executor.detect_token_program(mint) == TOKEN_PROGRAM_ID


def test_sdk_missing_methods_rejected(chain, wallet):
    class PartialSdk:
        async def fetch_global(self):
            return None

    with pytest.raises(ConfigurationError, match="fetch_buy_state"):
        TradeExecutor(chain, wallet, sdk=PartialSdk())


def test_default_sdk_is_created(chain, wallet):
    executor = TradeExecutor(chain, wallet)
    assert executor.sdk.chain is chain
    assert executor.pubkey == wallet.pubkey()
