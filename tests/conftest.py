"""
Shared fixtures: an in-memory ledger and a pump.fun SDK that serves curve
state from memory while building real instructions.
"""

from typing import Dict, List, Optional, Set

import pytest
from solders.account import Account
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from pumpbot.solana.bonding_curve import apply_buy, apply_sell
from pumpbot.solana.exceptions import ChainQueryError, SubmissionError
from pumpbot.solana.models import BondingCurve, CurveState, GlobalParams, TokenBalance
from pumpbot.solana.pump_sdk import BuyState, PumpSdk, PumpSdkError, SellState, PUMP_PROGRAM_ID
from pumpbot.solana.token_program import TOKEN_PROGRAM_ID
from pumpbot.solana.trade_executor import TradeExecutor

LAMPORTS = 1_000_000_000
TOKEN_DECIMALS = 6
CREATOR = str(Pubkey.new_unique())


def mint_account_data(decimals: int = TOKEN_DECIMALS) -> bytes:
    # 82 byte SPL mint layout, only decimals matters here
    return bytes(44) + bytes([decimals]) + bytes(37)


def make_global(fee_bps: int = 95, creator_fee_bps: int = 5) -> GlobalParams:
    return GlobalParams(
        fee_recipient=str(Pubkey.new_unique()),
        initial_virtual_token_reserves=1_073_000_000_000_000,
        initial_virtual_sol_reserves=30 * LAMPORTS,
        initial_real_token_reserves=793_100_000_000_000,
        token_total_supply=1_000_000_000_000_000,
        fee_basis_points=fee_bps,
        creator_fee_basis_points=creator_fee_bps,
    )


def make_curve(**overrides) -> BondingCurve:
    values = dict(
        virtual_token_reserves=1_073_000_000_000_000,
        virtual_sol_reserves=30 * LAMPORTS,
        real_token_reserves=793_100_000_000_000,
        real_sol_reserves=5 * LAMPORTS,
        token_total_supply=1_000_000_000_000_000,
        complete=False,
        creator=CREATOR,
    )
    values.update(overrides)
    return BondingCurve(**values)


class FakeChainClient:
    """In-memory ledger. Trades land when the SDK has staged their effect."""

    def __init__(self, sol_balance: float = 10.0):
        self.lamports = int(sol_balance * LAMPORTS)
        self.token_amounts: Dict[Pubkey, int] = {}
        self.accounts: Dict[Pubkey, Account] = {}
        self.submissions: List = []
        self.pending: Optional[tuple] = None
        self.fail_directions: Set[str] = set()
        self.fail_balance = False
        self.fail_account_info = False
        self.balance_sequence: List[float] = []

    def add_mint(self, mint: Pubkey, owner: Pubkey = TOKEN_PROGRAM_ID, decimals: int = TOKEN_DECIMALS):
        self.accounts[mint] = Account(lamports=1_461_600, data=mint_account_data(decimals), owner=owner)

    async def get_balance(self, pubkey: Pubkey) -> int:
        if self.fail_balance:
            raise ChainQueryError("Balance query failed: connection reset")
        if self.balance_sequence:
            return int(self.balance_sequence.pop(0) * LAMPORTS)
        return self.lamports

    async def get_token_balance(self, owner: Pubkey, mint: Pubkey) -> Optional[TokenBalance]:
        if mint not in self.token_amounts:
            return None
        amount = self.token_amounts[mint]
        return TokenBalance(amount=amount, decimals=TOKEN_DECIMALS, ui_amount=amount / 10 ** TOKEN_DECIMALS)

    async def get_account_info(self, pubkey: Pubkey) -> Optional[Account]:
        if self.fail_account_info:
            raise ChainQueryError("Account info query failed: timeout")
        return self.accounts.get(pubkey)

    async def get_latest_blockhash(self) -> Hash:
        return Hash.default()

    async def send_and_confirm(self, transaction, commitment: Optional[str] = None) -> str:
        pending, self.pending = self.pending, None
        direction = pending[0] if pending else None
        if direction in self.fail_directions:
            raise SubmissionError(f"Transaction failed on-chain: {direction} rejected")

        self.submissions.append(transaction)
        if direction == "buy":
            _, mint, tokens, lamports = pending
            self.token_amounts[mint] = self.token_amounts.get(mint, 0) + tokens
            self.lamports -= lamports
        elif direction == "sell":
            _, mint, tokens, lamports = pending
            self.token_amounts[mint] = self.token_amounts.get(mint, 0) - tokens
            self.lamports += lamports
        return str(transaction.signatures[0])

    async def close(self):
        pass


class FakeSdk(PumpSdk):
    """Serves curve state from memory; stages each trade's effect on the fake ledger."""

    def __init__(self, chain: FakeChainClient, curve: Optional[BondingCurve] = None,
                 global_params: Optional[GlobalParams] = None):
        super().__init__(chain)
        self.state = CurveState(
            global_params=global_params or make_global(),
            bonding_curve=curve or make_curve(),
        )
        self.fetch_count = 0
        self.fail_fetch = False

    def _account(self) -> Account:
        return Account(lamports=1, data=b"", owner=PUMP_PROGRAM_ID)

    async def fetch_global(self) -> GlobalParams:
        self.fetch_count += 1
        if self.fail_fetch:
            raise PumpSdkError("Global account not found")
        return self.state.global_params

    async def fetch_fee_config(self):
        return None

    async def fetch_buy_state(self, mint: Pubkey, user: Pubkey, token_program: Pubkey) -> BuyState:
        ata = get_associated_token_address(user, mint, token_program)
        return BuyState(
            bonding_curve_account_info=self._account(),
            bonding_curve=self.state.bonding_curve,
            associated_user_account_info=self.chain.accounts.get(ata),
        )

    async def fetch_sell_state(self, mint: Pubkey, user: Pubkey, token_program: Pubkey) -> SellState:
        return SellState(bonding_curve_account_info=self._account(), bonding_curve=self.state.bonding_curve)

    def buy_instructions(self, **kwargs):
        instructions = super().buy_instructions(**kwargs)
        self.chain.pending = ("buy", kwargs["mint"], kwargs["amount"], kwargs["sol_amount"])
        self.state = apply_buy(self.state, kwargs["sol_amount"])
        return instructions

    def sell_instructions(self, **kwargs):
        instructions = super().sell_instructions(**kwargs)
        self.chain.pending = ("sell", kwargs["mint"], kwargs["amount"], kwargs["sol_amount"])
        self.state = apply_sell(self.state, kwargs["amount"])
        return instructions


@pytest.fixture
def wallet():
    return Keypair()


@pytest.fixture
def mint():
    return Pubkey.new_unique()


@pytest.fixture
def chain(mint):
    client = FakeChainClient()
    client.add_mint(mint)
    return client


@pytest.fixture
def sdk(chain):
    return FakeSdk(chain)


@pytest.fixture
def executor(chain, wallet, sdk):
    return TradeExecutor(chain, wallet, sdk=sdk)
