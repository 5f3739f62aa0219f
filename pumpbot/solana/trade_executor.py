"""
Trade execution for pump.fun tokens.
"""

from decimal import Decimal, ROUND_DOWN
from typing import List, Optional, Union

from loguru import logger
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from pumpbot.config import (
    COMMITMENT,
    COMPUTE_UNIT_LIMIT,
    DEFAULT_SLIPPAGE,
    LAMPORTS_PER_SOL,
    PRIORITY_FEE_MICROLAMPORTS,
)
from pumpbot.solana.bonding_curve import (
    buy_with_slippage,
    price_per_token,
    quote_buy,
    quote_sell,
    sell_with_slippage,
)
from pumpbot.solana.chain_client import ChainClient
from pumpbot.solana.exceptions import (
    ChainQueryError,
    ConfigurationError,
    InstructionBuildError,
    InsufficientBalanceError,
    NothingToSellError,
    QuoteUnavailableError,
    SubmissionError,
)
from pumpbot.solana.models import (
    CurveState,
    TradeDirection,
    TradeQuote,
    TradeResult,
    WalletInfo,
)
from pumpbot.solana.pump_sdk import PumpSdk, PumpSdkError
from pumpbot.solana.token_program import detect_token_program, get_mint_decimals

# Methods the bonding-curve SDK must provide
SDK_METHODS = (
    "fetch_global",
    "fetch_fee_config",
    "fetch_buy_state",
    "fetch_sell_state",
    "buy_instructions",
    "sell_instructions",
)

MintLike = Union[str, Pubkey]


def _to_pubkey(mint: MintLike) -> Pubkey:
    return mint if isinstance(mint, Pubkey) else Pubkey.from_string(mint)


class TradeExecutor:
    """
    Executes single buy and sell trades against the bonding curve.

    Every failure is raised as a TradeError subclass; nothing is retried or
    swallowed here.
    """

    def __init__(self,
                 chain: ChainClient,
                 wallet: Keypair,
                 sdk: Optional[PumpSdk] = None,
                 commitment: str = COMMITMENT,
                 compute_unit_limit: int = COMPUTE_UNIT_LIMIT,
                 priority_fee: int = PRIORITY_FEE_MICROLAMPORTS):
        """
        Initialize the trade executor.

        Args:
            chain: Chain client for queries and submission
            wallet: Signing keypair
            sdk: Bonding-curve SDK. If None, a PumpSdk over the chain client is created.
            commitment: Confirmation level requested for trades
            compute_unit_limit: Compute unit limit per transaction (0 disables the instruction)
            priority_fee: Priority fee in micro-lamports per compute unit (0 disables the instruction)

        Raises:
            ConfigurationError: If the SDK does not provide the required methods
        """
        self.chain = chain
        self.wallet = wallet
        self.sdk = sdk if sdk else PumpSdk(chain)
        self.commitment = commitment
        self.compute_unit_limit = compute_unit_limit
        self.priority_fee = priority_fee

        missing = [name for name in SDK_METHODS if not callable(getattr(self.sdk, name, None))]
        if missing:
            raise ConfigurationError(f"Bonding-curve SDK is missing methods: {', '.join(missing)}")

        logger.info(f"TradeExecutor initialized for wallet {self.pubkey}")

    @property
    def pubkey(self) -> Pubkey:
        return self.wallet.pubkey()

    async def get_sol_balance(self) -> float:
        """Wallet SOL balance."""
        lamports = await self.chain.get_balance(self.pubkey)
        return lamports / LAMPORTS_PER_SOL

    async def get_token_balance(self, mint: MintLike) -> float:
        """Wallet UI token balance for a mint, 0 if it has no token account."""
        balance = await self.chain.get_token_balance(self.pubkey, _to_pubkey(mint))
        return balance.ui_amount if balance else 0.0

    async def get_wallet_info(self) -> WalletInfo:
        sol_balance = await self.get_sol_balance()
        logger.info(f"Wallet {self.pubkey}: {sol_balance:.4f} SOL")
        return WalletInfo(address=str(self.pubkey), sol_balance=sol_balance)

    async def detect_token_program(self, mint: MintLike) -> Pubkey:
        return await detect_token_program(self.chain, _to_pubkey(mint))

    async def _build_transaction(self, instructions: List[Instruction]) -> Transaction:
        budget = []
        if self.compute_unit_limit:
            budget.append(set_compute_unit_limit(self.compute_unit_limit))
        if self.priority_fee:
            budget.append(set_compute_unit_price(self.priority_fee))

        try:
            blockhash = await self.chain.get_latest_blockhash()
        except ChainQueryError as e:
            raise SubmissionError(f"Could not fetch recent blockhash: {e}") from e

        message = Message(budget + instructions, self.pubkey)
        return Transaction([self.wallet], message, blockhash)

    async def _submit(self, instructions: List[Instruction]) -> str:
        transaction = await self._build_transaction(instructions)
        return await self.chain.send_and_confirm(transaction, self.commitment)

    async def buy(self,
                  mint: MintLike,
                  sol_amount: float,
                  slippage: float = DEFAULT_SLIPPAGE,
                  token_program: Optional[Pubkey] = None) -> TradeResult:
        """
        Buy tokens on the bonding curve.

        Args:
            mint: Token mint address
            sol_amount: SOL to spend (in SOL, not lamports)
            slippage: Slippage tolerance in percent
            token_program: Token program of the mint; detected if omitted

        Returns:
            TradeResult of the confirmed transaction

        Raises:
            InsufficientBalanceError: Wallet cannot cover sol_amount
            QuoteUnavailableError: Curve state could not be fetched or quoted
            InstructionBuildError: SDK rejected the instruction request
            SubmissionError: Sending or confirmation failed
        """
        mint_pubkey = _to_pubkey(mint)
        if sol_amount <= 0:
            raise ValueError("SOL amount must be positive")

        if token_program is None:
            token_program = await detect_token_program(self.chain, mint_pubkey)

        logger.info(
            f"Buying {sol_amount} SOL of {mint_pubkey} (slippage {slippage}%, program {token_program})",
            extra={"token_mint": str(mint_pubkey), "sol_amount": sol_amount}
        )

        try:
            sol_balance = await self.get_sol_balance()
        except ChainQueryError as e:
            raise QuoteUnavailableError(f"Could not check SOL balance: {e}") from e
        if sol_balance < sol_amount:
            raise InsufficientBalanceError(sol_amount, sol_balance)

        lamports = int((Decimal(str(sol_amount)) * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_DOWN))

        try:
            global_params = await self.sdk.fetch_global()
            fee_config = await self.sdk.fetch_fee_config()
            buy_state = await self.sdk.fetch_buy_state(mint_pubkey, self.pubkey, token_program)
        except (ChainQueryError, PumpSdkError) as e:
            logger.error(f"Failed to fetch buy state for {mint_pubkey}: {e}")
            raise QuoteUnavailableError(f"Could not fetch buy state: {e}") from e

        if buy_state.bonding_curve.complete:
            raise QuoteUnavailableError(f"Bonding curve for {mint_pubkey} is complete")

        curve_state = CurveState(
            global_params=global_params,
            fee_config=fee_config,
            bonding_curve=buy_state.bonding_curve,
        )
        token_amount = quote_buy(curve_state, lamports)
        if token_amount <= 0:
            raise QuoteUnavailableError(f"Buy of {sol_amount} SOL quotes zero tokens")

        quote = TradeQuote(
            direction=TradeDirection.BUY,
            sol_amount=lamports,
            token_amount=token_amount,
            slippage=slippage,
            max_sol_cost=buy_with_slippage(lamports, slippage),
        )
        logger.info(
            f"Expected tokens: {quote.token_amount} (max cost {quote.max_sol_cost / LAMPORTS_PER_SOL:.6f} SOL, "
            f"price {price_per_token(buy_state.bonding_curve):.10f} SOL)"
        )

        try:
            instructions = self.sdk.buy_instructions(
                global_params=global_params,
                buy_state=buy_state,
                mint=mint_pubkey,
                user=self.pubkey,
                amount=quote.token_amount,
                sol_amount=quote.sol_amount,
                slippage=slippage,
                token_program=token_program,
            )
        except (PumpSdkError, ValueError) as e:
            raise InstructionBuildError(f"Could not build buy instructions: {e}") from e

        signature = await self._submit(instructions)
        logger.info(f"Buy successful: https://solscan.io/tx/{signature}")

        return TradeResult(
            signature=signature,
            direction=TradeDirection.BUY,
            mint=str(mint_pubkey),
            sol_amount=quote.sol_amount,
            token_amount=quote.token_amount,
            slippage=slippage,
            token_program=str(token_program),
        )

    async def sell(self,
                   mint: MintLike,
                   token_amount: float,
                   slippage: float = DEFAULT_SLIPPAGE,
                   token_program: Optional[Pubkey] = None) -> TradeResult:
        """
        Sell tokens on the bonding curve.

        Args:
            mint: Token mint address
            token_amount: Human-readable token amount (scaled by the mint's decimals)
            slippage: Slippage tolerance in percent
            token_program: Token program of the mint; detected if omitted

        Returns:
            TradeResult of the confirmed transaction
        """
        mint_pubkey = _to_pubkey(mint)
        if token_amount <= 0:
            raise ValueError("Token amount must be positive")

        decimals = await get_mint_decimals(self.chain, mint_pubkey)
        raw_amount = int(
            (Decimal(str(token_amount)) * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN)
        )
        return await self._sell_raw(mint_pubkey, raw_amount, slippage, token_program)

    async def _sell_raw(self,
                        mint: Pubkey,
                        raw_amount: int,
                        slippage: float,
                        token_program: Optional[Pubkey]) -> TradeResult:
        if raw_amount <= 0:
            raise NothingToSellError(f"Sell amount for {mint} rounds to zero")

        if token_program is None:
            token_program = await detect_token_program(self.chain, mint)

        logger.info(
            f"Selling {raw_amount} raw units of {mint} (slippage {slippage}%, program {token_program})",
            extra={"token_mint": str(mint), "token_amount": raw_amount}
        )

        try:
            global_params = await self.sdk.fetch_global()
            fee_config = await self.sdk.fetch_fee_config()
            sell_state = await self.sdk.fetch_sell_state(mint, self.pubkey, token_program)
        except (ChainQueryError, PumpSdkError) as e:
            logger.error(f"Failed to fetch sell state for {mint}: {e}")
            raise QuoteUnavailableError(f"Could not fetch sell state: {e}") from e

        if sell_state.bonding_curve.complete:
            raise QuoteUnavailableError(f"Bonding curve for {mint} is complete")

        curve_state = CurveState(
            global_params=global_params,
            fee_config=fee_config,
            bonding_curve=sell_state.bonding_curve,
        )
        sol_out = quote_sell(curve_state, raw_amount)

        quote = TradeQuote(
            direction=TradeDirection.SELL,
            sol_amount=sol_out,
            token_amount=raw_amount,
            slippage=slippage,
            min_sol_output=sell_with_slippage(sol_out, slippage),
        )
        logger.info(
            f"Expected SOL: {quote.sol_amount / LAMPORTS_PER_SOL:.6f} "
            f"(min {quote.min_sol_output / LAMPORTS_PER_SOL:.6f} SOL)"
        )

        try:
            instructions = self.sdk.sell_instructions(
                global_params=global_params,
                sell_state=sell_state,
                mint=mint,
                user=self.pubkey,
                amount=quote.token_amount,
                sol_amount=quote.sol_amount,
                slippage=slippage,
                token_program=token_program,
            )
        except (PumpSdkError, ValueError) as e:
            raise InstructionBuildError(f"Could not build sell instructions: {e}") from e

        signature = await self._submit(instructions)
        logger.info(f"Sell successful: https://solscan.io/tx/{signature}")

        return TradeResult(
            signature=signature,
            direction=TradeDirection.SELL,
            mint=str(mint),
            sol_amount=quote.sol_amount,
            token_amount=quote.token_amount,
            slippage=slippage,
            token_program=str(token_program),
        )

    async def sell_all(self, mint: MintLike, slippage: float = DEFAULT_SLIPPAGE) -> TradeResult:
        """
        Sell the wallet's entire balance of a token.

        Raises:
            NothingToSellError: If the wallet holds none of the token
        """
        mint_pubkey = _to_pubkey(mint)
        try:
            balance = await self.chain.get_token_balance(self.pubkey, mint_pubkey)
        except ChainQueryError as e:
            raise QuoteUnavailableError(f"Could not read token balance: {e}") from e

        if balance is None or balance.amount == 0:
            raise NothingToSellError(f"No {mint_pubkey} tokens to sell")

        logger.info(f"Selling all tokens: {balance.ui_amount}")
        return await self._sell_raw(mint_pubkey, balance.amount, slippage, None)
