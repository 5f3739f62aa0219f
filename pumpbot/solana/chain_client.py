"""
RPC access for Solana.

Wraps the async solana-py client behind the handful of calls the trading
code needs, converting transport failures into typed errors.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Union

from loguru import logger
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.account import Account
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.transaction import Transaction, VersionedTransaction

from pumpbot.config import RPC_URL, COMMITMENT, MAX_RETRIES, RETRY_DELAY
from pumpbot.solana.exceptions import ChainQueryError, SubmissionError
from pumpbot.solana.models import TokenBalance


class ChainClient:
    """
    Ledger client used by the trading components.

    Read queries are retried with a linear backoff; submissions are never
    retried here because a resend could land the same trade twice.
    """

    def __init__(self,
                 rpc_url: str = RPC_URL,
                 commitment: str = COMMITMENT,
                 max_retries: int = MAX_RETRIES,
                 retry_delay: float = RETRY_DELAY,
                 client: Optional[AsyncClient] = None):
        """
        Initialize the chain client.

        Args:
            rpc_url: Solana RPC endpoint
            commitment: Commitment level for reads and confirmations
            max_retries: Retry attempts for read queries
            retry_delay: Base delay between retries in seconds
            client: Optional pre-built AsyncClient
        """
        self.rpc_url = rpc_url
        self.commitment = Commitment(commitment)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.client = client if client else AsyncClient(rpc_url, commitment=self.commitment)

        logger.info(f"ChainClient initialized on {rpc_url}")

    async def _query(self, description: str, call: Callable[[], Awaitable[Any]]) -> Any:
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            try:
                return await call()
            except Exception as e:
                last_error = e
                if attempt < self.max_retries:
                    wait_time = self.retry_delay * (attempt + 1)
                    logger.warning(
                        f"{description} failed (attempt {attempt + 1}), retrying in {wait_time:.1f}s: {e}"
                    )
                    await asyncio.sleep(wait_time)

        logger.error(f"{description} failed after {self.max_retries + 1} attempts: {last_error}")
        raise ChainQueryError(f"{description} failed: {last_error}") from last_error

    async def get_balance(self, pubkey: Pubkey) -> int:
        """Returns the lamport balance of an address."""
        resp = await self._query(
            f"Balance query for {pubkey}",
            lambda: self.client.get_balance(pubkey, commitment=self.commitment),
        )
        return resp.value

    async def get_token_balance(self, owner: Pubkey, mint: Pubkey) -> Optional[TokenBalance]:
        """
        Returns the owner's token account balance for a mint.

        Returns:
            TokenBalance, or None if the owner has no token account for the mint
        """
        resp = await self._query(
            f"Token account query for {mint}",
            lambda: self.client.get_token_accounts_by_owner_json_parsed(
                owner, TokenAccountOpts(mint=mint), commitment=self.commitment
            ),
        )

        if not resp.value:
            return None

        token_amount = resp.value[0].account.data.parsed["info"]["tokenAmount"]
        return TokenBalance(
            amount=int(token_amount["amount"]),
            decimals=int(token_amount["decimals"]),
            ui_amount=float(token_amount.get("uiAmount") or 0.0),
        )

    async def get_account_info(self, pubkey: Pubkey) -> Optional[Account]:
        """Returns raw account data and owner, or None if the account does not exist."""
        resp = await self._query(
            f"Account info query for {pubkey}",
            lambda: self.client.get_account_info(pubkey, commitment=self.commitment, encoding="base64"),
        )
        return resp.value

    async def get_latest_blockhash(self) -> Hash:
        resp = await self._query(
            "Latest blockhash query",
            lambda: self.client.get_latest_blockhash(commitment=self.commitment),
        )
        return resp.value.blockhash

    async def send_and_confirm(self,
                               transaction: Union[Transaction, VersionedTransaction],
                               commitment: Optional[str] = None) -> str:
        """
        Submits a signed transaction and waits for confirmation.

        Args:
            transaction: Signed transaction
            commitment: Confirmation level, defaults to the client's

        Returns:
            Transaction signature as a base58 string

        Raises:
            SubmissionError: If sending fails, confirmation times out or the
                transaction lands with an error
        """
        level = Commitment(commitment) if commitment else self.commitment

        try:
            resp = await self.client.send_transaction(
                transaction,
                opts=TxOpts(skip_confirmation=True, preflight_commitment=level),
            )
            signature = resp.value
            logger.info(f"Transaction sent: {signature}")

            status_resp = await self.client.confirm_transaction(signature, commitment=level)
        except Exception as e:
            logger.error(f"Transaction submission failed: {e}")
            raise SubmissionError(f"Transaction submission failed: {e}") from e

        status = status_resp.value[0] if status_resp.value else None
        if status is None:
            raise SubmissionError(f"Transaction {signature} was not confirmed")
        if status.err:
            raise SubmissionError(f"Transaction {signature} failed on-chain: {status.err}")

        logger.info(f"Transaction confirmed ({level}): {signature}")
        return str(signature)

    async def close(self):
        await self.client.close()
