"""
SPL Token program utilities for Solana.

This module decides which token program governs a mint and reads mint
metadata needed to convert between UI and raw token amounts.
"""

from solders.pubkey import Pubkey
from loguru import logger

from pumpbot.solana.chain_client import ChainClient
from pumpbot.solana.exceptions import ChainQueryError, QuoteUnavailableError

# SPL Token Program IDs
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
TOKEN_2022_PROGRAM_ID = Pubkey.from_string("TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb")

# Mint layout: mint_authority option (36) + supply (8), then decimals
MINT_DECIMALS_OFFSET = 44


async def detect_token_program(chain: ChainClient, mint: Pubkey) -> Pubkey:
    """
    Find the token program that owns a mint account.

    Falls back to the legacy SPL Token program when the owner is unknown or
    the account cannot be fetched.

    Args:
        chain: Chain client
        mint: Token mint address

    Returns:
        TOKEN_2022_PROGRAM_ID or TOKEN_PROGRAM_ID
    """
    try:
        account = await chain.get_account_info(mint)
    except ChainQueryError as e:
        logger.warning(
            f"Could not fetch mint account, defaulting to SPL Token program: {e}",
            extra={"token_mint": str(mint)}
        )
        return TOKEN_PROGRAM_ID

    if account is None:
        logger.warning(
            "Mint account not found, defaulting to SPL Token program",
            extra={"token_mint": str(mint)}
        )
        return TOKEN_PROGRAM_ID

    if account.owner == TOKEN_2022_PROGRAM_ID:
        logger.info(f"Detected Token-2022 program for {mint}")
        return TOKEN_2022_PROGRAM_ID

    if account.owner == TOKEN_PROGRAM_ID:
        logger.info(f"Detected SPL Token program for {mint}")
        return TOKEN_PROGRAM_ID

    logger.warning(
        f"Unknown mint owner {account.owner}, defaulting to SPL Token program",
        extra={"token_mint": str(mint)}
    )
    return TOKEN_PROGRAM_ID


async def get_mint_decimals(chain: ChainClient, mint: Pubkey) -> int:
    """
    Read the decimals count from a mint account.

    Raises:
        QuoteUnavailableError: If the mint account is missing or malformed
    """
    try:
        account = await chain.get_account_info(mint)
    except ChainQueryError as e:
        raise QuoteUnavailableError(f"Could not fetch mint {mint}: {e}") from e

    if account is None or len(account.data) <= MINT_DECIMALS_OFFSET:
        raise QuoteUnavailableError(f"Mint account {mint} not found or malformed")

    return account.data[MINT_DECIMALS_OFFSET]
