"""
Wallet loading for Solana.
"""

from typing import Optional

import base58
from loguru import logger
from solders.keypair import Keypair

from pumpbot.config import PRIVATE_KEY, PRIVATE_KEY_ENV
from pumpbot.solana.exceptions import ConfigurationError


def load_keypair(private_key: Optional[str] = None) -> Keypair:
    """
    Load the trading wallet from a base58 encoded secret key.

    Args:
        private_key: Base58 secret key. Defaults to the PRIVATE_KEY environment variable.

    Returns:
        Keypair for signing

    Raises:
        ConfigurationError: If no key is configured or it cannot be decoded
    """
    secret = private_key if private_key is not None else PRIVATE_KEY
    if not secret:
        raise ConfigurationError(f"{PRIVATE_KEY_ENV} environment variable is required")

    try:
        pk_bytes = base58.b58decode(secret.strip())
        keypair = Keypair.from_bytes(pk_bytes)
    except ValueError as e:
        logger.error("Invalid private key format")
        raise ConfigurationError("Invalid private key format. Must be a base58 encoded 64 byte secret key.") from e

    logger.info(f"Loaded wallet: {keypair.pubkey()}")
    return keypair
