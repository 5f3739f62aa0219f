import re
from typing import Tuple, Union
from loguru import logger
from solders.pubkey import Pubkey
from pumpbot.config import SOLANA_ADDRESS_MIN_LENGTH, SOLANA_ADDRESS_MAX_LENGTH

BASE58_PATTERN = re.compile(r'^[1-9A-HJ-NP-Za-km-z]+$')


def validate_token_address(text: str) -> Tuple[bool, Union[str, str]]:
    """
    Validate a Solana token mint address.

    Args:
        text: The user input text

    Returns:
        A tuple of (is_valid, address_or_error_message)
    """
    address = text.strip()

    if not SOLANA_ADDRESS_MIN_LENGTH <= len(address) <= SOLANA_ADDRESS_MAX_LENGTH:
        return False, (
            f"Solana addresses are {SOLANA_ADDRESS_MIN_LENGTH}-{SOLANA_ADDRESS_MAX_LENGTH} characters. "
            "Please enter a valid address."
        )

    if not BASE58_PATTERN.match(address):
        return False, "Invalid characters in address. Solana addresses use Base58 encoding."

    try:
        Pubkey.from_string(address)
    except ValueError:
        return False, "Address does not decode to a 32 byte public key."

    return True, address


def validate_sol_amount(text: str) -> Tuple[bool, Union[float, str]]:
    """
    Validate a SOL amount to trade.

    Args:
        text: User input text

    Returns:
        Tuple (is_valid, value_or_error)
    """
    try:
        amount = float(text.replace(",", "").strip())
    except ValueError:
        return False, "Please enter a valid number in SOL (e.g., 0.01 for 0.01 SOL)."

    if amount <= 0:
        return False, "Amount must be a positive number in SOL."

    if amount > 1_000_000:
        return False, "Amount cannot exceed 1,000,000 SOL."

    return True, amount


def validate_token_amount(text: str) -> Tuple[bool, Union[float, str]]:
    try:
        amount = float(text.replace(",", "").strip())
    except ValueError:
        return False, "Please enter a valid token amount."

    if amount <= 0:
        return False, "Token amount must be positive."

    return True, amount


def validate_slippage(text: str) -> Tuple[bool, Union[float, str]]:
    """
    Validate a slippage tolerance in percent.
    """
    try:
        slippage = float(text.replace("%", "").strip())
    except ValueError:
        return False, "Please enter slippage as a percentage (e.g., 1 for 1%)."

    if slippage < 0 or slippage >= 100:
        return False, "Slippage must be between 0 and 100 percent."

    return True, slippage


def log_validation_result(validation_type: str, input_value: str, is_valid: bool, error_message: str = None):
    """
    Log validation results for debugging.

    Args:
        validation_type: Type of validation being performed
        input_value: The original input value
        is_valid: Whether the validation passed
        error_message: Error message if validation failed
    """
    shown = input_value[:50] + "..." if len(str(input_value)) > 50 else input_value
    if is_valid:
        logger.debug(
            f"Validation passed: {validation_type}",
            extra={"validation_type": validation_type, "input_value": shown}
        )
    else:
        logger.info(
            f"Validation failed: {validation_type}",
            extra={"validation_type": validation_type, "input_value": shown, "error": error_message}
        )
