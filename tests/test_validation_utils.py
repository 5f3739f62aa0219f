"""
Tests for CLI input validation
"""

import pytest
from solders.pubkey import Pubkey

from pumpbot.utils.validation_utils import (
    validate_slippage,
    validate_sol_amount,
    validate_token_address,
    validate_token_amount,
)


def test_valid_token_address():
    address = str(Pubkey.new_unique())
    assert validate_token_address(f"  {address} ") == (True, address)


@pytest.mark.parametrize("text", ["short", "0" * 44, "O" * 40, "l" * 36])
def test_invalid_token_address(text):
    is_valid, error = validate_token_address(text)
    assert is_valid is False
    assert isinstance(error, str)


@pytest.mark.parametrize("text, expected", [("0.01", 0.01), ("1,000", 1000.0), (" 2.5 ", 2.5)])
def test_valid_sol_amount(text, expected):
    assert validate_sol_amount(text) == (True, expected)


@pytest.mark.parametrize("text", ["abc", "0", "-1", "2000000"])
def test_invalid_sol_amount(text):
    assert validate_sol_amount(text)[0] is False


def test_token_amount():
    assert validate_token_amount("1500.5") == (True, 1500.5)
    assert validate_token_amount("0")[0] is False
    assert validate_token_amount("ten")[0] is False


@pytest.mark.parametrize("text, expected", [("1", 1.0), ("2.5%", 2.5), ("0", 0.0)])
def test_valid_slippage(text, expected):
    assert validate_slippage(text) == (True, expected)


@pytest.mark.parametrize("text", ["-1", "100", "lots"])
def test_invalid_slippage(text):
    assert validate_slippage(text)[0] is False
