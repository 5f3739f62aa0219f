"""
pump.fun program SDK.

Fetches and decodes the program's on-chain accounts and builds buy/sell
instructions. Account layouts follow the program's published IDL.
"""

import struct
from dataclasses import dataclass
from typing import List, Optional

from loguru import logger
from solders.account import Account
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from spl.token.instructions import (
    create_idempotent_associated_token_account,
    get_associated_token_address,
)

from pumpbot.solana.bonding_curve import buy_with_slippage, sell_with_slippage
from pumpbot.solana.chain_client import ChainClient
from pumpbot.solana.models import BondingCurve, FeeConfig, Fees, FeeTier, GlobalParams

# Program and well-known accounts
PUMP_PROGRAM_ID = Pubkey.from_string("6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P")
PUMP_GLOBAL = Pubkey.from_string("4wTV1YmiEkRvAtNtsSGPtUrqRYQMe5SKy2uB4Jjaxnjf")
PUMP_EVENT_AUTHORITY = Pubkey.from_string("Ce6TQqeHC9p8KetsN6JsjHK7UTZk7nasjjnr7XxXp9F1")
PUMP_FEE_PROGRAM_ID = Pubkey.from_string("pfeeUxB6jkeY1Hxd7CsFCAjcbHA9rWtchMGdZ6VojVZ")
SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")

# Anchor discriminators
BONDING_CURVE_DISCRIMINATOR = struct.pack("<Q", 6966180631402821399)
BUY_DISCRIMINATOR = struct.pack("<Q", 16927863322537952870)
SELL_DISCRIMINATOR = bytes.fromhex("33e685a4017f83ad")

# Global account offsets (after the 8 byte discriminator)
GLOBAL_FEE_RECIPIENT_OFFSET = 41
GLOBAL_RESERVES_OFFSET = 73
GLOBAL_CREATOR_FEE_OFFSET = 154
GLOBAL_MIN_SIZE = 162

# Fee config account offsets
FEE_CONFIG_FLAT_FEES_OFFSET = 41
FEE_CONFIG_TIERS_OFFSET = 65
FEE_TIER_SIZE = 40

BONDING_CURVE_BASE_SIZE = 8 + 5 * 8 + 1


class PumpSdkError(Exception):
    """Account missing, undecodable, or an instruction request that cannot be built"""
    pass


@dataclass
class BuyState:
    """Accounts a buy depends on, fetched together."""
    bonding_curve_account_info: Account
    bonding_curve: BondingCurve
    associated_user_account_info: Optional[Account]


@dataclass
class SellState:
    """Accounts a sell depends on, fetched together."""
    bonding_curve_account_info: Account
    bonding_curve: BondingCurve


def bonding_curve_pda(mint: Pubkey) -> Pubkey:
    address, _ = Pubkey.find_program_address([b"bonding-curve", bytes(mint)], PUMP_PROGRAM_ID)
    return address


def associated_bonding_curve(mint: Pubkey, token_program: Pubkey) -> Pubkey:
    return get_associated_token_address(bonding_curve_pda(mint), mint, token_program)


def creator_vault_pda(creator: Pubkey) -> Pubkey:
    address, _ = Pubkey.find_program_address([b"creator-vault", bytes(creator)], PUMP_PROGRAM_ID)
    return address


def global_volume_accumulator_pda() -> Pubkey:
    address, _ = Pubkey.find_program_address([b"global_volume_accumulator"], PUMP_PROGRAM_ID)
    return address


def user_volume_accumulator_pda(user: Pubkey) -> Pubkey:
    address, _ = Pubkey.find_program_address([b"user_volume_accumulator", bytes(user)], PUMP_PROGRAM_ID)
    return address


def fee_config_pda() -> Pubkey:
    address, _ = Pubkey.find_program_address([b"fee_config", bytes(PUMP_PROGRAM_ID)], PUMP_FEE_PROGRAM_ID)
    return address


def decode_global(data: bytes) -> GlobalParams:
    if len(data) < GLOBAL_MIN_SIZE:
        raise PumpSdkError(f"Global account too short ({len(data)} bytes)")

    fee_recipient = Pubkey.from_bytes(data[GLOBAL_FEE_RECIPIENT_OFFSET:GLOBAL_FEE_RECIPIENT_OFFSET + 32])
    (initial_virtual_token_reserves,
     initial_virtual_sol_reserves,
     initial_real_token_reserves,
     token_total_supply,
     fee_basis_points) = struct.unpack_from("<5Q", data, GLOBAL_RESERVES_OFFSET)
    (creator_fee_basis_points,) = struct.unpack_from("<Q", data, GLOBAL_CREATOR_FEE_OFFSET)

    return GlobalParams(
        fee_recipient=str(fee_recipient),
        initial_virtual_token_reserves=initial_virtual_token_reserves,
        initial_virtual_sol_reserves=initial_virtual_sol_reserves,
        initial_real_token_reserves=initial_real_token_reserves,
        token_total_supply=token_total_supply,
        fee_basis_points=fee_basis_points,
        creator_fee_basis_points=creator_fee_basis_points,
    )


def decode_bonding_curve(data: bytes) -> BondingCurve:
    if data[:8] != BONDING_CURVE_DISCRIMINATOR:
        raise PumpSdkError("Invalid bonding curve discriminator")
    if len(data) < BONDING_CURVE_BASE_SIZE:
        raise PumpSdkError(f"Bonding curve account too short ({len(data)} bytes)")

    (virtual_token_reserves,
     virtual_sol_reserves,
     real_token_reserves,
     real_sol_reserves,
     token_total_supply) = struct.unpack_from("<5Q", data, 8)
    complete = bool(data[48])

    creator = None
    if len(data) >= BONDING_CURVE_BASE_SIZE + 32:
        creator = str(Pubkey.from_bytes(data[BONDING_CURVE_BASE_SIZE:BONDING_CURVE_BASE_SIZE + 32]))

    return BondingCurve(
        virtual_token_reserves=virtual_token_reserves,
        virtual_sol_reserves=virtual_sol_reserves,
        real_token_reserves=real_token_reserves,
        real_sol_reserves=real_sol_reserves,
        token_total_supply=token_total_supply,
        complete=complete,
        creator=creator,
    )


def _decode_fees(data: bytes, offset: int) -> Fees:
    lp, protocol, creator = struct.unpack_from("<3Q", data, offset)
    return Fees(lp_fee_bps=lp, protocol_fee_bps=protocol, creator_fee_bps=creator)


def decode_fee_config(data: bytes) -> FeeConfig:
    if len(data) < FEE_CONFIG_TIERS_OFFSET + 4:
        raise PumpSdkError(f"Fee config account too short ({len(data)} bytes)")

    flat_fees = _decode_fees(data, FEE_CONFIG_FLAT_FEES_OFFSET)
    (tier_count,) = struct.unpack_from("<I", data, FEE_CONFIG_TIERS_OFFSET)
    if len(data) < FEE_CONFIG_TIERS_OFFSET + 4 + tier_count * FEE_TIER_SIZE:
        raise PumpSdkError("Fee config tiers truncated")

    tiers = []
    offset = FEE_CONFIG_TIERS_OFFSET + 4
    for _ in range(tier_count):
        low, high = struct.unpack_from("<QQ", data, offset)
        tiers.append(FeeTier(
            market_cap_lamports_threshold=low | (high << 64),
            fees=_decode_fees(data, offset + 16),
        ))
        offset += FEE_TIER_SIZE

    return FeeConfig(flat_fees=flat_fees, fee_tiers=tiers)


class PumpSdk:
    """
    Reads pump.fun program state and builds trade instructions.
    """

    def __init__(self, chain: ChainClient):
        self.chain = chain

    async def _fetch_account(self, address: Pubkey, label: str) -> Account:
        account = await self.chain.get_account_info(address)
        if account is None:
            raise PumpSdkError(f"{label} account {address} not found")
        return account

    async def fetch_global(self) -> GlobalParams:
        account = await self._fetch_account(PUMP_GLOBAL, "Global")
        return decode_global(account.data)

    async def fetch_fee_config(self) -> Optional[FeeConfig]:
        """Fee configuration, or None when the fee program has none for this program."""
        account = await self.chain.get_account_info(fee_config_pda())
        if account is None:
            logger.debug("No fee config account, global fee fields apply")
            return None
        return decode_fee_config(account.data)

    async def fetch_buy_state(self, mint: Pubkey, user: Pubkey, token_program: Pubkey) -> BuyState:
        bonding_curve_info = await self._fetch_account(bonding_curve_pda(mint), "Bonding curve")
        user_ata = get_associated_token_address(user, mint, token_program)
        user_ata_info = await self.chain.get_account_info(user_ata)
        return BuyState(
            bonding_curve_account_info=bonding_curve_info,
            bonding_curve=decode_bonding_curve(bonding_curve_info.data),
            associated_user_account_info=user_ata_info,
        )

    async def fetch_sell_state(self, mint: Pubkey, user: Pubkey, token_program: Pubkey) -> SellState:
        bonding_curve_info = await self._fetch_account(bonding_curve_pda(mint), "Bonding curve")
        await self._fetch_account(
            get_associated_token_address(user, mint, token_program), "Associated token"
        )
        return SellState(
            bonding_curve_account_info=bonding_curve_info,
            bonding_curve=decode_bonding_curve(bonding_curve_info.data),
        )

    def _trade_accounts(self,
                        global_params: GlobalParams,
                        bonding_curve: BondingCurve,
                        mint: Pubkey,
                        user: Pubkey,
                        token_program: Pubkey) -> dict:
        creator = Pubkey.from_string(bonding_curve.creator) if bonding_curve.creator else SYSTEM_PROGRAM_ID
        return {
            "fee_recipient": Pubkey.from_string(global_params.fee_recipient),
            "bonding_curve": bonding_curve_pda(mint),
            "associated_bonding_curve": associated_bonding_curve(mint, token_program),
            "associated_user": get_associated_token_address(user, mint, token_program),
            "creator_vault": creator_vault_pda(creator),
        }

    def buy_instructions(self,
                         global_params: GlobalParams,
                         buy_state: BuyState,
                         mint: Pubkey,
                         user: Pubkey,
                         amount: int,
                         sol_amount: int,
                         slippage: float,
                         token_program: Pubkey) -> List[Instruction]:
        """
        Build the instructions for a buy.

        Args:
            global_params: Global program parameters
            buy_state: Curve and user token account state
            mint: Token mint
            user: Buyer (signer and fee payer)
            amount: Raw token amount to receive
            sol_amount: Lamports to spend before slippage
            slippage: Slippage tolerance in percent
            token_program: Token program owning the mint

        Returns:
            Ordered instruction list
        """
        if amount <= 0:
            raise PumpSdkError("Buy amount must be positive")
        if buy_state.bonding_curve.complete:
            raise PumpSdkError("Bonding curve is complete, token has migrated")

        accts = self._trade_accounts(global_params, buy_state.bonding_curve, mint, user, token_program)
        max_sol_cost = buy_with_slippage(sol_amount, slippage)

        instructions = []
        if buy_state.associated_user_account_info is None:
            instructions.append(
                create_idempotent_associated_token_account(user, user, mint, token_program_id=token_program)
            )

        keys = [
            AccountMeta(pubkey=PUMP_GLOBAL, is_signer=False, is_writable=False),
            AccountMeta(pubkey=accts["fee_recipient"], is_signer=False, is_writable=True),
            AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
            AccountMeta(pubkey=accts["bonding_curve"], is_signer=False, is_writable=True),
            AccountMeta(pubkey=accts["associated_bonding_curve"], is_signer=False, is_writable=True),
            AccountMeta(pubkey=accts["associated_user"], is_signer=False, is_writable=True),
            AccountMeta(pubkey=user, is_signer=True, is_writable=True),
            AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=token_program, is_signer=False, is_writable=False),
            AccountMeta(pubkey=accts["creator_vault"], is_signer=False, is_writable=True),
            AccountMeta(pubkey=PUMP_EVENT_AUTHORITY, is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=global_volume_accumulator_pda(), is_signer=False, is_writable=False),
            AccountMeta(pubkey=user_volume_accumulator_pda(user), is_signer=False, is_writable=True),
            AccountMeta(pubkey=fee_config_pda(), is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_FEE_PROGRAM_ID, is_signer=False, is_writable=False),
        ]
        # Trailing OptionBool: Some(true) tracks volume for the user
        data = BUY_DISCRIMINATOR + struct.pack("<QQ", amount, max_sol_cost) + bytes([1, 1])
        instructions.append(Instruction(PUMP_PROGRAM_ID, data, keys))
        return instructions

    def sell_instructions(self,
                          global_params: GlobalParams,
                          sell_state: SellState,
                          mint: Pubkey,
                          user: Pubkey,
                          amount: int,
                          sol_amount: int,
                          slippage: float,
                          token_program: Pubkey) -> List[Instruction]:
        """
        Build the instructions for a sell.

        Args:
            amount: Raw token amount to sell
            sol_amount: Quoted lamport output before slippage
            slippage: Slippage tolerance in percent
        """
        if amount <= 0:
            raise PumpSdkError("Sell amount must be positive")
        if sell_state.bonding_curve.complete:
            raise PumpSdkError("Bonding curve is complete, token has migrated")

        accts = self._trade_accounts(global_params, sell_state.bonding_curve, mint, user, token_program)
        min_sol_output = sell_with_slippage(sol_amount, slippage)

        keys = [
            AccountMeta(pubkey=PUMP_GLOBAL, is_signer=False, is_writable=False),
            AccountMeta(pubkey=accts["fee_recipient"], is_signer=False, is_writable=True),
            AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
            AccountMeta(pubkey=accts["bonding_curve"], is_signer=False, is_writable=True),
            AccountMeta(pubkey=accts["associated_bonding_curve"], is_signer=False, is_writable=True),
            AccountMeta(pubkey=accts["associated_user"], is_signer=False, is_writable=True),
            AccountMeta(pubkey=user, is_signer=True, is_writable=True),
            AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=accts["creator_vault"], is_signer=False, is_writable=True),
            AccountMeta(pubkey=token_program, is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_EVENT_AUTHORITY, is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=fee_config_pda(), is_signer=False, is_writable=False),
            AccountMeta(pubkey=PUMP_FEE_PROGRAM_ID, is_signer=False, is_writable=False),
        ]
        data = SELL_DISCRIMINATOR + struct.pack("<QQ", amount, min_sol_output)
        return [Instruction(PUMP_PROGRAM_ID, data, keys)]
