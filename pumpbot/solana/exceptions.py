"""
Error taxonomy for trading operations.
"""


class PumpBotError(Exception):
    """Base exception for pumpbot errors"""
    pass


class ConfigurationError(PumpBotError):
    """Missing signing key or a collaborator that does not satisfy its contract"""
    pass


class ChainQueryError(PumpBotError):
    """A read query against the RPC node failed after retries"""
    pass


class TradeError(PumpBotError):
    """Base exception for a single failed trade attempt"""
    pass


class InsufficientBalanceError(TradeError):
    """Wallet SOL balance does not cover the requested spend"""

    def __init__(self, required: float, available: float):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient balance. Need {required} SOL, have {available:.4f} SOL"
        )


class QuoteUnavailableError(TradeError):
    """Curve state could not be fetched or produced no usable quote"""
    pass


class InstructionBuildError(TradeError):
    """The bonding-curve SDK rejected the instruction request"""
    pass


class SubmissionError(TradeError):
    """Transaction submission or confirmation failed"""
    pass


class NothingToSellError(TradeError):
    """Wallet holds no tokens of the requested mint"""
    pass
