"""
Trading errors
"""


class TradingError(Exception):
    """Base class for trade lifecycle errors"""


class NoRouteError(TradingError):
    """Neither the aggregator nor the bonding-curve venue could build a swap"""


class SubmissionError(TradingError):
    """Every relay, the direct broadcast and the landed check came back empty"""


class ExecutionFailedError(TradingError):
    """Transaction landed but the runtime rejected it"""

    def __init__(self, signature: str, err=None):
        self.signature = signature
        self.err = err
        super().__init__("Transaction failed on-chain")


class SigningUnavailableError(TradingError):
    """Wallet is not the server-held trading wallet"""


class PositionConflictError(TradingError):
    """Active position already exists, mint is blacklisted, or a trade is in flight"""
