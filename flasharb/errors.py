# flasharb/errors.py
"""
Exception taxonomy for pools, flash loans and the arbitrage executor
Validation errors are raised before any state is touched
"""


class ArbitrageError(Exception):
    """Base class for every failure raised by flasharb"""


# =============================================================================
# INPUT VALIDATION
# =============================================================================

class InvalidInput(ArbitrageError):
    pass


class ZeroAmount(InvalidInput):
    pass


class UnsupportedPair(InvalidInput):
    """Same-asset swap, or an asset the pool does not hold"""


# =============================================================================
# LIQUIDITY
# =============================================================================

class InsufficientLiquidity(ArbitrageError):
    pass


class InsufficientPoolLiquidity(InsufficientLiquidity):
    """Loan request larger than the pool balance"""


# =============================================================================
# LEDGER
# =============================================================================

class TransferError(ArbitrageError):
    pass


class InsufficientBalance(TransferError):
    pass


class InsufficientAllowance(TransferError):
    pass


# =============================================================================
# FLASH LOANS & ACCESS
# =============================================================================

class LoanNotRepaid(ArbitrageError):
    pass


class LoanInProgress(ArbitrageError):
    """A second loan was requested on a pool with one already in flight"""


class UnauthorizedCallback(ArbitrageError):
    pass


class Unauthorized(ArbitrageError):
    pass
