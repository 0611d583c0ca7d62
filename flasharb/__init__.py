# flasharb/__init__.py
"""
Flash-Loan Arbitrage Simulator
Constant-product pools, atomic flash loans and a two-leg arbitrage executor

Modules:
- config: Fee and threshold constants (.env overridable)
- pairs: Token registry and address helpers
- ledger: Fungible-token balances and allowances
- transaction: All-or-nothing execution units
- pool: Constant-product reserve pool
- flash_loan: Flash loan issuance and repayment checks
- executor: Arbitrage executor (loan callback)
- profit_calculator: Settlement and profit reporting
- main: Scenario runner entry point
"""

__version__ = "1.0.0"

from flasharb.errors import (
    ArbitrageError,
    InvalidInput,
    ZeroAmount,
    UnsupportedPair,
    InsufficientLiquidity,
    InsufficientPoolLiquidity,
    LoanNotRepaid,
    UnauthorizedCallback,
)
from flasharb.ledger import TokenLedger
from flasharb.pool import ReservePool
from flasharb.flash_loan import FlashLoanController, LoanRecord, LoanState
from flasharb.executor import ArbitrageExecutor, ExecutionStatus, SwapRoute
from flasharb.profit_calculator import ArbitrageResult, settle

__all__ = [
    "ArbitrageError",
    "InvalidInput",
    "ZeroAmount",
    "UnsupportedPair",
    "InsufficientLiquidity",
    "InsufficientPoolLiquidity",
    "LoanNotRepaid",
    "UnauthorizedCallback",
    "TokenLedger",
    "ReservePool",
    "FlashLoanController",
    "LoanRecord",
    "LoanState",
    "ArbitrageExecutor",
    "ExecutionStatus",
    "SwapRoute",
    "ArbitrageResult",
    "settle",
]
