# flasharb/profit_calculator.py
"""
Settlement & Profit Accounting
Turns pre/post loan balances into an immutable arbitrage result
"""

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from flasharb.config import BPS_DENOMINATOR, MIN_PROFIT_BPS
from flasharb.pairs import get_symbol, to_address, to_human

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class ArbitrageResult:
    """Outcome of one repaid flash-loan arbitrage"""
    asset: str
    amount_borrowed: int
    fee: int

    # Executor balances around the loan
    start_balance: int
    final_balance: int

    # What the two legs returned, before repayment
    final_amount: int

    # profit = final_amount - (amount_borrowed + fee), may be negative
    profit: int
    is_profitable: bool
    threshold_bps: int = MIN_PROFIT_BPS

    @property
    def amount_to_repay(self) -> int:
        return self.amount_borrowed + self.fee

    @property
    def profit_bps(self) -> int:
        return (self.profit * BPS_DENOMINATOR) // self.amount_to_repay if self.amount_to_repay else 0

    def as_event(self) -> dict:
        """External event record; key order is part of the format"""
        return {
            "asset": self.asset,
            "amountBorrowed": self.amount_borrowed,
            "finalBalance": self.final_balance,
            "profit": self.profit,
            "isProfitable": self.is_profitable,
        }


# =============================================================================
# PROFIT CALCULATION
# =============================================================================

def clears_threshold(final_amount: int, amount_to_repay: int, threshold_bps: int = MIN_PROFIT_BPS) -> bool:
    """
    True iff final_amount beats amount_to_repay by more than threshold_bps.
    Strict: landing exactly on the threshold is not profitable.
    """
    return final_amount * BPS_DENOMINATOR > amount_to_repay * (BPS_DENOMINATOR + threshold_bps)


def settle(
    asset: str,
    amount_borrowed: int,
    fee: int,
    start_balance: int,
    final_balance: int,
    threshold_bps: int = MIN_PROFIT_BPS,
) -> ArbitrageResult:
    """Build the result from the executor's balance before and after the loan"""
    profit = final_balance - start_balance
    final_amount = profit + amount_borrowed + fee

    return ArbitrageResult(
        asset=to_address(asset),
        amount_borrowed=amount_borrowed,
        fee=fee,
        start_balance=start_balance,
        final_balance=final_balance,
        final_amount=final_amount,
        profit=profit,
        is_profitable=clears_threshold(final_amount, amount_borrowed + fee, threshold_bps),
        threshold_bps=threshold_bps,
    )


def emit_result(result: ArbitrageResult, sink: Optional[List[dict]] = None) -> dict:
    """Publish the event as one JSON log line (and into `sink` if given)"""
    event = result.as_event()
    logger.info(f"ArbitrageExecuted {json.dumps(event)}")
    if sink is not None:
        sink.append(event)
    return event


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def format_result(result: ArbitrageResult) -> str:
    """Format an arbitrage result for logging"""
    symbol = get_symbol(result.asset)

    def human(amount: int):
        return to_human(result.asset, amount)

    return (
        f"=== Arbitrage Result ===\n"
        f"Borrowed: {human(result.amount_borrowed):.6f} {symbol}\n"
        f"Flash Loan Fee: {human(result.fee):.6f} {symbol}\n"
        f"To Repay: {human(result.amount_to_repay):.6f} {symbol}\n"
        f"Legs Returned: {human(result.final_amount):.6f} {symbol}\n"
        f"--- Result ---\n"
        f"Profit: {human(result.profit):.6f} {symbol} ({result.profit_bps} bps)\n"
        f"Threshold: {result.threshold_bps} bps\n"
        f"Profitable: {'✅ YES' if result.is_profitable else '❌ NO'}"
    )
