# flasharb/flash_loan.py
"""
Flash Loan Controller
Lends a pool's tokens for the span of one synchronous callback and
requires principal + fee back before control returns
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from flasharb.config import BPS_DENOMINATOR, FLASH_LOAN_FEE_BPS
from flasharb.errors import (
    InsufficientBalance, InsufficientPoolLiquidity, LoanInProgress,
    LoanNotRepaid, UnsupportedPair, ZeroAmount,
)
from flasharb.pairs import get_symbol, to_address
from flasharb.pool import ReservePool

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class LoanState(Enum):
    IDLE = "idle"
    LOAN_ISSUED = "loan_issued"
    CALLBACK_RUNNING = "callback_running"
    REPAID = "repaid"
    REVERTED = "reverted"


@dataclass
class LoanRecord:
    """One issuance; lives only for the duration of issue()"""
    asset: str
    principal: int
    fee: int
    borrower: str
    pre_balance: int
    pre_reserve: int
    state: LoanState = LoanState.IDLE
    error: str = ""

    @property
    def amount_to_repay(self) -> int:
        return self.principal + self.fee

    @property
    def required_surplus(self) -> int:
        """Pool balance above its reserve that must be back once the callback returns"""
        return self.pre_balance - self.pre_reserve + self.fee


class FlashLoanReceiver:
    """
    Borrower side of the protocol.
    Subclasses expose `address` and implement on_loan_received().
    """

    address: str

    def on_loan_received(self, caller: str, asset: str, amount: int, fee: int, payload: bytes) -> None:
        raise NotImplementedError


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def calculate_fee(amount: int, fee_bps: int) -> int:
    """Flash loan fee, floored"""
    return (amount * fee_bps) // BPS_DENOMINATOR


def calculate_total_repayment(amount: int, fee_bps: int) -> int:
    """Calculate total amount to repay (principal + fee)"""
    return amount + calculate_fee(amount, fee_bps)


# =============================================================================
# FLASH LOAN CONTROLLER
# =============================================================================

class FlashLoanController:
    """
    Issues uncollateralized loans out of one pool's token balance.

    The lender's identity is the pool's address: funds leave from it,
    repayment goes back to it, and borrowers authenticate callbacks against it.
    One loan at a time per pool; issue() holds the pool's execution token
    from validation to the final solvency check.
    """

    def __init__(self, pool: ReservePool, fee_bps: int = FLASH_LOAN_FEE_BPS):
        if fee_bps < 0:
            raise ValueError(f"fee_bps must be non-negative, got {fee_bps}")
        self.pool = pool
        self.ledger = pool.ledger
        self.address = pool.address
        self.fee_bps = fee_bps

        self.state = LoanState.IDLE
        self.active_loan: Optional[LoanRecord] = None
        self.last_loan: Optional[LoanRecord] = None

        self.collected_fees: Dict[str, int] = {}
        self._counters: Dict[str, int] = {"total_loans": 0, "failed_loans": 0}

    @property
    def total_loans(self) -> int:
        return self._counters["total_loans"]

    @property
    def failed_loans(self) -> int:
        return self._counters["failed_loans"]

    def available_liquidity(self, asset: str) -> int:
        """Tokens the pool can lend right now"""
        return self.ledger.balance_of(self.address, asset)

    def quote_fee(self, amount: int) -> int:
        return calculate_fee(amount, self.fee_bps)

    def issue(self, asset: str, amount: int, borrower: FlashLoanReceiver, payload: bytes = b"") -> LoanRecord:
        """
        Lend `amount` of `asset` to `borrower`, run its callback, and require
        principal + fee back. Swaps through this pool during the callback move
        balance and reserve together, so repayment is measured on the balance
        held above the reserve.
        Every ledger and reserve write made in between is undone on failure.
        """
        asset = to_address(asset)
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ZeroAmount(f"Loan amount must be positive, got {amount!r}")
        if not self.pool.supports(asset):
            raise UnsupportedPair(f"{get_symbol(asset)} is not lent by {self.pool.name}")

        with self.pool.execution_token:
            if self.state is not LoanState.IDLE:
                raise LoanInProgress(f"{self.pool.name} already has a loan {self.state.value}")

            pre_balance = self.available_liquidity(asset)
            if pre_balance < amount:
                raise InsufficientPoolLiquidity(
                    f"Insufficient liquidity: {pre_balance} < {amount} {get_symbol(asset)}"
                )

            loan = LoanRecord(
                asset=asset,
                principal=amount,
                fee=self.quote_fee(amount),
                borrower=to_address(borrower.address),
                pre_balance=pre_balance,
                pre_reserve=self.pool.reserve_of(asset),
            )
            self.active_loan = loan
            self._transition(loan, LoanState.LOAN_ISSUED)

            try:
                with self.ledger.transaction(name=f"flash-loan:{self.pool.name}"):
                    self.ledger.transfer(self.address, loan.borrower, asset, amount)
                    self._run_callback(loan, borrower, payload)

                    surplus = self.available_liquidity(asset) - self.pool.reserve_of(asset)
                    if surplus < loan.required_surplus:
                        raise LoanNotRepaid(
                            f"Repaid {surplus - loan.required_surplus + loan.amount_to_repay} "
                            f"{get_symbol(asset)}, owed {loan.amount_to_repay} (principal {amount} + fee {loan.fee})"
                        )
            except Exception as e:
                loan.error = str(e)
                self._transition(loan, LoanState.REVERTED)
                self._bump("failed_loans")
                logger.warning(f"[{self.pool.name}] flash loan reverted: {e}")
                raise
            else:
                self._transition(loan, LoanState.REPAID)
                self._bump("total_loans")
                self.ledger.journal.add(self.collected_fees, asset, loan.fee)
                logger.info(
                    f"[{self.pool.name}] flash loan repaid: {amount} {get_symbol(asset)} "
                    f"+ fee {loan.fee} from {loan.borrower}"
                )
            finally:
                self.active_loan = None
                self.last_loan = loan
                self.state = LoanState.IDLE

            return loan

    def _run_callback(self, loan: LoanRecord, borrower: FlashLoanReceiver, payload: bytes):
        self._transition(loan, LoanState.CALLBACK_RUNNING)
        try:
            borrower.on_loan_received(self.address, loan.asset, loan.principal, loan.fee, payload)
        except InsufficientBalance as e:
            # borrower could not fund its repayment
            raise LoanNotRepaid(f"Borrower {loan.borrower} could not repay: {e}") from e

    def _transition(self, loan: LoanRecord, state: LoanState):
        logger.debug(f"[{self.pool.name}] loan {loan.state.value} -> {state.value}")
        loan.state = state
        self.state = state

    def _bump(self, counter: str):
        self.ledger.journal.add(self._counters, counter, 1)
