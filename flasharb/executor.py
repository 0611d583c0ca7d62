# flasharb/executor.py
"""
Flash-Loan Arbitrage Executor
Borrows one asset, round-trips it through one or two pools,
repays principal + fee and settles the profit
"""

import time
import logging
import threading
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError

from flasharb.config import MIN_PROFIT_BPS
from flasharb.errors import (
    ArbitrageError, InvalidInput, Unauthorized, UnauthorizedCallback,
    UnsupportedPair, ZeroAmount,
)
from flasharb.flash_loan import FlashLoanController, FlashLoanReceiver
from flasharb.ledger import TokenLedger
from flasharb.pairs import derive_address, get_symbol, to_address
from flasharb.pool import ReservePool
from flasharb.profit_calculator import ArbitrageResult, emit_result, settle

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class ExecutionStatus(Enum):
    SUCCESS = "success"            # repaid and above the profit threshold
    UNPROFITABLE = "unprofitable"  # repaid, threshold not cleared
    REVERTED = "reverted"          # nothing happened


@dataclass
class ExecutionResult:
    """Result of an arbitrage execution attempt"""
    status: ExecutionStatus
    asset: str
    amount: int
    result: Optional[ArbitrageResult] = None
    error: str = ""
    execution_time_ms: float = 0


@dataclass(frozen=True)
class SwapRoute:
    """
    Which pools service the two legs.
    No `second` pool means both legs go through `first`.
    """
    first: ReservePool
    second: Optional[ReservePool] = None

    @property
    def leg1(self) -> ReservePool:
        return self.first

    @property
    def leg2(self) -> ReservePool:
        return self.second if self.second is not None else self.first

    @property
    def is_single_pool(self) -> bool:
        return self.leg2 is self.first

    @property
    def pools(self) -> Tuple[ReservePool, ...]:
        return (self.first,) if self.is_single_pool else (self.first, self.second)

    def encode(self) -> bytes:
        return encode_route_params(self.leg1.address, self.leg2.address)


# =============================================================================
# PAYLOAD ENCODING
# =============================================================================

def encode_route_params(leg1_pool: str, leg2_pool: str) -> bytes:
    """ABI-encode the pools for the loan callback"""
    return encode(["address", "address"], [to_address(leg1_pool), to_address(leg2_pool)])


def decode_route_params(payload: bytes) -> Tuple[str, str]:
    try:
        leg1_pool, leg2_pool = decode(["address", "address"], payload)
    except DecodingError as e:
        raise InvalidInput(f"Malformed route payload: {e}") from e
    return to_address(leg1_pool), to_address(leg2_pool)


# =============================================================================
# ARBITRAGE EXECUTOR
# =============================================================================

class ArbitrageExecutor(FlashLoanReceiver):
    """
    Borrower contract for two-leg flash-loan arbitrage.

    Flow: initiate() -> controller.issue() -> on_loan_received() swaps
    leg 1 and leg 2, repays the controller -> initiate() settles.
    The executor does not check its own solvency; the controller does.
    """

    def __init__(
        self,
        ledger: TokenLedger,
        controller: FlashLoanController,
        route: SwapRoute,
        owner: str,
        name: str = "arb-executor",
        threshold_bps: int = MIN_PROFIT_BPS,
    ):
        if threshold_bps < 0:
            raise ValueError(f"threshold_bps must be non-negative, got {threshold_bps}")
        self.ledger = ledger
        self.controller = controller
        self.route = route
        self.owner = to_address(owner)
        self.name = name
        self.address = derive_address(f"executor:{name}")
        self.threshold_bps = threshold_bps

        self._pools: Dict[str, ReservePool] = {pool.address: pool for pool in route.pools}
        self.events: List[dict] = []
        # (asset, amount) this thread asked the controller for, while it is out
        self._pending = threading.local()
        self.last_result: Optional[ArbitrageResult] = None

        # Execution statistics
        self.total_executions = 0
        self.successful_executions = 0
        self.total_profit: Dict[str, int] = {}

    def __repr__(self) -> str:
        return f"ArbitrageExecutor({self.name}, {self.address})"

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def initiate(self, asset: str, amount: int) -> bool:
        """
        Run one flash-loan arbitrage and report whether it cleared the
        profit threshold. A repaid but unprofitable run returns False;
        failures (including LoanNotRepaid) propagate with all state unwound.
        """
        result = self._run(asset, amount)
        self.last_result = result
        emit_result(result, self.events)
        return result.is_profitable

    def simulate(self, asset: str, amount: int) -> ArbitrageResult:
        """Dry run: execute the whole chain, then discard every write"""
        with self.ledger.transaction(name=f"simulate:{self.name}", rollback_only=True):
            return self._run(asset, amount)

    def execute(self, asset: str, amount: int) -> ExecutionResult:
        """initiate() that reports failures as a result instead of raising"""
        start_time = time.time()
        asset = to_address(asset)
        self.total_executions += 1

        try:
            profitable = self.initiate(asset, amount)
        except ArbitrageError as e:
            logger.error(f"[{self.name}] Execution failed: {type(e).__name__}: {e}")
            return ExecutionResult(
                status=ExecutionStatus.REVERTED,
                asset=asset,
                amount=amount,
                error=f"{type(e).__name__}: {e}",
                execution_time_ms=(time.time() - start_time) * 1000,
            )

        result = self.last_result
        self.total_profit[asset] = self.total_profit.get(asset, 0) + result.profit
        if profitable:
            self.successful_executions += 1
            logger.info(f"[{self.name}] ✅ Arbitrage profitable: +{result.profit} {get_symbol(asset)}")
        else:
            logger.info(f"[{self.name}] Arbitrage repaid below threshold: {result.profit} {get_symbol(asset)}")

        return ExecutionResult(
            status=ExecutionStatus.SUCCESS if profitable else ExecutionStatus.UNPROFITABLE,
            asset=asset,
            amount=amount,
            result=result,
            execution_time_ms=(time.time() - start_time) * 1000,
        )

    def _run(self, asset: str, amount: int) -> ArbitrageResult:
        asset = to_address(asset)
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ZeroAmount(f"Loan amount must be positive, got {amount!r}")
        for pool in (self.controller.pool, self.route.leg1, self.route.leg2):
            if not pool.supports(asset):
                raise UnsupportedPair(f"{get_symbol(asset)} is not traded by {pool.name}")

        with ExitStack() as stack:
            # hold every pool on the chain; address order avoids lock inversion
            involved = {pool.address: pool for pool in (self.controller.pool, *self.route.pools)}
            for address in sorted(involved):
                stack.enter_context(involved[address].execution_token)

            start_balance = self.ledger.balance_of(self.address, asset)
            self._pending.loan = (asset, amount)
            try:
                loan = self.controller.issue(asset, amount, self, self.route.encode())
            finally:
                self._pending.loan = None
            final_balance = self.ledger.balance_of(self.address, asset)

        return settle(
            asset=asset,
            amount_borrowed=amount,
            fee=loan.fee,
            start_balance=start_balance,
            final_balance=final_balance,
            threshold_bps=self.threshold_bps,
        )

    # -------------------------------------------------------------------------
    # Loan callback
    # -------------------------------------------------------------------------

    def on_loan_received(self, caller: str, asset: str, amount: int, fee: int, payload: bytes) -> None:
        self._authenticate(caller, asset, amount, fee)

        leg1_pool, leg2_pool = self._resolve_route(payload)
        asset = to_address(asset)
        other = leg1_pool.other_asset(asset)

        mid = self._swap(leg1_pool, asset, other, amount)
        final_amount = self._swap(leg2_pool, other, asset, mid)
        logger.debug(
            f"[{self.name}] legs: {amount} {get_symbol(asset)} -> {mid} {get_symbol(other)} "
            f"-> {final_amount} {get_symbol(asset)}"
        )

        self.ledger.transfer(self.address, self.controller.address, asset, amount + fee)

    def _authenticate(self, caller: str, asset: str, amount: int, fee: int):
        """Only the configured controller, serving a loan this thread requested"""
        pending = getattr(self._pending, "loan", None)
        with self.controller.pool.execution_token:
            loan = self.controller.active_loan

        if to_address(caller) != self.controller.address or loan is None:
            raise UnauthorizedCallback(f"{caller} is not an active lender for {self.name}")
        if pending is None or loan.borrower != self.address or (loan.asset, loan.principal) != pending:
            raise UnauthorizedCallback(f"Loan in flight on {self.controller.pool.name} was not requested by {self.name}")
        if (to_address(asset), amount, fee) != (loan.asset, loan.principal, loan.fee):
            raise UnauthorizedCallback(
                f"Callback arguments {amount} {get_symbol(asset)} + fee {fee} do not match the loan"
            )

    def _resolve_route(self, payload: bytes) -> Tuple[ReservePool, ReservePool]:
        if not payload:
            return self.route.leg1, self.route.leg2

        leg1_address, leg2_address = decode_route_params(payload)
        try:
            return self._pools[leg1_address], self._pools[leg2_address]
        except KeyError as e:
            raise InvalidInput(f"Route names a pool unknown to {self.name}: {e}") from e

    def _swap(self, pool: ReservePool, asset_in: str, asset_out: str, amount_in: int) -> int:
        self.ledger.approve(self.address, pool.address, asset_in, amount_in)
        return pool.swap(self.address, asset_in, asset_out, amount_in)

    # -------------------------------------------------------------------------
    # Owner utilities
    # -------------------------------------------------------------------------

    def withdraw(self, caller: str, asset: str, amount: int, to: str = None) -> int:
        """Owner-only sweep of accumulated profit"""
        if to_address(caller) != self.owner:
            raise Unauthorized(f"{caller} is not the owner of {self.name}")
        if not isinstance(amount, int) or amount <= 0:
            raise ZeroAmount(f"Withdraw amount must be positive, got {amount!r}")
        recipient = to_address(to) if to else self.owner
        self.ledger.transfer(self.address, recipient, asset, amount)
        logger.info(f"[{self.name}] withdrew {amount} {get_symbol(asset)} to {recipient}")
        return amount

    def get_statistics(self) -> dict:
        """Get execution statistics"""
        return {
            "total_executions": self.total_executions,
            "successful_executions": self.successful_executions,
            "success_rate": (
                self.successful_executions / self.total_executions * 100
                if self.total_executions > 0 else 0
            ),
            "total_profit": {get_symbol(a): p for a, p in self.total_profit.items()},
        }
