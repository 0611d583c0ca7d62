# flasharb/main.py
"""
Flash-Loan Arbitrage Scenario Runner

Run with: python -m flasharb.main

Builds a DAI/USDC market with one or two constant-product pools, seeds a
price skew between them and runs one flash-loan arbitrage.

MODES:
1. SIMULATE: run the whole chain and discard it (dry run)
2. EXECUTE: run and keep the resulting state
"""

import sys
import logging
import argparse
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from flasharb.config import FLASH_LOAN_FEE_BPS, LOG_DIR, LOG_LEVEL, MIN_PROFIT_BPS
from flasharb.errors import ArbitrageError
from flasharb.executor import ArbitrageExecutor, ExecutionStatus, SwapRoute
from flasharb.flash_loan import FlashLoanController
from flasharb.ledger import TokenLedger
from flasharb.pairs import DAI, USDC, derive_address, get_symbol, to_human, to_units
from flasharb.pool import ReservePool
from flasharb.profit_calculator import format_result

logger = logging.getLogger(__name__)


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(level: str = LOG_LEVEL, log_dir: Optional[str] = LOG_DIR):
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path / f"flasharb_{datetime.now().strftime('%Y%m%d')}.log"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)-8s | %(message)s',
        handlers=handlers,
    )


# =============================================================================
# SCENARIO
# =============================================================================

@dataclass
class Scenario:
    ledger: TokenLedger
    owner: str
    pools: List[ReservePool]
    controller: FlashLoanController
    executor: ArbitrageExecutor


def build_scenario(
    two_pools: bool = True,
    liquidity: Decimal = Decimal("10000000"),
    skew_bps: int = 200,
    threshold_bps: int = MIN_PROFIT_BPS,
) -> Scenario:
    """
    Pool A prices 1 DAI at (1 + skew) USDC and lends DAI; pool B (when
    present) sits at parity. The executor sells DAI on A and buys it back on B.
    """
    ledger = TokenLedger()
    owner = derive_address("owner")

    dai_reserve = to_units(DAI, liquidity)
    usdc_reserve = to_units(USDC, liquidity)
    usdc_skewed = usdc_reserve * (10_000 + skew_bps) // 10_000

    def seed(name: str, dai_amount: int, usdc_amount: int) -> ReservePool:
        pool = ReservePool(ledger, DAI, USDC, owner, name=name)
        for asset, amount in ((DAI, dai_amount), (USDC, usdc_amount)):
            ledger.mint(owner, asset, amount)
            ledger.approve(owner, pool.address, asset, amount)
            pool.add_liquidity(owner, asset, amount)
        return pool

    pools = [seed("dex-a", dai_reserve, usdc_skewed)]
    if two_pools:
        pools.append(seed("dex-b", dai_reserve, usdc_reserve))

    controller = FlashLoanController(pools[0], fee_bps=FLASH_LOAN_FEE_BPS)
    route = SwapRoute(first=pools[0], second=pools[1] if two_pools else None)
    executor = ArbitrageExecutor(ledger, controller, route, owner, threshold_bps=threshold_bps)
    return Scenario(ledger, owner, pools, controller, executor)


# =============================================================================
# ENTRY POINT
# =============================================================================

def main(argv=None):
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Flash-loan arbitrage simulator")
    parser.add_argument(
        "--mode",
        choices=["simulate", "execute"],
        default="simulate",
        help="simulate (dry run, state discarded) or execute",
    )
    parser.add_argument(
        "--variant",
        choices=["single", "dual"],
        default="dual",
        help="single: both legs on one pool; dual: leg 2 on a second pool",
    )
    parser.add_argument("--amount", type=str, default="10000", help="DAI to borrow (default: 10000)")
    parser.add_argument("--liquidity", type=str, default="10000000", help="Per-pool reserve per asset")
    parser.add_argument("--skew-bps", type=int, default=200, help="Pool A price premium in bps (default: 200)")
    parser.add_argument("--threshold-bps", type=int, default=MIN_PROFIT_BPS, help="Profit threshold in bps")
    parser.add_argument("--log-level", default=LOG_LEVEL)
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    scenario = build_scenario(
        two_pools=args.variant == "dual",
        liquidity=Decimal(args.liquidity),
        skew_bps=args.skew_bps,
        threshold_bps=args.threshold_bps,
    )
    executor = scenario.executor
    amount = to_units(DAI, args.amount)

    logger.info("=" * 60)
    logger.info(f"Variant: {args.variant} | Mode: {args.mode} | Borrow: {args.amount} {get_symbol(DAI)}")
    for pool in scenario.pools:
        price = to_human(USDC, pool.spot_price(DAI, USDC))
        logger.info(f"{pool.name}: 1 DAI = {price:.6f} USDC")
    logger.info("=" * 60)

    if args.mode == "simulate":
        try:
            result = executor.simulate(DAI, amount)
        except ArbitrageError as e:
            logger.warning(f"❌ Simulation reverted: {type(e).__name__}: {e}")
            return 1
        logger.info("\n" + format_result(result))
        return 0

    outcome = executor.execute(DAI, amount)
    if outcome.status is ExecutionStatus.REVERTED:
        logger.warning(f"❌ Reverted: {outcome.error}")
        return 1

    logger.info("\n" + format_result(outcome.result))
    logger.info(f"Statistics: {executor.get_statistics()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
