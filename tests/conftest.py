import pytest

from flasharb.executor import ArbitrageExecutor, SwapRoute
from flasharb.flash_loan import FlashLoanController
from flasharb.ledger import TokenLedger
from flasharb.pairs import DAI, USDC, derive_address
from flasharb.pool import ReservePool


def curve_out(amount_in, reserve_in, reserve_out, fee_numerator=3, fee_denominator=1000):
    """Closed-form constant-product output, written out independently of the pool"""
    after_fee = amount_in * (fee_denominator - fee_numerator) // fee_denominator
    return after_fee * reserve_out // (reserve_in + after_fee)


@pytest.fixture
def ledger():
    return TokenLedger()


@pytest.fixture
def owner():
    return derive_address("owner")


@pytest.fixture
def make_pool(ledger, owner):
    """Pool factory: make_pool(name, dai_reserve, usdc_reserve)"""
    def _make(name, dai_reserve, usdc_reserve):
        pool = ReservePool(ledger, DAI, USDC, owner, name=name)
        for asset, amount in ((DAI, dai_reserve), (USDC, usdc_reserve)):
            if amount:
                ledger.mint(owner, asset, amount)
                ledger.approve(owner, pool.address, asset, amount)
                pool.add_liquidity(owner, asset, amount)
        return pool
    return _make


@pytest.fixture
def pool(make_pool):
    """1,000,000 DAI / 1,000,000 USDC"""
    return make_pool("dex-a", 1_000_000, 1_000_000)


@pytest.fixture
def controller(pool):
    return FlashLoanController(pool, fee_bps=9)


@pytest.fixture
def dual_market(ledger, owner, make_pool):
    """
    Pool A: 1 DAI = 1.02 USDC (lends DAI, leg 1).
    Pool B: 1 DAI = 1.00 USDC (leg 2).
    """
    pool_a = make_pool("dex-a", 10_000_000, 10_200_000)
    pool_b = make_pool("dex-b", 10_000_000, 10_000_000)
    controller = FlashLoanController(pool_a, fee_bps=9)
    executor = ArbitrageExecutor(
        ledger, controller, SwapRoute(first=pool_a, second=pool_b), owner, threshold_bps=100
    )
    return pool_a, pool_b, controller, executor


@pytest.fixture
def single_executor(ledger, owner, pool, controller):
    return ArbitrageExecutor(ledger, controller, SwapRoute(first=pool), owner, name="single", threshold_bps=100)
