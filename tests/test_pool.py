"""
Constant-product pool: pricing, reserve updates and invariants.
"""

import pytest

from flasharb.errors import (
    InsufficientAllowance, InsufficientLiquidity, Unauthorized, UnsupportedPair, ZeroAmount,
)
from flasharb.pairs import DAI, USDC, WETH, derive_address
from flasharb.pool import ReservePool

from tests.conftest import curve_out


def test_quote_matches_closed_form(pool):
    # 10,000 * 997 // 1000 = 9970; 9970 * 1e6 // 1,009,970 = 9871
    assert pool.quote_swap(DAI, USDC, 10_000) == 9871
    assert pool.quote_swap(DAI, USDC, 10_000) == curve_out(10_000, 1_000_000, 1_000_000)


def test_quote_is_idempotent_and_pure(pool):
    before = pool.reserves
    first = pool.quote_swap(USDC, DAI, 123_456)
    second = pool.quote_swap(USDC, DAI, 123_456)
    assert first == second
    assert pool.reserves == before


def test_quote_rejects_bad_input(pool):
    with pytest.raises(ZeroAmount):
        pool.quote_swap(DAI, USDC, 0)
    with pytest.raises(UnsupportedPair):
        pool.quote_swap(DAI, DAI, 100)
    with pytest.raises(UnsupportedPair):
        pool.quote_swap(WETH, USDC, 100)


def test_uninitialized_pool_rejects_pricing(ledger, owner, make_pool):
    empty = ReservePool(ledger, DAI, USDC, owner, name="empty")
    with pytest.raises(InsufficientLiquidity):
        empty.quote_swap(DAI, USDC, 1_000)
    with pytest.raises(InsufficientLiquidity):
        empty.spot_price(DAI, USDC)

    half = make_pool("half", 1_000, 0)
    with pytest.raises(InsufficientLiquidity):
        half.apply_swap(DAI, USDC, 10)
    assert half.reserves == {DAI: 1_000, USDC: 0}


def test_dust_input_that_buys_nothing_is_rejected(pool):
    # 1 * 997 // 1000 == 0
    with pytest.raises(InsufficientLiquidity):
        pool.quote_swap(DAI, USDC, 1)


def test_apply_swap_moves_reserves_by_gross_input(pool):
    out = pool.apply_swap(DAI, USDC, 10_000)
    assert out == 9871
    assert pool.reserves == {DAI: 1_010_000, USDC: 1_000_000 - 9871}


def test_huge_input_never_drains_reserve(pool):
    out = pool.quote_swap(DAI, USDC, 10 ** 30)
    assert 0 < out < 1_000_000
    pool.apply_swap(DAI, USDC, 10 ** 30)
    assert pool.reserve_of(USDC) > 0


def test_invariant_never_decreases_over_swap_sequence(pool):
    trades = [
        (DAI, USDC, 10_000),
        (USDC, DAI, 250_000),
        (DAI, USDC, 7),
        (DAI, USDC, 3_000_000),
        (USDC, DAI, 999),
        (USDC, DAI, 10 ** 12),
        (DAI, USDC, 42_424),
    ]
    k = pool.invariant()
    for asset_in, asset_out, amount in trades:
        reserve_out = pool.reserve_of(asset_out)
        out = pool.apply_swap(asset_in, asset_out, amount)
        assert 0 < out < reserve_out
        assert pool.reserve_of(DAI) > 0 and pool.reserve_of(USDC) > 0
        assert pool.invariant() >= k
        k = pool.invariant()


def test_round_trip_on_one_pool_loses(pool):
    mid = pool.apply_swap(DAI, USDC, 10_000)
    back = pool.apply_swap(USDC, DAI, mid)
    assert back < 10_000


@pytest.mark.parametrize("amount", [10, 997, 10_000, 500_000, 10 ** 9])
def test_round_trip_never_profitable(make_pool, amount):
    pool = make_pool("round-trip", 1_000_000, 1_000_000)
    mid = pool.apply_swap(DAI, USDC, amount)
    back = pool.apply_swap(USDC, DAI, mid)
    assert back <= amount


def test_spot_price(make_pool):
    skewed = make_pool("skewed", 1_000_000, 1_020_000)
    assert skewed.spot_price(DAI, USDC) == 1_020_000_000_000_000_000
    assert skewed.spot_price(USDC, DAI) == 980_392_156_862_745_098


def test_swap_moves_tokens(ledger, pool):
    trader = derive_address("trader")
    ledger.mint(trader, DAI, 10_000)
    ledger.approve(trader, pool.address, DAI, 10_000)

    out = pool.swap(trader, DAI, USDC, 10_000)

    assert out == 9871
    assert ledger.balance_of(trader, DAI) == 0
    assert ledger.balance_of(trader, USDC) == 9871
    assert ledger.balance_of(pool.address, DAI) == pool.reserve_of(DAI)
    assert ledger.balance_of(pool.address, USDC) == pool.reserve_of(USDC)


def test_swap_without_allowance_leaves_reserves_alone(ledger, pool):
    trader = derive_address("trader")
    ledger.mint(trader, DAI, 10_000)
    before = pool.reserves

    with pytest.raises(InsufficientAllowance):
        pool.swap(trader, DAI, USDC, 10_000)

    assert pool.reserves == before
    assert ledger.balance_of(trader, DAI) == 10_000


def test_add_liquidity_is_owner_only(ledger, owner, pool):
    stranger = derive_address("stranger")
    ledger.mint(stranger, DAI, 100)
    ledger.approve(stranger, pool.address, DAI, 100)
    with pytest.raises(Unauthorized):
        pool.add_liquidity(stranger, DAI, 100)

    with pytest.raises(ZeroAmount):
        pool.add_liquidity(owner, DAI, 0)
    with pytest.raises(UnsupportedPair):
        pool.add_liquidity(owner, WETH, 100)

    ledger.mint(owner, DAI, 500)
    ledger.approve(owner, pool.address, DAI, 500)
    assert pool.add_liquidity(owner, DAI, 500) == 1_000_500
    assert ledger.balance_of(pool.address, DAI) == 1_000_500


def test_pool_needs_two_assets(ledger, owner):
    with pytest.raises(UnsupportedPair):
        ReservePool(ledger, DAI, DAI, owner)


def test_other_asset(pool):
    assert pool.other_asset(DAI) == USDC
    assert pool.other_asset(USDC) == DAI
    with pytest.raises(UnsupportedPair):
        pool.other_asset(WETH)
