"""
Token ledger and the journal behind atomic rollback.
"""

import threading

import pytest

from flasharb.errors import InsufficientAllowance, InsufficientBalance, InvalidInput
from flasharb.pairs import DAI, USDC, derive_address

ALICE = derive_address("alice")
BOB = derive_address("bob")


def test_transfer_and_balance(ledger):
    ledger.mint(ALICE, DAI, 100)
    assert ledger.transfer(ALICE, BOB, DAI, 40)
    assert ledger.balance_of(ALICE, DAI) == 60
    assert ledger.balance_of(BOB, DAI) == 40
    assert ledger.balance_of(BOB, USDC) == 0


def test_addresses_are_normalized(ledger):
    ledger.mint(ALICE.lower(), DAI.lower(), 5)
    assert ledger.balance_of(ALICE, DAI) == 5


def test_transfer_more_than_balance_fails(ledger):
    ledger.mint(ALICE, DAI, 10)
    with pytest.raises(InsufficientBalance):
        ledger.transfer(ALICE, BOB, DAI, 11)
    assert ledger.balance_of(ALICE, DAI) == 10


def test_negative_and_fractional_amounts_rejected(ledger):
    with pytest.raises(InvalidInput):
        ledger.transfer(ALICE, BOB, DAI, -1)
    with pytest.raises(InvalidInput):
        ledger.mint(ALICE, DAI, 1.5)
    with pytest.raises(InvalidInput):
        ledger.mint(ALICE, DAI, 0)


def test_transfer_from_spends_allowance(ledger):
    ledger.mint(ALICE, DAI, 100)
    ledger.approve(ALICE, BOB, DAI, 70)

    ledger.transfer_from(BOB, ALICE, BOB, DAI, 50)
    assert ledger.allowance(ALICE, BOB, DAI) == 20
    assert ledger.balance_of(BOB, DAI) == 50

    with pytest.raises(InsufficientAllowance):
        ledger.transfer_from(BOB, ALICE, BOB, DAI, 21)


def test_transaction_rolls_back_on_error(ledger):
    ledger.mint(ALICE, DAI, 100)

    with pytest.raises(RuntimeError):
        with ledger.transaction(name="boom") as tx:
            ledger.transfer(ALICE, BOB, DAI, 30)
            ledger.approve(ALICE, BOB, DAI, 10)
            raise RuntimeError("boom")

    assert tx.rolled_back
    assert ledger.balance_of(ALICE, DAI) == 100
    assert ledger.balance_of(BOB, DAI) == 0
    assert ledger.allowance(ALICE, BOB, DAI) == 0
    # entries created inside the unit are removed, not left at zero
    assert (BOB, DAI) not in ledger._balances


def test_nested_commit_is_undone_by_outer_rollback(ledger):
    ledger.mint(ALICE, DAI, 100)

    with pytest.raises(RuntimeError):
        with ledger.transaction(name="outer"):
            with ledger.transaction(name="inner"):
                ledger.transfer(ALICE, BOB, DAI, 60)
            assert ledger.balance_of(BOB, DAI) == 60
            raise RuntimeError("outer fails")

    assert ledger.balance_of(ALICE, DAI) == 100
    assert ledger.journal.depth == 0


def test_rollback_only_discards_writes(ledger):
    ledger.mint(ALICE, DAI, 100)
    with ledger.transaction(name="dry-run", rollback_only=True):
        ledger.transfer(ALICE, BOB, DAI, 100)
        assert ledger.balance_of(BOB, DAI) == 100
    assert ledger.balance_of(ALICE, DAI) == 100
    assert ledger.balance_of(BOB, DAI) == 0


def test_writes_outside_transactions_are_not_journaled(ledger):
    ledger.mint(ALICE, DAI, 1)
    assert ledger.journal.depth == 0
    assert ledger.balance_of(ALICE, DAI) == 1


def test_rollback_reverses_only_this_threads_changes(ledger):
    ledger.mint(ALICE, DAI, 100)
    carol = derive_address("carol")
    ledger.mint(carol, DAI, 7)

    def pay_bob():
        ledger.transfer(carol, BOB, DAI, 7)

    with pytest.raises(RuntimeError):
        with ledger.transaction(name="interleaved"):
            ledger.transfer(ALICE, BOB, DAI, 30)
            thread = threading.Thread(target=pay_bob)
            thread.start()
            thread.join()
            assert ledger.balance_of(BOB, DAI) == 37
            raise RuntimeError("undo")

    assert ledger.balance_of(ALICE, DAI) == 100
    assert ledger.balance_of(BOB, DAI) == 7
    assert ledger.balance_of(carol, DAI) == 0
