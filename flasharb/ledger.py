# flasharb/ledger.py
"""
Fungible-token ledger shared by pools, lenders and borrowers.
balanceOf / transfer / approve / transferFrom semantics, in integer smallest units.
"""

import logging
from typing import Dict, Tuple

from flasharb.errors import InsufficientAllowance, InsufficientBalance, InvalidInput
from flasharb.pairs import get_symbol, to_address
from flasharb.transaction import Journal, Transaction

logger = logging.getLogger(__name__)


class TokenLedger:
    """
    Balances keyed by (holder, asset), allowances by (owner, spender, asset).
    Every write goes through the journal so open transactions can undo it,
    and checks plus updates happen under the journal lock.
    """

    def __init__(self, journal: Journal = None):
        self.journal = journal or Journal()
        self._balances: Dict[Tuple[str, str], int] = {}
        self._allowances: Dict[Tuple[str, str, str], int] = {}

    def transaction(self, name: str = None, **kwargs) -> Transaction:
        """Open an atomic unit over this ledger and everything sharing its journal"""
        return Transaction(self.journal, name=name, **kwargs)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def balance_of(self, holder: str, asset: str) -> int:
        return self._balances.get((to_address(holder), to_address(asset)), 0)

    def allowance(self, owner: str, spender: str, asset: str) -> int:
        key = (to_address(owner), to_address(spender), to_address(asset))
        return self._allowances.get(key, 0)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def mint(self, to: str, asset: str, amount: int) -> None:
        """Create tokens out of thin air (test and scenario seeding)"""
        self._require_amount(amount, allow_zero=False)
        self.journal.add(self._balances, (to_address(to), to_address(asset)), amount)

    def transfer(self, sender: str, to: str, asset: str, amount: int) -> bool:
        self._require_amount(amount)
        sender, to, asset = to_address(sender), to_address(to), to_address(asset)

        with self.journal.lock:
            balance = self._balances.get((sender, asset), 0)
            if balance < amount:
                raise InsufficientBalance(
                    f"{sender} holds {balance} {get_symbol(asset)}, needs {amount}"
                )
            if amount == 0 or sender == to:
                return True

            self.journal.add(self._balances, (sender, asset), -amount)
            self.journal.add(self._balances, (to, asset), amount)

        logger.debug(f"transfer {amount} {get_symbol(asset)} {sender} -> {to}")
        return True

    def approve(self, owner: str, spender: str, asset: str, amount: int) -> bool:
        self._require_amount(amount)
        key = (to_address(owner), to_address(spender), to_address(asset))
        self.journal.write(self._allowances, key, amount)
        return True

    def transfer_from(self, spender: str, owner: str, to: str, asset: str, amount: int) -> bool:
        self._require_amount(amount)
        key = (to_address(owner), to_address(spender), to_address(asset))
        with self.journal.lock:
            allowed = self._allowances.get(key, 0)
            if allowed < amount:
                raise InsufficientAllowance(
                    f"{spender} may move {allowed} {get_symbol(asset)} of {owner}, needs {amount}"
                )
            self.transfer(owner, to, asset, amount)
            self.journal.add(self._allowances, key, -amount)
        return True

    @staticmethod
    def _require_amount(amount: int, allow_zero: bool = True):
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidInput(f"Amount must be an integer, got {amount!r}")
        if amount < 0 or (amount == 0 and not allow_zero):
            raise InvalidInput(f"Invalid amount: {amount}")
