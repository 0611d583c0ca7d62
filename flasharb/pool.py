# flasharb/pool.py
"""
Constant-Product Reserve Pool
Two-asset AMM priced on x * y = k with a proportional input fee
"""

import itertools
import logging
import threading
from typing import Dict, Tuple

from flasharb.config import POOL_FEE_DENOMINATOR, POOL_FEE_NUMERATOR, PRICE_SCALE
from flasharb.errors import InsufficientLiquidity, Unauthorized, UnsupportedPair, ZeroAmount
from flasharb.ledger import TokenLedger
from flasharb.pairs import derive_address, get_symbol, to_address

logger = logging.getLogger(__name__)

_pool_ids = itertools.count(1)


class ReservePool:
    """
    Holds reserves of exactly two assets and prices swaps between them.

    Tokens backing the reserves live in the shared ledger under the pool's
    address. `execution_token` is the per-pool exclusive lock: every read and
    write of the reserves takes it, and flash loans hold it for their whole
    duration, so other threads never observe a loan half way through.
    """

    def __init__(
        self,
        ledger: TokenLedger,
        token_a: str,
        token_b: str,
        owner: str,
        name: str = None,
        fee_numerator: int = POOL_FEE_NUMERATOR,
        fee_denominator: int = POOL_FEE_DENOMINATOR,
    ):
        token_a, token_b = to_address(token_a), to_address(token_b)
        if token_a == token_b:
            raise UnsupportedPair("Pool needs two distinct assets")
        if fee_denominator <= 0 or not 0 <= fee_numerator < fee_denominator:
            raise ValueError(f"Invalid pool fee {fee_numerator}/{fee_denominator}")

        self.ledger = ledger
        self.token_a = token_a
        self.token_b = token_b
        self.owner = to_address(owner)
        self.name = name or f"{get_symbol(token_a)}/{get_symbol(token_b)}#{next(_pool_ids)}"
        self.address = derive_address(f"pool:{self.name}")
        self.fee_numerator = fee_numerator
        self.fee_denominator = fee_denominator

        self.execution_token = threading.RLock()
        self._reserves: Dict[str, int] = {token_a: 0, token_b: 0}

    def __repr__(self) -> str:
        return f"ReservePool({self.name}, {self.address})"

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def assets(self) -> Tuple[str, str]:
        return self.token_a, self.token_b

    @property
    def reserves(self) -> Dict[str, int]:
        with self.execution_token:
            return dict(self._reserves)

    def reserve_of(self, asset: str) -> int:
        asset = to_address(asset)
        if asset not in self._reserves:
            raise UnsupportedPair(f"{get_symbol(asset)} is not traded by {self.name}")
        with self.execution_token:
            return self._reserves[asset]

    def supports(self, asset: str) -> bool:
        return to_address(asset) in self._reserves

    def other_asset(self, asset: str) -> str:
        asset = to_address(asset)
        if asset == self.token_a:
            return self.token_b
        if asset == self.token_b:
            return self.token_a
        raise UnsupportedPair(f"{get_symbol(asset)} is not traded by {self.name}")

    def invariant(self) -> int:
        """Current k = reserve_a * reserve_b"""
        with self.execution_token:
            return self._reserves[self.token_a] * self._reserves[self.token_b]

    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------

    def quote_swap(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        """Output for `amount_in` of `asset_in`, no state change"""
        with self.execution_token:
            asset_in, asset_out = self._check_pair(asset_in, asset_out)
            return self._amount_out(asset_in, asset_out, amount_in)

    def spot_price(self, asset_a: str, asset_b: str) -> int:
        """Units of asset_b per unit of asset_a, scaled by PRICE_SCALE. Informational only."""
        with self.execution_token:
            asset_a, asset_b = self._check_pair(asset_a, asset_b)
            reserve_a, reserve_b = self._check_initialized(asset_a, asset_b)
            return reserve_b * PRICE_SCALE // reserve_a

    def _amount_out(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        if not isinstance(amount_in, int) or isinstance(amount_in, bool):
            raise ZeroAmount(f"amount_in must be an integer, got {amount_in!r}")
        if amount_in <= 0:
            raise ZeroAmount(f"amount_in must be positive, got {amount_in}")
        reserve_in, reserve_out = self._check_initialized(asset_in, asset_out)

        # floor division keeps rounding in the pool's favour
        amount_in_after_fee = amount_in * (self.fee_denominator - self.fee_numerator) // self.fee_denominator
        amount_out = (amount_in_after_fee * reserve_out) // (reserve_in + amount_in_after_fee)

        if amount_out == 0:
            raise InsufficientLiquidity(
                f"{amount_in} {get_symbol(asset_in)} is too small to buy any {get_symbol(asset_out)}"
            )
        return amount_out

    def _check_pair(self, asset_in: str, asset_out: str) -> Tuple[str, str]:
        asset_in, asset_out = to_address(asset_in), to_address(asset_out)
        if asset_in == asset_out:
            raise UnsupportedPair(f"Cannot swap {get_symbol(asset_in)} for itself")
        if asset_in not in self._reserves or asset_out not in self._reserves:
            raise UnsupportedPair(
                f"{get_symbol(asset_in)}/{get_symbol(asset_out)} is not the {self.name} pair"
            )
        return asset_in, asset_out

    def _check_initialized(self, asset_in: str, asset_out: str) -> Tuple[int, int]:
        reserve_in, reserve_out = self._reserves[asset_in], self._reserves[asset_out]
        if reserve_in == 0 or reserve_out == 0:
            raise InsufficientLiquidity(f"{self.name} is not initialized ({reserve_in}, {reserve_out})")
        return reserve_in, reserve_out

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def apply_swap(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        """Price the swap and move the reserves. Tokens are not touched."""
        with self.execution_token:
            asset_in, asset_out = self._check_pair(asset_in, asset_out)
            amount_out = self._amount_out(asset_in, asset_out, amount_in)

            # gross input: the fee stays in the pool as reserve growth
            self._adjust_reserve(asset_in, amount_in)
            self._adjust_reserve(asset_out, -amount_out)

            logger.debug(
                f"[{self.name}] swap {amount_in} {get_symbol(asset_in)} -> "
                f"{amount_out} {get_symbol(asset_out)}"
            )
            return amount_out

    def swap(self, trader: str, asset_in: str, asset_out: str, amount_in: int, to: str = None) -> int:
        """
        Token-moving swap: pulls `amount_in` from `trader` (needs an allowance
        for this pool), updates reserves, pays the output to `to` (default trader).
        """
        trader = to_address(trader)
        recipient = to_address(to) if to else trader

        with self.execution_token, self.ledger.transaction(name=f"swap:{self.name}"):
            amount_out = self.apply_swap(asset_in, asset_out, amount_in)
            self.ledger.transfer_from(self.address, trader, self.address, asset_in, amount_in)
            self.ledger.transfer(self.address, recipient, asset_out, amount_out)
            return amount_out

    def add_liquidity(self, caller: str, asset: str, amount: int) -> int:
        """Owner-only seeding of one reserve. Pulls tokens from the caller."""
        caller = to_address(caller)
        if caller != self.owner:
            raise Unauthorized(f"{caller} is not the owner of {self.name}")
        asset = to_address(asset)
        if asset not in self._reserves:
            raise UnsupportedPair(f"{get_symbol(asset)} is not traded by {self.name}")
        if not isinstance(amount, int) or amount <= 0:
            raise ZeroAmount(f"Liquidity amount must be positive, got {amount!r}")

        with self.execution_token, self.ledger.transaction(name=f"add-liquidity:{self.name}"):
            self.ledger.transfer_from(self.address, caller, self.address, asset, amount)
            reserve = self._adjust_reserve(asset, amount)

        logger.info(f"[{self.name}] +{amount} {get_symbol(asset)} liquidity")
        return reserve

    def _adjust_reserve(self, asset: str, delta: int) -> int:
        return self.ledger.journal.add(self._reserves, asset, delta)
