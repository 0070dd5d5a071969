"""Non-rebasing wrapper around a reserve's deposit token with reward accounting.

Holders own *static* amounts: deposit-token amounts divided by the reserve's
normalized income at entry. Interest shows up as a growing :meth:`rate`
instead of growing balances. Liquidity-mining rewards earned by the wrapper's
pool position are pulled in by :meth:`checkpoint` and shared pro rata to the
static balances through ``acc_rewards_per_token``.
"""

import logging
from typing import Dict, Optional

from ..common.protocol_constants import MAX_UINT256, RAY
from ..common.wad_ray_math import ray_div, ray_mul
from ..models.base import Snapshotable
from ..models.exceptions import InvalidAmountError, NotEnoughAvailableUserBalanceError
from ..models.interfaces import AssetLedger, IncentivesController
from .lending_pool import LendingPool


logger = logging.getLogger(__name__)


class StaticDepositToken(Snapshotable):
    """Static-balance wrapper of ``asset``'s deposit token held in ``pool``."""

    _snapshot_exclude = ("_pool", "_incentives_controller", "_reward_ledger")

    def __init__(
        self,
        pool: LendingPool,
        asset: str,
        incentives_controller: Optional[IncentivesController] = None,
        reward_ledger: Optional[AssetLedger] = None,
        address: Optional[str] = None,
    ) -> None:
        self._pool = pool
        self._incentives_controller = incentives_controller
        self._reward_ledger = reward_ledger
        self.asset = asset
        self.address = address or "stataToken{0}".format(asset)
        self.acc_rewards_per_token = 0
        self._balances: Dict[str, int] = {}
        self._total_supply = 0
        self._user_snapshots: Dict[str, int] = {}
        self._unclaimed_rewards: Dict[str, int] = {}

    @property
    def deposit_token_address(self) -> str:
        return self._pool.get_reserve(self.asset).deposit_token.address

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def rate(self) -> int:
        """Deposit-token amount represented by one static unit, in ray."""
        return self._pool.get_reserve_normalized_income(self.asset)

    def static_to_dynamic_amount(self, amount: int) -> int:
        return ray_mul(amount, self.rate())

    def dynamic_to_static_amount(self, amount: int) -> int:
        return ray_div(amount, self.rate())

    def balance_of(self, user: str) -> int:
        return self._balances.get(user, 0)

    def total_supply(self) -> int:
        return self._total_supply

    def dynamic_balance_of(self, user: str) -> int:
        return self.static_to_dynamic_amount(self.balance_of(user))

    def get_unclaimed_rewards(self, user: str) -> int:
        return self._unclaimed_rewards.get(user, 0)

    def get_total_claimable_rewards(self) -> int:
        """Rewards held by the wrapper plus those still pending at the controller."""
        held = self._reward_ledger.balance_of(self.address) if self._reward_ledger is not None else 0
        return held + self._pending_controller_rewards()

    def _pending_controller_rewards(self) -> int:
        if self._incentives_controller is None:
            return 0
        return self._incentives_controller.get_rewards_balance([self.deposit_token_address], self.address)

    def get_claimable_rewards(self, user: str) -> int:
        """Rewards ``user`` could claim now, projected without touching state."""
        acc = self.acc_rewards_per_token
        if self._total_supply != 0:
            acc += self._pending_controller_rewards() * RAY // self._total_supply
        return self.get_unclaimed_rewards(user) + self._pending_user_rewards(user, acc)

    def _pending_user_rewards(self, user: str, acc: int) -> int:
        return self.balance_of(user) * (acc - self._user_snapshots.get(user, 0)) // RAY

    # ------------------------------------------------------------------
    # Reward accounting
    # ------------------------------------------------------------------

    def checkpoint(self) -> int:
        """Claim the wrapper's rewards and grow ``acc_rewards_per_token``.

        Returns:
            int: Rewards collected from the incentives controller.
        """
        if self._incentives_controller is None or self._total_supply == 0:
            return 0
        claimed = self._incentives_controller.claim_rewards(
            [self.deposit_token_address], MAX_UINT256, self.address, self.address
        )
        if claimed:
            self.acc_rewards_per_token += claimed * RAY // self._total_supply
            logger.debug(
                "Wrapper rewards collected asset=%s claimed=%s acc_rewards_per_token=%s",
                self.asset,
                claimed,
                self.acc_rewards_per_token,
            )
        return claimed

    def _settle(self, user: str) -> None:
        pending = self._pending_user_rewards(user, self.acc_rewards_per_token)
        if pending:
            self._unclaimed_rewards[user] = self.get_unclaimed_rewards(user) + pending
        self._user_snapshots[user] = self.acc_rewards_per_token

    def _run(self, operation: str, func, *args):
        with self._pool.transaction(operation):
            state = self.snapshot()
            reward_state = self._reward_ledger.snapshot() if self._reward_ledger is not None else None
            try:
                return func(*args)
            except Exception:
                self.restore(state)
                if reward_state is not None:
                    self._reward_ledger.restore(reward_state)
                raise

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def deposit(self, user: str, amount: int, from_underlying: bool = True, recipient: Optional[str] = None) -> int:
        """Wrap ``amount`` of underlying (or deposit tokens) held by ``user``.

        Returns:
            int: Static amount minted to ``recipient``.
        """
        return self._run("static_deposit", self._deposit, user, amount, from_underlying, recipient or user)

    def _deposit(self, user: str, amount: int, from_underlying: bool, recipient: str) -> int:
        if amount <= 0:
            raise InvalidAmountError("Amount must be greater than 0")
        self.checkpoint()
        self._settle(recipient)

        if from_underlying:
            self._pool.deposit(user, self.asset, amount, on_behalf_of=self.address)
        else:
            self._pool.transfer_deposit_token(user, self.asset, self.address, amount)

        static_amount = self.dynamic_to_static_amount(amount)
        if static_amount == 0:
            raise InvalidAmountError("Static amount rounds to zero")
        self._balances[recipient] = self.balance_of(recipient) + static_amount
        self._total_supply += static_amount
        logger.info(
            "Static deposit committed asset=%s user=%s recipient=%s amount=%s static_amount=%s",
            self.asset,
            user,
            recipient,
            amount,
            static_amount,
        )
        return static_amount

    def withdraw(
        self,
        user: str,
        amount: int,
        static: bool = True,
        to_underlying: bool = True,
        recipient: Optional[str] = None,
    ) -> int:
        """Unwrap ``amount`` (static units, or dynamic units when ``static`` is False).

        ``MAX_UINT256`` with ``static`` unwraps the whole balance.

        Returns:
            int: Dynamic amount sent to ``recipient``.
        """
        return self._run("static_withdraw", self._withdraw, user, amount, static, to_underlying, recipient or user)

    def _withdraw(self, user: str, amount: int, static: bool, to_underlying: bool, recipient: str) -> int:
        if amount <= 0:
            raise InvalidAmountError("Amount must be greater than 0")
        self.checkpoint()
        self._settle(user)

        balance = self.balance_of(user)
        if static:
            static_amount = balance if amount == MAX_UINT256 else amount
            dynamic_amount = self.static_to_dynamic_amount(static_amount)
        else:
            dynamic_amount = amount
            static_amount = self.dynamic_to_static_amount(amount)
        if static_amount > balance:
            raise NotEnoughAvailableUserBalanceError(
                "Unwrap of {0} exceeds static balance {1} of {2}".format(static_amount, balance, user)
            )

        # rounding can leave the last holder a wei above the wrapper's position
        position = self._pool.get_user_reserve_data(self.asset, self.address).current_deposit_balance
        if static_amount == self._total_supply:
            dynamic_amount = position
        else:
            dynamic_amount = min(dynamic_amount, position)

        self._balances[user] = balance - static_amount
        self._total_supply -= static_amount
        if to_underlying:
            self._pool.withdraw(self.address, self.asset, dynamic_amount, to=recipient)
        else:
            self._pool.transfer_deposit_token(self.address, self.asset, recipient, dynamic_amount)
        logger.info(
            "Static withdraw committed asset=%s user=%s recipient=%s static_amount=%s amount=%s",
            self.asset,
            user,
            recipient,
            static_amount,
            dynamic_amount,
        )
        return dynamic_amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        self._run("static_transfer", self._transfer, sender, recipient, amount)

    def _transfer(self, sender: str, recipient: str, amount: int) -> None:
        balance = self.balance_of(sender)
        if amount > balance:
            raise NotEnoughAvailableUserBalanceError(
                "Transfer of {0} exceeds static balance {1} of {2}".format(amount, balance, sender)
            )
        self.checkpoint()
        self._settle(sender)
        self._settle(recipient)
        self._balances[sender] = balance - amount
        self._balances[recipient] = self.balance_of(recipient) + amount

    def claim_rewards(self, user: str, to: Optional[str] = None) -> int:
        """Pay ``user``'s accrued rewards to ``to`` from the wrapper's reward balance.

        Returns:
            int: Amount paid.
        """
        return self._run("static_claim_rewards", self._claim_rewards, user, to or user)

    def _claim_rewards(self, user: str, to: str) -> int:
        if self._reward_ledger is None:
            return 0
        self.checkpoint()
        self._settle(user)
        unclaimed = self.get_unclaimed_rewards(user)
        amount = min(unclaimed, self._reward_ledger.balance_of(self.address))
        if amount == 0:
            return 0
        self._unclaimed_rewards[user] = unclaimed - amount
        self._reward_ledger.transfer(self.address, to, amount)
        logger.info("Static rewards claimed asset=%s user=%s to=%s amount=%s", self.asset, user, to, amount)
        return amount
