"""Stable and variable debt accounting for one reserve."""

import logging
from typing import Dict, Optional, Tuple

from ..common.math_utils import calculate_compounded_interest
from ..common.wad_ray_math import ray_div, ray_mul, wad_to_ray
from ..models.base import Snapshotable
from ..models.exceptions import BorrowAllowanceNotEnoughError, DebtOverpaymentError, InvalidAmountError
from ..models.interfaces import IncentivesController


logger = logging.getLogger(__name__)


class DebtTokenBase(Snapshotable):
    """Non-transferable debt balances with credit delegation."""

    _snapshot_exclude = ("_incentives_controller",)

    def __init__(
        self,
        asset: str,
        address: str,
        incentives_controller: Optional[IncentivesController] = None,
    ) -> None:
        self.asset = asset
        self.address = address
        self._incentives_controller = incentives_controller
        self._borrow_allowances: Dict[str, Dict[str, int]] = {}

    def approve_delegation(self, delegator: str, delegatee: str, amount: int) -> None:
        """Allow ``delegatee`` to open up to ``amount`` of debt on behalf of ``delegator``."""
        if amount < 0:
            raise InvalidAmountError("Delegation amount must be >= 0")
        self._borrow_allowances.setdefault(delegator, {})[delegatee] = amount
        logger.info(
            "Borrow allowance delegated token=%s delegator=%s delegatee=%s amount=%s",
            self.address,
            delegator,
            delegatee,
            amount,
        )

    def borrow_allowance(self, delegator: str, delegatee: str) -> int:
        return self._borrow_allowances.get(delegator, {}).get(delegatee, 0)

    def _decrease_borrow_allowance(self, delegator: str, delegatee: str, amount: int) -> None:
        allowance = self.borrow_allowance(delegator, delegatee)
        if allowance < amount:
            raise BorrowAllowanceNotEnoughError(
                "Allowance {0} of {1} from {2} is below {3}".format(allowance, delegatee, delegator, amount)
            )
        self._borrow_allowances[delegator][delegatee] = allowance - amount

    def _handle_action(self, user: str, user_balance: int, total_supply: int) -> None:
        if self._incentives_controller is not None:
            self._incentives_controller.handle_action(self.address, user, user_balance, total_supply)


class VariableDebtToken(DebtTokenBase):
    """Debt stored as scaled balances that grow with the variable borrow index."""

    def __init__(
        self,
        asset: str,
        address: str,
        incentives_controller: Optional[IncentivesController] = None,
    ) -> None:
        super().__init__(asset, address, incentives_controller)
        self._scaled_balances: Dict[str, int] = {}
        self._scaled_total_supply = 0

    def scaled_balance_of(self, user: str) -> int:
        return self._scaled_balances.get(user, 0)

    def scaled_total_supply(self) -> int:
        return self._scaled_total_supply

    def get_scaled_user_balance_and_supply(self, user: str) -> Tuple[int, int]:
        return self.scaled_balance_of(user), self._scaled_total_supply

    def balance_of(self, user: str, index: int) -> int:
        scaled_balance = self.scaled_balance_of(user)
        if scaled_balance == 0:
            return 0
        return ray_mul(scaled_balance, index)

    def total_supply(self, index: int) -> int:
        return ray_mul(self._scaled_total_supply, index)

    def mint(self, user: str, on_behalf_of: str, amount: int, index: int) -> bool:
        """Open ``amount`` of variable debt for ``on_behalf_of`` at ``index``.

        Returns:
            bool: True when this is the borrower's first variable debt.

        Raises:
            BorrowAllowanceNotEnoughError: If ``user`` borrows for someone else without allowance.
            InvalidAmountError: If the scaled amount rounds to zero.
        """
        if user != on_behalf_of:
            self._decrease_borrow_allowance(on_behalf_of, user, amount)

        previous_balance = self.scaled_balance_of(on_behalf_of)
        amount_scaled = ray_div(amount, index)
        if amount_scaled == 0:
            raise InvalidAmountError("Variable debt mint amount rounds to zero")

        self._handle_action(on_behalf_of, previous_balance, self._scaled_total_supply)
        self._scaled_balances[on_behalf_of] = previous_balance + amount_scaled
        self._scaled_total_supply += amount_scaled
        return previous_balance == 0

    def burn(self, user: str, amount: int, index: int) -> None:
        """Remove ``amount`` of variable debt from ``user`` at ``index``.

        Raises:
            InvalidAmountError: If the scaled amount rounds to zero.
            DebtOverpaymentError: If ``amount`` exceeds the user's current debt.
        """
        amount_scaled = ray_div(amount, index)
        if amount_scaled == 0:
            raise InvalidAmountError("Variable debt burn amount rounds to zero")
        current_debt = self.balance_of(user, index)
        if amount > current_debt:
            raise DebtOverpaymentError(
                "Burn of {0} exceeds variable debt {1} of {2}".format(amount, current_debt, user)
            )

        previous_balance = self.scaled_balance_of(user)
        # rounding of the scaled amount may exceed the stored balance by a unit
        amount_scaled = min(amount_scaled, previous_balance)
        self._handle_action(user, previous_balance, self._scaled_total_supply)
        self._scaled_balances[user] = previous_balance - amount_scaled
        self._scaled_total_supply = max(0, self._scaled_total_supply - amount_scaled)


class StableDebtToken(DebtTokenBase):
    """Fixed-coupon debt that compounds per user from the user's own timestamp.

    The reserve-wide average coupon is maintained incrementally on every mint
    and burn instead of being recomputed over all borrowers.
    """

    def __init__(
        self,
        asset: str,
        address: str,
        incentives_controller: Optional[IncentivesController] = None,
    ) -> None:
        super().__init__(asset, address, incentives_controller)
        self._principal_balances: Dict[str, int] = {}
        self._user_rates: Dict[str, int] = {}
        self._timestamps: Dict[str, int] = {}
        self._total_principal = 0
        self._avg_stable_rate = 0
        self._total_supply_timestamp = 0

    def principal_balance_of(self, user: str) -> int:
        return self._principal_balances.get(user, 0)

    def get_user_stable_rate(self, user: str) -> int:
        return self._user_rates.get(user, 0)

    def get_user_last_updated(self, user: str) -> int:
        return self._timestamps.get(user, 0)

    def get_average_stable_rate(self) -> int:
        return self._avg_stable_rate

    def get_total_supply_last_updated(self) -> int:
        return self._total_supply_timestamp

    def principal_total_supply(self) -> int:
        return self._total_principal

    def scaled_total_supply(self) -> int:
        return self._total_principal

    def get_scaled_user_balance_and_supply(self, user: str) -> Tuple[int, int]:
        return self.principal_balance_of(user), self._total_principal

    def balance_of(self, user: str, now: int) -> int:
        principal = self.principal_balance_of(user)
        if principal == 0:
            return 0
        cumulated_interest = calculate_compounded_interest(
            self.get_user_stable_rate(user), self.get_user_last_updated(user), now
        )
        return ray_mul(principal, cumulated_interest)

    def _calc_total_supply(self, avg_rate: int, now: int) -> int:
        if self._total_principal == 0:
            return 0
        cumulated_interest = calculate_compounded_interest(avg_rate, self._total_supply_timestamp, now)
        return ray_mul(self._total_principal, cumulated_interest)

    def total_supply(self, now: int) -> int:
        return self._calc_total_supply(self._avg_stable_rate, now)

    def get_total_supply_and_avg_rate(self, now: int) -> Tuple[int, int]:
        return self._calc_total_supply(self._avg_stable_rate, now), self._avg_stable_rate

    def get_supply_data(self, now: int) -> Tuple[int, int, int, int]:
        """Return principal total, current total, average rate and its timestamp."""
        return (
            self._total_principal,
            self._calc_total_supply(self._avg_stable_rate, now),
            self._avg_stable_rate,
            self._total_supply_timestamp,
        )

    def _calculate_balance_increase(self, user: str, now: int) -> Tuple[int, int, int]:
        previous_principal = self.principal_balance_of(user)
        if previous_principal == 0:
            return 0, 0, 0
        new_balance = self.balance_of(user, now)
        return previous_principal, new_balance, new_balance - previous_principal

    def mint(self, user: str, on_behalf_of: str, amount: int, rate: int, now: int) -> bool:
        """Open ``amount`` of stable debt at ``rate`` for ``on_behalf_of``.

        Accrued interest of the borrower is capitalized, the borrower's coupon
        becomes the principal-weighted mean of the old coupon and ``rate``, and
        the reserve average is updated the same way.

        Returns:
            bool: True when the borrower had no stable debt before.
        """
        if amount <= 0:
            raise InvalidAmountError("Stable debt mint amount must be > 0")
        if user != on_behalf_of:
            self._decrease_borrow_allowance(on_behalf_of, user, amount)

        _, current_balance, balance_increase = self._calculate_balance_increase(on_behalf_of, now)

        previous_supply = self.total_supply(now)
        current_avg_stable_rate = self._avg_stable_rate
        next_supply = previous_supply + amount
        self._total_principal = next_supply

        amount_in_ray = wad_to_ray(amount)
        self._user_rates[on_behalf_of] = ray_div(
            ray_mul(self.get_user_stable_rate(on_behalf_of), wad_to_ray(current_balance))
            + ray_mul(amount_in_ray, rate),
            wad_to_ray(current_balance + amount),
        )
        self._timestamps[on_behalf_of] = now
        self._total_supply_timestamp = now

        self._avg_stable_rate = ray_div(
            ray_mul(current_avg_stable_rate, wad_to_ray(previous_supply)) + ray_mul(rate, amount_in_ray),
            wad_to_ray(next_supply),
        )

        previous_principal = self.principal_balance_of(on_behalf_of)
        self._handle_action(on_behalf_of, previous_principal, previous_supply)
        self._principal_balances[on_behalf_of] = previous_principal + amount + balance_increase

        logger.debug(
            "Stable debt minted asset=%s user=%s amount=%s user_rate=%s avg_rate=%s",
            self.asset,
            on_behalf_of,
            amount,
            self._user_rates[on_behalf_of],
            self._avg_stable_rate,
        )
        return current_balance == 0

    def burn(self, user: str, amount: int, now: int) -> None:
        """Repay ``amount`` of the user's stable debt.

        The user's weighted contribution is removed from the reserve average
        at the user's own coupon; the average resets to zero once no supply
        remains.

        Raises:
            InvalidAmountError: If ``amount`` is not positive.
            DebtOverpaymentError: If ``amount`` exceeds the user's current debt.
        """
        if amount <= 0:
            raise InvalidAmountError("Stable debt burn amount must be > 0")
        _, current_balance, balance_increase = self._calculate_balance_increase(user, now)
        if amount > current_balance:
            raise DebtOverpaymentError(
                "Burn of {0} exceeds stable debt {1} of {2}".format(amount, current_balance, user)
            )

        previous_supply = self.total_supply(now)
        user_stable_rate = self.get_user_stable_rate(user)

        if previous_supply <= amount:
            self._avg_stable_rate = 0
            self._total_principal = 0
        else:
            next_supply = previous_supply - amount
            self._total_principal = next_supply
            first_term = ray_mul(self._avg_stable_rate, wad_to_ray(previous_supply))
            second_term = ray_mul(user_stable_rate, wad_to_ray(amount))
            if second_term >= first_term:
                self._total_principal = 0
                self._avg_stable_rate = 0
            else:
                self._avg_stable_rate = ray_div(first_term - second_term, wad_to_ray(next_supply))

        if amount == current_balance:
            self._user_rates[user] = 0
            self._timestamps[user] = 0
        else:
            self._timestamps[user] = now
        self._total_supply_timestamp = now

        previous_principal = self.principal_balance_of(user)
        self._handle_action(user, previous_principal, previous_supply)
        if balance_increase > amount:
            self._principal_balances[user] = previous_principal + (balance_increase - amount)
        else:
            self._principal_balances[user] = max(0, previous_principal - (amount - balance_increase))

        logger.debug(
            "Stable debt burned asset=%s user=%s amount=%s avg_rate=%s",
            self.asset,
            user,
            amount,
            self._avg_stable_rate,
        )
