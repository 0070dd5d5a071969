"""Interest-bearing deposit tokens backed by a reserve's underlying ledger."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from typing import Dict, Optional, Tuple

from ..common.wad_ray_math import ray_div, ray_mul
from ..models.base import Snapshotable
from ..models.enums import DepositTokenKind
from ..models.exceptions import (
    InvalidAmountError,
    InvalidConfigurationError,
    NotEnoughAvailableUserBalanceError,
)
from ..models.interfaces import AssetLedger, IncentivesController


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceDivergence:
    """Mismatch between nominal deposit supply and the assets backing it."""

    asset: str
    expected: int
    actual: int

    @property
    def difference(self) -> int:
        return self.actual - self.expected


class DepositToken(Snapshotable, ABC):
    """Scaled deposit balances that accrue through the liquidity index.

    ``address`` is also the account holding the reserve's underlying on the
    ledger. Subclasses decide how nominal underlying amounts map onto the
    internal unit that gets scaled by the index.
    """

    kind: DepositTokenKind
    _snapshot_exclude = ("_ledger", "_incentives_controller")

    def __init__(
        self,
        asset: str,
        address: str,
        ledger: AssetLedger,
        treasury: str,
        incentives_controller: Optional[IncentivesController] = None,
    ) -> None:
        self.asset = asset
        self.address = address
        self.treasury = treasury
        self._ledger = ledger
        self._incentives_controller = incentives_controller
        self._scaled_balances: Dict[str, int] = {}
        self._scaled_total_supply = 0

    @property
    def ledger(self) -> AssetLedger:
        return self._ledger

    @abstractmethod
    def _to_internal(self, amount: int) -> int:
        """Convert an underlying amount into the unit stored before scaling."""

    @abstractmethod
    def _to_external(self, internal_amount: int) -> int:
        """Convert an internal amount back into underlying units."""

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

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
        return self._to_external(ray_mul(scaled_balance, index))

    def total_supply(self, index: int) -> int:
        if self._scaled_total_supply == 0:
            return 0
        return self._to_external(ray_mul(self._scaled_total_supply, index))

    def available_liquidity(self) -> int:
        """Underlying currently held by the reserve."""
        return self._ledger.balance_of(self.address)

    def reconcile(self, index: int, total_debt: int, tolerance: int = 2) -> Optional[BalanceDivergence]:
        """Compare nominal supply with held underlying plus outstanding debt.

        Nothing is corrected; a divergence beyond ``tolerance`` is returned
        for the caller to record.
        """
        expected = self.total_supply(index)
        actual = self.available_liquidity() + total_debt
        if abs(actual - expected) <= tolerance:
            return None
        return BalanceDivergence(asset=self.asset, expected=expected, actual=actual)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _handle_action(self, user: str, user_balance: int, total_supply: int) -> None:
        if self._incentives_controller is not None:
            self._incentives_controller.handle_action(self.address, user, user_balance, total_supply)

    def _scale(self, amount: int, index: int) -> int:
        return ray_div(self._to_internal(amount), index)

    def _scaled_burn_amount(self, user: str, amount: int, index: int) -> int:
        amount_scaled = self._scale(amount, index)
        balance = self.balance_of(user, index)
        if amount > balance:
            raise NotEnoughAvailableUserBalanceError(
                "Burn of {0} exceeds deposit balance {1} of {2}".format(amount, balance, user)
            )
        return min(amount_scaled, self.scaled_balance_of(user))

    def _mint_scaled(self, user: str, amount_scaled: int) -> int:
        previous_balance = self.scaled_balance_of(user)
        self._handle_action(user, previous_balance, self._scaled_total_supply)
        self._scaled_balances[user] = previous_balance + amount_scaled
        self._scaled_total_supply += amount_scaled
        return previous_balance

    def _burn_scaled(self, user: str, amount_scaled: int) -> None:
        previous_balance = self.scaled_balance_of(user)
        self._handle_action(user, previous_balance, self._scaled_total_supply)
        self._scaled_balances[user] = previous_balance - amount_scaled
        self._scaled_total_supply -= amount_scaled

    def mint(self, user: str, amount: int, index: int) -> bool:
        """Credit ``amount`` of deposit to ``user`` at ``index``.

        Returns:
            bool: True when the user held no deposit before.

        Raises:
            InvalidAmountError: If the scaled amount rounds to zero.
        """
        amount_scaled = self._scale(amount, index)
        if amount_scaled == 0:
            raise InvalidAmountError("Deposit mint amount rounds to zero")
        previous_balance = self._mint_scaled(user, amount_scaled)
        return previous_balance == 0

    def burn(self, user: str, receiver: str, amount: int, index: int) -> None:
        """Destroy ``amount`` of ``user``'s deposit and pay the underlying to ``receiver``."""
        amount_scaled = self._scaled_burn_amount(user, amount, index)
        if amount_scaled == 0:
            raise InvalidAmountError("Deposit burn amount rounds to zero")
        self._burn_scaled(user, amount_scaled)
        self._ledger.transfer(self.address, receiver, amount)

    def mint_to_treasury(self, amount: int, index: int) -> None:
        """Credit the treasury; amounts that round to zero are skipped."""
        if amount == 0:
            return
        amount_scaled = self._scale(amount, index)
        if amount_scaled == 0:
            return
        self._mint_scaled(self.treasury, amount_scaled)
        logger.debug("Minted to treasury asset=%s amount=%s index=%s", self.asset, amount, index)

    def transfer(self, sender: str, recipient: str, amount: int, index: int) -> Tuple[int, int]:
        """Move ``amount`` of nominal balance from ``sender`` to ``recipient``.

        Both balances are read at ``index`` before the scaled delta moves, so
        accrued interest stays with its owner.

        Returns:
            Tuple[int, int]: Sender and recipient nominal balances before the transfer.
        """
        sender_balance_before = self.balance_of(sender, index)
        recipient_balance_before = self.balance_of(recipient, index)
        if amount > sender_balance_before:
            raise NotEnoughAvailableUserBalanceError(
                "Transfer of {0} exceeds deposit balance {1} of {2}".format(amount, sender_balance_before, sender)
            )
        amount_scaled = min(self._scale(amount, index), self.scaled_balance_of(sender))
        if sender != recipient and amount_scaled:
            total_supply = self._scaled_total_supply
            self._handle_action(sender, self.scaled_balance_of(sender), total_supply)
            self._handle_action(recipient, self.scaled_balance_of(recipient), total_supply)
            self._scaled_balances[sender] = self.scaled_balance_of(sender) - amount_scaled
            self._scaled_balances[recipient] = self.scaled_balance_of(recipient) + amount_scaled
        return sender_balance_before, recipient_balance_before

    def transfer_on_liquidation(self, sender: str, recipient: str, amount: int, index: int) -> None:
        """Move seized collateral without the transfer-time health checks."""
        self.transfer(sender, recipient, amount, index)

    def transfer_underlying_to(self, target: str, amount: int) -> int:
        """Pay ``amount`` of the held underlying to ``target``."""
        self._ledger.transfer(self.address, target, amount)
        return amount


class ScaledDepositToken(DepositToken):
    """Classic deposit token: internal amounts are underlying amounts."""

    kind = DepositTokenKind.STANDARD

    def _to_internal(self, amount: int) -> int:
        return amount

    def _to_external(self, internal_amount: int) -> int:
        return internal_amount


class RebasingDepositToken(DepositToken):
    """Deposit token for underlyings whose balances rebase (stETH-like).

    Internal amounts are ledger shares, so a rebase of the underlying moves
    every nominal deposit balance with it while the liquidity index keeps
    tracking interest.
    """

    kind = DepositTokenKind.REBASING

    def _to_internal(self, amount: int) -> int:
        return self._ledger.get_shares_by_pooled_amount(amount)

    def _to_external(self, internal_amount: int) -> int:
        return self._ledger.get_pooled_amount_by_shares(internal_amount)

    def _scaled_burn_amount(self, user: str, amount: int, index: int) -> int:
        # share conversion rounds down, a full withdrawal takes the whole balance
        if amount == self.balance_of(user, index):
            return self.scaled_balance_of(user)
        return super()._scaled_burn_amount(user, amount, index)


def create_deposit_token(
    kind: DepositTokenKind,
    asset: str,
    address: str,
    ledger: AssetLedger,
    treasury: str,
    incentives_controller: Optional[IncentivesController] = None,
) -> DepositToken:
    """Build the deposit token implementation selected for a reserve."""
    if kind == DepositTokenKind.REBASING:
        if not hasattr(ledger, "get_shares_by_pooled_amount"):
            raise InvalidConfigurationError("Rebasing deposit token requires a share-based ledger")
        return RebasingDepositToken(asset, address, ledger, treasury, incentives_controller)
    return ScaledDepositToken(asset, address, ledger, treasury, incentives_controller)
