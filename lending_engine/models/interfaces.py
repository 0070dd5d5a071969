"""Collaborator interfaces consumed by the accounting engine."""

from abc import ABC, abstractmethod
import logging
from typing import Any, Dict, Sequence


logger = logging.getLogger(__name__)


class Clock(ABC):
    """Source of block timestamps."""

    @abstractmethod
    def now(self) -> int:
        """Return the current timestamp in seconds."""


class AssetLedger(ABC):
    """Fungible-token ledger of one underlying asset."""

    asset: str

    @abstractmethod
    def balance_of(self, account: str) -> int:
        """Return the account's balance in the asset's smallest unit."""

    @abstractmethod
    def total_supply(self) -> int:
        """Return the ledger's total supply."""

    @abstractmethod
    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """Move ``amount`` from ``sender`` to ``recipient``.

        Raises:
            TransferFailedError: If the sender's balance is insufficient.
        """

    @abstractmethod
    def snapshot(self) -> Dict[str, Any]:
        """Capture ledger state for rollback."""

    @abstractmethod
    def restore(self, state: Dict[str, Any]) -> None:
        """Restore a state captured by :meth:`snapshot`."""


class PriceOracle(ABC):
    """Price feed in base-currency units."""

    @abstractmethod
    def get_asset_price(self, asset: str) -> int:
        """Return the asset's price.

        Raises:
            OraclePriceUnavailableError: If the price is missing, zero or stale.
        """


class LendingRateOracle(ABC):
    """Source of market stable borrow rates."""

    @abstractmethod
    def get_market_borrow_rate(self, asset: str) -> int:
        """Return the asset's market borrow rate in ray."""


class FlashLoanReceiver(ABC):
    """External code invoked in the middle of a flash loan."""

    address: str

    @abstractmethod
    def execute_operation(
        self,
        assets: Sequence[str],
        amounts: Sequence[int],
        premiums: Sequence[int],
        initiator: str,
        params: Any,
    ) -> bool:
        """Use the borrowed funds and return whether the operation succeeded.

        For assets borrowed without opening debt the receiver must transfer
        ``amount + premium`` back to the reserve's holding account before
        returning.
        """


class IncentivesController(ABC):
    """Receives balance changes of reward-bearing tokens."""

    @abstractmethod
    def handle_action(self, asset: str, user: str, user_balance: int, total_supply: int) -> None:
        """Accrue rewards for ``user`` using balances from before the action."""

    @abstractmethod
    def get_rewards_balance(self, assets: Sequence[str], user: str) -> int:
        """Return claimable rewards including unsettled accruals."""

    @abstractmethod
    def claim_rewards(self, assets: Sequence[str], amount: int, user: str, to: str) -> int:
        """Transfer up to ``amount`` of accrued rewards and return the amount claimed."""

    @abstractmethod
    def snapshot(self) -> Dict[str, Any]:
        """Capture controller state for rollback."""

    @abstractmethod
    def restore(self, state: Dict[str, Any]) -> None:
        """Restore a state captured by :meth:`snapshot`."""
