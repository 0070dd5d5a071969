"""In-memory underlying asset ledgers."""

from decimal import Decimal
import logging
from typing import Dict, Union

from ..common.protocol_constants import WAD
from ..models.base import Snapshotable
from ..models.exceptions import TransferFailedError
from ..models.interfaces import AssetLedger


logger = logging.getLogger(__name__)


class InMemoryAssetLedger(Snapshotable, AssetLedger):
    """Plain fungible-token balances keyed by account."""

    def __init__(self, asset: str, decimals: int = 18) -> None:
        self.asset = asset
        self.decimals = decimals
        self._balances: Dict[str, int] = {}
        self._total_supply = 0

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def total_supply(self) -> int:
        return self._total_supply

    def mint(self, account: str, amount: int) -> None:
        """Create new units for ``account``."""
        if amount < 0:
            raise TransferFailedError("Cannot mint a negative amount")
        self._balances[account] = self.balance_of(account) + amount
        self._total_supply += amount

    def burn(self, account: str, amount: int) -> None:
        balance = self.balance_of(account)
        if amount < 0 or amount > balance:
            raise TransferFailedError(
                "Burn amount {0} exceeds balance {1} of {2}".format(amount, balance, account)
            )
        self._balances[account] = balance - amount
        self._total_supply -= amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferFailedError("Cannot transfer a negative amount")
        balance = self.balance_of(sender)
        if amount > balance:
            raise TransferFailedError(
                "{0} transfer of {1} exceeds balance {2} of {3}".format(self.asset, amount, balance, sender)
            )
        self._balances[sender] = balance - amount
        self._balances[recipient] = self.balance_of(recipient) + amount


class RebasingAssetLedger(Snapshotable, AssetLedger):
    """Share-based ledger whose balances move with the pooled total.

    Holders own shares; a balance is ``shares * total_pooled / total_shares``.
    A rebase changes ``total_pooled`` and therefore every balance at once,
    including the balance held by the pool.
    """

    def __init__(self, asset: str, decimals: int = 18) -> None:
        self.asset = asset
        self.decimals = decimals
        self._shares: Dict[str, int] = {}
        self._total_shares = 0
        self._total_pooled = 0

    def get_shares_by_pooled_amount(self, amount: int) -> int:
        if self._total_pooled == 0:
            return amount
        return amount * self._total_shares // self._total_pooled

    def get_pooled_amount_by_shares(self, shares: int) -> int:
        if self._total_shares == 0:
            return shares
        return shares * self._total_pooled // self._total_shares

    def shares_of(self, account: str) -> int:
        return self._shares.get(account, 0)

    def total_shares(self) -> int:
        return self._total_shares

    def balance_of(self, account: str) -> int:
        return self.get_pooled_amount_by_shares(self.shares_of(account))

    def total_supply(self) -> int:
        return self._total_pooled

    def mint(self, account: str, amount: int) -> None:
        """Submit ``amount`` to the pool and credit the matching shares."""
        if amount < 0:
            raise TransferFailedError("Cannot mint a negative amount")
        shares = self.get_shares_by_pooled_amount(amount)
        self._shares[account] = self.shares_of(account) + shares
        self._total_shares += shares
        self._total_pooled += amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferFailedError("Cannot transfer a negative amount")
        self.transfer_shares(sender, recipient, self.get_shares_by_pooled_amount(amount))

    def transfer_shares(self, sender: str, recipient: str, shares: int) -> None:
        balance = self.shares_of(sender)
        if shares < 0 or shares > balance:
            raise TransferFailedError(
                "{0} transfer of {1} shares exceeds {2} shares of {3}".format(self.asset, shares, balance, sender)
            )
        self._shares[sender] = balance - shares
        self._shares[recipient] = self.shares_of(recipient) + shares

    def rebase(self, rate: Union[str, float, Decimal]) -> int:
        """Grow or shrink the pooled total by ``rate`` (``0.1`` == +10%).

        Returns:
            int: New pooled total.
        """
        rate_wad = int(Decimal(str(rate)) * WAD)
        delta = self._total_pooled * rate_wad // WAD
        if self._total_pooled + delta < 0:
            raise TransferFailedError("Rebase would make the pooled total negative")
        self._total_pooled += delta
        logger.info("Ledger rebased asset=%s rate=%s total_pooled=%s", self.asset, rate, self._total_pooled)
        return self._total_pooled
