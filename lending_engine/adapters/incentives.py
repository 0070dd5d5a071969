"""Liquidity-mining rewards distributed per second across token holders."""

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional, Sequence

from ..common.protocol_constants import MAX_UINT256
from ..models.base import Snapshotable
from ..models.interfaces import AssetLedger, Clock, IncentivesController


logger = logging.getLogger(__name__)

PRECISION = 18


@dataclass
class AssetDistribution:
    """Emission state of one incentivized token."""

    emission_per_second: int = 0
    index: int = 0
    last_update_timestamp: int = 0


def get_asset_index(
    current_index: int,
    emission_per_second: int,
    last_update_timestamp: int,
    total_balance: int,
    current_timestamp: int,
    distribution_end: int,
) -> int:
    """Return the distribution index advanced to ``current_timestamp``."""
    if (
        emission_per_second == 0
        or total_balance == 0
        or last_update_timestamp == current_timestamp
        or last_update_timestamp >= distribution_end
    ):
        return current_index
    effective_timestamp = min(current_timestamp, distribution_end)
    time_delta = effective_timestamp - last_update_timestamp
    return emission_per_second * time_delta * 10**PRECISION // total_balance + current_index


def get_rewards(principal_user_balance: int, reserve_index: int, user_index: int) -> int:
    return principal_user_balance * (reserve_index - user_index) // 10**PRECISION


class EmissionIncentivesController(Snapshotable, IncentivesController):
    """Pays rewards from a vault account of the reward token ledger.

    Registered tokens must expose ``get_scaled_user_balance_and_supply(user)``
    so pending rewards can be computed outside of balance-changing actions.
    """

    _snapshot_exclude = ("_clock", "_reward_ledger", "_sources")

    def __init__(
        self,
        clock: Clock,
        reward_ledger: AssetLedger,
        rewards_vault: str = "rewards_vault",
        distribution_end: int = MAX_UINT256,
    ) -> None:
        self._clock = clock
        self._reward_ledger = reward_ledger
        self._sources: Dict[str, Any] = {}
        self.rewards_vault = rewards_vault
        self.distribution_end = distribution_end
        self._assets: Dict[str, AssetDistribution] = {}
        self._user_indexes: Dict[str, Dict[str, int]] = {}
        self._unclaimed: Dict[str, int] = {}

    @property
    def reward_asset(self) -> str:
        return self._reward_ledger.asset

    def configure_asset(self, asset: str, emission_per_second: int, source: Optional[Any] = None) -> None:
        """Set the emission of ``asset`` and register its balance source."""
        if source is not None:
            self._sources[asset] = source
        distribution = self._assets.setdefault(asset, AssetDistribution(last_update_timestamp=self._clock.now()))
        total_supply = self._sources[asset].scaled_total_supply() if asset in self._sources else 0
        self._update_asset_state(asset, distribution, total_supply)
        distribution.emission_per_second = int(emission_per_second)
        logger.info("Asset emission configured asset=%s emission_per_second=%s", asset, emission_per_second)

    def get_asset_data(self, asset: str) -> AssetDistribution:
        return self._assets.get(asset, AssetDistribution())

    def get_user_asset_index(self, user: str, asset: str) -> int:
        return self._user_indexes.get(user, {}).get(asset, 0)

    def get_user_unclaimed_rewards(self, user: str) -> int:
        return self._unclaimed.get(user, 0)

    def _update_asset_state(self, asset: str, distribution: AssetDistribution, total_supply: int) -> int:
        now = self._clock.now()
        new_index = get_asset_index(
            distribution.index,
            distribution.emission_per_second,
            distribution.last_update_timestamp,
            total_supply,
            now,
            self.distribution_end,
        )
        if new_index != distribution.index:
            distribution.index = new_index
            logger.debug("Asset index updated asset=%s index=%s", asset, new_index)
        distribution.last_update_timestamp = now
        return new_index

    def _update_user_asset(self, user: str, asset: str, user_balance: int, total_supply: int) -> int:
        distribution = self._assets.get(asset)
        if distribution is None:
            return 0
        user_indexes = self._user_indexes.setdefault(user, {})
        user_index = user_indexes.get(asset, 0)
        new_index = self._update_asset_state(asset, distribution, total_supply)
        accrued = 0
        if user_index != new_index:
            if user_balance != 0:
                accrued = get_rewards(user_balance, new_index, user_index)
            user_indexes[asset] = new_index
        return accrued

    def handle_action(self, asset: str, user: str, user_balance: int, total_supply: int) -> None:
        accrued = self._update_user_asset(user, asset, user_balance, total_supply)
        if accrued:
            self._unclaimed[user] = self._unclaimed.get(user, 0) + accrued
            logger.debug("Rewards accrued user=%s asset=%s amount=%s", user, asset, accrued)

    def _pending_rewards(self, assets: Sequence[str], user: str) -> int:
        pending = 0
        now = self._clock.now()
        for asset in assets:
            distribution = self._assets.get(asset)
            source = self._sources.get(asset)
            if distribution is None or source is None:
                continue
            balance, total_supply = source.get_scaled_user_balance_and_supply(user)
            index = get_asset_index(
                distribution.index,
                distribution.emission_per_second,
                distribution.last_update_timestamp,
                total_supply,
                now,
                self.distribution_end,
            )
            pending += get_rewards(balance, index, self.get_user_asset_index(user, asset))
        return pending

    def get_rewards_balance(self, assets: Sequence[str], user: str) -> int:
        return self._unclaimed.get(user, 0) + self._pending_rewards(assets, user)

    def claim_rewards(self, assets: Sequence[str], amount: int, user: str, to: str) -> int:
        if amount == 0:
            return 0
        unclaimed = self._unclaimed.get(user, 0)
        for asset in assets:
            source = self._sources.get(asset)
            if source is None:
                continue
            balance, total_supply = source.get_scaled_user_balance_and_supply(user)
            unclaimed += self._update_user_asset(user, asset, balance, total_supply)
        if unclaimed == 0:
            self._unclaimed[user] = 0
            return 0
        amount_to_claim = unclaimed if amount > unclaimed else amount
        self._unclaimed[user] = unclaimed - amount_to_claim
        self._reward_ledger.transfer(self.rewards_vault, to, amount_to_claim)
        logger.info("Rewards claimed user=%s to=%s amount=%s", user, to, amount_to_claim)
        return amount_to_claim
