"""Assemble a ready-to-use pool from engine settings and reserve listings."""

from dataclasses import dataclass
import logging
from typing import Dict, Iterable, Optional

from ..adapters.incentives import EmissionIncentivesController
from ..adapters.ledgers import InMemoryAssetLedger, RebasingAssetLedger
from ..adapters.oracles import StaticPriceOracle
from ..common.reserve_catalog import ReserveCatalog
from ..core.clock import ManualClock
from ..core.config import EngineSettings, load_settings
from ..models.enums import DepositTokenKind
from ..models.interfaces import AssetLedger, Clock, LendingRateOracle
from .lending_pool import LendingPool, PoolContext


logger = logging.getLogger(__name__)

REWARD_ASSET = "REWARD"


@dataclass
class PoolBundle:
    """A pool together with the in-memory collaborators it was built with."""

    pool: LendingPool
    clock: Clock
    oracle: StaticPriceOracle
    ledgers: Dict[str, AssetLedger]
    incentives_controller: Optional[EmissionIncentivesController] = None


def build_pool_from_settings(
    settings: Optional[EngineSettings] = None,
    catalog: Optional[ReserveCatalog] = None,
    clock: Optional[Clock] = None,
    prices: Optional[Dict[str, int]] = None,
    assets: Optional[Iterable[str]] = None,
    with_incentives: bool = False,
    lending_rate_oracle: Optional[LendingRateOracle] = None,
) -> PoolBundle:
    """List every catalog reserve (or only ``assets``) on a fresh in-memory pool.

    Rebasing listings get a share-based ledger, all others a plain one.
    Prices default to the ``prices`` section of the settings.
    """
    settings = settings or load_settings()
    catalog = catalog or ReserveCatalog(reserves=settings.reserves)
    clock = clock or ManualClock()

    listings = catalog.list_listings()
    if assets is not None:
        wanted = {str(asset).upper() for asset in assets}
        listings = [listing for listing in listings if listing.asset in wanted]

    ledgers: Dict[str, AssetLedger] = {}
    for listing in listings:
        decimals = listing.configuration.decimals
        if listing.deposit_token_kind == DepositTokenKind.REBASING:
            ledgers[listing.asset] = RebasingAssetLedger(listing.asset, decimals)
        else:
            ledgers[listing.asset] = InMemoryAssetLedger(listing.asset, decimals)

    incentives_controller = None
    if with_incentives:
        reward_ledger = InMemoryAssetLedger(REWARD_ASSET)
        ledgers[REWARD_ASSET] = reward_ledger
        incentives_controller = EmissionIncentivesController(clock, reward_ledger)

    oracle = StaticPriceOracle(
        prices=dict(settings.prices if prices is None else prices),
        clock=clock,
        max_age_sec=settings.pool.oracle_max_age_sec,
    )
    context = PoolContext(
        settings=settings.pool,
        oracle=oracle,
        clock=clock,
        ledgers=ledgers,
        incentives_controller=incentives_controller,
        lending_rate_oracle=lending_rate_oracle,
    )
    pool = LendingPool(context)
    for listing in listings:
        pool.init_reserve_from_listing(listing)

    logger.info("Pool built reserves=%s incentives=%s", pool.get_reserves_list(), with_incentives)
    return PoolBundle(
        pool=pool,
        clock=clock,
        oracle=oracle,
        ledgers=ledgers,
        incentives_controller=incentives_controller,
    )
