"""In-memory price and lending-rate oracles."""

import logging
from typing import Dict, Optional

from ..models.exceptions import OraclePriceUnavailableError
from ..models.interfaces import Clock, LendingRateOracle, PriceOracle


logger = logging.getLogger(__name__)


class StaticPriceOracle(PriceOracle):
    """Prices set explicitly, with an optional staleness window."""

    def __init__(
        self,
        prices: Optional[Dict[str, int]] = None,
        clock: Optional[Clock] = None,
        max_age_sec: int = 0,
    ) -> None:
        self._clock = clock
        self._max_age_sec = max_age_sec
        self._prices: Dict[str, int] = {}
        self._updated_at: Dict[str, int] = {}
        for asset, price in (prices or {}).items():
            self.set_asset_price(asset, price)

    def set_asset_price(self, asset: str, price: int) -> None:
        if price < 0:
            raise ValueError("Price must be >= 0")
        self._prices[asset] = int(price)
        self._updated_at[asset] = self._clock.now() if self._clock is not None else 0
        logger.debug("Price updated asset=%s price=%s", asset, price)

    def get_asset_price(self, asset: str) -> int:
        price = self._prices.get(asset, 0)
        if price <= 0:
            raise OraclePriceUnavailableError("No price for asset {0}".format(asset))
        if self._max_age_sec and self._clock is not None:
            age = self._clock.now() - self._updated_at[asset]
            if age > self._max_age_sec:
                raise OraclePriceUnavailableError(
                    "Price of {0} is stale age={1}s max={2}s".format(asset, age, self._max_age_sec)
                )
        return price


class StaticLendingRateOracle(LendingRateOracle):
    """Market borrow rates (ray) set by an operator."""

    def __init__(self, rates: Optional[Dict[str, int]] = None) -> None:
        self._rates: Dict[str, int] = dict(rates or {})

    def set_market_borrow_rate(self, asset: str, rate: int) -> None:
        self._rates[asset] = int(rate)

    def get_market_borrow_rate(self, asset: str) -> int:
        return self._rates.get(asset, 0)
