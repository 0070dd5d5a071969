"""Shared fixtures for pool-level tests."""

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from lending_engine.core.clock import ManualClock
from lending_engine.core.config import EngineSettings, load_settings
from lending_engine.models.interfaces import AssetLedger, FlashLoanReceiver
from lending_engine.services.lending_pool import LendingPool
from lending_engine.services.pool_factory import PoolBundle, build_pool_from_settings


ONE_YEAR = 365 * 24 * 3600
DAI_PRICE = 370_000_000_000_000
WETH_PRICE = 10**18


def units(amount: Any, decimals: int = 18) -> int:
    """Integer amount of ``amount`` whole tokens."""
    return int(amount * 10**decimals) if isinstance(amount, int) else int(round(float(amount) * 10**decimals))


def build_bundle(
    assets: Iterable[str] = ("DAI", "WETH"),
    with_incentives: bool = False,
    settings: Optional[EngineSettings] = None,
    **pool_overrides: Any,
) -> PoolBundle:
    """In-memory pool listing ``assets`` from the bundled configuration."""
    settings = settings or load_settings()
    if pool_overrides:
        settings = replace(settings, pool=replace(settings.pool, **pool_overrides))
    return build_pool_from_settings(
        settings,
        clock=ManualClock(),
        assets=list(assets),
        with_incentives=with_incentives,
    )


def fund_and_deposit(bundle: PoolBundle, user: str, asset: str, amount: int) -> None:
    bundle.ledgers[asset].mint(user, amount)
    bundle.pool.deposit(user, asset, amount)


class MockFlashLoanReceiver(FlashLoanReceiver):
    """Receiver that earns the premium and optionally repays the pool."""

    def __init__(self, pool: LendingPool, ledgers: Dict[str, AssetLedger], address: str = "flashReceiver") -> None:
        self.address = address
        self._pool = pool
        self._ledgers = ledgers
        self.fail_execution = False
        self.repay = True
        self.calls: List[Dict[str, Any]] = []

    def execute_operation(
        self,
        assets: Sequence[str],
        amounts: Sequence[int],
        premiums: Sequence[int],
        initiator: str,
        params: Any,
    ) -> bool:
        self.calls.append({"assets": list(assets), "amounts": list(amounts), "premiums": list(premiums)})
        if self.fail_execution:
            return False
        if self.repay:
            for asset, amount, premium in zip(assets, amounts, premiums):
                ledger = self._ledgers[asset]
                ledger.mint(self.address, premium)
                ledger.transfer(self.address, self._pool.get_reserve(asset).deposit_token.address, amount + premium)
        return True
