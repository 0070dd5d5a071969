"""Per-user position records and derived account views."""

from dataclasses import dataclass, field
from typing import Set


@dataclass
class UserConfiguration:
    """Which reserves a user borrows from or uses as collateral."""

    collateral: Set[str] = field(default_factory=set)
    borrowing: Set[str] = field(default_factory=set)

    def is_using_as_collateral(self, asset: str) -> bool:
        return asset in self.collateral

    def is_borrowing(self, asset: str) -> bool:
        return asset in self.borrowing

    def set_using_as_collateral(self, asset: str, enabled: bool) -> None:
        if enabled:
            self.collateral.add(asset)
        else:
            self.collateral.discard(asset)

    def set_borrowing(self, asset: str, borrowing: bool) -> None:
        if borrowing:
            self.borrowing.add(asset)
        else:
            self.borrowing.discard(asset)

    def is_borrowing_any(self) -> bool:
        return bool(self.borrowing)

    def is_empty(self) -> bool:
        return not self.collateral and not self.borrowing


@dataclass(frozen=True)
class UserReserveData:
    """Read-only view of one user's position in one reserve."""

    asset: str
    current_deposit_balance: int
    scaled_deposit_balance: int
    current_stable_debt: int
    current_variable_debt: int
    principal_stable_debt: int
    scaled_variable_debt: int
    stable_borrow_rate: int
    stable_rate_last_updated: int
    liquidity_rate: int
    usage_as_collateral_enabled: bool


@dataclass(frozen=True)
class AccountData:
    """Aggregate position of a user across every reserve.

    Amounts are in the oracle's base currency; ``health_factor`` is a wad
    and equals ``MAX_UINT256`` when the user has no debt.
    """

    total_collateral_base: int
    total_debt_base: int
    available_borrows_base: int
    current_liquidation_threshold_bps: int
    ltv_bps: int
    health_factor: int
