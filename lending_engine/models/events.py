"""Event records appended by the pool for every committed operation."""

from typing import Optional

from pydantic import Field

from .base import EngineModel
from .enums import InterestRateMode


class ProtocolEvent(EngineModel):
    """Common fields of every pool event."""

    timestamp: int = Field(..., ge=0)

    @property
    def event_type(self) -> str:
        name = self.__class__.__name__
        return name[: -len("Event")] if name.endswith("Event") else name


class ReserveDataUpdatedEvent(ProtocolEvent):
    asset: str
    liquidity_rate: int
    stable_borrow_rate: int
    variable_borrow_rate: int
    liquidity_index: int
    variable_borrow_index: int


class DepositEvent(ProtocolEvent):
    asset: str
    user: str
    on_behalf_of: str
    amount: int


class WithdrawEvent(ProtocolEvent):
    asset: str
    user: str
    to: str
    amount: int


class BorrowEvent(ProtocolEvent):
    asset: str
    user: str
    on_behalf_of: str
    amount: int
    rate_mode: InterestRateMode
    borrow_rate: int


class RepayEvent(ProtocolEvent):
    asset: str
    user: str
    repayer: str
    amount: int


class SwapEvent(ProtocolEvent):
    """Borrower switched the rate mode of its debt."""

    asset: str
    user: str
    rate_mode: InterestRateMode


class RebalanceStableBorrowRateEvent(ProtocolEvent):
    asset: str
    user: str


class CollateralToggledEvent(ProtocolEvent):
    asset: str
    user: str
    enabled: bool


class BalanceTransferEvent(ProtocolEvent):
    asset: str
    sender: str
    recipient: str
    amount: int
    index: int


class LiquidationCallEvent(ProtocolEvent):
    collateral_asset: str
    debt_asset: str
    user: str
    debt_to_cover: int
    liquidated_collateral_amount: int
    liquidator: str
    receive_deposit_token: bool


class FlashLoanEvent(ProtocolEvent):
    target: str
    initiator: str
    asset: str
    amount: int
    premium: int
    rate_mode: InterestRateMode = InterestRateMode.NONE


class BalanceDivergenceEvent(ProtocolEvent):
    """Nominal deposit supply no longer matches the assets backing it."""

    asset: str
    expected: int
    actual: int
    difference: int
    context: Optional[str] = None


class PausedEvent(ProtocolEvent):
    paused: bool


class ReserveConfigurationChangedEvent(ProtocolEvent):
    asset: str
    parameter: str
    value: str
