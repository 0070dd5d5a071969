"""Lending pool orchestrating reserves, tokens and account checks.

Every entry point follows the same sequence: validate, accrue the touched
reserves (ascending reserve id), mutate token balances, recompute rates and
enforce account health. One re-entrant lock serializes all entry points and
each runs inside a transaction that restores the pre-call state of every
reserve, token, ledger and user configuration if any step raises.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
import threading
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from ..common.protocol_constants import MAX_UINT256, PERCENTAGE_FACTOR
from ..common.wad_ray_math import percent_div, percent_mul
from ..core.config import PoolSettings
from ..models.account import AccountData, UserConfiguration, UserReserveData
from ..models.enums import DepositTokenKind, InterestRateMode
from ..models.events import (
    BalanceDivergenceEvent,
    BalanceTransferEvent,
    BorrowEvent,
    CollateralToggledEvent,
    DepositEvent,
    FlashLoanEvent,
    LiquidationCallEvent,
    PausedEvent,
    ProtocolEvent,
    RebalanceStableBorrowRateEvent,
    RepayEvent,
    ReserveDataUpdatedEvent,
    SwapEvent,
    WithdrawEvent,
)
from ..models.exceptions import (
    FlashLoanNotRepaidError,
    InconsistentProtocolBalanceError,
    InsufficientLiquidityError,
    InvalidConfigurationError,
    InvalidInterestRateModeError,
    LoanTooSmallError,
    PausedError,
    ReserveAlreadyInitializedError,
    UnknownReserveError,
)
from ..models.interfaces import (
    AssetLedger,
    Clock,
    FlashLoanReceiver,
    IncentivesController,
    LendingRateOracle,
    PriceOracle,
)
from ..models.reserve_config import InterestRateStrategyModel, ReserveConfigModel, ReserveListingModel
from . import reserve_logic, validation_logic
from .debt_tokens import StableDebtToken, VariableDebtToken
from .deposit_tokens import BalanceDivergence, create_deposit_token
from .generic_logic import balance_decrease_allowed, calculate_user_account_data
from .rate_strategy import InterestRateStrategy
from .reserve_logic import ReserveData


logger = logging.getLogger(__name__)


@dataclass
class PoolContext:
    """Collaborators injected into a pool instance."""

    settings: PoolSettings
    oracle: PriceOracle
    clock: Clock
    ledgers: Dict[str, AssetLedger]
    incentives_controller: Optional[IncentivesController] = None
    lending_rate_oracle: Optional[LendingRateOracle] = None


@dataclass(frozen=True)
class ReserveDataView:
    """Stored reserve state plus totals measured at the read timestamp."""

    asset: str
    id: int
    configuration: ReserveConfigModel
    deposit_token_kind: DepositTokenKind
    liquidity_index: int
    variable_borrow_index: int
    current_liquidity_rate: int
    current_stable_borrow_rate: int
    current_variable_borrow_rate: int
    average_stable_borrow_rate: int
    last_update_timestamp: int
    available_liquidity: int
    total_stable_debt: int
    total_variable_debt: int
    principal_stable_debt: int
    scaled_variable_debt: int
    total_liquidity: int
    utilization_rate: int


@dataclass
class _PoolState:
    paused: bool = False
    users: Dict[str, UserConfiguration] = field(default_factory=dict)
    events: List[ProtocolEvent] = field(default_factory=list)


class LendingPool:
    """Entry points for deposits, borrows, repayments, liquidations and flash loans."""

    def __init__(self, context: PoolContext) -> None:
        self._ctx = context
        self._state = _PoolState()
        self._reserves: Dict[str, ReserveData] = {}
        self._lock = threading.RLock()
        self._tx_depth = 0

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _capture_state(self) -> Dict[str, Any]:
        tokens = {}
        for asset, reserve in self._reserves.items():
            tokens[asset] = (
                reserve.snapshot(),
                reserve.deposit_token.snapshot(),
                reserve.stable_debt_token.snapshot(),
                reserve.variable_debt_token.snapshot(),
                reserve.strategy,
            )
        return {
            "paused": self._state.paused,
            "users": {user: UserConfiguration(set(cfg.collateral), set(cfg.borrowing)) for user, cfg in self._state.users.items()},
            "event_count": len(self._state.events),
            "reserves": tokens,
            "ledgers": {asset: ledger.snapshot() for asset, ledger in self._ctx.ledgers.items()},
            "incentives": (
                self._ctx.incentives_controller.snapshot() if self._ctx.incentives_controller is not None else None
            ),
        }

    def _restore_state(self, snapshot: Dict[str, Any]) -> None:
        self._state.paused = snapshot["paused"]
        self._state.users = snapshot["users"]
        del self._state.events[snapshot["event_count"]:]
        for asset in list(self._reserves):
            if asset not in snapshot["reserves"]:
                del self._reserves[asset]
                continue
            reserve = self._reserves[asset]
            reserve_state, deposit_state, stable_state, variable_state, strategy = snapshot["reserves"][asset]
            reserve.restore(reserve_state)
            reserve.strategy = strategy
            reserve.deposit_token.restore(deposit_state)
            reserve.stable_debt_token.restore(stable_state)
            reserve.variable_debt_token.restore(variable_state)
        for asset, ledger_state in snapshot["ledgers"].items():
            self._ctx.ledgers[asset].restore(ledger_state)
        if snapshot["incentives"] is not None:
            self._ctx.incentives_controller.restore(snapshot["incentives"])

    @contextmanager
    def transaction(self, operation: str) -> Iterator[None]:
        """Run one logical operation atomically; nested calls join the outer one."""
        with self._lock:
            if self._tx_depth > 0:
                yield
                return
            snapshot = self._capture_state()
            self._tx_depth += 1
            try:
                yield
            except Exception as exc:
                self._restore_state(snapshot)
                logger.warning("Operation rolled back operation=%s error=%s: %s", operation, type(exc).__name__, exc)
                raise
            finally:
                self._tx_depth -= 1

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def settings(self) -> PoolSettings:
        return self._ctx.settings

    @property
    def oracle(self) -> PriceOracle:
        return self._ctx.oracle

    @property
    def clock(self) -> Clock:
        return self._ctx.clock

    @property
    def events(self) -> Tuple[ProtocolEvent, ...]:
        with self._lock:
            return tuple(self._state.events)

    @property
    def paused(self) -> bool:
        return self._state.paused

    def _now(self) -> int:
        return self._ctx.clock.now()

    def record_event(self, event: ProtocolEvent) -> None:
        self._state.events.append(event)
        logger.debug("Event recorded type=%s timestamp=%s", event.event_type, event.timestamp)

    def _require_not_paused(self) -> None:
        if self._state.paused:
            raise PausedError("Pool is paused")

    def get_reserve(self, asset: str) -> ReserveData:
        """Return the live reserve record of ``asset``."""
        reserve = self._reserves.get(asset)
        if reserve is None:
            raise UnknownReserveError("No reserve for asset {0}".format(asset))
        return reserve

    def _user_config(self, user: str) -> UserConfiguration:
        return self._state.users.setdefault(user, UserConfiguration())

    def _ledger(self, asset: str) -> AssetLedger:
        return self.get_reserve(asset).deposit_token.ledger

    def _ordered(self, *reserves: ReserveData) -> List[ReserveData]:
        unique = {reserve.asset: reserve for reserve in reserves}
        return sorted(unique.values(), key=lambda reserve: reserve.id)

    def _update_states(self, now: int, *reserves: ReserveData) -> None:
        for reserve in self._ordered(*reserves):
            reserve_logic.update_state(reserve, now)

    def _update_rates(self, reserve: ReserveData, liquidity_added: int, liquidity_taken: int, now: int) -> None:
        reserve_logic.update_interest_rates(reserve, liquidity_added, liquidity_taken, now)
        self.record_event(
            ReserveDataUpdatedEvent(
                timestamp=now,
                asset=reserve.asset,
                liquidity_rate=reserve.current_liquidity_rate,
                stable_borrow_rate=reserve.current_stable_borrow_rate,
                variable_borrow_rate=reserve.current_variable_borrow_rate,
                liquidity_index=reserve.liquidity_index,
                variable_borrow_index=reserve.variable_borrow_index,
            )
        )

    def _set_collateral(self, user: str, asset: str, enabled: bool, now: int) -> None:
        config = self._user_config(user)
        if config.is_using_as_collateral(asset) == enabled:
            return
        config.set_using_as_collateral(asset, enabled)
        self.record_event(CollateralToggledEvent(timestamp=now, asset=asset, user=user, enabled=enabled))

    def _account_data(self, user: str, now: int) -> AccountData:
        return calculate_user_account_data(user, self._reserves, self._user_config(user), self._ctx.oracle, now)

    def _balance_decrease_allowed(self, asset: str, user: str, amount: int, now: int) -> bool:
        return balance_decrease_allowed(
            asset, user, amount, self._reserves, self._user_config(user), self._ctx.oracle, now
        )

    def _user_debts(self, reserve: ReserveData, user: str, now: int) -> Tuple[int, int]:
        stable_debt = reserve.stable_debt_token.balance_of(user, now)
        variable_debt = reserve.variable_debt_token.balance_of(user, reserve_logic.get_normalized_debt(reserve, now))
        return stable_debt, variable_debt

    def _deposit_balance(self, reserve: ReserveData, user: str, now: int) -> int:
        return reserve.deposit_token.balance_of(user, reserve_logic.get_normalized_income(reserve, now))

    def _record_divergence(self, reserve: ReserveData, now: int, context: str) -> Optional[BalanceDivergence]:
        if reserve.deposit_token.kind != DepositTokenKind.REBASING:
            return None
        totals = reserve_logic.get_reserve_totals(reserve, now)
        divergence = reserve.deposit_token.reconcile(
            reserve_logic.get_normalized_income(reserve, now), totals.total_debt
        )
        if divergence is None:
            return None
        logger.warning(
            "Deposit supply diverges from backing asset=%s expected=%s actual=%s context=%s",
            divergence.asset,
            divergence.expected,
            divergence.actual,
            context,
        )
        self.record_event(
            BalanceDivergenceEvent(
                timestamp=now,
                asset=divergence.asset,
                expected=divergence.expected,
                actual=divergence.actual,
                difference=divergence.difference,
                context=context,
            )
        )
        return divergence

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def init_reserve(
        self,
        asset: str,
        configuration: ReserveConfigModel,
        strategy: Union[InterestRateStrategy, InterestRateStrategyModel],
        deposit_token_kind: DepositTokenKind = DepositTokenKind.STANDARD,
    ) -> ReserveData:
        """List ``asset`` with fresh indices and empty token balances.

        Raises:
            ReserveAlreadyInitializedError: If the asset is already listed.
            InvalidConfigurationError: If no ledger is registered for the asset.
        """
        with self.transaction("init_reserve"):
            if asset in self._reserves:
                raise ReserveAlreadyInitializedError("Reserve {0} already initialized".format(asset))
            ledger = self._ctx.ledgers.get(asset)
            if ledger is None:
                raise InvalidConfigurationError("No ledger registered for asset {0}".format(asset))
            if isinstance(strategy, InterestRateStrategyModel):
                strategy = InterestRateStrategy(strategy, self._ctx.lending_rate_oracle)

            controller = self._ctx.incentives_controller
            reserve = ReserveData(
                asset=asset,
                id=len(self._reserves),
                configuration=configuration,
                deposit_token=create_deposit_token(
                    deposit_token_kind, asset, "a{0}".format(asset), ledger, self._ctx.settings.treasury, controller
                ),
                stable_debt_token=StableDebtToken(asset, "stableDebt{0}".format(asset), controller),
                variable_debt_token=VariableDebtToken(asset, "variableDebt{0}".format(asset), controller),
                strategy=strategy,
                last_update_timestamp=self._now(),
            )
            self._reserves[asset] = reserve
            logger.info(
                "Reserve initialized asset=%s id=%s kind=%s", asset, reserve.id, deposit_token_kind.value
            )
            return reserve

    def init_reserve_from_listing(self, listing: ReserveListingModel) -> ReserveData:
        return self.init_reserve(listing.asset, listing.configuration, listing.strategy, listing.deposit_token_kind)

    def set_configuration(self, asset: str, configuration: ReserveConfigModel) -> None:
        with self.transaction("set_configuration"):
            self.get_reserve(asset).configuration = configuration

    def set_rate_strategy(self, asset: str, strategy: Union[InterestRateStrategy, InterestRateStrategyModel]) -> None:
        with self.transaction("set_rate_strategy"):
            if isinstance(strategy, InterestRateStrategyModel):
                strategy = InterestRateStrategy(strategy, self._ctx.lending_rate_oracle)
            self.get_reserve(asset).strategy = strategy

    def set_paused(self, paused: bool) -> None:
        with self.transaction("set_paused"):
            self._state.paused = paused
            self.record_event(PausedEvent(timestamp=self._now(), paused=paused))
            logger.info("Pool pause flag set paused=%s", paused)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_reserves_list(self) -> List[str]:
        with self._lock:
            return [reserve.asset for reserve in self._ordered(*self._reserves.values())]

    def get_reserve_data(self, asset: str) -> ReserveDataView:
        with self._lock:
            now = self._now()
            reserve = self.get_reserve(asset)
            totals = reserve_logic.get_reserve_totals(reserve, now)
            return ReserveDataView(
                asset=asset,
                id=reserve.id,
                configuration=reserve.configuration,
                deposit_token_kind=reserve.deposit_token.kind,
                liquidity_index=reserve.liquidity_index,
                variable_borrow_index=reserve.variable_borrow_index,
                current_liquidity_rate=reserve.current_liquidity_rate,
                current_stable_borrow_rate=reserve.current_stable_borrow_rate,
                current_variable_borrow_rate=reserve.current_variable_borrow_rate,
                average_stable_borrow_rate=totals.average_stable_borrow_rate,
                last_update_timestamp=reserve.last_update_timestamp,
                available_liquidity=totals.available_liquidity,
                total_stable_debt=totals.total_stable_debt,
                total_variable_debt=totals.total_variable_debt,
                principal_stable_debt=reserve.stable_debt_token.principal_total_supply(),
                scaled_variable_debt=reserve.variable_debt_token.scaled_total_supply(),
                total_liquidity=totals.total_liquidity,
                utilization_rate=totals.utilization_rate,
            )

    def get_reserve_normalized_income(self, asset: str) -> int:
        with self._lock:
            return reserve_logic.get_normalized_income(self.get_reserve(asset), self._now())

    def get_reserve_normalized_variable_debt(self, asset: str) -> int:
        with self._lock:
            return reserve_logic.get_normalized_debt(self.get_reserve(asset), self._now())

    def get_user_configuration(self, user: str) -> UserConfiguration:
        with self._lock:
            config = self._state.users.get(user, UserConfiguration())
            return UserConfiguration(set(config.collateral), set(config.borrowing))

    def get_user_reserve_data(self, asset: str, user: str) -> UserReserveData:
        with self._lock:
            now = self._now()
            reserve = self.get_reserve(asset)
            stable_debt, variable_debt = self._user_debts(reserve, user, now)
            config = self._state.users.get(user, UserConfiguration())
            return UserReserveData(
                asset=asset,
                current_deposit_balance=self._deposit_balance(reserve, user, now),
                scaled_deposit_balance=reserve.deposit_token.scaled_balance_of(user),
                current_stable_debt=stable_debt,
                current_variable_debt=variable_debt,
                principal_stable_debt=reserve.stable_debt_token.principal_balance_of(user),
                scaled_variable_debt=reserve.variable_debt_token.scaled_balance_of(user),
                stable_borrow_rate=reserve.stable_debt_token.get_user_stable_rate(user),
                stable_rate_last_updated=reserve.stable_debt_token.get_user_last_updated(user),
                liquidity_rate=reserve.current_liquidity_rate,
                usage_as_collateral_enabled=config.is_using_as_collateral(asset),
            )

    def get_user_account_data(self, user: str, oracle: Optional[PriceOracle] = None) -> AccountData:
        """Aggregate position of ``user``, optionally priced by another oracle."""
        with self._lock:
            config = self._state.users.get(user, UserConfiguration())
            return calculate_user_account_data(
                user, self._reserves, config, oracle or self._ctx.oracle, self._now()
            )

    def get_users(self) -> List[str]:
        with self._lock:
            return sorted(self._state.users)

    def check_reserve_balance(self, asset: str) -> Optional[BalanceDivergence]:
        """Reconcile a rebasing reserve's deposit supply with its backing and record any gap."""
        with self.transaction("check_reserve_balance"):
            return self._record_divergence(self.get_reserve(asset), self._now(), "check")

    # ------------------------------------------------------------------
    # Deposits
    # ------------------------------------------------------------------

    def deposit(self, user: str, asset: str, amount: int, on_behalf_of: Optional[str] = None) -> None:
        """Pull ``amount`` of underlying from ``user`` and credit deposit tokens.

        The first deposit of an account in a reserve enables it as collateral.
        """
        on_behalf_of = on_behalf_of or user
        with self.transaction("deposit"):
            self._require_not_paused()
            now = self._now()
            reserve = self.get_reserve(asset)
            validation_logic.validate_deposit(reserve, amount)

            reserve_logic.update_state(reserve, now)
            self._update_rates(reserve, amount, 0, now)

            self._ledger(asset).transfer(user, reserve.deposit_token.address, amount)
            is_first_deposit = reserve.deposit_token.mint(on_behalf_of, amount, reserve.liquidity_index)
            if is_first_deposit:
                self._set_collateral(on_behalf_of, asset, True, now)

            self.record_event(DepositEvent(timestamp=now, asset=asset, user=user, on_behalf_of=on_behalf_of, amount=amount))
            self._record_divergence(reserve, now, "deposit")
            logger.info("Deposit committed asset=%s user=%s on_behalf_of=%s amount=%s", asset, user, on_behalf_of, amount)

    def withdraw(self, user: str, asset: str, amount: int, to: Optional[str] = None) -> int:
        """Burn deposit tokens and send underlying to ``to``.

        ``MAX_UINT256`` withdraws the full current balance.

        Returns:
            int: Amount withdrawn.
        """
        to = to or user
        with self.transaction("withdraw"):
            self._require_not_paused()
            now = self._now()
            reserve = self.get_reserve(asset)
            user_balance = self._deposit_balance(reserve, user, now)
            amount_to_withdraw = user_balance if amount == MAX_UINT256 else amount

            validation_logic.validate_withdraw(
                reserve,
                amount_to_withdraw,
                user_balance,
                self._balance_decrease_allowed(asset, user, amount_to_withdraw, now),
            )

            reserve_logic.update_state(reserve, now)
            self._update_rates(reserve, 0, amount_to_withdraw, now)

            if amount_to_withdraw == user_balance:
                self._set_collateral(user, asset, False, now)

            reserve.deposit_token.burn(user, to, amount_to_withdraw, reserve.liquidity_index)

            self.record_event(WithdrawEvent(timestamp=now, asset=asset, user=user, to=to, amount=amount_to_withdraw))
            self._record_divergence(reserve, now, "withdraw")
            logger.info("Withdraw committed asset=%s user=%s to=%s amount=%s", asset, user, to, amount_to_withdraw)
            return amount_to_withdraw

    def transfer_deposit_token(self, sender: str, asset: str, recipient: str, amount: int) -> None:
        """Transfer deposit tokens, keeping accrued interest and collateral flags consistent."""
        with self.transaction("transfer_deposit_token"):
            self._require_not_paused()
            now = self._now()
            reserve = self.get_reserve(asset)
            index = reserve_logic.get_normalized_income(reserve, now)
            sender_before, recipient_before = reserve.deposit_token.transfer(sender, recipient, amount, index)

            if sender != recipient:
                if sender_before - amount == 0:
                    self._set_collateral(sender, asset, False, now)
                if recipient_before == 0 and amount != 0:
                    self._set_collateral(recipient, asset, True, now)

            validation_logic.validate_transfer(self._account_data(sender, now).health_factor)
            self.record_event(
                BalanceTransferEvent(
                    timestamp=now, asset=asset, sender=sender, recipient=recipient, amount=amount, index=index
                )
            )
            logger.info("Deposit token transfer committed asset=%s from=%s to=%s amount=%s", asset, sender, recipient, amount)

    # ------------------------------------------------------------------
    # Borrowing
    # ------------------------------------------------------------------

    def _execute_borrow(
        self,
        user: str,
        asset: str,
        amount: int,
        rate_mode: InterestRateMode,
        on_behalf_of: str,
        release_underlying: bool,
        now: int,
    ) -> None:
        reserve = self.get_reserve(asset)
        user_config = self._user_config(on_behalf_of)
        amount_in_base = self._ctx.oracle.get_asset_price(asset) * amount // 10 ** reserve.configuration.decimals

        validation_logic.validate_borrow(
            reserve,
            amount,
            amount_in_base,
            rate_mode,
            self._account_data(on_behalf_of, now),
            user_config,
            self._deposit_balance(reserve, on_behalf_of, now),
            reserve.deposit_token.available_liquidity(),
            self._ctx.settings.max_stable_loan_percent_bps,
        )

        reserve_logic.update_state(reserve, now)

        if rate_mode == InterestRateMode.STABLE:
            borrow_rate = reserve.current_stable_borrow_rate
            reserve.stable_debt_token.mint(user, on_behalf_of, amount, borrow_rate, now)
        else:
            borrow_rate = reserve.current_variable_borrow_rate
            reserve.variable_debt_token.mint(user, on_behalf_of, amount, reserve.variable_borrow_index)
        user_config.set_borrowing(asset, True)

        self._update_rates(reserve, 0, amount if release_underlying else 0, now)
        if release_underlying:
            reserve.deposit_token.transfer_underlying_to(user, amount)

        self.record_event(
            BorrowEvent(
                timestamp=now,
                asset=asset,
                user=user,
                on_behalf_of=on_behalf_of,
                amount=amount,
                rate_mode=rate_mode,
                borrow_rate=borrow_rate,
            )
        )

    def borrow(
        self,
        user: str,
        asset: str,
        amount: int,
        rate_mode: InterestRateMode,
        on_behalf_of: Optional[str] = None,
    ) -> None:
        """Open stable or variable debt and send the underlying to ``user``.

        Borrowing for another account consumes that account's credit delegation.
        """
        on_behalf_of = on_behalf_of or user
        with self.transaction("borrow"):
            self._require_not_paused()
            self._execute_borrow(user, asset, amount, InterestRateMode(rate_mode), on_behalf_of, True, self._now())
            logger.info(
                "Borrow committed asset=%s user=%s on_behalf_of=%s amount=%s mode=%s",
                asset,
                user,
                on_behalf_of,
                amount,
                InterestRateMode(rate_mode).name,
            )

    def repay(
        self,
        user: str,
        asset: str,
        amount: int,
        rate_mode: InterestRateMode,
        on_behalf_of: Optional[str] = None,
    ) -> int:
        """Repay debt of the given mode; ``MAX_UINT256`` repays all of it.

        Returns:
            int: Amount actually repaid.
        """
        on_behalf_of = on_behalf_of or user
        rate_mode = InterestRateMode(rate_mode)
        with self.transaction("repay"):
            self._require_not_paused()
            now = self._now()
            reserve = self.get_reserve(asset)
            stable_debt, variable_debt = self._user_debts(reserve, on_behalf_of, now)
            validation_logic.validate_repay(reserve, amount, rate_mode, user, on_behalf_of, stable_debt, variable_debt)

            payback_amount = stable_debt if rate_mode == InterestRateMode.STABLE else variable_debt
            if amount < payback_amount:
                payback_amount = amount

            reserve_logic.update_state(reserve, now)
            if rate_mode == InterestRateMode.STABLE:
                reserve.stable_debt_token.burn(on_behalf_of, payback_amount, now)
            else:
                reserve.variable_debt_token.burn(on_behalf_of, payback_amount, reserve.variable_borrow_index)
            self._update_rates(reserve, payback_amount, 0, now)

            if stable_debt + variable_debt - payback_amount == 0:
                self._user_config(on_behalf_of).set_borrowing(asset, False)

            self._ledger(asset).transfer(user, reserve.deposit_token.address, payback_amount)

            self.record_event(RepayEvent(timestamp=now, asset=asset, user=on_behalf_of, repayer=user, amount=payback_amount))
            logger.info(
                "Repay committed asset=%s repayer=%s on_behalf_of=%s amount=%s mode=%s",
                asset,
                user,
                on_behalf_of,
                payback_amount,
                rate_mode.name,
            )
            return payback_amount

    def swap_borrow_rate_mode(self, user: str, asset: str, rate_mode: InterestRateMode) -> None:
        """Move all debt of ``rate_mode`` into the other mode."""
        rate_mode = InterestRateMode(rate_mode)
        with self.transaction("swap_borrow_rate_mode"):
            self._require_not_paused()
            now = self._now()
            reserve = self.get_reserve(asset)
            stable_debt, variable_debt = self._user_debts(reserve, user, now)
            validation_logic.validate_swap_rate_mode(
                reserve,
                self._user_config(user),
                stable_debt,
                variable_debt,
                rate_mode,
                self._deposit_balance(reserve, user, now),
            )

            reserve_logic.update_state(reserve, now)
            if rate_mode == InterestRateMode.STABLE:
                reserve.stable_debt_token.burn(user, stable_debt, now)
                reserve.variable_debt_token.mint(user, user, stable_debt, reserve.variable_borrow_index)
            else:
                reserve.variable_debt_token.burn(user, variable_debt, reserve.variable_borrow_index)
                reserve.stable_debt_token.mint(user, user, variable_debt, reserve.current_stable_borrow_rate, now)
            self._update_rates(reserve, 0, 0, now)

            self.record_event(SwapEvent(timestamp=now, asset=asset, user=user, rate_mode=rate_mode))
            logger.info("Rate mode swapped asset=%s user=%s from=%s", asset, user, rate_mode.name)

    def rebalance_stable_borrow_rate(self, caller: str, asset: str, user: str) -> None:
        """Reset ``user``'s stable coupon to the current stable rate when the reserve is stressed."""
        with self.transaction("rebalance_stable_borrow_rate"):
            self._require_not_paused()
            now = self._now()
            reserve = self.get_reserve(asset)
            stable_debt = reserve.stable_debt_token.balance_of(user, now)
            totals = reserve_logic.get_reserve_totals(reserve, now)
            validation_logic.validate_rebalance_stable_borrow_rate(
                reserve,
                stable_debt,
                reserve.stable_debt_token.get_user_stable_rate(user),
                totals.total_debt,
                totals.available_liquidity,
                self._ctx.settings.rebalance_up_usage_ratio_threshold,
                self._ctx.settings.rebalance_up_liquidity_rate_threshold_bps,
            )

            reserve_logic.update_state(reserve, now)
            reserve.stable_debt_token.burn(user, stable_debt, now)
            reserve.stable_debt_token.mint(user, user, stable_debt, reserve.current_stable_borrow_rate, now)
            self._update_rates(reserve, 0, 0, now)

            self.record_event(RebalanceStableBorrowRateEvent(timestamp=now, asset=asset, user=user))
            logger.info("Stable rate rebalanced asset=%s user=%s caller=%s", asset, user, caller)

    def set_user_use_reserve_as_collateral(self, user: str, asset: str, use_as_collateral: bool) -> None:
        with self.transaction("set_user_use_reserve_as_collateral"):
            self._require_not_paused()
            now = self._now()
            reserve = self.get_reserve(asset)
            balance = self._deposit_balance(reserve, user, now)
            validation_logic.validate_set_use_reserve_as_collateral(
                reserve,
                use_as_collateral,
                balance,
                self._balance_decrease_allowed(asset, user, balance, now),
            )
            self._set_collateral(user, asset, use_as_collateral, now)
            logger.info("Collateral flag set asset=%s user=%s enabled=%s", asset, user, use_as_collateral)

    def approve_delegation(
        self,
        delegator: str,
        asset: str,
        delegatee: str,
        amount: int,
        rate_mode: InterestRateMode = InterestRateMode.VARIABLE,
    ) -> None:
        """Let ``delegatee`` borrow up to ``amount`` of ``asset`` against ``delegator``'s collateral."""
        rate_mode = InterestRateMode(rate_mode)
        with self.transaction("approve_delegation"):
            reserve = self.get_reserve(asset)
            if rate_mode == InterestRateMode.STABLE:
                reserve.stable_debt_token.approve_delegation(delegator, delegatee, amount)
            elif rate_mode == InterestRateMode.VARIABLE:
                reserve.variable_debt_token.approve_delegation(delegator, delegatee, amount)
            else:
                raise InvalidInterestRateModeError("Invalid rate mode {0}".format(rate_mode))

    # ------------------------------------------------------------------
    # Liquidation
    # ------------------------------------------------------------------

    def calculate_available_collateral_to_liquidate(
        self,
        collateral_asset: str,
        debt_asset: str,
        debt_to_cover: int,
        user_collateral_balance: int,
    ) -> Tuple[int, int]:
        """Collateral seized for ``debt_to_cover`` including the liquidation bonus.

        When the borrower's collateral cannot cover it, all collateral is
        taken and the debt that it pays for is recomputed.

        Returns:
            Tuple[int, int]: Collateral amount to seize and debt amount it covers.
        """
        collateral_reserve = self.get_reserve(collateral_asset)
        debt_reserve = self.get_reserve(debt_asset)
        collateral_price = self._ctx.oracle.get_asset_price(collateral_asset)
        debt_price = self._ctx.oracle.get_asset_price(debt_asset)
        liquidation_bonus = collateral_reserve.configuration.liquidation_bonus_bps
        collateral_unit = 10 ** collateral_reserve.configuration.decimals
        debt_unit = 10 ** debt_reserve.configuration.decimals

        max_collateral_to_liquidate = percent_mul(
            debt_price * debt_to_cover * collateral_unit, liquidation_bonus
        ) // (collateral_price * debt_unit)

        if max_collateral_to_liquidate > user_collateral_balance:
            collateral_amount = user_collateral_balance
            debt_amount_needed = percent_div(
                collateral_price * collateral_amount * debt_unit // (debt_price * collateral_unit),
                liquidation_bonus,
            )
        else:
            collateral_amount = max_collateral_to_liquidate
            debt_amount_needed = debt_to_cover
        return collateral_amount, debt_amount_needed

    def liquidation_call(
        self,
        liquidator: str,
        collateral_asset: str,
        debt_asset: str,
        user: str,
        debt_to_cover: int,
        receive_deposit_token: bool = False,
    ) -> Tuple[int, int]:
        """Repay part of an unhealthy account's debt in exchange for discounted collateral.

        At most ``liquidation_close_factor_bps`` of the debt in ``debt_asset``
        can be covered per call. The liquidator either receives deposit tokens
        or the underlying collateral.

        Returns:
            Tuple[int, int]: Debt repaid and collateral seized.
        """
        with self.transaction("liquidation_call"):
            self._require_not_paused()
            now = self._now()
            collateral_reserve = self.get_reserve(collateral_asset)
            debt_reserve = self.get_reserve(debt_asset)
            user_config = self._user_config(user)

            account = self._account_data(user, now)
            stable_debt, variable_debt = self._user_debts(debt_reserve, user, now)
            validation_logic.validate_liquidation_call(
                collateral_reserve, debt_reserve, user_config, account.health_factor, stable_debt, variable_debt
            )

            user_collateral_balance = self._deposit_balance(collateral_reserve, user, now)
            max_liquidatable_debt = percent_mul(
                stable_debt + variable_debt, self._ctx.settings.liquidation_close_factor_bps
            )
            actual_debt_to_liquidate = min(debt_to_cover, max_liquidatable_debt)

            collateral_amount, debt_amount_needed = self.calculate_available_collateral_to_liquidate(
                collateral_asset, debt_asset, actual_debt_to_liquidate, user_collateral_balance
            )
            if debt_amount_needed < actual_debt_to_liquidate:
                actual_debt_to_liquidate = debt_amount_needed

            if not receive_deposit_token:
                available_collateral = collateral_reserve.deposit_token.available_liquidity()
                if available_collateral < collateral_amount:
                    raise InsufficientLiquidityError(
                        "Not enough {0} liquidity to pay {1} of collateral".format(collateral_asset, collateral_amount)
                    )

            self._update_states(now, collateral_reserve, debt_reserve)

            if variable_debt >= actual_debt_to_liquidate:
                debt_reserve.variable_debt_token.burn(user, actual_debt_to_liquidate, debt_reserve.variable_borrow_index)
            else:
                if variable_debt > 0:
                    debt_reserve.variable_debt_token.burn(user, variable_debt, debt_reserve.variable_borrow_index)
                debt_reserve.stable_debt_token.burn(user, actual_debt_to_liquidate - variable_debt, now)
            self._update_rates(debt_reserve, actual_debt_to_liquidate, 0, now)

            if receive_deposit_token:
                self._update_rates(collateral_reserve, 0, 0, now)
                liquidator_previous_balance = self._deposit_balance(collateral_reserve, liquidator, now)
                collateral_reserve.deposit_token.transfer_on_liquidation(
                    user, liquidator, collateral_amount, collateral_reserve.liquidity_index
                )
                if liquidator_previous_balance == 0:
                    self._set_collateral(liquidator, collateral_asset, True, now)
            else:
                self._update_rates(collateral_reserve, 0, collateral_amount, now)
                collateral_reserve.deposit_token.burn(
                    user, liquidator, collateral_amount, collateral_reserve.liquidity_index
                )

            if collateral_amount == user_collateral_balance:
                self._set_collateral(user, collateral_asset, False, now)
            if stable_debt + variable_debt - actual_debt_to_liquidate == 0:
                user_config.set_borrowing(debt_asset, False)

            self._ledger(debt_asset).transfer(liquidator, debt_reserve.deposit_token.address, actual_debt_to_liquidate)

            self.record_event(
                LiquidationCallEvent(
                    timestamp=now,
                    collateral_asset=collateral_asset,
                    debt_asset=debt_asset,
                    user=user,
                    debt_to_cover=actual_debt_to_liquidate,
                    liquidated_collateral_amount=collateral_amount,
                    liquidator=liquidator,
                    receive_deposit_token=receive_deposit_token,
                )
            )
            self._record_divergence(collateral_reserve, now, "liquidation")
            logger.info(
                "Liquidation committed user=%s liquidator=%s debt_asset=%s debt=%s collateral_asset=%s collateral=%s",
                user,
                liquidator,
                debt_asset,
                actual_debt_to_liquidate,
                collateral_asset,
                collateral_amount,
            )
            return actual_debt_to_liquidate, collateral_amount

    # ------------------------------------------------------------------
    # Flash loans
    # ------------------------------------------------------------------

    def flash_loan(
        self,
        initiator: str,
        receiver: FlashLoanReceiver,
        assets: Sequence[str],
        amounts: Sequence[int],
        modes: Optional[Sequence[int]] = None,
        on_behalf_of: Optional[str] = None,
        params: Any = None,
    ) -> List[int]:
        """Lend reserve liquidity to ``receiver`` for the duration of one call.

        For mode ``NONE`` the receiver must push ``amount + premium`` back to
        the reserve before returning; the liquidity providers' share of the
        premium grows the liquidity index and the protocol share is paid to
        the treasury. Other modes keep the funds and open debt for
        ``on_behalf_of`` instead.

        Returns:
            List[int]: Premium charged per asset.

        Raises:
            LoanTooSmallError: If a premium rounds down to zero.
            FlashLoanNotRepaidError: If the receiver reports failure.
            InconsistentProtocolBalanceError: If a reserve was not repaid in full.
        """
        modes = list(modes) if modes is not None else [InterestRateMode.NONE] * len(assets)
        on_behalf_of = on_behalf_of or initiator
        with self.transaction("flash_loan"):
            self._require_not_paused()
            reserves = [self.get_reserve(asset) for asset in assets]
            validation_logic.validate_flash_loan(reserves, amounts, modes)
            now = self._now()
            self._update_states(now, *reserves)

            premium_total_bps = self._ctx.settings.flash_loan_premium_total_bps
            premiums: List[int] = []
            balances_before: List[int] = []
            for reserve, amount, mode in zip(reserves, amounts, modes):
                premium = amount * premium_total_bps // PERCENTAGE_FACTOR
                if InterestRateMode(mode) == InterestRateMode.NONE and premium == 0:
                    raise LoanTooSmallError("Flash loan of {0} {1} yields no premium".format(amount, reserve.asset))
                premiums.append(premium)
                balances_before.append(reserve.deposit_token.available_liquidity())
                if amount > balances_before[-1]:
                    raise InsufficientLiquidityError(
                        "Flash loan of {0} exceeds {1} liquidity".format(amount, reserve.asset)
                    )
                reserve.deposit_token.transfer_underlying_to(receiver.address, amount)

            if not receiver.execute_operation(list(assets), list(amounts), list(premiums), initiator, params):
                raise FlashLoanNotRepaidError("Flash loan receiver reported failure")

            for reserve, amount, mode, premium, balance_before in zip(
                reserves, amounts, modes, premiums, balances_before
            ):
                mode = InterestRateMode(mode)
                if mode == InterestRateMode.NONE:
                    balance_after = reserve.deposit_token.available_liquidity()
                    if balance_after < balance_before + premium:
                        raise InconsistentProtocolBalanceError(
                            "The actual balance of the protocol is inconsistent for {0}".format(reserve.asset)
                        )
                    totals = reserve_logic.get_reserve_totals(reserve, now)
                    total_liquidity_before = balance_before + totals.total_debt
                    premium_to_protocol = percent_mul(premium, self._ctx.settings.flash_loan_premium_to_protocol_bps)
                    premium_to_liquidity = premium - premium_to_protocol
                    reserve_logic.cumulate_to_liquidity_index(reserve, total_liquidity_before, premium_to_liquidity)
                    if premium_to_protocol:
                        reserve.deposit_token.transfer_underlying_to(self._ctx.settings.treasury, premium_to_protocol)
                    self._update_rates(reserve, 0, 0, now)
                else:
                    self._execute_borrow(initiator, reserve.asset, amount, mode, on_behalf_of, False, now)
                    premium = 0

                self.record_event(
                    FlashLoanEvent(
                        timestamp=now,
                        target=receiver.address,
                        initiator=initiator,
                        asset=reserve.asset,
                        amount=amount,
                        premium=premium,
                        rate_mode=mode,
                    )
                )
                self._record_divergence(reserve, now, "flash_loan")
                logger.info(
                    "Flash loan committed asset=%s receiver=%s amount=%s premium=%s mode=%s",
                    reserve.asset,
                    receiver.address,
                    amount,
                    premium,
                    mode.name,
                )
            return premiums
