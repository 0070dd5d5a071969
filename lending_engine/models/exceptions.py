"""Custom exceptions raised by the reserve accounting engine."""


class ProtocolError(Exception):
    """Base class for protocol failures."""

    code = "PROTOCOL_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


# ---------------------------------------------------------------------------
# Validation errors (rejected before any state mutation)
# ---------------------------------------------------------------------------

class ValidationError(ProtocolError):
    """Raised when an operation is rejected by input or state validation."""

    code = "VALIDATION_FAILED"


class InvalidAmountError(ValidationError):
    """Raised when an amount is zero or cannot be represented."""

    code = "INVALID_AMOUNT"


class ReserveInactiveError(ValidationError):
    """Raised when operating on a deactivated reserve."""

    code = "NO_ACTIVE_RESERVE"


class ReserveFrozenError(ValidationError):
    """Raised when opening new positions on a frozen reserve."""

    code = "RESERVE_FROZEN"


class PausedError(ValidationError):
    """Raised when the pool is paused."""

    code = "IS_PAUSED"


class BorrowingNotEnabledError(ValidationError):
    code = "BORROWING_NOT_ENABLED"


class StableBorrowingNotEnabledError(ValidationError):
    code = "STABLE_BORROWING_NOT_ENABLED"


class InvalidInterestRateModeError(ValidationError):
    """Raised when the selected rate mode is not stable or variable."""

    code = "INVALID_INTEREST_RATE_MODE_SELECTED"


class NoDebtOfSelectedTypeError(ValidationError):
    code = "NO_DEBT_OF_SELECTED_TYPE"


class NoExplicitAmountToRepayOnBehalfError(ValidationError):
    code = "NO_EXPLICIT_AMOUNT_TO_REPAY_ON_BEHALF"


class UnderlyingBalanceZeroError(ValidationError):
    code = "UNDERLYING_BALANCE_NOT_GREATER_THAN_0"


class NotEnoughAvailableUserBalanceError(ValidationError):
    code = "NOT_ENOUGH_AVAILABLE_USER_BALANCE"


class CollateralSameAsBorrowingCurrencyError(ValidationError):
    code = "COLLATERAL_SAME_AS_BORROWING_CURRENCY"


class AmountBiggerThanMaxStableLoanError(ValidationError):
    code = "AMOUNT_BIGGER_THAN_MAX_LOAN_SIZE_STABLE"


class BorrowAllowanceNotEnoughError(ValidationError):
    code = "BORROW_ALLOWANCE_NOT_ENOUGH"


class UnknownReserveError(ValidationError):
    """Raised when an asset has no initialized reserve."""

    code = "UNKNOWN_RESERVE"


class ReserveAlreadyInitializedError(ValidationError):
    code = "RESERVE_ALREADY_INITIALIZED"


class ReserveLiquidityNotZeroError(ValidationError):
    code = "RESERVE_LIQUIDITY_NOT_0"


class InvalidConfigurationError(ValidationError):
    """Raised when reserve parameters are inconsistent."""

    code = "INVALID_CONFIGURATION"


class RebalanceConditionsNotMetError(ValidationError):
    """Raised when a stable-rate rebalance is not allowed yet."""

    code = "INTEREST_RATE_REBALANCE_CONDITIONS_NOT_MET"


# ---------------------------------------------------------------------------
# Solvency errors
# ---------------------------------------------------------------------------

class SolvencyError(ProtocolError):
    """Raised when an operation would leave the pool or an account unsafe."""

    code = "SOLVENCY_CHECK_FAILED"


class HealthFactorTooLowError(SolvencyError):
    """Raised when an account's health factor would fall below one."""

    code = "HEALTH_FACTOR_LOWER_THAN_LIQUIDATION_THRESHOLD"


class CollateralBalanceZeroError(HealthFactorTooLowError):
    code = "COLLATERAL_BALANCE_IS_0"


class CollateralCannotCoverNewBorrowError(HealthFactorTooLowError):
    code = "COLLATERAL_CANNOT_COVER_NEW_BORROW"


class DepositAlreadyInUseError(HealthFactorTooLowError):
    """Raised when disabling collateral that backs outstanding debt."""

    code = "DEPOSIT_ALREADY_IN_USE"


class InsufficientLiquidityError(SolvencyError):
    """Raised when available liquidity would become negative."""

    code = "INSUFFICIENT_LIQUIDITY"


class DebtOverpaymentError(SolvencyError):
    """Raised when burning more debt than the account owes."""

    code = "DEBT_OVERPAYMENT"


# ---------------------------------------------------------------------------
# Liquidation-policy errors
# ---------------------------------------------------------------------------

class LiquidationError(ProtocolError):
    """Base class for rejected liquidation attempts."""

    code = "LIQUIDATION_FAILED"


class HealthFactorNotBelowThresholdError(LiquidationError):
    code = "HEALTH_FACTOR_NOT_BELOW_THRESHOLD"


class CollateralCannotBeLiquidatedError(LiquidationError):
    code = "COLLATERAL_CANNOT_BE_LIQUIDATED"


class UserDidNotBorrowSpecifiedAssetError(LiquidationError):
    code = "SPECIFIED_CURRENCY_NOT_BORROWED_BY_USER"


# ---------------------------------------------------------------------------
# Flash-loan errors
# ---------------------------------------------------------------------------

class FlashLoanError(ProtocolError):
    """Base class for flash-loan failures."""

    code = "FLASH_LOAN_FAILED"


class FlashLoanNotRepaidError(FlashLoanError):
    """Raised when the receiver does not return principal plus premium."""

    code = "INVALID_FLASH_LOAN_EXECUTOR_RETURN"


class InconsistentProtocolBalanceError(FlashLoanNotRepaidError):
    """Raised when the reserve balance after a flash loan is short."""

    code = "INCONSISTENT_PROTOCOL_BALANCE"


class LoanTooSmallError(FlashLoanError):
    """Raised when the flash-loan premium rounds down to zero."""

    code = "REQUESTED_AMOUNT_TOO_SMALL"


# ---------------------------------------------------------------------------
# Arithmetic and collaborator errors
# ---------------------------------------------------------------------------

class MathOverflowError(ProtocolError):
    """Raised when fixed-point arithmetic leaves the uint256 range."""

    code = "MATH_OVERFLOW"


class OraclePriceUnavailableError(ProtocolError):
    """Raised when a price is missing, zero or stale."""

    code = "ORACLE_PRICE_UNAVAILABLE"


class TransferFailedError(ProtocolError):
    """Raised when the underlying asset ledger rejects a transfer."""

    code = "TRANSFER_FAILED"
