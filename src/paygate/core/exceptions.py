"""
Exception hierarchy for paygate.

All ledger exceptions inherit from PayGateError for easy catching. Every
rejected call leaves the ledger exactly as it was before the call.
"""

from __future__ import annotations

from typing import Any


class PayGateError(Exception):
    """
    Base exception for all paygate errors.

    Example:
        >>> try:
        ...     await ledger.pay_transaction(1, caller=payer, value=1_000_000)
        ... except PayGateError as e:
        ...     print(f"Payment rejected: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PayGateError):
    """
    Configuration is missing or invalid.

    Raised when:
    - Required configuration values are not provided
    - Environment variables are not set
    """

    pass


class ValidationError(PayGateError):
    """
    Input validation error.

    Raised when:
    - An address is the zero identity
    - An amount is not a positive integer
    - The origin chain tag is empty
    - A transaction id is out of range
    - The attached native value does not match the required amount
    """

    pass


class StateConflictError(PayGateError):
    """
    The call conflicts with the current ledger state.

    Raised when:
    - The transaction is already paid or already refunded
    - A refund is requested for an unpaid transaction
    - The payment token does not match the settlement path
    - The asset is already (or was never) in the allow-list
    - There is nothing to withdraw
    """

    def __init__(
        self,
        message: str,
        transaction_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.transaction_id = transaction_id


class ReentrancyError(StateConflictError):
    """
    Another state-changing call is in progress.

    Raised on entry to any mutating operation while the ledger lock is held,
    whether by a nested callback or by a concurrent caller.
    """

    def __init__(self, operation: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(f"Ledger is locked, rejected re-entrant call to {operation}", details=details)
        self.operation = operation


class AuthorizationError(PayGateError):
    """
    The caller is not allowed to perform the operation.

    Raised when:
    - A non-owner calls an owner-only operation
    - Anyone other than the shop owner tries to refund
    """

    def __init__(
        self,
        message: str,
        caller: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.caller = caller

    def __str__(self) -> str:
        if self.caller:
            return f"{self.message} (caller: {self.caller})"
        return self.message


class TransferError(PayGateError):
    """
    The asset transfer collaborator rejected a transfer.

    The surrounding ledger operation is rolled back in full.
    """

    def __init__(
        self,
        message: str,
        asset: str | None = None,
        source: str | None = None,
        destination: str | None = None,
        amount: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.asset = asset
        self.source = source
        self.destination = destination
        self.amount = amount


class InsufficientFundsOrAllowanceError(TransferError):
    """
    The source cannot cover the transfer.

    Raised when the source balance, or the spender's allowance on it, is
    smaller than the requested amount.
    """

    def __init__(
        self,
        message: str,
        available: int,
        required: int,
        asset: str | None = None,
        source: str | None = None,
        destination: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            asset=asset,
            source=source,
            destination=destination,
            amount=required,
            details=details,
        )
        self.available = available
        self.required = required
        self.shortfall = required - available

    def __str__(self) -> str:
        return (
            f"{self.message} | "
            f"Available: {self.available}, Required: {self.required}, "
            f"Shortfall: {self.shortfall}"
        )


class UnsupportedCallError(PayGateError):
    """
    The ledger has no handler for the call.

    Raised for unknown operation names and for bare native transfers
    that carry no operation at all.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation
