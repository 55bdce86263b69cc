"""
Centralized HTTP exceptions for consistent error handling.

Domain services raise these directly; FastAPI turns them into JSON error
responses with the right status code, and every instance logs itself on
construction so rejected checkouts and claims leave a trace.

Usage:
    from shared.utils.exceptions import NotFoundError, ValidationError

    raise MenuItemNotFoundError(menu_item_id)
    raise ValidationError("Cart is empty")
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Menu item", 123)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} '{entity_id}' not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class MenuItemNotFoundError(NotFoundError):
    def __init__(self, menu_item_id: int | None = None, **log_context: Any):
        super().__init__("Menu item", menu_item_id, **log_context)


class StockItemNotFoundError(NotFoundError):
    def __init__(self, stock_item_name: str | None = None, **log_context: Any):
        super().__init__("Stock item", stock_item_name, **log_context)


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: int | None = None, **log_context: Any):
        super().__init__("Order", order_id, **log_context)


class CouponNotFoundError(NotFoundError):
    def __init__(self, coupon_id: int | None = None, **log_context: Any):
        super().__init__("Coupon", coupon_id, **log_context)


class ClaimNotFoundError(NotFoundError):
    def __init__(self, claim_id: int | None = None, **log_context: Any):
        super().__init__("Coupon claim", claim_id, **log_context)


class CustomerNotFoundError(NotFoundError):
    def __init__(self, customer_id: str | None = None, **log_context: Any):
        super().__init__("Customer", customer_id, **log_context)


# =============================================================================
# 401 / 403 Errors
# =============================================================================


class UnauthorizedError(AppException):
    """Missing or invalid credentials (401)."""

    def __init__(self, detail: str = "Not authenticated", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="warning",
            headers={"WWW-Authenticate": "Bearer"},
            **log_context,
        )


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("adjust stock")
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not allowed to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Quantity must be positive", field="quantity", value=-1)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidTransitionError(ValidationError):
    """Invalid status transition."""

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        detail = f"Invalid transition from '{from_status}' to '{to_status}' for {entity}"
        super().__init__(detail, entity=entity, from_status=from_status, to_status=to_status, **log_context)


class DuplicateEntityError(ValidationError):
    """Entity already exists."""

    def __init__(self, entity: str, identifier: str | None = None, **log_context: Any):
        if identifier:
            detail = f"{entity} '{identifier}' already exists"
        else:
            detail = f"{entity} already exists"

        super().__init__(detail, entity=entity, identifier=identifier, **log_context)


# =============================================================================
# 402 Payment Errors
# =============================================================================


class PaymentNotConfirmedError(AppException):
    """The payment layer did not report success."""

    def __init__(self, payment_id: str | None = None, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="Payment was not confirmed",
            log_level="warning",
            payment_id=payment_id,
            **log_context,
        )


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Order is already cancelled")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class StockInsufficientError(ConflictError):
    """A checkout needs more of a stock item than both sites hold."""

    def __init__(self, stock_item_name: str, required: int, available: int, **log_context: Any):
        self.stock_item_name = stock_item_name
        self.required = required
        self.available = available
        super().__init__(
            f"Not enough '{stock_item_name}' in stock (needed {required}, have {available})",
            stock_item=stock_item_name,
            required=required,
            available=available,
            **log_context,
        )


class InsufficientPointsError(ConflictError):
    def __init__(self, balance: int, points_cost: int, **log_context: Any):
        self.balance = balance
        self.points_cost = points_cost
        super().__init__(
            f"Not enough points: coupon costs {points_cost}, balance is {balance}",
            balance=balance,
            points_cost=points_cost,
            **log_context,
        )


class DailyLimitExceededError(ConflictError):
    def __init__(self, coupon_id: int, max_per_day: int, **log_context: Any):
        super().__init__(
            f"Daily limit of {max_per_day} claim(s) reached for this coupon",
            coupon_id=coupon_id,
            max_per_day=max_per_day,
            **log_context,
        )


class CouponExpiredOrUsedError(ConflictError):
    def __init__(self, claim_id: int, reason: str, **log_context: Any):
        self.reason = reason
        super().__init__(
            f"Coupon claim {claim_id} cannot be applied: {reason}",
            claim_id=claim_id,
            reason=reason,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to persist order", order_id=123)
    """

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Store I/O failed. The operation was rolled back and is not retried."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}. Please try again."
        super().__init__(detail, operation=operation, **log_context)


# Generic store I/O failure
StoreFailure = DatabaseError


class StockWriteFailure(DatabaseError):
    """Deducting or restoring stock failed; the enclosing order change was rolled back."""

    def __init__(self, operation: str, **log_context: Any):
        super().__init__(operation, **log_context)
