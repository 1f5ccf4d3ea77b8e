"""
Custom exceptions for the Order Fulfillment module.
"""

from typing import Dict, Any


class BusinessException(Exception):
    """Base exception for business logic errors."""

    http_status = 400

    def __init__(self, message: str, code: str = "BUSINESS_ERROR", details: Dict[str, Any] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class InvalidTransitionException(BusinessException):
    """Raised when attempting an invalid workflow transition."""

    http_status = 409

    def __init__(self, current_status: str, attempted_status: str, entity_type: str = "order"):
        message = f"Invalid transition for {entity_type}: cannot move from {current_status} to {attempted_status}"
        super().__init__(message, "INVALID_TRANSITION", {
            "current_status": current_status,
            "attempted_status": attempted_status,
            "entity_type": entity_type
        })


class ValidationException(BusinessException):
    """Raised when data validation fails."""

    def __init__(self, message: str, field_errors: Dict[str, Any] = None):
        super().__init__(message, "VALIDATION_ERROR", field_errors or {})


class ItemNotFoundException(BusinessException):
    """Raised when a scan targets an order item that does not exist."""

    http_status = 404

    def __init__(self, order_item_id):
        super().__init__(
            f"Order item {order_item_id} not found",
            "ITEM_NOT_FOUND",
            {"order_item_id": str(order_item_id)}
        )


class OrderNotFoundException(BusinessException):
    """Raised when an order cannot be found."""

    http_status = 404

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found", "ORDER_NOT_FOUND", {"order_id": str(order_id)})


class PickNotFoundException(BusinessException):
    """Raised when a picking session cannot be found."""

    http_status = 404

    def __init__(self, pick_id):
        super().__init__(f"Pick {pick_id} not found", "PICK_NOT_FOUND", {"pick_id": str(pick_id)})


class BarcodeMismatchException(BusinessException):
    """Raised when a scanned barcode does not belong to the item's product or package."""

    def __init__(self, barcode: str, order_item_id, expected=None):
        super().__init__(
            f"Barcode {barcode} does not belong to order item {order_item_id}",
            "BARCODE_MISMATCH",
            {
                "barcode": barcode,
                "order_item_id": str(order_item_id),
                "expected_barcodes": list(expected or []),
            }
        )


class OverPickException(BusinessException):
    """Raised when a scan would pick more than was requested."""

    def __init__(self, order_item_id, requested: int, picked: int, barcode: str = ""):
        super().__init__(
            f"Order item {order_item_id} is already fully picked ({picked}/{requested})",
            "OVER_PICK",
            {
                "order_item_id": str(order_item_id),
                "quantity_requested": requested,
                "quantity_picked": picked,
                "barcode": barcode,
            }
        )


class NotFulfilledException(BusinessException):
    """Raised when a dispatch is requested for an order that is not fully picked."""

    http_status = 409

    def __init__(self, order_number: str, fulfillment_status: str):
        super().__init__(
            f"Order {order_number} is {fulfillment_status}; only FULFILLED orders can be dispatched",
            "NOT_FULFILLED",
            {"order_number": order_number, "fulfillment_status": fulfillment_status}
        )


class AlreadyDispatchedException(BusinessException):
    """Raised when an order already has a pending or committed delivery note."""

    http_status = 409

    def __init__(self, order_number: str, dispatch_status: str, note_id: str = None):
        super().__init__(
            f"Order {order_number} already has a {dispatch_status} delivery note",
            "ALREADY_DISPATCHED",
            {"order_number": order_number, "dispatch_status": dispatch_status, "note_id": note_id}
        )


class ErpUnreachableException(BusinessException):
    """Raised when the ERP could not be reached or did not answer in time."""

    http_status = 502

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message, "ERP_UNREACHABLE", details)


class ErpRejectedException(BusinessException):
    """Raised when the ERP refused the delivery note."""

    http_status = 502

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message, "ERP_REJECTED", details)


class DispatchSupersededException(BusinessException):
    """Raised when the pending dispatch was cleared or reset while the ERP call was in flight."""

    http_status = 409

    def __init__(self, order_number: str, orphan_note_id: str):
        super().__init__(
            f"Dispatch for order {order_number} was cleared while note {orphan_note_id} was being created",
            "DISPATCH_SUPERSEDED",
            {"order_number": order_number, "orphan_note_id": orphan_note_id}
        )


# ERP client errors. Raised by adapters and translated by the dispatch service.

class ErpClientError(Exception):
    """Raised when a call to the ERP fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int = None,
        error_code: str = None,
        payload: Dict[str, Any] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.payload = payload or {}


class ErpTransportError(ErpClientError):
    """Network failure, timeout or ERP server error."""


class ErpRejectionError(ErpClientError):
    """The ERP understood the request and refused it."""


class ErpOrderReferenceError(ErpRejectionError):
    """The ERP does not know the order reference needed for line-level creation."""
