"""
Workflow service for Order Fulfillment.

Manages allowed state transitions for orders, picks and delivery notes.
"""

from ..exceptions import InvalidTransitionException
from ..models import Order, OrderStatus, Pick, PickStatus, DispatchStatus


class OrderWorkflow:
    """Workflow rules for Order status transitions."""

    # fulfilled -> open is only taken by the reset operations
    ALLOWED_TRANSITIONS = {
        OrderStatus.OPEN: [OrderStatus.APPROVED, OrderStatus.FULFILLED],
        OrderStatus.APPROVED: [OrderStatus.FULFILLED, OrderStatus.OPEN],
        OrderStatus.FULFILLED: [OrderStatus.OPEN],
    }

    @classmethod
    def validate_transition(cls, order: Order, new_status: str) -> None:
        """
        Validate if a status transition is allowed.

        Args:
            order: Order instance
            new_status: New status to transition to

        Raises:
            InvalidTransitionException: If transition is not allowed
        """
        current_status = OrderStatus(order.status)

        if current_status == new_status:
            return

        if new_status not in cls.ALLOWED_TRANSITIONS.get(current_status, []):
            raise InvalidTransitionException(
                current_status=current_status,
                attempted_status=new_status,
                entity_type="Order"
            )

    @classmethod
    def can_transition_to(cls, order: Order, new_status: str) -> bool:
        try:
            cls.validate_transition(order, new_status)
            return True
        except InvalidTransitionException:
            return False


class PickWorkflow:
    """Workflow rules for picking sessions."""

    ALLOWED_TRANSITIONS = {
        PickStatus.ACTIVE: [PickStatus.PARTIAL, PickStatus.COMPLETED],
        PickStatus.PARTIAL: [PickStatus.ACTIVE, PickStatus.COMPLETED],
        PickStatus.COMPLETED: [],
    }

    @classmethod
    def validate_transition(cls, pick: Pick, new_status: str) -> None:
        current_status = PickStatus(pick.status)

        if current_status == new_status:
            return

        if new_status not in cls.ALLOWED_TRANSITIONS.get(current_status, []):
            raise InvalidTransitionException(
                current_status=current_status,
                attempted_status=new_status,
                entity_type="Pick"
            )


class DispatchWorkflow:
    """
    Workflow rules for the delivery note attached to an order.

    ``None`` stands for "no note": never dispatched, or the last attempt
    failed and the order is waiting for a retry.
    """

    ALLOWED_TRANSITIONS = {
        None: [DispatchStatus.PENDING, DispatchStatus.CLEARED],
        DispatchStatus.PENDING: [DispatchStatus.COMMITTED, None, DispatchStatus.CLEARED],
        DispatchStatus.COMMITTED: [DispatchStatus.CLEARED],
        DispatchStatus.CLEARED: [DispatchStatus.PENDING],
    }

    @classmethod
    def validate_transition(cls, order: Order, new_status) -> None:
        current_status = DispatchStatus(order.dispatch_status) if order.dispatch_status else None

        if current_status == new_status:
            return

        if new_status not in cls.ALLOWED_TRANSITIONS.get(current_status, []):
            raise InvalidTransitionException(
                current_status=current_status or "NONE",
                attempted_status=new_status or "NONE",
                entity_type="Dispatch"
            )


def validate_order_workflow(order: Order, new_status: str) -> None:
    """Validate order status transition."""
    OrderWorkflow.validate_transition(order, new_status)


def validate_pick_workflow(pick: Pick, new_status: str) -> None:
    """Validate picking session status transition."""
    PickWorkflow.validate_transition(pick, new_status)


def validate_dispatch_workflow(order: Order, new_status) -> None:
    """Validate delivery note status transition."""
    DispatchWorkflow.validate_transition(order, new_status)
