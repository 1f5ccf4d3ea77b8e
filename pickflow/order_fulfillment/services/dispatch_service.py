"""
Dispatch Service for Order Fulfillment.

Turns a fully picked order into exactly one ERP delivery note.

Creation runs in three steps so the order row is never locked across the
network call:

1. lock the order, check it is fulfilled and has no active note, snapshot
   the picked quantities and set the PENDING marker with a fresh attempt id;
2. call the ERP with no lock held;
3. lock the order again and commit the note id, unless the marker was
   cleared or replaced in the meantime.

Scans are refused while the marker is set, so the snapshot taken in step 1
is what the ERP receives.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ..adapters.erp_adapter import DeliveryNoteLine, ErpAdapterInterface, get_erp_adapter
from ..models import Order, DispatchStatus, FulfillmentStatus, QuantitiesSource, AuditLog
from ..exceptions import (
    AlreadyDispatchedException, BusinessException, DispatchSupersededException,
    ErpClientError, ErpOrderReferenceError, ErpRejectedException, ErpTransportError,
    ErpUnreachableException, NotFulfilledException,
)
from .fulfillment_status import FulfillmentStatusEngine
from .order_service import get_order
from .workflow import validate_dispatch_workflow

logger = logging.getLogger(__name__)


@dataclass
class DispatchOutcome:
    note_id: str
    strategy: str
    quantities_source: str
    lines_created: int
    fallback_reason: Optional[str] = None


class ManualLineStrategy:
    """Delivery note built line by line from the warehouse's picked quantities."""

    name = 'manual-lines'
    quantities_source = QuantitiesSource.WAREHOUSE

    def run(self, adapter: ErpAdapterInterface, order_ref: str, lines: List[DeliveryNoteLine]) -> DispatchOutcome:
        note_id = adapter.create_lines_under_note(order_ref, lines)
        return DispatchOutcome(note_id, self.name, self.quantities_source, len(lines))


class OrderConversionStrategy:
    """Delivery note converted by the ERP from its own stored order."""

    name = 'order-conversion'
    quantities_source = QuantitiesSource.ERP_ORDER

    def run(self, adapter: ErpAdapterInterface, order_ref: str, lines: List[DeliveryNoteLine]) -> DispatchOutcome:
        note_id = adapter.convert_order_to_note(order_ref)
        return DispatchOutcome(note_id, self.name, self.quantities_source, 0)


@dataclass
class DispatchSnapshot:
    order_id: Any
    order_number: str
    attempt_id: uuid.UUID
    lines: List[DeliveryNoteLine] = field(default_factory=list)


class DispatchService:
    """Service class for ERP delivery note operations."""

    STRATEGIES = (ManualLineStrategy(), OrderConversionStrategy())

    @classmethod
    def strategies(cls):
        """Strategies in the order they are tried."""
        if getattr(settings, 'ERP_DISPATCH_ALLOW_FALLBACK', True):
            return cls.STRATEGIES
        return cls.STRATEGIES[:1]

    @staticmethod
    def create_dispatch(order_id, user=None, adapter: Optional[ErpAdapterInterface] = None) -> Dict[str, Any]:
        """
        Create the ERP delivery note for a fully picked order.

        Args:
            order_id: Order UUID
            user: User requesting the dispatch
            adapter: ERP adapter; the configured one when omitted

        Returns:
            Dict with ``note_id``, ``quantities_source`` ("warehouse" or
            "erp-order"), ``lines_created`` and ``strategy``

        Raises:
            NotFulfilledException: If the order is not fully picked
            AlreadyDispatchedException: If a note is pending or committed
            ErpUnreachableException: If the ERP could not be reached
            ErpRejectedException: If the ERP refused the note
            DispatchSupersededException: If the dispatch was cleared mid-flight
        """
        adapter = adapter or get_erp_adapter()
        snapshot = DispatchService._begin_dispatch(order_id, user)

        try:
            outcome = DispatchService._submit(adapter, snapshot)
        except ErpClientError as exc:
            DispatchService._record_failure(snapshot, exc, user)
            details = {
                'order_number': snapshot.order_number,
                'error_code': exc.error_code,
                'status_code': exc.status_code,
                'erp_response': exc.payload,
            }
            if isinstance(exc, ErpTransportError):
                raise ErpUnreachableException(str(exc), details) from exc
            raise ErpRejectedException(str(exc), details) from exc
        except Exception as exc:
            DispatchService._record_failure(
                snapshot,
                ErpTransportError(f"Unexpected error during ERP dispatch: {exc}", error_code="unexpected_error"),
                user,
            )
            raise

        return DispatchService._commit_dispatch(snapshot, outcome, user)

    @staticmethod
    def _begin_dispatch(order_id, user=None) -> DispatchSnapshot:
        with transaction.atomic():
            order = get_order(order_id, for_update=True)

            if order.has_active_dispatch:
                raise AlreadyDispatchedException(order.order_number, order.dispatch_status, order.dispatch_note_id)

            fulfillment_status = FulfillmentStatusEngine.compute(order)
            if fulfillment_status != FulfillmentStatus.FULFILLED:
                raise NotFulfilledException(order.order_number, fulfillment_status)

            validate_dispatch_workflow(order, DispatchStatus.PENDING)

            lines = [
                DeliveryNoteLine(
                    stock_code=item.dispatch_code,
                    quantity=item.quantity_picked,
                    unit_price=item.unit_price,
                    description=item.product_name,
                    line_number=item.line_number,
                    metadata={'order_item_id': str(item.id)},
                )
                for item in order.items.select_related('product').order_by('line_number')
            ]

            old_status = order.dispatch_status
            order.dispatch_status = DispatchStatus.PENDING
            order.dispatch_attempt_id = uuid.uuid4()
            order.dispatch_error = None
            order.save(update_fields=['dispatch_status', 'dispatch_attempt_id', 'dispatch_error', 'updated_at'])

            AuditLog.log_status_change(
                order, old_status, DispatchStatus.PENDING, user, field='dispatch_status'
            )
            logger.info(f"Dispatch of order {order.order_number} started with {len(lines)} lines")

            return DispatchSnapshot(order.id, order.order_number, order.dispatch_attempt_id, lines)

    @classmethod
    def _submit(cls, adapter: ErpAdapterInterface, snapshot: DispatchSnapshot) -> DispatchOutcome:
        """Try each strategy in turn. Only an unknown ERP order reference moves on to the next one."""
        reference_error = None
        for strategy in cls.strategies():
            try:
                outcome = strategy.run(adapter, snapshot.order_number, snapshot.lines)
            except ErpOrderReferenceError as exc:
                reference_error = exc
                logger.warning(
                    f"Strategy {strategy.name} cannot dispatch order {snapshot.order_number}: {exc}"
                )
                continue

            if reference_error is not None:
                outcome.fallback_reason = str(reference_error)
                logger.warning(
                    f"Order {snapshot.order_number} dispatched through {strategy.name}; "
                    f"note {outcome.note_id} carries ERP order quantities"
                )
            return outcome

        raise reference_error

    @staticmethod
    def _record_failure(snapshot: DispatchSnapshot, exc: ErpClientError, user=None) -> None:
        """Release the PENDING marker and keep the ERP error on the order for a retry."""
        logger.error(f"ERP dispatch failed for order {snapshot.order_number}: {exc}")
        with transaction.atomic():
            order = Order.objects.select_for_update().get(id=snapshot.order_id)
            if order.dispatch_attempt_id != snapshot.attempt_id:
                logger.warning(
                    f"Dispatch of order {snapshot.order_number} was cleared before the ERP failure was recorded"
                )
                return

            partial_note_id = exc.payload.get('note_id')
            validate_dispatch_workflow(order, None)
            order.dispatch_status = None
            order.dispatch_attempt_id = None
            order.dispatch_error = str(exc)
            if partial_note_id:
                order.dispatch_error += (
                    f"; partial ERP delivery note {partial_note_id} left with "
                    f"{exc.payload.get('lines_created', 0)} lines"
                )
                logger.warning(
                    f"Order {snapshot.order_number}: ERP delivery note {partial_note_id} was left incomplete"
                )
            order.dispatch_payload = {
                'error_type': exc.__class__.__name__,
                'error_code': exc.error_code,
                'status_code': exc.status_code,
                'erp_response': exc.payload,
                'lines': [line.as_payload() for line in snapshot.lines],
            }
            order.save(update_fields=[
                'dispatch_status', 'dispatch_attempt_id', 'dispatch_error', 'dispatch_payload', 'updated_at'
            ])

            AuditLog.log_change(
                entity=order,
                action='dispatch_failed',
                user=user,
                old_values={'dispatch_status': DispatchStatus.PENDING},
                new_values={'dispatch_status': None},
                notes=str(exc),
                metadata={
                    'error_code': exc.error_code,
                    'status_code': exc.status_code,
                    'orphan_note_id': partial_note_id,
                },
            )

    @staticmethod
    def _commit_dispatch(snapshot: DispatchSnapshot, outcome: DispatchOutcome, user=None) -> Dict[str, Any]:
        superseded = False
        with transaction.atomic():
            order = Order.objects.select_for_update().get(id=snapshot.order_id)

            if order.dispatch_attempt_id != snapshot.attempt_id or not order.is_dispatch_pending:
                superseded = True
                order.dispatch_error = (
                    f"Orphaned ERP delivery note {outcome.note_id}: "
                    f"dispatch was cleared while the note was being created"
                )
                order.save(update_fields=['dispatch_error', 'updated_at'])
                AuditLog.log_change(
                    entity=order,
                    action='dispatch_superseded',
                    user=user,
                    notes=order.dispatch_error,
                    metadata={'orphan_note_id': outcome.note_id, 'strategy': outcome.strategy},
                )
            else:
                validate_dispatch_workflow(order, DispatchStatus.COMMITTED)
                order.dispatch_status = DispatchStatus.COMMITTED
                order.dispatch_note_id = outcome.note_id
                order.dispatch_quantities_source = outcome.quantities_source
                order.dispatch_attempt_id = None
                order.dispatch_error = None
                order.dispatched_at = timezone.now()
                order.dispatch_payload = {
                    'strategy': outcome.strategy,
                    'quantities_source': outcome.quantities_source,
                    'order_reference': snapshot.order_number,
                    'lines_created': outcome.lines_created,
                    'lines': [line.as_payload() for line in snapshot.lines],
                    'fallback_reason': outcome.fallback_reason,
                }
                order.save(update_fields=[
                    'dispatch_status', 'dispatch_note_id', 'dispatch_quantities_source',
                    'dispatch_attempt_id', 'dispatch_error', 'dispatched_at', 'dispatch_payload', 'updated_at'
                ])

                AuditLog.log_change(
                    entity=order,
                    action='dispatch_committed',
                    user=user,
                    old_values={'dispatch_status': DispatchStatus.PENDING},
                    new_values={'dispatch_status': DispatchStatus.COMMITTED, 'dispatch_note_id': outcome.note_id},
                    metadata={'strategy': outcome.strategy, 'quantities_source': outcome.quantities_source},
                )

        if superseded:
            logger.warning(
                f"Order {snapshot.order_number}: ERP note {outcome.note_id} created after the dispatch was cleared"
            )
            raise DispatchSupersededException(snapshot.order_number, outcome.note_id)

        degraded = outcome.quantities_source == QuantitiesSource.ERP_ORDER
        if degraded:
            message = (
                f"Delivery note {outcome.note_id} created by ERP order conversion; "
                f"quantities come from the ERP order, not from picking"
            )
        else:
            message = (
                f"Delivery note {outcome.note_id} created with {outcome.lines_created} lines "
                f"from warehouse quantities"
            )
        logger.info(f"Order {snapshot.order_number}: {message}")

        return {
            'success': True,
            'note_id': outcome.note_id,
            'quantities_source': outcome.quantities_source,
            'lines_created': outcome.lines_created,
            'strategy': outcome.strategy,
            'degraded': degraded,
            'message': message,
        }

    @staticmethod
    def clear_dispatch(order_id, user=None, notes: str = "") -> Dict[str, Any]:
        """
        Roll back the order's delivery note so it can be dispatched again.

        The note id, error and payload are removed and the status becomes
        CLEARED. The ERP-side note is not touched.

        Raises:
            BusinessException: If the order was never dispatched
        """
        with transaction.atomic():
            order = get_order(order_id, for_update=True)

            if order.dispatch_status == DispatchStatus.CLEARED:
                return {
                    'success': True,
                    'cleared_note_id': None,
                    'message': f"Dispatch of order {order.order_number} is already cleared",
                }

            if not order.was_ever_dispatched and not order.dispatch_error:
                raise BusinessException(
                    f"Order {order.order_number} has no dispatch to clear",
                    "NO_DISPATCH"
                )

            if order.is_dispatch_pending:
                logger.warning(f"Clearing in-flight dispatch of order {order.order_number}")

            validate_dispatch_workflow(order, DispatchStatus.CLEARED)
            old_values = {
                'dispatch_status': order.dispatch_status,
                'dispatch_note_id': order.dispatch_note_id,
                'dispatch_error': order.dispatch_error,
                'dispatch_quantities_source': order.dispatch_quantities_source,
            }
            cleared_note_id = order.dispatch_note_id

            order.dispatch_note_id = None
            order.dispatch_status = DispatchStatus.CLEARED
            order.dispatch_error = None
            order.dispatch_payload = None
            order.dispatch_quantities_source = None
            order.dispatch_attempt_id = None
            order.dispatched_at = None
            order.save(update_fields=[
                'dispatch_note_id', 'dispatch_status', 'dispatch_error', 'dispatch_payload',
                'dispatch_quantities_source', 'dispatch_attempt_id', 'dispatched_at', 'updated_at'
            ])

            AuditLog.log_change(
                entity=order,
                action='dispatch_cleared',
                user=user,
                old_values=old_values,
                new_values={'dispatch_status': DispatchStatus.CLEARED},
                notes=notes,
            )

            logger.info(f"Dispatch of order {order.order_number} cleared (note {cleared_note_id})")
            return {
                'success': True,
                'cleared_note_id': cleared_note_id,
                'message': f"Dispatch of order {order.order_number} cleared",
            }

    @staticmethod
    def get_dispatch_state(order_id) -> Dict[str, Any]:
        order = get_order(order_id)
        return {
            'order_number': order.order_number,
            'dispatch_status': order.dispatch_status,
            'dispatch_note_id': order.dispatch_note_id,
            'dispatch_error': order.dispatch_error,
            'dispatch_quantities_source': order.dispatch_quantities_source,
            'dispatch_payload': order.dispatch_payload,
            'dispatched_at': order.dispatched_at,
        }
