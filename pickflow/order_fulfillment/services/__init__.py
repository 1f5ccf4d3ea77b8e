"""
Order Fulfillment Services
"""

from .workflow import (
    validate_order_workflow, validate_pick_workflow, validate_dispatch_workflow
)
from .fulfillment_status import FulfillmentStatusEngine, derive_fulfillment_status
from .order_service import OrderService
from .picking_service import PickingService
from .dispatch_service import DispatchService
from .reset_service import ResetService

__all__ = [
    # Workflow validators
    'validate_order_workflow', 'validate_pick_workflow', 'validate_dispatch_workflow',

    # Status derivation
    'FulfillmentStatusEngine', 'derive_fulfillment_status',

    # Services
    'OrderService', 'PickingService', 'DispatchService', 'ResetService',
]
