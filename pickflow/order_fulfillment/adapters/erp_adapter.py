"""
ERP Adapter for Order Fulfillment.

Defines the delivery note contract the dispatch service relies on, with a
deterministic mock implementation for tests and development.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.conf import settings

from ..exceptions import ErpClientError, ErpOrderReferenceError


@dataclass
class DeliveryNoteLine:
    stock_code: str
    quantity: int
    unit_price: Decimal = Decimal("0.00")
    description: str = ""
    line_number: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def as_payload(self) -> Dict[str, Any]:
        data = asdict(self)
        data["unit_price"] = str(self.unit_price)
        return data


class ErpAdapterInterface(ABC):
    """
    Interface for the ERP that issues delivery notes.

    Both operations create exactly one note for the order reference and
    return its identifier.
    """

    @abstractmethod
    def create_lines_under_note(self, order_ref: str, lines: List[DeliveryNoteLine]) -> str:
        """
        Create a delivery note and add each line to it explicitly.

        Args:
            order_ref: ERP order reference (the order number)
            lines: Lines with the warehouse's picked quantities

        Returns:
            Delivery note identifier

        Raises:
            ErpOrderReferenceError: If the ERP does not know the order reference
            ErpRejectionError: If the ERP refuses the note or a line
            ErpTransportError: On network failure or timeout
        """
        pass

    @abstractmethod
    def convert_order_to_note(self, order_ref: str) -> str:
        """
        Ask the ERP to convert its stored order into a delivery note.

        The note carries the ERP's own order quantities.

        Args:
            order_ref: ERP order reference (the order number)

        Returns:
            Delivery note identifier

        Raises:
            ErpRejectionError: If the ERP refuses the conversion
            ErpTransportError: On network failure or timeout
        """
        pass


class MockErpAdapter(ErpAdapterInterface):
    """
    Deterministic in-memory ERP.

    Note ids are sequential (``DN-000001``). Orders listed in
    ``unknown_orders`` reject line-level creation as an unknown reference;
    ``erp_order_quantities`` holds what the ERP believes each order contains
    and is what the conversion path copies onto the note. Setting
    ``fail_with`` makes the next calls raise that error.
    """

    def __init__(self):
        self.notes: Dict[str, Dict[str, Any]] = {}
        self.unknown_orders: set = set()
        self.erp_order_quantities: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_with: Optional[ErpClientError] = None
        self.calls: List[tuple] = []
        self._sequence = 0

    def _next_note_id(self) -> str:
        self._sequence += 1
        return f"DN-{self._sequence:06d}"

    def create_lines_under_note(self, order_ref: str, lines: List[DeliveryNoteLine]) -> str:
        self.calls.append(("create_lines_under_note", order_ref))
        if self.fail_with is not None:
            raise self.fail_with
        if order_ref in self.unknown_orders:
            raise ErpOrderReferenceError(
                f"Order {order_ref} not found in ERP",
                status_code=404,
                error_code="order_not_found",
            )

        note_id = self._next_note_id()
        self.notes[note_id] = {
            "order_ref": order_ref,
            "strategy": "manual",
            "lines": [line.as_payload() for line in lines],
        }
        return note_id

    def convert_order_to_note(self, order_ref: str) -> str:
        self.calls.append(("convert_order_to_note", order_ref))
        if self.fail_with is not None:
            raise self.fail_with

        note_id = self._next_note_id()
        self.notes[note_id] = {
            "order_ref": order_ref,
            "strategy": "conversion",
            "lines": list(self.erp_order_quantities.get(order_ref, [])),
        }
        return note_id

    def notes_for(self, order_ref: str) -> List[str]:
        return [note_id for note_id, note in self.notes.items() if note["order_ref"] == order_ref]


_erp_adapter: Optional[ErpAdapterInterface] = None


def build_erp_adapter_from_settings() -> ErpAdapterInterface:
    """Build the adapter selected by ``settings.ERP_ADAPTER``."""
    kind = getattr(settings, "ERP_ADAPTER", "mock")
    if kind == "http":
        from .erp_client import HttpErpAdapter

        return HttpErpAdapter.from_settings()
    return MockErpAdapter()


def get_erp_adapter() -> ErpAdapterInterface:
    """Return the configured ERP adapter, building it on first use."""
    global _erp_adapter
    if _erp_adapter is None:
        _erp_adapter = build_erp_adapter_from_settings()
    return _erp_adapter


def switch_to_mock_adapter() -> MockErpAdapter:
    """Switch to a fresh mock adapter for testing."""
    global _erp_adapter
    _erp_adapter = MockErpAdapter()
    return _erp_adapter


def switch_to_real_adapter(real_adapter: ErpAdapterInterface):
    """
    Switch to a real ERP adapter implementation.

    Args:
        real_adapter: Real implementation of ErpAdapterInterface
    """
    global _erp_adapter
    _erp_adapter = real_adapter
