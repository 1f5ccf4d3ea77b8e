from .erp_adapter import (
    DeliveryNoteLine,
    ErpAdapterInterface,
    MockErpAdapter,
    get_erp_adapter,
    switch_to_mock_adapter,
    switch_to_real_adapter,
)

__all__ = [
    'DeliveryNoteLine',
    'ErpAdapterInterface',
    'MockErpAdapter',
    'get_erp_adapter',
    'switch_to_mock_adapter',
    'switch_to_real_adapter',
]
