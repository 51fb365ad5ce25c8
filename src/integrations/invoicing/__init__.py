from src.integrations.invoicing.base import (
    CancelInvoiceRequest,
    CancelResult,
    CreateInvoiceRequest,
    InvoiceCustomer,
    InvoiceLine,
    InvoiceProvider,
    InvoiceResult,
    ProviderConfig,
    ProviderPaymentMethod,
)
from src.integrations.invoicing.registry import InvoiceProviderRegistry, get_provider_registry

__all__ = [
    "CancelInvoiceRequest",
    "CancelResult",
    "CreateInvoiceRequest",
    "InvoiceCustomer",
    "InvoiceLine",
    "InvoiceProvider",
    "InvoiceProviderRegistry",
    "InvoiceResult",
    "ProviderConfig",
    "ProviderPaymentMethod",
    "get_provider_registry",
]
