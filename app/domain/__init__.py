from .tenants.models import Tenant
from .tenants.counters import invoice_counters
from .clients.models import Client
from .invoicing.models import Invoice, InvoiceItem, InvoiceStatus

__all__ = (
    "Tenant", "invoice_counters", "Client", "Invoice", "InvoiceItem", "InvoiceStatus"
)
