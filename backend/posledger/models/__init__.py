from .tenancy import Organization, Counter
from .inventory import Supplier, Product, PurchaseBatch, PRODUCT_UNITS, TAX_TYPES
from .purchases import (
    Purchase, PurchaseLine, PurchasePayment, PurchaseReturn, PurchaseReturnLine,
    PAYMENT_METHODS, PURCHASE_STATUSES,
)
from .sales import Invoice, InvoiceLine, InvoiceLineBatch, InvoicePayment, SALE_SYSTEMS, INVOICE_PAYMENT_METHODS

__all__ = [
    'Organization', 'Counter',
    'Supplier', 'Product', 'PurchaseBatch', 'PRODUCT_UNITS', 'TAX_TYPES',
    'Purchase', 'PurchaseLine', 'PurchasePayment', 'PurchaseReturn', 'PurchaseReturnLine',
    'PAYMENT_METHODS', 'PURCHASE_STATUSES',
    'Invoice', 'InvoiceLine', 'InvoiceLineBatch', 'InvoicePayment', 'SALE_SYSTEMS', 'INVOICE_PAYMENT_METHODS',
]
