"""
Service classes for core application functionality.
"""

import logging
from dataclasses import dataclass, field

from django.conf import settings

from apps.core.backend import BackendError
from apps.core.money_utils import get_number_format
from apps.invoicing.services import TaxConfiguration

logger = logging.getLogger(__name__)


@dataclass
class InvoiceDefaults:
    """Values used to prefill a new invoice."""
    currency: str
    payment_terms: str
    default_notes: str
    number_format: str
    tax: TaxConfiguration = field(default_factory=TaxConfiguration)


class InvoiceDefaultsService:
    """
    Derives invoice editor defaults from the backend settings.

    Backend settings keys used:
    - currency: Default currency code (fallback: INVOICE_DEFAULT_CURRENCY, then USD)
    - paymentTerms: Default payment terms (fallback: INVOICE_DEFAULT_PAYMENT_TERMS)
    - defaultNotes: Notes prefilled on new invoices
    - defaultTaxRate: Invoice tax rate in percent
    - defaultPricesIncludeTax: 'true' if entered prices already contain tax
    - defaultRoundingMode: 'line' or 'total'
    - numberFormat: 'comma' (1,234.56) or 'period' (1.234,56)
    """

    SETTINGS_PATH = '/api/v1/settings'

    @classmethod
    def from_settings(cls, backend_settings=None):
        """
        Build InvoiceDefaults from a backend settings mapping.

        Args:
            backend_settings: dict returned by GET /api/v1/settings, or None

        Returns:
            InvoiceDefaults
        """
        backend_settings = backend_settings or {}

        currency = backend_settings.get('currency') or getattr(settings, 'INVOICE_DEFAULT_CURRENCY', 'USD')
        payment_terms = backend_settings.get('paymentTerms') or getattr(
            settings, 'INVOICE_DEFAULT_PAYMENT_TERMS', 'Due in 30 days'
        )

        return InvoiceDefaults(
            currency=currency,
            payment_terms=payment_terms,
            default_notes=backend_settings.get('defaultNotes') or '',
            number_format=get_number_format(backend_settings),
            tax=TaxConfiguration.from_values(
                prices_include_tax=backend_settings.get('defaultPricesIncludeTax'),
                rounding_mode=backend_settings.get('defaultRoundingMode'),
                tax_rate=backend_settings.get('defaultTaxRate'),
            ),
        )

    @classmethod
    def load(cls, client):
        """
        Fetch the backend settings and derive defaults from them.

        Falls back to the built-in defaults when the backend is unavailable.
        """
        try:
            backend_settings = client.get(cls.SETTINGS_PATH)
        except BackendError as e:
            logger.warning("Could not load settings, using defaults: %s", e)
            backend_settings = {}
        return cls.from_settings(backend_settings)
