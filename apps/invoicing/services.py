"""
Service classes for invoice totals, tax definitions and invoice submission.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from django.core.exceptions import ValidationError
from django.db import models

from apps.core.backend import BackendError
from apps.core.money_utils import format_money, parse_decimal, round_money

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
HUNDRED = Decimal('100')

# Tax amounts below half a cent are not shown on the invoice
TAX_DISPLAY_THRESHOLD = Decimal('0.005')


class TaxMode(models.TextChoices):
    INVOICE = 'invoice', 'Per invoice'
    LINE = 'line', 'Per line'


class RoundingMode(models.TextChoices):
    LINE = 'line', 'Round each line'
    TOTAL = 'total', 'Round the total'


@dataclass
class TaxDefinition:
    """A named tax rate configured on the backend (e.g. a VAT category)."""
    id: str
    percent: Decimal
    code: str = ''
    name: str = ''
    country_code: str = ''

    @classmethod
    def from_api(cls, data):
        return cls(
            id=str(data.get('id', '')),
            percent=parse_decimal(data.get('percent')),
            code=data.get('code') or '',
            name=data.get('name') or '',
            country_code=data.get('countryCode') or '',
        )


@dataclass
class LineItem:
    """
    One billable row on an invoice.

    quantity, unit_price and tax_percent accept raw form text; anything that
    does not parse as a number becomes 0. The remaining fields are carried
    through to the backend untouched.
    """
    description: str = ''
    quantity: Decimal = ZERO
    unit_price: Decimal = ZERO
    tax_percent: Decimal = ZERO
    notes: str = ''
    tax_definition_id: str = ''
    product_id: str = ''

    def __post_init__(self):
        self.quantity = parse_decimal(self.quantity)
        self.unit_price = parse_decimal(self.unit_price)
        self.tax_percent = parse_decimal(self.tax_percent)

    @classmethod
    def from_product(cls, product, tax_definitions=(), quantity=Decimal('1')):
        """
        Pre-fill a line from a backend product.

        The description falls back to the product name, and the tax percent
        comes from the product's tax definition when that definition is known.
        """
        tax_definition_id = product.get('taxDefinitionId') or ''
        definition = TaxDefinitionService.find_by_id(tax_definitions, tax_definition_id)
        return cls(
            description=product.get('description') or product.get('name') or '',
            quantity=quantity,
            unit_price=product.get('unitPrice'),
            tax_percent=definition.percent if definition else ZERO,
            tax_definition_id=tax_definition_id,
            product_id=str(product.get('id', '')),
        )

    @property
    def amount(self):
        return self.quantity * self.unit_price


@dataclass
class TaxConfiguration:
    """How tax is applied to an invoice."""
    mode: str = TaxMode.INVOICE
    prices_include_tax: bool = False
    rounding_mode: str = RoundingMode.LINE
    invoice_tax_rate: Decimal = ZERO

    @classmethod
    def from_values(cls, tax_mode=None, prices_include_tax=None, rounding_mode=None, tax_rate=None):
        """
        Build a configuration from loose form or settings values.

        Unknown tax modes fall back to per-invoice tax, and rounding is per
        line unless 'total' is given explicitly.
        """
        if isinstance(prices_include_tax, bool):
            include_tax = prices_include_tax
        else:
            include_tax = str(prices_include_tax or 'false').strip().lower() == 'true'

        return cls(
            mode=TaxMode.LINE if tax_mode == TaxMode.LINE else TaxMode.INVOICE,
            prices_include_tax=include_tax,
            rounding_mode=RoundingMode.TOTAL if rounding_mode == RoundingMode.TOTAL else RoundingMode.LINE,
            invoice_tax_rate=parse_decimal(tax_rate),
        )


@dataclass(frozen=True)
class TotalsResult:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    @property
    def show_tax(self):
        return abs(self.tax) >= TAX_DISPLAY_THRESHOLD


@dataclass(frozen=True)
class FormattedTotals:
    subtotal: str
    tax: str
    total: str
    show_tax: bool


class InvoiceTotalsService:
    """
    Calculates subtotal, tax and total for a set of invoice line items.

    Supports:
    - Per-invoice tax (one rate applied to the aggregated subtotal)
    - Per-line tax (each line carries its own rate)
    - Tax-exclusive prices (tax is added) and tax-inclusive prices
      (tax is extracted with amount - amount / (1 + rate/100))
    - Rounding each line to cents before aggregation, or only the totals

    compute() never raises and keeps no state between calls.
    """

    @staticmethod
    def compute(items, config):
        """
        Calculate invoice totals.

        Args:
            items: Iterable of LineItem, in display order
            config: TaxConfiguration

        Returns:
            TotalsResult: subtotal, tax and total rounded to cents
        """
        subtotal = ZERO
        tax = ZERO

        for item in items:
            line_total = item.amount
            if config.rounding_mode == RoundingMode.LINE:
                line_total = round_money(line_total)

            if config.mode == TaxMode.LINE:
                line_subtotal, line_tax = InvoiceTotalsService.split_tax(
                    line_total, item.tax_percent, config.prices_include_tax
                )
                subtotal += line_subtotal
                tax += line_tax
            else:
                subtotal += line_total

        if config.mode == TaxMode.INVOICE:
            subtotal, tax = InvoiceTotalsService.split_tax(
                subtotal, config.invoice_tax_rate, config.prices_include_tax
            )

        subtotal = round_money(subtotal)
        tax = round_money(tax)
        return TotalsResult(subtotal=subtotal, tax=tax, total=round_money(subtotal + tax))

    @staticmethod
    def split_tax(amount, rate, prices_include_tax):
        """
        Split an amount into its net part and its tax.

        Args:
            amount: Decimal amount as entered
            rate: Tax percent (e.g. 20 for 20%); 0 or less means no tax
            prices_include_tax: Whether the amount already contains the tax

        Returns:
            tuple: (net amount, tax amount), both unrounded
        """
        if rate <= 0:
            return amount, ZERO

        if prices_include_tax:
            divisor = 1 + rate / HUNDRED
            if divisor <= 0:
                return amount, ZERO
            extracted = amount - amount / divisor
            return amount - extracted, extracted

        return amount, amount * (rate / HUNDRED)

    @staticmethod
    def format(result, currency='USD', number_format='comma'):
        """Render a TotalsResult as currency strings for display."""
        return FormattedTotals(
            subtotal=format_money(result.subtotal, currency, number_format),
            tax=format_money(result.tax, currency, number_format),
            total=format_money(result.total, currency, number_format),
            show_tax=result.show_tax,
        )


class TaxDefinitionService:
    """Lookups over the tax definitions loaded from the backend."""

    @staticmethod
    def find_by_id(definitions, definition_id) -> Optional[TaxDefinition]:
        if not definition_id:
            return None
        for definition in definitions:
            if str(definition.id) == str(definition_id):
                return definition
        return None

    @staticmethod
    def match_invoice_definition(definitions, definition_id=None, rate=None) -> Optional[TaxDefinition]:
        """
        Pick the tax definition to preselect for an invoice.

        An explicit definition id wins; otherwise the first definition whose
        percent equals the invoice tax rate is used.
        """
        if definition_id:
            return TaxDefinitionService.find_by_id(definitions, definition_id)

        rate = parse_decimal(rate)
        for definition in definitions:
            if definition.percent == rate:
                return definition
        return None


class InvoiceSubmissionService:
    """
    Builds create/update invoice requests and sends them to the backend.

    The backend recalculates and stores the authoritative totals; the
    payload only carries the line items and tax configuration.
    """

    INVOICES_PATH = '/api/v1/invoices'
    DUPLICATE_NUMBER_MESSAGE = 'Invoice number already exists'
    DUPLICATE_PATTERN = re.compile(r'409|already exists|duplicate', re.IGNORECASE)

    def __init__(self, client):
        self.client = client

    @staticmethod
    def build_payload(data, items: List[LineItem], config: TaxConfiguration, default_currency='USD'):
        """
        Build the JSON body for a create/update invoice request.

        Args:
            data: Mapping of invoice-level fields (customer_id, currency, status,
                invoice_number, issue_date, due_date, notes, payment_terms,
                tax_definition_id)
            items: LineItems to submit; rows without a description are skipped
            config: TaxConfiguration for the invoice
            default_currency: Used when no currency was chosen

        Returns:
            dict: The request payload

        Raises:
            ValidationError: If no customer is selected or no item has a description
        """
        customer_id = (data.get('customer_id') or '').strip()
        if not customer_id:
            raise ValidationError({'customer_id': 'Please select a customer.'})

        payload_items = []
        for item in items:
            if not item.description.strip():
                continue
            entry = {
                'description': item.description,
                'quantity': float(item.quantity),
                'unitPrice': float(item.unit_price),
                'notes': item.notes or None,
            }
            if config.mode == TaxMode.LINE and item.tax_percent > 0:
                tax = {'percent': float(item.tax_percent)}
                if item.tax_definition_id:
                    tax['taxDefinitionId'] = item.tax_definition_id
                entry['taxes'] = [tax]
            payload_items.append(entry)

        if not payload_items:
            raise ValidationError({'items': 'Add at least one item with a description.'})

        issue_date = data.get('issue_date') or date.today()
        due_date = data.get('due_date')
        payload = {
            'customerId': customer_id,
            'currency': data.get('currency') or default_currency,
            'status': data.get('status') or 'draft',
            'issueDate': issue_date.isoformat() if hasattr(issue_date, 'isoformat') else str(issue_date),
            'dueDate': (due_date.isoformat() if hasattr(due_date, 'isoformat') else due_date) or None,
            'notes': data.get('notes') or None,
            'taxRate': float(config.invoice_tax_rate) if config.mode == TaxMode.INVOICE else 0,
            'pricesIncludeTax': config.prices_include_tax,
            'roundingMode': str(config.rounding_mode),
            'taxMode': str(config.mode),
            'items': payload_items,
        }

        invoice_number = (data.get('invoice_number') or '').strip()
        if invoice_number:
            payload['invoiceNumber'] = invoice_number
        payment_terms = data.get('payment_terms') or ''
        if payment_terms:
            payload['paymentTerms'] = payment_terms
        if config.mode == TaxMode.INVOICE:
            payload['taxDefinitionId'] = (data.get('tax_definition_id') or '').strip() or None

        return payload

    def create(self, payload):
        """Create an invoice. Returns the backend's invoice JSON."""
        return self._submit(self.client.post, self.INVOICES_PATH, payload)

    def update(self, invoice_id, payload):
        """Update an existing invoice. Returns the backend's invoice JSON."""
        return self._submit(self.client.put, f"{self.INVOICES_PATH}/{invoice_id}", payload)

    def _submit(self, send, path, payload):
        try:
            return send(path, payload)
        except BackendError as e:
            if self.is_duplicate_number_error(e):
                logger.info("Duplicate invoice number rejected: %s", payload.get('invoiceNumber'))
                raise ValidationError({'invoice_number': self.DUPLICATE_NUMBER_MESSAGE}) from e
            raise

    @classmethod
    def is_duplicate_number_error(cls, error):
        if error.status == 409:
            return True
        return bool(cls.DUPLICATE_PATTERN.search(f"{error} {error.message}"))
