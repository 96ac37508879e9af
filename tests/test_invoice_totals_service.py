"""
Tests for InvoiceTotalsService.
Testing subtotal, tax and total calculation across tax and rounding modes.
"""
from decimal import Decimal
from django.test import SimpleTestCase
from apps.invoicing.services import (
    InvoiceTotalsService, LineItem, RoundingMode, TaxConfiguration, TaxMode, TotalsResult
)


class InvoiceTotalsEmptyAndUntaxedTest(SimpleTestCase):
    """Tests for invoices without items or without tax."""

    def test_no_items_gives_zero_totals(self):
        """Test that an empty item list gives zero subtotal, tax and total."""
        result = InvoiceTotalsService.compute([], TaxConfiguration())

        self.assertEqual(result.subtotal, Decimal('0.00'))
        self.assertEqual(result.tax, Decimal('0.00'))
        self.assertEqual(result.total, Decimal('0.00'))

    def test_no_items_in_line_mode(self):
        """Test that line mode with no items also gives zero totals."""
        config = TaxConfiguration(mode=TaxMode.LINE, prices_include_tax=True)
        result = InvoiceTotalsService.compute([], config)
        self.assertEqual(result, TotalsResult(Decimal('0.00'), Decimal('0.00'), Decimal('0.00')))

    def test_zero_invoice_rate_has_no_tax(self):
        """Test that a 0% invoice rate leaves total equal to subtotal."""
        items = [LineItem(quantity='3', unit_price='19.99'), LineItem(quantity='1', unit_price='5')]
        config = TaxConfiguration(invoice_tax_rate=Decimal('0'))

        result = InvoiceTotalsService.compute(items, config)

        self.assertEqual(result.subtotal, Decimal('64.97'))
        self.assertEqual(result.tax, Decimal('0.00'))
        self.assertEqual(result.total, result.subtotal)

    def test_zero_rate_with_inclusive_prices_takes_no_tax_branch(self):
        """Test that a 0% rate with tax-inclusive prices extracts nothing."""
        items = [LineItem(quantity='2', unit_price='50')]
        config = TaxConfiguration(prices_include_tax=True, invoice_tax_rate=Decimal('0'))

        result = InvoiceTotalsService.compute(items, config)

        self.assertEqual(result.subtotal, Decimal('100.00'))
        self.assertEqual(result.tax, Decimal('0.00'))

    def test_zero_line_rates_have_no_tax(self):
        """Test that line mode with all rates at 0 has no tax."""
        items = [LineItem(quantity='1', unit_price='10', tax_percent='0'), LineItem(quantity='2', unit_price='2.5')]
        config = TaxConfiguration(mode=TaxMode.LINE, prices_include_tax=True)

        result = InvoiceTotalsService.compute(items, config)

        self.assertEqual(result.subtotal, Decimal('15.00'))
        self.assertEqual(result.tax, Decimal('0.00'))
        self.assertEqual(result.total, Decimal('15.00'))


class InvoiceTotalsInvoiceModeTest(SimpleTestCase):
    """Tests for tax applied once to the invoice subtotal."""

    def setUp(self):
        self.items = [
            LineItem(description='Consulting', quantity='2', unit_price='50'),
            LineItem(description='Setup', quantity='1', unit_price='25'),
        ]

    def test_tax_exclusive_adds_tax(self):
        """Test that exclusive prices add 10% tax on top of the subtotal."""
        config = TaxConfiguration(invoice_tax_rate=Decimal('10'))

        result = InvoiceTotalsService.compute(self.items, config)

        self.assertEqual(result.subtotal, Decimal('125.00'))
        self.assertEqual(result.tax, Decimal('12.50'))
        self.assertEqual(result.total, Decimal('137.50'))

    def test_tax_inclusive_extracts_tax(self):
        """Test that inclusive prices extract 10% tax from the aggregate."""
        config = TaxConfiguration(prices_include_tax=True, invoice_tax_rate=Decimal('10'))

        result = InvoiceTotalsService.compute(self.items, config)

        self.assertEqual(result.subtotal, Decimal('113.64'))
        self.assertEqual(result.tax, Decimal('11.36'))
        self.assertEqual(result.total, Decimal('125.00'))

    def test_line_tax_percent_ignored_in_invoice_mode(self):
        """Test that per-line rates are not used when tax is per invoice."""
        items = [LineItem(quantity='1', unit_price='100', tax_percent='20')]
        config = TaxConfiguration(mode=TaxMode.INVOICE, invoice_tax_rate=Decimal('5'))

        result = InvoiceTotalsService.compute(items, config)

        self.assertEqual(result.tax, Decimal('5.00'))
        self.assertEqual(result.total, Decimal('105.00'))


class InvoiceTotalsLineModeTest(SimpleTestCase):
    """Tests for tax calculated per line item."""

    def test_mixed_rates_exclusive(self):
        """Test that each line is taxed at its own rate."""
        items = [
            LineItem(quantity='1', unit_price='100', tax_percent='20'),
            LineItem(quantity='1', unit_price='50', tax_percent='0'),
        ]
        config = TaxConfiguration(mode=TaxMode.LINE)

        result = InvoiceTotalsService.compute(items, config)

        self.assertEqual(result.subtotal, Decimal('150.00'))
        self.assertEqual(result.tax, Decimal('20.00'))
        self.assertEqual(result.total, Decimal('170.00'))

    def test_mixed_rates_inclusive(self):
        """Test that tax is extracted from each line at its own rate."""
        items = [
            LineItem(quantity='1', unit_price='120', tax_percent='20'),
            LineItem(quantity='1', unit_price='107', tax_percent='7'),
        ]
        config = TaxConfiguration(mode=TaxMode.LINE, prices_include_tax=True)

        result = InvoiceTotalsService.compute(items, config)

        self.assertEqual(result.subtotal, Decimal('200.00'))
        self.assertEqual(result.tax, Decimal('27.00'))
        self.assertEqual(result.total, Decimal('227.00'))

    def test_invoice_rate_ignored_in_line_mode(self):
        """Test that the invoice-level rate is not used when tax is per line."""
        items = [LineItem(quantity='1', unit_price='100')]
        config = TaxConfiguration(mode=TaxMode.LINE, invoice_tax_rate=Decimal('25'))

        result = InvoiceTotalsService.compute(items, config)

        self.assertEqual(result.tax, Decimal('0.00'))
        self.assertEqual(result.total, Decimal('100.00'))

    def test_negative_rate_has_no_tax(self):
        """Test that a negative line rate takes the no-tax branch."""
        items = [LineItem(quantity='1', unit_price='100', tax_percent='-10')]
        config = TaxConfiguration(mode=TaxMode.LINE)

        result = InvoiceTotalsService.compute(items, config)

        self.assertEqual(result.tax, Decimal('0.00'))
        self.assertEqual(result.subtotal, Decimal('100.00'))


class InvoiceTotalsRoundingModeTest(SimpleTestCase):
    """Tests for rounding per line versus rounding the totals only."""

    def setUp(self):
        self.items = [LineItem(quantity='1', unit_price='10.005') for _ in range(3)]

    def test_line_rounding_rounds_each_line(self):
        """Test that each 10.005 line is rounded up to 10.01 before summing."""
        config = TaxConfiguration(rounding_mode=RoundingMode.LINE)

        result = InvoiceTotalsService.compute(self.items, config)

        self.assertEqual(result.subtotal, Decimal('30.03'))

    def test_total_rounding_rounds_once(self):
        """Test that the raw sum 30.015 is rounded once to 30.02."""
        config = TaxConfiguration(rounding_mode=RoundingMode.TOTAL)

        result = InvoiceTotalsService.compute(self.items, config)

        self.assertEqual(result.subtotal, Decimal('30.02'))

    def test_rounding_modes_diverge(self):
        """Test that the two rounding modes give different totals."""
        by_line = InvoiceTotalsService.compute(self.items, TaxConfiguration(rounding_mode=RoundingMode.LINE))
        by_total = InvoiceTotalsService.compute(self.items, TaxConfiguration(rounding_mode=RoundingMode.TOTAL))

        self.assertNotEqual(by_line.total, by_total.total)

    def test_line_rounding_happens_before_tax_split(self):
        """Test that line tax is calculated from the rounded line amount."""
        items = [LineItem(quantity='3', unit_price='0.335', tax_percent='50')]
        config = TaxConfiguration(mode=TaxMode.LINE, rounding_mode=RoundingMode.LINE)

        result = InvoiceTotalsService.compute(items, config)

        # 1.005 -> 1.01, tax 0.505 -> 0.51
        self.assertEqual(result.subtotal, Decimal('1.01'))
        self.assertEqual(result.tax, Decimal('0.51'))
        self.assertEqual(result.total, Decimal('1.52'))


class InvoiceTotalsInputHandlingTest(SimpleTestCase):
    """Tests for forgiving input parsing and determinism."""

    def test_malformed_numbers_count_as_zero(self):
        """Test that empty and non-numeric quantities and prices become 0."""
        items = [
            LineItem(quantity='', unit_price='10'),
            LineItem(quantity='abc', unit_price='10'),
            LineItem(quantity='2', unit_price=''),
            LineItem(quantity='1', unit_price='5', tax_percent='n/a'),
        ]
        config = TaxConfiguration(mode=TaxMode.LINE)

        result = InvoiceTotalsService.compute(items, config)

        self.assertEqual(result.subtotal, Decimal('5.00'))
        self.assertEqual(result.tax, Decimal('0.00'))
        self.assertEqual(result.total, Decimal('5.00'))

    def test_negative_amounts_propagate(self):
        """Test that negative quantities reduce the totals instead of failing."""
        items = [
            LineItem(quantity='2', unit_price='50'),
            LineItem(quantity='-1', unit_price='30'),
        ]
        config = TaxConfiguration(invoice_tax_rate=Decimal('10'))

        result = InvoiceTotalsService.compute(items, config)

        self.assertEqual(result.subtotal, Decimal('70.00'))
        self.assertEqual(result.tax, Decimal('7.00'))
        self.assertEqual(result.total, Decimal('77.00'))

    def test_huge_amounts_do_not_fail(self):
        """Test that amounts beyond the default decimal precision still round."""
        items = [LineItem(quantity='1e20', unit_price='1e10')]

        result = InvoiceTotalsService.compute(items, TaxConfiguration())

        self.assertEqual(result.subtotal, Decimal('1e30'))
        self.assertEqual(result.total, result.subtotal)

        formatted = InvoiceTotalsService.format(result, currency='USD')
        self.assertTrue(formatted.total.startswith('$1,000,000,000'))
        self.assertTrue(formatted.total.endswith('.00'))

    def test_compute_is_idempotent(self):
        """Test that computing twice with the same inputs gives identical results."""
        items = [
            LineItem(quantity='3', unit_price='33.333', tax_percent='19'),
            LineItem(quantity='1.5', unit_price='9.99', tax_percent='7'),
        ]
        config = TaxConfiguration(mode=TaxMode.LINE, prices_include_tax=True, rounding_mode=RoundingMode.TOTAL)

        first = InvoiceTotalsService.compute(items, config)
        second = InvoiceTotalsService.compute(items, config)

        self.assertEqual(first, second)
        self.assertEqual(str(first.total), str(second.total))

    def test_total_is_sum_of_rounded_parts(self):
        """Test that total always equals rounded subtotal plus rounded tax."""
        items = [LineItem(quantity='7', unit_price='13.37', tax_percent='21')]
        for include_tax in (False, True):
            for rounding in RoundingMode.values:
                config = TaxConfiguration(
                    mode=TaxMode.LINE, prices_include_tax=include_tax, rounding_mode=rounding
                )
                result = InvoiceTotalsService.compute(items, config)
                self.assertEqual(result.total, result.subtotal + result.tax)


class InvoiceTotalsFormatTest(SimpleTestCase):
    """Tests for rendering totals as currency strings."""

    def test_format_comma_style(self):
        """Test that comma style renders US-style grouping."""
        result = TotalsResult(Decimal('1234.56'), Decimal('123.46'), Decimal('1358.02'))

        formatted = InvoiceTotalsService.format(result, currency='USD', number_format='comma')

        self.assertEqual(formatted.subtotal, '$1,234.56')
        self.assertEqual(formatted.tax, '$123.46')
        self.assertEqual(formatted.total, '$1,358.02')
        self.assertTrue(formatted.show_tax)

    def test_format_period_style(self):
        """Test that period style renders European-style grouping."""
        result = TotalsResult(Decimal('1234.56'), Decimal('0.00'), Decimal('1234.56'))

        formatted = InvoiceTotalsService.format(result, currency='EUR', number_format='period')

        self.assertIn('1.234,56', formatted.subtotal)
        self.assertIn('€', formatted.total)

    def test_tax_hidden_below_half_cent(self):
        """Test that a zero tax line is hidden."""
        result = InvoiceTotalsService.compute([LineItem(quantity='1', unit_price='10')], TaxConfiguration())
        self.assertFalse(result.show_tax)
        self.assertFalse(InvoiceTotalsService.format(result).show_tax)

    def test_tax_shown_for_negative_tax(self):
        """Test that a negative tax amount is still shown."""
        result = TotalsResult(Decimal('-10.00'), Decimal('-1.00'), Decimal('-11.00'))
        self.assertTrue(result.show_tax)
