from django import forms

from apps.core.money_utils import parse_decimal
from .services import LineItem, RoundingMode, TaxConfiguration, TaxMode


INVOICE_STATUS_CHOICES = [
    ('draft', 'Draft'),
    ('sent', 'Sent'),
    ('paid', 'Paid'),
    ('overdue', 'Overdue'),
]

PRICES_INCLUDE_TAX_CHOICES = [
    ('false', 'Prices exclude tax'),
    ('true', 'Prices include tax'),
]


class LineItemForm(forms.Form):
    """
    One row of the invoice editor.

    Numeric inputs are plain text fields: the editor keeps whatever the user
    typed and unparseable values count as 0 instead of failing validation.
    """
    description = forms.CharField(required=False, widget=forms.TextInput(attrs={'class': 'form-control'}))
    quantity = forms.CharField(
        required=False,
        initial='1',
        widget=forms.TextInput(attrs={'class': 'form-control', 'inputmode': 'decimal'})
    )
    unit_price = forms.CharField(
        required=False,
        initial='0',
        widget=forms.TextInput(attrs={'class': 'form-control', 'inputmode': 'decimal'})
    )
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))
    tax_percent = forms.CharField(
        required=False,
        widget=forms.TextInput(attrs={'class': 'form-control', 'inputmode': 'decimal'})
    )
    tax_definition_id = forms.CharField(required=False, widget=forms.HiddenInput)

    def to_line_item(self, blank_quantity='1'):
        """
        Convert the cleaned row into a LineItem.

        Args:
            blank_quantity: Quantity used when the field was left empty.
                Submission treats an empty quantity as 1, the live preview as 0.
        """
        data = self.cleaned_data
        return LineItem(
            description=data.get('description', ''),
            quantity=data.get('quantity') or blank_quantity,
            unit_price=data.get('unit_price') or '0',
            tax_percent=data.get('tax_percent') or '0',
            notes=data.get('notes', ''),
            tax_definition_id=(data.get('tax_definition_id') or '').strip(),
        )


LineItemFormSet = forms.formset_factory(LineItemForm, extra=0)


def build_line_items(formset, blank_quantity='1', skip_blank=True):
    """
    Collect LineItems from a bound LineItemFormSet in display order.

    Rows that failed validation are left out.

    Args:
        formset: A bound LineItemFormSet
        blank_quantity: Quantity used for rows with an empty quantity
        skip_blank: Skip rows without a description

    Returns:
        list[LineItem]
    """
    items = []
    for form in formset.forms:
        if not form.is_valid():
            continue
        if not form.cleaned_data:
            if skip_blank:
                continue
            items.append(LineItem(quantity=blank_quantity))
            continue
        item = form.to_line_item(blank_quantity=blank_quantity)
        if skip_blank and not item.description.strip():
            continue
        items.append(item)
    return items


class InvoiceEditorForm(forms.Form):
    """Invoice-level fields of the invoice editor."""

    customer_id = forms.CharField(required=False, widget=forms.HiddenInput)
    invoice_number = forms.CharField(
        required=False,
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'Optional'})
    )
    currency = forms.CharField(required=False, max_length=3, widget=forms.TextInput(attrs={'class': 'form-control'}))
    status = forms.ChoiceField(
        choices=INVOICE_STATUS_CHOICES,
        required=False,
        initial='draft',
        widget=forms.Select(attrs={'class': 'form-control'})
    )
    issue_date = forms.DateField(
        required=False,
        widget=forms.DateInput(attrs={'type': 'date', 'class': 'form-control'})
    )
    due_date = forms.DateField(
        required=False,
        widget=forms.DateInput(attrs={'type': 'date', 'class': 'form-control'})
    )
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 3}))
    payment_terms = forms.CharField(required=False, widget=forms.TextInput(attrs={'class': 'form-control'}))
    tax_mode = forms.ChoiceField(
        choices=TaxMode.choices,
        required=False,
        initial=TaxMode.INVOICE,
        widget=forms.Select(attrs={'class': 'form-control'})
    )
    tax_rate = forms.CharField(
        required=False,
        initial='0',
        widget=forms.TextInput(attrs={'class': 'form-control', 'inputmode': 'decimal'}),
        help_text='Invoice tax rate in percent (e.g., 20 for 20%)'
    )
    tax_definition_id = forms.CharField(required=False, widget=forms.HiddenInput)
    prices_include_tax = forms.ChoiceField(
        choices=PRICES_INCLUDE_TAX_CHOICES,
        required=False,
        initial='false',
        widget=forms.Select(attrs={'class': 'form-control'})
    )
    rounding_mode = forms.ChoiceField(
        choices=RoundingMode.choices,
        required=False,
        initial=RoundingMode.LINE,
        widget=forms.Select(attrs={'class': 'form-control'})
    )

    def __init__(self, *args, **kwargs):
        defaults = kwargs.pop('defaults', None)
        super().__init__(*args, **kwargs)

        # Prefill from the backend settings when creating an invoice
        if defaults is not None:
            self.fields['currency'].initial = defaults.currency
            self.fields['payment_terms'].initial = defaults.payment_terms
            self.fields['notes'].initial = defaults.default_notes
            self.fields['tax_rate'].initial = str(defaults.tax.invoice_tax_rate)
            self.fields['prices_include_tax'].initial = 'true' if defaults.tax.prices_include_tax else 'false'
            self.fields['rounding_mode'].initial = defaults.tax.rounding_mode

    def clean_tax_rate(self):
        return str(parse_decimal(self.cleaned_data.get('tax_rate')))

    def tax_configuration(self):
        """Return the TaxConfiguration selected in the form."""
        data = self.cleaned_data
        return TaxConfiguration.from_values(
            tax_mode=data.get('tax_mode'),
            prices_include_tax=data.get('prices_include_tax'),
            rounding_mode=data.get('rounding_mode'),
            tax_rate=data.get('tax_rate'),
        )
