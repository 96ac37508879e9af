import logging

from django.http import JsonResponse
from django.views.decorators.http import require_POST

from apps.core.money_utils import get_number_format
from .forms import InvoiceEditorForm, LineItemFormSet, build_line_items
from .services import InvoiceTotalsService

logger = logging.getLogger(__name__)


@require_POST
def invoice_totals_preview(request):
    """
    Recalculate the invoice editor totals from the posted form state.

    Called by the editor on every line item or tax setting change. Malformed
    numbers count as 0, so the preview always renders.
    """
    form = InvoiceEditorForm(request.POST)
    formset = LineItemFormSet(request.POST, prefix='items')

    if not form.is_valid():
        logger.debug("Invoice totals preview with invalid fields: %s", form.errors.as_json())
    config = form.tax_configuration()

    if not formset.is_valid():
        logger.debug("Invoice totals preview skipping invalid rows: %s", formset.errors)
    items = build_line_items(formset, blank_quantity='0', skip_blank=False)

    result = InvoiceTotalsService.compute(items, config)
    number_format = get_number_format({'numberFormat': request.POST.get('number_format')})
    formatted = InvoiceTotalsService.format(
        result,
        currency=form.cleaned_data.get('currency') or 'USD',
        number_format=number_format,
    )

    return JsonResponse({
        'subtotal': formatted.subtotal,
        'tax': formatted.tax,
        'total': formatted.total,
        'show_tax': formatted.show_tax,
        'raw': {
            'subtotal': str(result.subtotal),
            'tax': str(result.tax),
            'total': str(result.total),
        },
    })
