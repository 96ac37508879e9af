"""
URL configuration for invio project.

Only the invoice editor's totals preview is served here; the remaining
pages talk to the backend API directly.
"""
from django.urls import path, include

urlpatterns = [
    path('invoices/', include('apps.invoicing.urls')),
]
