from django.urls import path
from . import views

app_name = 'invoicing'

urlpatterns = [
    path('totals/', views.invoice_totals_preview, name='totals_preview'),
]
