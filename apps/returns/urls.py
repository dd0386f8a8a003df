"""
URL configuration for returns app.
"""

from django.urls import path

from . import views

app_name = "returns"

urlpatterns = [
    path("api/returns/", views.return_list_create, name="return_list"),
    path("api/returns/stats/", views.return_stats, name="return_stats"),
    path("api/returns/lookup-sale/", views.lookup_sale, name="lookup_sale"),
    path("api/returns/exchange-products/", views.exchange_products, name="exchange_products"),
    path("api/returns/<uuid:return_id>/", views.return_detail, name="return_detail"),
    path("api/returns/<uuid:return_id>/approve/", views.approve_return, name="return_approve"),
    path("api/returns/<uuid:return_id>/reject/", views.reject_return, name="return_reject"),
]
