"""
URL configuration for sales app.
"""

from django.urls import path

from . import views

app_name = "sales"

urlpatterns = [
    path("api/sales/", views.SaleListView.as_view(), name="sale_list"),
    path("api/sales/create/", views.create_sale, name="sale_create"),
    path("api/sales/<uuid:id>/", views.SaleDetailView.as_view(), name="sale_detail"),
]
