from django.urls import path
from .views import OrdersPingView, OrderQuoteView, DashboardView
from .views import OrdersCollectionView, OrderDetailView, OrderStatusView
app_name = "service_orders"

urlpatterns = [
    path("ping/", OrdersPingView.as_view(), name="ping"),
    path("quote/", OrderQuoteView.as_view(), name="orders-quote"),
    path("dashboard/", DashboardView.as_view(), name="orders-dashboard"),
    path("", OrdersCollectionView.as_view(), name="orders-collection"),  # GET list / POST create
    path("<str:oid>/", OrderDetailView.as_view(), name="orders-detail"),
    path("<str:oid>/status/", OrderStatusView.as_view(), name="orders-status"),
]
