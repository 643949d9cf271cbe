from django.urls import include, path

urlpatterns = [
    path("api/orders/", include("apps.service_orders.urls")),
]
