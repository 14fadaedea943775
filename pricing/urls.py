from django.urls import path

from .views import MarginCheckView

urlpatterns = [
    path("margin-check/", MarginCheckView.as_view(), name="pricing-margin-check"),
]
