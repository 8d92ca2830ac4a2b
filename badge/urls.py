# badge/urls.py
from django.urls import path

from .views import CartCountView

urlpatterns = [
    path("count/", CartCountView.as_view(), name="cart_badge_count"),
]
