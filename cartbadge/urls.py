# cartbadge/urls.py
from django.urls import path, include

urlpatterns = [
    path("", include("core.urls")),          # <- home at "/"

    # API (JSON endpoints live under /api/)
    path("api/cart-badge/", include("badge.urls")),
]

handler404 = 'core.views.error_404'
handler500 = 'core.views.error_500'
