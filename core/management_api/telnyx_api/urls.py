from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import TelnyxSettingsViewSet

# Mounted at /api/telnyx/
router = SimpleRouter()
router.register(r'', TelnyxSettingsViewSet, basename='telnyx')

urlpatterns = [
    path('', include(router.urls)),
]
