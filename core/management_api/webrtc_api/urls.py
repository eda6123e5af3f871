from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import WebRTCViewSet

# Mounted at /api/webrtc/
router = SimpleRouter()
router.register(r'', WebRTCViewSet, basename='webrtc')

urlpatterns = [
    path('', include(router.urls)),
]
