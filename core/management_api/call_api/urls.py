from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import CallViewSet

# Mounted at /api/calls/
router = SimpleRouter()
router.register(r'', CallViewSet, basename='call')

urlpatterns = [
    path('', include(router.urls)),
]
