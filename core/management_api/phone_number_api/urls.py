from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import PhoneNumberViewSet

# Mounted at /api/phone-numbers/
router = SimpleRouter()
router.register(r'', PhoneNumberViewSet, basename='phone-number')

urlpatterns = [
    path('', include(router.urls)),
]
