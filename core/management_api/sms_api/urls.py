from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import SmsMessageViewSet

# Mounted at /api/sms/
router = SimpleRouter()
router.register(r'', SmsMessageViewSet, basename='sms')

urlpatterns = [
    path('', include(router.urls)),
]
