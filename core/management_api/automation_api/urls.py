from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import SmsTemplateViewSet, SmsAutomationViewSet

# Create router and register viewsets
router = DefaultRouter()
router.register(r'templates', SmsTemplateViewSet, basename='smstemplate')
router.register(r'rules', SmsAutomationViewSet, basename='smsautomation')

urlpatterns = [
    path('', include(router.urls)),
]
