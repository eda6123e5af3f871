from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import VoicemailViewSet

# Mounted at /api/voicemails/
router = SimpleRouter()
router.register(r'', VoicemailViewSet, basename='voicemail')

urlpatterns = [
    path('', include(router.urls)),
]
