from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import CalendarViewSet

# Mounted at /api/calendar/
router = SimpleRouter()
router.register(r'', CalendarViewSet, basename='calendar')

urlpatterns = [
    path('', include(router.urls)),
]
