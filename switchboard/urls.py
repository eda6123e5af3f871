"""
URL configuration for project.
"""

from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularSwaggerView,
    SpectacularRedocView,
)
from rest_framework.authtoken.views import obtain_auth_token
from rest_framework.permissions import AllowAny
from .health import health_check


class PublicSpectacularAPIView(SpectacularAPIView):
    permission_classes = [AllowAny]


class PublicSpectacularSwaggerView(SpectacularSwaggerView):
    permission_classes = [AllowAny]


class PublicSpectacularRedocView(SpectacularRedocView):
    permission_classes = [AllowAny]


@csrf_exempt
def api_root(request):
    """API root endpoint that lists available API endpoints"""
    return JsonResponse(
        {
            "message": "Switchboard API v1",
            "endpoints": {
                "auth-token": "/api/auth/token/",
                "users": "/api/users/",
                "calls": "/api/calls/",
                "sms": "/api/sms/",
                "voicemails": "/api/voicemails/",
                "automations": "/api/automations/",
                "calendar": "/api/calendar/",
                "phone-numbers": "/api/phone-numbers/",
                "telnyx": "/api/telnyx/",
                "webrtc": "/api/webrtc/",
                "webhooks": "/api/webhooks/",
                "docs": "/api/docs/",
                "schema": "/api/schema/",
            },
        }
    )


def api(prefix, package):
    return path(
        f"api/{prefix}/",
        include((f"core.management_api.{package}.urls", package), namespace=package),
    )


urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/", api_root, name="api-root"),
    path("api/schema/", PublicSpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", PublicSpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/redoc/", PublicSpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("api/auth/token/", obtain_auth_token, name="api-token"),
    api("users", "user_api"),
    api("calls", "call_api"),
    api("sms", "sms_api"),
    api("voicemails", "voicemail_api"),
    api("automations", "automation_api"),
    api("calendar", "calendar_api"),
    api("phone-numbers", "phone_number_api"),
    api("telnyx", "telnyx_api"),
    api("webrtc", "webrtc_api"),
    api("webhooks", "webhook_api"),
]
