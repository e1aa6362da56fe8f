from django.contrib import admin
from django.urls import include, path
from django.utils import timezone
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.renderers import JSONOpenAPIRenderer
from rest_framework.response import Response
from rest_framework.schemas import get_schema_view

from accounts.urls import auth_urlpatterns

from . import __version__

ENDPOINTS = {
    "auth": "/auth",
    "users": "/api/users",
    "artworks": "/api/artworks",
    "reviews": "/api/reviews",
    "videos": "/api/videos",
    "events": "/api/events",
    "cart": "/api/cart",
    "orders": "/api/orders",
    "payments": "/api/payments",
    "conversations": "/api/conversations",
    "platform": "/api/platform",
}


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    return Response({
        "status": "online",
        "message": "Nemesis API is running",
        "version": __version__,
        "documentation": "/api-docs/schema.json",
        "endpoints": ENDPOINTS,
        "timestamp": timezone.now().isoformat(),
    })


schema_view = get_schema_view(
    title="Nemesis API",
    version=__version__,
    renderer_classes=[JSONOpenAPIRenderer],
    authentication_classes=[],
    permission_classes=[AllowAny],
)

api_urlpatterns = [
    path("", include("accounts.urls")),
    path("", include("gallery.urls")),
    path("", include("events.urls")),
    path("", include("orders.urls")),
    path("", include("dashboard.urls")),
    path("", include("messaging.urls")),
]

urlpatterns = [
    path("", health, name="health"),
    path("auth/", include(auth_urlpatterns)),
    path("api/", include(api_urlpatterns)),
    path("api-docs/schema.json", schema_view, name="openapi-schema"),
    path("admin/", admin.site.urls),
]

handler404 = "core.exceptions.handler404"
handler500 = "core.exceptions.handler500"
