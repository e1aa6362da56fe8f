from django.urls import path

from . import api

urlpatterns = [
    path("platform/settings", api.PlatformSettingsView.as_view(), name="platform-settings"),
    path("platform/maintenance", api.MaintenanceView.as_view(), name="platform-maintenance"),
    path("platform/config", api.PublicConfigView.as_view(), name="platform-config"),
    path("platform/stats", api.PlatformStatsView.as_view(), name="platform-stats"),
    path("platform/activity", api.AdminActivityListView.as_view(), name="platform-activity"),
]
