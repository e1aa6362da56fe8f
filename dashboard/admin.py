from django.contrib import admin

from .models import AdminActivity, PlatformSettings


@admin.register(AdminActivity)
class AdminActivityAdmin(admin.ModelAdmin):
    list_display = ("created_at", "admin", "action", "target_type", "target_id", "ip_address")
    list_filter = ("action", "target_type")
    search_fields = ("target_id", "admin__username", "admin__email")
    readonly_fields = [f.name for f in AdminActivity._meta.fields]

    # Audit trail is append-only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PlatformSettings)
class PlatformSettingsAdmin(admin.ModelAdmin):
    list_display = ("key", "platform_commission", "last_updated_by", "updated_at")

    def has_add_permission(self, request):
        return not PlatformSettings.objects.exists()
