from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = ("username", "email", "role", "artist_status", "is_email_verified", "is_active", "created_at")
    list_filter = ("role", "artist_status", "is_email_verified", "is_active")
    search_fields = ("username", "email", "first_name", "last_name")
    ordering = ("-created_at",)
    fieldsets = DjangoUserAdmin.fieldsets + (
        ("Marketplace", {"fields": ("role", "artist_status", "artist_info", "profile_picture", "is_email_verified")}),
    )
    actions = ["verify_artists"]

    @admin.action(description="Verify selected artist applications")
    def verify_artists(self, request, queryset):
        updated = queryset.filter(artist_status=User.ARTIST_PENDING).update(
            artist_status=User.ARTIST_VERIFIED
        )
        self.message_user(request, f"Verified {updated} artists")
