from django.contrib import admin

from .models import Attendance, Event


class AttendanceInline(admin.TabularInline):
    model = Attendance
    extra = 0
    readonly_fields = ("ticket_code", "purchased_at")


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("title", "artist", "category", "start_date_time", "price", "max_capacity", "is_public")
    list_filter = ("category", "is_public")
    search_fields = ("title", "artist__username")
    date_hierarchy = "start_date_time"
    inlines = [AttendanceInline]
