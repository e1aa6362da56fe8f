import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import dashboard.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AdminActivity",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=[("CREATE", "Created"), ("UPDATE", "Updated"), ("DELETE", "Deleted"), ("SUSPEND", "Suspended"), ("UNSUSPEND", "Unsuspended"), ("SETTINGS_UPDATE", "Settings updated")], max_length=20)),
                ("target_type", models.CharField(choices=[("User", "User"), ("Artwork", "Artwork"), ("Event", "Event"), ("Order", "Order"), ("PlatformSettings", "Platform settings")], max_length=20)),
                ("target_id", models.CharField(max_length=64)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.CharField(blank=True, max_length=512)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("admin", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="admin_activities", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Admin activity",
                "verbose_name_plural": "Admin activities",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["admin"], name="adminactivity_admin_idx"),
                    models.Index(fields=["action"], name="adminactivity_action_idx"),
                    models.Index(fields=["-created_at"], name="adminactivity_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PlatformSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(default="global", editable=False, max_length=16, unique=True)),
                ("platform_commission", models.DecimalField(decimal_places=2, default=20, max_digits=5)),
                ("storage", models.JSONField(default=dashboard.models.default_storage)),
                ("subscription_tiers", models.JSONField(default=dashboard.models.default_subscription_tiers)),
                ("features", models.JSONField(default=dashboard.models.default_features)),
                ("rate_limits", models.JSONField(default=dashboard.models.default_rate_limits)),
                ("email", models.JSONField(default=dashboard.models.default_email)),
                ("geolocation", models.JSONField(default=dashboard.models.default_geolocation)),
                ("maintenance", models.JSONField(default=dashboard.models.default_maintenance)),
                ("theme", models.JSONField(blank=True, default=dict)),
                ("hero", models.JSONField(blank=True, default=dict)),
                ("display", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("last_updated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Platform settings",
                "verbose_name_plural": "Platform settings",
            },
        ),
    ]
