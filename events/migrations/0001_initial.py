from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import events.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, max_length=2000)),
                ("start_date_time", models.DateTimeField(db_index=True)),
                ("end_date_time", models.DateTimeField()),
                ("location", models.JSONField(blank=True, default=events.models.default_location)),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("max_capacity", models.PositiveIntegerField(default=0)),
                ("category", models.CharField(choices=[("exhibition", "Exhibition"), ("concert", "Concert"), ("workshop", "Workshop"), ("meetup", "Meetup"), ("other", "Other")], max_length=20)),
                ("image", models.URLField(blank=True, max_length=500)),
                ("is_public", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("artist", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="events", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["start_date_time"],
                "indexes": [
                    models.Index(fields=["artist", "start_date_time"], name="event_artist_start_idx"),
                    models.Index(fields=["category", "start_date_time"], name="event_category_start_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Attendance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=[("pending", "Pending"), ("confirmed", "Confirmed"), ("cancelled", "Cancelled")], default="confirmed", max_length=16)),
                ("ticket_code", models.CharField(max_length=32, unique=True)),
                ("purchased_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("event", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="attendances", to="events.event")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="attendances", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["purchased_at"],
            },
        ),
    ]
