from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("gallery", "0001_initial"),
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="artwork",
            name="video",
            field=models.JSONField(blank=True, default=dict),
        ),
        migrations.CreateModel(
            name="VideoPurchase",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("price_paid", models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("payment_id", models.CharField(blank=True, max_length=255)),
                ("purchase_type", models.CharField(choices=[("instant", "Instant"), ("order", "Order")], default="instant", max_length=16)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("artwork", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="video_purchases", to="gallery.artwork")),
                ("order", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="video_purchases", to="orders.order")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="video_purchases", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "-created_at"], name="videopurchase_user_idx"),
                    models.Index(fields=["artwork", "-created_at"], name="videopurchase_artwork_idx"),
                ],
                "constraints": [models.UniqueConstraint(fields=("user", "artwork"), name="unique_video_purchase_per_user")],
            },
        ),
    ]
