from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import orders.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("gallery", "0001_initial"),
        ("events", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=[("pending", "Pending"), ("paid", "Paid"), ("shipped", "Shipped"), ("delivered", "Delivered"), ("cancelled", "Cancelled")], db_index=True, default="pending", max_length=16)),
                ("subtotal", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("total_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("platform_fee_total", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("platform_fee_rate", models.DecimalField(decimal_places=4, default=Decimal("0.20"), max_digits=5)),
                ("shipping_address", models.JSONField(default=orders.models.empty_address)),
                ("payment_id", models.CharField(blank=True, db_index=True, max_length=255)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("refund_reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="orders", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["user", "-created_at"], name="order_user_created_idx")],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_type", models.CharField(choices=[("artwork", "Artwork"), ("ticket", "Ticket")], default="artwork", max_length=16)),
                ("title", models.CharField(max_length=200)),
                ("image", models.URLField(blank=True, max_length=500)),
                ("price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("platform_fee", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("artist_earnings", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("ticket_codes", models.JSONField(blank=True, default=list)),
                ("artist", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sold_items", to=settings.AUTH_USER_MODEL)),
                ("artwork", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="order_items", to="gallery.artwork")),
                ("event", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="order_items", to="events.event")),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="orders.order")),
            ],
        ),
        migrations.CreateModel(
            name="ProcessedEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("provider", models.CharField(max_length=64)),
                ("event_id", models.CharField(max_length=255, unique=True)),
                ("event_type", models.CharField(blank=True, max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="CartItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_type", models.CharField(choices=[("artwork", "Artwork"), ("ticket", "Ticket")], max_length=16)),
                ("quantity", models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ("added_at", models.DateTimeField(auto_now_add=True)),
                ("artwork", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="cart_items", to="gallery.artwork")),
                ("event", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="cart_items", to="events.event")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="cart_items", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["added_at"],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("artwork__isnull", False)), fields=("user", "artwork"), name="unique_cart_artwork_per_user"),
                    models.UniqueConstraint(condition=models.Q(("event__isnull", False)), fields=("user", "event"), name="unique_cart_event_per_user"),
                ],
            },
        ),
    ]
