from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import gallery.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Artwork",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, max_length=2000)),
                ("original_price", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("price", models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0"))])),
                ("is_for_sale", models.BooleanField(db_index=True, default=True)),
                ("category", models.CharField(choices=[("painting", "Painting"), ("sculpture", "Sculpture"), ("photography", "Photography"), ("digital", "Digital"), ("music", "Music"), ("video", "Video"), ("other", "Other")], db_index=True, max_length=20)),
                ("materials_used", models.JSONField(blank=True, default=list)),
                ("colors", models.JSONField(blank=True, default=list)),
                ("dimensions", models.JSONField(blank=True, default=gallery.models.default_dimensions)),
                ("images", models.JSONField(blank=True, default=list)),
                ("total_in_stock", models.PositiveIntegerField(default=1)),
                ("average_rating", models.DecimalField(decimal_places=1, default=0, max_digits=2)),
                ("num_of_reviews", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("artist", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="artworks", to=settings.AUTH_USER_MODEL)),
                ("favorited_by", models.ManyToManyField(blank=True, related_name="favorites", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["artist", "-created_at"], name="artwork_artist_created_idx"),
                    models.Index(fields=["category", "price"], name="artwork_category_price_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Review",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(blank=True, max_length=100)),
                ("comment", models.TextField(max_length=1000)),
                ("rating", models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ("is_verified", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("artwork", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="reviews", to="gallery.artwork")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="reviews", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["-rating"], name="review_rating_idx")],
                "constraints": [models.UniqueConstraint(fields=("user", "artwork"), name="unique_review_per_user_artwork")],
            },
        ),
    ]
