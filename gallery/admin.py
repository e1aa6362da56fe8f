from django.contrib import admin
from .models import Artwork, Review, VideoPurchase


class ReviewInline(admin.TabularInline):
	model = Review
	extra = 0
	readonly_fields = ("user", "rating", "is_verified", "created_at")


@admin.register(Artwork)
class ArtworkAdmin(admin.ModelAdmin):
	list_display = ("title", "artist", "category", "price", "total_in_stock", "is_for_sale", "average_rating")
	list_filter = ("category", "is_for_sale")
	search_fields = ("title", "artist__username", "artist__email")
	list_editable = ("total_in_stock", "is_for_sale")
	inlines = [ReviewInline]


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
	list_display = ("artwork", "user", "rating", "is_verified", "created_at")
	list_filter = ("rating", "is_verified")


@admin.register(VideoPurchase)
class VideoPurchaseAdmin(admin.ModelAdmin):
	list_display = ("artwork", "user", "price_paid", "purchase_type", "created_at")
	list_filter = ("purchase_type",)
	search_fields = ("artwork__title", "user__username", "payment_id")
