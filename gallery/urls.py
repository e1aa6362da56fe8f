from django.urls import path

from . import api, video_api

urlpatterns = [
    path("artworks", api.ArtworkListView.as_view(), name="artworks-list"),
    path("artworks/upload-image", api.ArtworkImageUploadView.as_view(), name="artworks-upload-image"),
    path("artworks/artist/stats", api.ArtistStatsView.as_view(), name="artworks-artist-stats"),
    path(
        "artworks/artist/<int:artist_id>",
        api.ArtistArtworksView.as_view(),
        name="artworks-by-artist",
    ),
    path("artworks/<int:artwork_id>", api.ArtworkDetailView.as_view(), name="artworks-detail"),
    path(
        "artworks/<int:artwork_id>/reviews",
        api.ArtworkReviewsView.as_view(),
        name="artworks-reviews",
    ),
    path("reviews/<int:review_id>", api.ReviewDetailView.as_view(), name="reviews-detail"),
]

urlpatterns += [
    path("videos/purchased", video_api.PurchasedVideosView.as_view(), name="videos-purchased"),
    path("videos/<int:artwork_id>/access", video_api.VideoAccessView.as_view(), name="videos-access"),
    path("videos/<int:artwork_id>/stream", video_api.VideoStreamView.as_view(), name="videos-stream"),
    path("videos/<int:artwork_id>/purchase", video_api.VideoPurchaseView.as_view(), name="videos-purchase"),
]
