from django.urls import path

from . import admin_api, api

auth_urlpatterns = [
    path("signup", api.SignupView.as_view(), name="auth-signup"),
    path("login", api.LoginView.as_view(), name="auth-login"),
    path("logout", api.LogoutView.as_view(), name="auth-logout"),
    path("verify", api.VerifyView.as_view(), name="auth-verify"),
    path("csrf-token", api.CsrfTokenView.as_view(), name="auth-csrf-token"),
    path("verify-email", api.VerifyEmailView.as_view(), name="auth-verify-email"),
    path(
        "resend-verification-email",
        api.ResendVerificationEmailView.as_view(),
        name="auth-resend-verification-email",
    ),
    path("forgot-password", api.ForgotPasswordView.as_view(), name="auth-forgot-password"),
    path("reset-password", api.ResetPasswordView.as_view(), name="auth-reset-password"),
    path("apply-artist", api.ApplyArtistView.as_view(), name="auth-apply-artist"),
    path(
        "update-artist-info",
        api.UpdateArtistInfoView.as_view(),
        name="auth-update-artist-info",
    ),
]

urlpatterns = [
    path("users", admin_api.UserListView.as_view(), name="users-list"),
    path("users/profile", api.ProfileView.as_view(), name="users-profile"),
    path("users/favorites", api.FavoritesView.as_view(), name="users-favorites"),
    path(
        "users/favorites/<int:artwork_id>",
        api.FavoriteDetailView.as_view(),
        name="users-favorite-detail",
    ),
    path("users/artists/all", api.ArtistListView.as_view(), name="users-artists"),
    path("users/artist/<int:user_id>", api.ArtistDetailView.as_view(), name="users-artist-detail"),
    path("users/<int:user_id>", admin_api.UserDetailView.as_view(), name="users-detail"),
    path(
        "users/<int:user_id>/artist-status",
        admin_api.ArtistStatusView.as_view(),
        name="users-artist-status",
    ),
    path("users/<int:user_id>/role", admin_api.RoleView.as_view(), name="users-role"),
    path("users/<int:user_id>/suspend", admin_api.SuspendView.as_view(), name="users-suspend"),
    path("users/<int:user_id>/unsuspend", admin_api.UnsuspendView.as_view(), name="users-unsuspend"),
]
