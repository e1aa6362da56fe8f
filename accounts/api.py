import logging

from django.contrib.auth import get_user_model
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import permissions, status, views
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle

from core import emails
from core.authentication import clear_auth_cookie, issue_token, set_auth_cookie
from core.middleware import CSRF_COOKIE
from core.pagination import apply_sort, paginate, parse_pagination
from core.permissions import IsArtist, is_admin_role
from core.responses import send_data, send_error, send_list, send_message

from .serializers import (
    LoginSerializer,
    ProfileUpdateSerializer,
    PublicArtistSerializer,
    SignupSerializer,
    UserSerializer,
    is_strong_password,
    merge_artist_info,
)

logger = logging.getLogger(__name__)

User = get_user_model()


def current_csrf_token(request):
    return request.COOKIES.get(CSRF_COOKIE) or getattr(request, "csrf_token_issued", None)


class AuthThrottleMixin:
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"


class SignupView(AuthThrottleMixin, views.APIView):
    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        try:
            emails.send_verification_email(user, user.email_verification_token)
        except Exception:
            logger.exception("Failed to send verification email to user %s", user.pk)

        return send_message(
            "Registration successful. Please check your email to verify your address.",
            UserSerializer(user).data,
            status=status.HTTP_201_CREATED,
        )


class LoginView(AuthThrottleMixin, views.APIView):
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data["email"].lower()
        password = serializer.validated_data["password"]

        user = User.objects.filter(email=email).first()
        if user is None or not user.check_password(password):
            return send_error("Invalid email or password.", status.HTTP_401_UNAUTHORIZED)
        if not user.is_email_verified:
            response = send_error(
                "Please verify your email address before logging in.",
                status.HTTP_403_FORBIDDEN,
            )
            response.data.update({"requiresEmailVerification": True, "userId": user.pk})
            return response
        if not user.is_active:
            return send_error("Your account has been suspended.", status.HTTP_403_FORBIDDEN)

        user.last_login = timezone.now()
        user.save(update_fields=["last_login"])
        token = issue_token(user)
        logger.info("User %s logged in", user.pk)

        response = send_data(UserSerializer(user).data)
        response.data.update({"token": token, "csrfToken": current_csrf_token(request)})
        return set_auth_cookie(response, token)


class LogoutView(views.APIView):
    authentication_classes = []

    def post(self, request):
        return clear_auth_cookie(send_message("Logged out successfully."))


class VerifyView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        data = UserSerializer(request.user).data
        data["favorites"] = list(request.user.favorites.values_list("pk", flat=True))
        response = send_data(data)
        response.data["csrfToken"] = current_csrf_token(request)
        return response


class CsrfTokenView(views.APIView):
    authentication_classes = []

    def get(self, request):
        return Response({"csrfToken": current_csrf_token(request)})


class VerifyEmailView(views.APIView):
    authentication_classes = []

    def post(self, request):
        token = request.data.get("token")
        if not token:
            return send_error("Verification token is required.")

        user = User.objects.filter(
            email_verification_token=token,
            email_verification_expires__gt=timezone.now(),
        ).first()
        if user is None:
            return send_error("Invalid or expired verification token.")

        user.is_email_verified = True
        user.email_verification_token = None
        user.email_verification_expires = None
        user.save()

        try:
            emails.send_welcome_email(user)
        except Exception:
            logger.exception("Failed to send welcome email to user %s", user.pk)

        return send_message(
            "Email verified successfully! You can now log in.",
            UserSerializer(user).data,
        )


class ResendVerificationEmailView(AuthThrottleMixin, views.APIView):
    authentication_classes = []

    def post(self, request):
        email = (request.data.get("email") or "").strip().lower()
        if not email:
            return send_error("Email is required.")
        user = User.objects.filter(email=email).first()
        if user is None:
            return send_error("User not found.", status.HTTP_404_NOT_FOUND)
        if user.is_email_verified:
            return send_error("Email is already verified.")

        token = user.issue_email_verification_token()
        user.save()
        try:
            emails.send_verification_email(user, token)
        except Exception:
            logger.exception("Failed to resend verification email to user %s", user.pk)
            return send_error(
                "Failed to send verification email. Please try again.",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return send_message("Verification email sent. Please check your inbox.")


class ForgotPasswordView(AuthThrottleMixin, views.APIView):
    authentication_classes = []

    def post(self, request):
        email = (request.data.get("email") or "").strip().lower()
        if not email:
            return send_error("Email is required.")
        user = User.objects.filter(email=email).first()
        if user is None:
            return send_error("User not found.", status.HTTP_404_NOT_FOUND)

        token = user.issue_password_reset_token()
        user.save()
        try:
            emails.send_password_reset_email(user, token)
        except Exception:
            logger.exception("Failed to send reset email to user %s", user.pk)
            return send_error("Failed to send email.", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return send_message("Password reset email sent.")


class ResetPasswordView(AuthThrottleMixin, views.APIView):
    authentication_classes = []

    def post(self, request):
        token = request.data.get("token")
        password = request.data.get("password")
        if not token or not password:
            return send_error("Missing credentials.")
        if not is_strong_password(password):
            return send_error("Password does not meet complexity requirements.")

        user = User.objects.filter(
            reset_password_token=token,
            reset_password_expires__gt=timezone.now(),
        ).first()
        if user is None:
            return send_error("Invalid token.")

        user.set_password(password)
        user.reset_password_token = None
        user.reset_password_expires = None
        user.save()
        return send_message("Password reset successfully. You can now login.")


class ApplyArtistView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        user = request.user
        if user.artist_status not in (User.ARTIST_NONE, User.ARTIST_INCOMPLETE):
            return send_error(
                f"You already have an artist application with status: {user.artist_status}"
            )
        if not request.data.get("companyName"):
            return send_error("Company/Artist name is required.")

        info = merge_artist_info({}, request.data)
        info.setdefault("type", "individual")
        user.role = User.ROLE_ARTIST
        user.artist_status = User.ARTIST_PENDING
        user.artist_info = info
        if request.data.get("profilePicture"):
            user.profile_picture = request.data["profilePicture"]
        user.save()

        try:
            emails.send_artist_application_email(user)
        except Exception:
            logger.exception("Failed to send artist application email to user %s", user.pk)

        return send_message(
            "Artist application submitted successfully. Awaiting verification.",
            UserSerializer(user).data,
        )


class UpdateArtistInfoView(views.APIView):
    permission_classes = [IsArtist]

    def patch(self, request):
        user = request.user
        user.artist_info = merge_artist_info(user.artist_info, request.data)
        user.save(update_fields=["artist_info", "updated_at"])
        return send_message("Artist information updated.", UserSerializer(user).data)


class ProfileView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return send_data(UserSerializer(request.user).data)

    def patch(self, request):
        serializer = ProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return send_message("Profile updated.", UserSerializer(user).data)


class FavoritesView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        from gallery.serializers import ArtworkSerializer

        artworks = request.user.favorites.select_related("artist")
        return send_data(ArtworkSerializer(artworks, many=True, context={"request": request}).data)


class FavoriteDetailView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def _artwork(self, artwork_id):
        from gallery.models import Artwork

        return get_object_or_404(Artwork, pk=artwork_id)

    def post(self, request, artwork_id):
        request.user.favorites.add(self._artwork(artwork_id))
        return send_message(
            "Added to favorites.",
            list(request.user.favorites.values_list("pk", flat=True)),
        )

    def delete(self, request, artwork_id):
        request.user.favorites.remove(self._artwork(artwork_id))
        return send_message(
            "Removed from favorites.",
            list(request.user.favorites.values_list("pk", flat=True)),
        )


ARTIST_SORT_FIELDS = {
    "createdAt": "created_at",
    "userName": "username",
    "lastName": "last_name",
}


def verified_artists():
    return User.objects.filter(
        role__in=(User.ROLE_ARTIST, User.ROLE_GALLERIST),
        artist_status=User.ARTIST_VERIFIED,
        is_active=True,
    )


class ArtistListView(views.APIView):
    def get(self, request):
        params = parse_pagination(request.query_params)
        qs = verified_artists()
        search = request.query_params.get("search")
        if search:
            qs = qs.filter(
                Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(username__icontains=search)
                | Q(artist_info__companyName__icontains=search)
            )
        qs = apply_sort(qs, params.sort, ARTIST_SORT_FIELDS)
        items, pagination = paginate(qs, params)
        return send_list(PublicArtistSerializer(items, many=True).data, pagination)


class ArtistDetailView(views.APIView):
    def get(self, request, user_id):
        artist = verified_artists().filter(pk=user_id).first()
        if artist is None:
            viewer = request.user
            if viewer.is_authenticated and (viewer.pk == user_id or is_admin_role(viewer.role)):
                artist = get_object_or_404(User, pk=user_id)
            else:
                return send_error("Artist not found.", status.HTTP_404_NOT_FOUND)
        return send_data(PublicArtistSerializer(artist).data)
