import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import ProtectedError, Q
from django.shortcuts import get_object_or_404
from rest_framework import status, views

from core import emails
from core.pagination import apply_sort, paginate, parse_pagination
from core.permissions import IsAdmin
from core.responses import send_data, send_error, send_list, send_message
from dashboard.activity import log_admin_action
from dashboard.models import AdminActivity

from .serializers import AdminUserUpdateSerializer, UserSerializer

logger = logging.getLogger(__name__)

User = get_user_model()

USER_SORT_FIELDS = {
    "createdAt": "created_at",
    "userName": "username",
    "email": "email",
    "lastName": "last_name",
    "role": "role",
}


def hierarchy_error(actor, target, deleting=False):
    """Return why ``actor`` may not manage ``target``, or None."""
    if deleting and actor.pk == target.pk:
        return "You cannot delete your own account."
    if actor.pk == target.pk:
        return None
    if actor.role == User.ROLE_ADMIN and target.is_admin:
        return "Admins cannot modify other admins."
    if actor.role == User.ROLE_SUPER_ADMIN and target.role == User.ROLE_SUPER_ADMIN:
        return "SuperAdmins cannot modify other superAdmins."
    return None


class UserAdminMixin:
    permission_classes = [IsAdmin]

    def get_target(self, user_id):
        return get_object_or_404(User, pk=user_id)


class UserListView(UserAdminMixin, views.APIView):
    def get(self, request):
        params = parse_pagination(request.query_params, {"limit": 20})
        qs = User.objects.all()
        role = request.query_params.get("role")
        if role:
            qs = qs.filter(role=role)
        artist_status = request.query_params.get("artistStatus")
        if artist_status:
            qs = qs.filter(artist_status=artist_status)
        search = request.query_params.get("search")
        if search:
            qs = qs.filter(
                Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(username__icontains=search)
                | Q(email__icontains=search)
            )
        qs = apply_sort(qs, params.sort, USER_SORT_FIELDS)
        items, pagination = paginate(qs, params)
        return send_list(UserSerializer(items, many=True).data, pagination)


class UserDetailView(UserAdminMixin, views.APIView):
    def get(self, request, user_id):
        return send_data(UserSerializer(self.get_target(user_id)).data)

    def patch(self, request, user_id):
        target = self.get_target(user_id)
        error = hierarchy_error(request.user, target)
        if error:
            return send_error(error, status.HTTP_403_FORBIDDEN)

        serializer = AdminUserUpdateSerializer(target, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            user = serializer.save()
            log_admin_action(
                request.user,
                AdminActivity.ACTION_UPDATE,
                AdminActivity.TARGET_USER,
                user.pk,
                details={"changes": sorted(request.data.keys())},
                request=request,
            )
        return send_message("User updated.", UserSerializer(user).data)

    def delete(self, request, user_id):
        target = self.get_target(user_id)
        error = hierarchy_error(request.user, target, deleting=True)
        if error:
            return send_error(error, status.HTTP_403_FORBIDDEN)
        if target.role == User.ROLE_SUPER_ADMIN:
            return send_error("SuperAdmin accounts cannot be deleted.", status.HTTP_403_FORBIDDEN)

        details = {"email": target.email, "userName": target.username, "role": target.role}
        target_id = target.pk
        try:
            with transaction.atomic():
                target.delete()
                log_admin_action(
                    request.user,
                    AdminActivity.ACTION_DELETE,
                    AdminActivity.TARGET_USER,
                    target_id,
                    details=details,
                    request=request,
                )
        except ProtectedError:
            return send_error(
                "This account has admin activity on record and cannot be deleted. Suspend it instead.",
                status.HTTP_409_CONFLICT,
            )
        return send_message("User deleted.")


class ArtistStatusView(UserAdminMixin, views.APIView):
    def patch(self, request, user_id):
        target = self.get_target(user_id)
        new_status = request.data.get("artistStatus")
        if new_status not in dict(User.ARTIST_STATUS_CHOICES):
            return send_error("Invalid artist status.")
        error = hierarchy_error(request.user, target)
        if error:
            return send_error(error, status.HTTP_403_FORBIDDEN)

        previous = target.artist_status
        target.artist_status = new_status
        if not target.is_admin:
            if new_status == User.ARTIST_VERIFIED and target.role != User.ROLE_GALLERIST:
                target.role = User.ROLE_ARTIST
            elif new_status == User.ARTIST_NONE:
                target.role = User.ROLE_USER

        with transaction.atomic():
            target.save()
            log_admin_action(
                request.user,
                AdminActivity.ACTION_UPDATE,
                AdminActivity.TARGET_USER,
                target.pk,
                details={"artistStatus": {"from": previous, "to": new_status}},
                request=request,
            )

        if previous != new_status:
            try:
                emails.send_artist_status_email(target, new_status)
            except Exception:
                logger.exception("Failed to send artist status email to user %s", target.pk)

        return send_message(f"Artist status updated to {new_status}.", UserSerializer(target).data)


class RoleView(UserAdminMixin, views.APIView):
    def patch(self, request, user_id):
        target = self.get_target(user_id)
        new_role = request.data.get("role")
        if new_role not in dict(User.ROLE_CHOICES):
            return send_error("Invalid role.")
        if new_role in (User.ROLE_ADMIN, User.ROLE_SUPER_ADMIN) and request.user.role != User.ROLE_SUPER_ADMIN:
            return send_error("Only superAdmins can grant admin privileges.", status.HTTP_403_FORBIDDEN)
        error = hierarchy_error(request.user, target)
        if error:
            return send_error(error, status.HTTP_403_FORBIDDEN)

        previous = target.role
        target.role = new_role
        with transaction.atomic():
            target.save()
            log_admin_action(
                request.user,
                AdminActivity.ACTION_UPDATE,
                AdminActivity.TARGET_USER,
                target.pk,
                details={"role": {"from": previous, "to": new_role}},
                request=request,
            )
        return send_message(f"Role updated to {new_role}.", UserSerializer(target).data)


class SuspendView(UserAdminMixin, views.APIView):
    suspend = True

    def post(self, request, user_id):
        target = self.get_target(user_id)
        if self.suspend and target.pk == request.user.pk:
            return send_error("You cannot suspend your own account.", status.HTTP_403_FORBIDDEN)
        error = hierarchy_error(request.user, target)
        if error:
            return send_error(error, status.HTTP_403_FORBIDDEN)

        target.is_active = not self.suspend
        with transaction.atomic():
            target.save(update_fields=["is_active", "updated_at"])
            log_admin_action(
                request.user,
                AdminActivity.ACTION_SUSPEND if self.suspend else AdminActivity.ACTION_UNSUSPEND,
                AdminActivity.TARGET_USER,
                target.pk,
                details={"reason": request.data.get("reason", "")},
                request=request,
            )
        message = "User suspended." if self.suspend else "User reactivated."
        return send_message(message, UserSerializer(target).data)


class UnsuspendView(SuspendView):
    suspend = False
