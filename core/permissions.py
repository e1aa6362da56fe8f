from rest_framework import permissions

ADMIN_ROLES = ("admin", "superAdmin")
ARTIST_ROLES = ("artist", "gallerist")


def is_admin_role(role):
    return role in ADMIN_ROLES


def is_admin(user):
    return bool(user and user.is_authenticated and is_admin_role(user.role))


class IsAdmin(permissions.BasePermission):
    message = "Access denied. Admin privileges required."

    def has_permission(self, request, view):
        return is_admin(request.user)


class IsSuperAdmin(permissions.BasePermission):
    message = "Access denied. SuperAdmin privileges required."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role == "superAdmin")


class IsArtist(permissions.BasePermission):
    message = "Access denied. Artist privileges required."

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        return user.role in ARTIST_ROLES or is_admin_role(user.role)


class IsVerifiedArtist(permissions.BasePermission):
    message = "Access denied. Only verified artists can perform this action."

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if is_admin_role(user.role):
            return True
        return user.role in ARTIST_ROLES and user.artist_status == "verified"
