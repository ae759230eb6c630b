"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

STAFF_ROLES = {"staff", "admin"}
CLINICIAN_ROLES = {"doctor", "staff", "admin"}


def _role(request):
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    return getattr(user, "role", None)


class IsPatientRole(BasePermission):
    """Allow access only to users with the patient role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == "patient"


class IsDoctorRole(BasePermission):
    """Allow access only to doctors."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == "doctor"


class IsStaffRole(BasePermission):
    """Clinical staff; administrators are allowed as well."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) in STAFF_ROLES


class IsAdminRole(BasePermission):
    """Only administrators."""
    def has_permission(self, request, view) -> bool:
        return _role(request) == "admin"


class IsClinician(BasePermission):
    """doctor, staff or admin."""
    def has_permission(self, request, view) -> bool:
        return _role(request) in CLINICIAN_ROLES


class ReadOnly(BasePermission):
    """Allow read‑only access (GET, HEAD, OPTIONS)."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return request.method in SAFE_METHODS
