"""
Permission classes for role-based access control.
"""

from rest_framework import permissions


class HasStoreAccess(permissions.BasePermission):
    """
    Permission class to ensure only active store staff reach the API.
    """

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.has_store_access()


class CanApproveReturns(permissions.BasePermission):
    """
    Permission class restricting return approval and rejection to owners and managers.
    """

    message = "Only store owners and managers can approve or reject returns."

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.can_approve_returns()
