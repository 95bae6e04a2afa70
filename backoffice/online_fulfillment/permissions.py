"""
Custom permissions for Online Order Fulfillment module.
"""

from rest_framework.permissions import BasePermission

DISPATCH_GROUPS = ['dispatch_staff', 'pos_manager']


class IsDispatchStaff(BasePermission):
    """
    Permission that allows access only to store dispatch staff.

    Checks if user is staff or belongs to one of the dispatch groups.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        if user.is_staff:
            return True

        return user.groups.filter(name__in=DISPATCH_GROUPS).exists()


class CanManageOrders(BasePermission):
    """
    Permission for cancelling and rejecting orders.

    Restricted to staff users and point-of-sale managers.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        return user.is_staff or user.groups.filter(name='pos_manager').exists()
