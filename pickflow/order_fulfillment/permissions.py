"""
Custom permissions for the Order Fulfillment module.
"""

from rest_framework.permissions import BasePermission


class IsWarehouseStaff(BasePermission):
    """
    Permission that allows access only to warehouse staff users.

    Checks if user is staff or belongs to 'warehouse_staff' group.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        if user.is_staff:
            return True

        return user.groups.filter(name='warehouse_staff').exists()


class CanApproveOrders(BasePermission):
    """
    Permission for approving orders and forcing them to fulfilled.

    Restricted to warehouse managers or supervisors.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        return (
            user.is_staff or
            user.groups.filter(name__in=['warehouse_manager', 'order_supervisor']).exists()
        )


class CanManageDispatches(BasePermission):
    """
    Permission for ERP delivery notes and the reset operations.

    Restricted to warehouse managers and dispatch clerks.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        return (
            user.is_staff or
            user.groups.filter(name__in=['warehouse_manager', 'dispatch_clerk']).exists()
        )
