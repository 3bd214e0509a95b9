"""
Custom permission classes for the fees app.

Calculations are open to any authenticated user; reviewing transactions
and changing partial payment settings are admin operations.
"""
from rest_framework.permissions import BasePermission


class IsPaymentAdmin(BasePermission):
    """
    Permission gating the write actions of the payment engine.

    Denies non-staff users when the request:
    - reviews a transaction (``admin_partial_approval``)
    - changes a partial payment toggle (``partial_config`` with
      ``allowPartialPayments`` set)

    Usage:
        @permission_classes([IsAuthenticated, IsPaymentAdmin])
        def payment_engine(request):
            ...
    """

    message = 'Only payment administrators can review transactions or change partial payment settings.'

    def has_permission(self, request, view):
        """Check staff status for admin actions only."""
        data = request.data if hasattr(request.data, 'get') else {}
        action = data.get('action')

        is_admin_action = (
            action == 'admin_partial_approval'
            or (action == 'partial_config' and data.get('allowPartialPayments') is not None)
        )
        if not is_admin_action:
            return True
        return bool(request.user and request.user.is_staff)
