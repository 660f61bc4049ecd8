"""
Custom permission classes for SkillCoin Connect.
"""

from rest_framework import permissions


class IsTeacher(permissions.BasePermission):
    """
    Permission class that allows only teachers to access the endpoint.

    This permission checks if the authenticated user has role='teacher'.
    Returns 403 Forbidden for students.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsTeacher]
    """

    message = 'Only teachers can perform this action.'

    def has_permission(self, request, view):
        """
        Check if user is authenticated and is a teacher.

        Args:
            request: HTTP request object
            view: View being accessed

        Returns:
            bool: True if user is a teacher, False otherwise
        """
        if not request.user or not request.user.is_authenticated:
            return False

        return getattr(request.user, 'role', None) == 'teacher'


class IsBookingParticipant(permissions.BasePermission):
    """
    Object-level permission: the user is the student or teacher on a booking.

    Usage:
        class BookingView(APIView):
            permission_classes = [IsAuthenticated, IsBookingParticipant]
    """

    message = 'You are not a participant in this booking.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        """
        Args:
            request: HTTP request object
            view: View being accessed
            obj: Booking instance

        Returns:
            bool: True if the user is on the booking
        """
        return request.user.id in (obj.student_id, obj.teacher_id)
