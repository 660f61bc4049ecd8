"""
Django admin configuration for SkillCoin Connect.

Coin balances and the denormalized counters are read-only here: they are
owned by the coin ledger, and ``recalculate_counters`` repairs drift.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Booking, Course, Follow, Purchase, Review, User


LEDGER_USER_FIELDS = ['coins', 'following', 'followers', 'total_reviews', 'rating']


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Custom admin interface for User model.

    Extends Django's UserAdmin to include profile and ledger fields.
    """

    list_display = [
        'email',
        'display_name',
        'role',
        'coins',
        'rating',
        'total_reviews',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'role',
        'is_staff',
        'is_superuser',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'email',
        'username',
        'display_name',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Profile'), {
            'fields': (
                'email',
                'display_name',
                'bio',
                'skills',
                'role',
                'price_per_hour',
                'profile_image',
            )
        }),
        (_('Ledger'), {
            'fields': tuple(LEDGER_USER_FIELDS),
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'last_seen', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'username',
                'email',
                'display_name',
                'password1',
                'password2',
                'role',
            ),
        }),
    )

    readonly_fields = [*LEDGER_USER_FIELDS, 'created_at', 'updated_at', 'last_login',
                       'last_seen', 'date_joined']

    date_hierarchy = 'created_at'

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        """
        Ledger fields and timestamps are read-only when editing.
        """
        if obj:
            return self.readonly_fields
        return []


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['title', 'teacher', 'price', 'rating', 'total_reviews', 'created_at']
    list_filter = ['created_at']
    search_fields = ['title', 'description', 'teacher__email', 'teacher__display_name']
    readonly_fields = ['rating', 'total_reviews', 'created_at']
    raw_id_fields = ['teacher']


class ImmutableLedgerRecordAdmin(admin.ModelAdmin):
    """Ledger records are created only by the ledger; the admin can look, not touch."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Purchase)
class PurchaseAdmin(ImmutableLedgerRecordAdmin):
    list_display = ['id', 'student', 'teacher', 'course', 'price', 'purchased_at']
    search_fields = ['id', 'student__email', 'teacher__email', 'course__title']
    date_hierarchy = 'purchased_at'


@admin.register(Booking)
class BookingAdmin(ImmutableLedgerRecordAdmin):
    list_display = ['id', 'student', 'teacher', 'start_time', 'duration_minutes',
                    'total_price', 'status', 'reminder_sent']
    list_filter = ['status', 'reminder_sent', 'start_time']
    search_fields = ['id', 'student__email', 'teacher__email']
    date_hierarchy = 'start_time'


@admin.register(Review)
class ReviewAdmin(ImmutableLedgerRecordAdmin):
    """Deleting a review here triggers an aggregate rebuild (see core.signals)."""

    list_display = ['id', 'teacher', 'student', 'course', 'rating', 'created_at']
    list_filter = ['rating', 'created_at']
    search_fields = ['comment', 'teacher__email', 'student__email']


@admin.register(Follow)
class FollowAdmin(ImmutableLedgerRecordAdmin):
    list_display = ['id', 'student', 'teacher', 'created_at']
    search_fields = ['student__email', 'teacher__email']

    def has_delete_permission(self, request, obj=None):
        # Deleting here would skip the follower counters; unfollow through the API
        return False
