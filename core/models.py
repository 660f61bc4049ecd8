"""
Data model for SkillCoin Connect.

Users hold an integer coin balance. Courses, purchases, bookings, reviews and
follows are the records the coin ledger (``core.ledger``) mutates. The
``followers``/``following``/``total_reviews``/``rating`` counters on users and
courses are denormalized and must only be written through the ledger.
"""

from datetime import datetime, timedelta, timezone as dt_timezone

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .validators import (
    normalize_skill,
    validate_profile_image,
    validate_skill_list,
)


DEFAULT_BIO = "I'm new to SkillCoin Connect!"

EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)


def default_starting_coins():
    """Coins credited to every new account."""
    return settings.SKILLCOIN_STARTING_COINS


def user_profile_image_upload_path(instance, filename):
    """
    Generate upload path for user profile images.

    Path format: profile_images/{user_id}/{filename}
    If user_id is not yet available (user not saved), uses 'temp' as placeholder.
    """
    user_id = instance.id if instance.id else 'temp'
    return f'profile_images/{user_id}/{filename}'


def make_initials(name, fallback='U'):
    """Avatar initials for a display name ("Ada Lovelace" -> "AL")."""
    initials = ''.join(part[0] for part in (name or '').split() if part)
    return initials.upper() or fallback


class User(AbstractUser):
    """
    Custom User model extending Django's AbstractUser.

    Additional fields:
    - email: Required, unique email address (used for login)
    - display_name: Public name shown to other users
    - bio: Free-text profile description
    - skills: List of skill strings
    - role: Either 'student' or 'teacher'
    - price_per_hour: Session rate in coins (teachers only)
    - coins: Coin balance, never negative
    - following / followers: Follow counters
    - total_reviews / rating: Review aggregate for teachers
    - last_seen: Set on logout
    """

    ROLE_STUDENT = 'student'
    ROLE_TEACHER = 'teacher'

    ROLE_CHOICES = [
        (ROLE_STUDENT, 'Student'),
        (ROLE_TEACHER, 'Teacher'),
    ]

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    display_name = models.CharField(
        _('display name'),
        max_length=150,
        blank=True,
        default='',
        help_text=_('Name shown to other users.')
    )

    bio = models.TextField(
        _('bio'),
        blank=True,
        default=DEFAULT_BIO,
    )

    skills = models.JSONField(
        _('skills'),
        default=list,
        blank=True,
        validators=[validate_skill_list],
        help_text=_('List of skills the user offers or wants to learn.')
    )

    role = models.CharField(
        _('role'),
        max_length=10,
        choices=ROLE_CHOICES,
        default=ROLE_STUDENT,
    )

    price_per_hour = models.PositiveIntegerField(
        _('price per hour'),
        null=True,
        blank=True,
        help_text=_('Session rate in coins. Only teachers have one.')
    )

    coins = models.PositiveIntegerField(
        _('coins'),
        default=default_starting_coins,
        help_text=_('Coin balance. Only changed by ledger transactions.')
    )

    following = models.PositiveIntegerField(_('following'), default=0)

    followers = models.PositiveIntegerField(_('followers'), default=0)

    total_reviews = models.PositiveIntegerField(_('total reviews'), default=0)

    rating = models.FloatField(
        _('rating'),
        default=0.0,
        validators=[
            MinValueValidator(0.0, message=_('Rating cannot be negative.')),
            MaxValueValidator(5.0, message=_('Rating cannot exceed 5.'))
        ],
        help_text=_('Running average of received review ratings.')
    )

    profile_image = models.ImageField(
        _('profile image'),
        upload_to=user_profile_image_upload_path,
        blank=True,
        null=True,
        validators=[validate_profile_image],
    )

    last_seen = models.DateTimeField(_('last seen'), null=True, blank=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role'], name='user_role_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(coins__gte=0),
                name='user_coins_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(rating__gte=0) & models.Q(rating__lte=5),
                name='user_rating_in_range',
            ),
        ]

    def __str__(self):
        return self.display_name or self.email or self.username

    def is_student(self):
        return self.role == self.ROLE_STUDENT

    def is_teacher(self):
        return self.role == self.ROLE_TEACHER

    @property
    def avatar(self):
        return make_initials(self.display_name)

    def add_skill(self, skill):
        """
        Add a skill with set semantics.

        Returns:
            bool: True if the skill list changed
        """
        skill = normalize_skill(skill)
        if skill in self.skills:
            return False
        self.skills = [*self.skills, skill]
        self.save(update_fields=['skills', 'updated_at'])
        return True

    def remove_skill(self, skill):
        """
        Remove a skill if present.

        Returns:
            bool: True if the skill list changed
        """
        skill = normalize_skill(skill)
        if skill not in self.skills:
            return False
        self.skills = [s for s in self.skills if s != skill]
        self.save(update_fields=['skills', 'updated_at'])
        return True

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Email is present and lowercase
        - Only teachers carry a price per hour
        """
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

        if self.price_per_hour is not None and not self.is_teacher():
            raise ValidationError({
                'price_per_hour': _('Only teachers can set a price per hour.')
            })

    def save(self, *args, **kwargs):
        """
        Normalize email and skills, give new teachers the default rate and
        validate on update.
        """
        if self.email:
            self.email = self.email.lower()

        self.skills = list(dict.fromkeys(
            normalize_skill(skill) for skill in (self.skills or []) if normalize_skill(skill)
        ))

        if self.is_teacher() and self.price_per_hour is None:
            self.price_per_hour = settings.SKILLCOIN_DEFAULT_PRICE_PER_HOUR
            update_fields = kwargs.get('update_fields')
            if update_fields is not None and 'price_per_hour' not in update_fields:
                kwargs['update_fields'] = [*update_fields, 'price_per_hour']

        # Creation skips full_clean so duplicate emails surface as IntegrityError
        if self.pk is not None:
            self.full_clean()

        super().save(*args, **kwargs)


class Course(models.Model):
    """
    Course published by a teacher and sold for coins.

    ``teacher.courses`` is the teacher's back-reference list of course ids.
    """

    teacher = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='courses',
        help_text=_('Teacher who published the course')
    )

    title = models.CharField(_('title'), max_length=200)

    description = models.TextField(_('description'))

    price = models.PositiveIntegerField(
        _('price'),
        help_text=_('Price in coins')
    )

    skill_tags = models.JSONField(
        _('skill tags'),
        default=list,
        blank=True,
        validators=[validate_skill_list],
    )

    video_url = models.URLField(_('video URL'), max_length=500, blank=True, null=True)

    video_path = models.CharField(
        _('video path'),
        max_length=500,
        blank=True,
        default='',
        help_text=_('Storage path of the uploaded course video')
    )

    rating = models.FloatField(
        _('rating'),
        default=0.0,
        validators=[MinValueValidator(0.0), MaxValueValidator(5.0)],
    )

    total_reviews = models.PositiveIntegerField(_('total reviews'), default=0)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('course')
        verbose_name_plural = _('courses')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['teacher'], name='course_teacher_idx'),
            models.Index(fields=['created_at'], name='course_created_idx'),
            models.Index(fields=['title'], name='course_title_idx'),
        ]

    def __str__(self):
        return self.title

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Teacher has role 'teacher'
        - Title and description are not blank
        """
        super().clean()

        if self.teacher_id and not self.teacher.is_teacher():
            raise ValidationError({
                'teacher': _('Only teachers can publish courses.')
            })

        if not self.title or not self.title.strip():
            raise ValidationError({
                'title': _('Title cannot be empty.')
            })

        if not self.description or not self.description.strip():
            raise ValidationError({
                'description': _('Description cannot be empty.')
            })

    def save(self, *args, **kwargs):
        self.skill_tags = list(dict.fromkeys(
            normalize_skill(tag) for tag in (self.skill_tags or []) if normalize_skill(tag)
        ))
        self.full_clean()
        super().save(*args, **kwargs)


class Purchase(models.Model):
    """
    Entitlement record: a student bought a course.

    The primary key is ``{student_id}_{course_id}`` so a student can hold at
    most one purchase per course. Immutable once created.
    """

    id = models.CharField(primary_key=True, max_length=64, editable=False)

    student = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='purchases',
    )

    teacher = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='sales',
    )

    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name='purchases',
    )

    price = models.PositiveIntegerField(_('price paid'))

    purchased_at = models.DateTimeField(_('purchased at'), auto_now_add=True)

    class Meta:
        verbose_name = _('purchase')
        verbose_name_plural = _('purchases')
        ordering = ['-purchased_at']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'course'],
                name='unique_purchase_per_student_course',
            ),
        ]

    def __str__(self):
        return f'Purchase {self.id} ({self.price} coins)'

    @staticmethod
    def make_id(student_id, course_id):
        return f'{student_id}_{course_id}'


class Booking(models.Model):
    """
    Paid one-on-one session between a student and a teacher.

    The primary key is ``{student_id}_{teacher_id}_{start_epoch_millis}``.
    Status starts at 'scheduled' and moves once to 'completed' or 'cancelled'.
    """

    STATUS_SCHEDULED = 'scheduled'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    VALID_TRANSITIONS = {
        STATUS_SCHEDULED: [STATUS_COMPLETED, STATUS_CANCELLED],
        STATUS_COMPLETED: [],
        STATUS_CANCELLED: [],
    }

    id = models.CharField(primary_key=True, max_length=96, editable=False)

    student = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='student_bookings',
    )

    teacher = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='teacher_bookings',
    )

    start_time = models.DateTimeField(_('start time'))

    end_time = models.DateTimeField(_('end time'))

    duration_minutes = models.PositiveIntegerField(_('duration (minutes)'), default=60)

    total_price = models.PositiveIntegerField(_('total price'))

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_SCHEDULED,
    )

    meeting_link = models.URLField(_('meeting link'), max_length=300)

    reminder_sent = models.BooleanField(_('reminder sent'), default=False)

    reminder_sent_at = models.DateTimeField(_('reminder sent at'), null=True, blank=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('booking')
        verbose_name_plural = _('bookings')
        ordering = ['-start_time']
        indexes = [
            models.Index(fields=['student'], name='booking_student_idx'),
            models.Index(fields=['teacher'], name='booking_teacher_idx'),
            models.Index(fields=['status', 'start_time'], name='booking_status_start_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['teacher', 'start_time'],
                name='unique_booking_per_teacher_slot',
            ),
            models.CheckConstraint(
                condition=models.Q(duration_minutes__gt=0),
                name='booking_duration_positive',
            ),
        ]

    def __str__(self):
        return f'Booking {self.id} ({self.status})'

    @staticmethod
    def make_id(student_id, teacher_id, start_time):
        start_millis = (start_time - EPOCH) // timedelta(milliseconds=1)
        return f'{student_id}_{teacher_id}_{start_millis}'

    def can_transition_to(self, new_status):
        """
        Validate if booking can transition to new status.

        Valid transitions:
        - scheduled -> completed
        - scheduled -> cancelled
        - completed, cancelled -> (terminal)

        Returns:
            tuple: (is_valid: bool, error_message: str or None)
        """
        current_status = self.status

        if current_status == new_status:
            return True, None

        if new_status in self.VALID_TRANSITIONS.get(current_status, []):
            return True, None

        if current_status == self.STATUS_COMPLETED:
            return False, 'Cannot modify a completed booking.'

        if current_status == self.STATUS_CANCELLED:
            return False, 'Cannot modify a cancelled booking.'

        return False, f'Invalid status transition from {current_status} to {new_status}.'

    def clean(self):
        """
        Validate model fields and status transitions.

        Ensures:
        - Student and teacher are different users
        - End time is after start time
        - Status transitions follow the state machine
        """
        super().clean()

        if self.student_id and self.teacher_id and self.student_id == self.teacher_id:
            raise ValidationError({
                'teacher': _('You cannot book a session with yourself.')
            })

        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValidationError({
                'end_time': _('End time must be after start time.')
            })

        if not self._state.adding:
            old_status = (
                Booking.objects.filter(pk=self.pk)
                .values_list('status', flat=True)
                .first()
            )
            if old_status is not None:
                current, self.status = self.status, old_status
                is_valid, error_message = self.can_transition_to(current)
                self.status = current
                if not is_valid:
                    raise ValidationError({'status': error_message})

    def save(self, *args, **kwargs):
        # Id and slot uniqueness are enforced by the database so racers get IntegrityError
        self.full_clean(exclude=['id'], validate_constraints=False)
        super().save(*args, **kwargs)


class Review(models.Model):
    """
    Review of a teacher (optionally for one of their courses).

    Immutable. Creating one updates the running average on the teacher and
    the course in the same transaction.
    """

    teacher = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reviews_received',
    )

    student = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reviews_given',
    )

    course = models.ForeignKey(
        Course,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviews',
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(1, message=_('Rating must be at least 1.')),
            MaxValueValidator(5, message=_('Rating must be at most 5.'))
        ],
    )

    comment = models.TextField(_('comment'))

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['teacher', 'created_at'], name='review_teacher_created_idx'),
            models.Index(fields=['course'], name='review_course_idx'),
        ]

    def __str__(self):
        return f'Review by {self.student} for {self.teacher} - {self.rating}★'

    def clean(self):
        super().clean()

        if self.student_id and self.teacher_id and self.student_id == self.teacher_id:
            raise ValidationError({
                'teacher': _('You cannot review yourself.')
            })

        if not self.comment or not self.comment.strip():
            raise ValidationError({
                'comment': _('Comment cannot be empty.')
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Follow(models.Model):
    """
    Presence of this record means ``student`` follows ``teacher``.

    The primary key is ``{student_id}_{teacher_id}``.
    """

    id = models.CharField(primary_key=True, max_length=64, editable=False)

    student = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='following_links',
    )

    teacher = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='follower_links',
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('follow')
        verbose_name_plural = _('follows')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'teacher'],
                name='unique_follow_per_pair',
            ),
            models.CheckConstraint(
                condition=~models.Q(student=models.F('teacher')),
                name='follow_not_self',
            ),
        ]

    def __str__(self):
        return f'{self.student} follows {self.teacher}'

    @staticmethod
    def make_id(student_id, teacher_id):
        return f'{student_id}_{teacher_id}'
