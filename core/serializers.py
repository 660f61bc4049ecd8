"""
Serializers for authentication, profiles, courses, bookings, reviews and follows.

Write serializers only validate the shape of the input. All coin movement and
counter updates happen in ``core.ledger``.
"""

from rest_framework import serializers
from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.contrib.auth.hashers import make_password

from .models import Booking, Course, Review, make_initials
from .validators import MAX_SKILL_LENGTH, normalize_skill

User = get_user_model()


class UserRegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for user registration with comprehensive validation.

    Fields:
    - email: Required, unique, valid email format
    - password: Required, must meet strength requirements
    - confirm_password: Required, must match password
    - display_name: Required
    - role: Optional, 'student' (default) or 'teacher'
    - skills: Optional list of skills
    """

    password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    confirm_password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    skills = serializers.ListField(
        child=serializers.CharField(max_length=MAX_SKILL_LENGTH),
        required=False,
        default=list,
    )

    class Meta:
        model = User
        fields = ['id', 'email', 'password', 'confirm_password', 'display_name',
                  'role', 'skills', 'bio', 'coins', 'price_per_hour', 'created_at']
        read_only_fields = ['id', 'bio', 'coins', 'price_per_hour', 'created_at']
        extra_kwargs = {
            'email': {'required': True},
            'display_name': {'required': True, 'allow_blank': False},
        }

    def validate_email(self, value):
        """
        Validate email format and uniqueness.
        """
        value = value.strip().lower()

        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError(
                "A user with that email already exists."
            )

        return value

    def validate_password(self, value):
        """
        Validate password strength using Django's password validators.
        """
        try:
            validate_password(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))

        return value

    def validate_display_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Display name cannot be empty.")
        return value

    def validate_skills(self, value):
        skills = []
        for skill in value:
            skill = normalize_skill(skill)
            if skill and skill not in skills:
                skills.append(skill)
        return skills

    def validate(self, attrs):
        """
        Object-level validation for password confirmation matching.
        """
        if attrs.get('password') != attrs.get('confirm_password'):
            raise serializers.ValidationError({
                'confirm_password': 'Password confirmation does not match.'
            })

        return attrs

    def create(self, validated_data):
        """
        Create user with hashed password and starting coin balance.
        """
        from django.db import transaction

        validated_data.pop('confirm_password', None)
        validated_data['password'] = make_password(validated_data.pop('password'))

        # Registration cannot grant privileges
        for field in ('is_superuser', 'is_staff', 'is_active', 'groups', 'user_permissions'):
            validated_data.pop(field, None)

        # AbstractUser requires a unique username; email is unique already
        validated_data['username'] = validated_data['email'][:150]
        validated_data['coins'] = settings.SKILLCOIN_STARTING_COINS

        with transaction.atomic():
            user = User.objects.create(**validated_data)

        return user


class LoginSerializer(serializers.Serializer):
    """
    Serializer for user login with email and password.

    Minimal validation to prevent user enumeration attacks.
    Actual authentication happens in the view.
    """
    email = serializers.EmailField(
        required=True,
        help_text='User email address'
    )
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'},
        help_text='User password'
    )


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=True)


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for reading a user's own profile.

    ``reviews`` is the number of reviews received.
    """

    reviews = serializers.IntegerField(source='total_reviews', read_only=True)
    avatar = serializers.CharField(read_only=True)
    courses = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    profile_image_url = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'display_name', 'bio', 'skills', 'role',
                  'price_per_hour', 'coins', 'following', 'followers', 'reviews',
                  'rating', 'courses', 'avatar', 'profile_image_url',
                  'last_seen', 'created_at']
        read_only_fields = fields

    def get_profile_image_url(self, obj):
        """
        Get absolute URL for profile image.
        """
        if obj.profile_image:
            request = self.context.get('request')
            if request:
                return request.build_absolute_uri(obj.profile_image.url)
            return obj.profile_image.url
        return None


class UserProfileUpdateSerializer(serializers.Serializer):
    """
    Input for PATCH /api/auth/profile/.

    Only bio, display_name and price_per_hour are editable. Coins and
    counters are owned by the ledger.
    """

    bio = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    display_name = serializers.CharField(required=False, max_length=150)
    price_per_hour = serializers.IntegerField(required=False, min_value=1)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError(
                'Provide at least one of: bio, display_name, price_per_hour.'
            )
        return attrs


class SkillSerializer(serializers.Serializer):
    skill = serializers.CharField(max_length=MAX_SKILL_LENGTH, allow_blank=True)


class PublicUserSerializer(serializers.ModelSerializer):
    """Minimal public view of a user for follow lists and participants."""

    reviews = serializers.IntegerField(source='total_reviews', read_only=True)
    avatar = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'display_name', 'avatar', 'role', 'skills', 'bio',
                  'price_per_hour', 'rating', 'reviews', 'followers', 'following']
        read_only_fields = fields


class CourseSerializer(serializers.ModelSerializer):
    """Course listing representation."""

    teacher_id = serializers.IntegerField(read_only=True)
    teacher_name = serializers.CharField(source='teacher.display_name', read_only=True)
    reviews = serializers.IntegerField(source='total_reviews', read_only=True)

    class Meta:
        model = Course
        fields = ['id', 'title', 'description', 'price', 'skill_tags', 'video_url',
                  'teacher_id', 'teacher_name', 'rating', 'reviews', 'created_at']
        read_only_fields = fields


class CourseCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField()
    price = serializers.IntegerField(min_value=0)
    skill_tags = serializers.ListField(
        child=serializers.CharField(max_length=MAX_SKILL_LENGTH),
        required=False,
        default=list,
    )
    video_url = serializers.URLField(required=False, allow_blank=True, allow_null=True)


class CourseVideoSerializer(serializers.Serializer):
    video_path = serializers.CharField(max_length=500, allow_blank=True)


class BookingCreateSerializer(serializers.Serializer):
    """
    Input for POST /api/bookings/.

    ``start_time`` is kept as the raw ISO-8601 string; the ledger parses it so
    the booking id is derived from the exact instant requested.
    """

    teacher_id = serializers.IntegerField()
    start_time = serializers.CharField()
    price_per_hour = serializers.DecimalField(max_digits=12, decimal_places=2)
    duration_minutes = serializers.IntegerField(required=False, default=60, min_value=1)

    def validate_price_per_hour(self, value):
        if value <= 0:
            raise serializers.ValidationError('Price per hour must be positive.')
        return value


class BookingStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[
        Booking.STATUS_COMPLETED,
        Booking.STATUS_CANCELLED,
    ])


class BookingSerializer(serializers.ModelSerializer):
    """
    Booking with participant names and avatar initials.

    ``other_party`` is the participant who is not the requesting user.
    """

    student_id = serializers.IntegerField(read_only=True)
    teacher_id = serializers.IntegerField(read_only=True)
    student_name = serializers.CharField(source='student.display_name', read_only=True)
    teacher_name = serializers.CharField(source='teacher.display_name', read_only=True)
    student_avatar = serializers.SerializerMethodField()
    teacher_avatar = serializers.SerializerMethodField()
    other_party = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = ['id', 'student_id', 'teacher_id', 'student_name', 'teacher_name',
                  'student_avatar', 'teacher_avatar', 'other_party', 'start_time',
                  'end_time', 'duration_minutes', 'total_price', 'status',
                  'meeting_link', 'reminder_sent', 'created_at']
        read_only_fields = fields

    def get_student_avatar(self, obj):
        return make_initials(obj.student.display_name)

    def get_teacher_avatar(self, obj):
        return make_initials(obj.teacher.display_name)

    def get_other_party(self, obj):
        user = self.context.get('user')
        if user is None:
            return None
        other = obj.teacher if user.pk == obj.student_id else obj.student
        return {
            'id': other.pk,
            'display_name': other.display_name,
            'avatar': make_initials(other.display_name),
        }


class ReviewCreateSerializer(serializers.Serializer):
    """
    Input for POST /api/reviews/.

    Rating is accepted as any number; the ledger rounds and clamps it to 1..5.
    """

    teacher_id = serializers.IntegerField()
    course_id = serializers.IntegerField(required=False, allow_null=True)
    rating = serializers.FloatField()
    comment = serializers.CharField(allow_blank=True, max_length=2000)


class ReviewSerializer(serializers.ModelSerializer):
    """Review with the reviewer's display name and avatar initials."""

    student_id = serializers.IntegerField(read_only=True)
    student_name = serializers.CharField(source='student.display_name', read_only=True)
    student_avatar = serializers.SerializerMethodField()
    course_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Review
        fields = ['id', 'student_id', 'student_name', 'student_avatar', 'course_id',
                  'rating', 'comment', 'created_at']
        read_only_fields = fields

    def get_student_avatar(self, obj):
        return make_initials(obj.student.display_name)


class FollowToggleSerializer(serializers.Serializer):
    follow = serializers.BooleanField()
