"""
API views for SkillCoin Connect.

Views authenticate the caller, validate input with serializers and hand every
coin-affecting operation to ``core.ledger``. Ledger failures are translated to
``{"detail": ..., "code": ...}`` responses with the status code of their kind.
"""

import logging
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework import generics, status
from rest_framework.views import APIView
from rest_framework.generics import ListAPIView
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from django.db import IntegrityError
from django.db.models import Q
from django.contrib.auth import get_user_model
from django.utils import timezone

from . import ledger
from .exceptions import Internal, InvalidArgument, LedgerError, NotFound, Unauthenticated
from .models import Booking, Course, Follow, Review
from .permissions import IsBookingParticipant, IsTeacher
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    BookingStatusUpdateSerializer,
    CourseCreateSerializer,
    CourseSerializer,
    CourseVideoSerializer,
    FollowToggleSerializer,
    LoginSerializer,
    LogoutSerializer,
    PublicUserSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
    SkillSerializer,
    UserProfileSerializer,
    UserProfileUpdateSerializer,
    UserRegistrationSerializer,
)

User = get_user_model()
logger = logging.getLogger(__name__)

COURSE_PAGE_SIZE = 20
COURSE_PAGE_MAX = 50
SEARCH_RESULT_LIMIT = 20
TEACHER_REVIEW_LIMIT = 20
FOLLOW_LIST_LIMIT = 50


def get_client_ip(request):
    """
    Get client IP address from request.
    Handles proxy headers for accurate IP detection.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0]
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


class LedgerAPIView(APIView):
    """
    Base view for endpoints backed by the coin ledger.

    Authentication is checked manually so a missing token gets the
    ``unauthenticated`` error body instead of DRF's default.
    """
    permission_classes = [AllowAny]  # Checked manually for consistent error bodies

    def get_client_ip(self, request):
        return get_client_ip(request)

    def unauthenticated_response(self):
        return Response(
            Unauthenticated('Authentication credentials were not provided.').to_dict(),
            status=status.HTTP_401_UNAUTHORIZED
        )

    def validation_error_response(self, serializer, request, action):
        logger.warning(
            f"{action} validation failed. "
            f"User ID: {request.user.id}, Errors: {serializer.errors}, "
            f"IP: {self.get_client_ip(request)}"
        )
        body = {'detail': 'Invalid request data.', 'code': InvalidArgument.default_code}
        body['errors'] = serializer.errors
        return Response(body, status=status.HTTP_400_BAD_REQUEST)

    def call_ledger(self, request, action, operation, *args, **kwargs):
        """
        Run a ledger operation and translate failures into responses.

        Returns:
            tuple: (result, None) on success, (None, Response) on failure
        """
        try:
            return operation(*args, **kwargs), None
        except LedgerError as exc:
            logger.warning(
                f"{action} rejected ({exc.kind}): {exc.message}. "
                f"User ID: {request.user.id}, IP: {self.get_client_ip(request)}"
            )
            return None, Response(exc.to_dict(), status=exc.status_code)
        except Exception as exc:
            logger.error(
                f"Unexpected error during {action.lower()}: {exc}. "
                f"User ID: {request.user.id}, IP: {self.get_client_ip(request)}",
                exc_info=True
            )
            error = Internal()
            return None, Response(error.to_dict(), status=error.status_code)


# ============================================================================
# Authentication
# ============================================================================

class UserRegistrationView(generics.CreateAPIView):
    """
    API endpoint for user registration.

    POST /api/auth/register/
    Request body: {
        "email": "ada@example.com",
        "password": "...",
        "confirm_password": "...",
        "display_name": "Ada Lovelace",
        "role": "teacher",
        "skills": ["python"]
    }

    New users start with SKILLCOIN_STARTING_COINS coins; teachers get the
    default price per hour.
    Handles concurrent registration attempts with database-level uniqueness.
    """
    serializer_class = UserRegistrationSerializer
    permission_classes = [AllowAny]

    def create(self, request, *args, **kwargs):
        """
        Handle user registration with proper error handling.
        Catches IntegrityError for concurrent duplicate email attempts.
        """
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self.perform_create(serializer)
        except IntegrityError as e:
            if 'email' in str(e).lower() or 'unique' in str(e).lower():
                return Response(
                    {'email': ['A user with that email already exists.']},
                    status=status.HTTP_400_BAD_REQUEST
                )
            raise

        logger.info(
            f"User registered. User ID: {serializer.instance.id}, "
            f"Role: {serializer.instance.role}, IP: {get_client_ip(request)}"
        )
        headers = self.get_success_headers(serializer.data)
        return Response(
            serializer.data,
            status=status.HTTP_201_CREATED,
            headers=headers
        )


class LoginView(APIView):
    """
    API endpoint for user login with JWT token generation.

    Security features:
    - Rate limiting through the 'login' throttle scope
    - Generic error messages to prevent user enumeration
    - Failed login attempt logging for security monitoring
    - Case-insensitive email lookup

    POST /api/auth/login/
    Request body: {"email": "user@example.com", "password": "password123"}

    Success response (200):
    {
        "access": "<jwt_access_token>",
        "refresh": "<jwt_refresh_token>",
        "user": {"id": 1, "email": "...", "display_name": "...",
                 "role": "student", "coins": 1000}
    }

    Error response (401): {"detail": "Invalid credentials", "code": "unauthenticated"}
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'
    serializer_class = LoginSerializer

    def post(self, request, *args, **kwargs):
        """
        Handle login request.
        """
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                serializer.errors,
                status=status.HTTP_400_BAD_REQUEST
            )

        email = serializer.validated_data['email'].lower().strip()
        password = serializer.validated_data['password']
        client_ip = get_client_ip(request)
        invalid = Response(
            Unauthenticated('Invalid credentials').to_dict(),
            status=status.HTTP_401_UNAUTHORIZED
        )

        user = User.objects.filter(email__iexact=email).first()
        if user is None:
            logger.warning(
                f"Failed login attempt for non-existent user. "
                f"Email: {email}, IP: {client_ip}"
            )
            return invalid

        if not user.check_password(password):
            logger.warning(
                f"Failed login attempt with incorrect password. "
                f"Email: {email}, IP: {client_ip}"
            )
            return invalid

        if not user.is_active:
            logger.warning(
                f"Failed login attempt for inactive account. "
                f"Email: {email}, IP: {client_ip}"
            )
            return invalid

        refresh = RefreshToken.for_user(user)

        logger.info(f"Successful login. Email: {email}, IP: {client_ip}")

        return Response({
            'access': str(refresh.access_token),
            'refresh': str(refresh),
            'user': {
                'id': user.id,
                'email': user.email,
                'display_name': user.display_name,
                'role': user.role,
                'coins': user.coins,
            }
        }, status=status.HTTP_200_OK)


class LogoutView(LedgerAPIView):
    """
    API endpoint for logging out.

    Blacklists the given refresh token and records the user's last_seen time.

    POST /api/auth/logout/
    Headers: Authorization: Bearer <access_token>
    Request body: {"refresh": "<jwt_refresh_token>"}

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 400: Refresh token missing, invalid, or already blacklisted
    - 403: Refresh token belongs to another user
    """

    def post(self, request, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        serializer = LogoutSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error_response(serializer, request, 'Logout')

        try:
            token = RefreshToken(serializer.validated_data['refresh'])
        except TokenError as e:
            logger.warning(
                f"Logout with invalid refresh token. User ID: {request.user.id}, "
                f"Error: {e}, IP: {self.get_client_ip(request)}"
            )
            return Response(
                InvalidArgument('Invalid or expired refresh token.').to_dict(),
                status=status.HTTP_400_BAD_REQUEST
            )

        if str(token.get('user_id')) != str(request.user.id):
            logger.warning(
                f"Logout with another user's refresh token. "
                f"User ID: {request.user.id}, IP: {self.get_client_ip(request)}"
            )
            return Response(
                {'detail': 'Refresh token does not belong to this user.',
                 'code': 'permission_denied'},
                status=status.HTTP_403_FORBIDDEN
            )

        token.blacklist()
        User.objects.filter(pk=request.user.id).update(last_seen=timezone.now())

        logger.info(f"User logged out. User ID: {request.user.id}")
        return Response({'detail': 'Successfully logged out.'}, status=status.HTTP_200_OK)


# ============================================================================
# Profile
# ============================================================================

class UserProfileView(LedgerAPIView):
    """
    API endpoint for retrieving and updating the authenticated user's profile.

    GET /api/auth/profile/
    PATCH /api/auth/profile/
    Body: {"bio": "...", "display_name": "...", "price_per_hour": 60}

    Coins and the follower/review counters are read-only here.

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 400: Invalid data
    - 404: Authenticated user no longer exists
    """

    def get(self, request, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        user = User.objects.filter(pk=request.user.id).first()
        if user is None:
            logger.warning(
                f"Profile access attempt for non-existent user. "
                f"User ID: {request.user.id}"
            )
            return Response(
                NotFound('User not found.').to_dict(),
                status=status.HTTP_404_NOT_FOUND
            )

        serializer = UserProfileSerializer(user, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    def patch(self, request, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        serializer = UserProfileUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error_response(serializer, request, 'Profile update')

        user, error = self.call_ledger(
            request, 'Profile update',
            ledger.update_user_profile, request.user.id, **serializer.validated_data
        )
        if error:
            return error

        response_serializer = UserProfileSerializer(user, context={'request': request})
        return Response(response_serializer.data, status=status.HTTP_200_OK)


class UserSkillView(LedgerAPIView):
    """
    Add or remove a skill on the authenticated user's profile.

    POST /api/auth/profile/skills/    {"skill": "python"}
    DELETE /api/auth/profile/skills/  {"skill": "python"}  (or ?skill=python)

    Success response (200): {"skills": ["python", ...]}
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'ledger'

    def post(self, request, *args, **kwargs):
        return self._change_skill(request, ledger.add_user_skill, 'Skill add')

    def delete(self, request, *args, **kwargs):
        return self._change_skill(request, ledger.remove_user_skill, 'Skill removal')

    def _change_skill(self, request, operation, action):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        data = request.data if 'skill' in request.data else request.query_params
        serializer = SkillSerializer(data={'skill': data.get('skill', '')})
        if not serializer.is_valid():
            return self.validation_error_response(serializer, request, action)

        skills, error = self.call_ledger(
            request, action, operation, request.user.id, serializer.validated_data['skill']
        )
        if error:
            return error

        return Response({'skills': skills}, status=status.HTTP_200_OK)


# ============================================================================
# Courses
# ============================================================================

class CourseListView(APIView):
    """
    Public course catalogue, newest first, with cursor pagination.

    GET /api/courses/?limit=20&last_visible=<course id>

    Success response (200):
    {
        "courses": [...],
        "last_visible": 42,     # pass back to fetch the next page
        "has_more": true
    }
    """
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        try:
            limit = int(request.query_params.get('limit', COURSE_PAGE_SIZE))
        except ValueError:
            limit = COURSE_PAGE_SIZE
        limit = max(1, min(limit, COURSE_PAGE_MAX))

        queryset = Course.objects.select_related('teacher').order_by('-created_at', '-id')

        last_visible = request.query_params.get('last_visible')
        if last_visible:
            cursor = Course.objects.filter(pk=last_visible).first() if last_visible.isdigit() else None
            if cursor is None:
                return Response(
                    InvalidArgument('last_visible does not reference a course.').to_dict(),
                    status=status.HTTP_400_BAD_REQUEST
                )
            queryset = queryset.filter(
                Q(created_at__lt=cursor.created_at)
                | Q(created_at=cursor.created_at, id__lt=cursor.id)
            )

        courses = list(queryset[:limit + 1])
        has_more = len(courses) > limit
        courses = courses[:limit]

        return Response({
            'courses': CourseSerializer(courses, many=True).data,
            'last_visible': courses[-1].id if courses else None,
            'has_more': has_more,
        }, status=status.HTTP_200_OK)


class CourseSearchView(APIView):
    """
    Search courses by skill tag, then by title prefix.

    GET /api/courses/search/?q=python

    Exact (case-insensitive) skill tag matches come first, followed by courses
    whose title starts with the query, up to 20 results in total. Each result
    carries ``match_type`` of 'skill' or 'title'.
    """
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        query = ' '.join(request.query_params.get('q', '').split()).lower()
        if not query:
            return Response(
                InvalidArgument('Search query is required.').to_dict(),
                status=status.HTTP_400_BAD_REQUEST
            )

        base = Course.objects.select_related('teacher').order_by('-created_at', '-id')

        # skill_tags is stored as a JSON array of lower-cased strings
        tag_matches = [
            course for course in base.filter(skill_tags__icontains=f'"{query}"')
            if query in course.skill_tags
        ][:SEARCH_RESULT_LIMIT]

        results = [
            {**CourseSerializer(course).data, 'match_type': 'skill'}
            for course in tag_matches
        ]

        remaining = SEARCH_RESULT_LIMIT - len(results)
        if remaining > 0:
            title_matches = (
                base.filter(title__istartswith=query)
                .exclude(pk__in=[course.pk for course in tag_matches])[:remaining]
            )
            results.extend(
                {**CourseSerializer(course).data, 'match_type': 'title'}
                for course in title_matches
            )

        logger.info(f"Course search for '{query}' returned {len(results)} result(s)")
        return Response({'query': query, 'results': results}, status=status.HTTP_200_OK)


class CourseCreateView(LedgerAPIView):
    """
    Publish a new course.

    POST /api/courses/create/
    Body: {"title": "...", "description": "...", "price": 100,
           "skill_tags": ["python"], "video_url": null}

    Error responses:
    - 401: not authenticated
    - 403: caller is not a teacher
    - 400: invalid data
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'ledger'

    def post(self, request, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        permission = IsTeacher()
        if not permission.has_permission(request, self):
            logger.warning(
                f"Non-teacher attempted course creation. "
                f"User ID: {request.user.id}, IP: {self.get_client_ip(request)}"
            )
            return Response(
                {'detail': permission.message, 'code': 'permission_denied'},
                status=status.HTTP_403_FORBIDDEN
            )

        serializer = CourseCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error_response(serializer, request, 'Course creation')

        course, error = self.call_ledger(
            request, 'Course creation',
            ledger.create_course, request.user.id, **serializer.validated_data
        )
        if error:
            return error

        return Response(CourseSerializer(course).data, status=status.HTTP_201_CREATED)


class MyCoursesView(LedgerAPIView):
    """
    Courses related to the authenticated user.

    GET /api/courses/mine/?role=student   courses the user purchased
    GET /api/courses/mine/?role=teacher   courses the user teaches

    ``role`` defaults to the user's own role.
    """

    def get(self, request, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        role = request.query_params.get('role', request.user.role)
        if role == User.ROLE_STUDENT:
            courses = Course.objects.filter(purchases__student_id=request.user.id)
        elif role == User.ROLE_TEACHER:
            courses = Course.objects.filter(teacher_id=request.user.id)
        else:
            return Response(
                InvalidArgument("role must be 'student' or 'teacher'.").to_dict(),
                status=status.HTTP_400_BAD_REQUEST
            )

        courses = courses.select_related('teacher').order_by('-created_at', '-id')
        return Response({
            'role': role,
            'courses': CourseSerializer(courses, many=True).data,
        }, status=status.HTTP_200_OK)


class CourseVideoView(LedgerAPIView):
    """
    Attach an uploaded video to a course. Course owner only.

    PUT /api/courses/<id>/video/
    Body: {"video_path": "courses/12/intro.mp4"}
    """

    def put(self, request, course_id, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        serializer = CourseVideoSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error_response(serializer, request, 'Course video update')

        course, error = self.call_ledger(
            request, 'Course video update',
            ledger.update_course_video, request.user.id, course_id,
            serializer.validated_data['video_path']
        )
        if error:
            return error

        return Response(
            {'course_id': course.id, 'video_path': course.video_path},
            status=status.HTTP_200_OK
        )


class CourseVideoUrlView(LedgerAPIView):
    """
    Issue a signed, time-limited link to a course video.

    GET /api/courses/<id>/video-url/

    Success response (200): {"url": "...", "expires_at": "..."}

    Error responses:
    - 403: caller has not purchased the course
    - 400: course has no video
    """

    def get(self, request, course_id, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        result, error = self.call_ledger(
            request, 'Video link request',
            ledger.get_video_access_url, request.user.id, course_id
        )
        if error:
            return error

        return Response(
            {'url': result['url'], 'expires_at': result['expires_at']},
            status=status.HTTP_200_OK
        )


class VideoAccessView(LedgerAPIView):
    """
    Verify a signed video link. Used by the media proxy before serving a file.

    GET /api/videos/access/?token=<token>

    Success response (200): {"course_id": 1, "user_id": 2, "path": "..."}
    Error response (403): link expired or tampered with
    """

    def get(self, request, *args, **kwargs):
        token = request.query_params.get('token', '')
        if not token:
            return Response(
                InvalidArgument('token is required.').to_dict(),
                status=status.HTTP_400_BAD_REQUEST
            )

        payload, error = self.call_ledger(
            request, 'Video link verification', ledger.resolve_video_token, token
        )
        if error:
            return error

        return Response(payload, status=status.HTTP_200_OK)


class CourseBuyView(LedgerAPIView):
    """
    Buy a course with coins.

    POST /api/courses/<id>/buy/

    Success response (201): {"purchase_id": "3_12"}

    Error responses:
    - 401: not authenticated
    - 404: course not found
    - 409: course already purchased
    - 400: insufficient coins or buying one's own course
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'ledger'

    def post(self, request, course_id, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        result, error = self.call_ledger(
            request, 'Course purchase', ledger.buy_course, request.user.id, course_id
        )
        if error:
            return error

        logger.info(
            f"Course purchased. Course ID: {course_id}, User ID: {request.user.id}, "
            f"Purchase ID: {result['purchase_id']}, IP: {self.get_client_ip(request)}"
        )
        return Response(result, status=status.HTTP_201_CREATED)


# ============================================================================
# Bookings
# ============================================================================

class BookingCreateView(LedgerAPIView):
    """
    API endpoint for booking and paying for a session.

    POST /api/bookings/
    Headers: Authorization: Bearer <access_token>
    Request body: {
        "teacher_id": 2,
        "start_time": "2024-01-01T10:00:00Z",
        "price_per_hour": 50,
        "duration_minutes": 90
    }

    Success response (201): {"booking_id": "3_2_1704103200000", "total_price": 75}

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 400: Invalid data, self-booking, or insufficient coins
    - 404: Teacher not found
    - 409: The teacher already has a booking at that time
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'ledger'

    def post(self, request, *args, **kwargs):
        """
        Handle booking creation request.

        Steps:
        1. Verify user is authenticated
        2. Validate request data
        3. Book and pay through the ledger
        4. Log creation action
        """
        # Step 1: Check authentication
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        # Step 2: Validate request data
        serializer = BookingCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error_response(serializer, request, 'Booking creation')

        data = serializer.validated_data

        # Step 3: Book and pay atomically
        result, error = self.call_ledger(
            request, 'Booking creation',
            ledger.create_booking,
            request.user.id,
            data['teacher_id'],
            data['start_time'],
            data['price_per_hour'],
            data['duration_minutes'],
        )
        if error:
            return error

        # Step 4: Log creation action
        logger.info(
            f"Booking created successfully. "
            f"Booking ID: {result['booking_id']}, "
            f"Teacher ID: {data['teacher_id']}, "
            f"Student ID: {request.user.id}, "
            f"Total Price: {result['total_price']}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response(result, status=status.HTTP_201_CREATED)


class MyBookingsView(ListAPIView):
    """
    API endpoint for the authenticated user's bookings.

    GET /api/bookings/mine/?role=student|teacher&status=scheduled

    Without ``role`` both sides are returned. Each booking carries the
    participants' display names and avatar initials.

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 400: Unknown role
    """

    permission_classes = [IsAuthenticated]
    pagination_class = PageNumberPagination
    serializer_class = BookingSerializer

    def get_queryset(self):
        user = self.request.user
        role = self.request.query_params.get('role')

        if role == User.ROLE_STUDENT:
            queryset = Booking.objects.filter(student=user)
        elif role == User.ROLE_TEACHER:
            queryset = Booking.objects.filter(teacher=user)
        elif role:
            raise InvalidArgument("role must be 'student' or 'teacher'.")
        else:
            queryset = Booking.objects.filter(Q(student=user) | Q(teacher=user))

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        return queryset.select_related('student', 'teacher').order_by('start_time')

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['user'] = self.request.user
        return context


class BookingDetailView(LedgerAPIView):
    """
    Retrieve one booking. Participants only.

    GET /api/bookings/<id>/
    """

    def get(self, request, booking_id, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        booking = (
            Booking.objects.select_related('student', 'teacher')
            .filter(pk=booking_id)
            .first()
        )
        if booking is None:
            return Response(
                NotFound('Booking not found.').to_dict(),
                status=status.HTTP_404_NOT_FOUND
            )

        permission = IsBookingParticipant()
        if not permission.has_object_permission(request, self, booking):
            logger.warning(
                f"Unauthorized booking access attempt. Booking ID: {booking_id}, "
                f"User ID: {request.user.id}, IP: {self.get_client_ip(request)}"
            )
            return Response(
                {'detail': permission.message, 'code': 'permission_denied'},
                status=status.HTTP_403_FORBIDDEN
            )

        serializer = BookingSerializer(booking, context={'user': request.user})
        return Response(serializer.data, status=status.HTTP_200_OK)


class BookingStatusUpdateView(LedgerAPIView):
    """
    Complete or cancel a booking.

    PUT /api/bookings/<id>/status/
    Request body: {"status": "cancelled"}

    A student cancelling a scheduled booking is refunded in full.

    Success response (200): {"refunded": true}

    Error responses:
    - 401: Missing, invalid, or expired JWT token
    - 403: Caller is not on the booking
    - 404: Booking not found
    - 400: Invalid status, booking already finished, or refund not possible
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'ledger'

    def put(self, request, booking_id, *args, **kwargs):
        """
        Handle booking status update request.

        Steps:
        1. Verify user is authenticated
        2. Validate the requested status
        3. Apply the transition (and refund) through the ledger
        4. Log status change
        """
        # Step 1: Check authentication
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        # Step 2: Validate status
        serializer = BookingStatusUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error_response(serializer, request, 'Booking status update')

        new_status = serializer.validated_data['status']

        # Step 3: Transition atomically
        result, error = self.call_ledger(
            request, 'Booking status update',
            ledger.update_booking_status, request.user.id, booking_id, new_status
        )
        if error:
            return error

        # Step 4: Log status change
        logger.info(
            f"Booking status updated. Booking ID: {booking_id}, "
            f"New Status: {new_status}, Refunded: {result['refunded']}, "
            f"User ID: {request.user.id}, IP: {self.get_client_ip(request)}"
        )
        return Response(result, status=status.HTTP_200_OK)

    def patch(self, request, booking_id, *args, **kwargs):
        return self.put(request, booking_id, *args, **kwargs)


# ============================================================================
# Reviews
# ============================================================================

class ReviewCreateView(LedgerAPIView):
    """
    Review a teacher.

    POST /api/reviews/
    Body: {"teacher_id": 2, "rating": 5, "comment": "Great!", "course_id": 7}

    Rating is rounded and clamped to 1..5. Requires a purchase of the course
    (when course_id is given) or a completed session with the teacher.

    Success response (201): {"review_id": 11}
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'ledger'

    def post(self, request, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        serializer = ReviewCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error_response(serializer, request, 'Review creation')

        data = serializer.validated_data
        result, error = self.call_ledger(
            request, 'Review creation',
            ledger.create_review,
            request.user.id,
            data['teacher_id'],
            data['rating'],
            data['comment'],
            course_id=data.get('course_id'),
        )
        if error:
            return error

        return Response(result, status=status.HTTP_201_CREATED)


class TeacherReviewsView(APIView):
    """
    Latest reviews of a teacher with reviewer names and avatar initials.

    GET /api/teachers/<id>/reviews/
    """
    permission_classes = [AllowAny]

    def get(self, request, teacher_id, *args, **kwargs):
        teacher = User.objects.filter(pk=teacher_id).first()
        if teacher is None:
            return Response(
                NotFound('Teacher not found.').to_dict(),
                status=status.HTTP_404_NOT_FOUND
            )

        reviews = (
            Review.objects.filter(teacher=teacher)
            .select_related('student')
            .order_by('-created_at', '-id')[:TEACHER_REVIEW_LIMIT]
        )
        return Response({
            'teacher_id': teacher.id,
            'rating': teacher.rating,
            'reviews_count': teacher.total_reviews,
            'reviews': ReviewSerializer(reviews, many=True).data,
        }, status=status.HTTP_200_OK)


# ============================================================================
# Follows
# ============================================================================

class FollowTeacherView(LedgerAPIView):
    """
    Follow state between the authenticated user and a teacher.

    GET /api/teachers/<id>/follow/    -> {"is_following": bool}
    POST /api/teachers/<id>/follow/   {"follow": true} -> {"is_following": true}
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'ledger'

    def get(self, request, teacher_id, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        is_following = Follow.objects.filter(
            pk=Follow.make_id(request.user.id, teacher_id)
        ).exists()
        return Response({'is_following': is_following}, status=status.HTTP_200_OK)

    def post(self, request, teacher_id, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        serializer = FollowToggleSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error_response(serializer, request, 'Follow toggle')

        result, error = self.call_ledger(
            request, 'Follow toggle',
            ledger.toggle_follow_teacher,
            request.user.id, teacher_id, serializer.validated_data['follow']
        )
        if error:
            return error

        return Response(result, status=status.HTTP_200_OK)


class FollowListView(LedgerAPIView):
    """
    Followers or followed teachers of a user, newest first, at most 50.

    GET /api/users/<id>/follows/?type=followers|following
    """

    def get(self, request, user_id, *args, **kwargs):
        if not request.user or not request.user.is_authenticated:
            return self.unauthenticated_response()

        list_type = request.query_params.get('type', 'followers')
        if list_type == 'followers':
            links = Follow.objects.filter(teacher_id=user_id).select_related('student')
            users = [link.student for link in links[:FOLLOW_LIST_LIMIT]]
        elif list_type == 'following':
            links = Follow.objects.filter(student_id=user_id).select_related('teacher')
            users = [link.teacher for link in links[:FOLLOW_LIST_LIMIT]]
        else:
            return Response(
                InvalidArgument("type must be 'followers' or 'following'.").to_dict(),
                status=status.HTTP_400_BAD_REQUEST
            )

        if not User.objects.filter(pk=user_id).exists():
            return Response(
                NotFound('User not found.').to_dict(),
                status=status.HTTP_404_NOT_FOUND
            )

        return Response({
            'type': list_type,
            'users': PublicUserSerializer(users, many=True).data,
        }, status=status.HTTP_200_OK)
