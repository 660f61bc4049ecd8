"""
URL configuration for skillcoin_connect project.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from core.views import (
    BookingCreateView,
    BookingDetailView,
    BookingStatusUpdateView,
    CourseBuyView,
    CourseCreateView,
    CourseListView,
    CourseSearchView,
    CourseVideoUrlView,
    CourseVideoView,
    FollowListView,
    FollowTeacherView,
    LoginView,
    LogoutView,
    MyBookingsView,
    MyCoursesView,
    ReviewCreateView,
    TeacherReviewsView,
    UserProfileView,
    UserRegistrationView,
    UserSkillView,
    VideoAccessView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentication endpoints
    path('api/auth/register/', UserRegistrationView.as_view(), name='user_register'),
    path('api/auth/login/', LoginView.as_view(), name='user_login'),
    path('api/auth/logout/', LogoutView.as_view(), name='user_logout'),
    path('api/auth/profile/', UserProfileView.as_view(), name='user_profile'),
    path('api/auth/profile/skills/', UserSkillView.as_view(), name='user_skills'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Course endpoints
    path('api/courses/', CourseListView.as_view(), name='course_list'),
    path('api/courses/search/', CourseSearchView.as_view(), name='course_search'),
    path('api/courses/create/', CourseCreateView.as_view(), name='course_create'),
    path('api/courses/mine/', MyCoursesView.as_view(), name='my_courses'),
    path('api/courses/<int:course_id>/video/', CourseVideoView.as_view(), name='course_video'),
    path('api/courses/<int:course_id>/video-url/', CourseVideoUrlView.as_view(), name='course_video_url'),
    path('api/courses/<int:course_id>/buy/', CourseBuyView.as_view(), name='course_buy'),
    path('api/videos/access/', VideoAccessView.as_view(), name='video_access'),

    # Booking endpoints
    path('api/bookings/', BookingCreateView.as_view(), name='booking_create'),
    path('api/bookings/mine/', MyBookingsView.as_view(), name='my_bookings'),
    path('api/bookings/<str:booking_id>/', BookingDetailView.as_view(), name='booking_detail'),
    path('api/bookings/<str:booking_id>/status/', BookingStatusUpdateView.as_view(), name='booking_status_update'),

    # Review endpoints
    path('api/reviews/', ReviewCreateView.as_view(), name='review_create'),
    path('api/teachers/<int:teacher_id>/reviews/', TeacherReviewsView.as_view(), name='teacher_reviews'),

    # Follow endpoints
    path('api/teachers/<int:teacher_id>/follow/', FollowTeacherView.as_view(), name='follow_teacher'),
    path('api/users/<int:user_id>/follows/', FollowListView.as_view(), name='follow_list'),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
