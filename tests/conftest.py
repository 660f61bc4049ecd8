"""
Shared fixtures for the SkillCoin Connect test suite.
"""

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core import ledger

User = get_user_model()

TEST_PASSWORD = 'TestPass123!'


def create_test_user(email, role='student', display_name=None, **extra):
    """Create a user the way registration does (username = email)."""
    return User.objects.create_user(
        email=email,
        username=email,
        password=TEST_PASSWORD,
        role=role,
        display_name=display_name or email.split('@')[0].title(),
        **extra
    )


def auth_header(user):
    """Return the Authorization header value for a user."""
    return f'Bearer {RefreshToken.for_user(user).access_token}'


@pytest.fixture
def api_client():
    """Return API client for testing."""
    return APIClient()


@pytest.fixture
def student_user(db):
    """Create a student with the default 1000 coins."""
    return create_test_user('student@test.com', display_name='Sam Student')


@pytest.fixture
def another_student(db):
    """Create a second student."""
    return create_test_user('student2@test.com', display_name='Rita Reader')


@pytest.fixture
def teacher_user(db):
    """Create a teacher with the default price per hour."""
    return create_test_user('teacher@test.com', role='teacher', display_name='Tina Teacher')


@pytest.fixture
def another_teacher(db):
    """Create a second teacher."""
    return create_test_user('teacher2@test.com', role='teacher', display_name='Omar Oak')


@pytest.fixture
def course(teacher_user):
    """Create a 150 coin course taught by teacher_user."""
    return ledger.create_course(
        teacher_user.id,
        title='Python Basics',
        description='Learn Python from scratch.',
        price=150,
        skill_tags=['Python', 'programming'],
    )


@pytest.fixture
def student_client(api_client, student_user):
    """API client authenticated as student_user."""
    api_client.credentials(HTTP_AUTHORIZATION=auth_header(student_user))
    return api_client


@pytest.fixture
def teacher_client(teacher_user):
    """API client authenticated as teacher_user."""
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=auth_header(teacher_user))
    return client
