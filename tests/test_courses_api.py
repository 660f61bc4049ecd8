"""
Test suite for course endpoints.

Tests cover:
- Course creation (teacher only, validation)
- Catalogue listing with cursor pagination
- Search by skill tag and title prefix
- My courses (taught and purchased)
- Buying a course through the API
- Video upload path and signed video links
"""

import pytest
from rest_framework import status

from core import ledger
from core.exceptions import InvalidArgument, NotFound, PermissionDenied
from core.models import Course, User


def make_course(teacher, title, tags=(), price=100):
    return ledger.create_course(
        teacher.id, title=title, description=f'{title} description.', price=price,
        skill_tags=list(tags),
    )


@pytest.mark.django_db
class TestCourseCreation:
    """POST /api/courses/create/"""

    def test_teacher_creates_course(self, teacher_client, teacher_user):
        response = teacher_client.post('/api/courses/create/', {
            'title': '  Guitar 101 ',
            'description': 'Chords and strumming.',
            'price': 120,
            'skill_tags': ['Guitar', 'music', 'GUITAR'],
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['title'] == 'Guitar 101'
        assert response.data['teacher_id'] == teacher_user.id
        assert response.data['teacher_name'] == 'Tina Teacher'
        assert response.data['skill_tags'] == ['guitar', 'music']
        assert response.data['rating'] == 0.0
        assert response.data['reviews'] == 0

    def test_student_cannot_create_course(self, student_client):
        response = student_client.post('/api/courses/create/', {
            'title': 'Nope',
            'description': 'Nope.',
            'price': 10,
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == 'permission_denied'
        assert not Course.objects.exists()

    def test_negative_price(self, teacher_client):
        response = teacher_client.post('/api/courses/create/', {
            'title': 'Cheap',
            'description': 'Too cheap.',
            'price': -1,
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'price' in response.data['errors']

    def test_requires_authentication(self, api_client):
        response = api_client.post('/api/courses/create/', {}, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_ledger_rejects_student(self, student_user):
        with pytest.raises(PermissionDenied):
            ledger.create_course(student_user.id, 'Title', 'Description', 10)

    def test_ledger_rejects_blank_title(self, teacher_user):
        with pytest.raises(InvalidArgument):
            ledger.create_course(teacher_user.id, '   ', 'Description', 10)


@pytest.mark.django_db
class TestCourseList:
    """GET /api/courses/"""

    def test_newest_first_with_cursor(self, api_client, teacher_user):
        courses = [make_course(teacher_user, f'Course {n}') for n in range(5)]

        first = api_client.get('/api/courses/', {'limit': 2})

        assert first.status_code == status.HTTP_200_OK
        assert [c['id'] for c in first.data['courses']] == [courses[4].id, courses[3].id]
        assert first.data['has_more'] is True
        assert first.data['last_visible'] == courses[3].id

        second = api_client.get('/api/courses/', {
            'limit': 2, 'last_visible': first.data['last_visible']
        })
        third = api_client.get('/api/courses/', {
            'limit': 2, 'last_visible': second.data['last_visible']
        })

        assert [c['id'] for c in second.data['courses']] == [courses[2].id, courses[1].id]
        assert [c['id'] for c in third.data['courses']] == [courses[0].id]
        assert third.data['has_more'] is False

    def test_empty_catalogue(self, api_client):
        response = api_client.get('/api/courses/')

        assert response.data == {'courses': [], 'last_visible': None, 'has_more': False}

    def test_unknown_cursor(self, api_client):
        response = api_client.get('/api/courses/', {'last_visible': '999999'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_argument'


@pytest.mark.django_db
class TestCourseSearch:
    """GET /api/courses/search/"""

    def test_skill_matches_come_before_title_matches(self, api_client, teacher_user):
        by_title = make_course(teacher_user, 'Python for Kids')
        by_tag = make_course(teacher_user, 'Data Wrangling', tags=['Python'])
        make_course(teacher_user, 'Cooking', tags=['pythonic'])

        response = api_client.get('/api/courses/search/', {'q': '  PYTHON '})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['query'] == 'python'
        results = [(r['id'], r['match_type']) for r in response.data['results']]
        assert results == [(by_tag.id, 'skill'), (by_title.id, 'title')]

    def test_course_matching_both_is_listed_once(self, api_client, teacher_user):
        course = make_course(teacher_user, 'Guitar basics', tags=['guitar'])

        response = api_client.get('/api/courses/search/', {'q': 'guitar'})

        assert [(r['id'], r['match_type']) for r in response.data['results']] == [
            (course.id, 'skill')
        ]

    def test_results_are_capped(self, api_client, teacher_user):
        for n in range(25):
            make_course(teacher_user, f'Chess {n}', tags=['chess'])

        response = api_client.get('/api/courses/search/', {'q': 'chess'})

        assert len(response.data['results']) == 20

    def test_empty_query(self, api_client):
        response = api_client.get('/api/courses/search/', {'q': '   '})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestMyCourses:
    """GET /api/courses/mine/"""

    def test_teacher_sees_taught_courses(self, teacher_client, course):
        response = teacher_client.get('/api/courses/mine/')

        assert response.data['role'] == 'teacher'
        assert [c['id'] for c in response.data['courses']] == [course.id]

    def test_student_sees_purchased_courses(self, student_client, student_user, teacher_user, course):
        make_course(teacher_user, 'Not bought')
        ledger.buy_course(student_user.id, course.id)

        response = student_client.get('/api/courses/mine/')

        assert response.data['role'] == 'student'
        assert [c['id'] for c in response.data['courses']] == [course.id]

    def test_invalid_role(self, student_client):
        response = student_client.get('/api/courses/mine/', {'role': 'admin'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestCourseBuyApi:
    """POST /api/courses/<id>/buy/"""

    def test_buy_course(self, student_client, student_user, course):
        response = student_client.post(f'/api/courses/{course.id}/buy/')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data == {'purchase_id': f'{student_user.id}_{course.id}'}
        student_user.refresh_from_db()
        assert student_user.coins == 850

    def test_buy_twice(self, student_client, course):
        student_client.post(f'/api/courses/{course.id}/buy/')

        response = student_client.post(f'/api/courses/{course.id}/buy/')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'already_exists'

    def test_insufficient_coins(self, student_client, student_user, course):
        User.objects.filter(pk=student_user.id).update(coins=100)

        response = student_client.post(f'/api/courses/{course.id}/buy/')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'failed_precondition'

    def test_own_course(self, teacher_client, course):
        response = teacher_client.post(f'/api/courses/{course.id}/buy/')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_argument'

    def test_unknown_course(self, student_client):
        response = student_client.post('/api/courses/999999/buy/')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['code'] == 'not_found'

    def test_requires_authentication(self, api_client, course):
        response = api_client.post(f'/api/courses/{course.id}/buy/')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'unauthenticated'


@pytest.mark.django_db
class TestCourseVideo:
    """Video upload path and signed links."""

    def test_owner_sets_video_path(self, teacher_client, course):
        response = teacher_client.put(
            f'/api/courses/{course.id}/video/', {'video_path': 'courses/1/intro.mp4'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        course.refresh_from_db()
        assert course.video_path == 'courses/1/intro.mp4'

    def test_other_user_cannot_set_video_path(self, student_client, course):
        response = student_client.put(
            f'/api/courses/{course.id}/video/', {'video_path': 'hijack.mp4'}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_buyer_gets_signed_link(self, student_client, student_user, course):
        ledger.update_course_video(course.teacher_id, course.id, 'courses/intro.mp4')
        ledger.buy_course(student_user.id, course.id)

        response = student_client.get(f'/api/courses/{course.id}/video-url/')

        assert response.status_code == status.HTTP_200_OK
        assert '/courses/intro.mp4?token=' in response.data['url']
        assert 'expires_at' in response.data

        token = response.data['url'].split('token=', 1)[1]
        access = student_client.get('/api/videos/access/', {'token': token})
        assert access.status_code == status.HTTP_200_OK
        assert access.data == {
            'course_id': course.id,
            'user_id': student_user.id,
            'path': 'courses/intro.mp4',
        }

    def test_non_buyer_is_denied(self, student_client, course):
        ledger.update_course_video(course.teacher_id, course.id, 'courses/intro.mp4')

        response = student_client.get(f'/api/courses/{course.id}/video-url/')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_owner_can_watch_own_video(self, teacher_user, course):
        ledger.update_course_video(teacher_user.id, course.id, 'courses/intro.mp4')

        result = ledger.get_video_access_url(teacher_user.id, course.id)

        assert ledger.resolve_video_token(result['token'])['course_id'] == course.id

    def test_course_without_video(self, teacher_user, course):
        with pytest.raises(InvalidArgument):
            ledger.get_video_access_url(teacher_user.id, course.id)

    def test_unknown_course(self, student_user):
        with pytest.raises(NotFound):
            ledger.get_video_access_url(student_user.id, 999999)

    def test_tampered_token(self, api_client):
        response = api_client.get('/api/videos/access/', {'token': 'abc:def:ghi'})

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == 'permission_denied'

    def test_expired_token(self, teacher_user, course, settings):
        ledger.update_course_video(teacher_user.id, course.id, 'courses/intro.mp4')
        token = ledger.get_video_access_url(teacher_user.id, course.id)['token']
        settings.VIDEO_URL_MAX_AGE = -1

        with pytest.raises(PermissionDenied):
            ledger.resolve_video_token(token)
