"""
Test suite for booking endpoints.

Tests cover:
- Booking creation through the API (price rounding, id, conflicts)
- Input validation and error codes
- Booking detail access for participants only
- Status updates with refunds
- Listing the user's bookings by role and status
"""

import pytest
from rest_framework import status

from core import ledger
from core.models import Booking, User
from tests.conftest import auth_header

BOOKINGS_URL = '/api/bookings/'
START = '2024-01-01T10:00:00Z'


def booking_payload(teacher, **overrides):
    data = {
        'teacher_id': teacher.id,
        'start_time': START,
        'price_per_hour': 50,
        'duration_minutes': 90,
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
class TestBookingCreateApi:
    """POST /api/bookings/"""

    def test_create_booking(self, student_client, student_user, teacher_user):
        response = student_client.post(BOOKINGS_URL, booking_payload(teacher_user), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data == {
            'booking_id': f'{student_user.id}_{teacher_user.id}_1704103200000',
            'total_price': 75,
        }
        student_user.refresh_from_db()
        teacher_user.refresh_from_db()
        assert student_user.coins == 925
        assert teacher_user.coins == 1075

    def test_fractional_price_rounds_up(self, student_client, teacher_user):
        response = student_client.post(
            BOOKINGS_URL,
            booking_payload(teacher_user, price_per_hour='50', duration_minutes=45),
            format='json',
        )

        assert response.data['total_price'] == 38

    def test_duration_defaults_to_an_hour(self, student_client, teacher_user):
        data = booking_payload(teacher_user)
        del data['duration_minutes']

        response = student_client.post(BOOKINGS_URL, data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['total_price'] == 50

    def test_double_booking(self, student_client, teacher_user, another_student):
        ledger.create_booking(another_student.id, teacher_user.id, START, 50)

        response = student_client.post(BOOKINGS_URL, booking_payload(teacher_user), format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data == {
            'detail': 'This time slot is already booked.',
            'code': 'already_exists',
        }

    def test_insufficient_coins(self, student_client, student_user, teacher_user):
        User.objects.filter(pk=student_user.id).update(coins=10)

        response = student_client.post(BOOKINGS_URL, booking_payload(teacher_user), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'failed_precondition'

    def test_self_booking(self, teacher_client, teacher_user):
        response = teacher_client.post(BOOKINGS_URL, booking_payload(teacher_user), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_argument'

    def test_unknown_teacher(self, student_client):
        response = student_client.post(
            BOOKINGS_URL, {'teacher_id': 999999, 'start_time': START, 'price_per_hour': 50},
            format='json',
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['code'] == 'not_found'

    @pytest.mark.parametrize('field', ['teacher_id', 'start_time', 'price_per_hour'])
    def test_missing_field(self, student_client, teacher_user, field):
        data = booking_payload(teacher_user)
        del data[field]

        response = student_client.post(BOOKINGS_URL, data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_argument'
        assert field in response.data['errors']

    def test_naive_start_time(self, student_client, teacher_user):
        response = student_client.post(
            BOOKINGS_URL, booking_payload(teacher_user, start_time='2024-01-01T10:00:00'),
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_argument'

    def test_zero_price(self, student_client, teacher_user):
        response = student_client.post(
            BOOKINGS_URL, booking_payload(teacher_user, price_per_hour=0), format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_requires_authentication(self, api_client, teacher_user):
        response = api_client.post(BOOKINGS_URL, booking_payload(teacher_user), format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'unauthenticated'
        assert not Booking.objects.exists()


@pytest.mark.django_db
class TestBookingDetailApi:
    """GET /api/bookings/<id>/"""

    def test_participant_sees_booking(self, student_client, student_user, teacher_user):
        booking_id = ledger.create_booking(student_user.id, teacher_user.id, START, 50)['booking_id']

        response = student_client.get(f'{BOOKINGS_URL}{booking_id}/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['id'] == booking_id
        assert response.data['student_avatar'] == 'SS'
        assert response.data['teacher_avatar'] == 'TT'
        assert response.data['other_party'] == {
            'id': teacher_user.id,
            'display_name': 'Tina Teacher',
            'avatar': 'TT',
        }
        assert response.data['meeting_link'].endswith(booking_id)

    def test_outsider_is_denied(self, api_client, student_user, another_student, teacher_user):
        booking_id = ledger.create_booking(student_user.id, teacher_user.id, START, 50)['booking_id']
        api_client.credentials(HTTP_AUTHORIZATION=auth_header(another_student))

        response = api_client.get(f'{BOOKINGS_URL}{booking_id}/')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_booking(self, student_client):
        response = student_client.get(f'{BOOKINGS_URL}1_2_3/')

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestBookingStatusApi:
    """PUT/PATCH /api/bookings/<id>/status/"""

    def test_student_cancel_refunds(self, student_client, student_user, teacher_user):
        booking_id = ledger.create_booking(student_user.id, teacher_user.id, START, 50, 90)['booking_id']

        response = student_client.put(
            f'{BOOKINGS_URL}{booking_id}/status/', {'status': 'cancelled'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'refunded': True}
        student_user.refresh_from_db()
        teacher_user.refresh_from_db()
        assert student_user.coins == 1000
        assert teacher_user.coins == 1000

    def test_teacher_completes_with_patch(self, teacher_client, student_user, teacher_user):
        booking_id = ledger.create_booking(student_user.id, teacher_user.id, START, 50)['booking_id']

        response = teacher_client.patch(
            f'{BOOKINGS_URL}{booking_id}/status/', {'status': 'completed'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'refunded': False}
        assert Booking.objects.get(pk=booking_id).status == 'completed'

    def test_cannot_cancel_completed(self, student_client, student_user, teacher_user):
        booking_id = ledger.create_booking(student_user.id, teacher_user.id, START, 50)['booking_id']
        ledger.update_booking_status(teacher_user.id, booking_id, 'completed')

        response = student_client.put(
            f'{BOOKINGS_URL}{booking_id}/status/', {'status': 'cancelled'}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'failed_precondition'

    def test_outsider_cannot_update(self, api_client, student_user, another_student, teacher_user):
        booking_id = ledger.create_booking(student_user.id, teacher_user.id, START, 50)['booking_id']
        api_client.credentials(HTTP_AUTHORIZATION=auth_header(another_student))

        response = api_client.put(
            f'{BOOKINGS_URL}{booking_id}/status/', {'status': 'cancelled'}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == 'permission_denied'

    def test_invalid_status(self, student_client, student_user, teacher_user):
        booking_id = ledger.create_booking(student_user.id, teacher_user.id, START, 50)['booking_id']

        response = student_client.put(
            f'{BOOKINGS_URL}{booking_id}/status/', {'status': 'scheduled'}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'status' in response.data['errors']

    def test_unknown_booking(self, student_client):
        response = student_client.put(
            f'{BOOKINGS_URL}1_2_3/status/', {'status': 'cancelled'}, format='json'
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestMyBookingsApi:
    """GET /api/bookings/mine/"""

    @pytest.fixture
    def bookings(self, student_user, another_student, teacher_user, another_teacher):
        as_student = ledger.create_booking(
            student_user.id, teacher_user.id, '2024-01-02T10:00:00Z', 50
        )['booking_id']
        earlier = ledger.create_booking(
            student_user.id, another_teacher.id, '2024-01-01T10:00:00Z', 50
        )['booking_id']
        other = ledger.create_booking(
            another_student.id, teacher_user.id, '2024-01-03T10:00:00Z', 50
        )['booking_id']
        ledger.update_booking_status(student_user.id, earlier, 'completed')
        return {'as_student': as_student, 'earlier': earlier, 'other': other}

    def test_student_bookings_sorted_by_start(self, student_client, bookings):
        response = student_client.get(f'{BOOKINGS_URL}mine/')

        assert response.status_code == status.HTTP_200_OK
        ids = [b['id'] for b in response.data['results']]
        assert ids == [bookings['earlier'], bookings['as_student']]
        assert response.data['count'] == 2

    def test_filter_by_status(self, student_client, bookings):
        response = student_client.get(f'{BOOKINGS_URL}mine/', {'status': 'scheduled'})

        assert [b['id'] for b in response.data['results']] == [bookings['as_student']]

    def test_teacher_role(self, teacher_client, bookings):
        response = teacher_client.get(f'{BOOKINGS_URL}mine/', {'role': 'teacher'})

        ids = [b['id'] for b in response.data['results']]
        assert ids == [bookings['as_student'], bookings['other']]
        assert response.data['results'][0]['other_party']['display_name'] == 'Sam Student'

    def test_teacher_has_no_student_bookings(self, teacher_client, bookings):
        response = teacher_client.get(f'{BOOKINGS_URL}mine/', {'role': 'student'})

        assert response.data['results'] == []

    def test_invalid_role(self, student_client, bookings):
        response = student_client.get(f'{BOOKINGS_URL}mine/', {'role': 'admin'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_argument'

    def test_requires_authentication(self, api_client):
        response = api_client.get(f'{BOOKINGS_URL}mine/')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'unauthenticated'
