"""
Tests for course purchases through the coin ledger.

Tests cover:
- Coin conservation between student and teacher
- Purchase record contents
- Insufficient balance
- Duplicate purchases
- Buying one's own course
- Missing records and malformed ids
- The transfer() primitive
"""

import pytest
from types import SimpleNamespace

from core import ledger
from core.exceptions import AlreadyExists, FailedPrecondition, InvalidArgument, NotFound
from core.models import Purchase, User
from tests.conftest import create_test_user


def total_coins():
    return sum(User.objects.values_list('coins', flat=True))


@pytest.mark.django_db
class TestBuyCourse:
    """Successful purchases."""

    def test_purchase_moves_price_from_student_to_teacher(self, student_user, teacher_user, course):
        before = total_coins()

        result = ledger.buy_course(student_user.id, course.id)

        student_user.refresh_from_db()
        teacher_user.refresh_from_db()
        assert result == {'purchase_id': f'{student_user.id}_{course.id}'}
        assert student_user.coins == 850
        assert teacher_user.coins == 1150
        assert total_coins() == before

    def test_purchase_record_is_created(self, student_user, teacher_user, course):
        ledger.buy_course(student_user.id, course.id)

        purchase = Purchase.objects.get(pk=Purchase.make_id(student_user.id, course.id))
        assert purchase.student_id == student_user.id
        assert purchase.teacher_id == teacher_user.id
        assert purchase.course_id == course.id
        assert purchase.price == 150
        assert purchase.purchased_at is not None

    def test_free_course_can_be_bought(self, student_user, teacher_user):
        free_course = ledger.create_course(
            teacher_user.id, title='Free intro', description='Taster.', price=0
        )

        ledger.buy_course(student_user.id, free_course.id)

        student_user.refresh_from_db()
        assert student_user.coins == 1000
        assert Purchase.objects.filter(course=free_course).count() == 1

    def test_string_ids_are_accepted(self, student_user, course):
        result = ledger.buy_course(str(student_user.id), str(course.id))

        assert result['purchase_id'] == f'{student_user.id}_{course.id}'

    def test_sequential_purchases_see_committed_balance(self, student_user, teacher_user):
        first = ledger.create_course(teacher_user.id, title='A', description='A.', price=600)
        second = ledger.create_course(teacher_user.id, title='B', description='B.', price=600)

        ledger.buy_course(student_user.id, first.id)
        with pytest.raises(FailedPrecondition):
            ledger.buy_course(student_user.id, second.id)

        student_user.refresh_from_db()
        assert student_user.coins == 400
        assert Purchase.objects.filter(student=student_user).count() == 1


@pytest.mark.django_db
class TestBuyCourseFailures:
    """Rejected purchases leave every balance unchanged."""

    def test_insufficient_coins(self, teacher_user, course):
        poor_student = create_test_user('poor@test.com')
        User.objects.filter(pk=poor_student.id).update(coins=100)

        with pytest.raises(FailedPrecondition):
            ledger.buy_course(poor_student.id, course.id)

        poor_student.refresh_from_db()
        teacher_user.refresh_from_db()
        assert poor_student.coins == 100
        assert teacher_user.coins == 1000
        assert not Purchase.objects.exists()

    def test_exact_balance_is_enough(self, teacher_user, course):
        student = create_test_user('exact@test.com')
        User.objects.filter(pk=student.id).update(coins=150)

        ledger.buy_course(student.id, course.id)

        student.refresh_from_db()
        assert student.coins == 0

    def test_duplicate_purchase_is_rejected(self, student_user, teacher_user, course):
        ledger.buy_course(student_user.id, course.id)

        with pytest.raises(AlreadyExists):
            ledger.buy_course(student_user.id, course.id)

        student_user.refresh_from_db()
        teacher_user.refresh_from_db()
        assert student_user.coins == 850
        assert teacher_user.coins == 1150
        assert Purchase.objects.count() == 1

    def test_teacher_cannot_buy_own_course(self, teacher_user, course):
        with pytest.raises(InvalidArgument):
            ledger.buy_course(teacher_user.id, course.id)

        teacher_user.refresh_from_db()
        assert teacher_user.coins == 1000

    def test_course_not_found(self, student_user):
        with pytest.raises(NotFound):
            ledger.buy_course(student_user.id, 999999)

    def test_student_not_found(self, course):
        with pytest.raises(NotFound):
            ledger.buy_course(999999, course.id)

    @pytest.mark.parametrize('course_id', [None, '', 'abc', True])
    def test_malformed_course_id(self, student_user, course_id):
        with pytest.raises(InvalidArgument):
            ledger.buy_course(student_user.id, course_id)


@pytest.mark.django_db
class TestTransfer:
    """The transfer() primitive used by every coin-moving operation."""

    def test_transfer_requires_transaction(self, student_user, teacher_user, monkeypatch):
        monkeypatch.setattr(ledger, 'connection', SimpleNamespace(in_atomic_block=False))

        with pytest.raises(RuntimeError):
            ledger.transfer(student_user, teacher_user, 10)

    @pytest.mark.parametrize('amount', [-1, 1.5, '10', True, None])
    def test_invalid_amount(self, student_user, teacher_user, amount):
        with pytest.raises(InvalidArgument):
            ledger.transfer(student_user, teacher_user, amount)

    def test_same_user(self, student_user):
        with pytest.raises(InvalidArgument):
            ledger.transfer(student_user, student_user, 10)

    def test_transfer_conserves_coins(self, student_user, teacher_user):
        before = total_coins()

        ledger.transfer(student_user, teacher_user, 250)

        assert total_coins() == before
        student_user.refresh_from_db()
        assert student_user.coins == 750


@pytest.mark.django_db
class TestLedgerIgnoresProfileFields:
    """Coin and counter updates do not re-validate unrelated profile fields."""

    @pytest.fixture
    def missing_image(self, student_user, teacher_user):
        User.objects.filter(pk__in=[student_user.id, teacher_user.id]).update(
            profile_image='profile_images/missing/gone.png'
        )

    def test_purchase_with_missing_profile_image(self, missing_image, student_user, teacher_user, course):
        ledger.buy_course(student_user.id, course.id)

        student_user.refresh_from_db()
        teacher_user.refresh_from_db()
        assert student_user.coins == 850
        assert teacher_user.coins == 1150

    def test_booking_and_refund_with_missing_profile_image(self, missing_image, student_user, teacher_user):
        booking_id = ledger.create_booking(
            student_user.id, teacher_user.id, '2024-01-01T10:00:00Z', 50
        )['booking_id']

        result = ledger.update_booking_status(student_user.id, booking_id, 'cancelled')

        assert result == {'refunded': True}
        student_user.refresh_from_db()
        assert student_user.coins == 1000

    def test_follow_and_review_with_missing_profile_image(self, missing_image, student_user, teacher_user, course):
        ledger.buy_course(student_user.id, course.id)

        ledger.toggle_follow_teacher(student_user.id, teacher_user.id, True)
        ledger.create_review(student_user.id, teacher_user.id, 4, 'Clear lessons.', course_id=course.id)

        teacher_user.refresh_from_db()
        course.refresh_from_db()
        assert teacher_user.followers == 1
        assert teacher_user.rating == 4.0
        assert teacher_user.total_reviews == 1
        assert course.total_reviews == 1

    def test_transfer_updates_locked_instances(self, student_user, teacher_user):
        ledger.transfer(student_user, teacher_user, 100)

        assert student_user.coins == 900
        assert teacher_user.coins == 1100
