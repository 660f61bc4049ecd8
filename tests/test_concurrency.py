"""
Concurrency tests for the coin ledger.

Tests cover:
- Retrying a unit of work on deadlock or lock-wait errors
- Giving up with Aborted after the configured attempts
- No retry when already inside an outer transaction
- Concurrent purchases and bookings racing for the same coins or slot
- A purchase that runs after a competing one has committed
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest import mock

import pytest
from django.db import OperationalError, connections, transaction
from django.test import TransactionTestCase, override_settings

from core import ledger
from core.exceptions import Aborted, AlreadyExists, FailedPrecondition, LedgerError
from core.models import Booking, Purchase, User


def flaky(failures, error=None):
    """Return a callable that raises `failures` times before succeeding."""
    calls = {'count': 0}
    error = error or OperationalError(1213, 'Deadlock found when trying to get lock')

    def operation():
        calls['count'] += 1
        if calls['count'] <= failures:
            raise error
        return 'ok'

    return ledger.ledger_transaction(operation), calls


class TestRetryableErrors:
    """_is_retryable_error() recognizes lock contention."""

    @pytest.mark.parametrize('error', [
        OperationalError(1213, 'Deadlock found when trying to get lock'),
        OperationalError(1205, 'Lock wait timeout exceeded'),
        OperationalError('database is locked'),
        OperationalError('deadlock detected'),
        OperationalError('could not serialize access due to concurrent update'),
    ])
    def test_retryable(self, error):
        assert ledger._is_retryable_error(error) is True

    @pytest.mark.parametrize('error', [
        OperationalError(2006, 'MySQL server has gone away'),
        OperationalError('no such table: core_user'),
    ])
    def test_not_retryable(self, error):
        assert ledger._is_retryable_error(error) is False


@override_settings(LEDGER_TRANSACTION_RETRIES=3)
class LedgerRetryTests(TransactionTestCase):
    """ledger_transaction retries the whole unit of work."""

    def test_retries_until_success(self):
        operation, calls = flaky(2)

        self.assertEqual(operation(), 'ok')
        self.assertEqual(calls['count'], 3)

    def test_aborts_after_last_attempt(self):
        operation, calls = flaky(5)

        with self.assertRaises(Aborted):
            operation()
        self.assertEqual(calls['count'], 3)

    def test_other_operational_errors_propagate(self):
        operation, calls = flaky(1, OperationalError('no such table: core_user'))

        with self.assertRaises(OperationalError):
            operation()
        self.assertEqual(calls['count'], 1)

    def test_no_retry_inside_outer_transaction(self):
        operation, calls = flaky(1)

        with transaction.atomic():
            with self.assertRaises(Aborted):
                operation()
        self.assertEqual(calls['count'], 1)

    def test_ledger_errors_are_not_retried(self):
        student = User.objects.create_user(
            username='s@test.com', email='s@test.com', password='password', display_name='S'
        )

        with mock.patch.object(ledger, '_lock_users', wraps=ledger._lock_users) as lock_users:
            with self.assertRaises(LedgerError):
                ledger.create_booking(student.id, student.id + 1000, '2024-01-01T10:00:00Z', 50)
        self.assertEqual(lock_users.call_count, 1)


class ConcurrentLedgerTests(TransactionTestCase):
    """Concurrent writers against the shared test database."""

    def setUp(self):
        self.teacher = User.objects.create_user(
            username='teacher@test.com', email='teacher@test.com', password='password',
            role='teacher', display_name='Teacher'
        )
        self.student = User.objects.create_user(
            username='student@test.com', email='student@test.com', password='password',
            display_name='Student'
        )

    def run_one(self, func, *args):
        try:
            return func(*args)
        except LedgerError as exc:
            return exc
        finally:
            connections.close_all()

    def run_concurrently(self, *calls):
        with ThreadPoolExecutor(max_workers=len(calls)) as executor:
            return list(executor.map(lambda call: self.run_one(call[0], *call[1]), calls))

    def test_concurrent_purchases_never_overdraw(self):
        first = ledger.create_course(self.teacher.id, title='A', description='A.', price=600)
        second = ledger.create_course(self.teacher.id, title='B', description='B.', price=600)

        results = self.run_concurrently(
            (ledger.buy_course, (self.student.id, first.id)),
            (ledger.buy_course, (self.student.id, second.id)),
        )

        failures = [result for result in results if isinstance(result, LedgerError)]
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], FailedPrecondition)

        self.student.refresh_from_db()
        self.teacher.refresh_from_db()
        self.assertEqual(self.student.coins, 400)
        self.assertEqual(self.teacher.coins, 1600)
        self.assertEqual(Purchase.objects.count(), 1)

    def test_concurrent_bookings_for_same_slot(self):
        other = User.objects.create_user(
            username='other@test.com', email='other@test.com', password='password',
            display_name='Other'
        )
        start = '2024-01-01T10:00:00Z'

        results = self.run_concurrently(
            (ledger.create_booking, (self.student.id, self.teacher.id, start, 50)),
            (ledger.create_booking, (other.id, self.teacher.id, start, 50)),
        )

        failures = [result for result in results if isinstance(result, LedgerError)]
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], AlreadyExists)
        self.assertEqual(Booking.objects.count(), 1)

        total = sum(User.objects.values_list('coins', flat=True))
        self.assertEqual(total, 3000)
        self.teacher.refresh_from_db()
        self.assertEqual(self.teacher.coins, 1050)

    def test_purchase_waits_for_competing_purchase_to_commit(self):
        first = ledger.create_course(self.teacher.id, title='A', description='A.', price=600)
        second = ledger.create_course(self.teacher.id, title='B', description='B.', price=600)
        locked = threading.Event()
        release = threading.Event()
        lock_users = ledger._lock_users

        def hold_first_lock(*user_ids):
            users = lock_users(*user_ids)
            if not locked.is_set():
                locked.set()
                release.wait(timeout=5)
            return users

        with mock.patch.object(ledger, '_lock_users', side_effect=hold_first_lock):
            with ThreadPoolExecutor(max_workers=2) as executor:
                winner = executor.submit(self.run_one, ledger.buy_course, self.student.id, first.id)
                self.assertTrue(locked.wait(timeout=5))
                loser = executor.submit(self.run_one, ledger.buy_course, self.student.id, second.id)
                release.set()
                winner_result, loser_result = winner.result(), loser.result()

        self.assertEqual(winner_result, {'purchase_id': f'{self.student.id}_{first.id}'})
        self.assertIsInstance(loser_result, FailedPrecondition)

        self.student.refresh_from_db()
        self.assertEqual(self.student.coins, 400)
        self.assertFalse(Purchase.objects.filter(course=second).exists())
