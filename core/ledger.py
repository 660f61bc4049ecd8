"""
Coin ledger for SkillCoin Connect.

Every procedure in this module is one atomic unit of work: it re-reads the
records it touches inside ``transaction.atomic()``, row-locks the affected users
with ``select_for_update()`` and either commits all of its writes or none.

Users are always locked in ascending primary-key order so two transactions
touching the same pair of users cannot deadlock on lock order. If the database
still reports a deadlock or lock-wait timeout, the whole unit is retried up to
``LEDGER_TRANSACTION_RETRIES`` times and then surfaced as ``Aborted``.

Coin balances only move through ``transfer()``.
"""

import functools
import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from fractions import Fraction

from django.conf import settings
from django.core import signing
from django.db import IntegrityError, OperationalError, connection, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .exceptions import (
    Aborted,
    AlreadyExists,
    FailedPrecondition,
    InvalidArgument,
    NotFound,
    PermissionDenied,
)
from .models import Booking, Course, Follow, Purchase, Review, User
from .validators import MAX_SKILL_LENGTH, normalize_skill

logger = logging.getLogger(__name__)


# MySQL ER_LOCK_DEADLOCK and ER_LOCK_WAIT_TIMEOUT
RETRYABLE_ERROR_CODES = (1213, 1205)

RETRYABLE_ERROR_MARKERS = (
    'deadlock',
    'could not serialize',
    'database is locked',
    'lock wait timeout',
)

VIDEO_TOKEN_SALT = 'core.ledger.video-access'


def _is_retryable_error(exc):
    """Return True if an OperationalError is a deadlock or lock timeout."""
    code = exc.args[0] if exc.args else None
    if code in RETRYABLE_ERROR_CODES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RETRYABLE_ERROR_MARKERS)


def ledger_transaction(func):
    """
    Run a ledger procedure inside ``transaction.atomic()``.

    Retries the whole procedure when the database aborts it because of lock
    contention. When already inside an outer atomic block the procedure runs
    once, since a deadlock has rolled back the outer transaction as well.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if connection.in_atomic_block:
            attempts = 1
        else:
            attempts = max(1, settings.LEDGER_TRANSACTION_RETRIES)

        for attempt in range(1, attempts + 1):
            try:
                with transaction.atomic():
                    return func(*args, **kwargs)
            except OperationalError as exc:
                if not _is_retryable_error(exc):
                    raise
                if attempt < attempts:
                    logger.warning(
                        f"{func.__name__}: lock contention on attempt "
                        f"{attempt}/{attempts}, retrying: {exc}"
                    )
                    continue
                logger.error(
                    f"{func.__name__}: aborted after {attempts} attempt(s): {exc}"
                )
                raise Aborted() from exc

    return wrapper


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------

def _require_id(value, field):
    """Coerce a record identifier to int or raise InvalidArgument."""
    if value is None or value == '' or isinstance(value, bool):
        raise InvalidArgument(f'{field} is required.')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f'{field} must be a valid identifier.')


def _positive_int(value, field):
    if isinstance(value, bool):
        raise InvalidArgument(f'{field} must be a positive integer.')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f'{field} must be a positive integer.')
    if number != value and str(number) != str(value).strip():
        raise InvalidArgument(f'{field} must be a positive integer.')
    if number <= 0:
        raise InvalidArgument(f'{field} must be a positive integer.')
    return number


def _positive_number(value, field):
    """Parse a positive number exactly, as a Decimal."""
    if isinstance(value, bool):
        raise InvalidArgument(f'{field} must be a positive number.')
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidArgument(f'{field} must be a positive number.')
    if not number.is_finite() or number <= 0:
        raise InvalidArgument(f'{field} must be a positive number.')
    return number


def _parse_start_time(value):
    """Accept an aware datetime or an ISO-8601 string ("Z" suffix allowed)."""
    if isinstance(value, datetime):
        start = value
    elif isinstance(value, str):
        try:
            start = parse_datetime(value.strip().replace('Z', '+00:00'))
        except ValueError:
            start = None
        if start is None:
            raise InvalidArgument('start_time must be an ISO-8601 datetime.')
    else:
        raise InvalidArgument('start_time must be an ISO-8601 datetime.')

    if timezone.is_naive(start):
        raise InvalidArgument('start_time must include a timezone offset.')
    return start


def booking_total_price(price_per_hour, duration_minutes):
    """
    Total coins for a session: ceil(price_per_hour * duration_minutes / 60).

    Computed with exact rational arithmetic so 50/h for 45 minutes is 38.
    """
    exact = Fraction(Decimal(str(price_per_hour))) * duration_minutes / 60
    return math.ceil(exact)


def running_average(old_rating, old_count, new_rating):
    """Fold one more rating into an average over old_count ratings."""
    return (old_rating * old_count + new_rating) / (old_count + 1)


def clamp_rating(value):
    """Round a rating to the nearest integer and clamp it into [1, 5]."""
    if isinstance(value, bool):
        raise InvalidArgument('rating must be a number.')
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument('rating must be a number.')
    if math.isnan(number):
        raise InvalidArgument('rating must be a number.')
    if math.isinf(number):
        return 5 if number > 0 else 1
    return max(1, min(5, math.floor(number + 0.5)))


def _lock_users(*user_ids):
    """
    Lock the given users in ascending primary-key order.

    Returns:
        dict: user id -> locked User, missing ids are absent
    """
    ids = sorted(set(user_ids))
    return {
        user.pk: user
        for user in User.objects.select_for_update().filter(pk__in=ids).order_by('pk')
    }


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------

def transfer(from_user, to_user, amount, insufficient_message='Insufficient coins.'):
    """
    Move ``amount`` coins from one locked user to another.

    Must be called inside the caller's transaction with both rows already
    locked via ``select_for_update()``.

    Raises:
        InvalidArgument: amount is not a non-negative integer or users match
        FailedPrecondition: from_user cannot cover the amount
    """
    if not connection.in_atomic_block:
        raise RuntimeError('transfer() must run inside transaction.atomic().')

    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidArgument('Transfer amount must be a non-negative integer.')

    if from_user.pk == to_user.pk:
        raise InvalidArgument('Cannot transfer coins to the same user.')

    if from_user.coins < amount:
        logger.warning(
            f"Transfer rejected: user {from_user.pk} has {from_user.coins} coins, "
            f"needs {amount}"
        )
        raise FailedPrecondition(insufficient_message)

    # Only the balance columns are written
    now = timezone.now()
    User.objects.filter(pk=from_user.pk).update(coins=F('coins') - amount, updated_at=now)
    User.objects.filter(pk=to_user.pk).update(coins=F('coins') + amount, updated_at=now)
    from_user.coins -= amount
    to_user.coins += amount

    logger.info(
        f"Transferred {amount} coins from user {from_user.pk} to user {to_user.pk}"
    )


@ledger_transaction
def buy_course(student_id, course_id):
    """
    Purchase a course for its listed price.

    Returns:
        dict: {'purchase_id': str}

    Raises:
        NotFound: course, student or teacher does not exist
        AlreadyExists: student already owns the course
        InvalidArgument: teacher buying their own course
        FailedPrecondition: not enough coins
    """
    student_id = _require_id(student_id, 'student_id')
    course_id = _require_id(course_id, 'course_id')

    course = Course.objects.filter(pk=course_id).first()
    if course is None:
        raise NotFound('Course not found.')

    users = _lock_users(student_id, course.teacher_id)
    student = users.get(student_id)
    teacher = users.get(course.teacher_id)
    if student is None:
        raise NotFound('Student not found.')
    if teacher is None:
        raise NotFound('Teacher not found.')

    purchase_id = Purchase.make_id(student_id, course_id)
    if Purchase.objects.filter(pk=purchase_id).exists():
        logger.warning(f"Duplicate purchase attempt {purchase_id}")
        raise AlreadyExists('You have already purchased this course.')

    if student.pk == teacher.pk:
        raise InvalidArgument('You cannot buy your own course.')

    transfer(student, teacher, course.price, 'Insufficient coins to buy this course.')

    Purchase.objects.create(
        id=purchase_id,
        student=student,
        teacher=teacher,
        course=course,
        price=course.price,
    )

    logger.info(
        f"Purchase {purchase_id} committed: student {student.pk} paid "
        f"{course.price} coins to teacher {teacher.pk}"
    )
    return {'purchase_id': purchase_id}


@ledger_transaction
def create_booking(student_id, teacher_id, start_time, price_per_hour, duration_minutes=60):
    """
    Book and pay for a session with a teacher.

    Returns:
        dict: {'booking_id': str, 'total_price': int}

    Raises:
        InvalidArgument: missing or malformed input, or booking oneself
        NotFound: student or teacher does not exist
        FailedPrecondition: not enough coins
        AlreadyExists: the teacher already has a booking at start_time
    """
    student_id = _require_id(student_id, 'student_id')
    if teacher_id in (None, '') or start_time in (None, '') or price_per_hour in (None, ''):
        raise InvalidArgument('teacher_id, start_time and price_per_hour are required.')

    teacher_id = _require_id(teacher_id, 'teacher_id')
    start = _parse_start_time(start_time)
    rate = _positive_number(price_per_hour, 'price_per_hour')
    if duration_minutes is None:
        duration_minutes = 60
    duration = _positive_int(duration_minutes, 'duration_minutes')
    try:
        end = start + timedelta(minutes=duration)
    except OverflowError:
        raise InvalidArgument('start_time/duration_minutes out of range.')

    if student_id == teacher_id:
        raise InvalidArgument('You cannot book a session with yourself.')

    total_price = booking_total_price(rate, duration)

    users = _lock_users(student_id, teacher_id)
    student = users.get(student_id)
    teacher = users.get(teacher_id)
    if student is None:
        raise NotFound('Student not found.')
    if teacher is None:
        raise NotFound('Teacher not found.')

    if Booking.objects.filter(teacher_id=teacher_id, start_time=start).exists():
        logger.warning(f"Slot {start.isoformat()} already booked for teacher {teacher_id}")
        raise AlreadyExists('This time slot is already booked.')

    transfer(student, teacher, total_price, 'Insufficient coins for this booking.')

    booking_id = Booking.make_id(student_id, teacher_id, start)
    try:
        with transaction.atomic():
            Booking.objects.create(
                id=booking_id,
                student=student,
                teacher=teacher,
                start_time=start,
                end_time=end,
                duration_minutes=duration,
                total_price=total_price,
                status=Booking.STATUS_SCHEDULED,
                meeting_link=f'{settings.MEETING_LINK_BASE}{booking_id}',
            )
    except IntegrityError as exc:
        logger.warning(f"Slot race lost for booking {booking_id}: {exc}")
        raise AlreadyExists('This time slot is already booked.') from exc

    logger.info(
        f"Booking {booking_id} committed: student {student_id} paid {total_price} "
        f"coins to teacher {teacher_id}"
    )
    return {'booking_id': booking_id, 'total_price': total_price}


@ledger_transaction
def update_booking_status(user_id, booking_id, status):
    """
    Complete or cancel a booking.

    A student cancelling a scheduled booking gets the full price back from the
    teacher. Completed and cancelled are terminal.

    Returns:
        dict: {'refunded': bool}

    Raises:
        InvalidArgument: status is not 'completed' or 'cancelled'
        NotFound: booking does not exist
        PermissionDenied: caller is not on the booking
        FailedPrecondition: booking is already in the other terminal state,
            or the teacher cannot cover the refund
    """
    user_id = _require_id(user_id, 'user_id')
    if not booking_id:
        raise InvalidArgument('booking_id is required.')
    if status not in (Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED):
        raise InvalidArgument("status must be 'completed' or 'cancelled'.")

    booking = Booking.objects.filter(pk=booking_id).first()
    if booking is None:
        raise NotFound('Booking not found.')

    if user_id not in (booking.student_id, booking.teacher_id):
        raise PermissionDenied('You are not a participant in this booking.')

    users = _lock_users(booking.student_id, booking.teacher_id)
    booking = Booking.objects.select_for_update().get(pk=booking_id)

    if booking.status == status:
        return {'refunded': False}

    is_valid, error_message = booking.can_transition_to(status)
    if not is_valid:
        logger.warning(f"Booking {booking_id}: {error_message}")
        raise FailedPrecondition(error_message)

    refunded = False
    if status == Booking.STATUS_CANCELLED and user_id == booking.student_id:
        student = users.get(booking.student_id)
        teacher = users.get(booking.teacher_id)
        if student is None or teacher is None:
            raise NotFound('Booking participant not found.')
        transfer(
            teacher,
            student,
            booking.total_price,
            'The teacher no longer holds enough coins to refund this booking.',
        )
        refunded = True

    booking.status = status
    booking.save(update_fields=['status', 'updated_at'])

    logger.info(
        f"Booking {booking_id} set to {status} by user {user_id} "
        f"(refunded={refunded})"
    )
    return {'refunded': refunded}


@ledger_transaction
def toggle_follow_teacher(student_id, teacher_id, follow):
    """
    Follow or unfollow a teacher. Idempotent.

    Returns:
        dict: {'is_following': bool}
    """
    student_id = _require_id(student_id, 'student_id')
    teacher_id = _require_id(teacher_id, 'teacher_id')
    if not isinstance(follow, bool):
        raise InvalidArgument('follow must be a boolean.')

    if student_id == teacher_id:
        raise InvalidArgument('You cannot follow yourself.')

    users = _lock_users(student_id, teacher_id)
    student = users.get(student_id)
    teacher = users.get(teacher_id)
    if student is None or teacher is None:
        raise NotFound('User not found.')

    follow_id = Follow.make_id(student_id, teacher_id)
    exists = Follow.objects.filter(pk=follow_id).exists()

    if follow and not exists:
        Follow.objects.create(id=follow_id, student=student, teacher=teacher)
        teacher.followers += 1
        student.following += 1
    elif not follow and exists:
        Follow.objects.filter(pk=follow_id).delete()
        teacher.followers = max(0, teacher.followers - 1)
        student.following = max(0, student.following - 1)
    else:
        return {'is_following': follow}

    now = timezone.now()
    User.objects.filter(pk=teacher.pk).update(followers=teacher.followers, updated_at=now)
    User.objects.filter(pk=student.pk).update(following=student.following, updated_at=now)

    logger.info(
        f"User {student_id} {'followed' if follow else 'unfollowed'} teacher {teacher_id}"
    )
    return {'is_following': follow}


@ledger_transaction
def create_review(student_id, teacher_id, rating, comment, course_id=None):
    """
    Review a teacher and fold the rating into the running averages.

    The review row and the aggregate updates commit together.

    Returns:
        dict: {'review_id': int}

    Raises:
        InvalidArgument: bad rating, blank comment or reviewing oneself
        NotFound: teacher does not exist
        FailedPrecondition: no purchase of the course or completed booking
    """
    student_id = _require_id(student_id, 'student_id')
    teacher_id = _require_id(teacher_id, 'teacher_id')
    rating = clamp_rating(rating)
    if not isinstance(comment, str) or not comment.strip():
        raise InvalidArgument('comment is required.')
    comment = comment.strip()
    if course_id == '':
        course_id = None
    if course_id is not None:
        course_id = _require_id(course_id, 'course_id')

    if student_id == teacher_id:
        raise InvalidArgument('You cannot review yourself.')

    users = _lock_users(student_id, teacher_id)
    student = users.get(student_id)
    teacher = users.get(teacher_id)
    if teacher is None:
        raise NotFound('Teacher not found.')
    if student is None:
        raise NotFound('Student not found.')

    if course_id is not None:
        eligible = Purchase.objects.filter(
            pk=Purchase.make_id(student_id, course_id),
            course__teacher_id=teacher_id,
        ).exists()
    else:
        eligible = Booking.objects.filter(
            student_id=student_id,
            teacher_id=teacher_id,
            status=Booking.STATUS_COMPLETED,
        ).exists()

    if not eligible:
        logger.warning(
            f"Review rejected: user {student_id} has no qualifying interaction "
            f"with teacher {teacher_id}"
        )
        raise FailedPrecondition(
            'You can only review teachers you have purchased a course from '
            'or completed a session with.'
        )

    course = None
    if course_id is not None:
        course = Course.objects.select_for_update().filter(pk=course_id).first()

    review = Review.objects.create(
        teacher=teacher,
        student=student,
        course=course,
        rating=rating,
        comment=comment,
    )

    teacher.rating = running_average(teacher.rating, teacher.total_reviews, rating)
    teacher.total_reviews += 1
    User.objects.filter(pk=teacher.pk).update(
        rating=teacher.rating, total_reviews=teacher.total_reviews, updated_at=timezone.now()
    )

    if course is not None:
        course.rating = running_average(course.rating, course.total_reviews, rating)
        course.total_reviews += 1
        Course.objects.filter(pk=course.pk).update(
            rating=course.rating, total_reviews=course.total_reviews
        )

    logger.info(
        f"Review {review.pk} committed: user {student_id} rated teacher "
        f"{teacher_id} {rating}/5 (new average {teacher.rating:.2f})"
    )
    return {'review_id': review.pk}


def send_booking_reminders(now=None, window_minutes=None):
    """
    Flag scheduled bookings starting within the reminder window.

    Best-effort bulk update; not money-affecting.

    Returns:
        int: number of bookings flagged
    """
    now = now or timezone.now()
    if window_minutes is None:
        window_minutes = settings.BOOKING_REMINDER_WINDOW_MINUTES
    window_end = now + timedelta(minutes=window_minutes)

    count = Booking.objects.filter(
        status=Booking.STATUS_SCHEDULED,
        reminder_sent=False,
        start_time__gte=now,
        start_time__lte=window_end,
    ).update(reminder_sent=True, reminder_sent_at=now, updated_at=now)

    logger.info(
        f"Booking reminder sweep flagged {count} booking(s) starting before "
        f"{window_end.isoformat()}"
    )
    return count


# ---------------------------------------------------------------------------
# Courses and profiles
# ---------------------------------------------------------------------------

@ledger_transaction
def create_course(teacher_id, title, description, price, skill_tags=None, video_url=None):
    """
    Publish a course. Only teachers may publish.

    Returns:
        Course: the created course
    """
    teacher_id = _require_id(teacher_id, 'teacher_id')
    teacher = User.objects.select_for_update().filter(pk=teacher_id).first()
    if teacher is None:
        raise NotFound('Teacher not found.')
    if not teacher.is_teacher():
        raise PermissionDenied('Only teachers can create courses.')

    title = (title or '').strip()
    description = (description or '').strip()
    if not title or not description:
        raise InvalidArgument('title and description are required.')

    if isinstance(price, bool):
        raise InvalidArgument('price must be a non-negative integer.')
    try:
        price = int(price)
    except (TypeError, ValueError):
        raise InvalidArgument('price must be a non-negative integer.')
    if price < 0:
        raise InvalidArgument('price must be a non-negative integer.')

    tags = []
    for tag in skill_tags or []:
        tag = normalize_skill(tag)
        if not tag:
            continue
        if len(tag) > MAX_SKILL_LENGTH:
            raise InvalidArgument(f'Skill tags cannot exceed {MAX_SKILL_LENGTH} characters.')
        if tag not in tags:
            tags.append(tag)

    course = Course.objects.create(
        teacher=teacher,
        title=title,
        description=description,
        price=price,
        skill_tags=tags,
        video_url=video_url or None,
    )

    logger.info(f"Course {course.pk} created by teacher {teacher_id}")
    return course


@ledger_transaction
def update_course_video(user_id, course_id, video_path):
    """Attach an uploaded video path to a course. Owner only."""
    user_id = _require_id(user_id, 'user_id')
    course_id = _require_id(course_id, 'course_id')
    video_path = (video_path or '').strip()
    if not video_path:
        raise InvalidArgument('video_path is required.')

    course = Course.objects.select_for_update().filter(pk=course_id).first()
    if course is None:
        raise NotFound('Course not found.')
    if course.teacher_id != user_id:
        raise PermissionDenied('You can only update your own courses.')

    course.video_path = video_path
    course.save(update_fields=['video_path'])

    logger.info(f"Course {course_id} video updated by user {user_id}")
    return course


def get_video_access_url(user_id, course_id):
    """
    Build a time-limited link to a course video.

    Requires a purchase of the course, or ownership of it.

    Returns:
        dict: {'url': str, 'expires_at': datetime}
    """
    user_id = _require_id(user_id, 'user_id')
    course_id = _require_id(course_id, 'course_id')

    course = Course.objects.filter(pk=course_id).first()
    if course is None:
        raise NotFound('Course not found.')

    owns_course = course.teacher_id == user_id
    if not owns_course and not Purchase.objects.filter(
        pk=Purchase.make_id(user_id, course_id)
    ).exists():
        raise PermissionDenied('You must purchase this course to access the video.')

    if not course.video_path:
        raise InvalidArgument('This course has no video.')

    token = signing.TimestampSigner(salt=VIDEO_TOKEN_SALT).sign_object({
        'course_id': course.pk,
        'user_id': user_id,
        'path': course.video_path,
    })
    expires_at = timezone.now() + timedelta(seconds=settings.VIDEO_URL_MAX_AGE)
    url = f"{settings.VIDEO_BASE_URL.rstrip('/')}/{course.video_path.lstrip('/')}?token={token}"

    logger.info(f"Issued video link for course {course_id} to user {user_id}")
    return {'url': url, 'token': token, 'expires_at': expires_at}


def resolve_video_token(token):
    """
    Verify a video access token.

    Returns:
        dict: {'course_id', 'user_id', 'path'}

    Raises:
        PermissionDenied: token is expired or has been tampered with
    """
    try:
        return signing.TimestampSigner(salt=VIDEO_TOKEN_SALT).unsign_object(
            token, max_age=settings.VIDEO_URL_MAX_AGE
        )
    except signing.SignatureExpired:
        raise PermissionDenied('This video link has expired.')
    except signing.BadSignature:
        raise PermissionDenied('Invalid video link.')


def _clean_skill(skill):
    if not isinstance(skill, str) or not normalize_skill(skill):
        raise InvalidArgument('A valid skill is required.')
    skill = normalize_skill(skill)
    if len(skill) > MAX_SKILL_LENGTH:
        raise InvalidArgument(f'Skill names cannot exceed {MAX_SKILL_LENGTH} characters.')
    return skill


@ledger_transaction
def add_user_skill(user_id, skill):
    """Add a skill to a user's profile. Returns the updated skill list."""
    user_id = _require_id(user_id, 'user_id')
    skill = _clean_skill(skill)
    user = User.objects.select_for_update().filter(pk=user_id).first()
    if user is None:
        raise NotFound('User not found.')
    if user.add_skill(skill):
        logger.info(f"User {user_id} added skill '{skill}'")
    return list(user.skills)


@ledger_transaction
def remove_user_skill(user_id, skill):
    """Remove a skill from a user's profile. Returns the updated skill list."""
    user_id = _require_id(user_id, 'user_id')
    skill = _clean_skill(skill)
    user = User.objects.select_for_update().filter(pk=user_id).first()
    if user is None:
        raise NotFound('User not found.')
    if user.remove_skill(skill):
        logger.info(f"User {user_id} removed skill '{skill}'")
    return list(user.skills)


PROFILE_FIELDS = ('bio', 'display_name', 'price_per_hour')


@ledger_transaction
def update_user_profile(user_id, **fields):
    """
    Update editable profile fields (bio, display_name, price_per_hour).

    Ledger counters and coins are never editable here.
    """
    user_id = _require_id(user_id, 'user_id')
    unknown = set(fields) - set(PROFILE_FIELDS)
    if unknown:
        raise InvalidArgument(f"Cannot update field(s): {', '.join(sorted(unknown))}.")

    user = User.objects.select_for_update().filter(pk=user_id).first()
    if user is None:
        raise NotFound('User not found.')

    update_fields = []
    if 'bio' in fields:
        user.bio = (fields['bio'] or '').strip()
        update_fields.append('bio')

    if 'display_name' in fields:
        display_name = (fields['display_name'] or '').strip()
        if not display_name:
            raise InvalidArgument('display_name cannot be empty.')
        user.display_name = display_name
        update_fields.append('display_name')

    if 'price_per_hour' in fields:
        if not user.is_teacher():
            raise InvalidArgument('Only teachers can set a price per hour.')
        user.price_per_hour = _positive_int(fields['price_per_hour'], 'price_per_hour')
        update_fields.append('price_per_hour')

    if update_fields:
        user.save(update_fields=[*update_fields, 'updated_at'])
        logger.info(f"User {user_id} updated profile fields: {', '.join(update_fields)}")
    return user
