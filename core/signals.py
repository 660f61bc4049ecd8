"""
Django signals that keep review aggregates consistent.

Reviews are only ever created through ``core.ledger.create_review``, which
updates the running averages itself. Deleting a review (from the admin, or by
cascade when the reviewer's account is removed) bypasses the ledger, so the
receivers here rebuild the affected teacher and course aggregates from the
remaining reviews.
"""

import logging
from django.db import transaction
from django.db.models import Avg, Count
from django.db.models.signals import post_delete
from django.dispatch import receiver

from .models import Course, Review, User

logger = logging.getLogger(__name__)


def review_stats(reviews):
    """
    Aggregate a review queryset.

    Returns:
        tuple: (average rating as float, review count)
    """
    stats = reviews.aggregate(avg=Avg('rating'), total=Count('id'))
    return float(stats['avg'] or 0.0), stats['total'] or 0


def recompute_teacher_rating(teacher_id):
    """Rebuild a teacher's rating and total_reviews from their reviews."""
    teacher = User.objects.select_for_update().filter(pk=teacher_id).first()
    if teacher is None:
        return None

    teacher.rating, teacher.total_reviews = review_stats(
        Review.objects.filter(teacher_id=teacher_id)
    )
    User.objects.filter(pk=teacher_id).update(
        rating=teacher.rating,
        total_reviews=teacher.total_reviews,
    )
    return teacher


def recompute_course_rating(course_id):
    """Rebuild a course's rating and total_reviews from its reviews."""
    course = Course.objects.select_for_update().filter(pk=course_id).first()
    if course is None:
        return None

    course.rating, course.total_reviews = review_stats(
        Review.objects.filter(course_id=course_id)
    )
    Course.objects.filter(pk=course_id).update(
        rating=course.rating,
        total_reviews=course.total_reviews,
    )
    return course


@receiver(post_delete, sender=Review)
def update_ratings_on_review_delete(sender, instance, **kwargs):
    """
    Signal receiver to update ratings when a review is deleted.

    This signal:
    1. Recalculates the teacher's rating and review count without the review
    2. Does the same for the reviewed course, if any
    3. Resets aggregates to 0 when no reviews remain

    Runs in the deleting transaction, so a failure rolls the deletion back.

    Args:
        sender: The Review model class
        instance: The Review instance that was deleted
        **kwargs: Additional keyword arguments
    """
    try:
        with transaction.atomic():
            teacher = recompute_teacher_rating(instance.teacher_id)

            if instance.course_id:
                recompute_course_rating(instance.course_id)

            if teacher is not None:
                logger.info(
                    f"Updated ratings after deleting review {instance.id}: "
                    f"teacher={teacher.pk}, rating={teacher.rating:.2f}, "
                    f"reviews={teacher.total_reviews}"
                )

    except Exception as e:
        logger.error(
            f"Error updating ratings after deleting review {instance.id}: {e}",
            exc_info=True
        )
        # Re-raise so the deletion rolls back with the aggregate update
        raise
