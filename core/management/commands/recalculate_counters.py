# Recalculate Counters Management Command
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from core.models import Course, Follow, Review, User
from core.signals import review_stats

RATING_TOLERANCE = 0.001


class Command(BaseCommand):
    help = (
        'Rebuilds the denormalized follower, following, review and rating '
        'counters of users and courses from Follow and Review records.'
    )

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Run the command without saving changes to the database.',
        )
        parser.add_argument(
            '--users-only',
            action='store_true',
            help='Recalculate only user counters.',
        )
        parser.add_argument(
            '--courses-only',
            action='store_true',
            help='Recalculate only course counters.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if batch_size <= 0:
            raise CommandError('--batch-size must be a positive integer.')
        if options['users_only'] and options['courses_only']:
            raise CommandError('--users-only and --courses-only are mutually exclusive.')

        if not options['courses_only']:
            self.recalculate_users(dry_run, batch_size)

        if not options['users_only']:
            self.recalculate_courses(dry_run, batch_size)

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Recalculation completed successfully.'))

    def recalculate_users(self, dry_run, batch_size):
        self.stdout.write('Recalculating user counters...')
        user_ids = list(User.objects.order_by('pk').values_list('pk', flat=True))
        fields = ['followers', 'following', 'rating', 'total_reviews']
        count = 0
        changed = 0

        for start in range(0, len(user_ids), batch_size):
            batch_ids = user_ids[start:start + batch_size]
            # Rows stay locked until the batch is written
            with transaction.atomic():
                users = User.objects.select_for_update().filter(pk__in=batch_ids).order_by('pk')
                updates = []

                for user in users:
                    new_followers = Follow.objects.filter(teacher=user).count()
                    new_following = Follow.objects.filter(student=user).count()
                    new_rating, new_total = review_stats(Review.objects.filter(teacher=user))

                    if (
                        user.followers != new_followers
                        or user.following != new_following
                        or user.total_reviews != new_total
                        or abs(user.rating - new_rating) > RATING_TOLERANCE
                    ):
                        if dry_run:
                            self.stdout.write(
                                f'  [DRY-RUN] User {user.id} ({user.email}): '
                                f'followers {user.followers} -> {new_followers}, '
                                f'following {user.following} -> {new_following}, '
                                f'rating {user.rating:.2f} -> {new_rating:.2f}, '
                                f'reviews {user.total_reviews} -> {new_total}'
                            )
                        user.followers = new_followers
                        user.following = new_following
                        user.rating = new_rating
                        user.total_reviews = new_total
                        updates.append(user)
                        changed += 1

                    count += 1
                    if count % 100 == 0:
                        self.stdout.write(f'Processed {count} users...')

                if updates and not dry_run:
                    User.objects.bulk_update(updates, fields)

        self.stdout.write(f'Processed {count} users total, {changed} out of date.')

    def recalculate_courses(self, dry_run, batch_size):
        self.stdout.write('Recalculating course counters...')
        course_ids = list(Course.objects.order_by('pk').values_list('pk', flat=True))
        count = 0
        changed = 0

        for start in range(0, len(course_ids), batch_size):
            batch_ids = course_ids[start:start + batch_size]
            with transaction.atomic():
                courses = Course.objects.select_for_update().filter(pk__in=batch_ids).order_by('pk')
                updates = []

                for course in courses:
                    new_rating, new_total = review_stats(Review.objects.filter(course=course))

                    if (
                        course.total_reviews != new_total
                        or abs(course.rating - new_rating) > RATING_TOLERANCE
                    ):
                        if dry_run:
                            self.stdout.write(
                                f'  [DRY-RUN] Course {course.id} ({course.title}): '
                                f'rating {course.rating:.2f} -> {new_rating:.2f}, '
                                f'reviews {course.total_reviews} -> {new_total}'
                            )
                        course.rating = new_rating
                        course.total_reviews = new_total
                        updates.append(course)
                        changed += 1

                    count += 1
                    if count % 100 == 0:
                        self.stdout.write(f'Processed {count} courses...')

                if updates and not dry_run:
                    Course.objects.bulk_update(updates, ['rating', 'total_reviews'])

        self.stdout.write(f'Processed {count} courses total, {changed} out of date.')
