# Booking Reminder Sweep Management Command
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from core.ledger import send_booking_reminders


class Command(BaseCommand):
    help = (
        'Flags scheduled bookings that start within the reminder window. '
        'Intended to be run by cron every 15 minutes.'
    )

    def add_arguments(self, parser):
        parser.add_argument(
            '--window-minutes',
            type=int,
            default=settings.BOOKING_REMINDER_WINDOW_MINUTES,
            help='Flag bookings starting within this many minutes from now.',
        )

    def handle(self, *args, **options):
        window_minutes = options['window_minutes']
        if window_minutes <= 0:
            raise CommandError('--window-minutes must be a positive integer.')

        count = send_booking_reminders(window_minutes=window_minutes)

        self.stdout.write(self.style.SUCCESS(
            f'Flagged {count} booking(s) for reminders.'
        ))
