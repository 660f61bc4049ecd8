import os
import sys
import django
import random
from datetime import timedelta
from django.utils import timezone
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'skillcoin_connect.settings')
django.setup()

from core import ledger
from core.exceptions import LedgerError
from core.models import Booking, User

fake = Faker()

SKILLS = [
    'python', 'javascript', 'guitar', 'piano', 'spanish', 'french', 'cooking',
    'photography', 'drawing', 'yoga', 'chess', 'public speaking', 'excel',
]


def create_user(role):
    email = fake.unique.email()
    return User.objects.create_user(
        username=email,
        email=email,
        password='password123',
        display_name=fake.name(),
        role=role,
        skills=random.sample(SKILLS, random.randint(1, 4)),
    )


def create_users(num_students=10, num_teachers=5):
    print(f"Creating {num_students} students and {num_teachers} teachers...")

    students = [create_user(User.ROLE_STUDENT) for _ in range(num_students)]
    teachers = [create_user(User.ROLE_TEACHER) for _ in range(num_teachers)]

    print(f"Created {len(students)} students and {len(teachers)} teachers.")
    return students, teachers


def create_courses(teachers):
    print("Creating courses...")
    courses = []

    for teacher in teachers:
        # Each teacher publishes 1-3 courses
        for _ in range(random.randint(1, 3)):
            tags = random.sample(teacher.skills or SKILLS, min(2, len(teacher.skills or SKILLS)))
            course = ledger.create_course(
                teacher.id,
                title=f"{random.choice(['Intro to', 'Mastering', 'Practical'])} {tags[0].title()}",
                description=fake.paragraph(),
                price=random.choice([50, 100, 150, 200, 300]),
                skill_tags=tags,
            )
            courses.append(course)

    print(f"Created {len(courses)} courses.")
    return courses


def buy_courses(students, courses):
    print("Buying courses...")
    purchases = []

    for student in students:
        # Each student buys 0-3 courses, as long as their coins last
        for course in random.sample(courses, min(len(courses), random.randint(0, 3))):
            try:
                purchases.append(ledger.buy_course(student.id, course.id))
            except LedgerError as e:
                print(f"  Skipped purchase of course {course.id} by {student.email}: {e.message}")

    print(f"Created {len(purchases)} purchases.")
    return purchases


def create_bookings(students, teachers):
    print("Creating bookings...")
    bookings = []

    for student in students:
        # Each student books 0-3 sessions
        for _ in range(random.randint(0, 3)):
            teacher = random.choice(teachers)
            start_time = (timezone.now() + timedelta(days=random.randint(-30, 30))).replace(
                minute=0, second=0, microsecond=0
            )
            try:
                result = ledger.create_booking(
                    student.id,
                    teacher.id,
                    start_time,
                    teacher.price_per_hour,
                    random.choice([30, 60, 90]),
                )
            except LedgerError as e:
                print(f"  Skipped booking for {student.email}: {e.message}")
                continue

            # Sessions in the past are either completed or cancelled
            if start_time < timezone.now():
                status = random.choice([Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED])
                ledger.update_booking_status(student.id, result['booking_id'], status)
            bookings.append(result['booking_id'])

    print(f"Created {len(bookings)} bookings.")
    return bookings


def create_reviews():
    print("Creating reviews...")
    reviews = []

    completed = Booking.objects.filter(status=Booking.STATUS_COMPLETED)
    pairs = set(completed.values_list('student_id', 'teacher_id'))

    for student_id, teacher_id in pairs:
        # 70% chance of leaving a review
        if random.random() < 0.7:
            reviews.append(ledger.create_review(
                student_id,
                teacher_id,
                rating=random.randint(3, 5),
                comment=fake.paragraph(),
            ))

    print(f"Created {len(reviews)} reviews.")
    return reviews


def create_follows(students, teachers):
    print("Creating follows...")
    count = 0

    for student in students:
        for teacher in random.sample(teachers, random.randint(0, len(teachers))):
            ledger.toggle_follow_teacher(student.id, teacher.id, True)
            count += 1

    print(f"Created {count} follows.")


def main():
    print("Starting database population...")

    students, teachers = create_users(num_students=20, num_teachers=10)
    courses = create_courses(teachers)
    buy_courses(students, courses)
    create_bookings(students, teachers)
    create_reviews()
    create_follows(students, teachers)

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
