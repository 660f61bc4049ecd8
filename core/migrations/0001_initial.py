import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import core.models
import core.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('display_name', models.CharField(blank=True, default='', help_text='Name shown to other users.', max_length=150, verbose_name='display name')),
                ('bio', models.TextField(blank=True, default="I'm new to SkillCoin Connect!", verbose_name='bio')),
                ('skills', models.JSONField(blank=True, default=list, help_text='List of skills the user offers or wants to learn.', validators=[core.validators.validate_skill_list], verbose_name='skills')),
                ('role', models.CharField(choices=[('student', 'Student'), ('teacher', 'Teacher')], default='student', max_length=10, verbose_name='role')),
                ('price_per_hour', models.PositiveIntegerField(blank=True, help_text='Session rate in coins. Only teachers have one.', null=True, verbose_name='price per hour')),
                ('coins', models.PositiveIntegerField(default=core.models.default_starting_coins, help_text='Coin balance. Only changed by ledger transactions.', verbose_name='coins')),
                ('following', models.PositiveIntegerField(default=0, verbose_name='following')),
                ('followers', models.PositiveIntegerField(default=0, verbose_name='followers')),
                ('total_reviews', models.PositiveIntegerField(default=0, verbose_name='total reviews')),
                ('rating', models.FloatField(default=0.0, help_text='Running average of received review ratings.', validators=[django.core.validators.MinValueValidator(0.0, message='Rating cannot be negative.'), django.core.validators.MaxValueValidator(5.0, message='Rating cannot exceed 5.')], verbose_name='rating')),
                ('profile_image', models.ImageField(blank=True, null=True, upload_to=core.models.user_profile_image_upload_path, validators=[core.validators.validate_profile_image], verbose_name='profile image')),
                ('last_seen', models.DateTimeField(blank=True, null=True, verbose_name='last seen')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['role'], name='user_role_idx')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('coins__gte', 0)), name='user_coins_non_negative'),
                    models.CheckConstraint(condition=models.Q(('rating__gte', 0), ('rating__lte', 5)), name='user_rating_in_range'),
                ],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Course',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200, verbose_name='title')),
                ('description', models.TextField(verbose_name='description')),
                ('price', models.PositiveIntegerField(help_text='Price in coins', verbose_name='price')),
                ('skill_tags', models.JSONField(blank=True, default=list, validators=[core.validators.validate_skill_list], verbose_name='skill tags')),
                ('video_url', models.URLField(blank=True, max_length=500, null=True, verbose_name='video URL')),
                ('video_path', models.CharField(blank=True, default='', help_text='Storage path of the uploaded course video', max_length=500, verbose_name='video path')),
                ('rating', models.FloatField(default=0.0, validators=[django.core.validators.MinValueValidator(0.0), django.core.validators.MaxValueValidator(5.0)], verbose_name='rating')),
                ('total_reviews', models.PositiveIntegerField(default=0, verbose_name='total reviews')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('teacher', models.ForeignKey(help_text='Teacher who published the course', on_delete=django.db.models.deletion.CASCADE, related_name='courses', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'course',
                'verbose_name_plural': 'courses',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['teacher'], name='course_teacher_idx'),
                    models.Index(fields=['created_at'], name='course_created_idx'),
                    models.Index(fields=['title'], name='course_title_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Purchase',
            fields=[
                ('id', models.CharField(editable=False, max_length=64, primary_key=True, serialize=False)),
                ('price', models.PositiveIntegerField(verbose_name='price paid')),
                ('purchased_at', models.DateTimeField(auto_now_add=True, verbose_name='purchased at')),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='purchases', to='core.course')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='purchases', to=settings.AUTH_USER_MODEL)),
                ('teacher', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sales', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'purchase',
                'verbose_name_plural': 'purchases',
                'ordering': ['-purchased_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('student', 'course'), name='unique_purchase_per_student_course'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.CharField(editable=False, max_length=96, primary_key=True, serialize=False)),
                ('start_time', models.DateTimeField(verbose_name='start time')),
                ('end_time', models.DateTimeField(verbose_name='end time')),
                ('duration_minutes', models.PositiveIntegerField(default=60, verbose_name='duration (minutes)')),
                ('total_price', models.PositiveIntegerField(verbose_name='total price')),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='scheduled', max_length=20, verbose_name='status')),
                ('meeting_link', models.URLField(max_length=300, verbose_name='meeting link')),
                ('reminder_sent', models.BooleanField(default=False, verbose_name='reminder sent')),
                ('reminder_sent_at', models.DateTimeField(blank=True, null=True, verbose_name='reminder sent at')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='student_bookings', to=settings.AUTH_USER_MODEL)),
                ('teacher', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='teacher_bookings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'booking',
                'verbose_name_plural': 'bookings',
                'ordering': ['-start_time'],
                'indexes': [
                    models.Index(fields=['student'], name='booking_student_idx'),
                    models.Index(fields=['teacher'], name='booking_teacher_idx'),
                    models.Index(fields=['status', 'start_time'], name='booking_status_start_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('teacher', 'start_time'), name='unique_booking_per_teacher_slot'),
                    models.CheckConstraint(condition=models.Q(('duration_minutes__gt', 0)), name='booking_duration_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1, message='Rating must be at least 1.'), django.core.validators.MaxValueValidator(5, message='Rating must be at most 5.')], verbose_name='rating')),
                ('comment', models.TextField(verbose_name='comment')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('course', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviews', to='core.course')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_given', to=settings.AUTH_USER_MODEL)),
                ('teacher', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'review',
                'verbose_name_plural': 'reviews',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['teacher', 'created_at'], name='review_teacher_created_idx'),
                    models.Index(fields=['course'], name='review_course_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Follow',
            fields=[
                ('id', models.CharField(editable=False, max_length=64, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='following_links', to=settings.AUTH_USER_MODEL)),
                ('teacher', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='follower_links', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'follow',
                'verbose_name_plural': 'follows',
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('student', 'teacher'), name='unique_follow_per_pair'),
                    models.CheckConstraint(condition=models.Q(('student', models.F('teacher')), _negated=True), name='follow_not_self'),
                ],
            },
        ),
    ]
