"""
Custom validators for SkillCoin Connect models.
"""

from django.conf import settings
from django.core.exceptions import ValidationError


MAX_SKILL_LENGTH = 50


def normalize_skill(value):
    """
    Normalize a skill or tag string for storage and comparison.

    Skills are compared case-insensitively, so they are stored trimmed and
    lower-cased.
    """
    if not isinstance(value, str):
        return ''
    return ' '.join(value.split()).lower()


def validate_skill(value):
    """
    Validate a single skill string.

    Args:
        value: Skill name

    Raises:
        ValidationError: If the skill is blank or too long
    """
    skill = normalize_skill(value)

    if not skill:
        raise ValidationError(
            'A valid skill name is required.',
            code='blank_skill'
        )

    if len(skill) > MAX_SKILL_LENGTH:
        raise ValidationError(
            f'Skill names cannot exceed {MAX_SKILL_LENGTH} characters.',
            code='skill_too_long'
        )


def validate_skill_list(value):
    """
    Validate a JSON list of skills (user skills or course skill tags).

    Args:
        value: List of skill strings

    Raises:
        ValidationError: If the value is not a list of valid skills
    """
    if value in (None, ''):
        return

    if not isinstance(value, list):
        raise ValidationError(
            'Skills must be provided as a list.',
            code='invalid_skill_list'
        )

    for skill in value:
        validate_skill(skill)


def validate_profile_image(image):
    """
    Validate profile image file.

    Checks:
    - File size (PROFILE_IMAGE_MAX_SIZE, 5MB by default)
    - File extension (jpg, jpeg, png, webp)
    - MIME type when the upload carries one

    Args:
        image: UploadedFile object

    Raises:
        ValidationError: If image is invalid
    """
    if not image:
        return

    max_size = getattr(settings, 'PROFILE_IMAGE_MAX_SIZE', 5 * 1024 * 1024)
    if image.size > max_size:
        raise ValidationError(
            f'Image file size cannot exceed {max_size // (1024 * 1024)}MB. '
            f'Current size: {image.size / (1024 * 1024):.2f}MB',
            code='image_too_large'
        )

    valid_extensions = ['jpg', 'jpeg', 'png', 'webp']
    file_name = image.name.lower()

    if not any(file_name.endswith(f'.{ext}') for ext in valid_extensions):
        raise ValidationError(
            f'Invalid image format. Allowed formats: {", ".join(valid_extensions)}',
            code='invalid_image_format'
        )

    content_type = getattr(image, 'content_type', None)
    if content_type and content_type not in ('image/jpeg', 'image/png', 'image/webp'):
        raise ValidationError(
            f'Invalid image content type: {content_type}',
            code='invalid_content_type'
        )
