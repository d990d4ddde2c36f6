"""
Input validation rules for registration and playlist edits.

Each validator raises ValidationError with a message meant for the user.
"""

import re
from typing import Any, Optional
from urllib.parse import urlparse

from .errors import ValidationError

MIN_USERNAME_LENGTH = 6
MIN_PASSWORD_LENGTH = 6
MIN_RATING = 1
MAX_RATING = 10

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
LETTER_RE = re.compile(r"[A-Za-z]")
NON_LETTER_RE = re.compile(r"[^A-Za-z]")
DIGIT_RE = re.compile(r"\d")


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or value.strip() == ""


def validate_username(username: Any) -> None:
    if not isinstance(username, str) or len(username) < MIN_USERNAME_LENGTH:
        raise ValidationError(
            f"Username must be at least {MIN_USERNAME_LENGTH} characters long."
        )


def validate_email(email: Any) -> None:
    if not isinstance(email, str) or not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format.")


def validate_password(password: Any) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )
    if not LETTER_RE.search(password) or not NON_LETTER_RE.search(password):
        raise ValidationError(
            "Password must contain at least one letter and one non-letter character."
        )


def validate_first_name(first_name: Any) -> None:
    if _is_blank(first_name):
        raise ValidationError("First name cannot be empty.")
    if DIGIT_RE.search(first_name):
        raise ValidationError("First name cannot contain digits.")


def validate_avatar(avatar: Any) -> None:
    """Accept a local .svg avatar filename or an absolute URL."""
    if _is_blank(avatar):
        raise ValidationError("Image URL cannot be empty.")
    if avatar.endswith(".svg"):
        return
    parsed = urlparse(avatar)
    if not parsed.scheme or not parsed.netloc:
        raise ValidationError("Invalid image URL format.")


def validate_playlist_name(name: Any) -> str:
    """Return the trimmed name."""
    if _is_blank(name):
        raise ValidationError("Playlist name is required and cannot be empty.")
    return name.strip()


def validate_youtube_id(youtube_id: Any) -> str:
    """Return the trimmed video id."""
    if _is_blank(youtube_id):
        raise ValidationError("youtubeId is required.")
    return youtube_id.strip()


def validate_rating(rating: Any) -> int:
    """
    Coerce and bound-check a rating.

    Integers and integral strings ("7") are accepted; bools, floats with a
    fractional part and anything non-numeric are rejected.
    """
    if rating is None or (isinstance(rating, str) and rating.strip() == ""):
        raise ValidationError("Rating is required.")

    value: Optional[int] = None
    if isinstance(rating, bool):
        value = None
    elif isinstance(rating, int):
        value = rating
    elif isinstance(rating, float) and rating.is_integer():
        value = int(rating)
    elif isinstance(rating, str):
        try:
            value = int(rating.strip())
        except ValueError:
            value = None

    if value is None or value < MIN_RATING or value > MAX_RATING:
        raise ValidationError(
            f"Rating must be a number between {MIN_RATING} and {MAX_RATING}."
        )
    return value
