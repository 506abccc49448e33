"""
Common utility functions and helpers.
"""
import re
import uuid


def sanitize_filename_fragment(text: str) -> str:
    """
    Make a string safe for use inside a file name.

    Args:
        text: Raw string (e.g. a matriculation number)

    Returns:
        The string with every character outside [A-Za-z0-9] replaced by "_"
    """
    return re.sub(r'[^A-Za-z0-9]', '_', text)


def generate_job_id() -> str:
    """
    Generate an opaque, globally unique job identifier.

    Returns:
        32-character hex string
    """
    return uuid.uuid4().hex


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
