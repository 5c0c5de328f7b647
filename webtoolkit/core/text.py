import re
import secrets


RANDOM_STRING_SOURCE = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_+"

# ASCII only; \d would also match non-Latin digits
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


class SlugError(ValueError):
    """Text could not be turned into a slug."""


class EmptyInputError(SlugError):
    pass


class EmptySlugError(SlugError):
    pass


def random_string(length: int) -> str:
    """Return `length` characters drawn uniformly from RANDOM_STRING_SOURCE.

    Uses the OS CSPRNG through `secrets`; failures of the entropy source
    propagate to the caller.
    """
    if length < 0:
        raise ValueError(f"length must not be negative, got {length}")
    return "".join(secrets.choice(RANDOM_STRING_SOURCE) for _ in range(length))


def slugify(text: str) -> str:
    """Lowercase `text` and collapse every run outside [a-z0-9] into one hyphen.

    - Raises EmptyInputError for an empty string
    - Raises EmptySlugError when no ASCII letter or digit survives
    """
    if text == "":
        raise EmptyInputError("empty string")

    slug = _NON_SLUG_CHARS.sub("-", text.lower()).strip("-")
    if not slug:
        raise EmptySlugError("slug is zero length")

    return slug
