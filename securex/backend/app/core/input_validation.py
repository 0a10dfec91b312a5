# backend/app/core/input_validation.py
"""
Input validation for scan targets and redirect URLs
Every check runs before any external call is made
"""

from typing import Iterable, Optional
from urllib.parse import urlparse

from app.core.constants import (
    ALLOWED_FILE_EXTENSIONS,
    GITHUB_REPO_PATTERN,
    MAX_URL_LENGTH,
    MB,
    PLAN_LIMITS,
)
from app.core.exceptions import InputValidationError

ALLOWED_SCHEMES = ("http", "https")


def validate_scan_url(url: str) -> str:
    """Absolute http(s) URL with a host, at most MAX_URL_LENGTH characters"""
    if not isinstance(url, str):
        raise InputValidationError(message_key="scan.invalid_url")

    url = url.strip()
    if len(url) > MAX_URL_LENGTH:
        raise InputValidationError(message_key="scan.url_too_long")

    try:
        parsed = urlparse(url)
    except ValueError:
        raise InputValidationError(message_key="scan.invalid_url")

    if not parsed.scheme or not parsed.netloc:
        raise InputValidationError(message_key="scan.invalid_url")

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise InputValidationError(message_key="scan.url_scheme")

    if not parsed.hostname:
        raise InputValidationError(message_key="scan.invalid_url")

    return url


def file_extension(filename: str) -> str:
    """Lower-cased extension; a bare `Dockerfile` counts as `dockerfile`"""
    name = filename.strip().rsplit("/", 1)[-1]
    if name.lower() == "dockerfile":
        return "dockerfile"
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def max_file_size(is_pro: bool) -> int:
    return PLAN_LIMITS["pro" if is_pro else "free"]["max_file_size"]


def validate_upload(filename: str, size: int, is_pro: bool) -> str:
    """Check size against the plan ceiling, then the extension allow-list"""
    limit = max_file_size(is_pro)
    if size < 0 or size > limit:
        raise InputValidationError(
            message_key="scan.file_too_large",
            params={"max_mb": limit // MB},
        )

    if file_extension(filename) not in ALLOWED_FILE_EXTENSIONS:
        raise InputValidationError(message_key="scan.unsupported_file")

    return filename


def validate_github_repo(url: str) -> str:
    url = (url or "").strip()
    if len(url) > MAX_URL_LENGTH or not GITHUB_REPO_PATTERN.match(url):
        raise InputValidationError(message_key="scan.invalid_github")
    return url


def validate_return_url(
    return_url: str,
    request_origin: Optional[str],
    allowed_origins: Iterable[str],
    trusted_domain_suffix: Optional[str] = None,
) -> str:
    """
    Accept a checkout return URL only when it points at a known deployment,
    the requesting origin, or the trusted hosting platform.
    """
    return_url = (return_url or "").strip()
    try:
        parsed = urlparse(return_url)
    except ValueError:
        raise InputValidationError(message_key="checkout.invalid_return_url")

    if parsed.scheme not in ALLOWED_SCHEMES or not parsed.hostname:
        raise InputValidationError(message_key="checkout.invalid_return_url")

    origin = f"{parsed.scheme}://{parsed.netloc}"
    hostname = parsed.hostname.lower()

    if origin in {o.rstrip("/") for o in allowed_origins}:
        return return_url.rstrip("/")

    if request_origin and origin == request_origin.rstrip("/"):
        return return_url.rstrip("/")

    if trusted_domain_suffix and hostname.endswith(trusted_domain_suffix.lower()):
        return return_url.rstrip("/")

    raise InputValidationError(message_key="checkout.invalid_return_url")
