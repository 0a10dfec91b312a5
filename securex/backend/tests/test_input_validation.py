# tests/test_input_validation.py
"""
Input validation tests
Tests: scan URLs, uploads, GitHub references, checkout return URLs
"""

import pytest

from app.core.constants import MB, MAX_URL_LENGTH
from app.core.exceptions import InputValidationError
from app.core.input_validation import (
    file_extension,
    validate_github_repo,
    validate_return_url,
    validate_scan_url,
    validate_upload,
)


class TestScanUrl:
    """Scan target URL checks"""

    def test_accepts_https_url(self):
        assert validate_scan_url("  https://example.com/login  ") == "https://example.com/login"

    @pytest.mark.parametrize("url", ["example.com", "https://", "not a url", ""])
    def test_rejects_malformed_url(self, url):
        with pytest.raises(InputValidationError) as exc:
            validate_scan_url(url)
        assert exc.value.message_key == "scan.invalid_url"

    @pytest.mark.parametrize("url", ["ftp://example.com/file", "javascript://example.com/%0aalert(1)"])
    def test_rejects_other_schemes(self, url):
        with pytest.raises(InputValidationError) as exc:
            validate_scan_url(url)
        assert exc.value.message_key == "scan.url_scheme"

    def test_rejects_url_over_length_limit(self):
        url = "https://example.com/" + "a" * MAX_URL_LENGTH
        with pytest.raises(InputValidationError) as exc:
            validate_scan_url(url)
        assert exc.value.message_key == "scan.url_too_long"


class TestUploads:
    """File upload checks"""

    def test_extension_is_lower_cased(self):
        assert file_extension("src/App.TSX") == "tsx"

    def test_bare_dockerfile_counts(self):
        assert file_extension("deploy/Dockerfile") == "dockerfile"

    def test_no_extension(self):
        assert file_extension("Makefile") == ""

    def test_free_plan_size_ceiling(self):
        with pytest.raises(InputValidationError) as exc:
            validate_upload("app.py", 50 * MB + 1, is_pro=False)
        assert exc.value.message_key == "scan.file_too_large"
        assert exc.value.params == {"max_mb": 50}

    def test_pro_plan_allows_larger_files(self):
        assert validate_upload("app.py", 500 * MB, is_pro=True) == "app.py"

    def test_pro_plan_size_ceiling(self):
        with pytest.raises(InputValidationError) as exc:
            validate_upload("app.py", 600 * MB + 1, is_pro=True)
        assert exc.value.params == {"max_mb": 600}

    def test_size_is_checked_before_extension(self):
        with pytest.raises(InputValidationError) as exc:
            validate_upload("movie.mp4", 51 * MB, is_pro=False)
        assert exc.value.message_key == "scan.file_too_large"

    def test_unsupported_extension(self):
        with pytest.raises(InputValidationError) as exc:
            validate_upload("movie.mp4", 10, is_pro=False)
        assert exc.value.message_key == "scan.unsupported_file"


class TestGithubRepo:

    @pytest.mark.parametrize("url", [
        "https://github.com/octo/hello-world",
        "https://github.com/octo/hello.world.git",
        "https://github.com/octo/repo/tree/main/src",
    ])
    def test_accepts_repository_urls(self, url):
        assert validate_github_repo(url) == url

    @pytest.mark.parametrize("url", [
        "http://github.com/octo/repo",
        "https://gitlab.com/octo/repo",
        "https://github.com/octo",
        "",
    ])
    def test_rejects_other_urls(self, url):
        with pytest.raises(InputValidationError) as exc:
            validate_github_repo(url)
        assert exc.value.message_key == "scan.invalid_github"


class TestReturnUrl:
    """Checkout return URL allow-list"""

    ALLOWED = ["http://localhost:5173", "https://securex.example"]

    def test_allowed_origin(self):
        assert validate_return_url("https://securex.example/", None, self.ALLOWED) == "https://securex.example"

    def test_request_origin(self):
        url = validate_return_url("https://preview.example.net", "https://preview.example.net", self.ALLOWED)
        assert url == "https://preview.example.net"

    def test_trusted_domain_suffix(self):
        url = validate_return_url("https://my-app.lovable.app", None, self.ALLOWED, ".lovable.app")
        assert url == "https://my-app.lovable.app"

    def test_lookalike_host_rejected(self):
        with pytest.raises(InputValidationError) as exc:
            validate_return_url("https://lovable.app.evil.com", None, self.ALLOWED, ".lovable.app")
        assert exc.value.message_key == "checkout.invalid_return_url"

    @pytest.mark.parametrize("url", ["javascript:alert(1)", "//evil.com", "https://evil.com", ""])
    def test_unknown_or_malformed_rejected(self, url):
        with pytest.raises(InputValidationError):
            validate_return_url(url, "https://securex.example", self.ALLOWED)
