# backend/app/core/constants.py
import re
from enum import Enum, IntEnum
from typing import Dict, FrozenSet, List


class ScanType(str, Enum):
    FILE = "file"
    URL = "url"
    GITHUB = "github"


class ScanStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ScanSeverity(str, Enum):
    """Coarse, scan-level rollup"""
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


class SeverityLevel(str, Enum):
    """Per-vulnerability rating"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class UserRole(str, Enum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"


class DiscountKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class RegistryCodeType(IntEnum):
    """`type` field of the external code registry"""
    PLAN = 1
    DISCOUNT = 2


class CodeValidationError(IntEnum):
    CODE_REQUIRED = 0
    CODE_NOT_FOUND = 1
    CODE_WRONG_KIND = 2
    CODE_ALREADY_USED = 3
    INTERNAL_ERROR = 4


class ToastTier(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    SUCCESS = "success"


TERMINAL_STATUSES: FrozenSet[ScanStatus] = frozenset({ScanStatus.COMPLETED, ScanStatus.FAILED})

# Allowed lifecycle moves; a retry is always a new scan
SCAN_TRANSITIONS: Dict[ScanStatus, FrozenSet[ScanStatus]] = {
    ScanStatus.PENDING: frozenset({ScanStatus.PROCESSING, ScanStatus.FAILED}),
    ScanStatus.PROCESSING: frozenset({ScanStatus.COMPLETED, ScanStatus.FAILED}),
    ScanStatus.COMPLETED: frozenset(),
    ScanStatus.FAILED: frozenset(),
}

MB = 1024 * 1024

# Plan limits
FREE_SCANS_PER_MONTH = 5
PLAN_LIMITS = {
    "free": {
        "max_scans_per_month": FREE_SCANS_PER_MONTH,
        "max_file_size": 50 * MB,
        "github_scans": False,
        "pdf_export": False,
    },
    "pro": {
        "max_scans_per_month": -1,  # Unlimited
        "max_file_size": 600 * MB,
        "github_scans": True,
        "pdf_export": True,
    },
}

UPGRADE_URL = "/pricing"

MAX_URL_LENGTH = 2048

ALLOWED_FILE_EXTENSIONS: FrozenSet[str] = frozenset({
    "js", "ts", "jsx", "tsx", "py", "html", "css", "json", "txt", "php",
    "rb", "java", "go", "rs", "c", "cpp", "cs", "yml", "yaml", "xml",
    "toml", "ini", "env", "tf", "dockerfile", "kt", "swift", "sh", "bash",
    "ps1", "bat", "sql", "md",
})

GITHUB_REPO_PATTERN = re.compile(
    r"^https://github\.com/(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?(?:/.*)?$"
)

# File extension -> language name used in the analysis prompt
LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    "js": "JavaScript",
    "jsx": "JavaScript (React)",
    "ts": "TypeScript",
    "tsx": "TypeScript (React)",
    "py": "Python",
    "php": "PHP",
    "java": "Java",
    "go": "Go",
    "rs": "Rust",
    "c": "C",
    "cpp": "C++",
    "cs": "C#",
    "rb": "Ruby",
    "kt": "Kotlin",
    "swift": "Swift",
    "sh": "Shell Script",
    "bash": "Bash Script",
    "ps1": "PowerShell",
    "sql": "SQL",
    "yml": "YAML Config",
    "yaml": "YAML Config",
    "json": "JSON",
    "xml": "XML",
    "toml": "TOML",
    "ini": "INI Config",
    "env": "Environment Config",
    "dockerfile": "Docker",
    "tf": "Terraform",
}

# Categories shown in the scan confirmation summary
SCAN_CHECK_CATEGORIES: List[str] = [
    "SQL Injection",
    "Cross-Site Scripting (XSS)",
    "CSRF and other OWASP Top 10 vulnerabilities",
]

OWASP_WEB_TOP_10 = [
    "A01:2021-Broken Access Control",
    "A02:2021-Cryptographic Failures",
    "A03:2021-Injection",
    "A04:2021-Insecure Design",
    "A05:2021-Security Misconfiguration",
    "A06:2021-Vulnerable and Outdated Components",
    "A07:2021-Identification and Authentication Failures",
    "A08:2021-Software and Data Integrity Failures",
    "A09:2021-Security Logging and Monitoring Failures",
    "A10:2021-Server-Side Request Forgery",
]
