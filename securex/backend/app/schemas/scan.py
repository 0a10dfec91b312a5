# backend/app/schemas/scan.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

from app.core.constants import ScanSeverity, ScanStatus, ScanType, SeverityLevel, ToastTier


class Vulnerability(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    severity: SeverityLevel
    title: str = ""
    description: str = ""
    location: str = ""
    recommendation: str = ""
    code_example: Optional[str] = None


class ScanSummary(BaseModel):
    total: int = Field(0, ge=0)
    critical: int = Field(0, ge=0)
    high: int = Field(0, ge=0)
    medium: int = Field(0, ge=0)
    low: int = Field(0, ge=0)

    @classmethod
    def from_vulnerabilities(cls, vulnerabilities: List[Vulnerability]) -> "ScanSummary":
        counts = {level: 0 for level in SeverityLevel}
        for vuln in vulnerabilities:
            counts[vuln.severity] += 1
        return cls(
            total=len(vulnerabilities),
            critical=counts[SeverityLevel.CRITICAL],
            high=counts[SeverityLevel.HIGH],
            medium=counts[SeverityLevel.MEDIUM],
            low=counts[SeverityLevel.LOW],
        )

    def is_consistent(self, vulnerabilities: List[Vulnerability]) -> bool:
        return self == ScanSummary.from_vulnerabilities(vulnerabilities)


class ScanResult(BaseModel):
    """Structured report attached to a completed scan"""
    model_config = ConfigDict(extra="ignore")

    vulnerabilities: List[Vulnerability] = []
    summary: ScanSummary = ScanSummary()
    overall_severity: ScanSeverity = ScanSeverity.SAFE

    @classmethod
    def empty(cls) -> "ScanResult":
        return cls(vulnerabilities=[], summary=ScanSummary(), overall_severity=ScanSeverity.SAFE)


class Scan(BaseModel):
    """Row of the `scans` table"""
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    target: str
    scan_type: ScanType
    status: ScanStatus
    severity: Optional[ScanSeverity] = None
    vulnerabilities_count: Optional[int] = 0
    result: Optional[ScanResult] = None
    created_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ScanStatus.COMPLETED, ScanStatus.FAILED)


class FileDescriptor(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    size: int = Field(..., ge=0)


class ScanSubmission(BaseModel):
    """Exactly one of url, file or github_url"""
    url: Optional[str] = None
    file: Optional[FileDescriptor] = None
    github_url: Optional[str] = None
    confirmed: bool = False

    def provided(self) -> List[str]:
        return [
            name for name in ("url", "file", "github_url")
            if getattr(self, name) not in (None, "")
        ]


class ScanConfirmation(BaseModel):
    target: str
    scan_type: ScanType
    checks: List[str]
    free_scans_remaining: Optional[int] = None


class ConfirmedScan(BaseModel):
    scan: Scan
    scans_this_month: int
    message: str


class ScanPresentation(BaseModel):
    icon: str
    label: str
    tone: str


class ScanNotification(BaseModel):
    tier: ToastTier
    message: str
    description: Optional[str] = None
    os_notification: bool = False
    os_title: Optional[str] = None
    os_body: Optional[str] = None


class ScanView(Scan):
    presentation: ScanPresentation


class ScanStats(BaseModel):
    total_scans: int
    total_vulnerabilities: int
    safe_scans: int


class ScanFeedMessage(BaseModel):
    event: str
    scans: List[ScanView]
    notification: Optional[ScanNotification] = None


class StartAnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target: str
    scan_type: ScanType = Field(..., alias="scanType")
    scan_id: str = Field(..., alias="scanId")

