# backend/app/services/analysis_service.py
"""
Security analysis of a scan target through an OpenAI-compatible
chat-completions endpoint, and the scan status writes around it.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from app.core.config import settings
from app.core.constants import LANGUAGE_BY_EXTENSION, ScanSeverity, ScanStatus, ScanType
from app.core.exceptions import InvalidTransitionError, SecureXError, UpstreamServiceError
from app.core.input_validation import file_extension
from app.core.logging import logger
from app.db.repositories.scan_repository import ScanRepository
from app.schemas.scan import Scan, ScanResult, ScanSummary

SYSTEM_PROMPT = """You are a senior application security analyst. Review the target you are given for security vulnerabilities, following the OWASP Top 10 and current industry practice, across any programming language or configuration format (JavaScript/TypeScript, Python, PHP, Java, C#, Go, Rust, C/C++, Ruby, shell scripts, SQL, YAML/JSON/XML/TOML/.env, Docker and Kubernetes manifests).

Look in particular for: SQL and command injection, cross-site scripting (reflected, stored, DOM), CSRF, broken authentication and session handling, exposed secrets (API keys, passwords, tokens), XXE, broken access control, insecure direct object references, security misconfiguration and missing security headers, vulnerable dependencies, insufficient logging, path traversal, insecure deserialization, SSRF, weak cryptography, race conditions and memory-safety issues.

Apply language-specific checks, for example: eval/unserialize/include in PHP, prototype pollution and dangerouslySetInnerHTML in JavaScript, pickle/eval/exec/os.system in Python, unsafe reflection and XML parsing in Java, buffer overflows, use-after-free and format strings in C/C++, unsafe variable expansion in shell.

For every finding give its type, severity (critical, high, medium or low), a title, a detailed description, the location or snippet, and a recommendation with a fix written in the same language.

Reply with JSON only, using exactly this structure:
{
  "vulnerabilities": [
    {
      "type": "string",
      "severity": "critical|high|medium|low",
      "title": "string",
      "description": "string",
      "location": "string",
      "recommendation": "string",
      "code_example": "string"
    }
  ],
  "summary": {"total": 0, "critical": 0, "high": 0, "medium": 0, "low": 0},
  "overall_severity": "safe|warning|danger"
}"""

FILE_CHECKS = [
    "Language-specific vulnerabilities",
    "Insecure coding practices",
    "Dangerous function usage",
    "Input validation issues",
    "Authentication and authorization flaws",
    "Data exposure risks",
    "Vulnerable dependencies",
    "Configuration errors",
    "Cryptographic weaknesses",
]

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL | re.IGNORECASE)


def language_for(target: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(file_extension(target), "source code")


def build_user_prompt(target: str, scan_type: ScanType) -> str:
    if scan_type == ScanType.URL:
        return (
            f"Analyze this URL for security vulnerabilities: {target}\n\n"
            "Run a thorough web security review covering common web vulnerabilities, "
            "insecure configuration, exposed sensitive information and API security issues."
        )
    if scan_type == ScanType.GITHUB:
        return (
            f"Analyze this GitHub repository for security vulnerabilities: {target}\n\n"
            "Audit the whole repository for exposed secrets, insecure dependencies, "
            "vulnerable code patterns, misconfiguration and violations of security best practices."
        )

    language = language_for(target)
    checks = "\n".join(f"- {check}" for check in FILE_CHECKS)
    return (
        f"Analyze this {language} file for security vulnerabilities: {target}\n\n"
        f"Run a deep code review specific to {language}, checking for:\n{checks}\n\n"
        f"Give detailed, actionable findings with code examples in {language}."
    )


def derive_overall_severity(summary: ScanSummary) -> ScanSeverity:
    if summary.critical or summary.high:
        return ScanSeverity.DANGER
    if summary.medium or summary.low:
        return ScanSeverity.WARNING
    return ScanSeverity.SAFE


@dataclass
class AnalysisOutcome:
    result: ScanResult
    parsed: bool
    raw: str = ""


def _strip_fences(text: str) -> str:
    match = _FENCE_PATTERN.search(text)
    return match.group(1) if match else text


def parse_analysis_reply(text: Optional[str]) -> AnalysisOutcome:
    """
    Turn the model's reply into a ScanResult.

    Anything that is not a JSON object with a valid vulnerability list yields
    the empty result with parsed=False. A summary that is missing or disagrees
    with the list is recomputed, and overall_severity always follows the
    recomputed counts.
    """
    raw = text or ""
    try:
        data = json.loads(_strip_fences(raw).strip())
        if not isinstance(data, dict):
            raise ValueError("analysis reply is not an object")

        declared_severity = data.pop("overall_severity", None)
        declared_summary = data.pop("summary", None)
        result = ScanResult.model_validate(data)
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning(f"Could not parse analysis reply: {str(e)}")
        return AnalysisOutcome(result=ScanResult.empty(), parsed=False, raw=raw)

    try:
        summary = ScanSummary.model_validate(declared_summary)
    except ValidationError:
        summary = None
    if summary is None or not summary.is_consistent(result.vulnerabilities):
        summary = ScanSummary.from_vulnerabilities(result.vulnerabilities)
    result.summary = summary

    # the counts decide; a missing or contradicting declared severity is replaced
    result.overall_severity = derive_overall_severity(summary)
    if declared_severity is not None and declared_severity != result.overall_severity.value:
        logger.warning(
            f"Declared severity {declared_severity!r} disagrees with findings; using {result.overall_severity.value}"
        )

    return AnalysisOutcome(result=result, parsed=True, raw=raw)


class SecurityAnalyzer:
    """Chat-completions client for the analysis model"""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self._client = client
        self.model = model or settings.AI_MODEL
        self.temperature = settings.AI_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or settings.AI_MAX_TOKENS

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=settings.AI_GATEWAY_API_KEY,
                base_url=settings.AI_GATEWAY_URL,
                timeout=settings.AI_TIMEOUT_SECONDS,
            )
        return self._client

    async def analyze(self, target: str, scan_type: ScanType) -> str:
        """Return the raw reply text; transport and API failures raise UpstreamServiceError"""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(target, scan_type)},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APIError as e:
            logger.error(f"Analysis model call failed for {scan_type.value} target: {str(e)}")
            raise UpstreamServiceError(f"Analysis failed: {str(e)}", service="ai") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class AnalysisService:
    """Owner-checked analysis runs over stored scans"""

    def __init__(self, scans: ScanRepository, analyzer: SecurityAnalyzer):
        self.scans = scans
        self.analyzer = analyzer

    async def start(self, user_id: str, scan_id: str) -> Scan:
        """Ownership check, then pending -> processing; nothing is written for a foreign scan"""
        await self.scans.get_owned(scan_id, user_id)
        scan = await self.scans.transition(scan_id, ScanStatus.PROCESSING)
        logger.info(
            f"Starting security analysis for {scan.scan_type.value}",
            extra={"user_id": user_id, "scan_id": scan_id},
        )
        return scan

    async def complete(self, scan: Scan) -> ScanResult:
        try:
            reply = await self.analyzer.analyze(scan.target, scan.scan_type)
        except UpstreamServiceError:
            await self._mark_failed(scan)
            raise

        outcome = parse_analysis_reply(reply)
        result = outcome.result
        values: Dict[str, Any] = {
            "severity": result.overall_severity.value,
            "vulnerabilities_count": result.summary.total,
            "result": result.model_dump(mode="json"),
        }
        try:
            await self.scans.transition(scan.id, ScanStatus.COMPLETED, values)
        except InvalidTransitionError:
            raise
        except SecureXError as e:
            logger.error(
                f"Could not store analysis result: {str(e)}",
                extra={"scan_id": scan.id, "user_id": scan.user_id},
            )
            await self._mark_failed(scan)
            raise

        if result.summary.critical > 0:
            logger.warning(
                f"CRITICAL: {result.summary.critical} critical vulnerabilities found",
                extra={"scan_id": scan.id, "user_id": scan.user_id},
            )
        return result

    async def _mark_failed(self, scan: Scan):
        """Best effort; a scan already in a terminal state is left alone"""
        try:
            await self.scans.transition(scan.id, ScanStatus.FAILED)
        except InvalidTransitionError:
            pass
        except SecureXError as e:
            logger.error(
                f"Could not mark scan failed: {str(e)}",
                extra={"scan_id": scan.id, "user_id": scan.user_id},
            )

    async def run(self, user_id: str, scan_id: str) -> ScanResult:
        scan = await self.start(user_id, scan_id)
        return await self.complete(scan)

    async def complete_in_background(self, scan: Scan):
        """Background variant of complete(); the outcome is observed on the scan feed"""
        try:
            await self.complete(scan)
        except SecureXError as e:
            logger.error(
                f"Background analysis failed: {str(e)}",
                extra={"scan_id": scan.id, "user_id": scan.user_id},
            )
