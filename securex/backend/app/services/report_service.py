# backend/app/services/report_service.py
"""
PDF export of a completed scan report
"""

import io
from datetime import datetime, timezone
from typing import List
from xml.sax.saxutils import escape

from reportlab.lib.colors import HexColor, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.core.config import settings
from app.core.constants import SeverityLevel
from app.core.i18n import Translator
from app.schemas.scan import Scan, ScanResult, Vulnerability


class ScanReportPDF:
    """Renders a scan's vulnerability report with reportlab"""

    BRAND = HexColor("#0f172a")
    ACCENT = HexColor("#22c55e")

    SEVERITY_COLORS = {
        SeverityLevel.CRITICAL: HexColor("#dc2626"),
        SeverityLevel.HIGH: HexColor("#ea580c"),
        SeverityLevel.MEDIUM: HexColor("#d97706"),
        SeverityLevel.LOW: HexColor("#16a34a"),
    }

    def __init__(self, translator: Translator):
        self.t = translator
        self.styles = getSampleStyleSheet()
        self.styles.add(ParagraphStyle(
            name="ReportTitle",
            parent=self.styles["Title"],
            fontSize=22,
            spaceAfter=18,
            textColor=self.BRAND,
            fontName="Helvetica-Bold",
        ))
        self.styles.add(ParagraphStyle(
            name="FindingTitle",
            parent=self.styles["Heading2"],
            fontSize=13,
            spaceBefore=12,
            spaceAfter=6,
            fontName="Helvetica-Bold",
        ))
        self.styles.add(ParagraphStyle(
            name="ReportCode",
            parent=self.styles["Code"],
            fontSize=8,
            backColor=HexColor("#f8fafc"),
            borderColor=HexColor("#e2e8f0"),
            borderWidth=1,
            leftIndent=6,
            rightIndent=6,
            spaceBefore=4,
            spaceAfter=4,
        ))

    def _text(self, value: str, style: str = "BodyText") -> Paragraph:
        return Paragraph(escape(value or "").replace("\n", "<br/>"), self.styles[style])

    def _summary_table(self, result: ScanResult) -> Table:
        summary = result.summary
        rows = [
            ["Total", "Critical", "High", "Medium", "Low"],
            [summary.total, summary.critical, summary.high, summary.medium, summary.low],
        ]
        table = Table(rows, hAlign="LEFT")
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), self.BRAND),
            ("TEXTCOLOR", (0, 0), (-1, 0), white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("GRID", (0, 0), (-1, -1), 0.5, HexColor("#cbd5e1")),
        ]))
        return table

    def _finding(self, index: int, vuln: Vulnerability) -> List:
        color = self.SEVERITY_COLORS[vuln.severity].hexval()[2:]
        heading = Paragraph(
            f'{index}. {escape(vuln.title or vuln.type)} '
            f'<font color="#{color}">[{vuln.severity.value.upper()}]</font>',
            self.styles["FindingTitle"],
        )
        flowables = [heading]
        if vuln.type:
            flowables.append(self._text(f"Type: {vuln.type}"))
        if vuln.location:
            flowables.append(self._text(f"Location: {vuln.location}"))
        flowables.append(self._text(vuln.description))
        if vuln.recommendation:
            flowables.append(self._text(f"Recommendation: {vuln.recommendation}"))
        if vuln.code_example:
            flowables.append(self._text(vuln.code_example, "ReportCode"))
        return flowables

    def render(self, scan: Scan) -> bytes:
        result = scan.result or ScanResult.empty()
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=2 * cm,
            rightMargin=2 * cm,
            topMargin=2 * cm,
            bottomMargin=2 * cm,
            title=f"{settings.PROJECT_NAME} report {scan.id}",
        )

        severity_label = self.t(f"status.{result.overall_severity.value}")
        generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        story = [
            Paragraph(f"{settings.PROJECT_NAME} Security Report", self.styles["ReportTitle"]),
            self._text(f"Target: {scan.target}"),
            self._text(f"Scan type: {scan.scan_type.value}"),
            self._text(f"Overall: {severity_label}"),
            self._text(f"Generated: {generated}"),
            Spacer(1, 12),
            self._summary_table(result),
            Spacer(1, 12),
        ]

        if not result.vulnerabilities:
            story.append(self._text(self.t("notify.success.description")))
        for index, vuln in enumerate(result.vulnerabilities, start=1):
            story.extend(self._finding(index, vuln))

        doc.build(story)
        return buffer.getvalue()
