# cimawatch/report_html.py
import os
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .report import ReportSections

# Resolve template directory relative to this file
TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

EMAIL_THEME = os.getenv("EMAIL_THEME", "light").strip().lower()
if EMAIL_THEME not in ("light", "dark"):
    EMAIL_THEME = "light"

THEMES = {
    "light": {
        "page_bg": "#f1f5f9",
        "card_bg": "#ffffff",
        "card_border": "#e2e8f0",
        "header_bg": "#0d9488",
        "text_primary": "#0f172a",
        "text_secondary": "#64748b",
        "text_muted": "#94a3b8",
        "critical": "#ef4444",
        "critical_bg": "#fef2f2",
        "continuing": "#f59e0b",
        "continuing_bg": "#fff7ed",
        "resolved": "#10b981",
        "resolved_bg": "#ecfdf5",
        "accent": "#0d9488",
    },
    "dark": {
        "page_bg": "#121212",
        "card_bg": "#1E1E1E",
        "card_border": "#333333",
        "header_bg": "#0f766e",
        "text_primary": "#F1F1F1",
        "text_secondary": "#BBBBBB",
        "text_muted": "#777777",
        "critical": "#FF6B6B",
        "critical_bg": "#2a1616",
        "continuing": "#FFB74D",
        "continuing_bg": "#2a2116",
        "resolved": "#4CAF50",
        "resolved_bg": "#16261a",
        "accent": "#4DB6AC",
    },
}

SECTION_STYLE = {
    "new": {"icon": "🆕", "color": "critical", "bg": "critical_bg"},
    "continuing": {"icon": "⚠️", "color": "continuing", "bg": "continuing_bg"},
    "resolved": {"icon": "✅", "color": "resolved", "bg": "resolved_bg"},
}


def _context(report: ReportSections) -> dict:
    return {
        "hospital_name": report.hospital_name,
        "report_date": report.report_date.strftime("%d/%m/%Y"),
        "subject": report.subject,
        "priority": report.priority.value,
        "sections": report.sections,
        "counts": {s.key: s.count for s in report.sections},
        "section_style": SECTION_STYLE,
    }


def build_plaintext_report(report: ReportSections) -> str:
    template = env.get_template("email_report.txt")
    return template.render(**_context(report))


def build_html_report(report: ReportSections, theme: str | None = None) -> str:
    theme = theme if theme in THEMES else EMAIL_THEME
    template = env.get_template("email_report.html")
    return template.render(colors=THEMES[theme], **_context(report))
