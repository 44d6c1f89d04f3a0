"""Certificate PDF rendering.

``generate_certificate`` is a pure function of its input: the canvas runs in
reportlab's invariant mode, so the same ``CertificateData`` always yields the
same bytes and a lost artifact can be regenerated safely.
"""
import io
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

from .errors import RenderError

_CATEGORY_LABELS = {
    "digital-literacy-productivity": "Digital Literacy & Productivity",
    "soft-skills-professional": "Soft Skills & Professional Development",
    "entrepreneurship-business": "Entrepreneurship & Business",
    "job-search-career": "Job Search & Career Development",
    "technology-digital-careers": "Technology & Digital Careers",
    "personal-development-workplace": "Personal Development & Workplace Skills",
}

_MAX_SKILLS = 5
_MAX_TITLE_CHARS = 70


class CertificateData(BaseModel):
    user_name: str
    course_title: str
    course_category: Optional[str] = None
    completion_date: datetime
    certificate_id: str
    skills: List[str] = Field(default_factory=list)
    duration: Optional[int] = None


def format_category(category: str) -> str:
    if category in _CATEGORY_LABELS:
        return _CATEGORY_LABELS[category]
    return category.replace("-", " ").title()


def format_completion_date(dt: datetime) -> str:
    return f"{dt:%B} {dt.day}, {dt.year}"


def _ellipsize(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1].rstrip() + "…"


def generate_certificate(data: CertificateData) -> bytes:
    user_name = (data.user_name or "").strip()
    course_title = (data.course_title or "").strip()
    if not user_name:
        raise RenderError("user_name is required")
    if not course_title:
        raise RenderError("course_title is required")
    if not (data.certificate_id or "").strip():
        raise RenderError("certificate_id is required")

    completed_on = f"Completed on {format_completion_date(data.completion_date)}"
    width, height = landscape(A4)
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height), invariant=1)
    c.setTitle(f"Certificate of Completion - {course_title}")
    c.setAuthor("eMirimo")
    c.setSubject(completed_on)
    c.setKeywords(data.certificate_id)

    # Two-tone background
    c.setFillColor(HexColor("#1e40af"))
    c.rect(0, 0, width, height, stroke=0, fill=1)
    c.setFillColor(HexColor("#2563eb"))
    c.rect(0, height / 2, width, height / 2, stroke=0, fill=1)

    # Borders
    c.setStrokeColor(HexColor("#ffffff"))
    c.setLineWidth(3)
    c.rect(30, 30, width - 60, height - 60, stroke=1, fill=0)
    c.setStrokeColor(HexColor("#e0e7ff"))
    c.setLineWidth(1)
    c.rect(50, 50, width - 100, height - 100, stroke=1, fill=0)

    # pdf coordinates grow upwards; layout is expressed from the top edge
    def centred(text: str, top: float, font: str, size: int, color: str) -> None:
        c.setFont(font, size)
        c.setFillColor(HexColor(color))
        c.drawCentredString(width / 2, height - top - size, text)

    centred("CERTIFICATE OF COMPLETION", 100, "Helvetica-Bold", 40, "#ffffff")
    c.setStrokeColor(HexColor("#ffffff"))
    c.setLineWidth(2)
    c.line(150, height - 160, width - 150, height - 160)

    centred("This is to certify that", 200, "Helvetica", 18, "#e0e7ff")
    centred(user_name.upper(), 240, "Helvetica-Bold", 36, "#ffffff")
    centred("has successfully completed the course", 300, "Helvetica", 16, "#e0e7ff")
    centred(_ellipsize(course_title, _MAX_TITLE_CHARS), 330, "Helvetica-Bold", 26, "#ffffff")
    if data.course_category:
        centred(format_category(data.course_category), 380, "Helvetica-Bold", 14, "#bfdbfe")
    if data.skills:
        skills_text = "Skills: " + ", ".join(data.skills[:_MAX_SKILLS])
        centred(_ellipsize(skills_text, 110), 410, "Helvetica", 12, "#cbd5e1")
    centred(completed_on, 450, "Helvetica", 14, "#e0e7ff")
    centred(f"Certificate ID: {data.certificate_id}", 480, "Helvetica", 10, "#94a3b8")

    centred("eMirimo", height - 80, "Helvetica-Bold", 16, "#ffffff")
    centred("Empowering Career Growth Through Learning", height - 60, "Helvetica", 12, "#cbd5e1")

    # Signature lines
    c.setFont("Helvetica", 10)
    c.setFillColor(HexColor("#ffffff"))
    c.drawString(100, 40, "_________________")
    c.drawRightString(width - 100, 40, "_________________")
    c.setFont("Helvetica", 9)
    c.setFillColor(HexColor("#cbd5e1"))
    c.drawString(100, 28, "Course Instructor")
    c.drawRightString(width - 100, 28, "eMirimo Platform")

    # Corner accents
    c.setStrokeColor(HexColor("#93c5fd"))
    c.setLineWidth(2)
    for x, y in ((80, 80), (width - 80, 80), (80, height - 80), (width - 80, height - 80)):
        c.circle(x, y, 15, stroke=1, fill=0)

    c.showPage()
    c.save()
    content = buf.getvalue()
    buf.close()
    return content
