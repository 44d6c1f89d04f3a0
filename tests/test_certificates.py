from datetime import datetime

import pytest

from emirimo.certificates import CertificateData, format_category, format_completion_date, generate_certificate
from emirimo.errors import RenderError


def _data(**kw):
    base = dict(
        user_name="Amina Uwase",
        course_title="Excel for Beginners",
        course_category="digital-literacy-productivity",
        completion_date=datetime(2024, 1, 5, 9, 30),
        certificate_id="EM-0123456789ABCDEF",
        skills=["Excel", "Data Entry"],
        duration=90,
    )
    base.update(kw)
    return CertificateData(**base)


def test_generate_certificate_is_pdf_with_date_and_id_metadata():
    pdf = generate_certificate(_data())
    assert pdf.startswith(b"%PDF")
    assert b"Completed on January 5, 2024" in pdf
    assert b"EM-0123456789ABCDEF" in pdf


def test_generate_certificate_is_deterministic():
    assert generate_certificate(_data()) == generate_certificate(_data())


@pytest.mark.parametrize("field", ["user_name", "course_title", "certificate_id"])
def test_missing_required_field_raises(field):
    with pytest.raises(RenderError):
        generate_certificate(_data(**{field: "  "}))


def test_long_title_and_many_skills_still_render():
    pdf = generate_certificate(_data(course_title="Advanced " * 30, skills=[f"Skill {i}" for i in range(20)]))
    assert pdf.startswith(b"%PDF")


def test_format_helpers():
    assert format_category("entrepreneurship-business") == "Entrepreneurship & Business"
    assert format_category("data-science") == "Data Science"
    assert format_completion_date(datetime(2023, 11, 30)) == "November 30, 2023"
