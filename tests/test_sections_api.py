"""
HTTP tests for the sections API.

Uploads are built in memory with python-docx, the same way users' Word
resumes reach the service.
"""

from io import BytesIO

from docx import Document
from fastapi.testclient import TestClient

from resume_engine.core.pdf_extractor import extract_pdf_lines
from resume_engine.main import app

client = TestClient(app)

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

JANE_MARKDOWN = (
    "# Jane Doe\njane@x.com | 555-1111\n\n## Experience\n### Manager\nAcme Co | 2020-2023\n- Led team\n\n"
    "### Directed R&D:\nManaged 6 researchers at Acme Co in 2020-2023"
)


def docx_bytes(doc) -> bytes:
    buf = BytesIO()
    doc.save(buf)
    return buf.getvalue()


def styled_docx() -> bytes:
    doc = Document()
    doc.add_heading("Jane Doe", level=0)
    doc.add_paragraph("jane@x.com | 555-1111")
    doc.add_heading("Experience", level=1)
    doc.add_heading("Engineer", level=3)
    doc.add_paragraph("Acme | 2020-2023")
    doc.add_paragraph("Built APIs", style="List Bullet")
    doc.add_paragraph("Led migrations", style="List Bullet")
    doc.add_heading("Skills", level=1)
    doc.add_paragraph("Python, Go")
    return docx_bytes(doc)


def pdf_bytes(lines) -> bytes:
    """A one-page PDF with a Helvetica text layer, one text line per entry."""
    ops = ["BT", "/F1 12 Tf", "72 720 Td"]
    for i, line in enumerate(lines):
        if i:
            ops.append("0 -18 Td")
        text = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        ops.append(f"({text}) Tj")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    buf = BytesIO()
    buf.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(buf.tell())
        buf.write(b"%d 0 obj\n" % number + body + b"\nendobj\n")
    xref = buf.tell()
    buf.write(b"xref\n0 %d\n" % (len(objects) + 1))
    buf.write(b"0000000000 65535 f \n")
    for offset in offsets:
        buf.write(b"%010d 00000 n \n" % offset)
    buf.write(b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref))
    return buf.getvalue()


PDF_LINES = [
    "JANE DOE",
    "jane@x.com | 555-1111",
    "EXPERIENCE",
    "Engineer",
    "Acme | 2020-2023",
    "- Built APIs",
    "SKILLS",
    "- Python",
]


class TestParseUpload:
    """POST /sections/parse"""

    def test_docx_with_heading_styles(self):
        files = {"file": ("resume.docx", styled_docx(), DOCX_TYPE)}
        r = client.post("/sections/parse", files=files)
        assert r.status_code == 200, f"Unexpected response: {r.text}"
        data = r.json()

        ids = [s["id"] for s in data["sections"]]
        assert ids == ["header", "experience", "job-role-1", "skills"], f"Got sections {ids}"
        header, _, role, _ = data["sections"]
        assert header["title"] == "Jane Doe"
        assert role["kind"] == "JOB_ROLE"
        assert role["parent_ref"] == "experience"
        assert "<li>Built APIs</li>" in role["body"]
        assert data["parse_quality"] == "high"

    def test_docx_without_heading_styles(self):
        doc = Document()
        for line in ["Jane Doe", "jane@x.com", "SKILLS", "Python, Go"]:
            doc.add_paragraph(line)
        files = {"file": ("resume.docx", docx_bytes(doc), DOCX_TYPE)}
        r = client.post("/sections/parse", files=files)
        assert r.status_code == 200
        data = r.json()

        assert [s["kind"] for s in data["sections"]] == ["HEADER", "SKILLS"]
        assert "No experience section found" in data["warnings"]

    def test_markdown_upload(self):
        files = {"file": ("resume.md", JANE_MARKDOWN.encode("utf-8"), "text/markdown")}
        r = client.post("/sections/parse", files=files)
        assert r.status_code == 200
        data = r.json()
        roles = [s for s in data["sections"] if s["kind"] == "JOB_ROLE"]
        assert [r["title"] for r in roles] == ["Manager"]
        assert data["parse_quality"] == "medium"
        assert any(a["kind"] == "STRUCTURAL_ANOMALY" for a in data["anomalies"])

    def test_plain_text_upload(self):
        text = "JANE DOE\njane@x.com\nEXPERIENCE\nEngineer\nAcme | 2020-2023\n• Built APIs\n"
        files = {"file": ("resume.txt", text.encode("utf-8"), "text/plain")}
        r = client.post("/sections/parse", files=files)
        assert r.status_code == 200
        kinds = [s["kind"] for s in r.json()["sections"]]
        assert kinds == ["HEADER", "EXPERIENCE", "JOB_ROLE"]

    def test_pdf_text_layer(self):
        assert extract_pdf_lines(pdf_bytes(PDF_LINES)) == PDF_LINES

        files = {"file": ("resume.pdf", pdf_bytes(PDF_LINES), "application/pdf")}
        r = client.post("/sections/parse", files=files)
        assert r.status_code == 200, f"Unexpected response: {r.text}"
        sections = r.json()["sections"]
        assert [s["kind"] for s in sections] == ["HEADER", "EXPERIENCE", "JOB_ROLE", "SKILLS"]
        role = sections[2]
        assert role["title"] == "Engineer"
        assert "<li>Built APIs</li>" in role["body"]

    def test_pdf_without_text_layer(self):
        files = {"file": ("scan.pdf", pdf_bytes([]), "application/pdf")}
        r = client.post("/sections/parse", files=files)
        assert r.status_code == 422
        assert "OCR" in r.json()["detail"]

    def test_empty_file(self):
        files = {"file": ("resume.txt", b"", "text/plain")}
        r = client.post("/sections/parse", files=files)
        assert r.status_code == 400

    def test_whitespace_only_file(self):
        files = {"file": ("resume.txt", b"   \n  ", "text/plain")}
        r = client.post("/sections/parse", files=files)
        assert r.status_code == 422

    def test_unsupported_format(self):
        files = {"file": ("resume.xyz", b"\x00\x01binary", "application/octet-stream")}
        r = client.post("/sections/parse", files=files)
        assert r.status_code == 415


class TestParseText:
    """POST /sections/parse-text"""

    def test_markdown(self):
        r = client.post("/sections/parse-text", json={"content": JANE_MARKDOWN})
        assert r.status_code == 200
        ids = [s["id"] for s in r.json()["sections"]]
        assert ids == ["header", "experience", "job-role-1"]

    def test_fenced_record(self):
        content = '```json\n{"header": {"name": "Jane Doe"}, "skills": ["Go"]}\n```'
        r = client.post("/sections/parse-text", json={"content": content})
        assert r.status_code == 200
        assert [s["kind"] for s in r.json()["sections"]] == ["HEADER", "SKILLS"]

    def test_empty_content(self):
        r = client.post("/sections/parse-text", json={"content": "  "})
        assert r.status_code == 422

    def test_unknown_format(self):
        r = client.post("/sections/parse-text", json={"content": "x", "format": "rtf"})
        assert r.status_code == 422


class TestRender:
    """POST /sections/render"""

    SECTIONS = [
        {"id": "skills", "title": "Skills", "kind": "SKILLS", "body": "<ul><li>Go</li></ul>"},
        {"id": "header", "title": "Jane Doe", "kind": "HEADER", "body": "<p>jane@x.com</p>"},
    ]

    def test_markdown(self):
        r = client.post("/sections/render", json={"sections": self.SECTIONS})
        assert r.status_code == 200
        data = r.json()
        assert data["format"] == "markdown"
        assert data["content"] == "# Jane Doe\n\njane@x.com\n\n## Skills\n\n- Go\n"

    def test_html(self):
        r = client.post("/sections/render", json={"sections": self.SECTIONS, "format": "html"})
        assert r.status_code == 200
        content = r.json()["content"]
        assert content.index("<h1>Jane Doe</h1>") < content.index("<h2>Skills</h2>")

    def test_record(self):
        r = client.post("/sections/render", json={"sections": self.SECTIONS, "format": "record"})
        assert r.status_code == 200
        record = r.json()["record"]
        assert record["header"]["name"] == "Jane Doe"
        assert record["header"]["email"] == "jane@x.com"
        assert record["skills"] == ["Go"]


def test_record_to_sections():
    record = {
        "header": {"name": "Jane Doe", "email": "jane@x.com"},
        "experience": [{"title": "Engineer", "company": "Acme", "dateRange": "2020-2023", "bullets": ["Built APIs"]}],
    }
    r = client.post("/records/sections", json=record)
    assert r.status_code == 200
    data = r.json()
    assert [s["id"] for s in data["sections"]] == ["header", "experience", "job-role-1"]
    assert data["parse_quality"] == "high"


def test_record_with_nulls_keeps_its_jobs():
    record = {
        "header": {"name": "Jane Doe", "email": "jane@x.com", "phone": None},
        "summary": None,
        "experience": [{"title": "Engineer", "company": "Acme", "dateRange": "2020-2023", "bullets": None}],
    }
    r = client.post("/records/sections", json=record)
    assert r.status_code == 200
    data = r.json()
    assert [s["id"] for s in data["sections"]] == ["header", "experience", "job-role-1"]
    assert data["anomalies"] == []


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
