import logging
from typing import Any, Dict, List

from fastapi import APIRouter, UploadFile, File, HTTPException

from resume_engine.core.docx_extractor import docx_to_markdown
from resume_engine.core.pdf_extractor import extract_pdf_lines
from resume_engine.core.record import from_record, to_record
from resume_engine.core.schemas import (
    Anomaly,
    ParseTextRequest,
    RenderRequest,
    RenderResponse,
    SectionsResponse,
)
from resume_engine.core.serializer import (
    build_response,
    parse_to_response,
    to_markdown_text,
    to_markup,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sections"])

DOCX_TYPES = {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}
TEXT_TYPES = {"text/plain", "text/markdown", "text/html", "application/json"}


@router.post(
    "/sections/parse",
    response_model=SectionsResponse,
    summary="Parse Resume Upload",
    description="Split an uploaded resume (DOCX, PDF, TXT, MD, HTML or a JSON resume record) into ordered, typed sections.",
    responses={
        200: {
            "description": "Successfully parsed resume",
            "content": {
                "application/json": {
                    "example": {
                        "sections": [
                            {"id": "header", "title": "Jane Doe", "kind": "HEADER",
                             "body": "<p>jane@example.com | 555-1111</p>", "parent_ref": None},
                            {"id": "experience", "title": "Experience", "kind": "EXPERIENCE",
                             "body": "", "parent_ref": None},
                            {"id": "job-role-1", "title": "Manager", "kind": "JOB_ROLE",
                             "body": "<p>Acme Co | 2020-2023</p><ul><li>Led team</li></ul>",
                             "parent_ref": "experience"}
                        ],
                        "anomalies": [],
                        "parse_quality": "high",
                        "warnings": []
                    }
                }
            }
        },
        400: {"description": "Empty file uploaded"},
        415: {"description": "Unsupported file format"},
        422: {"description": "File has no extractable text"}
    }
)
async def parse_upload(
    file: UploadFile = File(..., description="Resume file (DOCX, PDF, TXT, MD, HTML or JSON)")
):
    """
    Parse a resume file into sections.

    **Supported formats:**
    - DOCX (.docx) - Word heading styles are used when present
    - PDF (.pdf) - Text-layer extraction only, OCR not supported
    - TXT / MD / HTML / JSON - auto-detected from the content
    """
    raw = await file.read()
    if not raw:
        raise HTTPException(status_code=400, detail="Empty file uploaded.")

    filename = (file.filename or "").lower()
    content_type = (file.content_type or "").lower()

    # DOCX
    if filename.endswith(".docx") or content_type in DOCX_TYPES:
        markdown_text = docx_to_markdown(raw)
        if not markdown_text.strip():
            raise HTTPException(status_code=422, detail="DOCX has no extractable text.")
        return parse_to_response(markdown_text, source_format="markdown")

    # PDF
    if filename.endswith(".pdf") or content_type == "application/pdf":
        lines = extract_pdf_lines(raw)
        if not lines:
            raise HTTPException(
                status_code=422,
                detail="PDF appears to have no extractable text. OCR is not supported."
            )
        return parse_to_response("\n".join(lines), source_format="text")

    # Text
    if content_type in TEXT_TYPES or filename.endswith((".txt", ".md", ".html", ".htm", ".json")):
        text = raw.decode("utf-8", errors="replace")
        if not text.strip():
            raise HTTPException(status_code=422, detail="File has no extractable text.")
        source_format = "text" if filename.endswith(".txt") and "#" not in text and "<" not in text else "auto"
        return parse_to_response(text, source_format=source_format)

    raise HTTPException(status_code=415, detail=f"Unsupported content type: {file.content_type}")


@router.post(
    "/sections/parse-text",
    response_model=SectionsResponse,
    summary="Parse Resume Text",
    description="Split raw content (markdown, HTML, plain text, or a JSON resume record, optionally in a ```json fence) into sections.",
)
def parse_text(request: ParseTextRequest):
    if not request.content.strip():
        raise HTTPException(status_code=422, detail="Content is empty.")
    return parse_to_response(request.content, source_format=request.format)


@router.post(
    "/sections/render",
    response_model=RenderResponse,
    summary="Render Sections",
    description="Render a section collection in canonical order as markdown, HTML, or a JSON resume record.",
)
def render_sections(request: RenderRequest):
    if request.format == "record":
        return RenderResponse(format="record", record=to_record(request.sections).to_wire())
    if request.format == "html":
        return RenderResponse(format="html", content=to_markup(request.sections))
    return RenderResponse(format="markdown", content=to_markdown_text(request.sections))


@router.post(
    "/records/sections",
    response_model=SectionsResponse,
    summary="Record To Sections",
    description="Build the section collection for a stored JSON resume record.",
)
def record_to_sections(record: Dict[str, Any]):
    anomalies: List[Anomaly] = []
    sections = from_record(record, anomalies=anomalies)
    logger.info(f"Record converted to {len(sections)} sections")
    return build_response(sections, anomalies)
