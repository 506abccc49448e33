"""
Render assembled assignment content into DOCX, PDF or TXT bytes.

The content is parsed into ContentBlocks once; each format walks the same
block list in order, so block order and type are preserved in every output.

Public API
----------
resolve_format(file_type)                        -> str  ("docx" | "pdf" | "txt")
build_file_name(matric, extension)               -> str
DocumentRenderer.render(document_format, file_type) -> RenderedDocument
"""
from __future__ import annotations

import dataclasses
import io
import logging
from typing import Callable, Dict, List
from xml.sax.saxutils import escape as xml_escape

from docx import Document as DocxDocument
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from app.config import settings
from app.exceptions import UnsupportedFormatError
from app.models.schemas import AssignmentRequest
from app.services.markdown_parser import BlockType, ContentBlock, parse_blocks, strip_references
from app.utils.helpers import sanitize_filename_fragment

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Formats
# ---------------------------------------------------------------------------

MIME_TYPES: Dict[str, str] = {
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "pdf": "application/pdf",
    "txt": "text/plain",
}

# Legacy .doc requests get a .docx file
FORMAT_ALIASES: Dict[str, str] = {"doc": "docx"}

SUPPORTED_FILE_TYPES = ("doc", "docx", "pdf", "txt")


def resolve_format(file_type: str) -> str:
    """Map a requested file type to a canonical extension or raise UnsupportedFormatError."""
    ft = (file_type or "").strip().lower().lstrip(".")
    ft = FORMAT_ALIASES.get(ft, ft)
    if ft not in MIME_TYPES:
        raise UnsupportedFormatError(file_type)
    return ft


def build_file_name(matric: str, extension: str) -> str:
    """``assignment_{sanitized_matric}.{extension}``"""
    return f"assignment_{sanitize_filename_fragment(matric)}.{extension}"


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class StudentInfo:
    """Cover-block metadata printed above the question."""

    name: str
    matric: str
    department: str
    course_code: str
    course_title: str
    lecturer_in_charge: str

    @classmethod
    def from_request(cls, request: AssignmentRequest) -> "StudentInfo":
        return cls(
            name=request.name,
            matric=request.matric,
            department=request.department,
            course_code=request.course_code,
            course_title=request.course_title,
            lecturer_in_charge=request.lecturer_in_charge,
        )

    def labelled_lines(self) -> List[tuple]:
        return [
            ("Name", self.name),
            ("Matric Number", self.matric),
            ("Department", self.department),
            ("Course Code", self.course_code),
            ("Course Title", self.course_title),
            ("Lecturer-in-Charge", self.lecturer_in_charge),
        ]


@dataclasses.dataclass(frozen=True)
class DocumentFormat:
    """Everything the renderer needs: metadata, question and cleaned content."""

    student_info: StudentInfo
    question: str
    content: str


@dataclasses.dataclass(frozen=True)
class RenderedDocument:
    buffer: bytes
    file_name: str
    mime_type: str


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------

class DocumentRenderer:
    """Encodes a DocumentFormat into a downloadable file."""

    # Font sizes (pt) per block type, shared by DOCX and PDF
    FONT_SIZES: Dict[BlockType, int] = {
        BlockType.HEADING: 16,
        BlockType.SUBHEADING: 14,
        BlockType.SUBSUBHEADING: 13,
        BlockType.BULLET: 12,
        BlockType.PARAGRAPH: 12,
    }

    def __init__(self, max_content_chars: int = settings.MAX_CONTENT_CHARS) -> None:
        self.max_content_chars = max_content_chars
        self._encoders: Dict[str, Callable[[DocumentFormat], bytes]] = {
            "docx": self._render_docx,
            "pdf": self._render_pdf,
            "txt": self._render_txt,
        }

    def render(self, document_format: DocumentFormat, file_type: str) -> RenderedDocument:
        """
        Encode *document_format* as *file_type*.

        Raises:
            UnsupportedFormatError: file_type is not doc, docx, pdf or txt.
        """
        extension = resolve_format(file_type)
        content = strip_references(document_format.content)[: self.max_content_chars]
        cleaned = dataclasses.replace(document_format, content=content)

        buffer = self._encoders[extension](cleaned)
        file_name = build_file_name(document_format.student_info.matric, extension)
        logger.info("render: %s (%d bytes)", file_name, len(buffer))
        return RenderedDocument(buffer=buffer, file_name=file_name, mime_type=MIME_TYPES[extension])

    # ------------------------------------------------------------------
    # DOCX
    # ------------------------------------------------------------------

    def _render_docx(self, document_format: DocumentFormat) -> bytes:
        doc = DocxDocument()

        style = doc.styles["Normal"]
        style.font.name = "Times New Roman"
        style.font.size = Pt(12)

        section = doc.sections[0]
        section.top_margin = section.bottom_margin = Inches(1)
        section.left_margin = section.right_margin = Inches(1)
        self._add_page_footer(section.footer)

        for label, value in document_format.student_info.labelled_lines():
            p = doc.add_paragraph()
            p.alignment = WD_ALIGN_PARAGRAPH.LEFT
            label_run = p.add_run(f"{label}: ")
            label_run.bold = True
            p.add_run(value)

        doc.add_paragraph()

        question = doc.add_paragraph()
        question.alignment = WD_ALIGN_PARAGRAPH.CENTER
        question.paragraph_format.space_before = Pt(20)
        question.paragraph_format.space_after = Pt(30)
        run = question.add_run(document_format.question)
        run.bold = True
        run.font.size = Pt(16)
        run.font.color.rgb = RGBColor(0, 0, 0)

        for block in parse_blocks(document_format.content):
            self._add_docx_block(doc, block)

        buf = io.BytesIO()
        doc.save(buf)
        return buf.getvalue()

    def _add_docx_block(self, doc, block: ContentBlock) -> None:
        if block.type == BlockType.BULLET:
            p = doc.add_paragraph(style="List Bullet")
        else:
            p = doc.add_paragraph()

        run = p.add_run(block.text)
        run.bold = block.emphasis
        run.font.size = Pt(self.FONT_SIZES[block.type])

        pf = p.paragraph_format
        if block.is_heading:
            pf.space_before = Pt(12)
            pf.space_after = Pt(6)
            pf.keep_with_next = True
        else:
            pf.space_after = Pt(6)
            pf.line_spacing = 1.5

    def _add_page_footer(self, footer) -> None:
        """Centred ``Page X of Y`` footer using PAGE / NUMPAGES fields."""
        paragraph = footer.paragraphs[0] if footer.paragraphs else footer.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        paragraph.add_run("Page ").font.size = Pt(10)
        self._add_field(paragraph, "PAGE")
        paragraph.add_run(" of ").font.size = Pt(10)
        self._add_field(paragraph, "NUMPAGES")

    @staticmethod
    def _add_field(paragraph, instruction: str) -> None:
        """Append an auto-updating Word field (begin / instr / separate / 1 / end)."""
        begin = OxmlElement("w:fldChar")
        begin.set(qn("w:fldCharType"), "begin")
        paragraph.add_run()._r.append(begin)

        instr = OxmlElement("w:instrText")
        instr.set(qn("xml:space"), "preserve")
        instr.text = instruction
        paragraph.add_run()._r.append(instr)

        separate = OxmlElement("w:fldChar")
        separate.set(qn("w:fldCharType"), "separate")
        paragraph.add_run()._r.append(separate)

        placeholder = paragraph.add_run("1")
        placeholder.font.size = Pt(10)

        end = OxmlElement("w:fldChar")
        end.set(qn("w:fldCharType"), "end")
        paragraph.add_run()._r.append(end)

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    @staticmethod
    def _pdf_styles() -> Dict[str, ParagraphStyle]:
        base = getSampleStyleSheet()
        body = ParagraphStyle(
            "AssignmentBody",
            parent=base["Normal"],
            fontName="Helvetica",
            fontSize=12,
            leading=18,
            spaceAfter=8,
            alignment=TA_LEFT,
        )
        return {
            "banner": ParagraphStyle(
                "Banner", parent=body, fontName="Helvetica-Bold", fontSize=14,
                leading=18, alignment=TA_CENTER, spaceBefore=12, spaceAfter=8,
            ),
            "info": ParagraphStyle("Info", parent=body, leading=16, spaceAfter=2),
            "body": body,
            "body_bold": ParagraphStyle("AssignmentBodyBold", parent=body, fontName="Helvetica-Bold"),
            BlockType.HEADING.value: ParagraphStyle(
                "BlockHeading", parent=body, fontName="Helvetica-Bold", fontSize=16,
                leading=20, spaceBefore=10, spaceAfter=8,
            ),
            BlockType.SUBHEADING.value: ParagraphStyle(
                "BlockSubheading", parent=body, fontName="Helvetica-Bold", fontSize=14,
                leading=18, spaceBefore=8, spaceAfter=6,
            ),
            BlockType.SUBSUBHEADING.value: ParagraphStyle(
                "BlockSubsubheading", parent=body, fontName="Helvetica-Bold", fontSize=13,
                leading=17, spaceBefore=6, spaceAfter=6,
            ),
            BlockType.BULLET.value: ParagraphStyle(
                "BlockBullet", parent=body, leftIndent=18, bulletIndent=6, spaceAfter=4,
            ),
        }

    def _pdf_block(self, block: ContentBlock, styles: Dict[str, ParagraphStyle]) -> Paragraph:
        text = xml_escape(block.text)
        if block.type == BlockType.BULLET:
            return Paragraph(text, styles[BlockType.BULLET.value], bulletText="•")
        if block.type == BlockType.PARAGRAPH:
            return Paragraph(text, styles["body_bold"] if block.emphasis else styles["body"])
        return Paragraph(text, styles[block.type.value])

    def _render_pdf(self, document_format: DocumentFormat) -> bytes:
        styles = self._pdf_styles()

        header = [Paragraph("STUDENT INFORMATION", styles["banner"])]
        for label, value in document_format.student_info.labelled_lines():
            header.append(Paragraph(f"<b>{label}:</b> {xml_escape(value)}", styles["info"]))
        header.append(Spacer(1, 0.2 * inch))
        header.append(Paragraph("ASSIGNMENT QUESTION", styles["banner"]))
        header.append(Paragraph(xml_escape(document_format.question), styles["body"]))
        header.append(Spacer(1, 0.2 * inch))
        header.append(Paragraph("ASSIGNMENT CONTENT", styles["banner"]))

        blocks = [self._pdf_block(b, styles) for b in parse_blocks(document_format.content)]
        try:
            return self._build_pdf(header + blocks)
        except Exception as exc:
            logger.error("render_pdf: block layout failed (%s), falling back to plain text", exc)
            plain = [
                Paragraph(xml_escape(p), styles["body"])
                for p in document_format.content.split("\n\n")
                if p.strip()
            ]
            return self._build_pdf(header + plain)

    @staticmethod
    def _build_pdf(story: list) -> bytes:
        buf = io.BytesIO()
        doc = SimpleDocTemplate(
            buf,
            pagesize=A4,
            topMargin=inch,
            bottomMargin=inch,
            leftMargin=inch,
            rightMargin=inch,
            title="Assignment",
        )

        def _page_number(canvas, pdf_doc) -> None:
            canvas.saveState()
            canvas.setFont("Helvetica", 10)
            canvas.drawCentredString(A4[0] / 2, 0.5 * inch, f"Page {pdf_doc.page}")
            canvas.restoreState()

        doc.build(story, onFirstPage=_page_number, onLaterPages=_page_number)
        return buf.getvalue()

    # ------------------------------------------------------------------
    # TXT
    # ------------------------------------------------------------------

    def _render_txt(self, document_format: DocumentFormat) -> bytes:
        lines = [f"{label}: {value}" for label, value in document_format.student_info.labelled_lines()]
        lines += ["", document_format.question, "", document_format.content]
        return "\n".join(lines).encode("utf-8")
