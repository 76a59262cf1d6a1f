"""Document loading service: turns uploaded files into decoded text."""
import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import List, Optional

import fitz  # PyMuPDF
from docx import Document as DocxDocument

from models.document import Block
from services.structure_parser import StructureParser

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {"txt", "md", "csv", "json", "log"}


@dataclass
class ExtractedText:
    """Text extracted from an uploaded file."""
    text: str
    extracted: bool = True  # False when text is a placeholder message
    blocks: List[Block] = field(default_factory=list)  # PDF structure, if parsed


class DocumentLoader:
    """Extracts text from PDF, DOCX and plain-text uploads."""

    def __init__(self, parser: Optional[StructureParser] = None):
        """
        Initialize DocumentLoader.

        Args:
            parser: Structural parser applied to PDF text
        """
        self.parser = parser or StructureParser()

    def extract_text(self, filename: str, data: bytes) -> ExtractedText:
        """
        Extract text from an uploaded file based on its extension.

        PDF text is restructured into markdown-style headings, tables and
        figure captions. Unsupported types and extraction failures return a
        placeholder message instead of raising.

        Args:
            filename: Original file name
            data: Raw file bytes

        Returns:
            ExtractedText with the decoded text
        """
        lower_name = filename.lower()
        extension = lower_name.rsplit(".", 1)[-1] if "." in lower_name else ""

        if extension == "pdf":
            return self._load_pdf(filename, data)

        if extension == "docx":
            return self._load_docx(filename, data)

        if extension in TEXT_EXTENSIONS:
            return ExtractedText(text=data.decode("utf-8", errors="replace").strip())

        logger.warning(f"Unsupported upload type: {filename}")
        return ExtractedText(
            text=f"[{filename}] was uploaded, but automatic text extraction is not implemented for this file type.",
            extracted=False
        )

    def _load_pdf(self, filename: str, data: bytes) -> ExtractedText:
        """Extract PDF text page by page, then recover its structure."""
        try:
            pdf_document = fitz.open(stream=data, filetype="pdf")
            try:
                raw_text = "\n".join(page.get_text() for page in pdf_document)
            finally:
                pdf_document.close()
        except Exception as e:
            logger.error(f"Failed to load PDF {filename}: {e}", exc_info=True)
            return ExtractedText(
                text=f"[PDF uploaded, but text could not be extracted: {e}]",
                extracted=False
            )

        if not raw_text.strip():
            return ExtractedText(text="[PDF uploaded, but contained no extractable text.]", extracted=False)

        blocks = self.parser.parse(raw_text)
        flattened = self.parser.flatten(blocks)
        logger.info(f"Extracted {len(blocks)} structural blocks from {filename}")
        return ExtractedText(text=flattened, blocks=blocks)

    def _load_docx(self, filename: str, data: bytes) -> ExtractedText:
        """Extract DOCX paragraphs followed by table rows."""
        try:
            doc = DocxDocument(BytesIO(data))
        except Exception as e:
            logger.error(f"DOCX parse error for {filename}: {e}", exc_info=True)
            return ExtractedText(
                text="[DOCX uploaded, but text could not be extracted.]",
                extracted=False
            )

        parts = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))

        return ExtractedText(text="\n".join(parts).strip())
