"""Section-aware chunking engine with fixed-size overlapping windows."""
import logging
import re
from datetime import datetime
from typing import List, Optional, Tuple

from models.chunk import Chunk
from models.document import Document
from services.section_segmenter import SectionSegmenter
from services.structure_parser import StructureParser
from config import CHUNK_SIZE, CHUNK_OVERLAP

logger = logging.getLogger(__name__)

WHITESPACE_RE = re.compile(r"\s+")


class ChunkingEngine:
    """Segments documents into labelled sections and windows each section into chunks."""

    def __init__(
        self,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        segmenter: Optional[SectionSegmenter] = None,
        parser: Optional[StructureParser] = None
    ):
        """
        Initialize ChunkingEngine.

        Args:
            chunk_size: Maximum window size in characters
            chunk_overlap: Characters shared by consecutive windows in a section
            segmenter: Section segmenter (default instance if omitted)
            parser: Structural parser used for PDF-extracted text

        Raises:
            ValueError: If chunk_size is not positive or chunk_overlap is negative
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap cannot be negative")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.segmenter = segmenter or SectionSegmenter()
        self.parser = parser or StructureParser()

        if chunk_overlap >= chunk_size:
            logger.warning(
                f"chunk_overlap ({chunk_overlap}) >= chunk_size ({chunk_size}); "
                "windows will advance one character at a time"
            )

    def build_chunks(
        self,
        document_text: str,
        document_label: str,
        document_id: Optional[str] = None,
        uploaded_at: Optional[datetime] = None,
        structured: bool = False
    ) -> List[Chunk]:
        """
        Build section-aware chunks for one document.

        Args:
            document_text: Decoded document text
            document_label: Display label (filename or title)
            document_id: Identifier used as chunk id prefix (defaults to the label)
            uploaded_at: Upload timestamp, carried onto every chunk
            structured: Run the structural parser first (PDF-extracted text)

        Returns:
            Ordered list of chunks, ids "{document_id}:{index}" across the whole document
        """
        document_id = document_id or document_label
        logger.info(f"Chunking document: {document_label}")

        text = document_text or ""
        if structured:
            text = self.parser.flatten(self.parser.parse(text))

        chunks: List[Chunk] = []
        sections = self.segmenter.split_into_sections(text)

        for section in sections:
            for start, end, window in self.window_text(section.text):
                chunks.append(Chunk(
                    chunk_id=f"{document_id}:{len(chunks)}",
                    document_id=document_id,
                    document_label=document_label,
                    section=section.label,
                    text=window,
                    start_offset=start,
                    end_offset=end,
                    uploaded_at=uploaded_at
                ))

        logger.info(
            f"Created {len(chunks)} chunks from {len(sections)} sections of {document_label}"
        )
        return chunks

    def chunk_document(self, document: Document, structured: bool = False) -> List[Chunk]:
        """Build chunks for a Document."""
        return self.build_chunks(
            document_text=document.text,
            document_label=document.label,
            document_id=document.document_id,
            uploaded_at=document.uploaded_at,
            structured=structured
        )

    def window_text(self, text: str) -> List[Tuple[int, int, str]]:
        """
        Split one section's text into overlapping fixed-size windows.

        Whitespace runs are collapsed first; offsets refer to the collapsed text.
        The cursor advances by chunk_size - chunk_overlap (at least one
        character) and stops once a window reaches the end of the text.

        Args:
            text: Section text

        Returns:
            List of (start_offset, end_offset, window_text) tuples
        """
        clean = self.normalise(text)
        if not clean:
            return []

        step = max(1, self.chunk_size - self.chunk_overlap)
        windows: List[Tuple[int, int, str]] = []

        start = 0
        while True:
            end = min(start + self.chunk_size, len(clean))
            window = clean[start:end]
            if window.strip():
                windows.append((start, end, window))
            if end >= len(clean):
                break
            start += step

        return windows

    @staticmethod
    def normalise(text: str) -> str:
        return WHITESPACE_RE.sub(" ", text or "").strip()
