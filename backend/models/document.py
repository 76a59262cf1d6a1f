"""Document data models."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

# Structural block types produced by the structure parser
HEADING = "heading"
PARAGRAPH = "paragraph"
TABLE = "table"
TABLE_RAW = "table_raw"
FIGURE = "figure"


@dataclass
class Document:
    """Represents an uploaded or built-in text asset."""
    document_id: str
    label: str  # Display label, usually the filename or pack title
    text: str
    uploaded_at: Optional[datetime] = None


@dataclass
class Block:
    """One structural block of a parsed document."""
    type: str  # heading | paragraph | table | table_raw | figure
    text: Optional[str] = None
    level: Optional[int] = None  # headings only (1-3)
    rows: List[List[str]] = field(default_factory=list)  # parsed tables only
