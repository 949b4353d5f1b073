"""
Document-to-text contract

The screening core never inspects file bytes. A DocumentReader turns an
uploaded document plus its declared type into plain text; binary formats
are delegated to an injected converter.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = ("pdf", "docx", "txt")


@dataclass(frozen=True)
class DocumentText:
    text: str
    success: bool
    error: Optional[str] = None


def normalize_declared_type(declared_type: str) -> str:
    """'.PDF', 'pdf', 'application/pdf' -> 'pdf'"""
    value = (declared_type or "").strip().lower()
    if "/" in value:
        value = value.rsplit("/", 1)[1]
    value = value.lstrip(".")
    if value in ("plain", "text"):
        return "txt"
    if value == "vnd.openxmlformats-officedocument.wordprocessingml.document":
        return "docx"
    return value


class DocumentReader(ABC):

    @abstractmethod
    def read(self, content: bytes, declared_type: str) -> DocumentText:
        """Convert document bytes of the declared type to text."""


class PlainTextDocumentReader(DocumentReader):
    """
    Reads text files directly; pdf/docx need a converter

    Args:
        converters: Optional mapping of declared type -> callable(bytes) -> str
    """

    def __init__(self, converters: Optional[Dict[str, Callable[[bytes], str]]] = None):
        self.converters = dict(converters or {})

    def read(self, content: bytes, declared_type: str) -> DocumentText:
        doc_type = normalize_declared_type(declared_type)

        if doc_type not in SUPPORTED_TYPES:
            return DocumentText(text="", success=False, error=f"Unsupported document type: {declared_type}")

        if not isinstance(content, (bytes, bytearray)):
            return DocumentText(text="", success=False, error="Document content must be bytes")

        if doc_type == "txt" and doc_type not in self.converters:
            text = bytes(content).decode("utf-8", errors="replace")
        else:
            converter = self.converters.get(doc_type)
            if converter is None:
                return DocumentText(
                    text="",
                    success=False,
                    error=f"No converter configured for {doc_type} documents",
                )
            try:
                text = converter(bytes(content))
            except Exception as e:
                logger.warning(f"{doc_type} conversion failed: {e}")
                return DocumentText(text="", success=False, error=f"Could not read {doc_type} document: {e}")

        if not text or not text.strip():
            return DocumentText(text="", success=False, error="Document contains no readable text")

        logger.debug(f"Read {doc_type} document ({len(text)} characters)")
        return DocumentText(text=text, success=True)
