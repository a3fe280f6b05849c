"""PDF parsing utilities for resume uploads.

Native text extraction (pdfplumber, then pypdf) with an OCR fallback for
scanned resumes, plus upload validation.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any

import pdfplumber
import pytesseract
from pdf2image import convert_from_bytes
from pypdf import PdfReader

from .config import settings

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


class ParseError(Exception):
    """Raised when document parsing fails."""
    pass


class InvalidResumeError(ParseError):
    """Raised when an upload is rejected before entering the pipeline."""
    pass


@dataclass
class ParsedDocument:
    """Result of document parsing."""
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    confidence: float = 1.0


def is_pdf_upload(filename: str | None, content_type: str | None) -> bool:
    """Accept a file when either the MIME type or the extension says PDF."""
    has_pdf_mime_type = (content_type or "").split(";")[0].strip().lower() == PDF_MIME_TYPE
    has_pdf_extension = PurePath(filename or "").suffix.lower() == ".pdf"
    return has_pdf_mime_type or has_pdf_extension


def validate_resume_upload(
    filename: str | None,
    content_type: str | None,
    size: int,
    *,
    max_size_bytes: int | None = None,
) -> None:
    """Reject non-PDF, empty or oversized uploads.

    Raises:
        InvalidResumeError: With a user-facing message.
    """
    if not is_pdf_upload(filename, content_type):
        raise InvalidResumeError("Only PDF files are allowed.")

    if size <= 0:
        raise InvalidResumeError("Uploaded file is empty.")

    limit = max_size_bytes if max_size_bytes is not None else settings.ingestion.max_file_size_bytes
    if size > limit:
        max_mb = limit / (1024 * 1024)
        raise InvalidResumeError(f"File too large. Max size is {max_mb:g}MB.")


def extract_text_from_pdf_native(content: bytes) -> tuple[str, float]:
    """Extract text from PDF using native text extraction.

    Returns:
        Tuple of (extracted_text, confidence_score)
    """
    try:
        # Try pdfplumber first (better text extraction)
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            text_parts = [page_text for page in pdf.pages if (page_text := page.extract_text())]

        text = "\n\n".join(text_parts)

        # Estimate confidence based on text density
        if len(text.strip()) > 100:
            return text, 0.95
        elif len(text.strip()) > 20:
            return text, 0.7
        else:
            return text, 0.3

    except Exception as e:
        logger.warning(f"pdfplumber extraction failed: {e}, trying pypdf")

    # Fallback to pypdf
    try:
        reader = PdfReader(io.BytesIO(content))
        text_parts = [page_text for page in reader.pages if (page_text := page.extract_text())]
        text = "\n\n".join(text_parts)
        confidence = 0.8 if len(text.strip()) > 100 else 0.5
        return text, confidence

    except Exception as e2:
        logger.error(f"pypdf extraction also failed: {e2}")
        return "", 0.0


def extract_text_from_pdf_ocr(content: bytes) -> tuple[str, float]:
    """Extract text from PDF using OCR (Tesseract).

    Returns:
        Tuple of (extracted_text, confidence_score)
    """
    try:
        images = convert_from_bytes(content, dpi=settings.ocr.dpi, fmt='jpeg')
    except Exception as e:
        logger.error(f"PDF rasterization failed: {e}")
        raise ParseError(f"OCR processing failed: {e}") from e

    if not images:
        logger.warning("No images extracted from PDF")
        return "", 0.0

    logger.info(f"Extracted {len(images)} pages as images")

    text_parts = []
    confidences = []

    for idx, image in enumerate(images):
        try:
            ocr_data = pytesseract.image_to_data(
                image,
                lang=settings.ocr.tesseract_lang,
                output_type=pytesseract.Output.DICT,
            )
            page_text = pytesseract.image_to_string(image, lang=settings.ocr.tesseract_lang)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
            logger.error(f"OCR failed for page {idx + 1}: {e}")
            continue

        if page_text.strip():
            text_parts.append(page_text)

            conf_values = [float(c) for c in ocr_data['conf'] if float(c) != -1]
            if conf_values:
                confidences.append(sum(conf_values) / len(conf_values) / 100.0)

    text = "\n\n".join(text_parts)
    confidence = sum(confidences) / len(confidences) if confidences else 0.0

    logger.info(f"OCR completed. Extracted {len(text)} chars with confidence {confidence:.2f}")
    return text, confidence


def parse_pdf(content: bytes, filename: str | None = None) -> ParsedDocument:
    """Parse PDF bytes with text extraction + OCR fallback.

    An empty result is not an error here: identity extraction is best-effort
    and the content hash still identifies the file.

    Raises:
        ParseError: If OCR was attempted and failed outright.
    """
    text, confidence = extract_text_from_pdf_native(content)
    method = "native"

    if settings.ocr.enabled and (confidence < settings.ocr.confidence_threshold or len(text.strip()) < 50):
        logger.info(f"Native extraction confidence {confidence:.2f} too low, trying OCR")
        text_ocr, conf_ocr = extract_text_from_pdf_ocr(content)

        if conf_ocr > confidence or len(text_ocr) > len(text):
            text, confidence, method = text_ocr, conf_ocr, "ocr"

    if not text.strip():
        logger.warning(f"No text could be extracted from {filename or 'PDF'}")

    return ParsedDocument(
        text=text,
        confidence=confidence,
        metadata={"filename": filename, "method": method},
    )
