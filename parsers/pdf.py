import io
import logging

import fitz  # PyMuPDF
from PyPDF2 import PdfReader

logger = logging.getLogger(__name__)


def pdf_to_text(source) -> str:
    """
    Extract text from a PDF.
    Accepts raw bytes, a file path, or a file-like object (e.g. an UploadFile's file).
    PyMuPDF is tried first; PyPDF2 is the fallback for files it cannot read.
    """
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
    elif isinstance(source, str):
        with open(source, "rb") as f:
            data = f.read()
    else:
        data = source.read()

    try:
        doc = fitz.open(stream=data, filetype="pdf")
        text = "\n".join(page.get_text("text") for page in doc)
        doc.close()
        if text.strip():
            return text.strip()
    except Exception as e:
        logger.warning(f"PyMuPDF extraction failed: {e}")

    try:
        reader = PdfReader(io.BytesIO(data))
        text = "\n".join((page.extract_text() or "") for page in reader.pages)
        return text.strip()
    except Exception as e:
        logger.warning(f"PyPDF2 extraction failed: {e}")
        return ""
