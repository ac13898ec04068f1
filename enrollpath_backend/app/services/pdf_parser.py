import logging
import multiprocessing
from io import BytesIO

from pypdf import PdfReader
from pypdf.errors import DependencyError, FileNotDecryptedError, PdfReadError

from app.core.config import settings
from app.core.errors import ExtractionFailure

logger = logging.getLogger(__name__)

_PDF_MAGIC = b"%PDF"
_TEXT_SUFFIXES = (".txt", ".csv", ".text")


def extract_text_from_pdf(data: bytes) -> str:
    with BytesIO(data) as buffer:
        try:
            reader = PdfReader(buffer)
            if reader.is_encrypted:
                reader.decrypt("")
            texts = [page.extract_text() or "" for page in reader.pages]
        except (PdfReadError, DependencyError, FileNotDecryptedError) as exc:
            raise ExtractionFailure(f"Unreadable PDF: {exc}") from exc
        except Exception as exc:
            # pypdf surfaces some structural damage as plain errors
            raise ExtractionFailure(f"Corrupt PDF: {exc}") from exc
    return "\n".join(texts).strip()


def extract_text_from_plain(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig").strip()
    except UnicodeDecodeError as exc:
        raise ExtractionFailure("Unsupported document: not a PDF or UTF-8 text.") from exc


def extract_text(data: bytes, filename: str | None = None) -> str:
    """Turn uploaded document bytes into plain text.

    Raises ExtractionFailure for empty, corrupt or unsupported documents and
    for documents without any extractable text.
    """
    if not data:
        raise ExtractionFailure("Empty document.")
    name = (filename or "").lower()
    if data.startswith(_PDF_MAGIC) or name.endswith(".pdf"):
        text = extract_text_from_pdf(data)
    elif name.endswith(_TEXT_SUFFIXES) or b"\x00" not in data:
        text = extract_text_from_plain(data)
    else:
        raise ExtractionFailure(f"Unsupported document type: {filename or 'unknown'}")
    if not text:
        raise ExtractionFailure("No text could be extracted from this document.")
    return text


def _extract_in_child(conn, extractor, data, filename):
    try:
        conn.send(("ok", extractor(data, filename)))
    except ExtractionFailure as exc:
        conn.send(("failed", exc.reason))
    except Exception as exc:
        conn.send(("failed", f"Extraction crashed: {exc}"))
    finally:
        conn.close()


def extract_text_with_timeout(
    data: bytes,
    filename: str | None = None,
    timeout: float | None = None,
    extractor=None,
) -> str:
    """Run ``extractor`` (``extract_text`` by default) in a child process.

    The child is terminated when the limit passes, so a stuck document never
    keeps a worker or its buffers alive. ``extractor`` must be a module-level
    function so it can be sent to the child.
    """
    limit = settings.extraction_timeout_seconds if timeout is None else timeout
    ctx = multiprocessing.get_context()
    receiver, sender = ctx.Pipe(duplex=False)
    worker = ctx.Process(
        target=_extract_in_child,
        args=(sender, extractor or extract_text, data, filename),
        daemon=True,
    )
    worker.start()
    sender.close()
    try:
        if not receiver.poll(limit):
            logger.warning("Extraction of %s timed out after %.1fs", filename or "document", limit)
            raise ExtractionFailure(f"Extraction timed out after {limit:g}s.")
        outcome, payload = receiver.recv()
    except EOFError as exc:
        raise ExtractionFailure("Extraction worker exited without a result.") from exc
    finally:
        receiver.close()
        if worker.is_alive():
            worker.terminate()
        worker.join()
    if outcome == "failed":
        raise ExtractionFailure(payload)
    return payload
