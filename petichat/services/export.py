from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
import textwrap
from typing import Protocol

from docx import Document as DocxDocument

from petichat.core.config import get_settings
from petichat.domain.content import html_to_text
from petichat.domain.models import LegalDocument


EXPORT_FORMATS = ("pdf", "docx", "txt")
_CONTENT_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "txt": "text/plain; charset=utf-8",
}


@dataclass(frozen=True)
class ExportArtifact:
    file_name: str
    download_url: str
    content_type: str
    size_bytes: int


class ExportCollaborator(Protocol):
    async def export(self, document: LegalDocument, fmt: str) -> ExportArtifact:
        ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def export_file_name(title: str, fmt: str, *, now: datetime | None = None) -> str:
    # Title with underscores plus a millisecond timestamp keeps names unique per export.
    stamp = int((now or _utc_now()).timestamp() * 1000)
    safe_title = "_".join((title or "documento").split()).replace("/", "-")
    return f"{safe_title}_{stamp}.{fmt}"


def render_txt(title: str, text: str) -> bytes:
    return f"{title}\n\n{text}\n".encode("utf-8")


def render_docx(title: str, text: str) -> bytes:
    doc = DocxDocument()
    doc.add_heading(title, level=1)
    for line in text.splitlines():
        doc.add_paragraph(line)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def _pdf_escape(line: str) -> str:
    # Base-14 Helvetica speaks WinAnsi; latin-1 covers Portuguese accents.
    line = line.encode("latin-1", "replace").decode("latin-1")
    return line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def render_pdf(title: str, text: str, *, width: int = 95, lines_per_page: int = 52) -> bytes:
    """Minimal text-only PDF: Helvetica, A4, fixed line pitch."""
    lines: list[str] = []
    for raw in text.splitlines():
        lines.extend(textwrap.wrap(raw.strip(), width=width) or [""])
    pages = [lines[i : i + lines_per_page] for i in range(0, len(lines), lines_per_page)] or [[]]

    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>",
    ]
    kids: list[str] = []
    for index, page_lines in enumerate(pages):
        commands = ["BT", "/F1 12 Tf", "1 0 0 1 40 800 Tm"]
        if index == 0:
            commands += ["/F1 16 Tf", f"({_pdf_escape(title)}) Tj", "/F1 12 Tf", "0 -22 Td"]
        for position, line in enumerate(page_lines):
            if position:
                commands.append("0 -14 Td")
            commands.append(f"({_pdf_escape(line)}) Tj")
        commands.append("ET")
        stream = "\n".join(commands).encode("latin-1", "replace")
        page_number = len(objects) + 1
        kids.append(f"{page_number} 0 R")
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 595 842] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_number + 1} 0 R >>"
            ).encode("latin-1")
        )
        objects.append(f"<< /Length {len(stream)} >>\nstream\n".encode("latin-1") + stream + b"\nendstream")
    objects[1] = f"<< /Type /Pages /Count {len(pages)} /Kids [{' '.join(kids)}] >>".encode("latin-1")

    out = bytearray(b"%PDF-1.4\n")
    offsets: list[int] = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode("latin-1") + body + b"\nendobj\n"
    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n0000000000 65535 f \n".encode("latin-1")
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode("latin-1")
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF".encode("latin-1")
    return bytes(out)


_RENDERERS = {"txt": render_txt, "docx": render_docx, "pdf": render_pdf}


class LocalFileExporter:
    """Writes artifacts under a local directory and returns a download URL."""

    def __init__(self, storage_dir: str | None = None, base_url: str | None = None) -> None:
        settings = get_settings()
        self._storage_dir = Path(storage_dir or settings.export_storage_dir)
        self._base_url = (base_url or settings.export_base_url).rstrip("/")

    def _write(self, tenant_id: str, file_name: str, payload: bytes) -> None:
        target_dir = self._storage_dir / tenant_id
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / file_name).write_bytes(payload)

    async def export(self, document: LegalDocument, fmt: str) -> ExportArtifact:
        file_name = export_file_name(document.title, fmt)
        text = html_to_text(document.content_html or "")
        # Rendering and disk writes are blocking; keep them off the event loop.
        payload = await asyncio.to_thread(_RENDERERS[fmt], document.title, text)
        await asyncio.to_thread(self._write, document.tenant_id, file_name, payload)
        return ExportArtifact(
            file_name=file_name,
            download_url=f"{self._base_url}/{document.tenant_id}/{file_name}",
            content_type=_CONTENT_TYPES[fmt],
            size_bytes=len(payload),
        )
