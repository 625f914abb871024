"""
Certificate of analysis (PDF) for a sample.

Rendered from whatever analysis/validation payload the sample currently
holds, regardless of the certification outcome.
"""

import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

PALETTE = {
    "primary": colors.HexColor("#1f4ab8"),
    "text": colors.HexColor("#111827"),
    "muted": colors.HexColor("#6b7280"),
    "border": colors.HexColor("#d6d9e0"),
    "soft": colors.HexColor("#f3f6fb"),
}

EMPTY = "-"

META_FIELDS = (
    ("Color", "color"),
    ("Textura", "texture"),
    ("Apariencia", "appearance"),
    ("Fecha de expiración", "expiration"),
    ("Peso Neto (g)", "net_weight"),
    ("Sabor", "flavor"),
)

RESULT_COLUMNS = (
    ("Parámetro", "param", 150),
    ("Resultado", "value", 100),
    ("Unidad", "unit", 70),
    ("Rango normal", "range", 125),
    ("Estado", "status", 70),
)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def format_datetime(value: Any) -> str:
    parsed = _parse_datetime(value)
    if parsed is None:
        return str(value) if value else EMPTY
    return parsed.strftime("%d/%m/%Y %H:%M")


def format_date(value: Any) -> str:
    parsed = _parse_datetime(value)
    if parsed is None:
        return str(value) if value else EMPTY
    return parsed.strftime("%d/%m/%Y")


def _text(value: Any) -> str:
    if value is None or value == "":
        return EMPTY
    return str(value)


def build_certificate_context(sample: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten sample + payloads into the values printed on the certificate."""
    analysis = sample.get("analysis_payload") or {}
    validation = sample.get("validation_payload") or {}
    results: List[Dict[str, Any]] = validation.get("results") or analysis.get("results") or []

    meta = []
    for label, key in META_FIELDS:
        value = analysis.get(key) or validation.get(key)
        if key == "expiration" and value:
            value = format_date(value)
        meta.append((label, _text(value)))

    return {
        "title": "CERTIFICADO DE ANÁLISIS",
        "report_number": validation.get("report_number") or "N/A",
        "sample": [
            ("Código", _text(sample.get("code"))),
            ("Tipo", _text(sample.get("type"))),
            ("Origen", _text(sample.get("origin"))),
            ("Transporte", _text(sample.get("transport_condition"))),
            ("Almacenado", _text(sample.get("storage_condition"))),
        ],
        "client": [
            ("Nombre", _text(sample.get("business_name"))),
            ("Correo", _text(validation.get("client_email") or sample.get("email"))),
            ("Teléfono", _text(sample.get("phone"))),
            ("Dirección", _text(sample.get("address"))),
        ],
        "received_at": format_datetime(sample.get("received_at")),
        "issued_at": format_date(validation.get("report_date") or sample.get("due_date")),
        "meta": meta,
        "results": [
            {key: _text(r.get(key)) if isinstance(r, dict) else EMPTY for _, key, _ in RESULT_COLUMNS}
            for r in results
        ],
    }


def certificate_filename(sample: Dict[str, Any]) -> str:
    return f"{sample.get('code') or 'certificado'}.pdf"


class _Writer:
    """Cursor-based helper over a reportlab canvas."""

    margin = 50

    def __init__(self, buffer: io.BytesIO, title: str):
        self.canvas = canvas.Canvas(buffer, pagesize=A4, pageCompression=0)
        self.canvas.setTitle(title)
        self.width, self.height = A4
        self.y = self.height - self.margin

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin

    def ensure_space(self, needed: float) -> None:
        if self.y - needed < self.margin:
            self.canvas.showPage()
            self.y = self.height - self.margin

    def text(self, x: float, y: float, value: str, size: int = 11, color=None, font: str = "Helvetica") -> None:
        self.canvas.setFont(font, size)
        self.canvas.setFillColor(color or PALETTE["text"])
        self.canvas.drawString(x, y, value)

    def box(self, x: float, y: float, w: float, h: float, fill=None, stroke=None) -> None:
        self.canvas.setStrokeColor(stroke or PALETTE["border"])
        if fill is not None:
            self.canvas.setFillColor(fill)
        self.canvas.rect(x, y, w, h, stroke=1, fill=1 if fill is not None else 0)


def render_certificate_pdf(sample: Dict[str, Any]) -> bytes:
    ctx = build_certificate_context(sample)
    buffer = io.BytesIO()
    w = _Writer(buffer, ctx["title"])
    left = w.margin

    # Header
    w.canvas.setFont("Helvetica-Bold", 18)
    w.canvas.setFillColor(PALETTE["text"])
    w.canvas.drawCentredString(w.width / 2, w.y, ctx["title"])
    w.y -= 18
    w.canvas.setFont("Helvetica", 11)
    w.canvas.setFillColor(PALETTE["muted"])
    w.canvas.drawCentredString(w.width / 2, w.y, f"Número de informe: {ctx['report_number']}")
    w.y -= 14
    w.canvas.setFillColor(PALETTE["primary"])
    w.canvas.rect(left, w.y, w.content_width, 2, stroke=0, fill=1)
    w.y -= 20

    # Sample / client panel
    panel_h = 170
    col_w = w.content_width / 2 - 8
    right = left + col_w + 16
    w.box(left, w.y - panel_h, w.content_width, panel_h, fill=PALETTE["soft"])
    w.text(left + 10, w.y - 16, "Información de la muestra", font="Helvetica-Bold")
    w.text(right, w.y - 16, "Detalles del cliente", font="Helvetica-Bold")
    for column_x, fields in ((left + 10, ctx["sample"]), (right, ctx["client"])):
        row_y = w.y - 40
        for label, value in fields:
            w.text(column_x, row_y, label, size=9, color=PALETTE["muted"])
            w.text(column_x, row_y - 12, value)
            row_y -= 26
    w.y -= panel_h + 20

    # Dates
    w.text(left + 10, w.y, "Fecha de recepción", size=9, color=PALETTE["muted"])
    w.text(left + 10, w.y - 14, ctx["received_at"], size=12)
    w.text(right, w.y, "Fecha de emisión", size=9, color=PALETTE["muted"])
    w.text(right, w.y - 14, ctx["issued_at"], size=12)
    w.y -= 44

    # Meta grid, 3 columns
    w.text(left, w.y, "Resultados de análisis", size=12, font="Helvetica-Bold")
    w.y -= 12
    meta_w = (w.content_width - 16) / 3
    for idx, (label, value) in enumerate(ctx["meta"]):
        row, col = divmod(idx, 3)
        x = left + col * (meta_w + 8)
        top = w.y - row * 40
        w.box(x, top - 34, meta_w, 34, fill=PALETTE["soft"])
        w.text(x + 8, top - 13, label, size=9, color=PALETTE["muted"])
        w.text(x + 8, top - 27, value)
    w.y -= 40 * ((len(ctx["meta"]) + 2) // 3) + 16

    # Results table
    w.ensure_space(60)
    w.text(left, w.y, "Resultados del análisis", size=13, font="Helvetica-Bold")
    w.y -= 30
    total_w = sum(width for _, _, width in RESULT_COLUMNS)

    def header_row():
        w.box(left, w.y, total_w, 24, fill=PALETTE["primary"], stroke=PALETTE["primary"])
        offset = left
        for label, _, width in RESULT_COLUMNS:
            w.text(offset + 8, w.y + 8, label, size=10, color=colors.white)
            offset += width

    header_row()
    for idx, result in enumerate(ctx["results"]):
        if w.y - 22 < w.margin:
            w.canvas.showPage()
            w.y = w.height - w.margin - 24
            header_row()
        w.y -= 22
        w.box(left, w.y, total_w, 22, fill=PALETTE["soft"] if idx % 2 == 0 else None)
        offset = left
        for _, key, width in RESULT_COLUMNS:
            w.text(offset + 8, w.y + 7, result[key], size=10)
            offset += width

    if not ctx["results"]:
        w.y -= 24
        w.box(left, w.y, total_w, 24)
        w.text(left + 8, w.y + 8, "Sin resultados reportados", size=10, color=PALETTE["muted"])

    w.canvas.save()
    logger.info("Certificado generado para muestra %s", sample.get("id"))
    return buffer.getvalue()
