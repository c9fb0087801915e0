"""
Invoice Renderer

Draws the printable invoice with Pillow and saves it as a single-page PDF.

The layout mirrors the on-screen invoice: letterhead, the COMMERCIAL
INVOICE heading, Ref / Date / M/s, the item table, the total and a
signature line. It is laid out at a fixed width and then scaled, so the
output does not depend on the window the user happened to have open.
The page is exactly as tall as the content.
"""

from abc import ABC, abstractmethod
from io import BytesIO
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from src.config import CompanySettings, ExportSettings, get_settings
from src.models.invoice import Invoice, format_amount, invoice_total

# Layout in unscaled pixels
PADDING = 48
ROW_HEIGHT = 40
TABLE_HEADER_HEIGHT = 44
SIGN_GAP = 96

# Column widths as fractions of the table width: Sno, Description, Qty, Unit Rate, Amount
COLUMNS = (
    ("Sno", 0.08, "left"),
    ("Description", 0.48, "left"),
    ("Qty", 0.12, "right"),
    ("Unit Rate", 0.16, "right"),
    ("Amount", 0.16, "right"),
)

# jsPDF's px unit; keeps the page size equal to the canvas size in CSS pixels
PDF_RESOLUTION = 96.0


class ExportError(Exception):
    """The invoice could not be rendered."""
    pass


class InvoiceRendererInterface(ABC):
    """Turns an invoice into document bytes."""

    @abstractmethod
    def render(self, invoice: Invoice) -> bytes:
        """
        Render an invoice.

        Raises:
            ExportError: If rendering fails
        """
        pass


def _format_number(value: float) -> str:
    """Show quantities the way the form input does: 2 not 2.0."""
    value = value + 0.0
    if value.is_integer():
        return str(int(value))
    return repr(value)


class PillowInvoiceRenderer(InvoiceRendererInterface):
    """
    Pillow implementation of the invoice renderer.

    Fonts are Pillow's bundled default face at several sizes, so no font
    files need to be installed.
    """

    def __init__(
        self,
        export_settings: Optional[ExportSettings] = None,
        company: Optional[CompanySettings] = None,
    ):
        settings = get_settings()
        self.settings = export_settings or settings.export
        self.company = company or settings.company
        self._fonts: dict[int, ImageFont.ImageFont] = {}

    def _px(self, value: float) -> int:
        return int(round(value * self.settings.scale))

    def _font(self, size: int):
        scaled = self._px(size)
        if scaled not in self._fonts:
            self._fonts[scaled] = ImageFont.load_default(size=scaled)
        return self._fonts[scaled]

    def _line_height(self, size: int) -> int:
        left, top, right, bottom = self._font(size).getbbox("Ag")
        return bottom - top

    def _fit(self, draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> str:
        """Truncate text with an ellipsis so it fits in max_width."""
        if draw.textlength(text, font=font) <= max_width:
            return text
        while text and draw.textlength(text + "...", font=font) > max_width:
            text = text[:-1]
        return text + "..."

    def _canvas_height(self, invoice: Invoice) -> int:
        header = 32 + 20 + 16 + 3 * 24 + 40
        heading = 28 + 28 + 48
        fields = 2 * 36 + 24
        table = TABLE_HEADER_HEIGHT + ROW_HEIGHT * len(invoice.items) + 32
        total = 44
        footer = 40 + 24 + SIGN_GAP
        return self._px(2 * PADDING + header + heading + fields + table + total + footer)

    def _draw_centered(self, draw, y: int, text: str, size: int, color: str, width: int) -> None:
        font = self._font(size)
        text = self._fit(draw, text, font, width - 2 * self._px(PADDING))
        x = (width - draw.textlength(text, font=font)) / 2
        draw.text((x, y), text, font=font, fill=color)

    def _draw_table(self, draw, invoice: Invoice, top: int, width: int) -> int:
        s = self.settings
        left = self._px(PADDING)
        table_width = width - 2 * left
        cell_pad = self._px(10)
        font = self._font(15)
        header_font = self._font(15)

        edges = [left]
        for _, fraction, _ in COLUMNS:
            edges.append(edges[-1] + int(table_width * fraction))

        draw.rectangle(
            (left, top, left + table_width, top + self._px(TABLE_HEADER_HEIGHT)),
            fill="#1f2937",
        )
        text_offset = (self._px(TABLE_HEADER_HEIGHT) - self._line_height(15)) // 2
        for index, (title, _, align) in enumerate(COLUMNS):
            self._draw_cell(draw, title, header_font, edges[index], edges[index + 1],
                            top + text_offset, align, cell_pad, s.text_color)
        y = top + self._px(TABLE_HEADER_HEIGHT)
        draw.line((left, y, left + table_width, y), fill=s.muted_color, width=self._px(2))

        for item in invoice.items:
            cells = (
                str(item.sno),
                item.description,
                _format_number(item.qty),
                _format_number(item.unit_rate),
                format_amount(item.line_amount),
            )
            text_offset = (self._px(ROW_HEIGHT) - self._line_height(15)) // 2
            for index, (_, _, align) in enumerate(COLUMNS):
                self._draw_cell(draw, cells[index], font, edges[index], edges[index + 1],
                                y + text_offset, align, cell_pad, s.text_color)
            y += self._px(ROW_HEIGHT)
            draw.line((left, y, left + table_width, y), fill="#374151", width=self._px(1))

        return y

    def _draw_cell(self, draw, text, font, x0, x1, y, align, pad, color) -> None:
        text = self._fit(draw, text, font, x1 - x0 - 2 * pad)
        if align == "right":
            x = x1 - pad - draw.textlength(text, font=font)
        else:
            x = x0 + pad
        draw.text((x, y), text, font=font, fill=color)

    def _draw(self, invoice: Invoice) -> Image.Image:
        s = self.settings
        company = self.company
        width = self._px(s.page_width_px)
        height = self._canvas_height(invoice)
        image = Image.new("RGB", (width, height), s.background_color)
        draw = ImageDraw.Draw(image)
        left = self._px(PADDING)
        right = width - left

        # Letterhead
        y = self._px(PADDING)
        self._draw_centered(draw, y, company.name, 32, s.text_color, width)
        y += self._px(32 + 20)
        self._draw_centered(
            draw, y, f"{company.subtitle} NTN No: {invoice.ntn_no}", 16, "#d1d5db", width
        )
        y += self._px(16 + 24)
        self._draw_centered(
            draw,
            y,
            f"{company.address}  |  Contact: {company.contact}  |  Email: {company.email}",
            13,
            s.muted_color,
            width,
        )
        y += self._px(2 * 24 + 40)
        draw.line((left, y, right, y), fill="#374151", width=self._px(1))

        # Heading
        y += self._px(28)
        self._draw_centered(draw, y, "COMMERCIAL INVOICE", 28, s.text_color, width)
        y += self._px(28 + 48)

        # Ref / Date / M/s
        label_font = self._font(16)
        half = left + (right - left) // 2
        draw.text((left, y), "Ref:", font=label_font, fill=s.text_color)
        draw.text((left + self._px(64), y), self._fit(draw, invoice.ref, label_font, half - left - self._px(80)),
                  font=label_font, fill=s.text_color)
        draw.text((half, y), "Date:", font=label_font, fill=s.text_color)
        draw.text((half + self._px(64), y), invoice.invoice_date, font=label_font, fill=s.text_color)
        y += self._px(36)
        draw.text((left, y), "M/s:", font=label_font, fill=s.text_color)
        draw.text((left + self._px(64), y), self._fit(draw, invoice.recipient, label_font, right - left - self._px(64)),
                  font=label_font, fill=s.text_color)
        y += self._px(36 + 24)

        # Items
        y = self._draw_table(draw, invoice, y, width)
        y += self._px(32)

        # Total
        total_font = self._font(20)
        total_text = format_amount(invoice_total(invoice))
        draw.text((right - self._px(320), y), "Total Amount:", font=label_font, fill=s.text_color)
        draw.text((right - draw.textlength(total_text, font=total_font), y - self._px(2)),
                  total_text, font=total_font, fill=s.text_color)
        y += self._px(44 + 40)

        # Signature
        draw.line((left, y, right, y), fill="#374151", width=self._px(1))
        y += self._px(24)
        draw.text((left, y), "Sign:", font=label_font, fill=s.text_color)
        sign_y = y + self._px(SIGN_GAP) - self._px(16)
        draw.line((left, sign_y, left + (right - left) // 2, sign_y), fill="#4b5563", width=self._px(2))

        return image

    def render_image(self, invoice: Invoice) -> Image.Image:
        """Render to a Pillow image without encoding it."""
        try:
            return self._draw(invoice)
        except (OSError, ValueError) as e:
            raise ExportError(f"Failed to draw invoice: {e}")

    def render(self, invoice: Invoice) -> bytes:
        image = self.render_image(invoice)
        buffer = BytesIO()
        try:
            image.save(buffer, format="PDF", resolution=PDF_RESOLUTION)
        except (OSError, ValueError) as e:
            raise ExportError(f"Failed to write PDF: {e}")
        return buffer.getvalue()
