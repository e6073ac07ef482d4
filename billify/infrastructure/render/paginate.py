# billify/infrastructure/render/paginate.py
import io
import math
from typing import Tuple

from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

A4_WIDTH_MM = 210
A4_HEIGHT_MM = 297


def page_height_px(width_px: int) -> int:
    """Height in pixels of one A4 page for a bitmap ``width_px`` wide."""
    return round(width_px * A4_HEIGHT_MM / A4_WIDTH_MM)


def page_count(width_px: int, height_px: int) -> int:
    return max(1, math.ceil(height_px / page_height_px(width_px)))


def paginate(image: Image.Image, title: str = "Invoice") -> Tuple[bytes, int]:
    """Slice a tall bitmap into A4 pages, full width, top-aligned.

    Returns the PDF bytes and the number of pages written.
    """
    width, height = image.size
    if width <= 0 or height <= 0:
        raise ValueError("Cannot paginate an empty image")

    tile_h = page_height_px(width)
    pages = page_count(width, height)
    page_w, page_h = A4

    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=A4)
    pdf.setTitle(title)
    for index in range(pages):
        top = index * tile_h
        tile = image.crop((0, top, width, min(top + tile_h, height)))
        # Last tile keeps its own height, scaled to the page width
        draw_h = page_w * tile.height / width
        pdf.drawImage(ImageReader(tile), 0, page_h - draw_h, width=page_w, height=draw_h)
        pdf.showPage()
    pdf.save()
    return buf.getvalue(), pages
