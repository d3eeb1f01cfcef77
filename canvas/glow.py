"""
canvas/glow.py

Blurred shadow and glow sprites.

QPainter has no ``shadowBlur``; the compositor instead draws a pre-blurred
sprite under a shape.  Sprites are rendered with Pillow (an ``L`` mask
drawn with ``ImageDraw`` and softened with ``ImageFilter.GaussianBlur``),
tinted, converted to ``QImage`` and cached by shape, size, color and blur.
"""

from __future__ import annotations

import math
from collections import OrderedDict
from typing import Hashable, Tuple

from PIL import Image, ImageDraw, ImageFilter
from PyQt6.QtCore import QPointF
from PyQt6.QtGui import QColor, QImage, QPainter

from models import NodeShape

# Note corner fold in pixels (shared with the compositor)
NOTE_FOLD = 10.0


def _shape_mask(shape: NodeShape, w: int, h: int, pad: int, radius: float) -> Image.Image:
    """Opaque silhouette of *shape* centered in a padded ``L`` image."""
    mask = Image.new("L", (w + 2 * pad, h + 2 * pad), 0)
    draw = ImageDraw.Draw(mask)
    x0, y0, x1, y1 = pad, pad, pad + w, pad + h
    if shape is NodeShape.CIRCLE:
        draw.ellipse((x0, y0, x1, y1), fill=255)
    elif shape is NodeShape.DIAMOND:
        cx, cy = pad + w / 2.0, pad + h / 2.0
        draw.polygon([(cx, y0), (x1, cy), (cx, y1), (x0, cy)], fill=255)
    elif shape is NodeShape.FOLDED_NOTE:
        fold = min(NOTE_FOLD, w / 2.0, h / 2.0)
        draw.polygon([(x0, y0), (x1 - fold, y0), (x1, y0 + fold), (x1, y1), (x0, y1)], fill=255)
    elif radius > 0:
        draw.rounded_rectangle((x0, y0, x1, y1), radius=min(radius, w / 2.0, h / 2.0), fill=255)
    else:
        draw.rectangle((x0, y0, x1, y1), fill=255)
    return mask


def make_glow_sprite(shape: NodeShape, size: Tuple[float, float], color: QColor,
                     blur: float, radius: float = 0.0) -> Tuple[QImage, int]:
    """Render one blurred sprite.

    Args:
        shape: Silhouette to blur.
        size: Shape width and height in pixels.
        color: Glow color; its alpha scales the whole sprite.
        blur: Blur amount in canvas ``shadowBlur`` units (sigma = blur / 2).
        radius: Corner radius for rounded rectangles.

    Returns:
        ``(image, pad)`` where *pad* is the margin around the shape.
    """
    w = max(1, int(math.ceil(size[0])))
    h = max(1, int(math.ceil(size[1])))
    pad = int(math.ceil(blur * 1.5)) + 2
    mask = _shape_mask(shape, w, h, pad, radius)
    if blur > 0:
        mask = mask.filter(ImageFilter.GaussianBlur(blur / 2.0))
    if color.alpha() < 255:
        mask = mask.point(lambda v: v * color.alpha() // 255)

    sprite = Image.new("RGBA", mask.size, (color.red(), color.green(), color.blue(), 0))
    sprite.putalpha(mask)
    data = sprite.tobytes("raw", "RGBA")
    image = QImage(data, sprite.width, sprite.height, sprite.width * 4, QImage.Format.Format_RGBA8888)
    # Detach from the Python bytes buffer
    return image.copy(), pad


class GlowCache:
    """Bounded LRU cache of glow sprites.

    Args:
        max_entries: Maximum number of cached sprites.
    """

    def __init__(self, max_entries: int = 256):
        self.max_entries = max_entries
        self._sprites: "OrderedDict[Hashable, Tuple[QImage, int]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sprites)

    def clear(self) -> None:
        self._sprites.clear()

    def sprite(self, shape: NodeShape, size: Tuple[float, float], color: QColor,
               blur: float, radius: float = 0.0) -> Tuple[QImage, int]:
        key = (shape, int(math.ceil(size[0])), int(math.ceil(size[1])),
               color.rgba(), round(blur, 2), round(radius, 2))
        hit = self._sprites.get(key)
        if hit is not None:
            self._sprites.move_to_end(key)
            return hit
        entry = make_glow_sprite(shape, size, color, blur, radius)
        self._sprites[key] = entry
        if len(self._sprites) > self.max_entries:
            self._sprites.popitem(last=False)
        return entry

    def draw(self, painter: QPainter, shape: NodeShape, left: float, top: float,
             size: Tuple[float, float], color: QColor, blur: float,
             radius: float = 0.0, offset: Tuple[float, float] = (0.0, 0.0)) -> None:
        """Draw the glow for a shape whose bounding box starts at ``(left, top)``."""
        image, pad = self.sprite(shape, size, color, blur, radius)
        painter.drawImage(QPointF(left - pad + offset[0], top - pad + offset[1]), image)
