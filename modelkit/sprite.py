"""Screen-space textured quads."""

from __future__ import annotations

import math
import os
from collections.abc import Sequence
from dataclasses import dataclass

from PIL import Image

Float2 = tuple[float, float]
Float3 = tuple[float, float, float]
Float4 = tuple[float, float, float, float]


@dataclass(frozen=True)
class SpriteVertex:
    """One corner of a sprite quad in normalised device coordinates."""

    position: Float3
    color: Float4
    texcoord: Float2


class Sprite:
    """A textured quad placed in pixel coordinates and drawn as a triangle strip."""

    def __init__(self, texture_width: float = 1.0, texture_height: float = 1.0) -> None:
        self.texture_width = float(texture_width)
        self.texture_height = float(texture_height)
        self.texture: Image.Image | None = None

    @classmethod
    def from_file(cls, filename: str | os.PathLike) -> Sprite:
        """Create a sprite whose texture is read from an image file."""
        with Image.open(filename) as image:
            texture = image.convert("RGBA")
        sprite = cls(texture.width, texture.height)
        sprite.texture = texture
        return sprite

    def vertices(
        self,
        viewport: Sequence[float],
        dx: float,
        dy: float,
        dz: float,
        dw: float,
        dh: float,
        angle: float = 0.0,
        color: Sequence[float] = (1.0, 1.0, 1.0, 1.0),
        source: Sequence[float] | None = None,
    ) -> list[SpriteVertex]:
        """Return the four quad corners: top left, top right, bottom left, bottom right.

        ``viewport`` is ``(width, height)`` in pixels, ``angle`` is in degrees and
        rotates about the quad's centre, and ``source`` is the ``(sx, sy, sw, sh)``
        texture rectangle in pixels, the whole texture when omitted.
        """
        screen_width, screen_height = (float(v) for v in viewport[:2])
        sx, sy, sw, sh = (
            (0.0, 0.0, self.texture_width, self.texture_height) if source is None else source
        )
        positions = (
            (dx, dy),
            (dx + dw, dy),
            (dx, dy + dh),
            (dx + dw, dy + dh),
        )
        texcoords = (
            (sx, sy),
            (sx + sw, sy),
            (sx, sy + sh),
            (sx + sw, sy + sh),
        )

        mx = dx + dw * 0.5
        my = dy + dh * 0.5
        theta = math.radians(angle)
        c, s = math.cos(theta), math.sin(theta)
        rgba = tuple(float(v) for v in color)

        corners = []
        for (px, py), (tu, tv) in zip(positions, texcoords):
            x, y = px - mx, py - my
            x, y = c * x - s * y + mx, s * x + c * y + my
            ndc_x = 2.0 * x / screen_width - 1.0
            ndc_y = 1.0 - 2.0 * y / screen_height
            corners.append(
                SpriteVertex(
                    position=(ndc_x, ndc_y, float(dz)),
                    color=rgba,
                    texcoord=(tu / self.texture_width, tv / self.texture_height),
                )
            )
        return corners