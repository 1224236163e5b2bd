from __future__ import annotations

import colorsys
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING

from .math import clamp, imul32, to_int32

if TYPE_CHECKING:
    import pyray as rl


@dataclass(slots=True, frozen=True)
class RGBA:
    r: float = 1.0
    g: float = 1.0
    b: float = 1.0
    a: float = 1.0

    @classmethod
    def from_hsl(cls, hue: float, saturation: float, lightness: float, alpha: float = 1.0) -> RGBA:
        """Build a color from CSS-style HSL (hue in degrees, saturation/lightness in percent)."""
        r, g, b = colorsys.hls_to_rgb(
            (float(hue) % 360.0) / 360.0,
            clamp(float(lightness) / 100.0, 0.0, 1.0),
            clamp(float(saturation) / 100.0, 0.0, 1.0),
        )
        return cls(r, g, b, float(alpha))

    def clamped(self) -> RGBA:
        return RGBA(
            r=clamp(self.r, 0.0, 1.0),
            g=clamp(self.g, 0.0, 1.0),
            b=clamp(self.b, 0.0, 1.0),
            a=clamp(self.a, 0.0, 1.0),
        )

    def to_bytes(self) -> tuple[int, int, int, int]:
        c = self.clamped()
        return (
            int(c.r * 255.0 + 0.5),
            int(c.g * 255.0 + 0.5),
            int(c.b * 255.0 + 0.5),
            int(c.a * 255.0 + 0.5),
        )

    def to_hex(self) -> str:
        r, g, b, _a = self.to_bytes()
        return f"#{r:02x}{g:02x}{b:02x}"

    def to_rl(self) -> rl.Color:
        import pyray as rl

        return rl.Color(*self.to_bytes())


def action_hash(name: str) -> int:
    """Java-style 31-multiplier string hash over UTF-16 code units, wrapped to int32."""
    value = 0
    raw = str(name).encode("utf-16-le")
    for idx in range(0, len(raw), 2):
        unit = raw[idx] | (raw[idx + 1] << 8)
        value = to_int32(imul32(31, value) + unit)
    return value


def action_hsl(name: str) -> tuple[int, int, int]:
    magnitude = abs(action_hash(name))
    hue = magnitude % 360
    saturation = 45 + magnitude % 15
    lightness = 55 + magnitude % 12
    return hue, saturation, lightness


@lru_cache(maxsize=512)
def color_for_action(name: str) -> RGBA:
    """Stable color for an action type or subtype name."""
    return RGBA.from_hsl(*action_hsl(name))


STATE_BACKGROUND = RGBA.from_hsl(48, 33, 97)
ACTION_BACKGROUND = RGBA(1.0, 1.0, 1.0, 1.0)
