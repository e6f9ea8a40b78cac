"""Board colors and color utilities for the UI."""

from typing import Sequence


class BoardColors:
    """Fixed colors used when painting the board and palette chips."""

    BG = "#f7f7fb"
    PRIMARY = "#7c3aed"
    PRIMARY_LIGHT = "#c4b5fd"

    CELL_EMPTY = "#ffffff"
    CELL_LABEL = "#1f2937"
    GRID_LINE = "#000000"
    HIGHLIGHT = "rgba(108, 92, 231, 0.18)"
    BOMB_RING = "rgba(124, 58, 237, 0.60)"

    TEXT_PRIMARY = "#0f172a"
    TEXT_MUTED = "#6b7280"


def rgb_to_hex(rgb: Sequence[int]) -> str:
    """(r, g, b) -> '#RRGGBB'."""
    r, g, b = (max(0, min(255, int(v))) for v in rgb[:3])
    return f"#{r:02X}{g:02X}{b:02X}"


def blend_hex(a: str, b: str, t: float) -> str:
    """Blend two #RRGGBB colors. t=0 -> a, t=1 -> b."""
    a = a.strip()
    b = b.strip()
    if not (a.startswith("#") and b.startswith("#") and len(a) == 7 and len(b) == 7):
        return a
    try:
        ar, ag, ab = int(a[1:3], 16), int(a[3:5], 16), int(a[5:7], 16)
        br, bg, bb = int(b[1:3], 16), int(b[3:5], 16), int(b[5:7], 16)
    except ValueError:
        return a
    t = max(0.0, min(1.0, float(t)))
    r = int(ar + (br - ar) * t)
    g = int(ag + (bg - ag) * t)
    bl = int(ab + (bb - ab) * t)
    return f"#{r:02X}{g:02X}{bl:02X}"


def chip_text_color(rgb: Sequence[int]) -> str:
    """White or near-black, whichever reads better on a chip of color *rgb*."""
    r, g, b = (int(v) for v in rgb[:3])
    lum = 0.2126 * r + 0.7152 * g + 0.0722 * b
    return BoardColors.TEXT_PRIMARY if lum > 150 else "#FFFFFF"
