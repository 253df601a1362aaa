"""Caption -> FFmpeg filter mapping for the vertical reel canvas.

Features:
- Percentage position to canvas pixel anchor (text centred on the anchor)
- Enable window evaluated on the encoder timeline
- Escaping of caption text for the drawtext option and filtergraph levels
- Scale-to-fill + centre crop so every reel has the same dimensions
"""

import math
import re
import unicodedata
from dataclasses import dataclass
from typing import Optional

from reel_captioner.config import get_settings
from reel_captioner.schemas.caption import CaptionSpec

# Characters with meaning inside a single filter option value
_OPTION_SPECIAL = ("\\", "'", ":")
# Characters with meaning in the filtergraph description around the filter
_FILTERGRAPH_SPECIAL = ("\\", "'", "[", "]", ",", ";")

_HEX_COLOR = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


@dataclass(frozen=True)
class OverlayCanvas:
    """Fixed output canvas."""

    width: int = 1080
    height: int = 1920

    @classmethod
    def from_settings(cls) -> "OverlayCanvas":
        settings = get_settings()
        return cls(width=settings.render_output_width, height=settings.render_output_height)


@dataclass(frozen=True)
class OverlayParams:
    """Concrete drawtext parameters for one caption."""

    text: str
    anchor_x: int
    anchor_y: int
    start_s: float
    end_s: float
    font_size: float
    font_color: str
    box_color: str
    canvas: OverlayCanvas
    font_path: Optional[str] = None
    box_border: int = 10

    def is_visible_at(self, t: float) -> bool:
        """Same predicate as the ``enable`` expression: start <= t <= end."""
        return self.start_s <= t <= self.end_s

    @property
    def enable_expr(self) -> str:
        return f"between(t,{self.start_s:.6f},{self.end_s:.6f})"


def pct_to_px(pct: float, size: int) -> int:
    """Convert a percentage of ``size`` to a pixel offset.

    Rounds half up like the editor's ``Math.round``. No clamping: values
    outside 0-100 give off-canvas coordinates.
    """
    return int(math.floor(pct / 100 * size + 0.5))


def escape_option_value(value: str) -> str:
    """Escape a value for a filter option (``key=value`` inside ``:`` lists)."""
    for ch in _OPTION_SPECIAL:
        value = value.replace(ch, "\\" + ch)
    return value


def escape_filtergraph(value: str) -> str:
    """Escape an already option-escaped string for the filtergraph parser."""
    for ch in _FILTERGRAPH_SPECIAL:
        value = value.replace(ch, "\\" + ch)
    return value


def _strip_control_chars(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return "".join(ch for ch in text if ch == "\n" or unicodedata.category(ch) != "Cc")


def escape_drawtext_text(text: str) -> str:
    """Escape caption text so it renders literally inside ``drawtext=text=``.

    The text goes through two parsers (filtergraph, then option list), so it
    is escaped for each in reverse order. Control characters other than
    newline are dropped. ``%`` needs no escaping because the filter is built
    with ``expansion=none``.
    """
    return escape_filtergraph(escape_option_value(_strip_control_chars(text)))


def to_ffmpeg_color(color: str) -> str:
    """Convert a CSS color string to FFmpeg color syntax.

    ``#rgb``, ``#rrggbb`` and ``#rrggbbaa`` become ``0xRRGGBB[AA]``,
    ``transparent`` becomes fully transparent black. Anything else is passed
    through escaped, FFmpeg resolves named colors itself.
    """
    value = color.strip()
    match = _HEX_COLOR.match(value)
    if match:
        digits = match.group(1)
        if len(digits) == 3:
            digits = "".join(c * 2 for c in digits)
        return f"0x{digits.upper()}"
    if value.lower() == "transparent":
        return "black@0.0"
    return escape_filtergraph(escape_option_value(value))


def map_caption(
    caption: CaptionSpec,
    canvas: Optional[OverlayCanvas] = None,
) -> OverlayParams:
    """Map a caption to drawtext parameters for ``canvas``.

    Args:
        caption: Caption to render
        canvas: Output canvas, defaults to the configured reel size

    Returns:
        OverlayParams with pixel anchor, timing window and styling
    """
    settings = get_settings()
    canvas = canvas or OverlayCanvas.from_settings()

    font_path = settings.font_path or None
    if caption.is_bold and settings.bold_font_path:
        font_path = settings.bold_font_path

    return OverlayParams(
        text=caption.text,
        anchor_x=pct_to_px(caption.x_pct, canvas.width),
        anchor_y=pct_to_px(caption.y_pct, canvas.height),
        start_s=caption.start_time,
        end_s=caption.end_time,
        font_size=caption.font_size,
        font_color=caption.color,
        box_color=caption.background_color,
        canvas=canvas,
        font_path=font_path,
        box_border=settings.caption_box_border,
    )


def build_drawtext_filter(params: OverlayParams) -> str:
    """Build the drawtext filter for one caption."""
    # Escaped, not quoted: each parser level must consume its own backslashes
    options = [
        f"text={escape_drawtext_text(params.text)}",
        "expansion=none",
    ]
    if params.font_path:
        options.append(f"fontfile={escape_filtergraph(escape_option_value(params.font_path))}")
    options.extend([
        f"fontsize={params.font_size:g}",
        f"fontcolor={to_ffmpeg_color(params.font_color)}",
        # Centre the rendered text box on the anchor
        f"x={params.anchor_x}-text_w/2",
        f"y={params.anchor_y}-text_h/2",
        "box=1",
        f"boxcolor={to_ffmpeg_color(params.box_color)}",
        f"boxborderw={params.box_border}",
        f"enable='{params.enable_expr}'",
    ])
    return "drawtext=" + ":".join(options)


def build_canvas_filter(canvas: OverlayCanvas) -> str:
    """Scale to fill the canvas, then centre-crop the overflow (no letterbox)."""
    w, h = canvas.width, canvas.height
    return f"scale={w}:{h}:force_original_aspect_ratio=increase,crop={w}:{h},setsar=1"


def build_filter_chain(params: OverlayParams) -> str:
    """Full ``-vf`` chain: normalise the frame, then draw the caption.

    Blank captions render no overlay at all.
    """
    canvas_filter = build_canvas_filter(params.canvas)
    if not _strip_control_chars(params.text).strip():
        return canvas_filter
    return f"{canvas_filter},{build_drawtext_filter(params)}"
