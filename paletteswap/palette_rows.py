"""Reference palettes: images used as (row, column) color lookup tables."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from paletteswap.errors import NotFoundError


logger = logging.getLogger(__name__)

Color = Tuple[int, int, int, int]

COLOR_CHANNEL = "<<color channel>>"
MATCH_FROM_PALETTE = "<<match From Palette>>"
PALETTE_EXT = ".png"
CHANNEL_WIDTH = 256


class ChannelModeContext(Protocol):
    channel_mode: bool
    channel_palette_path: Optional[str]


@dataclass(frozen=True)
class ReferencePalette:
    name: str
    pixels: np.ndarray  # H x W x 4 uint8

    def __post_init__(self) -> None:
        arr = self.pixels
        if arr.dtype != np.uint8 or arr.ndim != 3 or arr.shape[2] != 4:
            raise ValueError("pixels must be HxWx4 uint8")
        if arr.shape[0] < 1 or arr.shape[1] < 1:
            raise ValueError("palette must be at least 1x1")
        arr.setflags(write=False)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def color_at(self, x: int, y: int) -> Color:
        # Callers range-check rows before sampling; numpy would wrap negatives.
        r, g, b, a = self.pixels[y, x]
        return (int(r), int(g), int(b), int(a))

    def row(self, y: int) -> List[Color]:
        return [self.color_at(x, y) for x in range(self.width)]


def palette_from_image(name: str, img: Image.Image) -> ReferencePalette:
    arr = np.array(img.convert("RGBA"), dtype=np.uint8)
    return ReferencePalette(name=name, pixels=arr)


def build_channel_palette() -> ReferencePalette:
    """
    Synthetic reference for the reserved color-channel identifier.

    Rows: 0 red ramp, 1 green ramp, 2 blue ramp, 3 gray ramp, 4 white with an
    alpha ramp. Column ``i`` holds channel value ``i``.
    """
    ramp = np.arange(CHANNEL_WIDTH, dtype=np.uint8)
    full = np.full(CHANNEL_WIDTH, 255, dtype=np.uint8)
    zero = np.zeros(CHANNEL_WIDTH, dtype=np.uint8)
    rows = [
        (ramp, zero, zero, full),
        (zero, ramp, zero, full),
        (zero, zero, ramp, full),
        (ramp, ramp, ramp, full),
        (full, full, full, ramp),
    ]
    arr = np.stack([np.stack(r, axis=-1) for r in rows], axis=0)
    return ReferencePalette(name=COLOR_CHANNEL, pixels=arr)


def _load_palette_file(identifier: str, path: Path) -> ReferencePalette:
    if not path.is_file():
        raise NotFoundError(identifier, str(path))
    try:
        with Image.open(path) as img:
            return palette_from_image(identifier, img)
    except (OSError, UnidentifiedImageError, ValueError) as exc:
        raise NotFoundError(identifier, str(path)) from exc


def resolve_palette(identifier: str, palette_path: str, context: ChannelModeContext) -> ReferencePalette:
    """
    Load the reference palette named ``identifier``.

    The color-channel sentinel ignores ``palette_path`` and flags the
    context as channel mode; anything else is read from
    ``palette_path/<identifier>.png``.
    """
    if identifier == COLOR_CHANNEL:
        context.channel_mode = True
        override = getattr(context, "channel_palette_path", None)
        if override:
            logger.debug("Loading channel reference from %s", override)
            return _load_palette_file(identifier, Path(override))
        return build_channel_palette()

    path = Path(palette_path) / f"{identifier}{PALETTE_EXT}"
    palette = _load_palette_file(identifier, path)
    logger.debug("Loaded palette %r from %s (%sx%s)", identifier, path, palette.width, palette.height)
    return palette


def list_palettes(palette_path: str | None, include_match_from: bool = False) -> List[str]:
    result = [COLOR_CHANNEL]
    if include_match_from:
        result.append(MATCH_FROM_PALETTE)
    if not palette_path:
        return result
    root = Path(palette_path)
    if not root.is_dir():
        return result
    names = sorted(
        p.stem for p in root.iterdir() if p.is_file() and p.suffix == PALETTE_EXT
    )
    result.extend(names)
    return result
