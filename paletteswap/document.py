from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

import numpy as np
from PIL import Image, ImageSequence

from paletteswap.palette_rows import Color


logger = logging.getLogger(__name__)


def build_color_match_mask(rgba: np.ndarray, color: Color, tolerance: int) -> np.ndarray:
    """Pixels whose every RGBA channel lies within ``tolerance`` of ``color``."""
    if rgba.dtype != np.uint8 or rgba.ndim != 3 or rgba.shape[2] != 4:
        raise ValueError("rgba must be HxWx4 uint8")
    tol = max(0, min(255, int(tolerance)))
    ref = np.array(color, dtype=np.int16)
    diff = np.abs(rgba.astype(np.int16) - ref)
    return np.all(diff <= tol, axis=-1)


@dataclass
class Surface:
    name: str
    pixels: np.ndarray
    layer: int = 0
    frame: int = 0
    duration: int | None = None


@dataclass
class SwapDocument:
    # One surface per layer/frame combination, in layer then frame order.
    surfaces: List[Surface] = field(default_factory=list)
    current_index: int = 0

    @property
    def current_surface(self) -> Surface:
        if not self.surfaces:
            raise IndexError("document has no surfaces")
        return self.surfaces[self.current_index]

    def select(self, index: int) -> None:
        if not 0 <= index < len(self.surfaces):
            raise IndexError(f"surface index {index} out of range")
        self.current_index = index

    def replace_color(self, from_color: Color, to_color: Color, tolerance: int) -> int:
        surface = self.current_surface
        mask = build_color_match_mask(surface.pixels, from_color, tolerance)
        count = int(mask.sum())
        if count:
            surface.pixels[mask] = np.array(to_color, dtype=np.uint8)
        return count

    def snapshot(self) -> List[np.ndarray]:
        return [s.pixels.copy() for s in self.surfaces]

    def restore(self, snapshot: Sequence[np.ndarray]) -> None:
        if len(snapshot) != len(self.surfaces):
            raise ValueError("snapshot does not match document surfaces")
        for surface, pixels in zip(self.surfaces, snapshot):
            surface.pixels[...] = pixels


def load_document(paths: Iterable[str | Path]) -> SwapDocument:
    surfaces: List[Surface] = []
    for layer_idx, p in enumerate(paths):
        path = Path(p)
        with Image.open(path) as img:
            for frame_idx, frame in enumerate(ImageSequence.Iterator(img)):
                surfaces.append(
                    Surface(
                        name=path.name,
                        pixels=np.array(frame.convert("RGBA"), dtype=np.uint8),
                        layer=layer_idx,
                        frame=frame_idx,
                        duration=frame.info.get("duration"),
                    )
                )
        logger.debug("Loaded %s as layer %s", path, layer_idx)
    return SwapDocument(surfaces=surfaces)


def _layer_groups(document: SwapDocument) -> List[Tuple[str, List[Surface]]]:
    groups: dict[int, Tuple[str, List[Surface]]] = {}
    for surface in document.surfaces:
        groups.setdefault(surface.layer, (surface.name, []))[1].append(surface)
    return [groups[k] for k in sorted(groups)]


def _output_name(name: str, layer: int, suffix: str, taken: set[str]) -> str:
    src = Path(name)
    ext = src.suffix or ".png"
    candidate = f"{src.stem}{suffix}{ext}"
    if candidate.lower() in taken:
        # Same file name on another layer: disambiguate by layer index.
        candidate = f"{src.stem}{suffix}_layer{layer}{ext}"
    taken.add(candidate.lower())
    return candidate


def _frame_to_image(surface: Surface, flatten: bool) -> Image.Image:
    img = Image.fromarray(surface.pixels)
    return img.convert("RGB") if flatten else img


def save_document(document: SwapDocument, output_dir: str | Path, suffix: str = "") -> List[Path]:
    out_root = Path(output_dir)
    out_root.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    taken: set[str] = set()
    for name, frames in _layer_groups(document):
        out_path = out_root / _output_name(name, frames[0].layer, suffix, taken)
        flatten = out_path.suffix.lower() in {".jpg", ".jpeg"}
        images = [_frame_to_image(s, flatten) for s in frames]
        if len(images) > 1:
            durations = [s.duration or 100 for s in frames]
            images[0].save(out_path, save_all=True, append_images=images[1:], duration=durations, loop=0)
        else:
            images[0].save(out_path)
        logger.debug("Wrote layer %s to %s", frames[0].layer, out_path)
        written.append(out_path)
    return written
