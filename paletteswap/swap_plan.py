"""
Palette swap planning and application.

A swap pairs rows of a "from" reference palette with rows of a "to" reference
palette by position. For each column of the narrower palette the matching
column of the wider one is sampled, and every pixel of the document matching
the "from" color (within tolerance) is replaced by the "to" color.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from paletteswap.document import SwapDocument
from paletteswap.errors import ApplyError, Cancelled, ValidationError
from paletteswap.palette_rows import (
    MATCH_FROM_PALETTE,
    Color,
    ReferencePalette,
    resolve_palette,
)


logger = logging.getLogger(__name__)

FAILURE_TITLE = "Palette Swap Failure"
FAILURE_HEADER = "Could not swap palettes due to the following issue(s):"
WIDTH_MISMATCH_TITLE = "Palette Width Mismatch"
WIDTH_MISMATCH_LINES = [
    "You are switching between palettes of different widths.",
    "This may have undesired effects. Proceed anyway?",
    "(This warning can be disabled by unchecking Check Palette Widths)",
]

ROWS_FORMAT_HINT = 'It should be a list of space-separated numbers (e.g. "1 2 3").'

Loader = Callable[[str, str, "SwapContext"], ReferencePalette]
Confirm = Callable[[str, List[str]], bool]


@dataclass
class SwapRequest:
    from_palette: str
    from_rows: str
    to_palette: str
    to_rows: str
    document: SwapDocument
    tolerance: int = 0
    warn_on_width_mismatch: bool = True
    palette_path: str = ""
    channel_palette_path: Optional[str] = None


@dataclass
class SwapResult:
    surfaces_modified: int
    replacements: int = 0
    pixels_changed: int = 0


@dataclass
class SwapContext:
    # Per-call state; set while resolving palettes and read in the same call.
    channel_mode: bool = False
    channel_palette_path: Optional[str] = None
    from_name: str = ""
    to_name: str = ""
    from_rows: List[int] = field(default_factory=list)
    to_rows: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class ReplacementPair:
    source: Color
    dest: Color
    tolerance: int


def parse_rows(text: str) -> Optional[List[int]]:
    """Parse space-separated row numbers. Returns None when ``text`` is invalid or empty."""
    tokens = text.split()
    if not tokens:
        return None
    rows: List[int] = []
    for tok in tokens:
        if not (tok.isascii() and tok.isdigit()):
            return None
        rows.append(int(tok))
    return rows


def format_rows(rows: Sequence[int]) -> str:
    return "{ " + "".join(f"{r}, " for r in rows) + "}"


def column_pairs(from_width: int, to_width: int) -> List[Tuple[int, int]]:
    """
    Column correspondence between two palette widths as ``(x_from, x_to)``.

    Iterates the narrower width; the wider side is sampled at
    ``floor(i * wide / narrow + 0.5)``, clamped to its last column. The wider
    side may be sampled unevenly, only the narrower side is covered 1:1.
    """
    if from_width < 1 or to_width < 1:
        raise ValueError("palette widths must be positive")
    if from_width == to_width:
        return [(x, x) for x in range(from_width)]

    step_over_to = from_width > to_width
    narrow, wide = (to_width, from_width) if step_over_to else (from_width, to_width)
    scale = wide / narrow
    pairs: List[Tuple[int, int]] = []
    for i in range(narrow):
        j = min(wide - 1, int(math.floor(i * scale + 0.5)))
        pairs.append((j, i) if step_over_to else (i, j))
    return pairs


def iter_replacement_pairs(
    from_palette: ReferencePalette,
    to_palette: ReferencePalette,
    row_pairs: Sequence[Tuple[int, int]],
    columns: Sequence[Tuple[int, int]],
    tolerance: int,
) -> Iterator[ReplacementPair]:
    for from_row, to_row in row_pairs:
        for x_from, x_to in columns:
            yield ReplacementPair(
                source=from_palette.color_at(x_from, from_row),
                dest=to_palette.color_at(x_to, to_row),
                tolerance=tolerance,
            )


def validate_request(request: SwapRequest, context: SwapContext) -> None:
    messages: List[str] = []

    if request.from_palette == MATCH_FROM_PALETTE:
        messages.append(f"From Palette cannot be {MATCH_FROM_PALETTE}.")

    from_rows = parse_rows(request.from_rows)
    if from_rows is None:
        messages.append(f"From Rows has bad formatting. {ROWS_FORMAT_HINT}")
    to_rows = parse_rows(request.to_rows)
    if to_rows is None:
        messages.append(f"To Rows has bad formatting. {ROWS_FORMAT_HINT}")

    if from_rows is not None and to_rows is not None and len(from_rows) != len(to_rows):
        messages.append("From Rows and To Rows are not the same length. They must be the same length.")

    if messages:
        raise ValidationError(messages)

    context.from_name = request.from_palette
    context.to_name = request.to_palette
    if context.to_name == MATCH_FROM_PALETTE:
        context.to_name = request.from_palette
    context.from_rows = from_rows or []
    context.to_rows = to_rows or []


def check_row_ranges(
    context: SwapContext,
    from_palette: ReferencePalette,
    to_palette: ReferencePalette,
) -> None:
    messages: List[str] = []
    bad = [r for r in context.from_rows if r < 0 or r >= from_palette.height]
    if bad:
        messages.append(
            f"From Palette: The palette '{context.from_name}' does not have the "
            f"following requested rows: {format_rows(bad)}"
        )
    bad = [r for r in context.to_rows if r < 0 or r >= to_palette.height]
    if bad:
        messages.append(
            f"To Palette: The palette '{context.to_name}' does not have the "
            f"following requested rows: {format_rows(bad)}"
        )
    if messages:
        raise ValidationError(messages)


def apply_replacements(
    document: SwapDocument,
    pairs_factory: Callable[[], Iterator[ReplacementPair]],
) -> SwapResult:
    """
    Apply every replacement pair to every surface of ``document``.

    The current-surface cursor is restored afterwards. If a replacement
    raises, all surfaces are restored to their prior pixels and
    ``ApplyError`` is raised.
    """
    previous = document.current_index
    snapshot = document.snapshot()
    replacements = 0
    changed = 0
    try:
        for idx in range(len(document.surfaces)):
            document.select(idx)
            for pair in pairs_factory():
                changed += document.replace_color(pair.source, pair.dest, pair.tolerance)
                replacements += 1
    except Exception as exc:
        logger.warning("Replacement failed on surface %s; rolling back", document.current_index)
        document.restore(snapshot)
        raise ApplyError(f"Palette swap failed and was rolled back: {exc}") from exc
    finally:
        document.current_index = previous

    return SwapResult(
        surfaces_modified=len(document.surfaces),
        replacements=replacements,
        pixels_changed=changed,
    )


def execute(
    request: SwapRequest,
    *,
    loader: Loader = resolve_palette,
    confirm: Optional[Confirm] = None,
) -> SwapResult:
    """
    Run one palette swap.

    Raises ``ValidationError`` for bad input (all problems at once),
    ``NotFoundError`` when a palette cannot be loaded and ``Cancelled`` when
    the width-mismatch confirmation is declined.
    """
    context = SwapContext(channel_palette_path=request.channel_palette_path)
    validate_request(request, context)

    context.channel_mode = False
    from_palette = loader(context.from_name, request.palette_path, context)
    to_palette = loader(context.to_name, request.palette_path, context)

    check_row_ranges(context, from_palette, to_palette)

    if from_palette.width != to_palette.width:
        logger.info(
            "Palette widths differ: %r=%s, %r=%s",
            context.from_name, from_palette.width, context.to_name, to_palette.width,
        )
        if not context.channel_mode and request.warn_on_width_mismatch and confirm is not None:
            if not confirm(WIDTH_MISMATCH_TITLE, list(WIDTH_MISMATCH_LINES)):
                raise Cancelled("Palette swap cancelled")

    columns = column_pairs(from_palette.width, to_palette.width)
    row_pairs = list(zip(context.from_rows, context.to_rows))
    tolerance = max(0, min(255, int(request.tolerance)))

    def pairs() -> Iterator[ReplacementPair]:
        return iter_replacement_pairs(from_palette, to_palette, row_pairs, columns, tolerance)

    result = apply_replacements(request.document, pairs)
    logger.info(
        "Swapped %s row pair(s) over %s column(s) on %s surface(s), %s pixel(s) changed",
        len(row_pairs), len(columns), result.surfaces_modified, result.pixels_changed,
    )
    return result
