"""Command-line host for palette swaps."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List

from paletteswap.document import load_document, save_document
from paletteswap.errors import Cancelled, PaletteSwapError, ValidationError
from paletteswap.palette_rows import list_palettes
from paletteswap.preferences import Preferences, load_preferences, save_preferences
from paletteswap.swap_plan import FAILURE_HEADER, FAILURE_TITLE, SwapRequest, SwapResult, execute


DEFAULT_PREFS = Path.home() / ".paletteswap" / "preferences.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Swap image colors between rows of reference palettes")
    parser.add_argument("--prefs", type=Path, default=DEFAULT_PREFS, help="Preferences JSON file")
    parser.add_argument("--palette-path", default=None, help="Folder containing palette PNGs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("list", help="List available palettes")
    ls.add_argument("--to", action="store_true", help="Include destination-only choices")

    swap = sub.add_parser("swap", help="Apply palette swaps to images")
    swap.add_argument("inputs", nargs="+", type=Path, help="Images to recolor (each is a layer)")
    swap.add_argument("--from", dest="from_palette", default=None, help="From palette name")
    swap.add_argument("--from-rows", required=True, help='Rows to swap from, e.g. "1 2 3"')
    swap.add_argument("--to", dest="to_palette", default=None, help="To palette name")
    swap.add_argument("--to-rows", required=True, help='Rows to swap to, e.g. "4 5 6"')
    swap.add_argument("--tolerance", type=int, default=None, help="Match tolerance 0-255")
    swap.add_argument(
        "--no-check-widths",
        action="store_true",
        help="Do not ask before swapping between palettes of different widths",
    )
    close = swap.add_mutually_exclusive_group()
    close.add_argument(
        "--keep-open",
        dest="close_on_success",
        action="store_false",
        default=None,
        help="After a successful swap, prompt for more row pairs before saving",
    )
    close.add_argument(
        "--close-on-success",
        dest="close_on_success",
        action="store_true",
        help="Save and exit after the first successful swap",
    )
    swap.add_argument("--yes", action="store_true", help="Answer yes to confirmations")
    swap.add_argument("--out", type=Path, default=None, help="Destination folder (defaults to <input>/out)")
    swap.add_argument("--suffix", default="", help="Suffix added to output file names")
    return parser


def _prompt_yes_no(title: str, lines: List[str]) -> bool:
    print(title)
    for line in lines:
        print(f"  {line}")
    answer = input("[y/N] ").strip().lower()
    return answer in {"y", "yes"}


def _print_failure(messages: List[str]) -> None:
    print(f"{FAILURE_TITLE}: {FAILURE_HEADER}", file=sys.stderr)
    for msg in messages:
        print(f"  - {msg}", file=sys.stderr)


def _run_list(args: argparse.Namespace, prefs: Preferences) -> int:
    for name in list_palettes(prefs.palette_path, include_match_from=args.to):
        print(name)
    return 0


def _swap_once(request: SwapRequest, confirm) -> SwapResult | int:
    """Run one swap; returns the result, or an exit code when nothing was swapped."""
    try:
        return execute(request, confirm=confirm)
    except ValidationError as exc:
        _print_failure(exc.messages)
        return 1
    except Cancelled:
        print("Palette swap cancelled.")
        return 0
    except PaletteSwapError as exc:
        _print_failure([str(exc)])
        return 1


def _run_swap(args: argparse.Namespace, prefs: Preferences) -> int:
    if args.from_palette is not None:
        prefs.from_palette = args.from_palette
    if args.to_palette is not None:
        prefs.to_palette = args.to_palette
    if args.tolerance is not None:
        prefs.tolerance = max(0, min(255, args.tolerance))
    if args.no_check_widths:
        prefs.check_palette_widths = False
    if args.close_on_success is not None:
        prefs.close_on_success = args.close_on_success

    missing = [p for p in args.inputs if not p.is_file()]
    if missing:
        _print_failure([f"Input file not found: {p}" for p in missing])
        return 1

    try:
        document = load_document(args.inputs)
    except OSError as exc:
        _print_failure([f"Failed to read input: {exc}"])
        return 1

    confirm = (lambda _title, _lines: True) if args.yes else _prompt_yes_no

    def make_request(from_rows: str, to_rows: str) -> SwapRequest:
        return SwapRequest(
            from_palette=prefs.from_palette,
            from_rows=from_rows,
            to_palette=prefs.to_palette,
            to_rows=to_rows,
            document=document,
            tolerance=prefs.tolerance,
            warn_on_width_mismatch=prefs.check_palette_widths,
            palette_path=prefs.palette_path,
            channel_palette_path=prefs.channel_palette_path,
        )

    result = _swap_once(make_request(args.from_rows, args.to_rows), confirm)
    if not isinstance(result, SwapResult):
        return result
    pixels_changed = result.pixels_changed

    # Keeping the swap open: further row pairs apply to the same document.
    while not prefs.close_on_success:
        from_rows = input("From Row(s) (blank to finish): ").strip()
        if not from_rows:
            break
        to_rows = input("To Row(s): ").strip()
        more = _swap_once(make_request(from_rows, to_rows), confirm)
        if isinstance(more, SwapResult):
            pixels_changed += more.pixels_changed

    out_dir = args.out or (args.inputs[0].parent / "out")
    try:
        written = save_document(document, out_dir, suffix=args.suffix)
    except OSError as exc:
        _print_failure([f"Failed to write output: {exc}"])
        return 1
    for path in written:
        print(f"[OK] {path}")
    print(
        f"Swapped colors on {result.surfaces_modified} surface(s), "
        f"{pixels_changed} pixel(s) changed."
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        prefs = load_preferences(str(args.prefs))
    except (OSError, ValueError) as exc:
        parser.error(f"Failed to read preferences: {exc}")
    if args.palette_path is not None:
        prefs.palette_path = args.palette_path

    if args.command == "list":
        code = _run_list(args, prefs)
    else:
        code = _run_swap(args, prefs)

    try:
        save_preferences(str(args.prefs), prefs)
    except OSError as exc:
        logging.getLogger(__name__).warning("Could not save preferences: %s", exc)
    return code


if __name__ == "__main__":
    raise SystemExit(main())
