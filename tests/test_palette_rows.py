from __future__ import annotations

from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

from PIL import Image

from paletteswap.errors import NotFoundError
from paletteswap.palette_rows import (
    COLOR_CHANNEL,
    MATCH_FROM_PALETTE,
    build_channel_palette,
    list_palettes,
    resolve_palette,
)
from paletteswap.swap_plan import SwapContext


def _write_palette(path: Path, width: int, height: int) -> None:
    img = Image.new("RGBA", (width, height))
    for y in range(height):
        for x in range(width):
            img.putpixel((x, y), (x * 10, y * 10, 7, 255))
    img.save(path)


class ResolvePaletteTests(unittest.TestCase):
    def test_loads_named_palette_from_folder(self) -> None:
        with TemporaryDirectory() as td:
            _write_palette(Path(td) / "skin.png", 4, 3)
            ctx = SwapContext()
            palette = resolve_palette("skin", td, ctx)

        self.assertEqual((palette.width, palette.height), (4, 3))
        self.assertEqual(palette.color_at(2, 1), (20, 10, 7, 255))
        self.assertEqual(len(palette.row(2)), 4)
        self.assertFalse(ctx.channel_mode)

    def test_missing_palette_raises_not_found(self) -> None:
        with TemporaryDirectory() as td:
            with self.assertRaises(NotFoundError) as cm:
                resolve_palette("nope", td, SwapContext())
        self.assertEqual(cm.exception.identifier, "nope")

    def test_undecodable_palette_raises_not_found(self) -> None:
        with TemporaryDirectory() as td:
            (Path(td) / "broken.png").write_bytes(b"not a png")
            with self.assertRaises(NotFoundError):
                resolve_palette("broken", td, SwapContext())

    def test_color_channel_sets_channel_mode(self) -> None:
        ctx = SwapContext()
        palette = resolve_palette(COLOR_CHANNEL, "/does/not/matter", ctx)
        self.assertTrue(ctx.channel_mode)
        self.assertEqual(palette.width, 256)
        self.assertEqual(palette.color_at(17, 0), (17, 0, 0, 255))

    def test_channel_palette_override_file(self) -> None:
        with TemporaryDirectory() as td:
            path = Path(td) / "channels.png"
            _write_palette(path, 2, 2)
            ctx = SwapContext(channel_palette_path=str(path))
            palette = resolve_palette(COLOR_CHANNEL, "", ctx)
        self.assertTrue(ctx.channel_mode)
        self.assertEqual(palette.width, 2)


class ChannelPaletteTests(unittest.TestCase):
    def test_rows_are_channel_ramps(self) -> None:
        palette = build_channel_palette()
        self.assertEqual(palette.height, 5)
        self.assertEqual(palette.color_at(200, 1), (0, 200, 0, 255))
        self.assertEqual(palette.color_at(5, 2), (0, 0, 5, 255))
        self.assertEqual(palette.color_at(90, 3), (90, 90, 90, 255))
        self.assertEqual(palette.color_at(30, 4), (255, 255, 255, 30))

    def test_palette_pixels_are_read_only(self) -> None:
        palette = build_channel_palette()
        with self.assertRaises(ValueError):
            palette.pixels[0, 0, 0] = 1


class ListPalettesTests(unittest.TestCase):
    def test_lists_png_stems_after_sentinels(self) -> None:
        with TemporaryDirectory() as td:
            root = Path(td)
            _write_palette(root / "b.png", 1, 1)
            _write_palette(root / "a.png", 1, 1)
            (root / "notes.txt").write_text("x", encoding="utf-8")

            from_names = list_palettes(td)
            to_names = list_palettes(td, include_match_from=True)

        self.assertEqual(from_names, [COLOR_CHANNEL, "a", "b"])
        self.assertEqual(to_names, [COLOR_CHANNEL, MATCH_FROM_PALETTE, "a", "b"])

    def test_upper_case_extension_is_not_listed(self) -> None:
        with TemporaryDirectory() as td:
            _write_palette(Path(td) / "Skin.PNG", 1, 1)
            _write_palette(Path(td) / "hair.png", 1, 1)
            names = list_palettes(td)
            for name in names[1:]:
                resolve_palette(name, td, SwapContext())

        self.assertEqual(names, [COLOR_CHANNEL, "hair"])

    def test_missing_folder_only_lists_sentinels(self) -> None:
        self.assertEqual(list_palettes(""), [COLOR_CHANNEL])
        self.assertEqual(list_palettes("/no/such/dir", True), [COLOR_CHANNEL, MATCH_FROM_PALETTE])


if __name__ == "__main__":
    unittest.main()
