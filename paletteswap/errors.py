from __future__ import annotations

from typing import Iterable, List


class PaletteSwapError(RuntimeError):
    """Raised when a palette swap cannot be carried out."""


class ValidationError(PaletteSwapError):
    """One or more problems with the request, collected before failing."""

    def __init__(self, messages: Iterable[str]) -> None:
        self.messages: List[str] = list(messages)
        super().__init__("; ".join(self.messages))


class NotFoundError(PaletteSwapError):
    """A palette identifier could not be resolved to an image."""

    def __init__(self, identifier: str, path: str | None = None) -> None:
        self.identifier = identifier
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"Palette '{identifier}' could not be loaded{where}")


class Cancelled(PaletteSwapError):
    """The user declined a confirmation. Not a failure."""


class ApplyError(PaletteSwapError):
    """Replacing colors failed part way; the document was rolled back."""
