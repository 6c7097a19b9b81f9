"""Font resolution and caching for watermark text.

Maps the font families offered to users onto font files FreeType can open,
caches the loaded fonts per ``(family, size)``, and falls back to Pillow's
bundled font when nothing on the host matches.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Protocol

from PIL import ImageFont

logger = logging.getLogger(__name__)

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class FontProvider(Protocol):
    """Protocol for anything that can hand out sized fonts."""

    def get_font(self, family: str, size: int) -> Font:
        """Return a font for ``family`` at ``size`` pixels."""
        ...


# ---------------------------------------------------------------------------
# Font registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FontSpec:
    """Candidate font files for a single family, tried in order."""

    family: str
    candidates: tuple[str, ...]


FONT_REGISTRY: dict[str, FontSpec] = {
    spec.family.lower(): spec
    for spec in (
        FontSpec("Arial", ("arial.ttf", "Arial.ttf", "LiberationSans-Regular.ttf", "DejaVuSans.ttf")),
        FontSpec("Helvetica", ("Helvetica.ttc", "helvetica.ttf", "LiberationSans-Regular.ttf", "DejaVuSans.ttf")),
        FontSpec("Times New Roman", ("times.ttf", "Times New Roman.ttf", "LiberationSerif-Regular.ttf",
                                     "DejaVuSerif.ttf")),
        FontSpec("Georgia", ("georgia.ttf", "Georgia.ttf", "DejaVuSerif.ttf")),
        FontSpec("Verdana", ("verdana.ttf", "Verdana.ttf", "DejaVuSans.ttf")),
        FontSpec("Trebuchet MS", ("trebuc.ttf", "Trebuchet MS.ttf", "DejaVuSans.ttf")),
        FontSpec("Impact", ("impact.ttf", "Impact.ttf", "DejaVuSans-Bold.ttf")),
        FontSpec("Courier New", ("cour.ttf", "Courier New.ttf", "LiberationMono-Regular.ttf",
                                 "DejaVuSansMono.ttf")),
        FontSpec("Comic Sans MS", ("comic.ttf", "Comic Sans MS.ttf", "DejaVuSans.ttf")),
        FontSpec("Palatino", ("pala.ttf", "Palatino.ttc", "DejaVuSerif.ttf")),
    )
}


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------

# Cache key family for every name missing from FONT_REGISTRY.
FALLBACK_FAMILY = "fallback"

DEFAULT_MAX_CACHED_FONTS = 64


class FontCache:
    """Loads and caches fonts keyed by registry family and pixel size.

    Family names arrive with request settings, so only registry candidates
    and the configured ``fallback_font`` are ever opened. Names outside the
    registry share a single fallback entry per size. The least recently used
    font is evicted once ``max_entries`` is reached.
    """

    def __init__(self, fallback_font: str | None = None, max_entries: int = DEFAULT_MAX_CACHED_FONTS) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self._fallback_font = fallback_font
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self._fonts: OrderedDict[tuple[str, int], Font] = OrderedDict()

    # -- Public API ---------------------------------------------------------

    def get_font(self, family: str, size: int) -> Font:
        """Return a cached font, loading one if needed."""
        spec = FONT_REGISTRY.get(family.strip().lower())
        key = (spec.family.lower() if spec else FALLBACK_FAMILY, size)
        with self._lock:
            cached = self._fonts.get(key)
            if cached is not None:
                self._fonts.move_to_end(key)
                return cached

        font = self._load(spec, family, size)

        with self._lock:
            # Another thread may have loaded it while we were reading the file.
            existing = self._fonts.get(key)
            if existing is not None:
                self._fonts.move_to_end(key)
                return existing
            self._fonts[key] = font
            while len(self._fonts) > self._max_entries:
                evicted, _ = self._fonts.popitem(last=False)
                logger.debug("Evicted font %s at %dpx", *evicted)
            return font

    def get_loaded_fonts(self) -> list[tuple[str, int]]:
        with self._lock:
            return list(self._fonts.keys())

    def clear(self) -> None:
        with self._lock:
            self._fonts.clear()

    # -- Internal -----------------------------------------------------------

    def _candidates(self, spec: FontSpec | None) -> list[str]:
        candidates = list(spec.candidates) if spec else []
        if self._fallback_font:
            candidates.append(self._fallback_font)
        return candidates

    def _load(self, spec: FontSpec | None, family: str, size: int) -> Font:
        for candidate in self._candidates(spec):
            try:
                font = ImageFont.truetype(candidate, size)
            except OSError:
                continue
            logger.debug("Loaded font %s for family %r at %dpx", candidate, family, size)
            return font

        logger.warning("No font file found for family %r, using Pillow's default font", family)
        return ImageFont.load_default(size)


_default_cache: FontCache | None = None
_default_cache_lock = threading.Lock()


def get_default_font_cache() -> FontCache:
    """Return the process-wide font cache shared by the pipeline."""
    global _default_cache
    with _default_cache_lock:
        if _default_cache is None:
            _default_cache = FontCache()
        return _default_cache
