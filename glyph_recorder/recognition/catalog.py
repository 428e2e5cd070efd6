"""Glyph and sequence catalog loading.

The catalog is loaded once from two line-delimited text sources and is
read-only afterwards, so detectors and matchers running on worker threads
can share it by reference.

Glyph lines have the form ``name,path`` where ``path`` walks anchor ids,
e.g. ``complex,3456``. Sequence lines are comma-joined glyph names, e.g.
``past,present,future``. Blank lines and ``#`` comments are ignored.

Example:
    >>> from glyph_recorder.recognition.catalog import load_default_catalog
    >>> catalog = load_default_catalog()
    >>> catalog.glyph("complex").path
    '3456'
    >>> len(catalog.sequences_of_length(3)) > 0
    True
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from importlib import resources
from pathlib import Path
from types import MappingProxyType

from pydantic import ValidationError

from glyph_recorder.interfaces.errors import ConfigurationError
from glyph_recorder.models.glyphs import Glyph, SequenceEntry, StrokePair
from glyph_recorder.recognition.strokes import canonicalize_path

logger = logging.getLogger(__name__)

DEFAULT_GLYPH_FILE = "glyph_lines.csv"
DEFAULT_SEQUENCE_FILE = "sequences.csv"


def _content_lines(text: str) -> Iterable[tuple[int, str]]:
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        yield number, line


class GlyphCatalog:
    """Immutable catalog of glyphs and known sequences.

    Attributes:
        glyphs: Glyphs by name, in file order.
        sequences: Known sequences grouped by length.
    """

    def __init__(
        self,
        glyphs: Iterable[Glyph],
        sequences: Iterable[SequenceEntry],
    ) -> None:
        """Build a catalog from already-parsed glyphs and sequences.

        Args:
            glyphs: Glyph definitions; the first definition of a name wins.
            sequences: Known sequences in file order.
        """
        glyph_map: dict[str, Glyph] = {}
        for glyph in glyphs:
            if glyph.name in glyph_map:
                logger.warning(f"Duplicate glyph definition ignored: {glyph.name}")
                continue
            glyph_map[glyph.name] = glyph

        grouped: dict[int, list[SequenceEntry]] = {}
        for entry in sequences:
            grouped.setdefault(len(entry), []).append(entry)

        self._glyphs: Mapping[str, Glyph] = MappingProxyType(glyph_map)
        self._sequences: Mapping[int, tuple[SequenceEntry, ...]] = MappingProxyType(
            {length: tuple(entries) for length, entries in grouped.items()}
        )
        self._check_consistency()

        logger.debug(
            f"GlyphCatalog loaded: {len(self._glyphs)} glyphs, "
            f"{sum(len(v) for v in self._sequences.values())} sequences"
        )

    @property
    def glyphs(self) -> Mapping[str, Glyph]:
        """Glyphs by name, in definition order."""
        return self._glyphs

    @property
    def sequences(self) -> Mapping[int, tuple[SequenceEntry, ...]]:
        """Known sequences grouped by length."""
        return self._sequences

    @property
    def is_empty(self) -> bool:
        """True when there are no glyphs or no sequences to match against."""
        return not self._glyphs or not self._sequences

    def glyph(self, name: str) -> Glyph:
        """Look up a glyph by name.

        Raises:
            KeyError: If the glyph is unknown.
        """
        return self._glyphs[name]

    def sequences_of_length(self, length: int) -> tuple[SequenceEntry, ...]:
        """All known sequences with exactly ``length`` glyphs."""
        return self._sequences.get(length, ())

    def _check_consistency(self) -> None:
        seen: dict[frozenset[StrokePair], str] = {}
        for glyph in self._glyphs.values():
            other = seen.get(glyph.strokes)
            if other is not None:
                logger.warning(
                    f"Glyphs '{other}' and '{glyph.name}' share the same strokes; "
                    "matches between them are ambiguous"
                )
            else:
                seen[glyph.strokes] = glyph.name

        for entries in self._sequences.values():
            for entry in entries:
                unknown = [name for name in entry.names if name not in self._glyphs]
                if unknown:
                    logger.warning(f"Sequence {list(entry.names)} uses unknown glyphs: {unknown}")

    @classmethod
    def from_text(cls, glyph_text: str, sequence_text: str) -> GlyphCatalog:
        """Parse a catalog from the two line-delimited texts.

        Raises:
            ConfigurationError: If a line is malformed or a path uses an
                unknown anchor id.
        """
        return cls(parse_glyph_lines(glyph_text), parse_sequence_lines(sequence_text))

    @classmethod
    def from_files(cls, glyph_file: str | Path, sequence_file: str | Path) -> GlyphCatalog:
        """Load a catalog from two text files.

        Raises:
            ConfigurationError: If a file is missing or malformed.
        """
        return cls.from_text(_read_catalog_file(glyph_file), _read_catalog_file(sequence_file))


def parse_glyph_lines(text: str) -> list[Glyph]:
    """Parse ``name,path`` lines into glyphs.

    Raises:
        ConfigurationError: On a malformed line or unknown anchor id.
    """
    glyphs = []
    for number, line in _content_lines(text):
        parts = [part.strip() for part in line.split(",")]
        if len(parts) != 2 or not parts[0] or len(parts[1]) < 2:
            raise ConfigurationError(f"Malformed glyph line {number}: {line!r}")
        name, path = parts
        try:
            strokes = canonicalize_path(path)
            glyphs.append(Glyph(name=name, path=path, strokes=strokes))
        except (ValueError, ValidationError) as e:
            raise ConfigurationError(f"Invalid glyph path on line {number}: {line!r}") from e
    return glyphs


def parse_sequence_lines(text: str) -> list[SequenceEntry]:
    """Parse comma-joined glyph name lines into sequence entries."""
    entries = []
    for _number, line in _content_lines(text):
        names = tuple(name.strip() for name in line.split(",") if name.strip())
        if names:
            entries.append(SequenceEntry(names=names))
    return entries


def _read_catalog_file(path: str | Path) -> str:
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Catalog file not found: {path}")
    return path.read_text(encoding="utf-8")


def _read_bundled(name: str) -> str:
    return resources.files("glyph_recorder.data").joinpath(name).read_text(encoding="utf-8")


def load_default_catalog() -> GlyphCatalog:
    """Load the catalog bundled with the package."""
    return GlyphCatalog.from_text(
        _read_bundled(DEFAULT_GLYPH_FILE),
        _read_bundled(DEFAULT_SEQUENCE_FILE),
    )


def load_catalog(
    glyph_file: str | Path | None = None,
    sequence_file: str | Path | None = None,
) -> GlyphCatalog:
    """Load a catalog, falling back to bundled data for missing paths.

    Raises:
        ConfigurationError: If a given file is missing or malformed.
    """
    glyph_text = (
        _read_catalog_file(glyph_file)
        if glyph_file is not None
        else _read_bundled(DEFAULT_GLYPH_FILE)
    )
    sequence_text = (
        _read_catalog_file(sequence_file)
        if sequence_file is not None
        else _read_bundled(DEFAULT_SEQUENCE_FILE)
    )
    return GlyphCatalog.from_text(glyph_text, sequence_text)
