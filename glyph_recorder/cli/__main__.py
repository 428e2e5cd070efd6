"""Module execution entrypoint for `python -m glyph_recorder.cli`."""

from __future__ import annotations

import sys

from glyph_recorder.cli import main

if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
