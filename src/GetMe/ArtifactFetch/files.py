# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.files",
#   "purpose": "Copy cached artifacts to a path or to standard output",
#   "sections": [
#     {"id": "copy-file", "name": "copy_file", "anchor": "function-copy-file", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Copy a cached artifact to its final destination."""

from __future__ import annotations

import shutil
import sys
from pathlib import Path
from typing import BinaryIO, Optional

__all__ = ["STDOUT_DESTINATION", "copy_file"]

STDOUT_DESTINATION = "-"


def copy_file(source: Path, destination: str, *, stdout: Optional[BinaryIO] = None) -> None:
    """Copy ``source`` to ``destination``; ``-`` writes the bytes to standard output."""

    if destination == STDOUT_DESTINATION:
        stream = stdout or sys.stdout.buffer
        with source.open("rb") as reader:
            shutil.copyfileobj(reader, stream)
        stream.flush()
        return

    target = Path(destination)
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, target)
