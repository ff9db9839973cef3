"""Drive capture passes over a single directory or a whole tree."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, List, Optional

from dirstamp.store import MetadataStore

from .capture import Clock, capture_directory
from .models import CaptureResult


def capture_tree(
    store: MetadataStore,
    root: str | Path,
    *,
    recursive: bool = False,
    clock: Optional[Clock] = None,
    on_capture: Optional[Callable[[CaptureResult], None]] = None,
) -> List[CaptureResult]:
    """Capture ``root`` and, when recursive, every directory beneath it.

    Directories are processed one at a time from an explicit worklist, depth
    first. Symlinked directories are not followed. The first error from any
    directory aborts the whole traversal.

    Args:
        store: Metadata store to write to.
        root: Directory to start from.
        recursive: Whether to descend into subdirectories.
        clock: Source of capture timestamps, read once per directory.
        on_capture: Called with each result as soon as its pass commits.

    Returns:
        List[CaptureResult]: One result per captured directory, in visit order.
    """
    results: List[CaptureResult] = []
    pending = [os.fspath(root)]
    while pending:
        directory = pending.pop()
        result = capture_directory(store, directory, clock=clock)
        results.append(result)
        if on_capture is not None:
            on_capture(result)
        if not recursive:
            break

        with os.scandir(directory) as entries:
            children = [entry.path for entry in entries if entry.is_dir(follow_symlinks=False)]
        # Reversed so that popping visits children in the order the OS listed them.
        pending.extend(reversed(children))

    return results


__all__ = ["capture_tree"]
