# src/promptpack/core/scanner.py
import logging
import os
from pathlib import Path
from typing import Iterator, Optional

from promptpack.core.ignore import PatternResolver
from promptpack.core.sniffer import BinarySniffer, Classification
from promptpack.errors import RootNotFound, RootNotReadable
from promptpack.models import RunReport, WalkEntry, WarningKind

logger = logging.getLogger(__name__)


class ProjectScanner:
    def __init__(
        self,
        root_dir: Path,
        resolver: PatternResolver,
        sniffer: BinarySniffer,
        report: Optional[RunReport] = None,
    ):
        self.root_dir = root_dir
        self.resolver = resolver
        self.sniffer = sniffer
        self.report = report if report is not None else RunReport()

    def _list_dir(self, directory: Path):
        with os.scandir(directory) as it:
            return sorted(it, key=lambda entry: entry.name)

    def check_root(self) -> None:
        if not self.root_dir.exists():
            raise RootNotFound(f"Path '{self.root_dir}' does not exist")
        if not self.root_dir.is_dir():
            raise RootNotFound(f"Path '{self.root_dir}' is not a directory")
        if not os.access(self.root_dir, os.R_OK | os.X_OK):
            raise RootNotReadable(f"Cannot read directory '{self.root_dir}'")

    def scan(self) -> Iterator[WalkEntry]:
        """
        Walks the tree depth-first with every directory's entries sorted by name,
        so files come out in component-wise lexical path order. Ignored
        directories are pruned, symlinks are never followed and binary files
        are skipped. Each yielded entry carries its position in that order.
        """
        self.check_root()
        try:
            entries = self._list_dir(self.root_dir)
        except OSError as e:
            raise RootNotReadable(f"Cannot read directory '{self.root_dir}': {e}") from e

        index = 0
        # Stack of pending entry lists; the walk is iterative to survive deep trees
        stack = [(iter(entries), "")]
        while stack:
            entry = next(stack[-1][0], None)
            if entry is None:
                stack.pop()
                continue
            prefix = stack[-1][1]
            rel_path = f"{prefix}/{entry.name}" if prefix else entry.name

            try:
                if entry.is_symlink():
                    if not os.path.exists(entry.path):
                        self._skip(rel_path, "broken symbolic link")
                    else:
                        logger.debug("Not following symlink %s", rel_path)
                    continue
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError as e:
                self._skip(rel_path, f"cannot stat ({e.strerror or e})")
                continue

            if is_dir:
                if not self.resolver.is_included(rel_path, is_dir=True):
                    logger.debug("Pruning directory %s", rel_path)
                    continue
                try:
                    children = self._list_dir(Path(entry.path))
                except OSError as e:
                    self._skip(rel_path, f"cannot list directory ({e.strerror or e})")
                    continue
                stack.append((iter(children), rel_path))
                continue

            if not is_file:
                # sockets, fifos, devices
                logger.debug("Skipping special file %s", rel_path)
                continue

            if not self.resolver.is_included(rel_path, is_dir=False):
                continue

            abs_path = Path(entry.path)
            if self.sniffer.classify(abs_path, rel_path) is Classification.BINARY:
                continue

            yield WalkEntry(index=index, rel_path=rel_path, path=abs_path)
            index += 1

    def _skip(self, rel_path: str, message: str) -> None:
        logger.debug("Skipping %s: %s", rel_path, message)
        self.report.warn(rel_path, WarningKind.ENTRY_UNREADABLE, message)
