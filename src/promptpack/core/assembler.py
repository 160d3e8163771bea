# src/promptpack/core/assembler.py
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Union

from promptpack.core.tree import TreeBuilder, saturating_add
from promptpack.errors import DecodeError, EntryUnreadable, TokenizerError
from promptpack.models import Document, FileRecord, RunReport, WalkEntry, WarningKind
from promptpack.utils.tokenizer import Tokenizer

logger = logging.getLogger(__name__)

Outcome = Union[FileRecord, EntryUnreadable, DecodeError, TokenizerError]


def annotate_line_numbers(text: str) -> str:
    """Prefixes every line with its right-aligned 1-based number."""
    lines = text.splitlines()
    if not lines:
        return ""
    width = len(str(len(lines)))
    return "".join(f"{i:>{width}} {line}\n" for i, line in enumerate(lines, start=1))


def read_text(entry: WalkEntry) -> bytes:
    try:
        return entry.path.read_bytes()
    except OSError as e:
        raise EntryUnreadable(f"cannot read ({e.strerror or e})") from e


def decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"not valid UTF-8 (byte {e.start})") from e


class DocumentAssembler:
    """
    Reads, decodes and tokenizes walked files, then folds them into a Document.

    Files are processed on a thread pool; each result is stored under the
    walker's index and the Document is built in a single ordered pass
    afterwards, so completion order never leaks into the output.
    """

    def __init__(
        self,
        tokenizer: Tokenizer,
        report: Optional[RunReport] = None,
        workers: Optional[int] = None,
        line_numbers: bool = False,
        token_budget: Optional[int] = None,
    ):
        self.tokenizer = tokenizer
        self.report = report if report is not None else RunReport()
        self.workers = workers or os.cpu_count() or 1
        self.line_numbers = line_numbers
        self.token_budget = token_budget

    def _process(self, entry: WalkEntry) -> Outcome:
        try:
            data = read_text(entry)
            content = decode_text(data)
            if self.line_numbers:
                content = annotate_line_numbers(content)
            tokens = self.tokenizer.count_tokens(content)
        except (EntryUnreadable, DecodeError, TokenizerError) as e:
            return e
        return FileRecord(
            rel_path=entry.rel_path,
            path=entry.path,
            size_bytes=len(data),
            token_count=tokens,
            content=content,
        )

    def _collect(self, entries: Iterable[WalkEntry]) -> Dict[int, tuple]:
        results: Dict[int, tuple] = {}
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = {}
            for entry in entries:
                futures[entry.index] = (entry, pool.submit(self._process, entry))
            for index, (entry, future) in futures.items():
                results[index] = (entry, future.result())
        return results

    def assemble(self, entries: Iterable[WalkEntry], root_name: str) -> Document:
        results = self._collect(entries)

        builder = TreeBuilder(root_name)
        files: List[FileRecord] = []
        total_tokens = 0
        truncated = False
        first_index = min(results) if results else None

        for index in sorted(results):
            entry, outcome = results[index]
            if isinstance(outcome, TokenizerError):
                if index == first_index:
                    # Failing on the very first file points at configuration, not content
                    raise outcome
                self._warn(entry, WarningKind.TOKENIZER_ERROR, str(outcome))
                continue
            if isinstance(outcome, DecodeError):
                self._warn(entry, WarningKind.DECODE_ERROR, str(outcome))
                continue
            if isinstance(outcome, EntryUnreadable):
                self._warn(entry, WarningKind.ENTRY_UNREADABLE, str(outcome))
                continue

            files.append(outcome)
            builder.add_file(outcome.rel_path, outcome.token_count)
            total_tokens, capped = saturating_add(total_tokens, outcome.token_count)
            truncated = truncated or capped

        if self.token_budget is not None and total_tokens > self.token_budget:
            self.report.warn(
                ".",
                WarningKind.OVER_BUDGET,
                f"{total_tokens} tokens exceed the budget of {self.token_budget}",
            )

        logger.debug("Assembled %d file(s), %d token(s)", len(files), total_tokens)
        return Document(
            root=builder.build(),
            files=tuple(files),
            total_tokens=total_tokens,
            total_files=len(files),
            truncated=truncated or builder.truncated,
        )

    def _warn(self, entry: WalkEntry, kind: WarningKind, message: str) -> None:
        logger.debug("Dropping %s: %s", entry.rel_path, message)
        self.report.warn(entry.rel_path, kind, message)
