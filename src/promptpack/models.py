# src/promptpack/models.py
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Tuple


class RuleOrigin(Enum):
    VCS_IGNORE = "gitignore"
    PROMPT_IGNORE = "promptignore"
    CLI_EXCLUDE = "exclude"
    CLI_INCLUDE = "include"


@dataclass(frozen=True)
class Rule:
    """One ignore/include pattern. `base` is the root-relative dir of its source file."""
    pattern: str
    origin: RuleOrigin
    negated: bool = False
    base: str = ""


@dataclass(frozen=True)
class WalkEntry:
    index: int
    rel_path: str
    path: Path


@dataclass(frozen=True)
class FileRecord:
    """Immutable data class holding one included file."""
    rel_path: str
    path: Path
    size_bytes: int
    token_count: int
    content: str


class NodeKind(Enum):
    DIR = "dir"
    FILE = "file"


@dataclass(frozen=True)
class TreeNode:
    name: str
    kind: NodeKind
    token_count: int = 0
    children: Tuple["TreeNode", ...] = ()

    @property
    def is_dir(self) -> bool:
        return self.kind is NodeKind.DIR


@dataclass(frozen=True)
class Document:
    root: TreeNode
    files: Tuple[FileRecord, ...]
    total_tokens: int
    total_files: int
    truncated: bool = False


class WarningKind(Enum):
    ENTRY_UNREADABLE = "unreadable"
    BINARY = "binary"
    DECODE_ERROR = "decode-error"
    TOKENIZER_ERROR = "tokenizer-error"
    OVER_BUDGET = "over-budget"


@dataclass(frozen=True)
class RunWarning:
    path: str
    kind: WarningKind
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message} ({self.kind.value})"


@dataclass
class RunReport:
    """Recoverable problems collected during one run. Safe to append from worker threads."""
    warnings: List[RunWarning] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def warn(self, path: str, kind: WarningKind, message: str) -> None:
        with self._lock:
            self.warnings.append(RunWarning(path, kind, message))

    def count(self, kind: WarningKind) -> int:
        return sum(1 for w in self.warnings if w.kind is kind)

    @property
    def skipped(self) -> int:
        """Number of files or directories left out because of a recorded problem."""
        return sum(1 for w in self.warnings if w.kind is not WarningKind.OVER_BUDGET)
