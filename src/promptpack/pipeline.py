# src/promptpack/pipeline.py
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from promptpack.config import Settings
from promptpack.core.assembler import DocumentAssembler
from promptpack.core.ignore import PatternResolver
from promptpack.core.scanner import ProjectScanner
from promptpack.core.sniffer import BinarySniffer
from promptpack.models import Document, RunReport
from promptpack.utils.tokenizer import Tokenizer, get_tokenizer

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    document: Document
    report: RunReport = field(default_factory=RunReport)
    # Paths dropped by --exclude, directories with a trailing "/"
    excluded: List[str] = field(default_factory=list)


def build_document(settings: Settings, tokenizer: Optional[Tokenizer] = None) -> RunResult:
    """
    Runs the selection-and-assembly pipeline for one root directory.
    Fatal problems raise a PromptError; everything recoverable ends up in
    the returned report.
    """
    report = RunReport()
    root = settings.root.resolve()

    # Config problems surface before any traversal
    resolver = PatternResolver(root, settings)
    scanner = ProjectScanner(root, resolver, BinarySniffer(report), report)
    scanner.check_root()
    if tokenizer is None:
        tokenizer = get_tokenizer(settings.model)

    assembler = DocumentAssembler(
        tokenizer,
        report,
        workers=settings.workers,
        line_numbers=settings.line_numbers,
        token_budget=settings.token_budget,
    )
    document = assembler.assemble(scanner.scan(), root.name or str(root))
    logger.info("Read %d files (%d skipped)", document.total_files, report.skipped)
    return RunResult(document=document, report=report, excluded=list(resolver.excluded))
