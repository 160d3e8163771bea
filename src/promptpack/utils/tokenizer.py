# src/promptpack/utils/tokenizer.py
"""
Token counting behind a small capability interface.

The rest of the pipeline only sees `Tokenizer.count_tokens` and
`Tokenizer.split`, so backends can be swapped without touching the
assembler or the renderers.
"""
import logging
from abc import ABC, abstractmethod
from typing import Iterator, List

import tiktoken

from promptpack.config import DEFAULT_MODEL
from promptpack.errors import TokenizerError

logger = logging.getLogger(__name__)

# Texts longer than this are counted piecewise to bound peak memory
COUNT_CHUNK_CHARS = 1_000_000

ESTIMATE_MODEL = "estimate"
CHARS_PER_TOKEN = 4


def iter_line_chunks(text: str, max_chars: int) -> Iterator[str]:
    """Cuts text into pieces of at most max_chars, preferring line boundaries."""
    start = 0
    while start < len(text):
        end = min(start + max_chars, len(text))
        if end < len(text):
            newline = text.rfind("\n", start, end)
            if newline > start:
                end = newline + 1
        yield text[start:end]
        start = end


class Tokenizer(ABC):
    name: str = ""

    @abstractmethod
    def _count(self, text: str) -> int:
        """Counts tokens of a reasonably sized, non-empty text."""

    def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        if len(text) <= COUNT_CHUNK_CHARS:
            return self._count(text)
        return sum(self._count(piece) for piece in iter_line_chunks(text, COUNT_CHUNK_CHARS))

    def split(self, text: str, max_tokens_per_chunk: int) -> Iterator[str]:
        """
        Lazily yields consecutive chunks of `text` of at most `max_tokens_per_chunk`
        tokens each. Chunks end on line boundaries where possible; joining them
        gives back the original text. A chunk's size is measured as the sum of
        its lines' counts.
        """
        if max_tokens_per_chunk < 1:
            raise ValueError("max_tokens_per_chunk must be positive")

        current: List[str] = []
        current_tokens = 0
        for line in text.splitlines(keepends=True):
            tokens = self.count_tokens(line)
            if tokens > max_tokens_per_chunk:
                if current:
                    yield "".join(current)
                    current, current_tokens = [], 0
                yield from self._hard_split(line, max_tokens_per_chunk)
                continue
            if current and current_tokens + tokens > max_tokens_per_chunk:
                yield "".join(current)
                current, current_tokens = [], 0
            current.append(line)
            current_tokens += tokens
        if current:
            yield "".join(current)

    def _hard_split(self, text: str, max_tokens: int) -> Iterator[str]:
        """Splits a single over-long line by binary searching the longest fitting prefix."""
        while text:
            lo, hi = 1, len(text)
            while lo < hi:
                mid = (lo + hi + 1) // 2
                if self.count_tokens(text[:mid]) <= max_tokens:
                    lo = mid
                else:
                    hi = mid - 1
            yield text[:lo]
            text = text[lo:]


class TiktokenTokenizer(Tokenizer):
    """OpenAI BPE encodings via tiktoken. `model` is an encoding name or a model name."""

    def __init__(self, model: str = DEFAULT_MODEL):
        self.name = model
        self.encoding = self._load_encoding(model)

    @staticmethod
    def _load_encoding(model: str):
        try:
            return tiktoken.get_encoding(model)
        except ValueError:
            pass
        except Exception as e:
            raise TokenizerError(f"Could not load tokenizer '{model}': {e}") from e
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            raise TokenizerError(f"Unknown tokenizer model '{model}'") from None
        except Exception as e:
            raise TokenizerError(f"Could not load tokenizer '{model}': {e}") from e

    def _count(self, text: str) -> int:
        try:
            # Special-token text in source files is counted, not rejected
            return len(self.encoding.encode(text, allowed_special="all"))
        except Exception as e:
            raise TokenizerError(f"{self.name} failed to encode text: {e}") from e


class EstimateTokenizer(Tokenizer):
    """Rough estimate of ~4 characters per token. Deterministic, needs no encoding files."""

    name = ESTIMATE_MODEL

    def _count(self, text: str) -> int:
        return -(-len(text) // CHARS_PER_TOKEN)


def get_tokenizer(model: str = DEFAULT_MODEL) -> Tokenizer:
    if model == ESTIMATE_MODEL:
        return EstimateTokenizer()
    tokenizer = TiktokenTokenizer(model)
    logger.debug("Using tiktoken encoding %s for model %s", tokenizer.encoding.name, model)
    return tokenizer
