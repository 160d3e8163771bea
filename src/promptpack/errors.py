# src/promptpack/errors.py


class PromptError(Exception):
    """Base class for every error raised by promptpack."""


class ConfigError(PromptError):
    """Invalid settings: bad glob syntax, conflicting include/exclude, bad config file."""


class RootNotFound(PromptError):
    pass


class RootNotReadable(PromptError):
    pass


class EntryUnreadable(PromptError):
    """A single file or directory could not be read. Recovered per entry."""


class DecodeError(PromptError):
    """A file passed the sniffer but is not valid UTF-8. Recovered per file."""


class TokenizerError(PromptError):
    pass


class RenderError(PromptError):
    pass
