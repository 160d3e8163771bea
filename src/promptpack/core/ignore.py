# src/promptpack/core/ignore.py
import fnmatch
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pathspec

from promptpack.config import (
    ALWAYS_EXCLUDED,
    GITIGNORE_NAME,
    PROMPT_HOME_OVERRIDE_ENV,
    PROMPTIGNORE_NAME,
    Settings,
)
from promptpack.errors import ConfigError
from promptpack.models import Rule, RuleOrigin

logger = logging.getLogger(__name__)

GLOB_CHARS = set("*?[")

# A compiled ignore file: the directory it lives in, its rules and its spec
IgnoreSource = Tuple[str, List[Rule], pathspec.GitIgnoreSpec]


def parse_rules(lines: Iterable[str], origin: RuleOrigin, base: str = "") -> List[Rule]:
    """Turns gitignore-style lines into Rules, dropping blanks and comments."""
    rules = []
    for line in lines:
        line = line.rstrip("\r\n")
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if line.startswith("!"):
            rules.append(Rule(line[1:], origin, negated=True, base=base))
        else:
            rules.append(Rule(line, origin, negated=False, base=base))
    return rules


def compile_rules(rules: Sequence[Rule]) -> pathspec.GitIgnoreSpec:
    lines = [f"!{r.pattern}" if r.negated else r.pattern for r in rules]
    return pathspec.GitIgnoreSpec.from_lines(lines)


def load_ignore_spec(ignore_file: Path, origin: RuleOrigin, base: str = "") -> Optional[IgnoreSource]:
    """
    Loads one ignore file. Lines that don't compile are logged and skipped,
    the rest of the file still applies. Returns None for missing or empty files.
    """
    try:
        with open(ignore_file, "r", encoding="utf-8") as f:
            rules = parse_rules(f.read().splitlines(), origin, base)
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read %s: %s", ignore_file, e)
        return None

    try:
        spec = compile_rules(rules)
    except ValueError:
        valid = []
        for rule in rules:
            try:
                compile_rules([rule])
            except ValueError as e:
                logger.warning("Skipping invalid pattern in %s: %s", ignore_file, e)
                continue
            valid.append(rule)
        rules = valid
        spec = compile_rules(rules)

    if not rules:
        return None
    logger.debug("Loaded %d rule(s) from %s", len(rules), ignore_file)
    return base, rules, spec


def normalize_cli_pattern(raw: str, root: Path) -> str:
    """
    Normalizes a --include/--exclude value into a root-relative gitignore pattern.
    Plain paths are anchored at the root; globs keep gitignore semantics
    ("*.py" matches at any depth).
    """
    pattern = raw.strip()
    if not pattern:
        raise ConfigError("Empty include/exclude pattern")
    if pattern.startswith("!"):
        raise ConfigError(f"Negated pattern '{raw}' is not supported on the command line")

    if os.path.isabs(pattern):
        try:
            rel = Path(pattern).resolve().relative_to(root.resolve())
        except ValueError:
            raise ConfigError(f"Path '{raw}' is outside of the root directory {root}") from None
        trailing = "/" if pattern.endswith(("/", os.sep)) else ""
        pattern = rel.as_posix() + trailing
        if pattern in (".", "./"):
            pattern = "**"

    while pattern.startswith("./"):
        pattern = pattern[2:]
    if not pattern:
        pattern = "**"

    if not (set(pattern) & GLOB_CHARS) and not pattern.startswith("/"):
        pattern = "/" + pattern
    return pattern


def _pattern_parts(pattern: str) -> List[str]:
    return [p for p in pattern.strip("/").split("/") if p]


def _is_anchored(pattern: str) -> bool:
    return "/" in pattern.rstrip("/")


def may_contain(pattern: str, dir_parts: Sequence[str]) -> bool:
    """
    True if an anchored `pattern` could match something strictly below the
    directory `dir_parts`. Unanchored patterns return False.
    """
    if not _is_anchored(pattern):
        return False
    parts = _pattern_parts(pattern)
    for i, name in enumerate(dir_parts):
        if i >= len(parts):
            return False
        if parts[i] == "**":
            return True
        if not fnmatch.fnmatchcase(name, parts[i]):
            return False
    return len(parts) > len(dir_parts)


def names_directory(pattern: str, dir_parts: Sequence[str]) -> bool:
    """True if `pattern` has the last of `dir_parts` literally at that depth."""
    parts = _pattern_parts(pattern)
    depth = len(dir_parts) - 1
    return depth < len(parts) and parts[depth] == dir_parts[-1]


def _relative_to_base(rel_path: str, base: str) -> Optional[str]:
    if not base:
        return rel_path
    if rel_path.startswith(base + "/"):
        return rel_path[len(base) + 1:]
    return None


def _parent_dirs(rel_path: str) -> List[str]:
    """'a/b/c.txt' -> ['', 'a', 'a/b']"""
    parts = rel_path.split("/")[:-1]
    return [""] + ["/".join(parts[:i + 1]) for i in range(len(parts))]


def prompt_home_dir() -> Optional[Path]:
    override = os.environ.get(PROMPT_HOME_OVERRIDE_ENV)
    if override:
        return Path(override)
    try:
        return Path.home()
    except RuntimeError:
        return None


class PatternResolver:
    """
    Decides whether a root-relative path takes part in the prompt.

    Each rule source is kept as its own ordered list; `is_included` consults
    them in a fixed order and the first layer with an opinion wins:
    CLI excludes, CLI includes, .promptignore, .gitignore, the hidden-file
    default, and finally "included".
    """

    def __init__(self, root: Path, settings: Settings):
        self.root = root
        self.settings = settings

        excludes = [normalize_cli_pattern(p, root) for p in settings.exclude]
        includes = [normalize_cli_pattern(p, root) for p in settings.include]
        # "src" and "src/" name the same path
        conflicts = sorted({p.rstrip("/") for p in excludes} & {p.rstrip("/") for p in includes})
        if conflicts:
            raise ConfigError(f"Path(s) both included and excluded: {', '.join(conflicts)}")

        builtin_rules = parse_rules(ALWAYS_EXCLUDED, RuleOrigin.CLI_EXCLUDE)
        self.exclude_rules = parse_rules(excludes, RuleOrigin.CLI_EXCLUDE)
        self.include_rules = parse_rules(includes, RuleOrigin.CLI_INCLUDE)
        self._builtin_spec = compile_rules(builtin_rules)
        try:
            self._exclude_spec = compile_rules(self.exclude_rules)
            self._include_spec = compile_rules(self.include_rules)
        except ValueError as e:
            raise ConfigError(f"Invalid glob pattern: {e}") from e

        # Per layer: directory -> compiled ignore file in that directory (or None)
        self._cache: Dict[str, Dict[str, Optional[IgnoreSource]]] = {
            PROMPTIGNORE_NAME: {},
            GITIGNORE_NAME: {},
        }
        self._global_promptignore: Optional[IgnoreSource] = None
        if settings.use_promptignore:
            home = prompt_home_dir()
            if home is not None:
                self._global_promptignore = load_ignore_spec(home / PROMPTIGNORE_NAME, RuleOrigin.PROMPT_IGNORE)

        # Paths removed by --exclude patterns, in the order they were seen
        self.excluded: List[str] = []

    # -- layers --------------------------------------------------------------

    def _source_for(self, name: str, directory: str) -> Optional[IgnoreSource]:
        cache = self._cache[name]
        if directory not in cache:
            origin = RuleOrigin.PROMPT_IGNORE if name == PROMPTIGNORE_NAME else RuleOrigin.VCS_IGNORE
            cache[directory] = load_ignore_spec(self.root / directory / name, origin, base=directory)
        return cache[directory]

    def _layer_sources(self, name: str, rel_path: str) -> List[IgnoreSource]:
        """Ignore files that apply to `rel_path`, farthest first."""
        sources = []
        if name == PROMPTIGNORE_NAME and self._global_promptignore is not None:
            sources.append(self._global_promptignore)
        for directory in _parent_dirs(rel_path):
            source = self._source_for(name, directory)
            if source is not None:
                sources.append(source)
        return sources

    def _layer_decision(self, name: str, rel_path: str, is_dir: bool) -> Tuple[Optional[bool], Optional[IgnoreSource]]:
        """
        Returns (True, source) if the closest deciding file ignores the path,
        (False, source) if it re-includes it, (None, None) if nothing matched.
        """
        for source in reversed(self._layer_sources(name, rel_path)):
            base, _, spec = source
            local = _relative_to_base(rel_path, base)
            if local is None:
                continue
            result = spec.check_file(local + "/" if is_dir else local)
            if result.include is not None:
                return result.include, source
        return None, None

    def _layers(self) -> List[str]:
        layers = []
        if self.settings.use_promptignore:
            layers.append(PROMPTIGNORE_NAME)
        if self.settings.use_gitignore:
            layers.append(GITIGNORE_NAME)
        return layers

    def _reincludes_descendant(self, source: IgnoreSource, rel_dir: str) -> bool:
        base, rules, _ = source
        local = _relative_to_base(rel_dir, base)
        if local is None:
            return False
        dir_parts = local.split("/")
        return any(r.negated and may_contain(r.pattern, dir_parts) for r in rules)

    def _include_ancestry(self, rel_dir: str) -> Tuple[bool, bool]:
        """
        Returns (traversable, named) for a directory no include matches directly.
        Any unanchored include keeps every directory traversable, but only an
        anchored include that spells out the directory by name counts as naming it.
        """
        dir_parts = rel_dir.split("/")
        traversable = named = False
        for rule in self.include_rules:
            if not _is_anchored(rule.pattern):
                traversable = True
            elif may_contain(rule.pattern, dir_parts):
                traversable = True
                named = named or names_directory(rule.pattern, dir_parts)
        return traversable, named

    # -- public --------------------------------------------------------------

    def is_included(self, rel_path: str, is_dir: bool = False) -> bool:
        rel_path = rel_path.strip("/")
        key = rel_path + "/" if is_dir else rel_path

        if self._builtin_spec.match_file(key):
            return False
        if self._exclude_spec.match_file(key):
            self.excluded.append(key)
            return False

        explicit = False
        if self.include_rules:
            if self._include_spec.match_file(key):
                explicit = True
            elif is_dir:
                traversable, explicit = self._include_ancestry(rel_path)
                if not traversable:
                    return False
            else:
                return False

        for layer in self._layers():
            ignored, source = self._layer_decision(layer, rel_path, is_dir)
            if ignored is True:
                if is_dir and self._reincludes_descendant(source, rel_path):
                    logger.debug("Traversing ignored directory %s for re-included children", rel_path)
                    return True
                return False
            if ignored is False:
                return True

        name = rel_path.rsplit("/", 1)[-1]
        if name.startswith(".") and not (explicit or self.settings.include_hidden):
            return False
        return True

