# tests/test_ignore.py
import pytest

from conftest import settings_for
from promptpack.core.ignore import (
    PatternResolver,
    load_ignore_spec,
    may_contain,
    names_directory,
    normalize_cli_pattern,
    parse_rules,
)
from promptpack.errors import ConfigError
from promptpack.models import Rule, RuleOrigin


# --- Rule parsing ---

def test_parse_rules_skips_comments_and_blanks():
    rules = parse_rules(["# comment", "", "node_modules/", "!src/keep.js"], RuleOrigin.PROMPT_IGNORE)

    assert rules == [
        Rule("node_modules/", RuleOrigin.PROMPT_IGNORE, negated=False),
        Rule("src/keep.js", RuleOrigin.PROMPT_IGNORE, negated=True),
    ]


def test_load_ignore_spec_skips_invalid_lines(tmp_path):
    ignore_file = tmp_path / ".promptignore"
    ignore_file.write_text("*.log\nbroken\\\n", encoding="utf-8")

    base, rules, spec = load_ignore_spec(ignore_file, RuleOrigin.PROMPT_IGNORE)

    assert [r.pattern for r in rules] == ["*.log"]
    assert spec.match_file("app.log")


def test_load_ignore_spec_missing_file(tmp_path):
    assert load_ignore_spec(tmp_path / ".gitignore", RuleOrigin.VCS_IGNORE) is None


# --- CLI pattern normalization ---

def test_plain_paths_are_anchored(tmp_path):
    assert normalize_cli_pattern("src/", tmp_path) == "/src/"
    assert normalize_cli_pattern("./docs", tmp_path) == "/docs"
    assert normalize_cli_pattern("*.py", tmp_path) == "*.py"


def test_absolute_path_inside_root(tmp_path):
    assert normalize_cli_pattern(str(tmp_path / "src"), tmp_path) == "/src"


def test_absolute_path_outside_root_is_rejected(tmp_path):
    with pytest.raises(ConfigError):
        normalize_cli_pattern("/definitely/elsewhere", tmp_path / "project")


def test_may_contain():
    assert may_contain("/src/pkg/*.py", ["src"]) is True
    assert may_contain("/src/pkg/*.py", ["src", "pkg"]) is True
    assert may_contain("/src/pkg/*.py", ["docs"]) is False
    assert may_contain("logs/important.log", ["logs"]) is True
    assert may_contain("**/keep.txt", ["a", "b"]) is True
    assert may_contain("*.md", ["docs"]) is False


def test_names_directory():
    assert names_directory("/.github/workflows/ci.yml", [".github"]) is True
    assert names_directory("/.github/workflows/ci.yml", [".github", "workflows"]) is True
    assert names_directory("/*/workflows/ci.yml", [".github"]) is False
    assert names_directory("/src", ["src", "pkg"]) is False


# --- Configuration errors ---

def test_invalid_glob_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        PatternResolver(tmp_path, settings_for(tmp_path, exclude=("foo\\",)))


def test_same_path_included_and_excluded_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        PatternResolver(tmp_path, settings_for(tmp_path, include=("src",), exclude=("./src",)))


def test_trailing_slash_does_not_hide_a_conflict(tmp_path):
    with pytest.raises(ConfigError):
        PatternResolver(tmp_path, settings_for(tmp_path, include=("src",), exclude=("src/",)))


def test_negated_cli_pattern_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        PatternResolver(tmp_path, settings_for(tmp_path, exclude=("!src",)))


# --- Precedence ---

def test_gitignore_excludes(make_tree):
    root = make_tree({"a.txt": "a", "b.log": "b", ".gitignore": "*.log\n"})
    resolver = PatternResolver(root, settings_for(root))

    assert resolver.is_included("a.txt")
    assert not resolver.is_included("b.log")


def test_gitignore_can_be_disabled(make_tree):
    root = make_tree({"b.log": "b", ".gitignore": "*.log\n"})
    resolver = PatternResolver(root, settings_for(root, use_gitignore=False))

    assert resolver.is_included("b.log")


def test_promptignore_negation(make_tree):
    root = make_tree({".promptignore": "*.png\n!logo.png\n", "logo.png": "x", "photo.png": "y"})
    resolver = PatternResolver(root, settings_for(root))

    assert resolver.is_included("logo.png")
    assert not resolver.is_included("photo.png")


def test_promptignore_beats_gitignore(make_tree):
    root = make_tree({
        ".gitignore": "generated/\n",
        ".promptignore": "!generated/\n",
        "generated/api.py": "x",
    })
    resolver = PatternResolver(root, settings_for(root))

    assert resolver.is_included("generated", is_dir=True)
    assert resolver.is_included("generated/api.py")


def test_closest_promptignore_wins(make_tree):
    root = make_tree({
        ".promptignore": "*.md\n",
        "docs/.promptignore": "!*.md\n",
        "docs/guide.md": "x",
        "notes.md": "y",
    })
    resolver = PatternResolver(root, settings_for(root))

    assert resolver.is_included("docs/guide.md")
    assert not resolver.is_included("notes.md")


def test_nested_gitignore_is_relative_to_its_directory(make_tree):
    root = make_tree({"pkg/.gitignore": "/build/\n", "pkg/build/x.txt": "x", "build/y.txt": "y"})
    resolver = PatternResolver(root, settings_for(root))

    assert not resolver.is_included("pkg/build", is_dir=True)
    assert resolver.is_included("build", is_dir=True)


def test_global_promptignore(make_tree, isolated_home):
    (isolated_home / ".promptignore").write_text("*.lock\n", encoding="utf-8")
    root = make_tree({"poetry.lock": "x", "main.py": "y"})
    resolver = PatternResolver(root, settings_for(root))

    assert not resolver.is_included("poetry.lock")
    assert resolver.is_included("main.py")


def test_project_promptignore_overrides_global(make_tree, isolated_home):
    (isolated_home / ".promptignore").write_text("*.lock\n", encoding="utf-8")
    root = make_tree({".promptignore": "!poetry.lock\n", "poetry.lock": "x"})
    resolver = PatternResolver(root, settings_for(root))

    assert resolver.is_included("poetry.lock")


def test_include_narrows_to_path(tmp_path):
    resolver = PatternResolver(tmp_path, settings_for(tmp_path, include=("src/",)))

    assert resolver.is_included("src", is_dir=True)
    assert resolver.is_included("src/a.txt")
    assert not resolver.is_included("docs", is_dir=True)
    assert not resolver.is_included("README.md")


def test_include_keeps_ancestors_traversable(tmp_path):
    resolver = PatternResolver(tmp_path, settings_for(tmp_path, include=("src/pkg/*.py",)))

    assert resolver.is_included("src", is_dir=True)
    assert resolver.is_included("src/pkg", is_dir=True)
    assert resolver.is_included("src/pkg/mod.py")
    assert not resolver.is_included("src/other.py")


def test_exclude_always_wins(make_tree):
    root = make_tree({".promptignore": "!secret.txt\n", "secret.txt": "x"})
    resolver = PatternResolver(root, settings_for(root, include=("*.txt",), exclude=("secret.txt",)))

    assert not resolver.is_included("secret.txt")


def test_excluded_paths_are_recorded(tmp_path):
    resolver = PatternResolver(tmp_path, settings_for(tmp_path, exclude=("secrets/", "*.key")))

    assert not resolver.is_included("secrets", is_dir=True)
    assert not resolver.is_included("deploy/prod.key")
    assert not resolver.is_included(".git", is_dir=True)
    assert resolver.is_included("main.py")

    assert resolver.excluded == ["secrets/", "deploy/prod.key"]


def test_include_does_not_override_ignore_files(make_tree):
    root = make_tree({".gitignore": "*.pyc\n", "src/a.pyc": "x"})
    resolver = PatternResolver(root, settings_for(root, include=("src/",)))

    assert not resolver.is_included("src/a.pyc")


def test_git_directory_always_excluded(tmp_path):
    resolver = PatternResolver(tmp_path, settings_for(tmp_path, include_hidden=True))

    assert not resolver.is_included(".git", is_dir=True)
    assert not resolver.is_included("sub/.git", is_dir=True)


# --- Hidden files ---

def test_hidden_excluded_by_default(tmp_path):
    resolver = PatternResolver(tmp_path, settings_for(tmp_path))

    assert not resolver.is_included(".env")
    assert not resolver.is_included(".github", is_dir=True)


def test_hidden_included_when_requested(tmp_path):
    resolver = PatternResolver(tmp_path, settings_for(tmp_path, include_hidden=True))

    assert resolver.is_included(".env")


def test_hidden_included_when_explicitly_included(tmp_path):
    resolver = PatternResolver(tmp_path, settings_for(tmp_path, include=(".github/workflows/ci.yml",)))

    assert resolver.is_included(".github", is_dir=True)
    assert resolver.is_included(".github/workflows", is_dir=True)
    assert resolver.is_included(".github/workflows/ci.yml")


def test_glob_include_keeps_hidden_directories_out(tmp_path):
    resolver = PatternResolver(tmp_path, settings_for(tmp_path, include=("*.py",)))

    assert resolver.is_included("src", is_dir=True)
    assert resolver.is_included("src/main.py")
    assert not resolver.is_included(".venv", is_dir=True)
    assert not resolver.is_included(".tox", is_dir=True)


def test_glob_include_with_hidden_flag_opens_hidden_directories(tmp_path):
    resolver = PatternResolver(tmp_path, settings_for(tmp_path, include=("*.py",), include_hidden=True))

    assert resolver.is_included(".venv", is_dir=True)


def test_hidden_reincluded_by_negation(make_tree):
    root = make_tree({".promptignore": "!.editorconfig\n", ".editorconfig": "x"})
    resolver = PatternResolver(root, settings_for(root))

    assert resolver.is_included(".editorconfig")


# --- Pruning and re-inclusion ---

def test_ignored_directory_with_reincluded_child(make_tree):
    root = make_tree({
        ".promptignore": "logs/\n!logs/important.log\n",
        "logs/app.log": "noise",
        "logs/important.log": "SAVE ME",
    })
    resolver = PatternResolver(root, settings_for(root))

    assert resolver.is_included("logs", is_dir=True)
    assert resolver.is_included("logs/important.log")
    assert not resolver.is_included("logs/app.log")


def test_ignored_directory_without_reinclusion_is_pruned(make_tree):
    root = make_tree({".promptignore": "logs/\n!*.md\n", "logs/readme.md": "x"})
    resolver = PatternResolver(root, settings_for(root))

    assert not resolver.is_included("logs", is_dir=True)
