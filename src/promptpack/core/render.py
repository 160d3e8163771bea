# src/promptpack/core/render.py
import json
from typing import Any, Dict

import yaml

from promptpack.config import OutputFormat
from promptpack.core.tree import generate_project_tree
from promptpack.errors import RenderError
from promptpack.models import Document, TreeNode

FILE_SEPARATOR = "---"


def tree_to_dict(node: TreeNode) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "name": node.name,
        "kind": node.kind.value,
        "tokens": node.token_count,
    }
    if node.is_dir:
        data["children"] = [tree_to_dict(child) for child in node.children]
    return data


def document_to_dict(document: Document) -> Dict[str, Any]:
    """The logical document shared by the JSON and YAML renderings."""
    return {
        "root_tree": tree_to_dict(document.root),
        "files": [
            {"path": f.rel_path, "tokens": f.token_count, "content": f.content}
            for f in document.files
        ],
        "total_tokens": document.total_tokens,
        "total_files": document.total_files,
    }


def summary_line(document: Document) -> str:
    line = f"{document.total_files} files, {document.total_tokens} tokens"
    if document.truncated:
        line += " (counts saturated)"
    return line


def render_plain(document: Document) -> str:
    parts = []
    for record in document.files:
        content = record.content
        if content and not content.endswith("\n"):
            content += "\n"
        parts.append(f"{record.rel_path}:\n\n{content}{FILE_SEPARATOR}\n")
    parts.append(summary_line(document) + "\n")
    return "".join(parts)


def render_json(document: Document) -> str:
    return json.dumps(document_to_dict(document), indent=2, ensure_ascii=False) + "\n"


def render_yaml(document: Document) -> str:
    return yaml.safe_dump(
        document_to_dict(document),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


RENDERERS = {
    OutputFormat.PLAIN: render_plain,
    OutputFormat.JSON: render_json,
    OutputFormat.YAML: render_yaml,
}


def render(document: Document, fmt: OutputFormat) -> str:
    """
    Serializes the whole document to a string. Nothing is written anywhere
    until this returns, so a failure never leaves partial output behind.
    """
    try:
        renderer = RENDERERS[fmt]
    except KeyError:
        raise RenderError(f"Unsupported output format: {fmt!r}") from None
    try:
        return renderer(document)
    except (TypeError, ValueError, yaml.YAMLError) as e:
        raise RenderError(f"Failed to render {fmt.value} output: {e}") from e


def render_tree(document: Document) -> str:
    return generate_project_tree(document.root)


def render_top(document: Document, count: int) -> str:
    """The `count` largest files by tokens, followed by top and overall totals."""
    ranked = sorted(document.files, key=lambda f: (-f.token_count, f.rel_path))
    top = ranked[:count]
    lines = [f"{f.rel_path}: {f.token_count} tokens" for f in top]
    lines.append("")
    lines.append(f"Top {len(top)} files = {sum(f.token_count for f in top)} tokens")
    lines.append(f"All {document.total_files} files = {document.total_tokens} tokens")
    return "\n".join(lines) + "\n"
