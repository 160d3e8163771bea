# src/promptpack/cli.py
import argparse
import logging
import os
import sys
from pathlib import Path

import pyperclip

from promptpack.config import DEFAULT_MODEL, OutputFormat, build_settings, parse_output_format
from promptpack.core.render import render, render_top, render_tree, summary_line
from promptpack.errors import ConfigError, PromptError
from promptpack.pipeline import build_document

MAX_WARNINGS_SHOWN = 20


def setup_logging(verbose: bool) -> None:
    """Configure logging on stderr so it never mixes with prompt output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    # Reduce noise from external libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def create_arg_parser():
    parser = argparse.ArgumentParser(
        prog="promptpack",
        description="Read the files of a directory tree into a single prompt for an LLM.",
    )
    parser.add_argument("root_dir", type=str, nargs="?", default=os.getcwd(), help="Project root directory")
    parser.add_argument(
        "-i", "--include", action="append", default=None, metavar="GLOB",
        help="Only include paths matching this path or glob (repeatable)",
    )
    parser.add_argument(
        "-e", "--exclude", action="append", default=None, metavar="GLOB",
        help="Exclude paths matching this path or glob (repeatable, always wins)",
    )
    parser.add_argument("--no-gitignore", action="store_true", help="Do not honor .gitignore files")
    parser.add_argument("--no-promptignore", action="store_true", help="Do not honor .promptignore files")
    parser.add_argument("--hidden", action="store_true", help="Include hidden files and directories")
    parser.add_argument(
        "-f", "--format", type=str, default=None, choices=[f.value for f in OutputFormat],
        help="Output format (default: plain)",
    )
    parser.add_argument("--tree", action="store_true", help="Prepend a tree summary with token counts")
    parser.add_argument("--top", type=int, default=None, metavar="N", help="Only list the N largest files by tokens")
    parser.add_argument("--model", type=str, default=None, help=f"Tokenizer encoding or model (default: {DEFAULT_MODEL}; 'estimate' for a rough count)")
    parser.add_argument("--token-budget", type=int, default=None, metavar="N", help="Warn when the prompt exceeds N tokens")
    parser.add_argument("--line-numbers", action="store_true", help="Prefix every line with its line number")
    parser.add_argument("--stdout", action="store_true", help="Print the prompt instead of copying it to the clipboard")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser


def settings_from_args(args):
    # Absolute so the config file search can climb above the working directory
    root_dir = Path(args.root_dir).resolve()
    return build_settings(root_dir, {
        "include": tuple(args.include) if args.include else None,
        "exclude": tuple(args.exclude) if args.exclude else None,
        # flags only ever turn things off/on relative to the config file
        "use_gitignore": False if args.no_gitignore else None,
        "use_promptignore": False if args.no_promptignore else None,
        "include_hidden": True if args.hidden else None,
        "output_format": parse_output_format(args.format) if args.format else None,
        "tree": args.tree,
        "token_budget": args.token_budget,
        "model": args.model,
        "line_numbers": True if args.line_numbers else None,
        "top": args.top,
        "stdout": args.stdout,
    })


def report_warnings(report) -> None:
    if not report.warnings:
        return
    print(f"Warnings: {len(report.warnings)} ({report.skipped} skipped)", file=sys.stderr)
    for warning in report.warnings[:MAX_WARNINGS_SHOWN]:
        print(f"  > {warning}", file=sys.stderr)
    if len(report.warnings) > MAX_WARNINGS_SHOWN:
        print(f"  ... +{len(report.warnings) - MAX_WARNINGS_SHOWN} more", file=sys.stderr)


def report_excluded(excluded) -> None:
    if not excluded:
        return
    print(f"Excluded: {len(excluded)}", file=sys.stderr)
    for rel_path in excluded[:MAX_WARNINGS_SHOWN]:
        print(f"  - {rel_path}", file=sys.stderr)
    if len(excluded) > MAX_WARNINGS_SHOWN:
        print(f"  ... +{len(excluded) - MAX_WARNINGS_SHOWN} more", file=sys.stderr)


def main(argv=None):
    try:
        # 1. Setup
        parser = create_arg_parser()
        args = parser.parse_args(argv)
        setup_logging(args.verbose)
        settings = settings_from_args(args)
        if settings.top is not None and settings.top < 1:
            raise ConfigError("--top must be a positive number")

        # 2. Select, read and count
        result = build_document(settings)
        document = result.document

        # 3. Render everything before touching any sink
        side_tree = None
        if settings.top is not None:
            output = render_top(document, settings.top)
        else:
            output = render(document, settings.output_format)
            if settings.tree:
                if settings.output_format is OutputFormat.PLAIN:
                    output = render_tree(document) + "\n" + output
                else:
                    # JSON/YAML already carry root_tree and must stay parseable
                    side_tree = render_tree(document)

        # 4. Deliver
        if settings.stdout or settings.top is not None:
            sys.stdout.write(output)
            if side_tree:
                sys.stderr.write(side_tree)
        else:
            pyperclip.copy(output)
            sys.stdout.write(render_tree(document))
            print(f"{summary_line(document)} copied to clipboard")

        report_excluded(result.excluded)
        report_warnings(result.report)

    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)

    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    except PromptError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    except pyperclip.PyperclipException as e:
        print(f"Error: could not copy to clipboard ({e}); use --stdout", file=sys.stderr)
        sys.exit(1)

    except Exception as e:
        print(f"An unexpected error occurred: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
