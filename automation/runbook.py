"""CLI entrypoint: run tagged code blocks from a markdown runbook.

Usage: python -m automation.runbook <file> [--list] [--block <name|index>] [--dry-run]

Runnable blocks are fenced code blocks whose info string carries the
``runbook`` tag::

    ```sh runbook name=triage
    echo "hello"
    ```

Extra tags may be given as ``tag=<value>``.  Blocks are numbered from 1 in
document order.
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path

from automation.shell import run_shell

logger = logging.getLogger(__name__)

RUNBOOK_TAG = "runbook"
_FENCE_RE = re.compile(r"^```(.*)$")


@dataclass
class RunbookBlock:
    """A fenced code block and its parsed info string."""
    language: str | None
    content: str
    start_line: int
    end_line: int
    name: str | None = None
    tags: list[str] = field(default_factory=list)
    index: int = 0

    @property
    def title(self) -> str:
        return f"runbook:{self.name}" if self.name else f"runbook:#{self.index}"


def parse_fence_info(info: str) -> tuple[str | None, list[str], str | None]:
    """Split a fence info string into ``(language, tags, name)``."""
    tokens = info.split()
    language = tokens[0] if tokens else None
    tags: list[str] = []
    name = None
    for token in tokens[1:]:
        if token == RUNBOOK_TAG:
            tags.append(RUNBOOK_TAG)
        elif token.startswith("name="):
            name = token[len("name="):]
        elif token.startswith("tag="):
            tags.append(token[len("tag="):])
    return language, tags, name


def parse_blocks(markdown: str) -> list[RunbookBlock]:
    """Return every fenced code block in *markdown*, runnable or not."""
    blocks: list[RunbookBlock] = []
    in_fence = False
    info = ""
    start = 0
    buffer: list[str] = []

    for i, line in enumerate(markdown.splitlines()):
        if not in_fence:
            m = _FENCE_RE.match(line)
            if m:
                in_fence, info, start, buffer = True, m.group(1).strip(), i + 1, []
            continue
        if line.startswith("```"):
            language, tags, name = parse_fence_info(info)
            blocks.append(RunbookBlock(
                language=language,
                content="\n".join(buffer),
                start_line=start,
                end_line=i + 1,
                name=name,
                tags=tags,
            ))
            in_fence = False
            continue
        buffer.append(line)

    return blocks


def runnable_blocks(markdown: str) -> list[RunbookBlock]:
    """Blocks tagged ``runbook``, numbered from 1."""
    runnable = [b for b in parse_blocks(markdown) if RUNBOOK_TAG in b.tags]
    for index, block in enumerate(runnable, start=1):
        block.index = index
    return runnable


def select_blocks(blocks: list[RunbookBlock], selector: str | None) -> list[RunbookBlock]:
    """Pick blocks by numeric index or by name; no selector selects all."""
    if not selector:
        return blocks
    if selector.strip().isdigit():
        return [b for b in blocks if b.index == int(selector)]
    return [b for b in blocks if b.name == selector]


# ---------------------------------------------------------------------------
# Main / argparse
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="runbook",
        description="Run tagged code blocks from a markdown runbook",
    )
    parser.add_argument("file", help="Markdown runbook file")
    parser.add_argument("--list", action="store_true", help="List runnable blocks")
    parser.add_argument("--block", default=None, help="Run block by name or numeric index")
    parser.add_argument("--dry-run", action="store_true",
                        help="Print commands without executing")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    blocks = runnable_blocks(Path(args.file).read_text(encoding="utf-8"))

    if args.list:
        if not blocks:
            print("No runnable runbook blocks found.")
            return 0
        print("Runnable blocks:")
        for block in blocks:
            name = f"name={block.name}" if block.name else "name=<none>"
            print(f"- #{block.index} {name} ({block.language or 'unknown'})")
        return 0

    selected = select_blocks(blocks, args.block)
    if not selected:
        print("No matching runbook blocks found.", file=sys.stderr)
        return 1

    for block in selected:
        script = block.content.rstrip()
        if not script:
            continue
        if args.dry_run:
            print(f"--- {block.title} (dry-run) ---")
            print(script)
            continue
        print(f"--- {block.title} ---", flush=True)
        status = run_shell(script)
        if status != 0:
            logger.warning("%s exited with status %d", block.title, status)
            return status
    return 0


if __name__ == "__main__":
    sys.exit(main())
