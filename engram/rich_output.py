"""
Rich terminal output for Engram files.

Renders a header as a key/value table and the parent/child hierarchy of a
MemoryTree as a rich Tree. Uses a small symbol vocabulary (no emoji).
"""

from __future__ import annotations

import os
from enum import Enum

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from .tree import MemoryTree
from .types import EngramFile, EngramHeader, MemoryNode


class Symbol(str, Enum):
    """Symbols used in node and header rendering."""

    FILE = "◆"
    NODE = "◇"
    EMBEDDING = "∿"
    TAG = "#"
    LINK = "→"
    VERIFIED = "✓"
    UNSIGNED = "⚠"


class Color(str, Enum):
    FILE = "cyan"
    NODE = "blue"
    EMBEDDING = "magenta"
    TAG = "yellow"
    VERIFIED = "green"
    UNSIGNED = "yellow"
    DIM = "dim"


def _truncate(text: str, width: int) -> str:
    text = " ".join(text.split())
    return text[: width - 3] + "..." if len(text) > width else text


def format_node_label(node: MemoryNode, content_width: int = 60) -> Text:
    """
    One-line label for a node.

    Example output:
        ◇ child-1 "Child one" #child ∿384
    """
    text = Text()
    text.append(f"{Symbol.NODE.value} ", style=Color.NODE.value)
    text.append(node.id, style="bold")
    if node.content:
        text.append(f' "{_truncate(node.content, content_width)}"', style=Color.DIM.value)
    for tag in node.tags:
        text.append(f" {Symbol.TAG.value}{tag}", style=Color.TAG.value)
    if node.embedding:
        text.append(f" {Symbol.EMBEDDING.value}{len(node.embedding)}", style=Color.EMBEDDING.value)
    if node.links:
        text.append(f" {Symbol.LINK.value}{len(node.links)}", style=Color.DIM.value)
    return text


def render_header(header: EngramHeader) -> Table:
    """Render header fields as a two-column table, skipping empty ones."""
    table = Table(title=f"{Symbol.FILE.value} Engram", show_header=False, title_style=Color.FILE.value)
    table.add_column("field", style="bold")
    table.add_column("value")

    rows = [
        ("version", header.version),
        ("created", header.created),
        ("modified", header.modified),
        ("nodes", str(header.node_count)),
        ("title", header.metadata.title),
        ("author", header.metadata.author),
        ("license", header.metadata.license),
        ("schema", header.schema.version),
        ("embedding model", header.schema.embedding_model),
        ("embedding dim", str(header.schema.embedding_dim) if header.schema.embedding_dim else ""),
        ("encryption", header.security.encryption),
    ]
    for name, value in rows:
        if value:
            table.add_row(name, value)

    if header.security.integrity:
        integrity = Text(f"{Symbol.VERIFIED.value} sha256:{header.security.integrity[:16]}")
        integrity.stylize(Color.VERIFIED.value)
    else:
        integrity = Text(f"{Symbol.UNSIGNED.value} unsigned")
        integrity.stylize(Color.UNSIGNED.value)
    table.add_row("integrity", integrity)
    return table


def render_tree(tree: MemoryTree, label: str = "nodes", max_depth: int = 5) -> Tree:
    """
    Render the parent/child hierarchy starting from root nodes.

    Levels deeper than ``max_depth`` collapse into a "... (+N deeper)" line.
    Nodes reachable through a parent cycle are drawn once.
    """
    root = Tree(Text(f"{Symbol.FILE.value} {label} ({tree.count()})", style=f"bold {Color.FILE.value}"))
    drawn: set[int] = set()

    def add(branch: Tree, node: MemoryNode, depth: int) -> None:
        drawn.add(id(node))
        child_branch = branch.add(format_node_label(node))
        children = [c for c in tree.get_children(node.id) if id(c) not in drawn]
        if not children:
            return
        if depth >= max_depth:
            hidden = len(tree.get_descendants(node.id))
            child_branch.add(Text(f"... (+{hidden} deeper)", style=Color.DIM.value))
            return
        for child in children:
            add(child_branch, child, depth + 1)

    for node in tree.get_roots():
        add(root, node, 1)

    return root


def get_console() -> Console:
    """Console honouring the NO_COLOR convention."""
    return Console(no_color=os.environ.get("NO_COLOR") is not None)


def print_summary(file: EngramFile, console: Console | None = None, max_depth: int = 5) -> None:
    """Print the header table followed by the node hierarchy."""
    console = console or get_console()
    console.print(render_header(file.header))
    console.print(render_tree(file.tree(), max_depth=max_depth))
