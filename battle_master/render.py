"""Line-based markdown rendering for encounter text.

Only the handful of constructs the model is asked to produce are handled:
``## `` and ``### `` headings, ``* ``/``- `` list items and ``**bold**``
spans. Everything else is shown as a plain paragraph.
"""

import re
from typing import Iterable

from rich.console import Group, RenderableType
from rich.padding import Padding
from rich.table import Table
from rich.text import Text

from battle_master.llm.base import Citation

_BOLD = re.compile(r"\*\*(.+?)\*\*")


def inline_text(line: str, style: str = "") -> Text:
    """Render ``line`` with ``**bold**`` spans emphasised."""
    text = Text(style=style)
    position = 0
    for match in _BOLD.finditer(line):
        text.append(line[position : match.start()])
        text.append(match.group(1), style="bold")
        position = match.end()
    text.append(line[position:])
    return text


def render_line(line: str) -> RenderableType | None:
    """Map a single markdown line to a renderable, or None for blank lines."""
    stripped = line.strip()
    if not stripped:
        return None
    if stripped.startswith("### "):
        return Text(stripped[4:], style="bold magenta")
    if stripped.startswith("## "):
        return Text(stripped[3:], style="bold underline red")
    if stripped.startswith("* ") or stripped.startswith("- "):
        return Padding(inline_text(f"• {stripped[2:]}"), (0, 0, 0, 2))
    return inline_text(stripped)


def render_markdown(markdown: str) -> Group:
    """Render encounter markdown as a group of rich renderables."""
    renderables = []
    for line in markdown.splitlines():
        renderable = render_line(line)
        if renderable is not None:
            renderables.append(renderable)
    return Group(*renderables)


def render_citations(citations: Iterable[Citation]) -> Table | None:
    """Numbered table of grounding sources, or None when there are none."""
    citations = list(citations)
    if not citations:
        return None

    table = Table(title="Sources", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("URL", style="blue")
    for index, citation in enumerate(citations, start=1):
        table.add_row(str(index), citation.title, citation.uri)
    return table
