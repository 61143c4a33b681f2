"""Interfaces the vector store expects from the table engine and the chat host."""

import math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Sequence


class TableSource(Protocol):
    """One table of the table engine."""

    @property
    def name(self) -> str:
        """Display name of the table."""

    @property
    def uid(self) -> str:
        """Stable identifier of the table."""

    @property
    def enabled(self) -> bool:
        """Whether the table takes part in semantic memory."""

    def get_header(self) -> Sequence[str]:
        """Ordered column headers."""

    def get_body(self) -> Sequence[Sequence[Any]]:
        """Ordered rows, each an ordered sequence of cell values."""


class TableProvider(Protocol):
    """Enumerates the tables of the active conversation."""

    def get_chat_sheets(self) -> Sequence[TableSource]:
        """All tables of the active conversation, enabled or not."""


@dataclass
class ConversationContext:
    """Identity of the active conversation."""

    character_name: Optional[str] = None
    chat_id: Optional[str] = None
    messages: List[Any] = field(default_factory=list)


class ConversationContextProvider(Protocol):
    """Gives access to the active conversation, if any."""

    def get_context(self) -> Optional[ConversationContext]:
        """Active conversation or None when no chat is open."""


@dataclass
class StaticTable:
    """Plain in-memory :class:`TableSource`."""

    name: str
    uid: str
    headers: List[str] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)
    enabled: bool = True

    def get_header(self) -> List[str]:
        return self.headers

    def get_body(self) -> List[List[Any]]:
        return self.rows


def format_cell(value: Any) -> str:
    """
    Render a cell value for row text.

    Empty cells, zero and False render as empty text, booleans in lower
    case and whole floats without a fractional part.
    """
    if value is None or value is False or value == "":
        return ""
    if value is True:
        return "true"
    if isinstance(value, (int, float)):
        if value == 0 or math.isnan(value):
            return ""
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
    return str(value)


def row_vector_id(table_uid: str, row_index: int) -> str:
    """Id of the vector record of a table row."""
    return f"{table_uid}_row{row_index}"


def build_row_text(
    table_name: str,
    headers: Sequence[str],
    values: Sequence[Any],
    row_index: int,
) -> str:
    """
    Describe a table row as a sentence for embedding.

    The template must stay stable, stored vectors are only comparable
    with queries if rows are always described the same way.

    :param table_name: name of the table
    :param headers: column headers
    :param values: cell values of the row, rendered with :func:`format_cell`
    :param row_index: zero based row index
    :returns: row description
    """
    pairs = []
    for i, header in enumerate(headers):
        value = values[i] if i < len(values) else None
        pairs.append(f"{header}是{format_cell(value)}")

    return f"表格{table_name}第{row_index}行：{'，'.join(pairs)}"
