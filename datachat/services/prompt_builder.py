from __future__ import annotations

from dataclasses import dataclass

from .csv_parser import Value
from .dataset import Dataset

PREAMBLE = """You are an AI assistant that helps users analyze and query a tabular dataset. You have access to a dataset containing {total} entries with the following columns:"""

INSTRUCTIONS = """INSTRUCTIONS:
1. ONLY answer questions related to this dataset
2. If asked about anything unrelated to the dataset, politely decline and redirect to questions about the data
3. Provide specific data-driven answers and cite values from the rows when possible
4. You can perform analysis, comparisons, aggregations and provide insights about the rows
5. If the data section is marked as truncated, say so when an answer depends on rows you cannot see

If a question is not related to the dataset, respond with: "I can only help with questions about the uploaded dataset. Please ask me about its rows, columns, or values.\""""


@dataclass(frozen=True)
class SystemPrompt:
    text: str
    total_rows: int
    shown_rows: int

    @property
    def truncated(self) -> bool:
        return self.shown_rows < self.total_rows


def serialize_row(row: dict[str, Value]) -> str:
    """Render a row as 'col: value' pairs."""
    return ", ".join(f"{col}: {'N/A' if value is None else value}" for col, value in row.items())


def build_data_section(rows: list[dict[str, Value]], char_budget: int) -> tuple[str, int]:
    """Serialize the largest whole-row prefix that fits in char_budget.

    Returns (data text, number of rows included).
    """
    lines = []
    used = 0
    for row in rows:
        line = serialize_row(row)
        cost = len(line) + (1 if lines else 0)  # newline separator
        if used + cost > char_budget:
            break
        lines.append(line)
        used += cost
    return "\n".join(lines), len(lines)


def build_system_prompt(dataset: Dataset, char_budget: int) -> SystemPrompt:
    total = len(dataset.rows)
    data, shown = build_data_section(dataset.rows, char_budget)

    schema = "\n".join(f"- {col}" for col in dataset.columns) or "- (no columns)"
    sections = [
        PREAMBLE.format(total=total),
        f"DATASET SCHEMA:\n{schema}",
        f"DATA:\n{data}" if shown else "DATA:\n(no rows available)",
    ]
    if shown < total:
        sections.append(
            f"NOTE: The data above is truncated to fit the context window. Showing {shown} of {total} rows; "
            f"the remaining {total - shown} rows are not included. Do not claim the rows above are the complete dataset."
        )
    sections.append(INSTRUCTIONS)
    return SystemPrompt(text="\n\n".join(sections), total_rows=total, shown_rows=shown)
