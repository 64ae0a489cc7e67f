"""Position-aligned line diff.

Lines are compared index by index; a changed line yields a ``remove`` entry
immediately followed by an ``add`` entry with the same line number. Block
moves and insertions are not detected, so inserting a line near the top of a
document reports every following line as changed. Stored diffs and clients
depend on this exact shape.
"""

from dataclasses import dataclass, field
from typing import Iterable


@dataclass(frozen=True)
class DiffEntry:
    """Single diff operation on a 1-based line number."""

    type: str  # add, remove
    line: str
    line_num: int

    def to_dict(self) -> dict:
        return {"type": self.type, "line": self.line, "lineNum": self.line_num}

    @classmethod
    def from_dict(cls, data: dict) -> "DiffEntry":
        return cls(type=data["type"], line=data["line"], line_num=data["lineNum"])


@dataclass
class DiffResult:
    """Entries plus the human-readable summary."""

    entries: list[DiffEntry] = field(default_factory=list)
    added: int = 0
    removed: int = 0

    @property
    def summary(self) -> str:
        return f"{self.added} additions, {self.removed} deletions"

    def to_json(self) -> list[dict]:
        return [entry.to_dict() for entry in self.entries]


def compute_diff(old_text: str, new_text: str) -> DiffResult:
    """Compute the line-level diff between two texts."""
    old_lines = old_text.split("\n")
    new_lines = new_text.split("\n")
    result = DiffResult()

    for i in range(max(len(old_lines), len(new_lines))):
        if i >= len(old_lines):
            result.entries.append(DiffEntry("add", new_lines[i], i + 1))
            result.added += 1
        elif i >= len(new_lines):
            result.entries.append(DiffEntry("remove", old_lines[i], i + 1))
            result.removed += 1
        elif old_lines[i] != new_lines[i]:
            result.entries.append(DiffEntry("remove", old_lines[i], i + 1))
            result.entries.append(DiffEntry("add", new_lines[i], i + 1))
            result.removed += 1
            result.added += 1

    return result


def apply_diff(old_text: str, entries: Iterable[DiffEntry]) -> str:
    """Rebuild the new text from the old text and a position-aligned diff."""
    old_lines = old_text.split("\n")
    added: dict[int, str] = {}
    removed: set[int] = set()
    for entry in entries:
        if entry.type == "add":
            added[entry.line_num] = entry.line
        else:
            removed.add(entry.line_num)

    length = max([len(old_lines), *added.keys()])
    new_lines = []
    for line_num in range(1, length + 1):
        if line_num in added:
            new_lines.append(added[line_num])
        elif line_num in removed:
            continue
        else:
            new_lines.append(old_lines[line_num - 1])
    return "\n".join(new_lines)
