"""Idempotent management of tagged text blocks inside shell startup files.

A block is framed by two sentinel lines::

    # >>> aichat wrapper >>>
    ...body...
    # <<< aichat wrapper <<<

Detection only looks for the start sentinel. Removal deletes everything from
the start sentinel line through the matching end sentinel line; if that range
cannot be determined unambiguously the text is left alone and
``MalformedBlockError`` is raised.
"""

from __future__ import annotations

import enum
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import MalformedBlockError

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".aichat-setup.bak"


class BlockAction(str, enum.Enum):
    CREATED_FILE = "created_file"
    APPENDED = "appended"
    REPLACED = "replaced"
    NO_OP = "no_op"


@dataclass(frozen=True)
class NamedTextBlock:
    tag: str
    body: str

    @property
    def start_marker(self) -> str:
        return start_marker(self.tag)

    @property
    def end_marker(self) -> str:
        return end_marker(self.tag)


@dataclass(frozen=True)
class BlockChange:
    content: str
    action: BlockAction

    @property
    def changed(self) -> bool:
        return self.action is not BlockAction.NO_OP


def start_marker(tag: str) -> str:
    return f"# >>> {tag} >>>"


def end_marker(tag: str) -> str:
    return f"# <<< {tag} <<<"


def frame_block(block: NamedTextBlock) -> str:
    """Return the block body wrapped in its sentinel lines, newline terminated."""
    body = block.body.strip("\n")
    return f"{block.start_marker}\n{body}\n{block.end_marker}\n"


def has_block(text: Optional[str], tag: str) -> bool:
    if not text:
        return False
    marker = start_marker(tag)
    return any(line.strip() == marker for line in text.splitlines())


def remove_block(text: str, tag: str) -> str:
    """Remove the framed block for ``tag``; text without the block is returned as is."""
    lines = text.splitlines(keepends=True)
    start, end = _block_bounds(lines, tag)
    if start is None:
        return text
    return "".join(lines[:start] + lines[end + 1 :])


def apply_block(existing: Optional[str], block: NamedTextBlock, replace: bool = False) -> BlockChange:
    """Compute the new file content for installing ``block``.

    ``existing`` is ``None`` when the file does not exist yet.
    """
    framed = frame_block(block)
    if existing is None:
        return BlockChange(content=framed, action=BlockAction.CREATED_FILE)

    if not has_block(existing, block.tag):
        return BlockChange(content=_append(existing, framed), action=BlockAction.APPENDED)

    if not replace:
        return BlockChange(content=existing, action=BlockAction.NO_OP)

    stripped = remove_block(existing, block.tag)
    return BlockChange(content=_append(stripped, framed), action=BlockAction.REPLACED)


def read_profile(path: Path, encoding: str = "utf-8") -> Optional[str]:
    """Return the file text, or ``None`` when it does not exist."""
    try:
        return path.read_text(encoding=encoding)
    except FileNotFoundError:
        return None


def install_block(path: Path, block: NamedTextBlock, replace: bool = False, encoding: str = "utf-8") -> BlockAction:
    """Install ``block`` into the file at ``path`` and return the action taken.

    ``encoding`` is used for reading and writing; ``utf-8-sig`` keeps or adds
    a byte order mark.
    """
    existing = read_profile(path, encoding)
    change = apply_block(existing, block, replace=replace)
    if not change.changed:
        logger.debug("%s already contains block '%s'", path, block.tag)
        return change.action

    if existing is not None:
        backup = path.with_name(path.name + BACKUP_SUFFIX)
        shutil.copy2(path, backup)
        logger.debug("backed up %s to %s", path, backup)
    else:
        path.parent.mkdir(parents=True, exist_ok=True)

    path.write_text(change.content, encoding=encoding)
    logger.info("%s block '%s' in %s", change.action.value, block.tag, path)
    return change.action


def _append(text: str, framed: str) -> str:
    if text and not text.endswith("\n"):
        text += "\n"
    return text + framed


def _block_bounds(lines: List[str], tag: str) -> tuple[Optional[int], Optional[int]]:
    start_line = start_marker(tag)
    end_line = end_marker(tag)
    starts = [index for index, line in enumerate(lines) if line.strip() == start_line]
    if not starts:
        return None, None
    if len(starts) > 1:
        raise MalformedBlockError(tag, f"start marker appears {len(starts)} times")

    start = starts[0]
    for index in range(start + 1, len(lines)):
        stripped = lines[index].strip()
        if stripped == end_line:
            return start, index
        if stripped.startswith("# >>> ") and stripped.endswith(" >>>"):
            # Another block starts before ours ends.
            break
    raise MalformedBlockError(tag, "end marker not found")
