"""Shared text utility functions for the generation pipeline.

Provides common text processing functions used by the response parser
and the distractor synthesizer.
"""

import re
from typing import List, Optional, Tuple

_NUMBERED_LINE = re.compile(r"^[0-9]+\.?\s")
_BULLET_PREFIX = re.compile(r"^(?:[-*•]\s+)")


def strip_markdown_code_blocks(text: str) -> str:
    """Strip markdown code blocks from text.

    LLMs often wrap JSON responses in markdown code blocks like:
    ```json
    {...}
    ```

    This function extracts the content from such blocks.

    Args:
        text: Raw text that may contain markdown code blocks

    Returns:
        Text with markdown code blocks stripped, or original text if no blocks found
    """
    if not text:
        return text

    # Pattern matches ```json or ``` at start, content, then ``` at end
    pattern = r"^```(?:json)?\s*\n?(.*?)\n?```$"
    match = re.match(pattern, text.strip(), re.DOTALL)
    if match:
        return match.group(1).strip()

    return text


def find_balanced_braces(text: str) -> Optional[str]:
    """Find the first balanced ``{...}`` substring.

    Braces inside JSON string literals are ignored, so a question such as
    ``"What does {x} mean?"`` does not end the object early.

    Args:
        text: Text that may contain an embedded JSON object

    An unclosed opening brace does not hide objects nested after it:
    ``'{ broken {"x": 1}'`` yields ``'{"x": 1}'``. The text is scanned once.

    Returns:
        The first balanced brace-delimited substring, or None
    """
    open_positions: List[int] = []
    # Earliest-starting object closed inside a still-open brace
    nested: Optional[Tuple[int, int]] = None
    in_string = False
    escaped = False

    for index, char in enumerate(text):
        if not open_positions:
            if char == "{":
                open_positions.append(index)
            continue

        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            open_positions.append(index)
        elif char == "}":
            start = open_positions.pop()
            if not open_positions:
                return text[start : index + 1]
            if nested is None or start < nested[0]:
                nested = (start, index + 1)

    if nested is not None:
        return text[nested[0] : nested[1]]
    return None


def split_answer_lines(text: str) -> List[str]:
    """Split a list-style completion into clean entries.

    Blank lines and numbered lines (``1. Foo``, ``2 Bar``) are dropped, as the
    prompt asks for unnumbered answers and numbered lines tend to be
    commentary. Bullet markers are stripped.

    Args:
        text: Raw completion text

    Returns:
        Trimmed, non-empty lines in their original order
    """
    if not text:
        return []

    lines: List[str] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or _NUMBERED_LINE.match(line):
            continue
        line = _BULLET_PREFIX.sub("", line).strip()
        if line:
            lines.append(line)
    return lines
