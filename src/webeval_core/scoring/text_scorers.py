"""
Text-based matching helpers

Normalizes agent output before it is compared with a task's expected result.
"""

from __future__ import annotations

import re
import unicodedata


def remove_markdown(text: str) -> str:
    """
    Remove markdown formatting

    - Remove code fences, keeping their content
    - Remove inline code backticks
    - Remove emphasis markers (** and __)
    - Remove bullet symbols and list numbering

    Args:
        text: Text that may contain markdown

    Returns:
        Text with markdown removed
    """
    text = re.sub(r"```[\w]*\n?(.*?)```", r"\1", text, flags=re.DOTALL)
    text = re.sub(r"`([^`]+)`", r"\1", text)
    text = re.sub(r"(\*\*|__)(.+?)\1", r"\2", text)
    text = re.sub(r"^[\s]*[-*•]\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^[\s]*\d+\.\s+", "", text, flags=re.MULTILINE)
    return text


def normalize_text(text: str | None) -> str:
    """
    Normalize text for comparison

    Markdown removal, NFKC normalization, lowercasing, whitespace collapsing.
    None is treated as the empty string.
    """
    if not text:
        return ""
    text = remove_markdown(text)
    text = unicodedata.normalize("NFKC", text)
    text = text.lower()
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def contains_expected(expected: str, actual: str | None) -> bool:
    """Whether the normalized expected text appears in the normalized actual text"""
    needle = normalize_text(expected)
    return bool(needle) and needle in normalize_text(actual)

