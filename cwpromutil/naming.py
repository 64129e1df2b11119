"""Conversion of CloudWatch names into Prometheus metric and label names."""

from __future__ import annotations

import re

_SPLIT = re.compile(r"([a-z0-9])([A-Z])")
_LABEL_NAME = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_REPLACEMENTS = str.maketrans(
    {
        " ": "_",
        ",": "_",
        "\t": "_",
        "/": "_",
        "\\": "_",
        ".": "_",
        "-": "_",
        ":": "_",
        "=": "_",
        "\u201c": "_",
        "@": "_",
        "<": "_",
        ">": "_",
        "%": "_percent",
    }
)


def split_string(text: str) -> str:
    """Put a dot between a lowercase letter or digit and a following uppercase letter."""
    return _SPLIT.sub(r"\1.\2", text)


def sanitize(text: str) -> str:
    """Replace characters that are not allowed in Prometheus names."""
    return text.translate(_REPLACEMENTS)


def prom_string(text: str) -> str:
    """Turn a CamelCase CloudWatch name into a lower snake_case Prometheus name."""
    return sanitize(split_string(text)).lower()


def is_valid_label_name(name: str) -> bool:
    """Tell whether ``name`` is a valid Prometheus label name."""
    return _LABEL_NAME.fullmatch(name) is not None


def prom_string_tag(text: str, labels_snake_case: bool) -> tuple[bool, str]:
    """Convert a tag or dimension name into a label name.

    Returns whether the result is a valid label name, and the result.
    """
    name = prom_string(text) if labels_snake_case else sanitize(text)
    return is_valid_label_name(name), name