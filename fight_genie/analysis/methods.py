"""Fight-method and fighter-name normalization used when grading predictions."""

from __future__ import annotations

import re
import unicodedata

# Any of these substrings puts a method description in the category.
METHOD_CATEGORIES: dict[str, tuple[str, ...]] = {
    "ko/tko": ("ko", "tko", "ko/tko", "knockout"),
    "submission": ("sub", "submission"),
    "decision": ("dec", "u-dec", "s-dec", "m-dec", "decision", "unanimous decision"),
}

_WS_RE = re.compile(r"\s+")


def normalize_method(method: str | None) -> str:
    text = _WS_RE.sub(" ", (method or "").lower()).strip()
    if text.startswith("by "):
        text = text[3:]
    return text


def method_categories(method: str | None) -> set[str]:
    text = normalize_method(method)
    return {
        name for name, keywords in METHOD_CATEGORIES.items() if any(k in text for k in keywords)
    }


def compare_method(predicted: str | None, actual: str | None) -> bool:
    """True when the predicted method matches the actual one.

    "KO" matches "KO/TKO Punches", "Submission" matches "SUB", any decision
    matches any decision.
    """
    predicted_norm = normalize_method(predicted)
    actual_norm = normalize_method(actual)
    if not predicted_norm or not actual_norm:
        return False
    if predicted_norm == actual_norm:
        return True
    return bool(method_categories(predicted_norm) & method_categories(actual_norm))


def normalize_name(name: str | None) -> str:
    """Case, accent and whitespace-insensitive form of a fighter name."""
    text = unicodedata.normalize("NFKD", name or "")
    text = "".join(c for c in text if not unicodedata.combining(c))
    return _WS_RE.sub(" ", text.lower()).strip()


def fight_key(fighter1: str | None, fighter2: str | None) -> frozenset[str]:
    """Unordered pair of normalized fighter names."""
    return frozenset((normalize_name(fighter1), normalize_name(fighter2)))
