"""Edit-distance similarity used for OCR legibility and text-diff triage."""

from __future__ import annotations

TOKEN_TOLERANCE_RATIO = 0.2


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance using two rolling rows sized by the shorter string."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    current = [0] * (len(b) + 1)
    for i, ca in enumerate(a):
        current[0] = i + 1
        for j, cb in enumerate(b):
            cost = 0 if ca == cb else 1
            current[j + 1] = min(
                current[j] + 1,
                previous[j + 1] + 1,
                previous[j] + cost,
            )
        previous, current = current, previous
    return previous[len(b)]


def tokenize(text: str) -> list[str]:
    return [t for t in text.split(" ") if t] if text else []


def token_recall(expected_tokens: list[str], actual_tokens: list[str]) -> float:
    """Share of expected tokens found, in order, among unconsumed actual tokens.

    A token matches exactly or within max(1, 20% of its length) edits.
    """
    if not expected_tokens:
        return 0.0
    used: set[int] = set()
    matches = 0
    for expected in expected_tokens:
        tolerance = max(1, int(len(expected) * TOKEN_TOLERANCE_RATIO))
        for i, actual in enumerate(actual_tokens):
            if i in used:
                continue
            if expected == actual or edit_distance(expected, actual) <= tolerance:
                used.add(i)
                matches += 1
                break
    return matches / len(expected_tokens)


def similarity(expected: str, actual: str) -> float:
    """Mean of character-level score and token recall, in [0, 1]."""
    if not expected and not actual:
        return 1.0
    recall = token_recall(tokenize(expected), tokenize(actual))
    max_len = max(len(expected), len(actual), 1)
    char_score = (max_len - edit_distance(expected, actual)) / max_len
    return (char_score + recall) / 2


def format_score(score: float) -> str:
    return f"{score * 100:.1f}%"
