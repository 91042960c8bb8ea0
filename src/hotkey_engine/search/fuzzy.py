"""Greedy subsequence fuzzy matching used by the action search."""

from __future__ import annotations

from dataclasses import dataclass

WORD_SEPARATORS = frozenset(" \t\n\r\f\v-_./")

Range = tuple[int, int]


@dataclass(frozen=True, slots=True)
class FuzzyMatchResult:
    matched: bool
    score: float
    ranges: tuple[Range, ...] = ()


NO_MATCH = FuzzyMatchResult(matched=False, score=0.0)


def _is_upper_letter(char: str) -> bool:
    return "a" <= char.lower() <= "z" and char.isupper()


def _fold(text: str) -> str:
    # one code point per character, so indices line up with ``text``
    return "".join(char.lower()[:1] for char in text)


def fuzzy_match(pattern: str, text: str) -> FuzzyMatchResult:
    """Match ``pattern`` as a case-insensitive subsequence of ``text``.

    Each matched character scores 1, plus a streak bonus that grows by one
    per consecutive match, +2 at a word start, +1 on an uppercase letter and
    a 0.01 penalty per index. An exact match adds 10 and a prefix match adds
    5. ``ranges`` are half-open spans of matched characters for highlighting.
    """

    if not pattern:
        return FuzzyMatchResult(matched=True, score=1.0)
    if not text:
        return NO_MATCH

    pattern_lower = _fold(pattern)
    text_lower = _fold(text)

    pattern_index = 0
    score = 0.0
    streak = 0
    last_match = -2
    ranges: list[Range] = []
    range_start = -1

    for index, char in enumerate(text_lower):
        if pattern_index >= len(pattern_lower):
            break
        if char != pattern_lower[pattern_index]:
            if range_start != -1:
                ranges.append((range_start, last_match + 1))
                range_start = -1
            continue

        gained = 1.0
        if last_match == index - 1:
            streak += 1
            gained += streak
        else:
            streak = 0
        if index == 0 or text[index - 1] in WORD_SEPARATORS:
            gained += 2
        if _is_upper_letter(text[index]):
            gained += 1
        gained -= index * 0.01

        score += gained
        last_match = index
        pattern_index += 1
        if range_start == -1:
            range_start = index

    if range_start != -1:
        ranges.append((range_start, last_match + 1))

    matched = pattern_index == len(pattern_lower)
    if not matched:
        return FuzzyMatchResult(matched=False, score=score, ranges=tuple(ranges))
    if text_lower == pattern_lower:
        score += 10
    if text_lower.startswith(pattern_lower):
        score += 5
    return FuzzyMatchResult(matched=True, score=score, ranges=tuple(ranges))


__all__ = ["FuzzyMatchResult", "NO_MATCH", "Range", "WORD_SEPARATORS", "fuzzy_match"]
