"""Derive acceptable alternative answers from a canonical meaning string."""
from __future__ import annotations

import re
from typing import Iterable, Iterator, List


# Grammatical descriptors that clarify a meaning but are never answers themselves.
DESCRIPTOR_BLACKLIST = frozenset(
    {
        "singular",
        "plural",
        "formal",
        "informal",
        "polite",
        "familiar",
        "masculine",
        "feminine",
        "neuter",
        "common",
        "definite",
        "indefinite",
        "subject",
        "object",
        "possessive",
        "reflexive",
        "pronoun",
        "past",
        "present",
        "future",
        "perfect",
        "past tense",
        "present tense",
        "imperative",
        "infinitive",
    }
)
SKIPPED_SEGMENTS = frozenset({"etc.", "etc", "..."})
ALWAYS_DROPPED = frozenset({"the"})
ARTICLES = frozenset({"a", "an"})

PARENTHETICAL_PATTERN = re.compile(r"\(([^)]*)\)")
WHITESPACE_PATTERN = re.compile(r"\s+")
TOKEN_SPLIT_PATTERN = re.compile(r"[\s/]+")
DESCRIPTOR_SPLIT_PATTERN = re.compile(r"[,/]")


def strip_parentheticals(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", PARENTHETICAL_PATTERN.sub("", text)).strip()


def split_outside_parentheses(text: str, separator: str) -> List[str]:
    """Split on ``separator`` while leaving parenthesised text intact."""

    segments: List[str] = []
    depth = 0
    current: List[str] = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")" and depth:
            depth -= 1
        if char == separator and depth == 0:
            segments.append("".join(current))
            current = []
        else:
            current.append(char)
    segments.append("".join(current))
    return segments


def is_descriptor(text: str) -> bool:
    parts = [part.strip().lower() for part in DESCRIPTOR_SPLIT_PATTERN.split(text)]
    parts = [part for part in parts if part]
    return bool(parts) and all(part in DESCRIPTOR_BLACKLIST for part in parts)


def _parenthetical_contents(text: str) -> List[str]:
    return [content.strip() for content in PARENTHETICAL_PATTERN.findall(text)]


def _only_descriptor_parentheticals(segment: str) -> bool:
    contents = _parenthetical_contents(segment)
    return bool(contents) and all(is_descriptor(content) for content in contents)


def _candidates(original: str) -> Iterator[str]:
    yield original

    base = strip_parentheticals(original)
    if base != original:
        yield base

    for content in _parenthetical_contents(original):
        if content and not is_descriptor(content):
            yield content

    if "," in original:
        for segment in split_outside_parentheses(original, ","):
            segment = segment.strip()
            yield segment
            yield strip_parentheticals(segment)

    if "/" in original:
        for segment in split_outside_parentheses(original, "/"):
            segment = segment.strip()
            if segment.lower() in SKIPPED_SEGMENTS:
                continue
            if not _only_descriptor_parentheticals(segment):
                yield segment
            yield strip_parentheticals(segment)


def _filter(candidates: Iterable[str], original: str) -> List[str]:
    original_tokens = {token.lower() for token in TOKEN_SPLIT_PATTERN.split(original) if token}
    answers: List[str] = []
    seen = set()
    for candidate in candidates:
        candidate = candidate.strip()
        if not candidate or candidate in seen:
            continue
        lowered = candidate.lower()
        if lowered in ALWAYS_DROPPED:
            continue
        if lowered in ARTICLES and lowered not in original_tokens:
            continue
        seen.add(candidate)
        answers.append(candidate)
    return answers


def generate_acceptable_answers(meaning: str) -> List[str]:
    """Expand a meaning such as ``"you (singular)"`` into accepted answers.

    The trimmed meaning always comes first; parenthetical notes, comma and
    slash separated variants follow. Grammatical descriptors, "etc." markers
    and stray articles are filtered out and the result is deduplicated.
    """

    original = meaning.strip()
    return _filter(_candidates(original), original)


__all__ = [
    "DESCRIPTOR_BLACKLIST",
    "generate_acceptable_answers",
    "is_descriptor",
    "split_outside_parentheses",
    "strip_parentheticals",
]
