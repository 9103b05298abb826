"""Lightweight tokenizer that keeps known multi-word phrases together."""

from __future__ import annotations

import re
from typing import Optional

from .models import TokenizedText

CONNECTOR_PHRASES = ("where", "with", "when", "whose", "for", "having")

OPERATOR_PHRASES = (
    "greater than or equal to",
    "less than or equal to",
    "not equal to",
    "greater than",
    "more than",
    "less than",
    "at least",
    "no more than",
    "starts with",
    "ends with",
    "equal to",
    "like",
    "contains",
)

CLAUSE_PHRASES = ("of", "order by", "sort by", "group by", "limit")

PHRASES = tuple(
    sorted(
        CONNECTOR_PHRASES + OPERATOR_PHRASES + CLAUSE_PHRASES,
        key=len,
        reverse=True,
    )
)
"""Every phrase kept as one token, longest first so that compound operators win."""

_SENTINEL = "\u2063"
"""Joins the words of a protected phrase; an invisible separator never typed by users."""

_PHRASE_PATTERNS = tuple(
    (re.compile(rf"\b{re.escape(phrase)}\b"), phrase.replace(" ", _SENTINEL))
    for phrase in PHRASES
)
_SYMBOL_PATTERN = re.compile(r"(>=|<=|<>|!=|==|=|>|<)")
_STRIPPED_CHARACTERS = re.compile(r"[\",;!?()]")
_EDGE_CHARACTERS = ".:"
"""Stripped only at the ends of a word, so that `user.email` and `12.5` stay intact."""


def tokenize(text: Optional[str]) -> TokenizedText:
    """
    Split a natural language request into tokens.

    :param text: The request as typed by the user
    :return: The trimmed raw text and its lower-cased tokens
    """
    raw = (text or "").strip()
    padded = f" {raw.lower()} "
    padded = _SYMBOL_PATTERN.sub(r" \1 ", padded)

    for pattern, protected in _PHRASE_PATTERNS:
        padded = pattern.sub(protected, padded)

    tokens = []
    for chunk in padded.split():
        if not _SYMBOL_PATTERN.fullmatch(chunk):
            chunk = _STRIPPED_CHARACTERS.sub("", chunk).strip(_EDGE_CHARACTERS)
        if chunk:
            tokens.append(chunk.replace(_SENTINEL, " "))

    return TokenizedText(raw=raw, tokens=tokens)
