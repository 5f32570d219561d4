"""Pure keyword classification of platform result texts and classifier replies.

The keyword tables live in ``config`` so the heuristics can be audited and
tuned without touching control flow. Every function here is side-effect free.
"""

import json
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from question_grader import config
from question_grader.core.models import ClassifierResult, ClassifierVerdict, Outcome

_VERDICT_ALIASES: Dict[str, ClassifierVerdict] = {
    "match": ClassifierVerdict.MATCH,
    "matched": ClassifierVerdict.MATCH,
    "matchconfirmed": ClassifierVerdict.MATCH,
    "nomatch": ClassifierVerdict.NO_MATCH,
    "notmatch": ClassifierVerdict.NO_MATCH,
    "mismatch": ClassifierVerdict.NO_MATCH,
    "partial": ClassifierVerdict.PARTIAL,
    "partialmatch": ClassifierVerdict.PARTIAL,
    "needsreview": ClassifierVerdict.NEEDS_REVIEW,
    "review": ClassifierVerdict.NEEDS_REVIEW,
}


def normalize_text(text: Optional[str]) -> str:
    """Lower-cases, unifies apostrophes and collapses whitespace."""
    if not text:
        return ""
    text = text.replace("’", "'").replace("‘", "'")
    return re.sub(r"\s+", " ", text).strip().lower()


def contains_keyword(normalized: str, keywords: Iterable[str]) -> bool:
    """True when any keyword occurs in ``normalized`` as a whole word or phrase."""
    for keyword in keywords:
        pattern = r"(?<!\w)" + re.escape(keyword.lower()) + r"(?!\w)"
        if re.search(pattern, normalized):
            return True
    return False


def is_processing(text: Optional[str]) -> bool:
    return contains_keyword(normalize_text(text), config.PROCESSING_KEYWORDS)


def classify_grading_text(
    text: Optional[str],
    table: Optional[Dict[str, Tuple[str, ...]]] = None,
    strict: bool = False,
) -> Outcome:
    """Maps a terminal result text to an Outcome; anything unrecognised is SKIPPED.

    With ``strict`` the text must hit exactly one keyword family. Used for
    whole-page scans, where the question prompt itself may say "correct".
    """
    table = table if table is not None else config.GRADING_KEYWORDS
    normalized = normalize_text(text)
    if not normalized:
        return Outcome.SKIPPED
    hits = [name for name, keywords in table.items() if contains_keyword(normalized, keywords)]
    if not hits or (strict and len(hits) > 1):
        return Outcome.SKIPPED
    return Outcome(hits[0])


def negates_match(normalized: str) -> bool:
    """True when a negation sits a few words before "match", as in "does not fully match"."""
    negations = "|".join(re.escape(n) for n in config.MATCH_NEGATIONS)
    pattern = (
        rf"(?<!\w)(?:{negations})(?:\W+\w+){{0,{config.MATCH_NEGATION_WINDOW}}}"
        r"\W+match(?:es|ed|ing)?(?!\w)"
    )
    return re.search(pattern, normalized) is not None


def heuristic_verdict(
    text: Optional[str],
    table: Optional[Sequence[Tuple[str, Tuple[str, ...]]]] = None,
) -> ClassifierVerdict:
    """Keyword fallback for classifier replies without a usable JSON object."""
    table = table if table is not None else config.CLASSIFIER_VERDICT_KEYWORDS
    normalized = normalize_text(text)
    for verdict_name, keywords in table:
        if contains_keyword(normalized, keywords):
            if verdict_name == ClassifierVerdict.MATCH.value and negates_match(normalized):
                return ClassifierVerdict.NEEDS_REVIEW
            return ClassifierVerdict(verdict_name)
    return ClassifierVerdict.NEEDS_REVIEW


def extract_json_object(text: Optional[str]) -> Optional[str]:
    """Returns the first top-level ``{...}`` block in ``text``, or None.

    Braces inside JSON string literals are ignored so remarks such as
    ``"use {x}"`` do not end the object early.
    """
    if not text:
        return None
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:pos + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def normalize_verdict(value: Any) -> Optional[ClassifierVerdict]:
    if not isinstance(value, str):
        return None
    key = re.sub(r"[^a-z]", "", value.lower())
    return _VERDICT_ALIASES.get(key)


def _coerce_requirements(value: Any) -> Optional[Tuple[str, ...]]:
    items: List[str] = []
    if isinstance(value, str):
        items = [value]
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value if item is not None]
    cleaned = tuple(item.strip() for item in items if item.strip())
    return cleaned or None


def cap_remarks(text: str, limit: Optional[int] = None) -> str:
    limit = limit if limit is not None else config.CLASSIFIER_REMARKS_MAX_CHARS
    text = text.strip()
    return text if len(text) <= limit else text[: limit - 3].rstrip() + "..."


def parse_classifier_response(raw: Optional[str]) -> ClassifierResult:
    """Turns the classifier's free text into a ClassifierResult.

    The first embedded JSON object wins when it carries both ``verdict`` and
    ``remarks``; otherwise the keyword heuristic runs over the raw text and the
    raw text becomes the remarks.
    """
    text = (raw or "").strip()
    if not text:
        return ClassifierResult(ClassifierVerdict.NEEDS_REVIEW, "Classifier returned an empty response")

    candidate = extract_json_object(text)
    if candidate is not None:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            verdict = normalize_verdict(data.get("verdict"))
            remarks = data.get("remarks")
            if verdict is not None and isinstance(remarks, str) and remarks.strip():
                requirements = _coerce_requirements(
                    data.get("suggestedRequirements", data.get("suggested_requirements"))
                )
                return ClassifierResult(verdict, cap_remarks(remarks), requirements)

    return ClassifierResult(heuristic_verdict(text), cap_remarks(text))
