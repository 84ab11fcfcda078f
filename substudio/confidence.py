"""Heuristic scoring of AI translations.

The score is a sanity signal built from surface features (length ratio,
numbers kept, subtitle line length). It does not measure linguistic quality
and is not calibrated against anything; treat it as "did the model return
something shaped like a subtitle translation of this input".
"""

import re
from typing import List, Tuple

BASE_CONFIDENCE = 0.88
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.99
MAX_LINE_CHARS = 50

_NUMBER_RE = re.compile(r"\d+")

CULTURAL_MARKERS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\b(?:Mr|Mrs|Ms|Dr)\."), "Title adaptation"),
    (re.compile(r"\$\d+"), "Currency adaptation"),
    (re.compile(r"\b\d{1,2}:\d{2}\s?(?:AM|PM)\b"), "Time format adaptation"),
    (re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"), "Date format adaptation"),
]


def clamp_confidence(value: float, upper: float = MAX_CONFIDENCE) -> float:
    return max(MIN_CONFIDENCE, min(upper, value))


def score_translation(original: str, translated: str) -> float:
    """
    Scores a translation in [0.1, 0.99].

    Starts at 0.88, then:
      * length ratio below 0.3 or above 3.0: -0.2; inside [0.5, 2.0]: +0.05
      * same count of digit groups: +0.03, otherwise -0.08
      * every output line at most 50 characters: +0.05
    """
    confidence = BASE_CONFIDENCE

    if original:
        ratio = len(translated) / len(original)
        if ratio < 0.3 or ratio > 3.0:
            confidence -= 0.2
        elif 0.5 <= ratio <= 2.0:
            confidence += 0.05

    if len(_NUMBER_RE.findall(original)) == len(_NUMBER_RE.findall(translated)):
        confidence += 0.03
    else:
        confidence -= 0.08

    if all(len(line) <= MAX_LINE_CHARS for line in translated.split("\n")):
        confidence += 0.05

    return clamp_confidence(confidence)


def detect_cultural_adaptations(original: str, translated: str) -> List[str]:
    """Tags markers (titles, currency, time, dates) whose count changed in translation."""
    adaptations = []
    for pattern, tag in CULTURAL_MARKERS:
        source_count = len(pattern.findall(original))
        if source_count and source_count != len(pattern.findall(translated)):
            adaptations.append(tag)
    return adaptations
