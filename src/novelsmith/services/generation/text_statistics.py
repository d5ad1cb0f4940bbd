# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Model-independent text statistics and quality scores.

This is the single implementation shared by the analyze-text endpoint and by
chapter results; callers that persist chapters should reuse ``analyze_text``
rather than recomputing anything. All functions are pure and divisions with
a zero denominator yield 0.
"""

from __future__ import annotations

import math
import re

from novelsmith.models.generation import QualityScore, TextAnalysis, TextStatistics

EM_DASH = "—"
EN_DASH = "–"
WORDS_PER_MINUTE = 200
EM_DASH_ALLOWANCE = 1
EM_DASH_PENALTY = 20

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


def _round_div(numerator: int, denominator: int) -> int:
    if denominator == 0:
        return 0
    # Round half up; round() would round half to even.
    return math.floor(numerator / denominator + 0.5)


def _ratio_percent(numerator: int, denominator: int) -> int:
    return _round_div(numerator * 100, denominator)


def split_words(text: str) -> list[str]:
    return text.split()


def calculate_text_statistics(text: str) -> TextStatistics:
    text = text or ""
    words = split_words(text)
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
    paragraphs = [p for p in _PARAGRAPH_SPLIT.split(text) if p.strip()]
    unique_words = {w.lower() for w in words}

    em_dashes = text.count(EM_DASH)
    return TextStatistics(
        word_count=len(words),
        character_count=len(text),
        sentence_count=len(sentences),
        paragraph_count=len(paragraphs),
        lexical_diversity=_ratio_percent(len(unique_words), len(words)),
        em_dash_count=em_dashes,
        en_dash_count=text.count(EN_DASH),
        punctuation_compliant=em_dashes <= EM_DASH_ALLOWANCE,
        avg_words_per_sentence=_round_div(len(words), len(sentences)),
        avg_sentences_per_paragraph=_round_div(len(sentences), len(paragraphs)),
        reading_time_minutes=math.ceil(len(words) / WORDS_PER_MINUTE),
    )


def repetition_score(text: str) -> int:
    """Unique share of lowercased words longer than two characters, 0-100.

    Higher means less repetitive. Text without such words scores 0.
    """
    words = [w.lower() for w in split_words(text or "") if len(w) > 2]
    return _ratio_percent(len(set(words)), len(words))


def punctuation_compliance_score(em_dash_count: int) -> int:
    if em_dash_count <= EM_DASH_ALLOWANCE:
        return 100
    return max(0, 100 - (em_dash_count - EM_DASH_ALLOWANCE) * EM_DASH_PENALTY)


def score_quality(text: str, statistics: TextStatistics | None = None) -> QualityScore:
    statistics = statistics or calculate_text_statistics(text)
    return QualityScore(
        repetition_score=repetition_score(text),
        diversity_score=statistics.lexical_diversity,
        punctuation_compliance_score=punctuation_compliance_score(
            statistics.em_dash_count
        ),
    )


def analyze_text(text: str) -> TextAnalysis:
    statistics = calculate_text_statistics(text)
    return TextAnalysis(
        statistics=statistics, quality=score_quality(text, statistics)
    )
