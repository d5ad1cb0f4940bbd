# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from unittest import TestCase

from generation_fakes import (
    CHRISTIAN_GENRE,
    MYSTERY_CHARACTERS,
    MYSTERY_GENRE,
    MYSTERY_PREMISE,
)
from novelsmith.models.generation import CoverPayload, GenreContext
from novelsmith.services.exceptions import ValidationError
from novelsmith.services.generation.generation_config import (
    DEFAULT_LONG_CHAPTER_TARGET_WORDS,
)
from novelsmith.services.generation.prompt_builders import (
    build_cover_prompt,
    build_premise_prompt,
    build_prompt,
    coerce_request,
    target_chapter_count,
)


def chapter_request(phase="chapter", number=3, customization=None, previous=None):
    return coerce_request(
        {
            "phase": phase,
            "genreContext": MYSTERY_GENRE,
            "payload": {
                "chapterOutline": {
                    "number": number,
                    "title": "The Ledger",
                    "summary": "Ada finds the forged entry.",
                    "objectives": ["find the ledger", "suspect Tom"],
                },
                "premise": MYSTERY_PREMISE,
                "characters": MYSTERY_CHARACTERS,
                "previousChapter": previous,
            },
            "customization": customization or {},
        }
    )


class ChapterPromptTest(TestCase):
    def test_chapter_prompt_contains_hard_constraints(self):
        prompt = build_prompt(
            chapter_request(
                customization={"chapterWordCount": {"min": 1750, "max": 2250}}
            )
        )
        self.assertIn("Chapter 3", prompt)
        self.assertIn("1750-2250", prompt)
        self.assertIn("Maximum ONE em dash", prompt)
        self.assertIn("Use en dashes (–) for ranges", prompt)
        self.assertIn("No repeated phrases", prompt)
        self.assertIn("Show don't tell", prompt)
        self.assertIn("hook for next chapter", prompt)
        self.assertIn("Ada Quill (detective)", prompt)
        self.assertIn("end scenes on a question", prompt)

    def test_first_chapter_and_previous_summary(self):
        self.assertIn("This is the first chapter.", build_prompt(chapter_request()))
        prompt = build_prompt(
            chapter_request(previous={"summary": "Ada met the widow."})
        )
        self.assertIn("Previous chapter summary: Ada met the widow.", prompt)
        self.assertNotIn("This is the first chapter.", prompt)

    def test_long_chapter_band_and_target_echo(self):
        prompt = build_prompt(chapter_request(phase="long-chapter", number=5))
        self.assertIn("LONG FORM Chapter 5", prompt)
        self.assertIn("2000-4000", prompt)
        self.assertIn("approximately 3000 words", prompt)
        self.assertIn("Maximum ONE em dash", prompt)

        prompt = build_prompt(
            chapter_request(phase="long-chapter", customization={"targetWords": 3500})
        )
        self.assertIn("approximately 3500 words", prompt)

    def test_long_chapter_default_target_is_shared(self):
        prompt = build_prompt(chapter_request(phase="long-chapter"))
        self.assertIn(
            f"approximately {DEFAULT_LONG_CHAPTER_TARGET_WORDS} words", prompt
        )

    def test_additional_instructions_are_appended(self):
        prompt = build_prompt(
            chapter_request(customization={"additionalInstructions": "Set it in winter."})
        )
        self.assertIn("Set it in winter.", prompt)


class PlanningPromptTest(TestCase):
    def test_premise_prompt_mandates_json_output(self):
        prompt = build_premise_prompt(
            GenreContext.model_validate(MYSTERY_GENRE), additional_inputs="Set in Lisbon"
        )
        self.assertIn("GENRE: Mystery", prompt)
        self.assertIn("fair-play clues, red herrings", prompt)
        self.assertIn("plant clues early", prompt)
        self.assertIn('"premises"', prompt)
        self.assertIn("centralConflict", prompt)
        self.assertIn("Set in Lisbon", prompt)
        self.assertNotIn("CHRISTIAN FICTION REQUIREMENTS", prompt)

    def test_faith_block_only_with_christian_specific(self):
        prompt = build_premise_prompt(GenreContext.model_validate(CHRISTIAN_GENRE))
        self.assertIn("CHRISTIAN FICTION REQUIREMENTS", prompt)

    def test_outline_chapter_count_and_structure(self):
        self.assertEqual(target_chapter_count(60000), 30)
        self.assertEqual(target_chapter_count(61000), 31)
        prompt = build_prompt(
            coerce_request(
                {
                    "phase": "outline",
                    "genreContext": MYSTERY_GENRE,
                    "payload": {
                        "premise": MYSTERY_PREMISE,
                        "characters": MYSTERY_CHARACTERS,
                        "wordCountTarget": 61000,
                    },
                }
            )
        )
        self.assertIn("Total chapters: 31", prompt)
        self.assertIn("Words per chapter: 1750-2250", prompt)
        self.assertIn("Ada Quill: detective - retired archivist", prompt)
        self.assertIn("threeActStructure", prompt)
        self.assertIn("Character arcs mapped to plot progression", prompt)

    def test_outline_word_count_from_customization(self):
        request = coerce_request(
            {
                "phase": "outline",
                "genreContext": MYSTERY_GENRE,
                "payload": {"premise": MYSTERY_PREMISE, "characters": []},
                "customization": {"wordCountTarget": 4000},
            }
        )
        self.assertIn("Total chapters: 2", build_prompt(request))

    def test_outline_without_word_count_fails_fast(self):
        request = coerce_request(
            {
                "phase": "outline",
                "genreContext": MYSTERY_GENRE,
                "payload": {"premise": MYSTERY_PREMISE, "characters": []},
            }
        )
        with self.assertRaises(ValidationError) as ctx:
            build_prompt(request)
        self.assertEqual(ctx.exception.field, "wordCountTarget")

    def test_characters_and_review_prompts(self):
        prompt = build_prompt(
            coerce_request(
                {
                    "phase": "characters",
                    "genreContext": MYSTERY_GENRE,
                    "payload": {"premise": MYSTERY_PREMISE, "outline": {"acts": 3}},
                }
            )
        )
        self.assertIn('"characters"', prompt)
        self.assertIn('"acts": 3', prompt)

        prompt = build_prompt(
            coerce_request(
                {
                    "phase": "review",
                    "genreContext": MYSTERY_GENRE,
                    "payload": {
                        "chapterText": "It was a dark night.",
                        "chapterNumber": 4,
                        "premise": MYSTERY_PREMISE,
                    },
                }
            )
        )
        self.assertIn("reviewing Chapter 4 of a Mystery novel", prompt)
        for heading in (
            "REPETITION ANALYSIS",
            "PUNCTUATION COMPLIANCE",
            "NATURAL LANGUAGE",
            "CHARACTER CONSISTENCY",
            "PLOT ADHERENCE",
            "GENRE COMPLIANCE",
        ):
            self.assertIn(heading, prompt)
        for key in ('"overall"', '"issues"', '"strengths"', '"recommendations"'):
            self.assertIn(key, prompt)


class RequestValidationTest(TestCase):
    def test_payload_phase_mismatch_is_rejected(self):
        request = coerce_request(
            {
                "phase": "chapter",
                "genreContext": MYSTERY_GENRE,
                "payload": {"phase": "premise", "additionalInputs": ""},
            }
        )
        with self.assertRaises(ValidationError) as ctx:
            build_prompt(request)
        self.assertEqual(ctx.exception.field, "payload")

    def test_missing_genre_is_rejected(self):
        request = coerce_request({"phase": "premise", "payload": {}})
        with self.assertRaises(ValidationError) as ctx:
            build_prompt(request)
        self.assertEqual(ctx.exception.field, "genreContext")

    def test_blank_required_text_is_rejected(self):
        request = coerce_request(
            {
                "phase": "review",
                "genreContext": MYSTERY_GENRE,
                "payload": {"chapterText": "   ", "chapterNumber": 1, "premise": "p"},
            }
        )
        with self.assertRaises(ValidationError) as ctx:
            build_prompt(request)
        self.assertEqual(ctx.exception.field, "chapterText")

    def test_schema_errors_become_validation_errors(self):
        with self.assertRaises(ValidationError) as ctx:
            coerce_request(
                {
                    "phase": "chapter",
                    "genreContext": MYSTERY_GENRE,
                    "payload": {"premise": MYSTERY_PREMISE},
                }
            )
        self.assertIn("chapterOutline", ctx.exception.field)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_inverted_word_count_range_is_rejected(self):
        with self.assertRaises(ValidationError):
            chapter_request(customization={"chapterWordCount": {"min": 3000, "max": 1000}})


class CoverPromptTest(TestCase):
    def test_bare_prompt_is_used_verbatim(self):
        payload = CoverPayload(prompt="  A lighthouse at dusk  ")
        self.assertEqual(build_cover_prompt(payload), "A lighthouse at dusk")

    def test_template_based_uses_genre_elements(self):
        payload = CoverPayload(
            approach="template-based",
            title="The Quiet Ledger",
            genreName="Mystery",
            templateName="Noir",
            templateDescription="High contrast.",
        )
        prompt = build_cover_prompt(payload)
        self.assertIn('"The Quiet Ledger", a Mystery novel.', prompt)
        self.assertIn("mysterious atmosphere", prompt)
        self.assertIn("Style: Noir. High contrast.", prompt)

        payload = payload.model_copy(update={"genre_name": "Space Opera"})
        self.assertIn("Follow genre conventions", build_cover_prompt(payload))

    def test_custom_prompt_is_framed(self):
        payload = CoverPayload(
            approach="custom-prompt",
            prompt="A red umbrella in the rain.",
            title="Rain",
            genreName="Romance",
        )
        self.assertEqual(
            build_cover_prompt(payload),
            'This is for a Romance novel titled "Rain". A red umbrella in the rain. '
            "Ensure professional book cover quality, clear typography space, "
            "marketable design.",
        )

    def test_extraction_truncates_premise_and_skips_unused(self):
        payload = CoverPayload(
            approach="automated-extraction",
            title="Rain",
            genreName="Mystery",
            premise="p" * 300,
            extractedElements=[
                {"description": "old key", "used": True},
                {"description": "crow", "used": False},
            ],
        )
        prompt = build_cover_prompt(payload)
        self.assertIn("Story premise: " + "p" * 200 + "...", prompt)
        self.assertNotIn("p" * 201, prompt)
        self.assertIn("Include these key elements: old key.", prompt)
        self.assertNotIn("crow", prompt)

    def test_template_based_requires_template(self):
        payload = CoverPayload(approach="template-based", title="Rain", genreName="Mystery")
        with self.assertRaises(ValidationError):
            build_cover_prompt(payload)
