# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import asyncio
import json
from unittest import TestCase

from generation_fakes import (
    MYSTERY_CHARACTERS,
    MYSTERY_GENRE,
    MYSTERY_PREMISE,
    PREMISE_RESPONSE,
    REVIEW_RESPONSE,
    THREE_ACT_OUTLINE,
    FakeImageProvider,
    FakeTextProvider,
    make_orchestrator,
    run_async,
)
from novelsmith.services.exceptions import (
    GenerationError,
    ParseError,
    ProviderError,
    ValidationError,
)
from novelsmith.services.llm.llm_logging import llm_logs

CHAPTER_TEXT = (
    "Ada opened the ledger. The ink was still wet.\n\n"
    "Someone had been here before her."
)

CHAPTER_OUTLINE = {
    "number": 1,
    "title": "The Call",
    "summary": "Ada gets the case.",
    "objectives": ["introduce Ada", "establish the disappearance"],
}


class ChapterGenerationTest(TestCase):
    def test_mystery_chapter_end_to_end(self):
        provider = FakeTextProvider([CHAPTER_TEXT])
        orchestrator = make_orchestrator(provider)

        result = run_async(
            orchestrator.generate_chapter(
                CHAPTER_OUTLINE, MYSTERY_GENRE, MYSTERY_PREMISE, MYSTERY_CHARACTERS
            )
        )

        self.assertEqual(result.content, CHAPTER_TEXT)
        self.assertEqual(result.phase.value, "chapter")
        self.assertEqual(result.metadata.provider_id, "fake")
        self.assertEqual(result.metadata.tokens_used, 42)
        self.assertGreaterEqual(result.metadata.generation_time_ms, 0)
        self.assertEqual(result.analysis.statistics.word_count, len(CHAPTER_TEXT.split()))
        self.assertIn("Chapter 1", result.metadata.prompt_echo)

        invocation = provider.calls[0]
        self.assertEqual(invocation.max_tokens, 8000)
        self.assertEqual(invocation.temperature, 0.7)
        self.assertIn("Ada Quill (detective)", invocation.prompt)
        self.assertIn("1750-2250", invocation.prompt)

        event = llm_logs[-1]
        self.assertEqual(event["kind"], "generation")
        self.assertEqual(event["status"], "ok")
        self.assertEqual(event["phase"], "chapter")
        self.assertEqual(event["tokens_used"], 42)

    def test_chapter_content_is_returned_verbatim(self):
        mocked = 'Here is your chapter:\n{"scene": 1, "text": "Ada waited."}\nEnjoy.'
        orchestrator = make_orchestrator(FakeTextProvider([mocked]))
        result = run_async(
            orchestrator.generate_chapter(
                {"number": 3, "title": "Ledger"},
                {"name": "Mystery", "description": "Whodunit"},
                "A detective discovers that the victim staged her own disappearance.",
            )
        )
        self.assertEqual(result.content, mocked)
        self.assertGreaterEqual(result.metadata.generation_time_ms, 0)

    def test_long_chapter_sizes_token_budget(self):
        provider = FakeTextProvider([CHAPTER_TEXT])
        orchestrator = make_orchestrator(provider)

        result = run_async(
            orchestrator.generate_long_chapter(
                CHAPTER_OUTLINE, MYSTERY_GENRE, MYSTERY_PREMISE, MYSTERY_CHARACTERS
            )
        )

        self.assertEqual(provider.calls[0].max_tokens, 4990)
        self.assertIn("approximately 3000 words", provider.calls[0].prompt)
        self.assertEqual(result.metadata.target_words, 3000)
        self.assertEqual(result.content, CHAPTER_TEXT)

    def test_response_uses_camel_case(self):
        orchestrator = make_orchestrator(FakeTextProvider([CHAPTER_TEXT]))
        response = run_async(
            orchestrator.generate_chapter(CHAPTER_OUTLINE, MYSTERY_GENRE, MYSTERY_PREMISE)
        ).to_response()
        self.assertEqual(response["metadata"]["providerId"], "fake")
        self.assertIn("generationTimeMs", response["metadata"])
        self.assertIn("wordCount", response["analysis"]["statistics"])

    def test_concurrent_calls_share_one_orchestrator(self):
        provider = FakeTextProvider([CHAPTER_TEXT])
        orchestrator = make_orchestrator(provider)

        async def both():
            return await asyncio.gather(
                orchestrator.generate_chapter(
                    CHAPTER_OUTLINE, MYSTERY_GENRE, MYSTERY_PREMISE
                ),
                orchestrator.generate_chapter(
                    {**CHAPTER_OUTLINE, "number": 2}, MYSTERY_GENRE, MYSTERY_PREMISE
                ),
            )

        first, second = run_async(both())
        self.assertIn("Chapter 1", first.metadata.prompt_echo)
        self.assertIn("Chapter 2", second.metadata.prompt_echo)


class StructuredPhaseTest(TestCase):
    def test_premise_is_parsed(self):
        orchestrator = make_orchestrator(FakeTextProvider([PREMISE_RESPONSE]))
        result = run_async(orchestrator.generate_premise(MYSTERY_GENRE))
        self.assertEqual(result.content["premises"][0]["title"], "The Quiet Ledger")
        self.assertIsNone(result.analysis)
        self.assertIsNone(result.metadata.prompt_echo)

    def test_outline_uses_word_count_target(self):
        provider = FakeTextProvider([json.dumps(THREE_ACT_OUTLINE)])
        orchestrator = make_orchestrator(provider)
        result = run_async(
            orchestrator.generate_outline(
                MYSTERY_PREMISE,
                MYSTERY_GENRE,
                MYSTERY_CHARACTERS,
                word_count_target=60000,
            )
        )
        self.assertIn("threeActStructure", result.content)
        self.assertIn("Total chapters: 30", provider.calls[0].prompt)
        self.assertEqual(provider.calls[0].max_tokens, 4000)

    def test_characters_are_parsed(self):
        provider = FakeTextProvider(['{"characters": [{"name": "Ada"}]}'])
        orchestrator = make_orchestrator(provider)
        result = run_async(
            orchestrator.generate_characters(
                MYSTERY_PREMISE, MYSTERY_GENRE, THREE_ACT_OUTLINE
            )
        )
        self.assertEqual(result.content["characters"][0]["name"], "Ada")

    def test_review_runs_at_low_temperature(self):
        provider = FakeTextProvider([REVIEW_RESPONSE])
        orchestrator = make_orchestrator(provider)
        result = run_async(
            orchestrator.review_chapter(CHAPTER_TEXT, 1, MYSTERY_GENRE, MYSTERY_PREMISE)
        )
        self.assertEqual(provider.calls[0].temperature, 0.3)
        self.assertEqual(result.content["scores"]["overall"], 89)

        run_async(
            orchestrator.review_chapter(
                CHAPTER_TEXT,
                1,
                MYSTERY_GENRE,
                MYSTERY_PREMISE,
                customization={"temperature": 0.5},
            )
        )
        self.assertEqual(provider.calls[1].temperature, 0.5)

    def test_unparseable_answer_fails_the_phase(self):
        orchestrator = make_orchestrator(FakeTextProvider(["I cannot do that."]))
        with self.assertRaises(GenerationError) as ctx:
            run_async(orchestrator.generate_premise(MYSTERY_GENRE))

        self.assertEqual(ctx.exception.phase, "premise")
        self.assertEqual(ctx.exception.status_code, 502)
        self.assertIsInstance(ctx.exception.cause, ParseError)
        self.assertEqual(ctx.exception.to_payload()["phase"], "premise")

        event = llm_logs[-1]
        self.assertEqual(event["status"], "error")
        self.assertEqual(event["phase"], "premise")
        self.assertEqual(event["provider"], "fake")
        self.assertGreaterEqual(event["generation_time_ms"], 0)

    def test_failure_carries_generation_time(self):
        orchestrator = make_orchestrator(FakeTextProvider(["I cannot do that."]))
        with self.assertRaises(GenerationError) as ctx:
            run_async(orchestrator.generate_premise(MYSTERY_GENRE))

        elapsed = ctx.exception.generation_time_ms
        self.assertIsInstance(elapsed, int)
        self.assertGreaterEqual(elapsed, 0)
        self.assertEqual(ctx.exception.to_payload()["generationTimeMs"], elapsed)
        self.assertEqual(llm_logs[-1]["generation_time_ms"], elapsed)

    def test_payload_omits_unknown_generation_time(self):
        error = GenerationError("premise", ValidationError("bad", field="genreContext"))
        self.assertIsNone(error.generation_time_ms)
        self.assertNotIn("generationTimeMs", error.to_payload())


class FailureTest(TestCase):
    def test_provider_failure_is_wrapped(self):
        provider = FakeTextProvider(failing_models={"gpt-4-turbo-preview"})
        orchestrator = make_orchestrator(provider)
        with self.assertRaises(GenerationError) as ctx:
            run_async(
                orchestrator.generate_chapter(
                    CHAPTER_OUTLINE, MYSTERY_GENRE, MYSTERY_PREMISE
                )
            )
        self.assertIsInstance(ctx.exception.cause, ProviderError)
        self.assertEqual(ctx.exception.status_code, 502)

    def test_invalid_request_never_reaches_provider(self):
        provider = FakeTextProvider()
        orchestrator = make_orchestrator(provider)
        with self.assertRaises(GenerationError) as ctx:
            run_async(
                orchestrator.review_chapter("", 1, MYSTERY_GENRE, MYSTERY_PREMISE)
            )
        self.assertIsInstance(ctx.exception.cause, ValidationError)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(provider.calls, [])

    def test_unknown_phase_is_rejected(self):
        orchestrator = make_orchestrator()
        with self.assertRaises(GenerationError) as ctx:
            run_async(orchestrator.run({"phase": "epilogue", "payload": {}}))
        self.assertEqual(ctx.exception.phase, "epilogue")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_unknown_provider_is_rejected(self):
        orchestrator = make_orchestrator()
        with self.assertRaises(GenerationError) as ctx:
            run_async(orchestrator.generate_text_with_provider("Hi", provider_id="nope"))
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.to_payload()["field"], "providerId")


class CoverAndRawTextTest(TestCase):
    def test_bare_prompt_cover(self):
        images = FakeImageProvider()
        orchestrator = make_orchestrator(image_provider=images)
        result = run_async(orchestrator.generate_cover_image("A lighthouse at dusk"))

        self.assertEqual(result.content["imageUrl"], "https://img.example/cover.png")
        self.assertEqual(result.content["revisedPrompt"], "revised: A lighthouse at dusk")
        self.assertIsNone(result.content["approach"])
        self.assertEqual(images.calls[0].model, "dall-e-3")
        self.assertEqual(result.metadata.prompt_echo, "A lighthouse at dusk")
        self.assertEqual(result.metadata.tokens_used, 0)

    def test_template_cover_with_settings(self):
        images = FakeImageProvider()
        orchestrator = make_orchestrator(image_provider=images)
        result = run_async(
            orchestrator.generate_cover_image(
                {
                    "approach": "template-based",
                    "title": "The Quiet Ledger",
                    "genreName": "Mystery",
                    "templateName": "Noir",
                    "settings": {"width": 600, "height": 900, "count": 2},
                }
            )
        )
        self.assertEqual(result.content["approach"], "template-based")
        invocation = images.calls[0]
        self.assertEqual((invocation.width, invocation.height, invocation.count), (600, 900, 2))
        self.assertIn("Style: Noir.", invocation.prompt)

    def test_cover_without_prompt_is_rejected(self):
        images = FakeImageProvider()
        orchestrator = make_orchestrator(image_provider=images)
        with self.assertRaises(GenerationError):
            run_async(orchestrator.generate_cover_image({"prompt": "  "}))
        self.assertEqual(images.calls, [])

    def test_raw_text_passes_system_prompt(self):
        provider = FakeTextProvider(["Short answer."])
        orchestrator = make_orchestrator(provider)
        result = run_async(
            orchestrator.generate_text_with_provider(
                "Describe rain.", system_prompt="Be terse.", temperature=0.2
            )
        )
        self.assertEqual(result.content, "Short answer.")
        invocation = provider.calls[0]
        self.assertEqual(invocation.prompt, "Describe rain.")
        self.assertEqual(invocation.system_prompt, "Be terse.")
        self.assertEqual(invocation.max_tokens, 2000)
        self.assertEqual(invocation.temperature, 0.2)
        self.assertIsNone(result.analysis)

    def test_available_providers(self):
        described = make_orchestrator().available_providers()
        self.assertIn("fake-text", described["fake"]["text"])
        self.assertIn("fake-image", described["fake"]["image"])
