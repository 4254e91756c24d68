import json
import unittest
from unittest.mock import MagicMock

from backend.analysis import (
    ANALYSIS_CACHE_KEY,
    NO_ACTIVITY_RESULT,
    NOT_CONFIGURED_RESULT,
    UNAVAILABLE_RESULT,
    AnalysisCache,
    GeminiAnalysisGenerator,
)
from backend.cache import InMemoryCache
from backend.errors import GenerationError
from backend.schemas import AnalysisResult
from backend.tests.fakes import (
    BrokenCache,
    FakeClock,
    FakeGenerator,
    make_feature,
    make_result,
)
from shared.types import EventCollection, RiskLevel


def _events(*features):
    return EventCollection.from_features(list(features))


class AnalysisCacheTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.cache = InMemoryCache(clock=self.clock)
        self.generator = FakeGenerator()
        self.analysis = AnalysisCache(self.cache, self.generator)

    def test_empty_collection_returns_fixed_result_without_generation(self):
        for _ in range(3):
            result = self.analysis.analyze(EventCollection())
            self.assertEqual(result, NO_ACTIVITY_RESULT)
            self.assertEqual(result.riskLevel, RiskLevel.LOW)
        self.assertEqual(self.generator.calls, 0)
        self.assertEqual(self.cache.items, {})

    def test_unchanged_freshest_event_generates_once(self):
        events = _events(make_feature("us1", 100), make_feature("us0", 50))
        first = self.analysis.analyze(events)
        second = self.analysis.analyze(events)

        self.assertEqual(self.generator.calls, 1)
        self.assertEqual(first, second)

    def test_revised_freshest_event_regenerates(self):
        self.analysis.analyze(_events(make_feature("us1", 100)))
        self.generator.result = make_result("Revised magnitude near Sylhet.")
        result = self.analysis.analyze(_events(make_feature("us1", 200)))

        self.assertEqual(self.generator.calls, 2)
        self.assertEqual(result.summary, "Revised magnitude near Sylhet.")

    def test_new_freshest_event_regenerates(self):
        self.analysis.analyze(_events(make_feature("us1", 100)))
        self.analysis.analyze(_events(make_feature("us2", 100), make_feature("us1", 100)))
        self.assertEqual(self.generator.calls, 2)

    def test_success_is_cached_with_signature_and_one_hour_ttl(self):
        self.analysis.analyze(_events(make_feature("us1", 100)))

        entry = json.loads(self.cache.get(ANALYSIS_CACHE_KEY))
        self.assertEqual(entry["signature"], "us1-100")
        self.assertEqual(entry["analysis"]["riskLevel"], "Moderate")

        self.clock.advance(3599)
        self.assertIsNotNone(self.cache.get(ANALYSIS_CACHE_KEY))
        self.clock.advance(1)
        self.assertIsNone(self.cache.get(ANALYSIS_CACHE_KEY))

    def test_prompt_projects_at_most_fifteen_events(self):
        features = [
            make_feature(f"us{i}", 100, time=1700000000000 - i * 60000)
            for i in range(20)
        ]
        self.analysis.analyze(_events(*features))

        prompt = self.generator.prompts[0]
        self.assertEqual(prompt.count('"mag"'), 15)
        self.assertIn('"time": "2023-11-14T22:13:20.000Z"', prompt)
        self.assertIn('"depth": 35.0', prompt)
        self.assertNotIn("eventpage", prompt)
        self.assertNotIn("magType", prompt)

    def test_failure_serves_stale_result_for_any_signature(self):
        self.analysis.analyze(_events(make_feature("us1", 100)))
        previous = self.generator.result
        self.generator.error = GenerationError("quota exceeded")

        result = self.analysis.analyze(_events(make_feature("us9", 900)))

        self.assertEqual(self.generator.calls, 2)
        self.assertEqual(result, previous)

    def test_failure_without_cache_returns_unavailable(self):
        self.generator.error = GenerationError("timeout")
        result = self.analysis.analyze(_events(make_feature("us1", 100)))
        self.assertEqual(result, UNAVAILABLE_RESULT)
        self.assertEqual(result.riskLevel, RiskLevel.LOW)

    def test_failure_does_not_overwrite_cached_entry(self):
        self.analysis.analyze(_events(make_feature("us1", 100)))
        self.generator.error = GenerationError("bad payload")
        self.analysis.analyze(_events(make_feature("us2", 200)))

        entry = json.loads(self.cache.get(ANALYSIS_CACHE_KEY))
        self.assertEqual(entry["signature"], "us1-100")

    def test_cache_outage_still_generates(self):
        analysis = AnalysisCache(BrokenCache(), self.generator)
        result = analysis.analyze(_events(make_feature("us1", 100)))
        self.assertEqual(result, self.generator.result)

    def test_cache_outage_and_generation_failure_returns_unavailable(self):
        self.generator.error = GenerationError("down")
        analysis = AnalysisCache(BrokenCache(), self.generator)
        self.assertEqual(
            analysis.analyze(_events(make_feature("us1", 100))), UNAVAILABLE_RESULT
        )

    def test_event_without_time_degrades_to_unavailable(self):
        feature = make_feature("us1", 100)
        feature["properties"]["time"] = None
        self.assertEqual(self.analysis.analyze(_events(feature)), UNAVAILABLE_RESULT)

    def test_unreadable_cache_entry_is_ignored(self):
        self.cache.set(ANALYSIS_CACHE_KEY, b'{"signature": "us1-100"}', 3600)
        result = self.analysis.analyze(_events(make_feature("us1", 100)))
        self.assertEqual(self.generator.calls, 1)
        self.assertEqual(result, self.generator.result)

    def test_missing_generator_returns_not_configured(self):
        analysis = AnalysisCache(self.cache, None)
        result = analysis.analyze(_events(make_feature("us1", 100)))
        self.assertEqual(result, NOT_CONFIGURED_RESULT)
        self.assertEqual(self.cache.items, {})


class GeminiAnalysisGeneratorTests(unittest.TestCase):
    def _client(self, parsed=None, text=None, error=None):
        client = MagicMock()
        if error is not None:
            client.models.generate_content.side_effect = error
        else:
            response = MagicMock()
            response.parsed = parsed
            response.text = text
            client.models.generate_content.return_value = response
        return client

    def test_returns_parsed_result_with_schema_config(self):
        client = self._client(parsed=make_result())
        generator = GeminiAnalysisGenerator("key", model="gemini-2.0-flash", client=client)

        result = generator.generate("prompt")

        self.assertEqual(result, make_result())
        _, kwargs = client.models.generate_content.call_args
        self.assertEqual(kwargs["model"], "gemini-2.0-flash")
        self.assertEqual(kwargs["config"]["response_mime_type"], "application/json")
        self.assertIs(kwargs["config"]["response_schema"], AnalysisResult)

    def test_falls_back_to_text_when_parsed_missing(self):
        text = make_result().model_dump_json()
        generator = GeminiAnalysisGenerator("key", client=self._client(text=text))
        self.assertEqual(generator.generate("prompt"), make_result())

    def test_empty_response_is_generation_error(self):
        generator = GeminiAnalysisGenerator("key", client=self._client(text=""))
        with self.assertRaises(GenerationError):
            generator.generate("prompt")

    def test_non_conforming_text_is_generation_error(self):
        client = self._client(text='{"summary": "partial"}')
        with self.assertRaises(GenerationError):
            GeminiAnalysisGenerator("key", client=client).generate("prompt")

    def test_transport_error_is_generation_error(self):
        client = self._client(error=ConnectionError("reset by peer"))
        with self.assertRaises(GenerationError):
            GeminiAnalysisGenerator("key", client=client).generate("prompt")


if __name__ == "__main__":
    unittest.main()
