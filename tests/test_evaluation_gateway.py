"""
EvaluationGateway / GeminiService 測試

Gemini client 全部以 MagicMock 取代，不會真的呼叫 API。
"""

import time
import unittest
from unittest.mock import AsyncMock, MagicMock

import httpx
from google.genai import errors as genai_errors

from soup_story.config import Settings
from soup_story.errors import ConfigurationError, NetworkError, ParseError, UpstreamError
from soup_story.models.evaluation import Classification, ModelVerdict
from soup_story.models.puzzle import Puzzle
from soup_story.models.session import StorySession
from soup_story.services.evaluation_gateway import EvaluationGateway
from soup_story.services.gemini_service import GeminiService


def _client_returning(text):
    client = MagicMock()
    client.models.generate_content.return_value = MagicMock(text=text)
    return client


class TestClassification(unittest.TestCase):

    def test_normalize(self):
        cases = {
            "yes": Classification.YES,
            " YES. ": Classification.YES,
            "是": Classification.YES,
            "no": Classification.NO,
            "不对": Classification.NO,
            "not_sure": Classification.NOT_SURE,
            "Not sure": Classification.NOT_SURE,
            "maybe": Classification.NOT_SURE,
            "": Classification.NOT_SURE,
            None: Classification.NOT_SURE,
        }
        for raw, expected in cases.items():
            self.assertEqual(Classification.normalize(raw), expected, raw)


class TestGeminiService(unittest.IsolatedAsyncioTestCase):

    async def test_generate_json(self):
        client = _client_returning('```json\n{"result": "yes", "explanation": "ok"}\n```')
        service = GeminiService(client=client, model_name="test-model")

        verdict = await service.generate_json("prompt", ModelVerdict, timeout=5)

        self.assertEqual(verdict.result, "yes")
        kwargs = client.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "test-model")
        self.assertEqual(kwargs["config"].response_mime_type, "application/json")

    async def test_malformed_json(self):
        service = GeminiService(client=_client_returning("I think yes"))
        with self.assertRaises(ParseError):
            await service.generate_json("prompt", ModelVerdict, timeout=5)

    async def test_empty_response(self):
        service = GeminiService(client=_client_returning(None))
        with self.assertRaises(ParseError):
            await service.generate_text("prompt", timeout=5)

    async def test_timeout(self):
        client = MagicMock()
        client.models.generate_content.side_effect = lambda **_: time.sleep(0.3)
        service = GeminiService(client=client)

        with self.assertRaises(NetworkError):
            await service.generate_text("prompt", timeout=0.05)

    async def test_transport_error(self):
        client = MagicMock()
        client.models.generate_content.side_effect = httpx.ConnectError("refused")
        service = GeminiService(client=client)

        with self.assertRaises(NetworkError):
            await service.generate_text("prompt", timeout=5)

    async def test_api_error(self):
        client = MagicMock()
        client.models.generate_content.side_effect = genai_errors.ServerError(
            503, {"error": {"code": 503, "message": "overloaded", "status": "UNAVAILABLE"}}
        )
        service = GeminiService(client=client)

        with self.assertRaises(UpstreamError) as ctx:
            await service.generate_text("prompt", timeout=5)
        self.assertEqual(ctx.exception.upstream_status, 503)

    async def test_missing_client(self):
        service = GeminiService(client=MagicMock())
        service.client = None
        with self.assertRaises(ConfigurationError):
            await service.generate_text("prompt", timeout=5)


class TestEvaluationGateway(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.gemini = MagicMock()
        self.gemini.generate_json = AsyncMock()
        self.settings = Settings(gemini_audio_model_name="audio-model", transcribe_timeout_seconds=45)
        self.gateway = EvaluationGateway(self.gemini, self.settings)
        self.puzzle = Puzzle(
            id="silent_concert",
            title="Concert",
            content="A pianist finishes and nobody claps.",
            full_answer="The audience is deaf.",
            parts=["audience is deaf", "they sign applause"],
        )
        self.session = StorySession(puzzle_id="silent_concert", user_id="u1", confirmed_ideas=["deaf"])

    async def test_evaluate_text(self):
        self.gemini.generate_json.return_value = ModelVerdict(result="YES", explanation="matches")

        evaluation = await self.gateway.evaluate(
            "silent_concert", self.puzzle.content, self.puzzle.full_answer, "Are they deaf?", "en"
        )

        self.assertEqual(evaluation.classification, Classification.YES)
        self.assertEqual(evaluation.explanation, "matches")
        prompt = self.gemini.generate_json.call_args[0][0]
        self.assertIn("The audience is deaf.", prompt)
        self.assertIn("Are they deaf?", prompt)

    async def test_unknown_label_is_not_sure(self):
        self.gemini.generate_json.return_value = ModelVerdict(result="perhaps")
        evaluation = await self.gateway.evaluate("p", "prompt", "key", "answer")
        self.assertEqual(evaluation.classification, Classification.NOT_SURE)

    async def test_transcribe_and_evaluate(self):
        self.gemini.generate_json.return_value = ModelVerdict(
            result="yes", completion=1.7, transcription="  they sign applause  "
        )

        result = await self.gateway.transcribe_and_evaluate(
            self.session, self.puzzle, b"\x00\x01audio", "en", mime_type="audio/webm"
        )

        self.assertEqual(result.evaluation.classification, Classification.YES)
        self.assertEqual(result.completion, 1.0)
        self.assertEqual(result.transcription, "they sign applause")

        args, kwargs = self.gemini.generate_json.call_args
        contents = args[0]
        self.assertEqual(contents[0].inline_data.mime_type, "audio/webm")
        self.assertEqual(contents[0].inline_data.data, b"\x00\x01audio")
        self.assertIn("- deaf", contents[1])
        self.assertEqual(kwargs["model"], "audio-model")
        self.assertEqual(kwargs["timeout"], 45)

    async def test_missing_completion_is_zero(self):
        self.gemini.generate_json.return_value = ModelVerdict(result="no")
        result = await self.gateway.evaluate_turn(self.session, self.puzzle, "Is it raining?", "en")
        self.assertEqual(result.completion, 0.0)
        self.assertEqual(result.transcription, "Is it raining?")

    async def test_errors_propagate(self):
        self.gemini.generate_json.side_effect = NetworkError("timeout")
        with self.assertRaises(NetworkError):
            await self.gateway.evaluate_turn(self.session, self.puzzle, "text", "en")


if __name__ == "__main__":
    unittest.main()
