"""
Content scorer and oracle client tests.
"""

import asyncio
import base64
import json
import random
import time

import httpx
import pytest

from roomcheck.config import Settings
from roomcheck.pipeline.scorer import (
    FALLBACK_RATIONALES,
    ContentScorer,
    NotSubject,
    ScoringPolicy,
    Valid,
    classify_not_subject,
    parse_score,
    parse_verdict,
)
from roomcheck.services.oracle import OracleClient, OracleError


def gemini_response(text: str, finish_reason: str = "STOP") -> dict:
    return {
        "candidates": [{
            "content": {"parts": [{"text": text}]},
            "finishReason": finish_reason,
        }]
    }


def make_scorer(
    handler, api_key: str = "test-key", fallback_enabled: bool = True, timeout: float = 45
) -> ContentScorer:
    settings = Settings(
        gemini_api_key=api_key, fallback_enabled=fallback_enabled, oracle_timeout_seconds=timeout
    )
    oracle = OracleClient(settings, transport=httpx.MockTransport(handler))
    policy = ScoringPolicy.from_settings(settings, rng=random.Random(7))
    return ContentScorer(oracle=oracle, policy=policy)


class TestParsing:
    def test_score_line(self):
        assert parse_verdict("Score: 8\nThe room is tidy.") == Valid(8)

    def test_korean_score_line(self):
        assert parse_verdict("점수: 7점\n정리가 잘 되어 있습니다.") == Valid(7)

    def test_score_is_clamped(self):
        assert parse_score("Score: 15") == 10
        assert parse_score("Score: -3") == 0

    def test_no_score(self):
        assert parse_verdict("The room looks fine.") is None

    def test_not_subject_beats_numeric_score(self):
        verdict = parse_verdict("Score: 9\nThis is not a room, it is a game screenshot.")
        assert isinstance(verdict, NotSubject)
        assert "Game screenshots" in verdict.reason

    def test_korean_not_subject(self):
        verdict = parse_verdict("점수: 0점\n검사불가: 화장실 사진 - 기숙사 방 사진이 아닙니다.")
        assert isinstance(verdict, NotSubject)
        assert "Bathroom" in verdict.reason

    def test_reason_classification_order(self):
        assert "Movie" in classify_not_subject("cannot evaluate: movie scene")
        assert "Hallway" in classify_not_subject("cannot evaluate: hallway")
        assert "Selfies" in classify_not_subject("cannot evaluate: selfie")
        assert "internet" in classify_not_subject("cannot evaluate: downloaded picture")
        assert "not a dormitory room" in classify_not_subject("cannot evaluate")


class TestInterpret:
    def setup_method(self):
        self.scorer = make_scorer(lambda request: httpx.Response(500))

    def test_valid_answer(self):
        result = self.scorer.interpret(gemini_response("Score: 8\nClean desk and made bed."))
        assert result.score == 8
        assert result.success
        assert not result.fallback
        assert result.rationale == "Clean desk and made bed."

    def test_not_subject_scores_zero(self):
        result = self.scorer.interpret(gemini_response("Score: 0\nCannot evaluate: outdoor photo"))
        assert result.score == 0
        assert result.not_subject
        assert result.success
        assert result.rationale.startswith("Cannot evaluate:")

    def test_truncated_answer_is_parsed(self):
        result = self.scorer.interpret(gemini_response("Score: 7\nThe bed is", "MAX_TOKENS"))
        assert result.score == 7
        assert result.rationale.endswith("(partial analysis)")
        assert not result.fallback

    def test_truncated_without_score_falls_back(self):
        result = self.scorer.interpret(gemini_response("The room", "MAX_TOKENS"))
        assert result.fallback
        assert 6 <= result.score <= 8

    @pytest.mark.parametrize("response", [
        {"error": {"message": "quota exceeded"}},
        {"promptFeedback": {"blockReason": "SAFETY"}},
        {"candidates": []},
        gemini_response("Score: 9", "SAFETY"),
        gemini_response("   "),
        gemini_response("Looks nice."),
    ])
    def test_unusable_answers_fall_back(self, response):
        result = self.scorer.interpret(response)
        assert result.fallback
        assert result.success
        assert 6 <= result.score <= 8
        assert result.rationale in FALLBACK_RATIONALES

    def test_fallback_disabled(self):
        scorer = make_scorer(lambda request: httpx.Response(500), fallback_enabled=False)
        result = scorer.interpret({"candidates": []})
        assert not result.success
        assert result.score == 0


class TestScore:
    async def test_single_photo_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.url.params["key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_response("Score: 9\nSpotless."))

        result = await make_scorer(handler).score(b"photo")
        assert result.score == 9

        parts = seen["body"]["contents"][0]["parts"]
        assert seen["key"] == "test-key"
        assert len(parts) == 2
        assert "out of 10" in parts[0]["text"]
        assert base64.b64decode(parts[1]["inline_data"]["data"]) == b"photo"
        assert seen["body"]["generationConfig"]["temperature"] == 0.1

    async def test_comparison_sends_reference_first(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_response("Score: 6\nSimilar."))

        await make_scorer(handler).score(b"photo", reference=b"reference")

        parts = seen["body"]["contents"][0]["parts"]
        assert len(parts) == 3
        assert "reference" in parts[0]["text"]
        assert base64.b64decode(parts[1]["inline_data"]["data"]) == b"reference"
        assert base64.b64decode(parts[2]["inline_data"]["data"]) == b"photo"

    async def test_transport_failure_uses_fallback_band(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await make_scorer(handler).score(b"photo")
        assert result.success
        assert result.fallback
        assert 6 <= result.score <= 8

    async def test_read_timeout_uses_fallback_band(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        result = await make_scorer(handler).score(b"photo")
        assert result.fallback
        assert 6 <= result.score <= 8

    async def test_slow_oracle_is_cut_off_at_timeout(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=gemini_response("Score: 9"))

        started = time.monotonic()
        result = await make_scorer(handler, timeout=0.2).score(b"photo")
        elapsed = time.monotonic() - started

        assert elapsed < 2
        assert result.success
        assert result.fallback
        assert 6 <= result.score <= 8

    async def test_slow_oracle_without_fallback_fails(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=gemini_response("Score: 9"))

        result = await make_scorer(handler, fallback_enabled=False, timeout=0.2).score(b"photo")
        assert not result.success

    async def test_non_200_without_fallback_fails(self):
        scorer = make_scorer(lambda request: httpx.Response(503), fallback_enabled=False)
        result = await scorer.score(b"photo")
        assert not result.success

    async def test_missing_api_key_skips_oracle(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=gemini_response("Score: 2"))

        result = await make_scorer(handler, api_key="").score(b"photo")
        assert calls == []
        assert result.fallback


class TestOracleClient:
    async def test_non_json_body(self):
        settings = Settings(gemini_api_key="k")
        oracle = OracleClient(settings, transport=httpx.MockTransport(
            lambda request: httpx.Response(200, content=b"<html>")
        ))
        with pytest.raises(OracleError):
            await oracle.generate("prompt", [b"x"])

    async def test_check_connection(self):
        settings = Settings(gemini_api_key="k")
        ok = OracleClient(settings, transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json=gemini_response("hi"))
        ))
        down = OracleClient(settings, transport=httpx.MockTransport(
            lambda request: httpx.Response(401, json={"error": {"message": "bad key"}})
        ))
        assert await ok.check_connection()
        assert not await down.check_connection()

    def test_diagnostics_hide_key(self):
        diagnostics = OracleClient(Settings(gemini_api_key="secret")).diagnostics()
        assert diagnostics["has_api_key"] is True
        assert "secret" not in json.dumps(diagnostics)
