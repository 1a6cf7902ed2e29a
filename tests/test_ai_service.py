"""
Unit tests for the Gemini client: request building, response parsing and
the retry policy.
"""
import asyncio
import base64

import aiohttp
import pytest

from receipt_extraction.ai_service import GeminiClient, get_extraction_prompt, parse_response
from receipt_extraction.ai_service.response_parser import get_response_text
from receipt_extraction.utils.exceptions import AIServiceError, AIServiceNotConfiguredError

from conftest import make_source


def _response(text):
    return {'candidates': [{'content': {'parts': [{'text': text}]}}]}


MODEL_TEXT = (
    "كود: 4521\n"
    "```json\n"
    '{"companyName": "النور", "code": "4521", "senderName": "محمد علي", '
    '"phoneNumber": "07701234567", "province": "بغداد", "price": "25000"}\n'
    "```"
)


class ScriptedClient(GeminiClient):
    """GeminiClient whose HTTP call replays a script of outcomes."""

    def __init__(self, outcomes, **kwargs):
        kwargs.setdefault('api_key', 'test-key')
        kwargs.setdefault('retry_delay', 0)
        super().__init__(**kwargs)
        self.outcomes = list(outcomes)
        self.posts = 0

    async def _post(self, body):
        self.posts += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


# =====================================================================
# Request building
# =====================================================================
class TestBuildRequest:
    def test_inline_image_and_prompt(self):
        source = make_source("scan.jpg")
        body = GeminiClient(api_key="k").build_request(source)

        prompt, image = body['contents'][0]['parts']
        assert prompt['text'] == get_extraction_prompt(True)
        assert image['inline_data']['mime_type'] == "image/jpeg"
        assert base64.b64decode(image['inline_data']['data']) == source.data
        assert body['generationConfig']['temperature'] == 0.1

    def test_basic_prompt(self):
        body = GeminiClient(api_key="k", enhanced_prompt=False).build_request(make_source())
        assert body['contents'][0]['parts'][0]['text'] == get_extraction_prompt(False)

    def test_prompts_ask_for_json_keys(self):
        for enhanced in (True, False):
            prompt = get_extraction_prompt(enhanced)
            for key in ("companyName", "senderName", "phoneNumber", "province", "price"):
                assert key in prompt

    def test_url(self):
        client = GeminiClient(api_key="k", model="m", endpoint="https://host/models/")
        assert client.url == "https://host/models/m:generateContent"

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "from-env")
        assert GeminiClient().api_key == "from-env"


# =====================================================================
# Response parsing
# =====================================================================
class TestResponseParser:
    def test_text_and_fields(self):
        text, fields = parse_response(_response(MODEL_TEXT))
        assert text == MODEL_TEXT
        assert fields['sender_name'] == "محمد علي"
        assert fields['company_name'] == "النور"

    def test_joins_text_parts(self):
        data = {'candidates': [{'content': {'parts': [{'text': 'a'}, {'text': 'b'}]}}]}
        assert get_response_text(data) == "a\nb"

    def test_blocked(self):
        with pytest.raises(AIServiceError):
            get_response_text({'promptFeedback': {'blockReason': 'SAFETY'}})

    def test_no_candidates(self):
        with pytest.raises(AIServiceError):
            get_response_text({'candidates': []})

    def test_empty_text(self):
        with pytest.raises(AIServiceError):
            get_response_text(_response("   "))

    def test_no_json_block(self):
        assert parse_response(_response("لا يوجد")) == ("لا يوجد", {})


# =====================================================================
# Extraction and retries
# =====================================================================
class TestExtractStructured:
    def test_success(self):
        client = ScriptedClient([_response(MODEL_TEXT)])
        result = asyncio.run(client.extract_structured(make_source()))

        assert result.confidence == 95
        assert result.fields['code'] == "4521"
        assert result.has_fields
        assert client.posts == 1

    def test_not_configured(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        client = GeminiClient()
        with pytest.raises(AIServiceNotConfiguredError):
            asyncio.run(client.extract_structured(make_source()))

    def test_retries_server_errors(self):
        client = ScriptedClient(
            [AIServiceError("busy", status=503), _response(MODEL_TEXT)],
            max_retries=1
        )
        result = asyncio.run(client.extract_structured(make_source()))
        assert result.fields['code'] == "4521"
        assert client.posts == 2

    def test_retries_network_errors_then_gives_up(self):
        client = ScriptedClient(
            [aiohttp.ClientError("reset"), asyncio.TimeoutError(), aiohttp.ClientError("reset")],
            max_retries=2
        )
        with pytest.raises(AIServiceError):
            asyncio.run(client.extract_structured(make_source()))
        assert client.posts == 3

    def test_client_errors_are_not_retried(self):
        client = ScriptedClient([AIServiceError("bad key", status=403)], max_retries=3)
        with pytest.raises(AIServiceError) as exc:
            asyncio.run(client.extract_structured(make_source()))
        assert exc.value.details['status'] == 403
        assert client.posts == 1

    def test_blocked_response_is_not_retried(self):
        client = ScriptedClient(
            [{'promptFeedback': {'blockReason': 'SAFETY'}}],
            max_retries=3
        )
        with pytest.raises(AIServiceError):
            asyncio.run(client.extract_structured(make_source()))
        assert client.posts == 1

    def test_close_without_session(self):
        asyncio.run(GeminiClient(api_key="k").close())
