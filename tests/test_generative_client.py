import base64
import sys
from pathlib import Path
from types import SimpleNamespace

import openai
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from studio.ai.client import GenerativeClient, QualityTier
from studio.ai.errors import AIBackendError, AIConfigurationError, AIRequestError


class FakeCompletions:
    def __init__(self, content="Generated text", error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeResponses:
    def __init__(self, text="Reasoned answer", annotations=()):
        self.text = text
        self.annotations = list(annotations)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        part = SimpleNamespace(type="output_text", text=self.text, annotations=self.annotations)
        return SimpleNamespace(
            output_text=self.text,
            output=[SimpleNamespace(type="message", content=[part])],
        )


class FakeOpenAI:
    def __init__(self, completions=None, responses=None):
        self.chat = SimpleNamespace(completions=completions or FakeCompletions())
        self.responses = responses or FakeResponses()
        self.image_calls = []
        self.speech_calls = []
        self.images = SimpleNamespace(generate=self._generate_image)
        self.audio = SimpleNamespace(speech=SimpleNamespace(create=self._speech))

    def _generate_image(self, **kwargs):
        self.image_calls.append(kwargs)
        encoded = base64.b64encode(b"PNGDATA").decode("ascii")
        return SimpleNamespace(data=[SimpleNamespace(b64_json=encoded)])

    def _speech(self, **kwargs):
        self.speech_calls.append(kwargs)
        return SimpleNamespace(read=lambda: b"RIFFwav")


def _client(fake=None, **kwargs):
    return GenerativeClient("sk-test-1234", client=fake or FakeOpenAI(), **kwargs)


def test_missing_key_fails_before_any_request():
    client = GenerativeClient("")

    assert not client.configured
    for call in (
        lambda: client.generate_text("hi"),
        lambda: client.generate_with_reasoning("hi"),
        lambda: client.generate_with_retrieval("hi"),
        lambda: client.edit_text("hi", "improve"),
        lambda: client.generate_image("a cat"),
        lambda: client.synthesize_speech("hello"),
        lambda: client.analyze_image("what", b"img", "image/png"),
    ):
        with pytest.raises(AIConfigurationError, match="API key not configured."):
            call()


def test_generate_text_routes_by_quality_tier():
    fake = FakeOpenAI()
    client = _client(fake, text_model="fast-model", quality_model="quality-model")

    assert client.generate_text("Write a line") == "Generated text"
    client.generate_text("Write a line", QualityTier.QUALITY)

    models = [call["model"] for call in fake.chat.completions.calls]
    assert models == ["fast-model", "quality-model"]


def test_unknown_tier_is_a_request_error():
    with pytest.raises(AIRequestError):
        _client().generate_text("hi", "turbo")


def test_reasoning_models_use_the_responses_api():
    fake = FakeOpenAI()
    client = _client(fake, text_model="o4-mini")

    assert client.generate_text("Plot twist?") == "Reasoned answer"
    assert fake.responses.calls[0]["max_output_tokens"] == 1024
    assert fake.chat.completions.calls == []


def test_generate_with_reasoning_asks_for_high_effort():
    fake = FakeOpenAI()

    _client(fake).generate_with_reasoning("Untangle this timeline")

    assert fake.responses.calls[0]["reasoning"] == {"effort": "high"}


def test_retrieval_returns_deduplicated_sources():
    annotations = [
        SimpleNamespace(type="url_citation", url="https://a.example", title="A"),
        SimpleNamespace(type="url_citation", url="https://a.example", title="A again"),
        SimpleNamespace(type="url_citation", url="https://b.example", title=None),
        SimpleNamespace(type="file_citation", url="ignored", title="ignored"),
    ]
    fake = FakeOpenAI(responses=FakeResponses("Found it", annotations))

    result = _client(fake).generate_with_retrieval("Kyoto rainfall")

    assert result.text == "Found it"
    assert [(s.uri, s.title) for s in result.sources] == [
        ("https://a.example", "A"),
        ("https://b.example", "https://b.example"),
    ]
    assert fake.responses.calls[0]["tools"] == [{"type": "web_search"}]


def test_edit_text_fills_the_action_template():
    completions = FakeCompletions("  Brighter words  ")
    client = _client(FakeOpenAI(completions=completions), edit_templates={"improve": "Polish: {text}"})

    assert client.edit_text("dull words", "improve") == "Brighter words"
    assert completions.calls[0]["messages"][0]["content"] == "Polish: dull words"


def test_edit_text_rejects_unknown_action_and_empty_text():
    client = _client()

    with pytest.raises(AIRequestError):
        client.edit_text("words", "translate")
    with pytest.raises(AIRequestError):
        client.edit_text("   ", "improve")


def test_edit_text_reports_broken_templates_as_request_errors():
    completions = FakeCompletions()
    client = _client(
        FakeOpenAI(completions=completions),
        edit_templates={"improve": "Rewrite {text} in {style}", "expand": "Expand {0}: {text}"},
    )

    with pytest.raises(AIRequestError):
        client.edit_text("dull words", "improve")
    with pytest.raises(AIRequestError):
        client.edit_text("dull words", "expand")
    assert completions.calls == []


def test_invalid_generation_parameters_are_request_errors():
    completions = FakeCompletions()
    client = _client(FakeOpenAI(completions=completions))

    with pytest.raises(AIRequestError):
        client.edit_text("dull words", "improve", max_new_tokens="lots")
    with pytest.raises(AIRequestError):
        client.edit_text("dull words", "improve", max_new_tokens=0)
    with pytest.raises(AIRequestError):
        client.edit_text("dull words", "improve", temperature="warm")
    assert completions.calls == []

    client.edit_text("dull words", "improve", max_new_tokens=256, temperature=0.7)
    assert completions.calls[0]["max_tokens"] == 256
    assert completions.calls[0]["temperature"] == 0.7


def test_sdk_errors_are_wrapped():
    error = openai.OpenAIError("connection reset")
    client = _client(FakeOpenAI(completions=FakeCompletions(error=error)))

    with pytest.raises(AIBackendError) as excinfo:
        client.generate_text("hi")

    assert not isinstance(excinfo.value, AIConfigurationError)
    assert excinfo.value.__cause__ is error


def test_empty_output_is_a_backend_error():
    client = _client(FakeOpenAI(completions=FakeCompletions(content="")))

    with pytest.raises(AIBackendError, match="returned no text"):
        client.generate_text("hi")


def test_generate_image_maps_aspect_ratio_and_decodes():
    fake = FakeOpenAI()

    data = _client(fake).generate_image("A neon alley", "16:9")

    assert data == b"PNGDATA"
    assert fake.image_calls[0]["size"] == "1536x1024"
    with pytest.raises(AIRequestError):
        _client(fake).generate_image("A neon alley", "2:1")


def test_analyze_image_sends_a_data_url():
    completions = FakeCompletions("A detective in the rain")
    client = _client(FakeOpenAI(completions=completions))

    assert client.analyze_image("Describe", b"\x89PNG", "image/png") == "A detective in the rain"
    content = completions.calls[0]["messages"][0]["content"]
    assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")
    with pytest.raises(AIRequestError):
        client.analyze_image("Describe", b"%PDF", "application/pdf")


def test_synthesize_speech_returns_audio_bytes():
    fake = FakeOpenAI()

    assert _client(fake, speech_voice="nova").synthesize_speech("Hello") == b"RIFFwav"
    assert fake.speech_calls[0]["voice"] == "nova"


def test_signature_never_reveals_the_key():
    assert _client().signature() == "sk-t…1234"
    assert GenerativeClient(None).signature() == ""
