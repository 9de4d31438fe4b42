import pytest
import requests

from coderag.core.models import FusedHit
from coderag.prompt_builder.builder import build_answer_prompt, count_tokens
from coderag.prompt_builder.llm_client import (
    ChatCompletionsClient,
    LLMConfig,
    OllamaClient,
    make_llm_client,
)


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


def _hit(uid, member, body=None, embedding_text=None):
    return FusedHit(
        unit_id=uid,
        fused_score=0.03,
        vector_score=0.8,
        keyword_score=None,
        project_id="shop",
        file_path=f"Services/{uid}.cs",
        type_name=uid,
        member_name=member,
        start_line=10,
        end_line=14,
        body=body,
        embedding_text=embedding_text,
    )


class TestBuildAnswerPrompt:

    def test_numbers_sources_in_order(self):
        prompt = build_answer_prompt(
            "  How are users loaded?  ",
            [_hit("UserService", "GetUser", body="return _repo.Find(id);"), _hit("UserRepository", "")],
        )
        first = prompt.index("### [1] Services/UserService.cs:10-14 (UserService.GetUser)")
        second = prompt.index("### [2] Services/UserRepository.cs:10-14 (UserRepository)")
        assert first < second
        assert "```csharp\nreturn _repo.Find(id);\n```" in prompt
        assert "## Question\nHow are users loaded?\n" in prompt
        assert "Reference sources as [1], [2], etc." in prompt

    def test_falls_back_to_embedding_text(self):
        prompt = build_answer_prompt("q", [_hit("A", "Run", embedding_text="// File: A.cs\n\nvoid Run() {}")])
        assert "void Run() {}" in prompt

    def test_count_tokens_is_positive(self):
        assert count_tokens("public void Run() { }") > 0


class TestOllamaClient:

    def test_generate(self, monkeypatch):
        client = OllamaClient(LLMConfig(api_base="http://ollama:11434", model="llama3.1"))
        sent = {}

        def fake_post(url, json, timeout):
            sent.update(url=url, json=json)
            return FakeResponse({"response": " See [1]. ", "done_reason": "stop", "prompt_eval_count": 12, "eval_count": 3})

        monkeypatch.setattr(client.session, "post", fake_post)
        assert client.generate("prompt") == "See [1]."
        assert sent["url"] == "http://ollama:11434/api/generate"
        assert sent["json"]["stream"] is False
        assert sent["json"]["options"]["num_predict"] == 1024

    def test_usage_is_reported(self, monkeypatch):
        client = OllamaClient()
        monkeypatch.setattr(
            client.session, "post",
            lambda *a, **kw: FakeResponse({"response": "ok", "prompt_eval_count": 12, "eval_count": 3}),
        )
        result = client.complete("prompt")
        assert result.usage == {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15}
        assert result.error is None

    def test_transport_error_becomes_runtime_error(self, monkeypatch):
        client = OllamaClient()

        def fail(*args, **kwargs):
            raise requests.ConnectionError("connection refused")

        monkeypatch.setattr(client.session, "post", fail)
        assert client.complete("prompt").finish_reason == "error"
        with pytest.raises(RuntimeError):
            client.generate("prompt")

    def test_blank_prompt(self):
        with pytest.raises(ValueError):
            OllamaClient().generate(" ")


class TestChatCompletionsClient:

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("CODERAG_TEST_KEY", raising=False)
        with pytest.raises(ValueError):
            ChatCompletionsClient(LLMConfig(api_key_env="CODERAG_TEST_KEY"))

    def test_chat(self, monkeypatch):
        monkeypatch.setenv("CODERAG_TEST_KEY", "secret")
        client = ChatCompletionsClient(LLMConfig(api_base="https://llm.example", model="gpt", api_key_env="CODERAG_TEST_KEY"))
        sent = {}

        def fake_post(url, headers, json, timeout):
            sent.update(url=url, headers=headers, json=json)
            return FakeResponse(
                {
                    "choices": [{"message": {"content": "Answer [1]"}, "finish_reason": "stop"}],
                    "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
                }
            )

        monkeypatch.setattr(requests, "post", fake_post)
        result = client.chat("system", "question")

        assert result.content == "Answer [1]"
        assert result.usage["total_tokens"] == 7
        assert sent["url"] == "https://llm.example/v1/chat/completions"
        assert sent["headers"]["Authorization"] == "Bearer secret"
        assert [m["role"] for m in sent["json"]["messages"]] == ["system", "user"]

    def test_empty_choices(self, monkeypatch):
        monkeypatch.setenv("CODERAG_TEST_KEY", "secret")
        client = ChatCompletionsClient(LLMConfig(api_key_env="CODERAG_TEST_KEY"))
        monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse({"choices": []}))
        with pytest.raises(RuntimeError):
            client.generate("question")


class TestMakeLLMClient:

    def test_ollama(self):
        client = make_llm_client({"llm": {"backend": "ollama", "model": "qwen2.5-coder"}})
        assert isinstance(client, OllamaClient)
        assert client.model_name == "qwen2.5-coder"

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            make_llm_client({"llm": {"backend": "carrier-pigeon"}})
