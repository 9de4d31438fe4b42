from __future__ import annotations
import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, List, Optional
from pydantic import BaseModel
import requests

logger = logging.getLogger(__name__)


class LLMResponse(BaseModel):
    content: Optional[str] = None
    finish_reason: str
    usage: Optional[Dict[str, int]] = None
    time_taken: float
    error: str | None = None


@dataclass
class LLMConfig:
    api_base: str = "http://localhost:11434"
    model: str = "llama3.1"
    max_tokens: int = 1024
    temperature: float = 0.1
    timeout: int = 300
    api_key_env: str = "OPENAI_API_KEY"


class GenerativeModel:
    """Anything that turns a prompt into text."""

    config: LLMConfig

    def generate(self, prompt: str) -> str:
        raise NotImplementedError

    @property
    def model_name(self) -> str:
        return self.config.model


class OllamaClient(GenerativeModel):
    """Non-streaming ``/api/generate`` against an Ollama server."""

    def __init__(self, config: LLMConfig | None = None):
        self.config = config or LLMConfig()
        self.session = requests.Session()

    def complete(self, prompt: str) -> LLMResponse:
        url = f"{self.config.api_base.rstrip('/')}/api/generate"
        payload = {
            "model": self.config.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
                "num_predict": self.config.max_tokens,
            },
        }
        start_time = time.time()
        try:
            response = self.session.post(url, json=payload, timeout=self.config.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            return LLMResponse(finish_reason="error", time_taken=time.time() - start_time, error=str(e))

        return LLMResponse(
            content=(data.get("response") or "").strip(),
            finish_reason=data.get("done_reason", "stop"),
            usage={
                "prompt_tokens": data.get("prompt_eval_count", 0),
                "completion_tokens": data.get("eval_count", 0),
                "total_tokens": data.get("prompt_eval_count", 0) + data.get("eval_count", 0),
            },
            time_taken=time.time() - start_time,
        )

    def generate(self, prompt: str) -> str:
        if not prompt or not prompt.strip():
            raise ValueError("Prompt must not be empty")
        result = self.complete(prompt)
        if result.error:
            raise RuntimeError(f"Ollama generation failed: {result.error}")
        logger.info(f"Generated answer with {self.config.model} in {result.time_taken:.1f}s")
        return result.content or ""


class ChatCompletionsClient(GenerativeModel):
    """OpenAI-compatible ``/v1/chat/completions`` endpoint."""

    def __init__(self, config: LLMConfig | None = None):
        self.config = config or LLMConfig(api_base="https://api.openai.com", model="gpt-4o-mini")
        self.api_key = os.getenv(self.config.api_key_env)
        if not self.api_key:
            raise ValueError(f"{self.config.api_key_env} environment variable not set")

        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def chat(
        self,
        system_prompt: str,
        user_message: str,
        conversation_history: List[Dict[str, str]] | None = None,
    ) -> LLMResponse:
        messages = []
        if system_prompt and system_prompt.strip():
            messages.append({"role": "system", "content": system_prompt.strip()})
        if conversation_history:
            messages.extend(conversation_history)
        messages.append({"role": "user", "content": user_message.strip()})
        url = f"{self.config.api_base.rstrip('/')}/v1/chat/completions"
        payload = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        start_time = time.time()
        try:
            response = requests.post(
                url,
                headers=self.headers,
                json=payload,
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            return LLMResponse(finish_reason="error", time_taken=time.time() - start_time, error=str(e))

        if not data.get("choices"):
            return LLMResponse(
                finish_reason="error",
                time_taken=time.time() - start_time,
                error=f"Unexpected response format: {data}",
            )

        choice = data["choices"][0]
        message_content = choice.get("message", {}).get("content") or ""
        usage = data.get("usage", {})
        return LLMResponse(
            content=message_content.strip(),
            finish_reason=choice.get("finish_reason", "stop"),
            usage={
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
                "total_tokens": usage.get("total_tokens", 0),
            },
            time_taken=time.time() - start_time,
        )

    def generate(self, prompt: str) -> str:
        if not prompt or not prompt.strip():
            raise ValueError("Prompt must not be empty")
        result = self.chat(system_prompt="", user_message=prompt)
        if result.error:
            raise RuntimeError(f"Chat completion failed: {result.error}")
        logger.info(f"Generated answer with {self.config.model} in {result.time_taken:.1f}s")
        return result.content or ""


def make_llm_client(cfg: Dict) -> GenerativeModel:
    llm_cfg = cfg.get("llm", {})
    backend = str(llm_cfg.get("backend", "ollama")).strip().lower()
    config = LLMConfig(
        api_base=llm_cfg.get("base_url", "http://localhost:11434"),
        model=llm_cfg.get("model", "llama3.1"),
        max_tokens=int(llm_cfg.get("max_tokens", 1024)),
        temperature=float(llm_cfg.get("temperature", 0.1)),
        timeout=int(llm_cfg.get("timeout", 300)),
        api_key_env=llm_cfg.get("api_key_env", "OPENAI_API_KEY"),
    )
    if backend == "ollama":
        return OllamaClient(config)
    if backend in ("openai", "chat_completions"):
        return ChatCompletionsClient(config)
    raise ValueError(f"Unknown llm.backend: {backend!r}")
