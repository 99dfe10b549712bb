"""LLM provider implementations for various services."""

import os
from typing import Any, Optional
from llm.llm_provider import LLMProvider


class GeminiProvider(LLMProvider):
    """Google Gemini LLM provider implementation supporting both API and Vertex AI."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = "gemini-1.5-flash",
        use_vertex: bool = False,
        project: Optional[str] = None,
        location: str = "us-central1"
    ):
        """
        Initialize Gemini provider.

        Args:
            api_key: Google API key. If None, will try GEMINI_API_KEY env var (only for direct API)
            model_name: Gemini model to use (default: gemini-1.5-flash)
            use_vertex: If True, use Vertex AI instead of direct API
            project: GCP project ID (required if use_vertex=True)
            location: GCP region (default: us-central1)
        """
        self.model_name = model_name
        self.use_vertex = use_vertex
        self._model = None

        if use_vertex:
            try:
                import vertexai
                from vertexai.generative_models import GenerativeModel
            except ImportError:
                raise ImportError(
                    "Vertex AI SDK not installed. Install with: pip install google-cloud-aiplatform"
                )

            project_id = project or os.getenv("GCP_PROJECT")
            if not project_id:
                raise ValueError(
                    "Vertex AI requires project ID. Set GCP_PROJECT env var or pass project parameter."
                )
            vertexai.init(project=project_id, location=location)
            self._model = GenerativeModel(self.model_name)
        else:
            try:
                import google.generativeai as genai
            except ImportError:
                raise ImportError(
                    "Google Generative AI SDK not installed. Install with: pip install google-generativeai"
                )

            self.api_key = api_key or os.getenv("GEMINI_API_KEY")
            if self.api_key:
                genai.configure(api_key=self.api_key)
                self._model = genai.GenerativeModel(self.model_name)

    def is_available(self) -> bool:
        """Check if Gemini is properly configured."""
        return self._model is not None

    def generate_response(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate a response using Google Gemini.

        Raises:
            ValueError: If the provider is not properly configured
            Exception: If the API request fails
        """
        if not self.is_available():
            error_msg = (
                "Vertex AI provider not configured. Set GCP_PROJECT environment variable."
                if self.use_vertex
                else "Gemini provider not configured. Set GEMINI_API_KEY environment variable."
            )
            raise ValueError(error_msg)

        full_prompt = prompt
        if system_prompt:
            full_prompt = f"{system_prompt}\n\n{prompt}"

        try:
            response = self._model.generate_content(full_prompt)
            text = response.text
        except Exception as e:
            provider_name = "Vertex AI" if self.use_vertex else "Gemini API"
            raise Exception(f"{provider_name} error: {str(e)}") from e

        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            self._record_usage(
                getattr(usage, "prompt_token_count", 0),
                getattr(usage, "candidates_token_count", 0)
            )
        return text


class OllamaProvider(LLMProvider):
    """Ollama local LLM provider implementation."""

    def __init__(
        self,
        model: str = "llama2",
        base_url: Optional[str] = None,
        timeout: float = 60.0
    ):
        """
        Initialize Ollama provider.

        Args:
            model: Ollama model to use (e.g., llama2, mistral)
            base_url: Ollama server URL. If None, uses OLLAMA_BASE_URL env var or default localhost
            timeout: HTTP timeout in seconds for generation requests
        """
        self.model = model
        self.base_url = base_url or os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
        self.timeout = timeout

    def is_available(self) -> bool:
        """Check if Ollama server is running and accessible."""
        import requests

        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=2)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    def generate_response(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate a response using Ollama's chat endpoint.

        Raises:
            Exception: If the API request fails or the model is missing
        """
        import requests

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = requests.post(
                f"{self.base_url}/api/chat",
                json={
                    "model": self.model,
                    "messages": messages,
                    "stream": False
                },
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise Exception(f"Ollama API error: {str(e)}") from e

        if response.status_code == 404:
            raise Exception(
                f"Model '{self.model}' not found in Ollama. "
                f"Pull it first with: ollama pull {self.model}"
            )

        try:
            response.raise_for_status()
            result = response.json()
            text = result["message"]["content"]
        except Exception as e:
            raise Exception(f"Ollama API error: {str(e)}") from e

        self._record_usage(result.get("prompt_eval_count", 0), result.get("eval_count", 0))
        return text


class AnthropicProvider(LLMProvider):
    """Anthropic Claude provider using the Messages HTTP API."""

    BASE_URL = "https://api.anthropic.com/v1"
    API_VERSION = "2023-06-01"

    def __init__(
        self,
        model: str = "claude-3-5-haiku-latest",
        api_key: Optional[str] = None,
        max_tokens: int = 1024,
        timeout: float = 60.0,
        base_url: Optional[str] = None
    ):
        self.model = model
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.base_url = base_url or self.BASE_URL

    def is_available(self) -> bool:
        return bool(self.api_key)

    def generate_response(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        if not self.is_available():
            raise ValueError("Anthropic provider not configured. Set ANTHROPIC_API_KEY environment variable.")

        import requests

        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}]
        }
        if system_prompt:
            body["system"] = system_prompt

        try:
            response = requests.post(
                f"{self.base_url}/messages",
                json=body,
                headers={
                    "Content-Type": "application/json",
                    "x-api-key": self.api_key,
                    "anthropic-version": self.API_VERSION
                },
                timeout=self.timeout
            )
            response.raise_for_status()
            result = response.json()
        except Exception as e:
            raise Exception(f"Anthropic API error: {str(e)}") from e

        text = "".join(
            block.get("text", "")
            for block in result.get("content", [])
            if block.get("type") == "text"
        )

        usage = result.get("usage", {})
        self._record_usage(usage.get("input_tokens", 0), usage.get("output_tokens", 0))
        return text.strip()


def create_provider(llm_config: dict[str, Any]) -> LLMProvider:
    """
    Create an LLM provider from a config section.

    Expected format:
    {
        "provider": "gemini" | "ollama" | "anthropic" | "mock",
        "model": "model-name",
        "base_url": "http://...",      # ollama / anthropic only
        "responses": ["..."]           # mock only
    }

    Raises:
        ValueError: If the provider type is unknown
    """
    provider_type = str(llm_config.get("provider", "gemini")).lower()
    model_name = llm_config.get("model")

    if provider_type == "gemini":
        return GeminiProvider(model_name=model_name or "gemini-1.5-flash")

    if provider_type == "ollama":
        return OllamaProvider(
            model=model_name or "llama2",
            base_url=llm_config.get("base_url"),
            timeout=llm_config.get("timeout", 60.0)
        )

    if provider_type == "anthropic":
        kwargs = {"base_url": llm_config.get("base_url")}
        if model_name:
            kwargs["model"] = model_name
        if "max_tokens" in llm_config:
            kwargs["max_tokens"] = llm_config["max_tokens"]
        return AnthropicProvider(**kwargs)

    if provider_type == "mock":
        from llm.mock_provider import MockLLMProvider
        return MockLLMProvider(responses=llm_config.get("responses"))

    raise ValueError(f"Unknown LLM provider: {provider_type}")
