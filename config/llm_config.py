# llm_config.py — Optional remote insight providers (Groq / Ollama)
# Handles provider selection, explicit API keys, and client instantiation
"""
llm_config.py — LLM Configuration & Factory

Remote insight generation is an optional enhancement. It honors the same
contract as the local engine: a list of at most five insight strings.

Supports:
1. Groq API (cloud) - used when an API key is passed in
2. Ollama (local) - fallback when no API key

The API key is always an explicit argument; clients never read it from
global state.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass

from tools.statistics import Dataset, get_columns, get_numeric_columns, numeric_values
from tools.validators import MAX_INSIGHTS, mask_api_key, sanitize_insights


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_MODEL = "tinyllama"
DEFAULT_GROQ_MODEL = "llama-3.1-8b-instant"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
GROQ_API_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 1024
REQUEST_TIMEOUT = 60  # seconds
SAMPLE_ROWS = 5

INSIGHTS_SYSTEM_PROMPT = (
    "You are an expert data analyst. Be specific, reference actual numbers, "
    "and keep every insight to one or two sentences."
)

QUESTION_SYSTEM_PROMPT = (
    "You are an expert data analyst helping the user understand their data. "
    "Answer concisely and clearly, focused on the specific question."
)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class LLMConnectionError(LLMError):
    """Raised when the provider is not reachable."""
    pass


class LLMGenerationError(LLMError):
    """Raised when text generation fails."""
    pass


class ModelNotFoundError(LLMError):
    """Raised when requested model is not available."""
    pass


# =============================================================================
# PROMPTS
# =============================================================================

def build_data_summary(dataset: Dataset) -> str:
    """
    Describe a dataset for an LLM prompt.

    Includes shape, column roles, per-column min/max/avg/stdDev for numeric
    columns and the first rows as JSON.
    """
    columns = get_columns(dataset)
    numeric_columns = get_numeric_columns(dataset)
    text_columns = [col for col in columns if col not in numeric_columns]

    lines = [
        "Dataset Summary:",
        f"- Total rows: {len(dataset)}",
        f"- Columns: {', '.join(columns)}",
        f"- Numeric columns: {', '.join(numeric_columns)}",
        f"- Text columns: {', '.join(text_columns)}",
    ]

    for col in numeric_columns:
        values = numeric_values(dataset, col)
        if not values:
            continue
        avg = sum(values) / len(values)
        std_dev = (sum((v - avg) ** 2 for v in values) / len(values)) ** 0.5
        lines.append(
            f'- Column "{col}": min={min(values)}, max={max(values)}, '
            f"avg={avg:.2f}, stdDev={std_dev:.2f}"
        )

    sample = json.dumps(list(dataset[:SAMPLE_ROWS]), indent=2, default=str)
    lines.append("")
    lines.append(f"Sample data (first {SAMPLE_ROWS} rows):\n{sample}")
    return "\n".join(lines)


def build_insights_prompt(dataset: Dataset) -> str:
    return f"""As an expert data analyst, examine the following dataset and generate {MAX_INSIGHTS} high-value insights:

{build_data_summary(dataset)}

For each insight:
1. Focus on significant patterns, correlations, outliers, or trends
2. Be specific with numbers and facts derived from the data
3. Suggest actionable recommendations where relevant
4. Keep each insight to 1-2 sentences for clarity
5. Ensure insights are varied (don't focus on just one aspect of the data)

Format your response as {MAX_INSIGHTS} separate insights, one per line, without bullets or numbering."""


def build_question_prompt(question: str, dataset: Dataset) -> str:
    return f"""You have access to the following dataset information:

{build_data_summary(dataset)}

User question: "{question}"

Provide a detailed, informative answer based on the data. Include specific numbers, patterns, and insights when relevant.
If the question requires statistical analysis not provided, explain what analysis would be needed."""


# =============================================================================
# SHARED CLIENT BEHAVIOR
# =============================================================================

class BaseLLM:
    """Insight and question helpers shared by all providers."""

    provider = "base"

    def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        raise NotImplementedError

    def is_available(self) -> bool:
        raise NotImplementedError

    def generate_insights(self, dataset: Dataset) -> list[str]:
        """
        Generate up to five insights for a dataset.

        Raises:
            LLMError: If the provider fails or returns no usable lines
        """
        text = self.generate(
            prompt=build_insights_prompt(dataset),
            system_prompt=INSIGHTS_SYSTEM_PROMPT,
            temperature=0.3,
        )
        insights = sanitize_insights(text)
        if not insights:
            raise LLMGenerationError("Provider returned no insights")
        return insights

    def answer_question(self, question: str, dataset: Dataset) -> str:
        """Answer a free-form question about a dataset."""
        return self.generate(
            prompt=build_question_prompt(question, dataset),
            system_prompt=QUESTION_SYSTEM_PROMPT,
            temperature=0.2,
        )


# =============================================================================
# OLLAMA CLIENT
# =============================================================================

@dataclass
class OllamaConfig:
    """Configuration for a local Ollama server."""
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_OLLAMA_BASE_URL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: int = REQUEST_TIMEOUT


class OllamaLLM(BaseLLM):
    """Client for Ollama's /api/generate endpoint."""

    provider = "ollama"

    def __init__(self, config: OllamaConfig | None = None):
        self.config = config or OllamaConfig()

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    def is_available(self) -> bool:
        """True when the server answers on /api/tags."""
        request = urllib.request.Request(f"{self.base_url}/api/tags", method="GET")
        try:
            with urllib.request.urlopen(request, timeout=5) as response:
                return response.status == 200
        except (urllib.error.URLError, OSError):
            return False

    def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Send one prompt and join the streamed reply.

        Raises:
            ModelNotFoundError: The model has not been pulled (HTTP 404)
            LLMConnectionError: The server is unreachable
            LLMGenerationError: Any other HTTP failure or a malformed chunk
        """
        payload = {
            "model": self.config.model,
            "prompt": prompt,
            "stream": True,
            "options": {
                "temperature": self.config.temperature if temperature is None else temperature,
                "num_predict": max_tokens or self.config.max_tokens,
            },
        }
        if system_prompt:
            payload["system"] = system_prompt

        request = urllib.request.Request(
            f"{self.base_url}/api/generate",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        parts = []
        try:
            with urllib.request.urlopen(request, timeout=self.config.timeout) as response:
                # One JSON object per line until "done"
                for raw_line in response:
                    line = raw_line.decode("utf-8").strip()
                    if not line:
                        continue
                    chunk = json.loads(line)
                    parts.append(chunk.get("response", ""))
                    if chunk.get("done"):
                        break
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise ModelNotFoundError(
                    f"Ollama has no model '{self.model}'; run `ollama pull {self.model}`"
                ) from e
            raise LLMGenerationError(f"Ollama returned HTTP {e.code}: {e.reason}") from e
        except urllib.error.URLError as e:
            raise LLMConnectionError(f"Ollama is not reachable at {self.base_url}: {e.reason}") from e
        except json.JSONDecodeError as e:
            raise LLMGenerationError(f"Malformed chunk from Ollama: {e.msg}") from e

        return "".join(parts).strip()


# =============================================================================
# GROQ CLIENT (Cloud LLM)
# =============================================================================

@dataclass
class GroqConfig:
    """Configuration for Groq LLM."""
    model: str = DEFAULT_GROQ_MODEL
    api_key: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: int = REQUEST_TIMEOUT


class GroqLLM(BaseLLM):
    """
    Groq API client for text generation.

    Uses the OpenAI-compatible chat completions API.
    """

    provider = "groq"

    def __init__(self, config: GroqConfig | None = None):
        self.config = config or GroqConfig()

    @property
    def model(self) -> str:
        return self.config.model

    def is_available(self) -> bool:
        """Groq is usable whenever an API key was supplied."""
        return bool(self.config.api_key)

    def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        if not self.config.api_key:
            raise LLMError("Groq API key not configured")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.config.model,
            "messages": messages,
            "temperature": temperature if temperature is not None else self.config.temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }

        request = urllib.request.Request(
            f"{GROQ_API_BASE_URL}/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.config.api_key}",
            },
            method="POST",
        )

        logger.debug("Groq request with key %s", mask_api_key(self.config.api_key))
        try:
            with urllib.request.urlopen(request, timeout=self.config.timeout) as response:
                result = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else str(e)
            raise LLMGenerationError(f"Groq API error ({e.code}): {error_body}") from e
        except urllib.error.URLError as e:
            raise LLMConnectionError(f"Cannot reach Groq API: {str(e)}") from e
        except json.JSONDecodeError as e:
            raise LLMGenerationError(f"Invalid response from Groq: {str(e)}") from e

        try:
            return result["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise LLMGenerationError("Unexpected Groq response format") from e


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def get_llm(
    api_key: str | None = None,
    model: str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    base_url: str = DEFAULT_OLLAMA_BASE_URL,
) -> GroqLLM | OllamaLLM | None:
    """
    Pick an insight provider.

    Groq when an API key is passed, else Ollama when its server answers,
    else None (local statistics only).

    Args:
        api_key: Groq API key, passed explicitly by the caller
        model: Model name (provider default if None)
        base_url: Ollama server URL
    """
    if api_key:
        return GroqLLM(GroqConfig(
            model=model or DEFAULT_GROQ_MODEL,
            api_key=api_key,
            temperature=temperature,
            max_tokens=max_tokens,
        ))

    ollama_llm = OllamaLLM(OllamaConfig(
        model=model or DEFAULT_MODEL,
        base_url=base_url,
        temperature=temperature,
        max_tokens=max_tokens,
    ))
    if ollama_llm.is_available():
        return ollama_llm

    logger.info("No LLM provider available; using local statistics only")
    return None


def get_llm_status(api_key: str | None = None, base_url: str = DEFAULT_OLLAMA_BASE_URL) -> dict:
    """
    Check LLM availability status.

    Returns:
        Dict with status information
    """
    groq_available = bool(api_key)
    ollama_available = OllamaLLM(OllamaConfig(base_url=base_url)).is_available()

    return {
        "groq_available": groq_available,
        "ollama_available": ollama_available,
        "active_provider": "groq" if groq_available else ("ollama" if ollama_available else None),
        "groq_model": DEFAULT_GROQ_MODEL,
        "ollama_model": DEFAULT_MODEL,
    }
