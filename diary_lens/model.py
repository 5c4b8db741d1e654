"""Local text generation backend for narrative summaries.

The analytics engine only needs a ``(prompt: str) -> str`` callable.
``ModelManager`` is a ready-made one backed by mlx-lm, running a local
LLM on Apple Silicon so diary text never leaves the machine.

Key Features:
    - Lazy model loading (loaded on first use)
    - Callable instances, usable directly as a narrative generator

Example:
    >>> from diary_lens.model import ModelManager
    >>> model = ModelManager("qwen-7b")
    >>> result = analyzer.narrate("tone", model)

Note:
    Requires mlx-lm (``pip install diary-lens[mlx]``), macOS and Apple
    Silicon. Models are downloaded from HuggingFace on first use.
"""

from __future__ import annotations

import logging

from .constants import (
    DEFAULT_MAX_GENERATION_TOKENS,
    DEFAULT_MODEL_ID,
    DEFAULT_TEMPERATURE,
    MODEL_PRESETS,
)
from .exceptions import ModelLoadError

__all__ = [
    "ModelManager",
    "list_available_models",
    "resolve_model_name",
]

logger = logging.getLogger(__name__)


# =============================================================================
# Model Resolution
# =============================================================================


def resolve_model_name(name_or_alias: str) -> str:
    """Resolve a model alias to its full HuggingFace ID.

    Anything that is not a known alias is returned unchanged.

    Example:
        >>> resolve_model_name("qwen-7b")
        'mlx-community/Qwen2.5-7B-Instruct-4bit'
        >>> resolve_model_name("mlx-community/custom-model")
        'mlx-community/custom-model'
    """
    return MODEL_PRESETS.get(name_or_alias, name_or_alias)


def list_available_models() -> dict[str, str]:
    """Get a copy of the alias -> model ID presets."""
    return MODEL_PRESETS.copy()


# =============================================================================
# Model Manager
# =============================================================================


class ModelManager:
    """Manage mlx-lm model loading and text generation.

    Attributes:
        model_name: The HuggingFace model ID being used.
        system_prompt: Instructions sent with every prompt.
        max_tokens: Default maximum tokens for generation.
        temperature: Default sampling temperature.

    Example:
        >>> manager = ModelManager("qwen-7b", system_prompt="You are a diary analyst.")
        >>> print(manager("Summarize these statistics: ..."))

    Note:
        The model is not loaded until first use, so creating an
        instance is cheap.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL_ID,
        *,
        system_prompt: str = "",
        max_tokens: int = DEFAULT_MAX_GENERATION_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> None:
        """Initialize the model manager.

        Args:
            model_name: HuggingFace model ID or alias (e.g., "qwen-7b").
            system_prompt: Default system prompt.
            max_tokens: Default maximum tokens to generate.
            temperature: Default sampling temperature.
        """
        self.model_name: str = resolve_model_name(model_name)
        self.system_prompt: str = system_prompt
        self.max_tokens: int = max_tokens
        self.temperature: float = temperature

        # Lazy loaded
        self._model = None
        self._tokenizer = None

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def load(self) -> None:
        """Load the model and tokenizer into memory.

        Raises:
            ModelLoadError: If mlx-lm is not installed or the model fails to load.
        """
        if self._model is not None:
            return

        try:
            from mlx_lm import load
        except ImportError as e:
            raise ModelLoadError(
                self.model_name,
                reason="mlx-lm is not installed. Install with: pip install 'diary-lens[mlx]'",
            ) from e

        try:
            logger.info("Loading model: %s", self.model_name)
            self._model, self._tokenizer = load(self.model_name)
            logger.info("Model loaded successfully.")
        except Exception as e:
            raise ModelLoadError(self.model_name, reason=str(e)) from e

    @property
    def model(self):
        if self._model is None:
            self.load()
        return self._model

    @property
    def tokenizer(self):
        if self._tokenizer is None:
            self.load()
        return self._tokenizer

    def _format_chat_prompt(self, system: str, user: str) -> str:
        messages: list[dict[str, str]] = []

        if system:
            messages.append({"role": "system", "content": system})

        messages.append({"role": "user", "content": user})

        return self.tokenizer.apply_chat_template(
            messages,
            add_generation_prompt=True,
            tokenize=False,
        )

    def _sampler(self, temperature: float | None):
        from mlx_lm.sample_utils import make_sampler

        return make_sampler(temp=temperature if temperature is not None else self.temperature)

    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate text from a prompt.

        Args:
            prompt: The user prompt.
            system_prompt: Override the default system prompt.
            max_tokens: Override default max tokens.
            temperature: Override default temperature.

        Returns:
            Generated text response.

        Raises:
            ModelLoadError: If model fails to load.
        """
        formatted = self._format_chat_prompt(
            self.system_prompt if system_prompt is None else system_prompt, prompt
        )

        from mlx_lm import generate

        return generate(
            self.model,
            self.tokenizer,
            prompt=formatted,
            max_tokens=max_tokens or self.max_tokens,
            sampler=self._sampler(temperature),
            verbose=False,
        )

    def __call__(self, prompt: str) -> str:
        """Generate with the default settings (the narrative boundary)."""
        return self.generate(prompt)

    def __repr__(self) -> str:
        status = "loaded" if self.is_loaded else "not loaded"
        return f"ModelManager(model={self.model_name!r}, status={status})"
