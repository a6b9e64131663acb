import logging
from typing import Dict, Optional

from openai import AsyncOpenAI
from openai.types.chat import (
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam
)

from locale_sync.batch_translator import TranslationItemError

logger = logging.getLogger(__name__)

DEFAULT_APP_DESCRIPTION = "a desktop software application"


def build_system_prompt(language_name: str, app_description: str, context: str) -> str:
    """Builds the system prompt for translating one UI string."""
    context_text = f"Context: {context}" if context else ""
    return f"""You are a professional translator for {app_description}.

Translate the given text to {language_name}.

Important rules:
1. Keep technical terms in English when appropriate (e.g., "SD card", "USB", "Flash")
2. Preserve ALL placeholders exactly as they appear (e.g., {{{{count}}}}, {{{{name}}}}, {{{{step}}}})
3. Use natural, concise UI text appropriate for buttons and labels
4. Maintain formal but friendly tone
5. For plural forms (keys ending in _one or _other), translate appropriately for the grammatical number
6. Keep keyboard shortcuts and hotkeys in English
7. Only return the translated text, no explanations

{context_text}"""


class OpenAITranslator:
    """Translation capability backed by the chat completions endpoint."""

    def __init__(
            self,
            client: AsyncOpenAI,
            model_name: str,
            language_names: Optional[Dict[str, str]] = None,
            app_description: str = DEFAULT_APP_DESCRIPTION,
            temperature: float = 0.3,
            max_tokens: int = 500
    ):
        self.client = client
        self.model_name = model_name
        self.language_names = language_names or {}
        self.app_description = app_description
        self.temperature = temperature
        self.max_tokens = max_tokens

    def language_name(self, language_code: str) -> str:
        return self.language_names.get(language_code, language_code)

    async def translate(self, text: str, target_language: str, context: str = '') -> str:
        """
        Translate ``text`` into ``target_language`` (a locale code).

        Raises:
            TranslationItemError: If the response carries no usable content.
            openai.OpenAIError: On connection, timeout or non-2xx responses.
        """
        system_prompt = build_system_prompt(
            self.language_name(target_language),
            self.app_description,
            context
        )
        response = await self.client.chat.completions.create(
            model=self.model_name,
            messages=[
                ChatCompletionSystemMessageParam(role="system", content=system_prompt),
                ChatCompletionUserMessageParam(role="user", content=text)
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        if not response.choices:
            raise TranslationItemError("Response contained no choices.")
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise TranslationItemError("Response contained an empty message.")

        logger.debug("Translated \"%s\" to %s.", text, target_language)
        return content.strip()
