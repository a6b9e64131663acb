"""Provider-aware batched translation with per-item failure isolation."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Protocol, Tuple

from openai import OpenAIError
from tqdm import tqdm

from locale_sync.locale_tree import mark_failed
from locale_sync.placeholder_reconciler import reconcile_placeholders, should_bypass_translation

logger = logging.getLogger(__name__)


class TranslationItemError(Exception):
    """Raised by a translation capability when a single item cannot be translated."""


class TranslationCapability(Protocol):
    async def translate(self, text: str, target_language: str, context: str) -> str:
        ...


@dataclass(frozen=True)
class RatePolicy:
    batch_size: int
    batch_delay_ms: int


# Roughly 3 requests per minute with a safety margin.
CONSERVATIVE_POLICY = RatePolicy(batch_size=1, batch_delay_ms=21000)

# (model name substring, paid tier policy, free tier policy); first match wins,
# so more specific names must come before their prefixes.
RATE_POLICY_TABLE: Tuple[Tuple[str, RatePolicy, RatePolicy], ...] = (
    ('gpt-4o-mini', RatePolicy(50, 300), CONSERVATIVE_POLICY),
    ('gpt-4o', RatePolicy(40, 750), CONSERVATIVE_POLICY),
    ('gpt-3.5', RatePolicy(100, 500), CONSERVATIVE_POLICY),
)


def resolve_rate_policy(model_name: str, paid_tier: bool) -> RatePolicy:
    """
    Pick the batch size and inter-batch delay for a model and pricing tier.

    Unknown models are serialized with the longest delay regardless of tier.
    """
    for model_substring, paid_policy, free_policy in RATE_POLICY_TABLE:
        if model_substring in model_name:
            return paid_policy if paid_tier else free_policy
    return CONSERVATIVE_POLICY


@dataclass(frozen=True)
class TranslationItem:
    text: str
    target_language: str
    context: str = ''


@dataclass(frozen=True)
class Translated:
    text: str

    @property
    def value(self) -> str:
        return self.text

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    original_text: str

    @property
    def value(self) -> str:
        """The marked string persisted in place of a translation."""
        return mark_failed(self.original_text)

    @property
    def succeeded(self) -> bool:
        return False


class RateLimitedBatchTranslator:
    """
    Drives a translation capability in fixed-size concurrent batches.

    Items inside one batch are translated concurrently; between two batches the
    flow sleeps for the policy's delay. A failing item never aborts its batch:
    it resolves to :class:`Failed` while its siblings carry on.
    """

    def __init__(
            self,
            translator: TranslationCapability,
            rate_policy: RatePolicy,
            show_progress: bool = True,
            sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if rate_policy.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.translator = translator
        self.rate_policy = rate_policy
        self.show_progress = show_progress
        self._sleep = sleep

    async def translate_item(self, item: TranslationItem):
        """
        Translate one item, reconciling placeholders on success.

        Returns:
            Translated or Failed; never raises.
        """
        if should_bypass_translation(item.text):
            return Translated(item.text)

        try:
            translated_text = await self.translator.translate(item.text, item.target_language, item.context)
        except (OpenAIError, TranslationItemError) as api_exc:
            logger.warning(
                "Translation failed for \"%s\": %s - %s",
                item.text, api_exc.__class__.__name__, api_exc
            )
            return Failed(item.text)
        except Exception as general_exc:
            logger.error(
                "An unexpected error occurred while translating \"%s\": %s",
                item.text, general_exc, exc_info=True
            )
            return Failed(item.text)

        return Translated(reconcile_placeholders(item.text, translated_text))

    async def translate_all(self, items: List[TranslationItem]) -> list:
        """
        Translate ``items`` batch by batch.

        Args:
            items: The texts to translate with their target language and context hint.

        Returns:
            One Translated or Failed result per item, in input order.
        """
        results = []
        batch_size = self.rate_policy.batch_size
        description = f"Translating {items[0].target_language}" if items else "Translating"

        with tqdm(total=len(items), desc=description, unit="translation",
                  disable=not self.show_progress) as progress:
            for start in range(0, len(items), batch_size):
                batch = items[start:start + batch_size]
                batch_results = await asyncio.gather(*(self.translate_item(item) for item in batch))
                results.extend(batch_results)
                progress.update(len(batch))

                if start + batch_size < len(items):
                    logger.info("Progress: %d/%d translated...", len(results), len(items))
                    await self._sleep(self.rate_policy.batch_delay_ms / 1000)

        return results
