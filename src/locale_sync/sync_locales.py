"""
Keep every configured locale file in sync with the source locale.

Missing keys (and, in retry mode, keys still marked ``TODO: `` from an earlier
failure) are translated with the configured provider and written back to the
locale files. The run exits successfully even when some translations failed;
those are left marked in the files and counted in the summary.
"""
import asyncio
import logging
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from locale_sync.app_config import AppConfig, ConfigurationError, load_app_config
from locale_sync.batch_translator import (
    RateLimitedBatchTranslator,
    TranslationItem,
    resolve_rate_policy
)
from locale_sync.locale_tree import (
    LocaleFileError,
    LocaleTree,
    clone_tree,
    count_leaf_keys,
    load_locale_tree,
    save_locale_tree
)
from locale_sync.openai_translator import OpenAITranslator
from locale_sync.translation_validator import check_placeholder_parity, find_failed_paths
from locale_sync.tree_differ import MissingEntry, collect_failed, collect_missing
from locale_sync.tree_patcher import set_by_path

logger = logging.getLogger(__name__)


@dataclass
class SyncStats:
    """Counters accumulated across all locales of one invocation."""
    translated: int = 0
    failed: int = 0
    retried: int = 0
    updated_languages: List[str] = field(default_factory=list)
    # Dry run only: keys and languages that a real run would translate
    pending: int = 0
    pending_languages: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.updated_languages)


def collect_entries(source: LocaleTree, target: LocaleTree, retry_failed: bool) -> List[MissingEntry]:
    """Missing entries first, then, in retry mode, previously failed ones."""
    entries = collect_missing(source, target)
    if retry_failed:
        failed_entries = collect_failed(source, target)
        if failed_entries:
            logger.info("  Retrying %d failed translations", len(failed_entries))
        entries.extend(failed_entries)
    return entries


def _warn_on_placeholder_mismatches(language_code: str, entries: List[MissingEntry], values: List[str]) -> None:
    for entry, value in zip(entries, values):
        if not check_placeholder_parity(entry.value, value):
            logger.warning(
                "  Placeholder mismatch in %s for key '%s': \"%s\" -> \"%s\"",
                language_code, entry.path, entry.value, value
            )


async def sync_language(
        config: AppConfig,
        language_code: str,
        source: LocaleTree,
        batch_translator: Optional[RateLimitedBatchTranslator],
        stats: SyncStats
) -> bool:
    """
    Bring one locale file up to date with ``source``.

    Args:
        config: The run configuration.
        language_code: The target locale code, e.g. ``"de"``.
        source: The source-of-truth tree.
        batch_translator: Translator used for missing entries; unused in dry-run mode.
        stats: Run statistics, updated in place.

    Returns:
        True if the locale file was rewritten.

    Raises:
        LocaleFileError: If the locale file cannot be read or written.
    """
    language_name = config.language_codes.get(language_code, language_code)
    locale_path = config.locale_file_path(language_code)
    logger.info("Processing %s (%s)...", language_code, language_name)

    target = load_locale_tree(locale_path)
    entries = collect_entries(source, target, config.retry_failed)

    if not entries:
        logger.info("  %s is up to date (%d keys)", language_code, count_leaf_keys(target))
        if not config.retry_failed:
            leftover = find_failed_paths(target)
            if leftover:
                logger.info(
                    "  %s still has %d failed translations; run with RETRY_FAILED=true to retry them",
                    language_code, len(leftover)
                )
        return False

    logger.info("  Found %d missing keys", len(entries))

    if config.dry_run:
        for entry in entries:
            logger.info("  [Dry Run] Would translate '%s': \"%s\"", entry.path, entry.value)
        stats.pending += len(entries)
        stats.pending_languages.append(language_code)
        return False

    items = [TranslationItem(entry.value, language_code, entry.context) for entry in entries]
    logger.info("  Translating %d strings with %s...", len(items), config.model_name)
    results = await batch_translator.translate_all(items)

    failed_count = sum(1 for result in results if not result.succeeded)
    translated_count = len(results) - failed_count
    stats.translated += translated_count
    stats.failed += failed_count
    stats.retried += sum(1 for entry in entries if entry.is_retry)

    updated_target = clone_tree(target)
    values = [result.value for result in results]
    for entry, value in zip(entries, values):
        set_by_path(updated_target, entry.path, value)

    _warn_on_placeholder_mismatches(language_code, entries, values)

    save_locale_tree(locale_path, updated_target)
    stats.updated_languages.append(language_code)

    if failed_count:
        logger.warning("  Updated %s: %d translated, %d failed", language_code, translated_count, failed_count)
    else:
        logger.info("  Updated %s with %d new keys", language_code, translated_count)
    return True


def build_batch_translator(config: AppConfig) -> RateLimitedBatchTranslator:
    """Wire the OpenAI capability into a batch translator using the model's rate policy."""
    rate_policy = resolve_rate_policy(config.model_name, config.paid_tier)
    if config.paid_tier:
        logger.info(
            "Using paid tier rate limits (batch: %d, delay: %dms)",
            rate_policy.batch_size, rate_policy.batch_delay_ms
        )
    else:
        logger.info(
            "Using free tier rate limits (batch: %d, delay: %dms)",
            rate_policy.batch_size, rate_policy.batch_delay_ms
        )
        logger.info("Tip: set OPENAI_TIER=paid for much faster translations")

    translator = OpenAITranslator(
        client=config.openai_client,
        model_name=config.model_name,
        language_names=config.language_codes,
        app_description=config.app_description,
        temperature=config.temperature,
        max_tokens=config.max_output_tokens
    )
    return RateLimitedBatchTranslator(translator, rate_policy, show_progress=config.show_progress)


def log_summary(stats: SyncStats) -> None:
    if stats.pending_languages:
        logger.info(
            "[Dry Run] %d keys in %d languages would be translated: %s",
            stats.pending, len(stats.pending_languages), ", ".join(stats.pending_languages)
        )
        return

    if not stats.has_changes:
        logger.info("All translation files are up to date!")
        return

    logger.info("Translation files updated successfully!")
    logger.info("Summary:")
    logger.info("  - Total translated: %d keys", stats.translated)
    if stats.retried:
        logger.info("  - Retried: %d previously failed translations", stats.retried)
    if stats.failed:
        logger.warning("  - Total failed: %d keys (marked with TODO:)", stats.failed)
        logger.info("  - Run again with RETRY_FAILED=true to retry failed translations")
    logger.info("  - Please review translations for accuracy and context")


async def sync_all_locales(
        config: AppConfig,
        batch_translator: Optional[RateLimitedBatchTranslator] = None
) -> SyncStats:
    """
    Sync every configured target locale against the source locale, one at a time.

    Args:
        config: The run configuration.
        batch_translator: Translator to use; built from ``config`` when omitted.

    Returns:
        The accumulated run statistics.

    Raises:
        LocaleFileError: If any locale file cannot be read or written.
    """
    logger.info("Syncing translation files with %s.json (source of truth)", config.source_language)
    logger.info("Using API: %s", config.api_base_url)
    logger.info("Model: %s", config.model_name)

    source = load_locale_tree(config.source_file_path)
    logger.info("Source file has %d keys", count_leaf_keys(source))

    if batch_translator is None and not config.dry_run:
        batch_translator = build_batch_translator(config)

    stats = SyncStats()
    for language_code in config.language_codes:
        await sync_language(config, language_code, source, batch_translator, stats)

    log_summary(stats)
    return stats


def main() -> int:
    """
    Entry point. Returns 0 even when individual translations failed;
    only configuration and locale file errors produce a non-zero status.
    """
    try:
        config = load_app_config()
    except ConfigurationError as config_exc:
        logger.critical("Aborting: %s", config_exc)
        return 1

    try:
        asyncio.run(sync_all_locales(config))
    except LocaleFileError as file_exc:
        logger.critical("Aborting: %s", file_exc)
        return 1
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
