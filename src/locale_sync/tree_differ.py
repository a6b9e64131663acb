"""Find source leaves that a target locale tree is missing or failed to translate."""
import logging
from dataclasses import dataclass
from typing import List, Optional

from locale_sync.locale_tree import LocaleTree, is_leaf, is_node, is_sentinel, join_path

logger = logging.getLogger(__name__)

RETRY_CONTEXT_SUFFIX = " (retry)"


@dataclass(frozen=True)
class MissingEntry:
    """A source leaf that needs a (re)translation in one target locale."""
    path: str
    value: str
    context: str
    is_retry: bool = False


def build_context(parent_path: str, key: str) -> str:
    """Human-readable hint handed to the translation provider."""
    return f"Section: {parent_path}, Key: {key}"


def collect_missing(
        source: LocaleTree,
        target: LocaleTree,
        parent_path: str = '',
        missing: Optional[List[MissingEntry]] = None
) -> List[MissingEntry]:
    """
    Collect every source leaf whose key is absent from ``target``.

    Keys present on both sides are only descended into when the source value is
    a mapping; an existing target leaf is never reported, whatever it contains.
    If the target holds a non-mapping where the source has a mapping, the whole
    source sub-tree is reported as missing.

    Args:
        source: The source-of-truth tree (never mutated).
        target: The target locale tree (never mutated).
        parent_path: Dotted path of the current level.
        missing: Accumulator used during recursion.

    Returns:
        The missing entries, in source order.
    """
    if missing is None:
        missing = []

    for key, source_value in source.items():
        full_key = join_path(parent_path, key)

        if key not in target:
            if is_node(source_value):
                collect_missing(source_value, {}, full_key, missing)
            elif is_leaf(source_value):
                missing.append(MissingEntry(
                    path=full_key,
                    value=source_value,
                    context=build_context(parent_path, key)
                ))
            else:
                logger.debug("Skipping non-string source value at '%s'.", full_key)
        elif is_node(source_value):
            target_value = target[key]
            collect_missing(source_value, target_value if is_node(target_value) else {}, full_key, missing)

    return missing


def collect_failed(
        source: LocaleTree,
        target: LocaleTree,
        parent_path: str = '',
        failed: Optional[List[MissingEntry]] = None
) -> List[MissingEntry]:
    """
    Collect leaves present on both sides whose target value carries the failure marker.

    The returned entries hold the *source* text, not the marked target text,
    so the retry translates from the original.
    """
    if failed is None:
        failed = []

    for key, source_value in source.items():
        if key not in target:
            continue

        full_key = join_path(parent_path, key)
        target_value = target[key]

        if is_node(source_value):
            collect_failed(source_value, target_value if is_node(target_value) else {}, full_key, failed)
        elif is_leaf(source_value) and is_sentinel(target_value):
            failed.append(MissingEntry(
                path=full_key,
                value=source_value,
                context=build_context(parent_path, key) + RETRY_CONTEXT_SUFFIX,
                is_retry=True
            ))

    return failed
