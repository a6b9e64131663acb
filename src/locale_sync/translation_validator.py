from typing import List
from collections import Counter

from locale_sync.locale_tree import LocaleTree, is_node, is_sentinel, join_path
from locale_sync.placeholder_reconciler import PLACEHOLDER_REGEX


def check_placeholder_parity(base_string: str, target_string: str) -> bool:
    """
    Checks if every ``{{name}}`` placeholder of the base string survives in the target.

    Placeholders may be reordered. A target that failed and carries the
    ``TODO: `` marker still embeds the base string, so it passes as well.

    Args:
        base_string: The source-language string.
        target_string: The translated string.

    Returns:
        True if the multiset of placeholders is identical, False otherwise.
    """
    base_placeholders = Counter(PLACEHOLDER_REGEX.findall(base_string))
    target_placeholders = Counter(PLACEHOLDER_REGEX.findall(target_string))

    return base_placeholders == target_placeholders


def find_failed_paths(tree: LocaleTree, parent_path: str = '') -> List[str]:
    """
    Lists the dotted paths of every leaf in ``tree`` carrying the failure marker.

    Args:
        tree: A target locale tree.
        parent_path: Dotted path of ``tree`` inside its parent.

    Returns:
        The marked paths in tree order.
    """
    failed = []
    for key, value in tree.items():
        full_key = join_path(parent_path, key)
        if is_node(value):
            failed.extend(find_failed_paths(value, full_key))
        elif is_sentinel(value):
            failed.append(full_key)
    return failed
