"""Loading, saving and walking nested JSON locale trees."""
import copy
import json
import logging
import os
import shutil
import tempfile
from typing import Any, Dict, Iterator

import jsonschema

logger = logging.getLogger(__name__)

LocaleTree = Dict[str, Any]

# Leaf strings starting with this prefix mark a translation that failed on an
# earlier run and is a candidate for retry.
SENTINEL_PREFIX = "TODO: "

PATH_SEPARATOR = "."

DEFAULT_LOCALE_FILE_MODE = 0o644

# A locale tree is a mapping whose values are strings or further mappings.
# Anything else (arrays, numbers, null) is tolerated on load but never synced.
LOCALE_TREE_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$ref": "#/$defs/node",
    "$defs": {
        "node": {
            "type": "object",
            "additionalProperties": {
                "anyOf": [
                    {"type": "string"},
                    {"$ref": "#/$defs/node"}
                ]
            }
        }
    }
}


class LocaleFileError(Exception):
    """Raised when a locale file cannot be read, decoded or written."""


def is_node(value: Any) -> bool:
    return isinstance(value, dict)


def is_leaf(value: Any) -> bool:
    return isinstance(value, str)


def is_sentinel(value: Any) -> bool:
    """Return True if ``value`` is a leaf carrying the failed-translation marker."""
    return isinstance(value, str) and value.startswith(SENTINEL_PREFIX)


def mark_failed(original_text: str) -> str:
    return f"{SENTINEL_PREFIX}{original_text}"


def join_path(parent_path: str, key: str) -> str:
    return f"{parent_path}{PATH_SEPARATOR}{key}" if parent_path else key


def iter_leaf_paths(tree: LocaleTree, prefix: str = '') -> Iterator[str]:
    """
    Yield the dotted path of every non-mapping value in ``tree``, depth first.

    Args:
        tree: The locale tree to walk.
        prefix: Dotted path of ``tree`` inside its parent.
    """
    for key, value in tree.items():
        full_key = join_path(prefix, key)
        if is_node(value):
            yield from iter_leaf_paths(value, full_key)
        else:
            yield full_key


def count_leaf_keys(tree: LocaleTree) -> int:
    return sum(1 for _ in iter_leaf_paths(tree))


def clone_tree(tree: LocaleTree) -> LocaleTree:
    return copy.deepcopy(tree)


def load_locale_tree(file_path: str) -> LocaleTree:
    """
    Read a UTF-8 JSON locale file.

    Args:
        file_path: Path to the ``<code>.json`` file.

    Returns:
        The parsed tree, with key order preserved.

    Raises:
        LocaleFileError: If the file cannot be read or decoded, or its root is not a mapping.
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            tree = json.load(f)
    except (OSError, UnicodeDecodeError) as e:
        raise LocaleFileError(f"Could not read locale file '{file_path}'. Reason: {e}") from e
    except json.JSONDecodeError as e:
        raise LocaleFileError(f"Locale file '{file_path}' is not valid JSON: {e}") from e

    if not is_node(tree):
        raise LocaleFileError(f"Locale file '{file_path}' must contain a JSON object at the root.")

    try:
        jsonschema.validate(instance=tree, schema=LOCALE_TREE_SCHEMA)
    except jsonschema.ValidationError as e:
        path = PATH_SEPARATOR.join(str(part) for part in e.absolute_path)
        logger.warning(
            "Locale file '%s' has a value that is neither a string nor a mapping at '%s'; "
            "such values are left untouched by the sync.",
            file_path,
            path
        )

    return tree


def dump_locale_tree(tree: LocaleTree) -> str:
    """Serialize a tree the way locale files are stored: 2-space indent, trailing newline."""
    return json.dumps(tree, ensure_ascii=False, indent=2) + "\n"


def save_locale_tree(file_path: str, tree: LocaleTree) -> None:
    """
    Replace ``file_path`` with the serialized ``tree`` in a single step.

    The content is written to a temporary file in the same directory first and
    then moved over the original, so readers never observe a partial file.

    Raises:
        LocaleFileError: If the file cannot be written.
    """
    content = dump_locale_tree(tree)
    target_dir = os.path.dirname(os.path.abspath(file_path))
    temp_file_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode='w', delete=False, dir=target_dir, suffix='.json.tmp', encoding='utf-8'
        ) as temp_f:
            temp_file_path = temp_f.name
            temp_f.write(content)
        # NamedTemporaryFile creates 0600; keep the permissions of the file being replaced.
        if os.path.exists(file_path):
            shutil.copymode(file_path, temp_file_path)
        else:
            os.chmod(temp_file_path, DEFAULT_LOCALE_FILE_MODE)
        os.replace(temp_file_path, file_path)
    except OSError as e:
        if temp_file_path and os.path.exists(temp_file_path):
            os.remove(temp_file_path)
        raise LocaleFileError(f"Could not write locale file '{file_path}'. Reason: {e}") from e
