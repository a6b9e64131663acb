from locale_sync.locale_tree import LocaleTree, PATH_SEPARATOR, is_node


def set_by_path(tree: LocaleTree, path: str, value: str) -> None:
    """
    Assign ``value`` at dotted ``path`` inside ``tree``, creating intermediate mappings.

    An intermediate segment that currently holds a non-mapping value is replaced
    by an empty mapping.

    Args:
        tree: The tree to mutate in place.
        path: Dotted leaf path, e.g. ``"flash.progress.title"``.
        value: The leaf string to store.
    """
    keys = path.split(PATH_SEPARATOR)
    current = tree
    for key in keys[:-1]:
        if not is_node(current.get(key)):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value
