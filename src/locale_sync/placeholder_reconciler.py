import re
from typing import List

# i18next style interpolation, e.g. {{count}} or {{boardName}}
PLACEHOLDER_REGEX = re.compile(r'\{\{([^}]+)\}\}')

# Shapes a provider commonly mangles {{name}} into, most specific first so a
# shorter variant never matches inside a longer one.
MANGLED_VARIANT_TEMPLATES = (
    '{{{{ {name} }}}}',
    '%{{ {name} }}',
    '%{{{name}}}',
    '{{ {name} }}',
    '{{{name}}}',
)


def extract_template_placeholders(text: str) -> List[str]:
    """
    Return the distinct ``{{name}}`` placeholders in ``text``, in order of first occurrence.
    """
    placeholders = []
    for match in PLACEHOLDER_REGEX.finditer(text):
        placeholder = match.group(0)
        if placeholder not in placeholders:
            placeholders.append(placeholder)
    return placeholders


def should_bypass_translation(text: str) -> bool:
    """
    Return True for text that must be copied through rather than translated:
    a bare placeholder such as ``{{count}}``, or anything shorter than two characters.
    """
    if text.startswith('{{') and text.endswith('}}'):
        return True
    return len(text) < 2


def reconcile_placeholders(source_text: str, translated_text: str) -> str:
    """
    Make every ``{{name}}`` placeholder of ``source_text`` appear verbatim in the translation.

    Mangled forms such as ``{{ name }}``, ``{name}`` or ``%{name}`` are rewritten to
    the canonical form. When a placeholder vanished entirely but the rest of the
    source text survived untranslated, that fragment is swapped back for the full
    source text. The fragment is searched in the partially reconciled text, so
    placeholders already restored earlier in the loop count towards a match.
    Placeholders no heuristic can restore are left missing.

    Args:
        source_text: The original (source language) text.
        translated_text: The provider's translation.

    Returns:
        The translation with placeholders restored where possible.
    """
    placeholders = extract_template_placeholders(source_text)
    if not placeholders:
        return translated_text

    result = translated_text
    for placeholder in placeholders:
        if placeholder in result:
            continue

        var_name = placeholder[2:-2]
        for template in MANGLED_VARIANT_TEMPLATES:
            variant = template.format(name=var_name)
            if variant in result:
                result = result.replace(variant, placeholder)
                break

        if placeholder in result:
            continue

        # Last resort: keep the source text untranslated for this fragment.
        fragment = source_text.replace(placeholder, '', 1)
        if fragment.strip() and fragment in result:
            result = result.replace(fragment, source_text, 1)

    return result
