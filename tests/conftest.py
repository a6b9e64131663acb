import json
import os
from unittest.mock import AsyncMock

import pytest
from openai import OpenAIError

from locale_sync.app_config import AppConfig
from locale_sync.batch_translator import RateLimitedBatchTranslator, RatePolicy


class FakeTranslator:
    """
    Stand-in for the provider capability. Prefixes every text with the
    language code and raises for texts listed in ``fail_on``.
    """

    def __init__(self):
        self.calls = []
        self.fail_on = set()

    async def translate(self, text: str, target_language: str, context: str = '') -> str:
        self.calls.append((text, target_language, context))
        if text in self.fail_on:
            raise OpenAIError(f"Simulated provider failure for '{text}'")
        return f"[{target_language}] {text}"

    @property
    def texts(self):
        return [text for text, _, _ in self.calls]


@pytest.fixture
def fake_translator():
    return FakeTranslator()


@pytest.fixture
def batch_translator(fake_translator):
    """Batch translator over the fake provider, with no real inter-batch delay."""
    return RateLimitedBatchTranslator(
        fake_translator,
        RatePolicy(batch_size=3, batch_delay_ms=0),
        show_progress=False,
        sleep=AsyncMock()
    )


@pytest.fixture
def locales_dir(tmp_path):
    path = tmp_path / "locales"
    os.makedirs(path)
    return path


@pytest.fixture
def write_locale(locales_dir):
    def _write(code, tree, raw=None):
        file_path = locales_dir / f"{code}.json"
        content = raw if raw is not None else json.dumps(tree, ensure_ascii=False, indent=2) + "\n"
        file_path.write_text(content, encoding='utf-8')
        return file_path
    return _write


@pytest.fixture
def read_locale(locales_dir):
    def _read(code):
        with open(locales_dir / f"{code}.json", 'r', encoding='utf-8') as f:
            return json.load(f)
    return _read


@pytest.fixture
def make_config(tmp_path, locales_dir):
    """Factory for AppConfig values pointing at the temporary locales directory."""
    def _make(**overrides):
        values = {
            "project_root": str(tmp_path),
            "locales_dir": str(locales_dir),
            "source_language": "en",
            "language_codes": {"de": "German", "fr": "French"},
            "api_base_url": "https://api.openai.com/v1",
            "model_name": "test-model",
            "paid_tier": False,
            "temperature": 0.3,
            "max_output_tokens": 500,
            "app_description": "a test application",
            "retry_failed": False,
            "dry_run": False,
            "show_progress": False,
            "openai_client": None,
        }
        values.update(overrides)
        return AppConfig(**values)
    return _make
