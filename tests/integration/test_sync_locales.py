"""
Integration tests for the sync run: real locale files on disk, fake provider.
"""
import logging
from unittest.mock import AsyncMock, patch

import pytest

from locale_sync.app_config import ConfigurationError
from locale_sync.batch_translator import RateLimitedBatchTranslator, RatePolicy
from locale_sync.locale_tree import LocaleFileError, is_sentinel, iter_leaf_paths
from locale_sync.openai_translator import OpenAITranslator
from locale_sync.sync_locales import (
    SyncStats,
    build_batch_translator,
    main,
    sync_all_locales
)

SOURCE = {
    "app": {
        "title": "Armbian Imager",
        "greeting": "Hello {{name}}"
    },
    "flash": {
        "start": "Start flashing",
        "cancel": "Cancel",
        "progress": {
            "count": "{{count}}",
            "written": "{{count}} MB written"
        }
    },
    "footer": "Made with care"
}


def get_by_path(tree, path):
    value = tree
    for key in path.split('.'):
        value = value[key]
    return value


@pytest.fixture
def source_file(write_locale):
    return write_locale("en", SOURCE)


@pytest.mark.asyncio
async def test_missing_leaves_are_translated_and_written(
        make_config, write_locale, read_locale, source_file, batch_translator, fake_translator):
    write_locale("de", {"app": {"title": "Armbian Imager"}, "footer": "Mit Sorgfalt gemacht"})
    write_locale("fr", {})

    stats = await sync_all_locales(make_config(), batch_translator)

    for code in ("de", "fr"):
        tree = read_locale(code)
        for path in iter_leaf_paths(SOURCE):
            value = get_by_path(tree, path)
            assert value
            assert not is_sentinel(value)

    de_tree = read_locale("de")
    assert de_tree["app"]["title"] == "Armbian Imager"
    assert de_tree["footer"] == "Mit Sorgfalt gemacht"
    assert de_tree["app"]["greeting"] == "[de] Hello {{name}}"
    assert de_tree["flash"]["progress"]["written"] == "[de] {{count}} MB written"
    assert stats.translated == 5 + 7
    assert stats.failed == 0
    assert stats.updated_languages == ["de", "fr"]
    assert ("Start flashing", "de", "Section: flash, Key: start") in fake_translator.calls


@pytest.mark.asyncio
async def test_written_file_is_pretty_printed_with_trailing_newline(
        make_config, write_locale, locales_dir, source_file, batch_translator):
    write_locale("de", {})

    await sync_all_locales(make_config(language_codes={"de": "German"}), batch_translator)

    content = (locales_dir / "de.json").read_text(encoding='utf-8')
    assert content.startswith('{\n  "app": {\n    "title": ')
    assert content.endswith('}\n')
    assert not content.endswith('\n\n')


@pytest.mark.asyncio
async def test_second_run_changes_nothing(
        make_config, write_locale, locales_dir, source_file, batch_translator, fake_translator):
    write_locale("de", {"app": {"title": "Armbian Imager"}})
    write_locale("fr", {"footer": "Fait avec soin"})
    config = make_config()

    await sync_all_locales(config, batch_translator)
    first_contents = {code: (locales_dir / f"{code}.json").read_bytes() for code in ("de", "fr")}
    calls_after_first_run = len(fake_translator.calls)

    stats = await sync_all_locales(config, batch_translator)

    assert {code: (locales_dir / f"{code}.json").read_bytes() for code in ("de", "fr")} == first_contents
    assert len(fake_translator.calls) == calls_after_first_run
    assert stats == SyncStats()


@pytest.mark.asyncio
async def test_one_failing_item_is_marked_and_the_rest_persisted(
        make_config, write_locale, read_locale, source_file, batch_translator, fake_translator):
    write_locale("de", {})
    fake_translator.fail_on.add("Cancel")

    stats = await sync_all_locales(make_config(language_codes={"de": "German"}), batch_translator)

    tree = read_locale("de")
    assert tree["flash"]["cancel"] == "TODO: Cancel"
    assert tree["flash"]["start"] == "[de] Start flashing"
    assert tree["app"]["title"] == "[de] Armbian Imager"
    assert tree["footer"] == "[de] Made with care"
    assert stats.failed == 1
    assert stats.translated == 6


@pytest.mark.asyncio
async def test_retry_resubmits_the_source_text(
        make_config, write_locale, read_locale, source_file, batch_translator, fake_translator):
    complete = {
        "app": {"title": "Armbian Imager", "greeting": "TODO: Hallo {{ name }} kaputt"},
        "flash": {
            "start": "Schreiben starten",
            "cancel": "Abbrechen",
            "progress": {"count": "{{count}}", "written": "{{count}} MB geschrieben"}
        },
        "footer": "Mit Sorgfalt gemacht"
    }
    write_locale("de", complete)

    stats = await sync_all_locales(
        make_config(language_codes={"de": "German"}, retry_failed=True),
        batch_translator
    )

    assert fake_translator.calls == [("Hello {{name}}", "de", "Section: app, Key: greeting (retry)")]
    assert read_locale("de")["app"]["greeting"] == "[de] Hello {{name}}"
    assert stats.retried == 1
    assert stats.translated == 1


@pytest.mark.asyncio
async def test_retry_entries_follow_missing_entries(
        make_config, write_locale, source_file, batch_translator, fake_translator):
    write_locale("de", {"app": {"title": "TODO: Armbian Imager"}})

    await sync_all_locales(make_config(language_codes={"de": "German"}, retry_failed=True), batch_translator)

    assert fake_translator.texts[-1] == "Armbian Imager"
    assert fake_translator.calls[-1][2].endswith(" (retry)")
    assert "Armbian Imager" not in fake_translator.texts[:-1]


@pytest.mark.asyncio
async def test_failed_entries_are_left_alone_without_retry_mode(
        make_config, write_locale, locales_dir, source_file, batch_translator, fake_translator):
    raw = '{"app": {"title": "TODO: Armbian Imager", "greeting": "x"}, "flash": {"start": "x", "cancel": "x", ' \
          '"progress": {"count": "x", "written": "x"}}, "footer": "x"}'
    write_locale("de", None, raw=raw)

    stats = await sync_all_locales(make_config(language_codes={"de": "German"}), batch_translator)

    assert (locales_dir / "de.json").read_text(encoding='utf-8') == raw
    assert fake_translator.calls == []
    assert stats.retried == 0


@pytest.mark.asyncio
async def test_structurally_complete_target_is_not_written(
        make_config, write_locale, locales_dir, source_file, batch_translator, fake_translator):
    raw = '{"footer":"?","flash":{"progress":{"written":"?","count":"?"},"cancel":"?","start":"?"},' \
          '"app":{"greeting":"no placeholder","title":"?"},"extra":"kept"}'
    write_locale("de", None, raw=raw)

    stats = await sync_all_locales(make_config(language_codes={"de": "German"}), batch_translator)

    assert (locales_dir / "de.json").read_text(encoding='utf-8') == raw
    assert fake_translator.calls == []
    assert stats.updated_languages == []


@pytest.mark.asyncio
async def test_placeholder_only_leaf_is_copied_not_translated(
        make_config, write_locale, read_locale, source_file, batch_translator, fake_translator):
    write_locale("de", {})

    await sync_all_locales(make_config(language_codes={"de": "German"}), batch_translator)

    assert read_locale("de")["flash"]["progress"]["count"] == "{{count}}"
    assert "{{count}}" not in fake_translator.texts


@pytest.mark.asyncio
async def test_dry_run_writes_nothing(make_config, write_locale, locales_dir, source_file):
    write_locale("de", {"footer": "Mit Sorgfalt gemacht"})
    before = (locales_dir / "de.json").read_text(encoding='utf-8')

    stats = await sync_all_locales(make_config(language_codes={"de": "German"}, dry_run=True))

    assert (locales_dir / "de.json").read_text(encoding='utf-8') == before
    assert stats.updated_languages == []
    assert stats.translated == 0


@pytest.mark.asyncio
async def test_dry_run_summary_reports_pending_work(make_config, write_locale, source_file, caplog):
    write_locale("de", {"footer": "Mit Sorgfalt gemacht"})
    write_locale("fr", {})
    caplog.set_level(logging.INFO, logger="locale_sync")

    stats = await sync_all_locales(make_config(dry_run=True))

    assert stats.pending == 6 + 7
    assert stats.pending_languages == ["de", "fr"]
    assert "[Dry Run] 13 keys in 2 languages would be translated: de, fr" in caplog.text
    assert "All translation files are up to date!" not in caplog.text


@pytest.mark.asyncio
async def test_dry_run_with_nothing_pending_reports_up_to_date(make_config, write_locale, source_file, caplog):
    write_locale("de", SOURCE)
    caplog.set_level(logging.INFO, logger="locale_sync")

    stats = await sync_all_locales(make_config(language_codes={"de": "German"}, dry_run=True))

    assert stats.pending_languages == []
    assert "All translation files are up to date!" in caplog.text


class PlaceholderDroppingTranslator:
    """Answers every request with a fixed text that carries no placeholders."""

    async def translate(self, text, target_language, context=''):
        return "Hallo"


@pytest.mark.asyncio
async def test_placeholder_mismatch_is_warned_and_file_still_written(
        make_config, write_locale, read_locale, caplog):
    write_locale("en", {"greeting": "Hello {{name}}"})
    write_locale("de", {})
    batch_translator = RateLimitedBatchTranslator(
        PlaceholderDroppingTranslator(), RatePolicy(3, 0), show_progress=False, sleep=AsyncMock()
    )
    caplog.set_level(logging.WARNING, logger="locale_sync")

    stats = await sync_all_locales(make_config(language_codes={"de": "German"}), batch_translator)

    assert read_locale("de") == {"greeting": "Hallo"}
    assert stats.updated_languages == ["de"]
    mismatch_records = [record for record in caplog.records if "Placeholder mismatch" in record.getMessage()]
    assert len(mismatch_records) == 1
    assert mismatch_records[0].levelno == logging.WARNING
    assert "greeting" in mismatch_records[0].getMessage()


@pytest.mark.asyncio
async def test_leftover_failures_hint_at_retry_mode(
        make_config, write_locale, source_file, batch_translator, fake_translator, caplog):
    complete = {
        "app": {"title": "TODO: Armbian Imager", "greeting": "Hallo {{name}}"},
        "flash": {
            "start": "Schreiben starten",
            "cancel": "TODO: Cancel",
            "progress": {"count": "{{count}}", "written": "{{count}} MB geschrieben"}
        },
        "footer": "Mit Sorgfalt gemacht"
    }
    write_locale("de", complete)
    caplog.set_level(logging.INFO, logger="locale_sync")

    await sync_all_locales(make_config(language_codes={"de": "German"}), batch_translator)

    assert fake_translator.calls == []
    assert "de still has 2 failed translations; run with RETRY_FAILED=true to retry them" in caplog.text


@pytest.mark.asyncio
async def test_missing_target_file_aborts_the_run(make_config, write_locale, source_file, batch_translator):
    write_locale("fr", {})

    with pytest.raises(LocaleFileError):
        await sync_all_locales(make_config(language_codes={"de": "German", "fr": "French"}), batch_translator)


@pytest.mark.asyncio
async def test_missing_source_file_aborts_before_any_target_is_touched(
        make_config, write_locale, locales_dir, batch_translator, fake_translator):
    write_locale("de", {})

    with pytest.raises(LocaleFileError):
        await sync_all_locales(make_config(language_codes={"de": "German"}), batch_translator)

    assert (locales_dir / "de.json").read_text(encoding='utf-8') == "{}\n"
    assert fake_translator.calls == []


def test_build_batch_translator_uses_model_policy(make_config):
    config = make_config(model_name="gpt-4o-mini", paid_tier=True, openai_client=object())

    batch_translator = build_batch_translator(config)

    assert batch_translator.rate_policy == RatePolicy(50, 300)
    assert isinstance(batch_translator.translator, OpenAITranslator)
    assert batch_translator.translator.language_name("de") == "German"
    assert batch_translator.translator.client is config.openai_client


class TestMain:

    def setup_method(self):
        logging.disable(logging.CRITICAL)

    def teardown_method(self):
        logging.disable(logging.NOTSET)

    def test_configuration_error_exits_non_zero(self):
        with patch("locale_sync.sync_locales.load_app_config", side_effect=ConfigurationError("no key")):
            assert main() == 1

    def test_locale_file_error_exits_non_zero(self, make_config):
        with patch("locale_sync.sync_locales.load_app_config", return_value=make_config()):
            with patch("locale_sync.sync_locales.sync_all_locales",
                       new_callable=AsyncMock, side_effect=LocaleFileError("unreadable")):
                assert main() == 1

    def test_failed_translations_still_exit_successfully(self, make_config):
        with patch("locale_sync.sync_locales.load_app_config", return_value=make_config()):
            with patch("locale_sync.sync_locales.sync_all_locales",
                       new_callable=AsyncMock, return_value=SyncStats(translated=3, failed=2)):
                assert main() == 0
