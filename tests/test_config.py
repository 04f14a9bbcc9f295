import logging
from pathlib import Path

import pytest

from config import (
    config, DatabaseConfig, NormalizationConfig, ProcessingConfig,
    LoggingConfig, AnalysisConfig, split_env_list, setup_logging,
)


def test_environment_overrides_applied():
    assert config.environment == 'testing'
    assert config.normalization.separator == ', '
    assert config.normalization.entity_fields == ['countries', 'genres']
    assert config.analysis.excluded_genres == ['International Movies']
    assert config.paths.reports_dir.exists()


def test_database_path():
    assert DatabaseConfig(database_url='sqlite:///data/x.db').database_path == Path('data/x.db')
    assert DatabaseConfig(database_url='sqlite://').database_path is None
    assert DatabaseConfig(database_url='sqlite:///:memory:').database_path is None
    assert DatabaseConfig(database_url='postgresql://localhost/db').database_path is None


def test_separator_must_not_be_empty():
    with pytest.raises(ValueError):
        NormalizationConfig(separator='')


def test_fields_validated():
    assert NormalizationConfig(entity_fields=[' Genres ']).entity_fields == ['genres']
    with pytest.raises(ValueError):
        NormalizationConfig(entity_fields=['actors'])


def test_export_format_validated():
    assert ProcessingConfig(export_format='JSON').export_format == 'json'
    with pytest.raises(ValueError):
        ProcessingConfig(export_format='xml')


def test_log_level_validated():
    assert LoggingConfig(log_level='debug').log_level == 'DEBUG'
    with pytest.raises(ValueError):
        LoggingConfig(log_level='chatty')


def test_analysis_bounds():
    with pytest.raises(ValueError):
        AnalysisConfig(genre_min_percentage=120)


def test_split_env_list():
    assert split_env_list("International Movies, ,TV Shows ") == ['International Movies', 'TV Shows']


def test_setup_logging_writes_file(tmp_path):
    settings = LoggingConfig(log_file=tmp_path / 'logs' / 'run.log', log_level='INFO')
    root = setup_logging(settings)
    try:
        setup_logging(settings)
        ours = [h for h in root.handlers if getattr(h, '_catalog_handler', False)]
        assert len(ours) == 1

        logging.getLogger('scripts.test').info("hello from tests")
        for handler in ours:
            handler.flush()
        assert "hello from tests" in settings.log_file.read_text(encoding='utf-8')
    finally:
        for handler in [h for h in root.handlers if getattr(h, '_catalog_handler', False)]:
            root.removeHandler(handler)
            handler.close()


def test_is_sqlite_reads_url_backend():
    assert DatabaseConfig(database_url='sqlite+pysqlite:///data/x.db').is_sqlite
    assert not DatabaseConfig(database_url='postgresql://localhost/db').is_sqlite


def test_print_summary_shows_every_section(capsys):
    config.print_summary()
    out = capsys.readouterr().out
    for title in ("Database", "Files", "Normalization", "Report thresholds", "Logging"):
        assert title in out
    assert "International Movies" in out
    assert "', '" in out
