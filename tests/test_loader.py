from conftest import HEADER, title_row, write_csv, sample_catalog_rows

import pytest

from scripts.load_catalog_to_db import (
    NetflixTitle, MalformedRowError, LoadReport, parse_catalog_row,
    read_catalog_in_batches, is_header_row, load_catalog, clean_value,
    create_tables, verify_database,
)


def test_clean_value_blank_to_none():
    assert clean_value("") is None
    assert clean_value("   ") is None
    assert clean_value(None) is None
    assert clean_value(" September 25, 2021") == "September 25, 2021"


def test_parse_row_types():
    record = parse_catalog_row(title_row("s1", country="Poland", release_year=2019), 2)
    assert record['show_id'] == "s1"
    assert record['release_year'] == 2019
    assert record['country'] == "Poland"
    assert record['director'] is None


def test_parse_row_wrong_column_count():
    with pytest.raises(MalformedRowError) as excinfo:
        parse_catalog_row(["s1", "Movie", "Short row"], 7)
    assert excinfo.value.line_number == 7
    assert "expected 12 columns" in excinfo.value.reason


def test_parse_row_non_numeric_year():
    row = title_row("s1")
    row[7] = "twenty"
    with pytest.raises(MalformedRowError, match="release_year"):
        parse_catalog_row(row, 3)


def test_parse_row_missing_show_id():
    with pytest.raises(MalformedRowError, match="show_id"):
        parse_catalog_row(title_row(""), 3)


def test_header_detection():
    assert is_header_row(HEADER)
    assert not is_header_row(title_row("s1"))
    assert not is_header_row([])


def test_read_batches_auto_detects_header(tmp_path):
    path = write_csv(tmp_path / "with_header.csv", [title_row("s1"), title_row("s2"), title_row("s3")])
    batches = list(read_catalog_in_batches(path, batch_size=2))
    assert [len(b) for b in batches] == [2, 1]
    assert [row[0] for _, row in batches[0]] == ["s1", "s2"]


def test_read_batches_without_header(tmp_path):
    path = write_csv(tmp_path / "no_header.csv", [title_row("s1"), title_row("s2")], header=False)
    rows = [row for batch in read_catalog_in_batches(path) for _, row in batch]
    assert [row[0] for row in rows] == ["s1", "s2"]


def test_read_batches_forced_header_skips_first_row(tmp_path):
    path = write_csv(tmp_path / "no_header.csv", [title_row("s1"), title_row("s2")], header=False)
    rows = [row for batch in read_catalog_in_batches(path, has_header=True) for _, row in batch]
    assert [row[0] for row in rows] == ["s2"]


def test_load_catalog(session, sample_csv):
    report = load_catalog(session, sample_csv, batch_size=4, show_progress=False)
    assert isinstance(report, LoadReport)
    assert report.loaded == 14
    assert report.skipped == []
    assert report.duplicates == []
    assert session.query(NetflixTitle).count() == 14

    u2 = session.get(NetflixTitle, "u2")
    assert u2.country is None
    assert u2.rating is None
    assert u2.release_year == 1942
    assert u2.description == "A description, with a comma."


def test_load_skips_malformed_rows_and_duplicates(session, tmp_path):
    bad_year = title_row("s3")
    bad_year[7] = "n/a"
    rows = [
        title_row("s1"),
        ["s2", "Movie", "Too short"],
        bad_year,
        title_row("s1", title="Second copy"),
        title_row("s4"),
    ]
    path = write_csv(tmp_path / "messy.csv", rows)

    report = load_catalog(session, path, batch_size=2, show_progress=False)

    assert report.loaded == 2
    assert [line for line, _ in report.skipped] == [3, 4]
    assert report.duplicates == [(5, "s1")]
    assert report.total_rows == 5
    assert session.get(NetflixTitle, "s1").title == "Title s1"


def test_load_twice_reports_existing_ids_as_duplicates(session, sample_csv):
    load_catalog(session, sample_csv, show_progress=False)
    report = load_catalog(session, sample_csv, show_progress=False)
    assert report.loaded == 0
    assert len(report.duplicates) == 14


def test_create_tables_recreate_drops_data(catalog_engine, session, sample_csv):
    load_catalog(session, sample_csv, show_progress=False)
    session.close()

    assert create_tables(catalog_engine, recreate=True, assume_yes=True)
    assert session.query(NetflixTitle).count() == 0


def test_verify_database_counts(session, sample_csv):
    load_catalog(session, sample_csv, show_progress=False)
    counts = verify_database(session)
    assert counts['netflix'] == 14
    assert counts['countries'] == 0
