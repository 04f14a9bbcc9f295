from conftest import title_row, write_csv

import pytest
from sqlalchemy.orm import Session

from scripts.load_catalog_to_db import (
    NetflixTitle, Country, TitleCountry, Genre, TitleGenre, load_catalog
)
from scripts.normalize_catalog import (
    NORMALIZED_FIELDS, normalize_catalog, read_field_values
)


def test_read_field_values_follows_load_order(session, tmp_path):
    rows = [title_row("s9", country="Chile"), title_row("s1", country="Peru"), title_row("s5")]
    load_catalog(session, write_csv(tmp_path / "order.csv", rows), show_progress=False)

    values = list(read_field_values(session, NetflixTitle.country))
    assert values == [("s9", "Chile"), ("s1", "Peru"), ("s5", None)]


def test_normalize_writes_entities_and_junctions(loaded_engine, session):
    countries = {c.country_name: (c.country_id, c.title_counter) for c in session.query(Country)}
    assert countries == {
        "France": (1, 1),
        "Poland": (2, 12),
        "United States": (3, 1),
        "India": (4, 1),
    }
    assert session.query(TitleCountry).count() == 15
    assert session.query(TitleCountry).filter_by(show_id="u1").count() == 2
    assert session.query(TitleCountry).filter_by(show_id="u2").count() == 0

    genres = {g.genre_name: g.title_counter for g in session.query(Genre)}
    assert genres == {
        "Dramas": 9,
        "International Movies": 8,
        "TV Dramas": 4,
        "Comedies": 2,
    }
    assert session.query(TitleGenre).count() == 23


def test_counters_equal_junction_rows(loaded_engine, session):
    for country in session.query(Country):
        rows = session.query(TitleCountry).filter_by(country_id=country.country_id).count()
        assert rows == country.title_counter


def test_rerun_rebuilds_identically(loaded_engine, session):
    before = sorted((c.country_id, c.country_name, c.title_counter) for c in session.query(Country))
    session.close()

    results = normalize_catalog(loaded_engine, fields=['countries'], separator=', ',
                                batch_size=3, show_progress=False)

    after = sorted((c.country_id, c.country_name, c.title_counter) for c in session.query(Country))
    assert before == after
    assert session.query(TitleCountry).count() == results['countries'].pair_count == 15
    # genres untouched by a countries-only run
    assert session.query(Genre).count() == 4


def test_unknown_field_rejected(catalog_engine):
    with pytest.raises(ValueError, match="Unknown field"):
        normalize_catalog(catalog_engine, fields=['actors'], show_progress=False)


def test_normalized_fields_cover_config_choices():
    from config import KNOWN_NORMALIZED_FIELDS
    assert set(NORMALIZED_FIELDS) == set(KNOWN_NORMALIZED_FIELDS)


def fail_on_batch(monkeypatch, model, batch_number):
    """Make the n-th bulk insert into `model` raise."""
    original = Session.bulk_insert_mappings
    calls = []

    def bulk_insert_mappings(self, mapper, mappings, *args, **kwargs):
        if mapper is model:
            calls.append(len(mappings))
            if len(calls) == batch_number:
                raise RuntimeError("insert failed")
        return original(self, mapper, mappings, *args, **kwargs)

    monkeypatch.setattr(Session, "bulk_insert_mappings", bulk_insert_mappings)


def test_failed_junction_batch_leaves_no_partial_rows(catalog_engine, session, sample_csv, monkeypatch):
    load_catalog(session, sample_csv, show_progress=False)
    session.close()
    fail_on_batch(monkeypatch, TitleCountry, 2)

    with pytest.raises(RuntimeError):
        normalize_catalog(catalog_engine, fields=['countries'], separator=', ',
                          batch_size=5, show_progress=False)

    assert session.query(Country).count() == 0
    assert session.query(TitleCountry).count() == 0


def test_failure_in_later_field_rolls_back_earlier_fields(catalog_engine, session, sample_csv, monkeypatch):
    load_catalog(session, sample_csv, show_progress=False)
    session.close()
    fail_on_batch(monkeypatch, TitleGenre, 1)

    with pytest.raises(RuntimeError):
        normalize_catalog(catalog_engine, fields=['countries', 'genres'], separator=', ',
                          batch_size=5, show_progress=False)

    assert session.query(Country).count() == 0
    assert session.query(TitleCountry).count() == 0
    assert session.query(Genre).count() == 0
    assert session.query(TitleGenre).count() == 0
