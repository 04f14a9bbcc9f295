"""
Shared fixtures.

Every configured path points into a throwaway directory before `config`
is imported, so running the suite never touches ./data.
"""

import os
import csv
import tempfile
from pathlib import Path

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="netflix_catalog_tests_"))

os.environ.update({
    'DATABASE_URL': f"sqlite:///{_TEST_ROOT / 'netflix.db'}",
    'DATA_DIR': str(_TEST_ROOT / 'data'),
    'RAW_DATA_DIR': str(_TEST_ROOT / 'data' / 'raw'),
    'REPORTS_DIR': str(_TEST_ROOT / 'data' / 'reports'),
    'LOGS_DIR': str(_TEST_ROOT / 'data' / 'logs'),
    'LOG_FILE': str(_TEST_ROOT / 'data' / 'logs' / 'tests.log'),
    'CATALOG_CSV': str(_TEST_ROOT / 'data' / 'raw' / 'netflix_titles.csv'),
    'ENVIRONMENT': 'testing',
    'MPLBACKEND': 'Agg',
})

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from scripts.load_catalog_to_db import Base, NetflixTitle, CATALOG_COLUMNS, make_engine

HEADER = list(CATALOG_COLUMNS)


def title_row(show_id, country=None, listed_in="Dramas", type_="Movie", title=None,
              director=None, date_added=None, release_year=2020, rating="TV-MA"):
    """One CSV row in catalog column order."""
    return [
        show_id, type_, title or f"Title {show_id}", director or "", "",
        country or "", date_added or "", str(release_year), rating or "",
        "90 min", listed_in or "", "A description, with a comma.",
    ]


def sample_catalog_rows():
    """
    Twelve Polish titles plus two others.

    Poland: 12 titles (3 TV-MA, 9 TV-14), France 1, United States 1, India 1.
    """
    rows = []
    for i in range(1, 13):
        rows.append(title_row(
            f"p{i}",
            country="France, Poland" if i == 1 else "Poland",
            listed_in="Dramas, International Movies" if i <= 8 else "TV Dramas",
            type_="Movie" if i <= 8 else "TV Show",
            title=f"Polish Title {i:02d}",
            director="Agnieszka Holland" if i in (1, 9) else None,
            date_added="January 5, 2020" if i <= 6 else "March 3, 2021",
            release_year=2010 + i,
            rating="TV-MA" if i <= 3 else "TV-14",
        ))
    rows.append(title_row(
        "u1", country="United States, India, United States", listed_in="Comedies",
        title="American Comedy", director="A", release_year=1999, rating="PG",
    ))
    rows.append(title_row(
        "u2", country=None, listed_in="Comedies, Dramas",
        title="Old Classic", director="A", release_year=1942, rating=None,
    ))
    return rows


def write_csv(path: Path, rows, header=True) -> Path:
    with open(path, 'w', encoding='utf-8', newline='') as f:
        writer = csv.writer(f)
        if header:
            writer.writerow(HEADER)
        writer.writerows(rows)
    return path


@pytest.fixture
def catalog_engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(catalog_engine):
    db = sessionmaker(bind=catalog_engine, autoflush=False)()
    yield db
    db.close()


@pytest.fixture
def sample_csv(tmp_path):
    return write_csv(tmp_path / "netflix_titles.csv", sample_catalog_rows())


@pytest.fixture
def loaded_engine(catalog_engine, session, sample_csv):
    """Engine with the sample catalog loaded and normalized."""
    from scripts.load_catalog_to_db import load_catalog
    from scripts.normalize_catalog import normalize_catalog

    load_catalog(session, sample_csv, batch_size=5, show_progress=False)
    normalize_catalog(catalog_engine, fields=['countries', 'genres'],
                      separator=', ', batch_size=5, show_progress=False)
    return catalog_engine
