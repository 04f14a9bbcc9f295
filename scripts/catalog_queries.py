"""
============================================================================
NETFLIX CATALOG - Analytical Queries
============================================================================
Read-only queries over the flat `netflix` table and the normalized
country/genre tables. Every query returns a pandas DataFrame (or a
scalar for single counts).

📊 QUERY GROUPS:
    1. Data quality      - table structure, NULL counts, duplicate ids
    2. Exploration       - totals, previews, oldest years, titles by country
    3. Genres            - type breakdown for genre families
    4. Temporal          - release years, monthly/yearly additions
    5. Relationships     - director self-joins
    6. Normalized model  - rating share, genre specialization, year stats

🔧 THRESHOLDS:
    Country thresholds compare against countries.title_counter, which is
    computed over every title. The same counter is the denominator of
    the percentage columns, so filtering never shrinks a denominator.

🔧 USAGE:
    from scripts.catalog_queries import rating_share_by_country
    df = rating_share_by_country(min_titles=10)
============================================================================
"""

import sys
from pathlib import Path
from typing import Optional, Dict, Any, Sequence

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import config
import pandas as pd
from sqlalchemy import text, bindparam, inspect
from sqlalchemy.engine import Engine
from scripts.load_catalog_to_db import engine, CATALOG_COLUMNS
from scripts.normalize_catalog import NORMALIZED_FIELDS

MONTHS = (
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
)


def run_query(sql, params: Optional[Dict[str, Any]] = None, target_engine: Engine = None) -> pd.DataFrame:
    """Execute a read query and return the rows as a DataFrame."""
    target_engine = target_engine or engine
    statement = text(sql) if isinstance(sql, str) else sql
    with target_engine.connect() as conn:
        return pd.read_sql(statement, conn, params=params or {})


def run_scalar(sql: str, params: Optional[Dict[str, Any]] = None, target_engine: Engine = None):
    """Execute a query returning a single value."""
    target_engine = target_engine or engine
    with target_engine.connect() as conn:
        return conn.execute(text(sql), params or {}).scalar()


def percentage(part: float, whole: float, precision: int = None) -> float:
    """
    Share of `part` in `whole` as a rounded percentage.

    Same arithmetic as the SQL reports: round(part * 100.0 / whole, precision).

    Raises:
        ValueError: if whole is not positive
    """
    if precision is None:
        precision = config.analysis.percent_precision
    if whole <= 0:
        raise ValueError(f"whole must be positive, got {whole}")
    return round(part * 100.0 / whole, precision)


def _escape_like(value: str, escape: str = '\\') -> str:
    """Make LIKE wildcards in `value` literal."""
    return (
        value.replace(escape, escape * 2)
        .replace('%', escape + '%')
        .replace('_', escape + '_')
    )


def _entity_tables(entity: str):
    if entity not in NORMALIZED_FIELDS:
        raise ValueError(f"Unknown entity '{entity}'; choose from {list(NORMALIZED_FIELDS)}")
    field = NORMALIZED_FIELDS[entity]
    return field.entity_model.__tablename__, field.junction_model.__tablename__, field


# ============================================================================
# DATA QUALITY CHECKS
# ============================================================================

def describe_table(target_engine: Engine = None, table: str = 'netflix') -> pd.DataFrame:
    """Column name, type, nullability and primary-key flag of a table."""
    target_engine = target_engine or engine
    inspector = inspect(target_engine)
    pk_columns = set(inspector.get_pk_constraint(table).get('constrained_columns') or [])

    return pd.DataFrame([
        {
            'name': column['name'],
            'type': str(column['type']),
            'nullable': bool(column['nullable']),
            'primary_key': column['name'] in pk_columns,
        }
        for column in inspector.get_columns(table)
    ])


def null_counts(target_engine: Engine = None) -> pd.DataFrame:
    """One row with the number of NULL values per column."""
    sums = ',\n    '.join(
        f"SUM(CASE WHEN {column} IS NULL THEN 1 ELSE 0 END) AS {column}_nulls"
        for column in CATALOG_COLUMNS
    )
    df = run_query(f"SELECT\n    {sums}\nFROM netflix", target_engine=target_engine)
    # SUM over an empty table is NULL
    return df.fillna(0).astype(int)


def duplicate_show_ids(target_engine: Engine = None) -> pd.DataFrame:
    """show_ids that occur more than once (diagnostic only)."""
    return run_query("""
        SELECT show_id, COUNT(*) AS duplicate_count
        FROM netflix
        GROUP BY show_id
        HAVING COUNT(*) > 1
        ORDER BY show_id
    """, target_engine=target_engine)


# ============================================================================
# BASIC EXPLORATION
# ============================================================================

def total_titles(target_engine: Engine = None) -> int:
    return int(run_scalar("SELECT COUNT(*) FROM netflix", target_engine=target_engine))


def preview_titles(
    columns: Sequence[str] = ('type', 'title'),
    limit: int = 2,
    target_engine: Engine = None
) -> pd.DataFrame:
    """First rows (load order) of the selected columns."""
    unknown = [c for c in columns if c not in CATALOG_COLUMNS]
    if unknown or not columns:
        raise ValueError(f"Unknown column(s) {unknown}; choose from {list(CATALOG_COLUMNS)}")

    return run_query(
        f"SELECT {', '.join(columns)} FROM netflix LIMIT :limit",
        {'limit': limit},
        target_engine
    )


def oldest_release_years(limit: int = 2, target_engine: Engine = None) -> pd.DataFrame:
    return run_query("""
        SELECT DISTINCT release_year
        FROM netflix
        ORDER BY release_year ASC
        LIMIT :limit
    """, {'limit': limit}, target_engine)


def titles_from_country(
    country: str,
    content_type: Optional[str] = 'Movie',
    limit: int = 5,
    target_engine: Engine = None
) -> pd.DataFrame:
    """Titles produced in a country, e.g. Polish movies."""
    return run_query("""
        SELECT n.title
        FROM netflix n
        JOIN title_countries tc ON n.show_id = tc.show_id
        JOIN countries c ON tc.country_id = c.country_id
        WHERE c.country_name = :country
          AND (:content_type IS NULL OR n.type = :content_type)
        ORDER BY n.title
        LIMIT :limit
    """, {'country': country, 'content_type': content_type, 'limit': limit}, target_engine)


def entity_counts(entity: str = 'countries', limit: int = 10, target_engine: Engine = None) -> pd.DataFrame:
    """Most referenced countries or genres."""
    table, _, field = _entity_tables(entity)
    return run_query(f"""
        SELECT {field.name_attr} AS name, title_counter
        FROM {table}
        ORDER BY title_counter DESC, {field.id_attr}
        LIMIT :limit
    """, {'limit': limit}, target_engine)


# ============================================================================
# GENRE ANALYSIS
# ============================================================================

def genre_type_counts(
    genres: Sequence[str] = ('Comedies', 'Dramas'),
    target_engine: Engine = None
) -> pd.DataFrame:
    """
    Titles per type listed in any genre whose name contains one of `genres`.

    "Dramas" matches "Dramas", "TV Dramas", ...; each title counts once.
    The names are plain text: "%" and "_" match themselves.
    """
    if not genres:
        raise ValueError("genres must not be empty")

    conditions = ' OR '.join(
        f"g.genre_name LIKE :genre_{i} ESCAPE '\\'" for i in range(len(genres))
    )
    params = {f"genre_{i}": f"%{_escape_like(genre)}%" for i, genre in enumerate(genres)}

    return run_query(f"""
        SELECT n.type, COUNT(DISTINCT n.show_id) AS count
        FROM netflix n
        JOIN title_genres tg ON n.show_id = tg.show_id
        JOIN genres g ON tg.genre_id = g.genre_id
        WHERE {conditions}
        GROUP BY n.type
        ORDER BY n.type
    """, params, target_engine)


# ============================================================================
# TEMPORAL ANALYSIS
# ============================================================================

def titles_per_release_year(limit: int = 3, target_engine: Engine = None) -> pd.DataFrame:
    """Most recent release years with their title counts."""
    return run_query("""
        SELECT release_year, COUNT(*) AS title_counter
        FROM netflix
        GROUP BY release_year
        ORDER BY release_year DESC
        LIMIT :limit
    """, {'limit': limit}, target_engine)


def release_year_stats_by_type(target_engine: Engine = None) -> pd.DataFrame:
    return run_query("""
        SELECT
            type,
            AVG(release_year) AS avg_year,
            MIN(release_year) AS earliest_year,
            MAX(release_year) AS latest_year
        FROM netflix
        GROUP BY type
        ORDER BY type
    """, target_engine=target_engine)


def monthly_additions_by_type(target_engine: Engine = None) -> pd.DataFrame:
    """Titles added per calendar month (from "Month D, YYYY"), calendar ordered."""
    month = "SUBSTR(date_added, 1, INSTR(date_added, ' ') - 1)"
    month_params = {f"m{i}": name for i, name in enumerate(MONTHS, 1)}
    month_list = ', '.join(f":m{i}" for i in range(1, len(MONTHS) + 1))
    month_order = '\n'.join(f"WHEN {month} = :m{i} THEN {i}" for i in range(1, len(MONTHS) + 1))

    return run_query(f"""
        SELECT type, {month} AS month, COUNT(*) AS count
        FROM netflix
        WHERE date_added IS NOT NULL
          AND {month} IN ({month_list})
        GROUP BY {month}, type
        ORDER BY type, CASE {month_order} END
    """, month_params, target_engine)


def yearly_additions_by_type(limit: int = 10, target_engine: Engine = None) -> pd.DataFrame:
    """Titles added per year (from "Month D, YYYY") and type, newest first."""
    year = "SUBSTR(date_added, INSTR(date_added, ', ') + 2)"
    return run_query(f"""
        SELECT type, {year} AS year, COUNT(*) AS count
        FROM netflix
        WHERE date_added IS NOT NULL
          AND INSTR(date_added, ', ') > 0
        GROUP BY {year}, type
        ORDER BY year DESC, type
        LIMIT :limit
    """, {'limit': limit}, target_engine)


# ============================================================================
# RELATIONSHIP ANALYSIS USING SELF-JOINS
# ============================================================================

_SAME_DIRECTOR = """
    FROM netflix a
    JOIN netflix b ON a.director = b.director AND a.show_id < b.show_id {extra}
    WHERE a.director IS NOT NULL AND a.director != ''
"""


def shared_director_pairs(limit: int = 1, target_engine: Engine = None) -> pd.DataFrame:
    """Pairs of titles sharing the same director."""
    return run_query(f"""
        SELECT a.title AS title1, b.title AS title2, a.director
        {_SAME_DIRECTOR.format(extra='')}
        ORDER BY a.director, a.title, b.title
        LIMIT :limit
    """, {'limit': limit}, target_engine)


def cross_type_director_pairs(limit: int = 1, target_engine: Engine = None) -> pd.DataFrame:
    """Title pairs by one director where one is a Movie and the other a TV Show."""
    return run_query(f"""
        SELECT a.title AS title1, a.type AS type1, b.title AS title2, b.type AS type2, a.director
        {_SAME_DIRECTOR.format(extra='AND a.type != b.type')}
        ORDER BY a.director, a.title, b.title
        LIMIT :limit
    """, {'limit': limit}, target_engine)


def count_cross_type_director_pairs(target_engine: Engine = None) -> int:
    return int(run_scalar(
        f"SELECT COUNT(*) {_SAME_DIRECTOR.format(extra='AND a.type != b.type')}",
        target_engine=target_engine
    ))


# ============================================================================
# NORMALIZED DATA MODEL
# ============================================================================

def relationship_count(entity: str = 'countries', target_engine: Engine = None) -> int:
    """Number of title ↔ entity pairs."""
    _, junction, _ = _entity_tables(entity)
    return int(run_scalar(f"SELECT COUNT(*) FROM {junction}", target_engine=target_engine))


def rating_share_by_country(
    min_titles: int = None,
    precision: int = None,
    limit: int = None,
    target_engine: Engine = None
) -> pd.DataFrame:
    """
    Most common content ratings per country.

    Only countries with at least `min_titles` titles are shown; the
    percentage is rating_count over the country's full title_counter.
    """
    analysis = config.analysis
    params = {
        'min_titles': analysis.rating_min_titles if min_titles is None else min_titles,
        'precision': analysis.percent_precision if precision is None else precision,
        'limit': analysis.report_limit if limit is None else limit,
    }
    return run_query("""
        SELECT
            c.country_name,
            n.rating,
            COUNT(*) AS rating_count,
            ROUND(COUNT(*) * 100.0 / c.title_counter, :precision) AS percent_rating_count
        FROM netflix n
        JOIN title_countries tc ON n.show_id = tc.show_id
        JOIN countries c ON tc.country_id = c.country_id
        WHERE n.rating IS NOT NULL AND n.rating != ''
        GROUP BY c.country_id, c.country_name, c.title_counter, n.rating
        HAVING c.title_counter >= :min_titles
        ORDER BY percent_rating_count DESC, c.country_name, n.rating
        LIMIT :limit
    """, params, target_engine)


def genre_specialization_by_country(
    min_titles: int = None,
    min_percentage: float = None,
    excluded_genres: Sequence[str] = None,
    precision: int = None,
    limit: int = 5,
    target_engine: Engine = None
) -> pd.DataFrame:
    """
    Genres that make up a large share of a country's catalog.

    Generic genres (International Movies by default) are ignored.
    """
    analysis = config.analysis
    excluded = list(analysis.excluded_genres if excluded_genres is None else excluded_genres)
    share = "ROUND(COUNT(*) * 100.0 / c.title_counter, :precision)"

    statement = text(f"""
        SELECT
            c.country_name,
            g.genre_name AS genre,
            COUNT(*) AS genre_count,
            {share} AS genre_percentage
        FROM netflix n
        JOIN title_countries tc ON n.show_id = tc.show_id
        JOIN countries c ON tc.country_id = c.country_id
        JOIN title_genres tg ON n.show_id = tg.show_id
        JOIN genres g ON tg.genre_id = g.genre_id
        WHERE g.genre_name NOT IN :excluded
        GROUP BY c.country_id, c.country_name, c.title_counter, g.genre_id, g.genre_name
        HAVING c.title_counter >= :min_titles
           AND {share} >= :min_percentage
        ORDER BY genre_percentage DESC, c.country_name, g.genre_name
        LIMIT :limit
    """).bindparams(bindparam('excluded', expanding=True))

    params = {
        'excluded': excluded,
        'min_titles': analysis.genre_min_titles if min_titles is None else min_titles,
        'min_percentage': analysis.genre_min_percentage if min_percentage is None else min_percentage,
        'precision': analysis.percent_precision if precision is None else precision,
        'limit': limit,
    }
    return run_query(statement, params, target_engine)


def release_year_stats_by_country(
    min_titles: int = None,
    limit: int = 5,
    target_engine: Engine = None
) -> pd.DataFrame:
    """Average/min/max release year per country, newest catalogs first."""
    params = {
        'min_titles': config.analysis.year_stats_min_titles if min_titles is None else min_titles,
        'limit': limit,
    }
    return run_query("""
        SELECT
            c.country_name,
            c.title_counter,
            ROUND(AVG(n.release_year), 2) AS average_release_year,
            MIN(n.release_year) AS min_release_year,
            MAX(n.release_year) AS max_release_year
        FROM netflix n
        JOIN title_countries tc ON n.show_id = tc.show_id
        JOIN countries c ON tc.country_id = c.country_id
        GROUP BY c.country_id, c.country_name, c.title_counter
        HAVING c.title_counter >= :min_titles
        ORDER BY average_release_year DESC, c.country_name
        LIMIT :limit
    """, params, target_engine)
