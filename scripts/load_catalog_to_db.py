r"""
============================================================================
NETFLIX CATALOG - Database Schema and Loader
============================================================================
Creates the database schema and loads the Netflix titles CSV into the
flat `netflix` table, one row per catalog title.

🎯 PURPOSE:
    - Define the flat title table and the normalized entity/junction tables
    - Load the CSV export with proper data types (release_year as INTEGER)
    - Skip the header row when present
    - Skip and report malformed rows instead of aborting the load
    - Keep the first occurrence of a duplicated show_id and report the rest

📊 DATABASE TABLES:
    1. netflix           - Flat catalog table (one row per title)
    2. countries         - Distinct countries with title counters
    3. title_countries   - Title ↔ country junction
    4. genres            - Distinct genres (from listed_in) with title counters
    5. title_genres      - Title ↔ genre junction

    Tables 2-5 are derived by scripts/normalize_catalog.py.

🔧 USAGE:
    python scripts/load_catalog_to_db.py [--csv PATH] [--recreate] [--verify]

    Options:
        --csv PATH      Catalog CSV (default: CATALOG_CSV from .env)
        --recreate      Drop and recreate all tables (careful!)
        --yes           Don't ask for confirmation with --recreate
        --no-header     The CSV has no header row
        --batch SIZE    Custom batch size (default: BATCH_SIZE)
        --verify        Run verification queries after loading

📝 OUTPUT:
    - Database: DATABASE_URL (default data/netflix.db)
    - Load log: data/logs/netflix_catalog.log
============================================================================
"""

import sys
import csv
import time
import logging
import argparse
from pathlib import Path
from datetime import datetime
from typing import Optional, Dict, List, Any, Iterator, Tuple

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import config, setup_logging
from sqlalchemy import (
    create_engine, Column, Integer, String, Text, Index,
    ForeignKey, event, func
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from tqdm import tqdm

logger = logging.getLogger(__name__)


# ============================================================================
# DATABASE SETUP
# ============================================================================

Base = declarative_base()

# Column order of the catalog CSV (and of the flat table)
CATALOG_COLUMNS = (
    'show_id', 'type', 'title', 'director', 'movie_cast', 'country',
    'date_added', 'release_year', 'rating', 'duration', 'listed_in',
    'description',
)


def make_engine(database_url: str, echo: bool = False, **kwargs) -> Engine:
    """
    Create an engine for the catalog database.

    SQLite connections get foreign keys switched on and the same
    bulk-insert pragmas as the production loader.
    """
    is_sqlite = database_url.startswith('sqlite')
    connect_args = kwargs.pop('connect_args', None)
    if connect_args is None:
        connect_args = {'check_same_thread': False, 'timeout': 30} if is_sqlite else {}

    new_engine = create_engine(database_url, echo=echo, connect_args=connect_args, **kwargs)

    if is_sqlite:
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """
            Set SQLite pragmas.

            - foreign_keys=ON: junction rows must reference real titles
            - synchronous=NORMAL: Balance between safety and speed
            - temp_store=MEMORY: Keep temporary tables in memory
            """
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA temp_store=MEMORY")
            cursor.close()

    return new_engine


# Database engine
engine = make_engine(config.database.database_url, echo=config.database.echo)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ============================================================================
# TABLE DEFINITIONS - SQLALCHEMY MODELS
# ============================================================================

# ----------------------------------------------------------------------------
# 1. NETFLIX - Flat catalog table
# ----------------------------------------------------------------------------
class NetflixTitle(Base):
    """
    One row per catalog title, exactly as exported.

    🔗 JOINS:
        - title_countries.show_id → show_id
        - title_genres.show_id → show_id

    🔧 NOTE: country, listed_in and movie_cast are ", "-separated lists.
             Use the normalized tables instead of LIKE '%...%' matching.
    """
    __tablename__ = 'netflix'

    show_id = Column(String(20), primary_key=True, comment='Catalog identifier (e.g., s1)')
    type = Column(String(20), comment='Movie or TV Show')
    title = Column(Text)
    director = Column(Text, nullable=True)
    movie_cast = Column(Text, nullable=True, comment='Comma-separated cast list')
    country = Column(Text, nullable=True, comment='Comma-separated countries')
    date_added = Column(String(40), nullable=True, comment='Free text, e.g. "September 25, 2021"')
    release_year = Column(Integer, comment='Release year (INTEGER)')
    rating = Column(String(20), nullable=True, comment='Content rating code, e.g. TV-MA')
    duration = Column(String(20), nullable=True, comment='"90 min" or "2 Seasons"')
    listed_in = Column(Text, comment='Comma-separated genres')
    description = Column(Text)

    __table_args__ = (
        Index('idx_netflix_type_year', 'type', 'release_year'),
        Index('idx_netflix_director', 'director'),
        Index('idx_netflix_rating', 'rating'),
    )

    def __repr__(self):
        return f"<NetflixTitle(show_id='{self.show_id}', title='{self.title}', year={self.release_year})>"


# ----------------------------------------------------------------------------
# 2-3. COUNTRIES + TITLE_COUNTRIES
# ----------------------------------------------------------------------------
class Country(Base):
    """
    Distinct countries extracted from netflix.country.

    🔧 IMPORTANT: country_id is assigned by the normalizer in first-seen
                  order, not by the engine.
    """
    __tablename__ = 'countries'

    country_id = Column(Integer, primary_key=True, autoincrement=False)
    country_name = Column(String(200), nullable=False, unique=True)
    title_counter = Column(Integer, nullable=False, comment='Titles referencing this country')

    def __repr__(self):
        return f"<Country(id={self.country_id}, name='{self.country_name}', titles={self.title_counter})>"


class TitleCountry(Base):
    """Many-to-many junction between titles and countries."""
    __tablename__ = 'title_countries'

    show_id = Column(
        String(20),
        ForeignKey('netflix.show_id', ondelete='CASCADE'),
        primary_key=True
    )
    country_id = Column(
        Integer,
        ForeignKey('countries.country_id', ondelete='CASCADE'),
        primary_key=True
    )

    __table_args__ = (
        Index('idx_title_countries_country', 'country_id'),
    )


# ----------------------------------------------------------------------------
# 4-5. GENRES + TITLE_GENRES
# ----------------------------------------------------------------------------
class Genre(Base):
    """Distinct genres extracted from netflix.listed_in."""
    __tablename__ = 'genres'

    genre_id = Column(Integer, primary_key=True, autoincrement=False)
    genre_name = Column(String(200), nullable=False, unique=True)
    title_counter = Column(Integer, nullable=False, comment='Titles referencing this genre')

    def __repr__(self):
        return f"<Genre(id={self.genre_id}, name='{self.genre_name}', titles={self.title_counter})>"


class TitleGenre(Base):
    """Many-to-many junction between titles and genres."""
    __tablename__ = 'title_genres'

    show_id = Column(
        String(20),
        ForeignKey('netflix.show_id', ondelete='CASCADE'),
        primary_key=True
    )
    genre_id = Column(
        Integer,
        ForeignKey('genres.genre_id', ondelete='CASCADE'),
        primary_key=True
    )

    __table_args__ = (
        Index('idx_title_genres_genre', 'genre_id'),
    )


# ============================================================================
# DATA LOADING FUNCTIONS WITH PROPER TYPE HANDLING
# ============================================================================

class MalformedRowError(ValueError):
    """A CSV row that cannot become a title record."""

    def __init__(self, line_number: int, reason: str):
        super().__init__(f"line {line_number}: {reason}")
        self.line_number = line_number
        self.reason = reason


class LoadReport:
    """Outcome of one catalog load."""

    def __init__(self):
        self.loaded = 0
        self.skipped: List[Tuple[int, str]] = []
        self.duplicates: List[Tuple[int, str]] = []

    @property
    def total_rows(self) -> int:
        return self.loaded + len(self.skipped) + len(self.duplicates)

    def __repr__(self):
        return (f"<LoadReport(loaded={self.loaded}, skipped={len(self.skipped)}, "
                f"duplicates={len(self.duplicates)})>")


def clean_value(value: Optional[str]) -> Optional[str]:
    """
    Clean a CSV value, converting blank cells to None.

    Args:
        value: Raw string value from the CSV

    Returns:
        Stripped value, or None if blank
    """
    if value is None:
        return None
    value = value.strip()
    if value == '':
        return None
    return value


def parse_integer(value: Optional[str]) -> Optional[int]:
    """Parse an integer cell, None if blank or not a number."""
    cleaned = clean_value(value)
    if cleaned is None:
        return None
    try:
        return int(cleaned)
    except (ValueError, TypeError):
        return None


def parse_catalog_row(row: List[str], line_number: int) -> Dict[str, Any]:
    """
    Turn one CSV row into keyword arguments for NetflixTitle.

    Raises:
        MalformedRowError: wrong column count, missing show_id,
                           or a release year that isn't an integer
    """
    if len(row) != len(CATALOG_COLUMNS):
        raise MalformedRowError(
            line_number,
            f"expected {len(CATALOG_COLUMNS)} columns, got {len(row)}"
        )

    record = {column: clean_value(cell) for column, cell in zip(CATALOG_COLUMNS, row)}

    if record['show_id'] is None:
        raise MalformedRowError(line_number, "missing show_id")

    release_year = parse_integer(row[CATALOG_COLUMNS.index('release_year')])
    if release_year is None:
        raise MalformedRowError(
            line_number,
            f"release_year is not an integer: {record['release_year']!r}"
        )
    record['release_year'] = release_year

    return record


def is_header_row(row: List[str]) -> bool:
    """A header row starts with the literal column name show_id."""
    return bool(row) and row[0].strip().lower() == 'show_id'


def read_catalog_in_batches(
    file_path: Path,
    batch_size: int = 1000,
    has_header: Optional[bool] = None
) -> Iterator[List[Tuple[int, List[str]]]]:
    """
    Read the catalog CSV in batches.

    Args:
        file_path: Path to CSV file
        batch_size: Number of rows per batch
        has_header: True/False to force, None to auto-detect

    Yields:
        Batches of (line_number, raw_row) tuples, header excluded
    """
    with open(file_path, 'r', encoding='utf-8-sig', newline='') as f:
        reader = csv.reader(f)

        batch = []
        first = True
        for row in reader:
            line_number = reader.line_num
            if first:
                first = False
                skip = is_header_row(row) if has_header is None else has_header
                if skip:
                    continue

            # Blank lines carry no record
            if not row or all(cell.strip() == '' for cell in row):
                continue

            batch.append((line_number, row))

            if len(batch) >= batch_size:
                yield batch
                batch = []

        if batch:
            yield batch


def count_data_rows(file_path: Path) -> int:
    """Count CSV records (for the progress bar); may include the header."""
    with open(file_path, 'r', encoding='utf-8-sig', newline='') as f:
        return sum(1 for _ in csv.reader(f))


def load_catalog(
    session: Session,
    file_path: Path,
    batch_size: int = 1000,
    has_header: Optional[bool] = None,
    show_progress: bool = True
) -> LoadReport:
    """
    Load the catalog CSV into the netflix table.

    Malformed rows and repeated show_ids are skipped and recorded in the
    returned report; they never abort the load.
    """
    print(f"\n📥 Loading catalog from {file_path.name}")
    logger.info("Loading catalog from %s", file_path)

    report = LoadReport()
    seen_ids = {show_id for (show_id,) in session.query(NetflixTitle.show_id)}

    total_lines = count_data_rows(file_path)

    with tqdm(total=total_lines, desc="   Progress", unit=" titles",
              disable=not show_progress) as pbar:
        for batch in read_catalog_in_batches(file_path, batch_size, has_header):
            records = []

            for line_number, row in batch:
                try:
                    values = parse_catalog_row(row, line_number)
                except MalformedRowError as e:
                    report.skipped.append((e.line_number, e.reason))
                    logger.warning("Skipping malformed row at line %d: %s", e.line_number, e.reason)
                    continue

                if values['show_id'] in seen_ids:
                    report.duplicates.append((line_number, values['show_id']))
                    logger.warning("Skipping duplicate show_id %s at line %d",
                                   values['show_id'], line_number)
                    continue

                seen_ids.add(values['show_id'])
                records.append(NetflixTitle(**values))

            if records:
                session.bulk_save_objects(records)
                session.commit()
                report.loaded += len(records)

            pbar.update(len(batch))

    print(f"   ✅ Loaded {report.loaded:,} title records")
    if report.skipped:
        print(f"   ⚠️  Skipped {len(report.skipped):,} malformed rows")
    if report.duplicates:
        print(f"   ⚠️  Skipped {len(report.duplicates):,} duplicate show_ids")

    logger.info("Catalog load finished: %r", report)
    return report


# ============================================================================
# MAIN LOADING ORCHESTRATION
# ============================================================================

def create_tables(target_engine: Engine = None, recreate: bool = False, assume_yes: bool = False) -> bool:
    """Create all database tables."""
    target_engine = target_engine or engine

    if recreate:
        print("\n⚠️  WARNING: Dropping all existing tables!")
        if not assume_yes:
            response = input("Are you sure? This will DELETE all data! (yes/no): ")
            if response.lower() != 'yes':
                print("❌ Cancelled")
                return False

        Base.metadata.drop_all(target_engine)
        logger.info("Dropped all tables")
        print("   🗑️  Dropped all tables")

    Base.metadata.create_all(target_engine)
    print("   ✅ Created all tables with proper schemas and indexes")
    return True


def verify_database(session: Session) -> Dict[str, int]:
    """
    Run verification queries to ensure data loaded correctly.

    🔧 VERIFIES:
        - Record counts per table
        - release_year is stored as INTEGER
        - Sample queries work
    """
    print("\n" + "="*70)
    print("🔍 DATABASE VERIFICATION")
    print("="*70)

    print(f"\n📊 Record counts in database:")
    counts = {
        'netflix': session.query(NetflixTitle).count(),
        'countries': session.query(Country).count(),
        'title_countries': session.query(TitleCountry).count(),
        'genres': session.query(Genre).count(),
        'title_genres': session.query(TitleGenre).count(),
    }

    for table, count in counts.items():
        print(f"   • {table}: {count:,}")

    sample_title = session.query(NetflixTitle).filter(
        NetflixTitle.release_year.isnot(None)
    ).first()
    if sample_title:
        print(f"\n   • Years as INTEGER: {type(sample_title.release_year).__name__} = {sample_title.release_year}")
        assert isinstance(sample_title.release_year, int), "release_year should be INTEGER!"

    print(f"\n🎬 Sample queries:")
    by_type = session.query(
        NetflixTitle.type, func.count(NetflixTitle.show_id)
    ).group_by(NetflixTitle.type).all()
    for content_type, count in by_type:
        print(f"   • {content_type}: {count:,}")

    print(f"\n   ✅ All queries working correctly!")
    return counts


def load_all(
    csv_path: Path,
    batch_size: int,
    has_header: Optional[bool] = None,
    verify: bool = False
) -> Optional[LoadReport]:
    """Load the catalog CSV and print a summary."""
    print("\n" + "="*70)
    print("🎬 NETFLIX CATALOG - Database Loader")
    print("="*70)
    print(f"📅 Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"💾 Database: {config.database.database_url}")
    print(f"📦 Batch size: {batch_size:,} records")

    if not csv_path.exists():
        print(f"   ❌ File not found: {csv_path}")
        logger.error("Catalog CSV not found: %s", csv_path)
        return None

    session = SessionLocal()
    report = None

    try:
        start_time = time.time()

        try:
            report = load_catalog(session, csv_path, batch_size, has_header)
        except Exception as e:
            print(f"   ❌ Error loading catalog: {e}")
            logger.exception("Catalog load failed")
            session.rollback()
            return None

        total_time = time.time() - start_time

        print("\n" + "="*70)
        print("📊 LOADING SUMMARY")
        print("="*70)
        print(f"⏱️  Total time: {total_time:.1f} seconds")
        print(f"   • Rows read: {report.total_rows:,}")
        print(f"   • Loaded: {report.loaded:,}")
        for line_number, reason in report.skipped[:10]:
            print(f"   ⚠️  line {line_number}: {reason}")
        for line_number, show_id in report.duplicates[:10]:
            print(f"   ⚠️  line {line_number}: duplicate show_id {show_id}")

        if verify:
            verify_database(session)

        if config.database.is_sqlite:
            db_path = config.database.database_path
            if db_path and db_path.exists():
                db_size = db_path.stat().st_size / (1024**2)  # MB
                print(f"\n💾 Database file size: {db_size:.2f} MB")

        print("\n" + "="*70)
        print("✅ DATABASE LOADING COMPLETE!")
        print("="*70)
        print("\n🎯 Next steps:")
        print("   1. Run: python scripts/normalize_catalog.py")
        print("      → Build countries/genres and their junction tables")
        print("   2. Run: python scripts/analyze_catalog.py")

    finally:
        session.close()

    print(f"\n📅 Finished: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("="*70 + "\n")
    return report


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Load the Netflix titles CSV into the catalog database',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--csv',
        type=Path,
        default=config.paths.catalog_csv,
        help=f'Catalog CSV (default: {config.paths.catalog_csv})'
    )

    parser.add_argument(
        '--recreate',
        action='store_true',
        help='Drop and recreate all tables (⚠️ DESTRUCTIVE!)'
    )

    parser.add_argument(
        '--yes',
        action='store_true',
        help='Skip the confirmation prompt for --recreate'
    )

    parser.add_argument(
        '--no-header',
        action='store_true',
        help='The CSV has no header row (default: auto-detect)'
    )

    parser.add_argument(
        '--batch',
        type=int,
        default=config.processing.batch_size,
        help=f'Batch size for loading (default: {config.processing.batch_size})'
    )

    parser.add_argument(
        '--verify',
        action='store_true',
        help='Run verification queries after loading'
    )

    args = parser.parse_args()
    setup_logging()

    if create_tables(recreate=args.recreate, assume_yes=args.yes):
        load_all(
            csv_path=args.csv,
            batch_size=args.batch,
            has_header=False if args.no_header else None,
            verify=args.verify
        )


if __name__ == "__main__":
    main()
