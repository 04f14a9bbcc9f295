"""
============================================================================
NETFLIX CATALOG - Settings
============================================================================
Every tunable of the loader, the normalizer and the reports lives here,
read once from the environment (and an optional .env file) and checked
by pydantic before any script touches the database.

🔧 USAGE:
    from config import config

    csv_path = config.paths.catalog_csv
    separator = config.normalization.separator
    min_titles = config.analysis.rating_min_titles

    python config.py        # print the resolved settings

📝 SECTIONS:
    database       - DATABASE_URL, DB_ECHO
    paths          - DATA_DIR, RAW_DATA_DIR, REPORTS_DIR, LOGS_DIR, CATALOG_CSV
    normalization  - LIST_SEPARATOR, NORMALIZE_FIELDS
    analysis       - report thresholds (RATING_MIN_TITLES, ...)
    processing     - BATCH_SIZE, EXPORT_FORMAT
    logging        - LOG_LEVEL, LOG_FILE, LOG_CONSOLE
============================================================================
"""

import os
import sys
import logging
from pathlib import Path
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator, model_validator
from dotenv import load_dotenv
from sqlalchemy.engine import make_url


# ============================================================================
# .env DISCOVERY
# ============================================================================

def find_dotenv(max_depth: int = 5) -> Optional[Path]:
    """Nearest .env in the working directory or one of its parents."""
    cwd = Path.cwd()
    for folder in [cwd, *cwd.parents][:max_depth]:
        candidate = folder / ".env"
        if candidate.is_file():
            return candidate
    return None


env_path = find_dotenv()
if env_path:
    load_dotenv(env_path)
    print(f"✅ Settings read from {env_path}")
else:
    print("⚠️  No .env found, using process environment and built-in defaults.")


class _Section(BaseModel):
    """Base for every settings block; unknown keys are dropped."""

    class Config:
        extra = 'ignore'


# ============================================================================
# DATABASE
# ============================================================================

class DatabaseConfig(_Section):
    """Where the flat and normalized tables are stored."""

    database_url: str = Field(
        default="sqlite:///data/netflix.db",
        description="SQLAlchemy URL of the catalog database"
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement SQLAlchemy emits"
    )

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_url).get_backend_name() == 'sqlite'

    @property
    def database_path(self) -> Optional[Path]:
        """On-disk file of a SQLite database; None for in-memory or other engines."""
        if not self.is_sqlite:
            return None
        database = make_url(self.database_url).database
        if not database or database == ':memory:':
            return None
        return Path(database)


# ============================================================================
# PATHS
# ============================================================================

class PathsConfig(_Section):
    """
    Input CSV and output folders.

    Missing folders (including reports/analysis) are created on load.
    """

    data_dir: Path = Field(default=Path("./data"), description="Root of all generated data")
    raw_data_dir: Path = Field(default=Path("./data/raw"), description="Holds netflix_titles.csv")
    reports_dir: Path = Field(default=Path("./data/reports"), description="Exported tables and charts")
    logs_dir: Path = Field(default=Path("./data/logs"), description="Log files")
    catalog_csv: Path = Field(
        default=Path("./data/raw/netflix_titles.csv"),
        description="Catalog CSV export (header row optional)"
    )

    @model_validator(mode='after')
    def ensure_folders(self) -> 'PathsConfig':
        for folder in (self.data_dir, self.raw_data_dir, self.reports_dir / "analysis", self.logs_dir):
            folder.mkdir(parents=True, exist_ok=True)
        return self


# ============================================================================
# NORMALIZATION
# ============================================================================

KNOWN_NORMALIZED_FIELDS = ('countries', 'genres')


class NormalizationConfig(_Section):
    """
    How multi-value columns are split into entity/junction tables.

    🔧 IMPORTANT: The catalog joins list items with ", " (comma + space).
                  Changing the separator changes every derived table.
    """

    separator: str = Field(
        default=", ",
        description="Separator between items of country / listed_in"
    )
    entity_fields: List[str] = Field(
        default_factory=lambda: list(KNOWN_NORMALIZED_FIELDS),
        description="Entity tables to build: countries, genres"
    )

    @field_validator('separator')
    @classmethod
    def separator_not_empty(cls, v: str) -> str:
        if v == "":
            raise ValueError("separator must not be empty")
        return v

    @field_validator('entity_fields')
    @classmethod
    def known_entity_fields(cls, v: List[str]) -> List[str]:
        names = [name.strip().lower() for name in v if name.strip()]
        unknown = sorted(set(names) - set(KNOWN_NORMALIZED_FIELDS))
        if unknown:
            raise ValueError(
                f"entity_fields must be a subset of {list(KNOWN_NORMALIZED_FIELDS)}, got {unknown}"
            )
        return names


# ============================================================================
# ANALYSIS THRESHOLDS
# ============================================================================

class AnalysisConfig(_Section):
    """
    Thresholds of the country reports.

    Every `*_min_titles` is compared against countries.title_counter.
    """

    percent_precision: int = Field(default=2, ge=0, le=10, description="Decimals of percentage columns")
    rating_min_titles: int = Field(default=10, ge=1, description="Rating share: minimum country size")
    genre_min_titles: int = Field(default=20, ge=1, description="Genre specialization: minimum country size")
    genre_min_percentage: float = Field(
        default=30.0, ge=0.0, le=100.0,
        description="Genre specialization: minimum share of the country's titles"
    )
    excluded_genres: List[str] = Field(
        default_factory=lambda: ["International Movies"],
        description="Catch-all genres left out of the specialization report"
    )
    year_stats_min_titles: int = Field(default=6, ge=1, description="Release-year stats: minimum country size")
    report_limit: int = Field(default=10, ge=1, le=1000, description="Rows shown by top-N reports")


# ============================================================================
# PROCESSING
# ============================================================================

EXPORT_FORMATS = ('csv', 'json')


class ProcessingConfig(_Section):
    """Insert batching and report export."""

    batch_size: int = Field(default=1000, ge=1, le=100000, description="Rows per insert batch")
    export_format: str = Field(default="csv", description="Report export: csv or json")

    @field_validator('export_format')
    @classmethod
    def supported_export_format(cls, v: str) -> str:
        fmt = v.strip().lower()
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"export_format must be one of {list(EXPORT_FORMATS)}, got '{v}'")
        return fmt


# ============================================================================
# LOGGING
# ============================================================================

class LoggingConfig(_Section):
    """
    Log file and console settings used by setup_logging().

    The scripts print their own progress, so console logging is off by default.
    """

    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    log_file: Path = Field(default=Path("./data/logs/netflix_catalog.log"))
    console_output: bool = Field(default=False, description="Mirror log records to stderr")
    log_format: str = Field(default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
    date_format: str = Field(default="%Y-%m-%d %H:%M:%S")

    @field_validator('log_level')
    @classmethod
    def known_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log_level '{v}'")
        return level


# ============================================================================
# ALL SETTINGS
# ============================================================================

class Config(_Section):
    """
    Every section in one object.

        config.database.database_url
        config.normalization.separator
        config.analysis.percent_precision
    """

    database: DatabaseConfig
    paths: PathsConfig
    normalization: NormalizationConfig
    analysis: AnalysisConfig
    processing: ProcessingConfig
    logging: LoggingConfig

    environment: str = Field(default="development", description="development, production or testing")
    project_name: str = "Netflix Catalog"
    version: str = "0.1.0"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    def print_summary(self):
        """Show the resolved settings, one block per section."""
        a = self.analysis
        blocks = [
            ("💾 Database", [
                ('Engine', 'SQLite' if self.database.is_sqlite else make_url(self.database.database_url).get_backend_name()),
                ('URL', self.database.database_url),
            ]),
            ("📂 Files", [
                ('Catalog CSV', self.paths.catalog_csv.absolute()),
                ('Reports', self.paths.reports_dir.absolute()),
            ]),
            ("🧩 Normalization", [
                ('Separator', repr(self.normalization.separator)),
                ('Tables', ', '.join(self.normalization.entity_fields)),
            ]),
            ("📈 Report thresholds", [
                ('Rating share', f">= {a.rating_min_titles} titles"),
                ('Genre specialization', f">= {a.genre_min_titles} titles and >= {a.genre_min_percentage}%"),
                ('Release-year stats', f">= {a.year_stats_min_titles} titles"),
                ('Excluded genres', ', '.join(a.excluded_genres) or '-'),
            ]),
            ("⚡ Batching / export", [
                ('Batch', self.processing.batch_size),
                ('Export', self.processing.export_format),
            ]),
            ("📝 Logging", [
                ('Level', self.logging.log_level),
                ('File', self.logging.log_file.absolute()),
            ]),
        ]

        print("\n" + "="*70)
        print(f"🎬 {self.project_name} {self.version} [{self.environment}]")
        print("="*70)
        for title, rows in blocks:
            print(f"\n{title}")
            for label, value in rows:
                print(f"  • {label}: {value}")
        print("\n" + "="*70 + "\n")


# ============================================================================
# ENVIRONMENT → SETTINGS
# ============================================================================

def split_env_list(value: str) -> List[str]:
    """Split a comma-separated environment value into trimmed items."""
    return [item.strip() for item in value.split(',') if item.strip()]


def _env_flag(key: str) -> bool:
    return os.getenv(key, 'false').strip().lower() in ('1', 'true', 'yes')


def load_config() -> Config:
    """
    Build Config from the environment.

    Invalid values print the pydantic error and exit with status 1.
    """
    env = os.getenv
    try:
        return Config(
            database=DatabaseConfig(
                database_url=env('DATABASE_URL', 'sqlite:///data/netflix.db'),
                echo=_env_flag('DB_ECHO'),
            ),
            paths=PathsConfig(
                data_dir=env('DATA_DIR', './data'),
                raw_data_dir=env('RAW_DATA_DIR', './data/raw'),
                reports_dir=env('REPORTS_DIR', './data/reports'),
                logs_dir=env('LOGS_DIR', './data/logs'),
                catalog_csv=env('CATALOG_CSV', './data/raw/netflix_titles.csv'),
            ),
            normalization=NormalizationConfig(
                separator=env('LIST_SEPARATOR', ', '),
                entity_fields=split_env_list(env('NORMALIZE_FIELDS', ','.join(KNOWN_NORMALIZED_FIELDS))),
            ),
            analysis=AnalysisConfig(
                percent_precision=env('PERCENT_PRECISION', 2),
                rating_min_titles=env('RATING_MIN_TITLES', 10),
                genre_min_titles=env('GENRE_MIN_TITLES', 20),
                genre_min_percentage=env('GENRE_MIN_PERCENTAGE', 30.0),
                excluded_genres=split_env_list(env('EXCLUDED_GENRES', 'International Movies')),
                year_stats_min_titles=env('YEAR_STATS_MIN_TITLES', 6),
                report_limit=env('REPORT_LIMIT', 10),
            ),
            processing=ProcessingConfig(
                batch_size=env('BATCH_SIZE', 1000),
                export_format=env('EXPORT_FORMAT', 'csv'),
            ),
            logging=LoggingConfig(
                log_level=env('LOG_LEVEL', 'INFO'),
                log_file=env('LOG_FILE', './data/logs/netflix_catalog.log'),
                console_output=_env_flag('LOG_CONSOLE'),
            ),
            environment=env('ENVIRONMENT', 'development'),
        )
    except ValueError as e:
        print(f"❌ Invalid settings: {e}")
        print("Fix the offending variable in .env or the environment and retry.")
        sys.exit(1)


# ============================================================================
# LOGGING SETUP
# ============================================================================

def setup_logging(settings: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Configure the root logger from LoggingConfig.

    Safe to call more than once: handlers installed by a previous call
    are replaced, not duplicated.

    Returns:
        The configured root logger
    """
    settings = settings or config.logging
    root = logging.getLogger()
    root.setLevel(settings.log_level)

    for handler in list(root.handlers):
        if getattr(handler, '_catalog_handler', False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(settings.log_format, datefmt=settings.date_format)

    settings.log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
    file_handler.setFormatter(formatter)
    file_handler._catalog_handler = True
    root.addHandler(file_handler)

    if settings.console_output:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler._catalog_handler = True
        root.addHandler(console_handler)

    return root


config = load_config()

if __name__ == "__main__":
    config.print_summary()
