"""
============================================================================
NETFLIX CATALOG - Delimited Field Normalizer
============================================================================
Extracts the comma-separated multi-value columns of the flat `netflix`
table into entity tables and many-to-many junction tables.

🎯 PURPOSE:
    - netflix.country   → countries + title_countries
    - netflix.listed_in → genres    + title_genres
    - One in-memory pass per field, then a single bulk write

🔧 RULES:
    - Fields are split on ", " and every piece is trimmed
    - Blank pieces (and NULL/empty fields) produce nothing
    - Entity ids start at 1 and follow first-seen order (titles in load
      order, pieces in field order), so identical input gives identical ids
    - A (title, entity) pair is emitted at most once, even when a field
      repeats a value or a show_id appears twice
    - title_counter == number of junction rows referencing the entity

🔧 USAGE:
    python scripts/normalize_catalog.py [--field countries|genres] [--batch SIZE]

    Derived tables are dropped and rebuilt on every run; their rows are
    committed together or not at all.
============================================================================
"""

import sys
import time
import logging
import argparse
from pathlib import Path
from datetime import datetime
from typing import Optional, Dict, List, Iterable, Iterator, Tuple

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import config, setup_logging
from pydantic import BaseModel
from sqlalchemy import literal_column
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from tqdm import tqdm
from scripts.load_catalog_to_db import (
    engine, NetflixTitle, Country, TitleCountry, Genre, TitleGenre
)

logger = logging.getLogger(__name__)


# ============================================================================
# SPLITTING
# ============================================================================

def split_delimited(value: Optional[str], separator: str = None) -> List[str]:
    """
    Split a delimited list field into trimmed, non-empty pieces.

    Args:
        value: Raw field text (may be None)
        separator: List separator (default: config.normalization.separator)

    Returns:
        Pieces in field order; duplicates are kept

    Example:
        >>> split_delimited("United States, India, ")
        ['United States', 'India']
        >>> split_delimited(", ")
        []
    """
    if value is None:
        return []
    if separator is None:
        separator = config.normalization.separator

    pieces = []
    for piece in value.split(separator):
        piece = piece.strip()
        if piece:
            pieces.append(piece)
    return pieces


# ============================================================================
# ENTITY REGISTRY
# ============================================================================

class EntityRegistry:
    """
    Distinct atomic values of one entity type with surrogate ids.

    Ids are handed out by an explicit counter starting at 1.
    """

    def __init__(self):
        self._ids: Dict[str, int] = {}
        self._names: List[str] = []
        self._counts: List[int] = []

    def register(self, name: str) -> int:
        """Return the id for `name`, creating it on first sight, and bump its count."""
        entity_id = self._ids.get(name)
        if entity_id is None:
            self._names.append(name)
            self._counts.append(1)
            entity_id = len(self._names)
            self._ids[name] = entity_id
        else:
            self._counts[entity_id - 1] += 1
        return entity_id

    def get(self, name: str) -> Optional[int]:
        return self._ids.get(name)

    def count(self, entity_id: int) -> int:
        if entity_id < 1 or entity_id > len(self._counts):
            raise KeyError(entity_id)
        return self._counts[entity_id - 1]

    def entities(self) -> List['Entity']:
        """All entities ordered by id."""
        return [
            Entity(entity_id=i, name=name, title_counter=count)
            for i, (name, count) in enumerate(zip(self._names, self._counts), 1)
        ]

    def __len__(self):
        return len(self._names)

    def __contains__(self, name):
        return name in self._ids


class Entity(BaseModel):
    """One row of an entity table."""

    entity_id: int
    name: str
    title_counter: int

    class Config:
        """Pydantic configuration."""
        frozen = True


class NormalizationResult(BaseModel):
    """Entity table plus junction relation for one normalized field."""

    entities: Tuple[Entity, ...]
    pairs: Tuple[Tuple[str, int], ...]

    class Config:
        """Pydantic configuration."""
        frozen = True

    @property
    def pair_count(self) -> int:
        return len(self.pairs)

    def counts(self) -> Dict[str, int]:
        """Entity name → title_counter."""
        return {entity.name: entity.title_counter for entity in self.entities}

    def ids(self) -> Dict[str, int]:
        """Entity name → entity id."""
        return {entity.name: entity.entity_id for entity in self.entities}


# ============================================================================
# JUNCTION BUILDER
# ============================================================================

def build_junction(
    records: Iterable[Tuple[str, Optional[str]]],
    separator: str = None
) -> NormalizationResult:
    """
    Build the entity table and junction relation for one field.

    Args:
        records: (show_id, field value) in load order
        separator: List separator (default: config.normalization.separator)

    Returns:
        Immutable NormalizationResult
    """
    registry = EntityRegistry()
    seen_pairs = set()
    pairs = []

    for show_id, value in records:
        for name in split_delimited(value, separator):
            known_id = registry.get(name)
            if known_id is not None and (show_id, known_id) in seen_pairs:
                continue

            entity_id = registry.register(name)
            seen_pairs.add((show_id, entity_id))
            pairs.append((show_id, entity_id))

    return NormalizationResult(entities=tuple(registry.entities()), pairs=tuple(pairs))


# ============================================================================
# DATABASE PERSISTENCE
# ============================================================================

class NormalizedField:
    """Where a delimited column comes from and where its tables go."""

    def __init__(self, source_column, entity_model, junction_model, id_attr: str, name_attr: str):
        self.source_column = source_column
        self.entity_model = entity_model
        self.junction_model = junction_model
        self.id_attr = id_attr
        self.name_attr = name_attr

    @property
    def tables(self):
        # Junction first so drops respect foreign keys
        return [self.junction_model.__table__, self.entity_model.__table__]


NORMALIZED_FIELDS: Dict[str, NormalizedField] = {
    'countries': NormalizedField(
        NetflixTitle.country, Country, TitleCountry, 'country_id', 'country_name'
    ),
    'genres': NormalizedField(
        NetflixTitle.listed_in, Genre, TitleGenre, 'genre_id', 'genre_name'
    ),
}


def read_field_values(session: Session, column) -> Iterator[Tuple[str, Optional[str]]]:
    """
    Stream (show_id, value) for one column in load order.

    Load order is SQLite's rowid; other engines fall back to show_id.
    """
    if session.get_bind().dialect.name == 'sqlite':
        order = literal_column('netflix.rowid')
    else:
        order = NetflixTitle.show_id

    query = session.query(NetflixTitle.show_id, column).order_by(order)
    for show_id, value in query.yield_per(1000):
        yield show_id, value


def write_normalized(
    session: Session,
    result: NormalizationResult,
    field: NormalizedField,
    batch_size: int = 1000,
    show_progress: bool = True
):
    """
    Bulk insert entities, then junction rows, without committing.

    The caller owns the transaction so a failed batch leaves nothing behind.
    """
    entity_rows = [
        {field.id_attr: e.entity_id, field.name_attr: e.name, 'title_counter': e.title_counter}
        for e in result.entities
    ]
    for start in range(0, len(entity_rows), batch_size):
        session.bulk_insert_mappings(field.entity_model, entity_rows[start:start + batch_size])
    session.flush()

    with tqdm(total=result.pair_count, desc="   Junction", unit=" pairs",
              disable=not show_progress) as pbar:
        for start in range(0, result.pair_count, batch_size):
            chunk = result.pairs[start:start + batch_size]
            session.bulk_insert_mappings(
                field.junction_model,
                [{'show_id': show_id, field.id_attr: entity_id} for show_id, entity_id in chunk]
            )
            session.flush()
            pbar.update(len(chunk))


def rebuild_tables(target_engine: Engine, fields: List[str]):
    """Drop and recreate the derived tables of the given fields."""
    tables = []
    for name in fields:
        tables.extend(NORMALIZED_FIELDS[name].tables)

    NetflixTitle.metadata.drop_all(target_engine, tables=tables)
    NetflixTitle.metadata.create_all(target_engine, tables=list(reversed(tables)))
    logger.info("Rebuilt derived tables: %s", ', '.join(t.name for t in tables))


def normalize_catalog(
    target_engine: Engine = None,
    fields: List[str] = None,
    separator: str = None,
    batch_size: int = None,
    show_progress: bool = True
) -> Dict[str, NormalizationResult]:
    """
    Rebuild the normalized tables from the flat netflix table.

    Args:
        target_engine: Database engine (default: configured engine)
        fields: Subset of NORMALIZED_FIELDS (default: config.normalization.entity_fields)
        separator: List separator (default: config.normalization.separator)
        batch_size: Insert batch size (default: config.processing.batch_size)

    All fields are written in one transaction. If anything fails, the
    derived tables are left freshly rebuilt and empty.

    Returns:
        NormalizationResult per field name
    """
    target_engine = target_engine or engine
    fields = fields or config.normalization.entity_fields
    batch_size = batch_size or config.processing.batch_size

    unknown = [name for name in fields if name not in NORMALIZED_FIELDS]
    if unknown:
        raise ValueError(f"Unknown field(s) {unknown}; choose from {list(NORMALIZED_FIELDS)}")

    rebuild_tables(target_engine, fields)

    results = {}
    session = sessionmaker(bind=target_engine, autoflush=False)()
    try:
        for name in fields:
            field = NORMALIZED_FIELDS[name]
            print(f"\n🧩 Normalizing {field.source_column.key} → {name}")

            result = build_junction(read_field_values(session, field.source_column), separator)
            write_normalized(session, result, field, batch_size, show_progress)

            print(f"   ✅ {len(result.entities):,} {name}, {result.pair_count:,} junction rows")
            logger.info("Normalized %s: %d entities, %d pairs",
                        name, len(result.entities), result.pair_count)
            results[name] = result
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    return results


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Normalize delimited catalog fields into entity and junction tables',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--field',
        action='append',
        choices=list(NORMALIZED_FIELDS),
        help='Field to normalize (repeatable, default: NORMALIZE_FIELDS)'
    )

    parser.add_argument(
        '--batch',
        type=int,
        default=config.processing.batch_size,
        help=f'Insert batch size (default: {config.processing.batch_size})'
    )

    args = parser.parse_args()
    setup_logging()

    print("\n" + "="*70)
    print("🧩 NETFLIX CATALOG - Field Normalizer")
    print("="*70)
    print(f"📅 Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"💾 Database: {config.database.database_url}")
    print(f"✂️  Separator: {config.normalization.separator!r}")

    start_time = time.time()
    try:
        results = normalize_catalog(fields=args.field, batch_size=args.batch)
    except Exception as e:
        print(f"\n❌ Normalization failed: {e}")
        logger.exception("Normalization failed")
        sys.exit(1)

    print("\n" + "="*70)
    print("📊 NORMALIZATION SUMMARY")
    print("="*70)
    for name, result in results.items():
        top = sorted(result.entities, key=lambda e: (-e.title_counter, e.entity_id))[:5]
        print(f"\n   • {name}: {len(result.entities):,} entities")
        for entity in top:
            print(f"     - {entity.name}: {entity.title_counter:,} titles")

    print(f"\n⏱️  Total time: {time.time() - start_time:.1f} seconds")
    print(f"📅 Finished: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("="*70 + "\n")


if __name__ == "__main__":
    main()
