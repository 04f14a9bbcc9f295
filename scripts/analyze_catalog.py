"""
============================================================================
NETFLIX CATALOG - Analysis Report
============================================================================
Runs every catalog query and prints the results section by section.
Optionally exports each result table and draws summary charts.

📊 SECTIONS:
    1. Data Quality Checks
    2. Basic Exploration
    3. Genre Analysis
    4. Temporal Analysis
    5. Relationship Analysis (director self-joins)
    6. Normalized Data Model (countries × ratings/genres/years)

🔧 USAGE:
    python scripts/analyze_catalog.py [--export] [--plot] [--country NAME]

    Options:
        --export         Save every result table (EXPORT_FORMAT: csv or json)
        --plot           Save bar charts of top countries and genres
        --country NAME   Country for the "titles from country" query (default: Poland)

📊 OUTPUT:
    - data/reports/analysis/<query>.csv|json
    - data/reports/analysis/figures/*.png
============================================================================
"""

import sys
import logging
import argparse
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Tuple, Callable

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import config, setup_logging
import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from sqlalchemy.engine import Engine
from scripts import catalog_queries as q
from scripts.load_catalog_to_db import engine

logger = logging.getLogger(__name__)


def build_sections(target_engine: Engine, country: str = 'Poland') -> List[Tuple[str, List[Tuple[str, Callable]]]]:
    """Report layout: (section title, [(result name, query thunk), ...])."""
    e = target_engine
    analysis = config.analysis

    return [
        ("🧪 DATA QUALITY CHECKS", [
            ('table_structure', lambda: q.describe_table(e)),
            ('null_counts', lambda: q.null_counts(e)),
            ('duplicate_show_ids', lambda: q.duplicate_show_ids(e)),
        ]),
        ("🔎 BASIC EXPLORATION", [
            ('total_titles', lambda: pd.DataFrame({'total_shows': [q.total_titles(e)]})),
            ('preview', lambda: q.preview_titles(('type', 'title'), 2, e)),
            ('oldest_release_years', lambda: q.oldest_release_years(2, e)),
            ('titles_from_country', lambda: q.titles_from_country(country, 'Movie', 5, e)),
        ]),
        ("🎭 GENRE ANALYSIS", [
            ('comedy_drama_by_type', lambda: q.genre_type_counts(('Comedies', 'Dramas'), e)),
            ('top_genres', lambda: q.entity_counts('genres', analysis.report_limit, e)),
        ]),
        ("📅 TEMPORAL ANALYSIS", [
            ('titles_per_release_year', lambda: q.titles_per_release_year(3, e)),
            ('release_year_stats_by_type', lambda: q.release_year_stats_by_type(e)),
            ('monthly_additions_by_type', lambda: q.monthly_additions_by_type(e)),
            ('yearly_additions_by_type', lambda: q.yearly_additions_by_type(10, e)),
        ]),
        ("🎬 RELATIONSHIP ANALYSIS", [
            ('shared_director_pairs', lambda: q.shared_director_pairs(1, e)),
            ('cross_type_director_pairs', lambda: q.cross_type_director_pairs(1, e)),
            ('cross_type_director_pair_count',
             lambda: pd.DataFrame({'count': [q.count_cross_type_director_pairs(e)]})),
        ]),
        ("🌍 NORMALIZED DATA MODEL", [
            ('relationship_counts', lambda: pd.DataFrame({
                'genre_relationships': [q.relationship_count('genres', e)],
                'country_relationships': [q.relationship_count('countries', e)],
            })),
            ('top_countries', lambda: q.entity_counts('countries', analysis.report_limit, e)),
            ('rating_share_by_country', lambda: q.rating_share_by_country(target_engine=e)),
            ('genre_specialization_by_country', lambda: q.genre_specialization_by_country(target_engine=e)),
            ('release_year_stats_by_country', lambda: q.release_year_stats_by_country(target_engine=e)),
        ]),
    ]


def run_report(target_engine: Engine = None, country: str = 'Poland', verbose: bool = True) -> Dict[str, pd.DataFrame]:
    """
    Run every query and print the results.

    A failing query is reported and skipped; the rest of the report still runs.
    """
    target_engine = target_engine or engine
    results = {}

    for title, queries in build_sections(target_engine, country):
        if verbose:
            print("\n" + "="*70)
            print(title)
            print("="*70)

        for name, run in queries:
            try:
                df = run()
            except Exception as e:
                print(f"\n   ❌ {name}: {e}")
                logger.exception("Query %s failed", name)
                continue

            results[name] = df
            if verbose:
                print(f"\n▶ {name}")
                print(df.to_string(index=False) if not df.empty else "   (no rows)")

    return results


def export_results(results: Dict[str, pd.DataFrame], output_dir: Path, export_format: str = None) -> List[Path]:
    """Write every result table to output_dir as csv or json."""
    export_format = (export_format or config.processing.export_format).lower()
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for name, df in results.items():
        path = output_dir / f"{name}.{export_format}"
        if export_format == 'json':
            df.to_json(path, orient='records', indent=2)
        elif export_format == 'csv':
            df.to_csv(path, index=False)
        else:
            raise ValueError(f"Unsupported export format: {export_format}")
        written.append(path)

    logger.info("Exported %d result tables to %s", len(written), output_dir)
    return written


def plot_entity_counts(countries: pd.DataFrame, genres: pd.DataFrame) -> plt.Figure:
    """Bar charts of the most referenced countries and genres."""
    sns.set_palette("husl")
    fig, axes = plt.subplots(1, 2, figsize=(16, 7))
    fig.suptitle('🌍 Catalog Composition', fontsize=20, fontweight='bold')

    for ax, df, label in ((axes[0], countries, 'Countries'), (axes[1], genres, 'Genres')):
        if df.empty:
            ax.text(0.5, 0.5, 'No data', ha='center', va='center', fontsize=14)
            ax.axis('off')
            continue

        colors = plt.cm.Set3(np.linspace(0, 1, len(df)))
        bars = ax.barh(range(len(df)), df['title_counter'].values, color=colors)
        ax.set_yticks(range(len(df)))
        ax.set_yticklabels(df['name'])
        ax.set_xlabel('Number of Titles', fontsize=12)
        ax.set_title(f'Top {len(df)} {label}', fontsize=14, fontweight='bold')
        ax.invert_yaxis()

        for i, (bar, count) in enumerate(zip(bars, df['title_counter'].values)):
            ax.text(count, i, f' {count}', va='center', fontsize=10)

    plt.tight_layout()
    return fig


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Run the catalog analysis report',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--export',
        action='store_true',
        help=f'Export result tables as {config.processing.export_format}'
    )

    parser.add_argument(
        '--plot',
        action='store_true',
        help='Save bar charts of top countries and genres'
    )

    parser.add_argument(
        '--country',
        type=str,
        default='Poland',
        help='Country for the titles-from-country query (default: Poland)'
    )

    args = parser.parse_args()
    setup_logging()

    print("\n" + "="*70)
    print("🎬 NETFLIX CATALOG - Analysis Report")
    print("="*70)
    print(f"📅 Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"💾 Database: {config.database.database_url}")

    results = run_report(country=args.country)
    output_dir = config.paths.reports_dir / 'analysis'

    if args.export:
        written = export_results(results, output_dir)
        print(f"\n💾 Exported {len(written)} tables to {output_dir}")

    if args.plot and 'top_countries' in results and 'top_genres' in results:
        figures_dir = output_dir / 'figures'
        figures_dir.mkdir(parents=True, exist_ok=True)
        fig = plot_entity_counts(results['top_countries'], results['top_genres'])
        fig.savefig(figures_dir / 'catalog_composition.png', dpi=150, bbox_inches='tight')
        plt.close(fig)
        print(f"🖼️  Figure: {figures_dir / 'catalog_composition.png'}")

    print("\n" + "="*70)
    print("✅ ANALYSIS COMPLETE!")
    print("="*70)
    print(f"📅 Finished: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("="*70 + "\n")


if __name__ == "__main__":
    main()
