"""Example usage of the fuzzy join system with CSV or Excel files."""

import pandas as pd
import logging
from pathlib import Path
from typing import Optional, Tuple

from config.models import (
    JoinConfig,
    KeyPair,
    MatchingAlgorithm,
    NormalizationConfig
)
from config.rules import ColumnSelection, NamedColumnsRule, PatternRule
from core.assembler import JoinResult
from core.dataset import Dataset
from core.joiner import FuzzyJoiner


def create_company_join(
    worker_processes: int = 1,
    threshold: float = 85
) -> FuzzyJoiner:
    """
    Create a joiner configured for company records.

    Companies are matched on name first; the city refines ambiguous names.

    Args:
        worker_processes: Number of worker processes (-1 for CPU count)
        threshold: Minimum edit-distance similarity for approximate matches

    Returns:
        FuzzyJoiner: Configured joiner instance
    """
    config = JoinConfig(
        key_pairs=[
            KeyPair('company_name', 'name'),
            KeyPair('city', 'city'),
        ],
        algorithms={
            MatchingAlgorithm.EXACT,
            MatchingAlgorithm.PHONETIC,
            MatchingAlgorithm.LEVENSHTEIN,
        },
        threshold=threshold,
        normalization=NormalizationConfig(
            lowercase=True,
            trim_whitespace=True,
            remove_special_chars=True,
            remove_numbers=False
        ),
        target_columns=ColumnSelection(
            include_rules=[
                NamedColumnsRule(['name', 'city']),
                PatternRule(r'url_.*'),
            ],
            exclude_columns=['internal_id']
        ),
        exclusive_targets=True
    )
    return FuzzyJoiner(config, worker_processes=worker_processes)


def read_table(path: Path) -> pd.DataFrame:
    """Read a CSV or Excel file as text."""
    if path.suffix.lower() in ('.xlsx', '.xls'):
        return pd.read_excel(path, dtype=str)
    return pd.read_csv(path, dtype=str)


def write_table(frame: pd.DataFrame, path: Path) -> None:
    """Write a CSV or Excel file."""
    if path.suffix.lower() == '.xlsx':
        with pd.ExcelWriter(
            path,
            engine='xlsxwriter',
            engine_kwargs={'options': {'strings_to_urls': False}}
        ) as writer:
            frame.to_excel(writer)
    else:
        frame.to_csv(path)


def join_files(
    master_file: Path,
    target_file: Path,
    output_file: Optional[Path] = None,
    unused_file: Optional[Path] = None,
    worker_processes: int = 1
) -> Tuple[pd.DataFrame, JoinResult]:
    """
    Join records between two files.

    Args:
        master_file: Path to the master file
        target_file: Path to the target file
        output_file: Optional path for the joined rows
        unused_file: Optional path for target rows nobody matched
        worker_processes: Number of worker processes

    Returns:
        Tuple[pd.DataFrame, JoinResult]: Joined rows and the full result
    """
    try:
        joiner = create_company_join(worker_processes=worker_processes)

        logging.info(f"Reading master file: {master_file}")
        master = Dataset.from_dataframe(master_file.stem, read_table(master_file), id_prefix='m')

        logging.info(f"Reading target file: {target_file}")
        target = Dataset.from_dataframe(target_file.stem, read_table(target_file), id_prefix='t')

        result = joiner.run(master, target)
        joined = result.to_dataframe()

        stats = result.statistics
        if stats.matched:
            logging.info("Algorithm Effectiveness:")
            matched = joined[joined['_match_status'] == 'matched']
            for method, group in matched.groupby('_match_method'):
                logging.info(
                    f"{method}: {len(group)} matches, "
                    f"average score: {group['_match_score'].mean():.1f}"
                )

        if output_file:
            logging.info(f"Saving joined rows to: {output_file}")
            write_table(joined, output_file)
        if unused_file:
            logging.info(f"Saving unused target rows to: {unused_file}")
            write_table(result.unused_target, unused_file)

        return joined, result

    except Exception as e:
        logging.error(f"An error occurred: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    join_files(
        master_file=Path('data/master.csv'),
        target_file=Path('data/target.csv'),
        output_file=Path('data/joined.xlsx'),
        unused_file=Path('data/unused_target.csv'),
        worker_processes=-1  # Use all available CPU cores
    )
