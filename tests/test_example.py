import pandas as pd

from join_example import create_company_join, join_files


def _write(path, rows) -> None:
    pd.DataFrame(rows).to_csv(path, index=False)


def test_company_join_settings() -> None:
    joiner = create_company_join(threshold=90)
    assert [pair.left for pair in joiner.config.key_pairs] == ["company_name", "city"]
    assert joiner.config.threshold == 90.0
    assert joiner.worker_processes == 1


def test_join_files_writes_joined_and_unused_rows(tmp_path) -> None:
    master_file = tmp_path / "master.csv"
    target_file = tmp_path / "target.csv"
    output_file = tmp_path / "joined.csv"
    unused_file = tmp_path / "unused.csv"
    _write(master_file, [
        {"company_name": "Acme Corp", "city": "Paris"},
        {"company_name": "Globex", "city": "Springfield"},
        {"company_name": "Nobody Ltd", "city": "Nowhere"},
    ])
    _write(target_file, [
        {"name": "ACME Corp.", "city": "paris", "url_home": "acme.example", "internal_id": "1"},
        {"name": "Globex", "city": "Spingfield", "url_home": "globex.example", "internal_id": "2"},
        {"name": "Initech", "city": "Austin", "url_home": "initech.example", "internal_id": "3"},
    ])

    joined, result = join_files(master_file, target_file, output_file, unused_file)

    assert list(joined["_match_status"]) == ["matched", "matched", "unmatched"]
    assert list(joined["_match_method"])[:2] == ["EXACT", "LEVENSHTEIN"]
    assert list(joined.columns[:5]) == ["company_name", "city", "name", "city_target", "url_home"]
    assert "internal_id" not in joined.columns
    assert result.statistics.unused_target == 1

    written = pd.read_csv(output_file, index_col="id")
    assert list(written.index) == ["m-0", "m-1", "m-2"]
    unused = pd.read_csv(unused_file, index_col="id")
    assert list(unused["name"]) == ["Initech"]
