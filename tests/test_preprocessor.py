import math

import pandas as pd

from config.models import NormalizationConfig
from core.preprocessor import KeyNormalizer, normalize, to_text

ALL_ON = NormalizationConfig(
    lowercase=True,
    trim_whitespace=True,
    remove_special_chars=True,
    remove_numbers=True,
)
ALL_OFF = NormalizationConfig(
    lowercase=False,
    trim_whitespace=False,
    remove_special_chars=False,
    remove_numbers=False,
)


def test_null_values_normalize_to_empty_string() -> None:
    config = NormalizationConfig()
    assert normalize(None, config) == ''
    assert normalize(float('nan'), config) == ''
    assert normalize(pd.NA, config) == ''
    assert normalize(pd.NaT, config) == ''


def test_default_config_lowercases_trims_and_strips_specials() -> None:
    assert normalize("  Hello,   World! ", NormalizationConfig()) == 'hello world'


def test_pipe_survives_special_character_stripping() -> None:
    assert normalize("A|B-C", NormalizationConfig()) == 'a|bc'


def test_digits_removed_only_when_enabled() -> None:
    assert normalize("Route 66 North", NormalizationConfig()) == 'route 66 north'
    assert normalize("Route 66 North", ALL_ON) == 'route north'


def test_whitespace_always_collapsed() -> None:
    assert normalize("A \t\n b", ALL_OFF) == 'A b'
    assert normalize("  A  ", NormalizationConfig(trim_whitespace=False)) == ' a '


def test_trim_applies_to_whitespace_left_by_stripping() -> None:
    assert normalize("acme -", NormalizationConfig()) == 'acme'
    assert normalize("acme 42", ALL_ON) == 'acme'


def test_non_ascii_letters_are_special_characters() -> None:
    assert normalize("Café Müller", NormalizationConfig()) == 'caf mller'


def test_numbers_and_booleans_render_as_table_text() -> None:
    keep = NormalizationConfig(remove_special_chars=False)
    assert normalize(42, keep) == '42'
    assert normalize(42.0, keep) == '42'
    assert normalize(3.5, keep) == '3.5'
    assert normalize(True, keep) == 'true'
    assert to_text(False) == 'false'


def test_normalization_is_idempotent() -> None:
    samples = [
        "  Hello,   World! ",
        "acme -",
        " - 12 Main St. -",
        "O'Brien & Sons | Ltd",
        "\tTabs\tand\nnewlines ",
        "İstanbul",
        "",
        "123",
        42.5,
        None,
    ]
    configs = [NormalizationConfig(), ALL_ON, ALL_OFF,
               NormalizationConfig(trim_whitespace=False),
               NormalizationConfig(lowercase=False, remove_numbers=True)]
    for config in configs:
        for sample in samples:
            once = normalize(sample, config)
            assert normalize(once, config) == once, (sample, config)


def test_key_normalizer_process_matches_function() -> None:
    config = NormalizationConfig()
    normalizer = KeyNormalizer(config)
    assert normalizer.process(" ACME Corp. ") == normalize(" ACME Corp. ", config)
    assert normalizer.process(math.nan) == ''
