"""Key normalization applied to every compared cell value."""

from typing import Any
from abc import ABC, abstractmethod
from functools import lru_cache
import numbers
import numpy as np
import re
import pandas as pd

from config.models import NormalizationConfig

_SPECIAL_CHARS = re.compile(r'[^a-zA-Z0-9\s|]')
_DIGITS = re.compile(r'[0-9]')
_WHITESPACE = re.compile(r'\s+')


class BasePreprocessor(ABC):
    """Base class for preprocessors with common functionality."""

    @abstractmethod
    def process(self, value: Any) -> str:
        """Process a value into a standardized string format."""
        pass

    def _handle_null(self, value: Any) -> bool:
        """Check if value is null/empty."""
        if value is None:
            return True
        return pd.api.types.is_scalar(value) and bool(pd.isna(value))


def to_text(value: Any) -> str:
    """Render a non-null cell value the way it reads in a table."""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, np.bool_)):
        return 'true' if value else 'false'
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, numbers.Real):
        number = float(value)
        if number.is_integer():
            return str(int(number))
        return repr(number)
    return str(value)


class KeyNormalizer(BasePreprocessor):
    """
    Canonicalizes key values according to a NormalizationConfig.

    Steps run in a fixed order: lowercase, trim, strip special characters
    (the pipe survives, it separates composite keys), strip digits, collapse
    whitespace. With trimming on, the collapsed result is trimmed again.
    """

    def __init__(self, config: NormalizationConfig):
        self.config = config

    def process(self, value: Any) -> str:
        if self._handle_null(value):
            return ''
        return _normalize_text(to_text(value), self.config)


@lru_cache(maxsize=65536)
def _normalize_text(text: str, config: NormalizationConfig) -> str:
    if config.lowercase:
        text = text.lower()
    if config.trim_whitespace:
        text = text.strip()
    if config.remove_special_chars:
        text = _SPECIAL_CHARS.sub('', text)
    if config.remove_numbers:
        text = _DIGITS.sub('', text)

    text = _WHITESPACE.sub(' ', text)

    if config.trim_whitespace:
        text = text.strip()
    return text


def normalize(value: Any, config: NormalizationConfig) -> str:
    """
    Normalize one cell value. Total: null or missing values map to ''.

    Args:
        value: Raw cell value
        config: Normalization toggles

    Returns:
        str: Canonical form used for every comparison
    """
    return KeyNormalizer(config).process(value)
