from __future__ import annotations

import logging
import pathlib
import threading
from typing import Any, Dict, List, Optional, Protocol, Union

import yaml

from paperboy.utils.exceptions import ConfigurationError

logger = logging.getLogger('zip_lookup')


def normalize_zip(code: str) -> str:
    """
    First five digits found in ``code``.

    ``"94103-1234"`` becomes ``"94103"``; text without digits becomes ``""``.
    """
    digits = []
    for char in code.strip():
        if char.isdigit():
            digits.append(char)
            if len(digits) == 5:
                break
    return ''.join(digits)


def looks_numeric(text: str) -> bool:
    """Whether ``text`` looks like a ZIP code rather than a city name."""
    stripped = text.strip()
    return all(c.isdigit() or c in '- ' for c in stripped)


class ZipLookup(Protocol):
    """Resolves US ZIP codes to ``"City, ST"`` strings."""

    def lookup(self, code: str) -> str:
        """Resolved city, or an empty string when there is no mapping. Blocking."""
        ...

    def suggest_cities(self, text: str, limit: int) -> List[str]:
        """Up to ``limit`` known cities whose name starts with ``text``."""
        ...


class StaticZipLookup:
    """
    ZIP lookup backed by a YAML table of ``zip: "City, ST"`` entries.

    The table is read lazily on first use, under a lock, so the load happens
    on whichever worker thread asks first. A ZIP without an exact entry falls
    back to the first entry sharing its 3, 2 or 1 digit prefix.
    """

    def __init__(self,
                 table: Optional[Dict[str, str]] = None,
                 path: Optional[Union[str, pathlib.Path]] = None) -> None:
        """
        Initialize the lookup.

        Args:
            table: In-memory table; takes precedence over ``path``
            path: YAML file to load the table from
        """
        self._path = pathlib.Path(path) if path else None
        self._table: Dict[str, str] = {}
        self._cities: List[str] = []
        self._loaded = False
        self._load_error: Optional[ConfigurationError] = None
        self._load_lock = threading.Lock()
        if table is not None:
            self._ingest(table)
            self._loaded = True

    @classmethod
    def from_config(cls, config_manager: Any) -> StaticZipLookup:
        """Build the lookup from ``location.zip_table``."""
        path = config_manager.get('location.zip_table', '')
        return cls(path=path or None)

    def _ensure_loaded(self) -> None:
        with self._load_lock:
            if self._load_error is not None:
                raise self._load_error
            if self._loaded:
                return
            if self._path is None:
                self._loaded = True
                return
            try:
                with open(self._path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f) or {}
            except FileNotFoundError:
                logger.warning(f"ZIP table {self._path} not found; lookups will miss")
                self._loaded = True
                return
            except yaml.YAMLError as e:
                self._load_error = ConfigurationError(
                    f'Error parsing ZIP table {self._path}: {str(e)}',
                    config_key='location.zip_table'
                )
                raise self._load_error from e
            if not isinstance(data, dict):
                self._load_error = ConfigurationError(
                    f'ZIP table {self._path} must be a mapping',
                    config_key='location.zip_table'
                )
                raise self._load_error
            self._ingest(data)
            self._loaded = True
            logger.debug(f"Loaded {len(self._table)} ZIP entries from {self._path}")

    def _ingest(self, table: Dict[Any, Any]) -> None:
        for raw_zip, city in table.items():
            key = normalize_zip(str(raw_zip).zfill(5) if isinstance(raw_zip, int) else str(raw_zip))
            if len(key) != 5 or not city:
                continue
            city = str(city).strip()
            self._table.setdefault(key, city)
            if city not in self._cities:
                self._cities.append(city)

    def lookup(self, code: str) -> str:
        """
        Resolve ``code`` to a city.

        Args:
            code: ZIP or ZIP+4 as typed

        Returns:
            ``"City, ST"``, or an empty string when nothing maps
        """
        self._ensure_loaded()
        digits = normalize_zip(code)
        if not digits:
            return ''
        if len(digits) == 5 and digits in self._table:
            return self._table[digits]

        for prefix_len in (3, 2, 1):
            if prefix_len > len(digits):
                continue
            prefix = digits[:prefix_len]
            for key, city in self._table.items():
                if key.startswith(prefix):
                    return city
        return ''

    def suggest_cities(self, text: str, limit: int) -> List[str]:
        """
        Case-insensitive prefix match over the known cities.

        Args:
            text: Prefix typed so far
            limit: Maximum number of suggestions

        Returns:
            Matching cities in table order
        """
        self._ensure_loaded()
        prefix = text.strip().lower()
        if not prefix or limit <= 0:
            return []
        matches = []
        for city in self._cities:
            if city.lower().startswith(prefix):
                matches.append(city)
                if len(matches) >= limit:
                    break
        return matches

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._table)
