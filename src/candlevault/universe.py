"""Loading of the seed instrument universe.

The universe is a JSON array of objects with ``symbol``, ``name``,
``industry``, ``subindustry`` and ``exchange`` keys, e.g.::

    [
      {"symbol": "AAPL", "name": "Apple Inc.", "industry": "Information Technology",
       "subindustry": "Technology Hardware", "exchange": "NASDAQ"}
    ]

Order is preserved; it is the order in which instruments are ingested.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError

from .exceptions import ConfigError
from .providers.models import Instrument

SEED_FIELDS = ("symbol", "name", "industry", "subindustry", "exchange")


def load_universe(path: Union[str, Path]) -> List[Instrument]:
    """Parse and validate a universe file.

    :param path: Path to the JSON universe file.
    :returns: Unresolved instruments in file order.
    :raises ConfigError: If the file cannot be read or a record is invalid.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Universe file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in universe file {path}: {e}") from e

    if not isinstance(raw, list):
        raise ConfigError("Universe must be a JSON array of symbol records")

    instruments: List[Instrument] = []
    for index, record in enumerate(raw):
        if not isinstance(record, dict):
            raise ConfigError(f"Universe record {index} must be an object")
        seed = {key: record.get(key) for key in SEED_FIELDS}
        try:
            instruments.append(Instrument(**seed))
        except ValidationError as e:
            raise ConfigError(f"Invalid universe record {index} ({record.get('symbol')}): {e}") from e
    return instruments
