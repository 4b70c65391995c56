"""
Historical draw records.

A draw is one row of historical data: its index in the series, the
date it happened and the fixed-size set of numbers that came out.
The evolution loop consumes draws one per generation tick.
"""
import json
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from . import settings
from .exceptions import ValidationError

DATE_FORMATS = ('%Y-%m-%d', '%d/%m/%Y')


@dataclass(frozen=True)
class Draw:
    """One historical draw."""
    draw_index: int
    numbers: Tuple[int, ...]
    date: Optional[date] = None

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        universe: int = settings.NUMBER_UNIVERSE,
    ) -> 'Draw':
        """
        Build a draw from a loosely-typed record.

        Accepts both ``drawIndex`` and ``draw_index`` keys. Dates may be
        ISO (``2024-01-31``) or day-first (``31/01/2024``).

        Raises:
            ValidationError: If any field is missing or malformed.
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Draw record must be a mapping, got {type(data).__name__}")

        draw_index = data.get('draw_index', data.get('drawIndex'))
        if not _is_int(draw_index):
            raise ValidationError(f"Draw index must be an integer, got {draw_index!r}")

        numbers = validate_numbers(data.get('numbers'), universe=universe)

        return cls(
            draw_index=draw_index,
            numbers=numbers,
            date=_parse_date(data.get('date')),
        )

    def to_dict(self) -> dict:
        return {
            'draw_index': self.draw_index,
            'date': self.date.isoformat() if self.date else None,
            'numbers': list(self.numbers),
        }


def validate_numbers(
    numbers: Any,
    universe: int = settings.NUMBER_UNIVERSE,
) -> Tuple[int, ...]:
    """
    Check a number set and return it as a sorted tuple.

    Raises:
        ValidationError: On non-sequences, non-integers, duplicates or
            numbers outside 1..universe.
    """
    if isinstance(numbers, (str, bytes)) or not isinstance(numbers, Iterable):
        raise ValidationError(f"Numbers must be a sequence, got {numbers!r}")

    numbers = list(numbers)
    for num in numbers:
        if not _is_int(num):
            raise ValidationError(f"Draw numbers must be integers, got {num!r}")
        if not 1 <= num <= universe:
            raise ValidationError(f"Draw number {num} outside 1..{universe}")

    if len(set(numbers)) != len(numbers):
        raise ValidationError(f"Draw numbers must be unique: {numbers}")

    return tuple(sorted(numbers))


def load_draws(
    records: Iterable[Mapping[str, Any]],
    universe: int = settings.NUMBER_UNIVERSE,
) -> List[Draw]:
    """Validate a sequence of draw records, keeping their order."""
    return [Draw.from_dict(record, universe=universe) for record in records]


def read_draws_json(
    path: Union[str, Path],
    universe: int = settings.NUMBER_UNIVERSE,
) -> List[Draw]:
    """
    Read draws from a JSON file holding a list of draw records.

    Raises:
        ValidationError: If the document is not a list of valid records.
        OSError: If the file cannot be read.
    """
    with open(path, 'r') as f:
        records = json.load(f)

    if not isinstance(records, list):
        raise ValidationError(f"{path}: expected a JSON list of draw records")

    return load_draws(records, universe=universe)


def encode_draw(
    numbers: Sequence[int],
    universe: int = settings.NUMBER_UNIVERSE,
) -> List[float]:
    """One-hot encode a number set over 1..universe."""
    features = [0.0] * universe
    for num in numbers:
        if 1 <= num <= universe:
            features[num - 1] = 1.0
    return features


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(value, fmt).date()
            except ValueError:
                continue
    raise ValidationError(f"Unrecognised draw date: {value!r}")
