from collections.abc import Callable, Mapping, Sequence
import csv
from typing import Any

from batchline.errors import MappingError
from batchline.schemas import RawRecord


Converter = Callable[[str], Any]


class _FieldMapper:
    def __init__(
        self,
        target: Callable[..., Any],
        fields: Sequence[str],
        converters: Mapping[str, Converter] | None = None,
    ) -> None:
        if not fields:
            raise ValueError("at least one field name is required")
        self.target = target
        self.fields = tuple(fields)
        self.converters = dict(converters or {})

    def _build(self, record: RawRecord, values: Mapping[str, object]) -> Any:
        kwargs: dict[str, object] = {}
        for name in self.fields:
            raw = values.get(name)
            value = "" if raw is None else str(raw).strip()
            if not value:
                raise MappingError(record.number, f"{name} is required")

            converter = self.converters.get(name)
            if converter is None:
                kwargs[name] = value
                continue
            try:
                kwargs[name] = converter(value)
            except (TypeError, ValueError) as exc:
                raise MappingError(record.number, f"{name} has invalid value {value!r}: {exc}") from exc

        try:
            return self.target(**kwargs)
        except (TypeError, ValueError) as exc:
            raise MappingError(record.number, f"cannot build {getattr(self.target, '__name__', 'object')}: {exc}") from exc


class DelimitedRecordMapper(_FieldMapper):
    """Maps one delimited text line to ``target`` by field position.

    Quoted values follow CSV rules, so a quoted delimiter stays inside its
    field.
    """

    def __init__(
        self,
        target: Callable[..., Any],
        fields: Sequence[str],
        *,
        delimiter: str = ",",
        quotechar: str = '"',
        converters: Mapping[str, Converter] | None = None,
    ) -> None:
        super().__init__(target, fields, converters)
        self.delimiter = delimiter
        self.quotechar = quotechar

    def map(self, record: RawRecord) -> Any:
        if not isinstance(record.payload, str):
            raise MappingError(record.number, "payload is not a text line")

        try:
            values = next(csv.reader([record.payload], delimiter=self.delimiter, quotechar=self.quotechar), [])
        except csv.Error as exc:
            raise MappingError(record.number, f"malformed line: {exc}") from exc

        if len(values) != len(self.fields):
            raise MappingError(
                record.number,
                f"expected {len(self.fields)} fields but found {len(values)}",
            )
        return self._build(record, dict(zip(self.fields, values)))


class RowRecordMapper(_FieldMapper):
    """Maps a column mapping (a result row) to ``target``; column names are
    matched case-insensitively."""

    def map(self, record: RawRecord) -> Any:
        if not isinstance(record.payload, Mapping):
            raise MappingError(record.number, "payload is not a row mapping")

        columns = {str(key).lower(): value for key, value in record.payload.items()}
        return self._build(record, {name: columns.get(name.lower()) for name in self.fields})
