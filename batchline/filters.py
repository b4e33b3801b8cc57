from batchline.interfaces import RecordFilter
from batchline.schemas import RawRecord


class HeaderRecordFilter:
    """Rejects the first record of a run, the header line of a delimited file."""

    def accepts(self, record: RawRecord) -> bool:
        return record.number != 1


class EmptyRecordFilter:
    def accepts(self, record: RawRecord) -> bool:
        payload = record.payload
        if payload is None:
            return False
        if isinstance(payload, str):
            return bool(payload.strip())
        return True


class _AllOf:
    def __init__(self, filters: tuple[RecordFilter, ...]) -> None:
        self.filters = filters

    def accepts(self, record: RawRecord) -> bool:
        return all(record_filter.accepts(record) for record_filter in self.filters)


def all_of(*filters: RecordFilter) -> RecordFilter:
    return _AllOf(filters)
