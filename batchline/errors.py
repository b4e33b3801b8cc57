class BatchError(Exception):
    pass


class SourceUnavailable(BatchError):
    pass


class MappingError(BatchError):
    def __init__(self, number: int, reason: str) -> None:
        super().__init__(f"record {number}: {reason}")
        self.number = number
        self.reason = reason


class ProcessingError(BatchError):
    def __init__(self, number: int, stage: str, reason: str) -> None:
        super().__init__(f"record {number} failed in stage '{stage}': {reason}")
        self.number = number
        self.stage = stage
        self.reason = reason


class SinkError(BatchError):
    pass
