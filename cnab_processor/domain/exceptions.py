"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class LineFormatError(DomainException):
    """A CNAB line could not be decoded at its fixed offsets"""

    pass


class UploadValidationError(DomainException):
    """Uploaded file was rejected before parsing"""

    pass


class BulkInsertError(DomainException):
    """Bulk insert failed and its database transaction was rolled back"""

    def __init__(self, message: str, batches_attempted: int = 0, records_staged: int = 0):
        super().__init__(message)
        self.batches_attempted = batches_attempted
        self.records_staged = records_staged


class ImportCancelledError(DomainException):
    """Import was cancelled while parsing or loading; nothing from it is persisted"""

    def __init__(self, message: str, batches_attempted: int = 0, records_staged: int = 0):
        super().__init__(message)
        self.batches_attempted = batches_attempted
        self.records_staged = records_staged
