class ImportFileError(Exception):
    """
    Raised when an uploaded identifier file cannot be accepted.

    This covers unsupported extensions, oversized files, undecodable content and
    files which contain no valid identifiers. The message is shown to the user
    so it should say what was wrong with the file.
    """

    pass


class MetadataLookupError(Exception):
    """
    Raised when the metadata service cannot resolve a single identifier.

    Lookups are retried by the orchestrator, so this is never fatal to a job on
    its own.
    """

    def __init__(self, isbn, message, *, status_code=None):
        super().__init__(message)
        self.isbn = isbn
        self.status_code = status_code


class OrchestrationError(Exception):
    """
    Raised when an import job cannot be driven to completion.

    Any OrchestrationError leaves the job in the Failed state.
    """

    pass


class ImportJobStateError(OrchestrationError):
    """
    Raised when a merge would move a job backwards or break one of its counters
    """

    pass
