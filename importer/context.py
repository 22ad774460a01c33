import uuid
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ImportContext:
    """
    The library and user an import runs on behalf of.

    Passed explicitly to the code which creates and queries import jobs rather
    than read from a request or any other ambient state.
    """

    library_id: uuid.UUID
    user: Optional[Any] = None

    @classmethod
    def for_job(cls, job):
        return cls(library_id=job.library_id, user=job.created_by)
