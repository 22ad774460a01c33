import warnings
from types import MappingProxyType
from typing import Any, Callable, Optional

import structlog

from laurel.utils.logging import get_logging_user_id

# Default global registry for semantic context extractors
_DEFAULT_EXTRACTORS: dict[str, Callable[[Any], dict[str, Any]]] = {}


def _register_default_extractor(
    context_key: str, extractor_function: Callable[[Any], dict[str, Any]]
):
    _DEFAULT_EXTRACTORS[context_key] = extractor_function


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


# Built-in extractors
_register_default_extractor("user", lambda user: {"user_id": get_logging_user_id(user)})

_register_default_extractor(
    "import_job",
    lambda import_job: {
        "import_job_id": _optional_str(getattr(import_job, "pk", None)),
        "library_id": _optional_str(getattr(import_job, "library_id", None)),
        "import_status": getattr(import_job, "status", None),
    },
)

_register_default_extractor(
    "chunk",
    lambda chunk: {
        "chunk_number": getattr(chunk, "number", None),
        "chunk_size": len(getattr(chunk, "isbns", ()) or ()),
    },
)

_register_default_extractor(
    "import_context",
    lambda import_context: {
        "library_id": _optional_str(getattr(import_context, "library_id", None)),
        **_DEFAULT_EXTRACTORS["user"](getattr(import_context, "user", None)),
    },
)

# Freeze default extractors to prevent mutation
_DEFAULT_EXTRACTORS = MappingProxyType(_DEFAULT_EXTRACTORS)


class LaurelLogger:
    """
    A structured logging wrapper around structlog that enforces consistent logging
    conventions across Laurel.

    Features:
        - Requires 'message' and 'event_code' for all logs, and 'reason'/'reason_code'
          for warnings/errors.
        - Automatically extracts common context from objects like ImportJob, User
          and import chunks.
        - Allows semantic binding of objects (e.g., import_job=job) which are
          expanded at log time.

    Usage:
    -----

    Create a logger:
        ```python
        structured_logger = LaurelLogger.get_logger(__name__)
        ```

    Log an info-level event:
        ```python
        structured_logger.info(
            "Import job started.",
            event_code="import_job_started",
            import_job=job,
        )
        ```

    Log a warning with reason:
        ```python
        structured_logger.warning(
            "Identifier lookup exhausted its retries.",
            event_code="import_isbn_failed",
            reason="The metadata service returned 404 for every attempt.",
            reason_code="retries_exhausted",
            import_job=job,
            isbn=isbn,
        )
        ```

    Special Context Expansion:
    --------------------------

    - `user` -> `user_id`
    - `import_job` -> `import_job_id`, `library_id`, `import_status`
    - `chunk` -> `chunk_number`, `chunk_size`
    - `import_context` -> `library_id`, `user_id`

    Explicit values passed (e.g., `library_id=...`) override extracted ones. Fields
    with `None` values are omitted from the final log output.

    Extractors registered on a single logger with `register_extractor()` override
    the default for that logger only. Chained defaults (`import_context` -> `user`)
    always use the global default implementation.
    """

    def __init__(self, logger, context: Optional[dict[str, Any]] = None):
        self._logger = logger
        self._context = context or {}
        self._extractors = _DEFAULT_EXTRACTORS.copy()

    @classmethod
    def get_logger(cls, name: str) -> "LaurelLogger":
        """
        Factory method to create a LaurelLogger from a given logger name.

        Args:
            name (str): The logger name (typically __name__).

        Returns:
            LaurelLogger: A logger instance with enriched behavior.
        """
        return cls(structlog.get_logger(f"structlog.{name}"))

    def register_extractor(
        self, key: str, extractor: Callable[[Any], dict[str, Any]]
    ) -> None:
        """
        Register a custom context extractor for this logger instance only.
        """
        self._extractors[key] = extractor
        if key in _DEFAULT_EXTRACTORS:
            warnings.warn(
                f"Extractor for '{key}' registered but default extractors may still "
                f"reference the default implementation via chaining. Overriding it "
                f"here will not affect those chained uses.",
                UserWarning,
                stacklevel=2,
            )

    def unregister_extractor(self, key: str) -> None:
        self._extractors.pop(key, None)

    def log(
        self,
        level: str,
        message: str,
        *,
        event_code: str,
        reason: Optional[str] = None,
        reason_code: Optional[str] = None,
        **context: Any,
    ) -> None:
        """
        Emit structured logs with standardized context. This shouldn't be called
        directly under ordinary circumstances; use one of the level methods
        (debug, info, warning, error) instead.

        Raises:
            ValueError: If required fields are missing for the given log level.
        """
        if not message:
            raise ValueError("Log message is required.")
        if not event_code:
            raise ValueError("Structured logs must include an 'event_code' field.")
        if level in ("warning", "error") and (not reason or not reason_code):
            raise ValueError(
                "Warnings and errors must include both 'reason' and 'reason_code'."
            )

        context_data = {"event_code": event_code}
        if reason:
            context_data["reason"] = reason
        if reason_code:
            context_data["reason_code"] = reason_code

        bound_context = self._context

        # Extract data from provided context, falling back to the bound context
        for context_key, extractor_function in self._extractors.items():
            context_object = context.pop(context_key, bound_context.get(context_key))
            if context_object:
                extracted_fields = extractor_function(context_object)
                for key, value in extracted_fields.items():
                    if value is not None:
                        context_data.setdefault(key, value)

        for key, value in bound_context.items():
            if key not in self._extractors and key not in context and value is not None:
                context_data[key] = value

        # Explicit values win over both extracted and bound context
        for key, value in context.items():
            if value is not None:
                context_data[key] = value

        getattr(self._logger, level)(message, **context_data)

    def debug(self, message: str, *, event_code: str, **kwargs):
        """Emit a debug-level structured log."""
        self.log("debug", message, event_code=event_code, **kwargs)

    def info(self, message: str, *, event_code: str, **kwargs):
        """Emit an info-level structured log."""
        self.log("info", message, event_code=event_code, **kwargs)

    def warning(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        """Emit a warning-level structured log. Requires reason and reason_code."""
        self.log(
            "warning",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )

    def error(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        """Emit an error-level structured log. Requires reason and reason_code."""
        self.log(
            "error",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )

    def bind(self, **kwargs: Any) -> "LaurelLogger":
        """
        Return a new LaurelLogger with additional context permanently bound.

        Objects with registered extractors (import_job, user, ...) are expanded
        into structured fields at log time.
        """
        # Our own bound context rather than structlog's .bind so that we can
        # read it back when expanding extractors
        new_context = self._context.copy()
        new_context.update(kwargs)
        return LaurelLogger(self._logger, context=new_context)

    def exception(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        """
        Emit an error-level structured log with the exception currently being
        handled attached. Requires reason and reason_code.
        """
        kwargs.setdefault("exc_info", True)
        self.error(
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )
