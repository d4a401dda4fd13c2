from __future__ import annotations


class KinesimError(Exception):
    """Base exception class for all kinesim-specific errors.

    All custom exceptions in kinesim inherit from this class, so a host can
    catch every kinesim failure at its boundary while letting system
    exceptions propagate naturally.

    Attributes:
        message: Human-readable error message describing what went wrong.

    Example:
        ```python
        try:
            controllers = compile_controllers(document, model)
        except KinesimError as e:
            logger.error(f"kinesim error: {e.message}")
            sys.exit(1)
        ```
    """

    def __init__(self, message: str) -> None:
        """Initialize the KinesimError.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)
