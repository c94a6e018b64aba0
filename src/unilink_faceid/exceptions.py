"""
Custom exception classes for the UniLink FaceID core.

This module defines the exception hierarchy used across validation,
matching, enrollment and storage. Validation errors are client errors and
carry enough context (which sample, which position) to drive UI feedback.
Storage errors are opaque infrastructure failures that callers may retry.

A non-matching verdict is never an exception.
"""

from typing import Optional, Dict, Any


class FaceIdError(Exception):
    """
    Base exception class for all UniLink FaceID errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    context : dict, optional
        Additional context information about the error.
    error_code : str, optional
        Unique error code for programmatic handling.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.error_code = error_code
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return a formatted string representation of the error."""
        parts = [self.message]

        if self.error_code:
            parts.append(f"[Error Code: {self.error_code}]")

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"[Context: {context_str}]")

        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the exception to a dictionary for structured logging
        and API error payloads.

        Returns
        -------
        dict
            Dictionary representation of the exception.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class DescriptorValidationError(FaceIdError):
    """
    Exception raised when client-supplied descriptor data is malformed.

    These errors are always recoverable by the caller resubmitting
    corrected input and are never retried automatically.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message, context, error_code)


class BadDimensionalityError(DescriptorValidationError):
    """Exception raised when a descriptor does not have the expected length."""

    def __init__(
        self, actual_length: Optional[int], expected_length: int, reason: str = ""
    ) -> None:
        if actual_length is None:
            message = f"Descriptor must be an ordered sequence of {expected_length} numbers"
            if reason:
                message = f"{message}: {reason}"
        else:
            message = (
                f"Descriptor has {actual_length} values, expected {expected_length}"
            )
        context = {"actual_length": actual_length, "expected_length": expected_length}
        super().__init__(message, context=context, error_code="FACE_001")
        self.actual_length = actual_length
        self.expected_length = expected_length


class NonNumericValueError(DescriptorValidationError):
    """Exception raised when a descriptor element is not a finite real number."""

    def __init__(self, position: int, value: Any) -> None:
        message = f"Descriptor value at position {position} is not a finite number"
        context = {"position": position, "value": repr(value)[:32]}
        super().__init__(message, context=context, error_code="FACE_002")
        self.position = position


class EmptyBatchError(DescriptorValidationError):
    """Exception raised when an enrollment request carries no samples."""

    def __init__(self) -> None:
        super().__init__(
            "Enrollment requires at least one face descriptor",
            error_code="FACE_003",
        )


class InvalidBatchError(DescriptorValidationError):
    """
    Exception raised when any sample of an enrollment batch is invalid.

    The whole batch is rejected; ``index`` identifies the first offending
    sample (``None`` when the batch itself is not an array). The underlying
    validation error is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        cause: Optional[FaceIdError] = None,
    ) -> None:
        context: Dict[str, Any] = {"index": index}
        if cause is not None:
            context["cause_code"] = cause.error_code
            context.update(cause.context)
        super().__init__(message, context=context, error_code="FACE_004")
        self.index = index


class EmptyInputError(DescriptorValidationError):
    """Exception raised when averaging an empty set of descriptors."""

    def __init__(self, message: str = "Cannot aggregate an empty set of descriptors") -> None:
        super().__init__(message, error_code="FACE_005")


class InvalidIdentityError(DescriptorValidationError):
    """Exception raised when an identity is missing or not a string."""

    def __init__(self, identity: Any) -> None:
        super().__init__(
            "Identity must be a non-empty string",
            context={"identity": repr(identity)[:64]},
            error_code="FACE_006",
        )


class DimensionMismatchError(FaceIdError):
    """
    Exception raised when two descriptors of different lengths are compared
    or aggregated.

    Validated descriptors never reach this state; it guards direct callers.
    """

    def __init__(self, left_shape: tuple, right_shape: tuple) -> None:
        message = f"Descriptor shapes differ: {left_shape} vs {right_shape}"
        context = {"left_shape": left_shape, "right_shape": right_shape}
        super().__init__(message, context=context, error_code="FACE_010")


class StorageError(FaceIdError):
    """
    Exception raised when the gallery storage collaborator fails.

    The error is opaque to the core; retry policy belongs to the caller.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        identity: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.get("context", {})
        if operation:
            context["operation"] = operation
        if identity:
            context["identity"] = identity

        super().__init__(message, context, kwargs.get("error_code", "STORAGE_001"))


class IdentityNotFoundError(StorageError):
    """Exception raised when writing a gallery for an unprovisioned identity."""

    def __init__(self, identity: str, operation: str = "save_gallery") -> None:
        super().__init__(
            f"Identity not found: {identity}",
            operation=operation,
            identity=identity,
            error_code="STORAGE_002",
        )


class ConfigurationError(FaceIdError):
    """
    Exception raised for configuration-related errors.

    This includes invalid threshold values, unknown storage backends or
    inconsistent match policies.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value

        super().__init__(message, context, kwargs.get("error_code", "CONFIG_001"))
