"""
Custom exceptions for the warehouse pipeline.
Provides specific error types for each layer and for store access.

Field-level data-quality defects never raise; these types are reserved for
structural failures that abort a layer run.
"""

from typing import Optional, Dict, Any


class ETLError(Exception):
    """Base exception for all warehouse pipeline errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class BronzeLoadError(ETLError):
    """Exception raised while loading raw extracts into the bronze layer."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = file_path
        super().__init__(message, details=details, **kwargs)


class SilverTransformError(ETLError):
    """Exception raised when the conformance run cannot read or write a relation."""

    def __init__(
        self,
        message: str,
        table_name: Optional[str] = None,
        run_id: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if table_name:
            details["table_name"] = table_name
        if run_id:
            details["run_id"] = run_id
        super().__init__(message, details=details, **kwargs)


class GoldLoadError(ETLError):
    """Exception raised when the dimensional model cannot be built or published."""

    def __init__(
        self,
        message: str,
        dimension_table: Optional[str] = None,
        run_id: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if dimension_table:
            details["dimension_table"] = dimension_table
        if run_id:
            details["run_id"] = run_id
        super().__init__(message, details=details, **kwargs)


class ValidationError(ETLError):
    """Exception raised when reconciliation findings are configured as gating."""

    def __init__(
        self,
        message: str,
        validation_type: Optional[str] = None,
        failed_checks: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if validation_type:
            details["validation_type"] = validation_type
        if failed_checks:
            details["failed_checks"] = failed_checks
        super().__init__(message, details=details, **kwargs)


class StoreError(ETLError):
    """Base exception for relation store failures."""

    def __init__(
        self,
        message: str,
        layer: Optional[str] = None,
        relation: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if layer:
            details["layer"] = layer
        if relation:
            details["relation"] = relation
        super().__init__(message, details=details, **kwargs)


class StoreReadError(StoreError):
    """A relation could not be read in full."""


class StoreWriteError(StoreError):
    """A relation replacement could not be staged or committed."""


class SchemaMismatchError(StoreError):
    """A frame does not carry the columns declared for its relation."""
