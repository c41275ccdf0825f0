"""Process Bundle module."""

from mpi_mediator.process_bundle.request import (
    ProcessBundleRequest,
    RequestValidationError,
)

__all__ = ["RequestValidationError", "ProcessBundleRequest"]
