"""Operation result types and status enums.

Standardized result types for operations across the application, including
status enums, the result dataclass, and error classifiers for provider
failures.
"""

from infrastructure.operations.classifiers import (
    CREATION_INCOMPLETE,
    classify_aws_error,
    classify_directory_error,
    classify_http_error,
)
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "CREATION_INCOMPLETE",
    "classify_aws_error",
    "classify_http_error",
    "classify_directory_error",
]
