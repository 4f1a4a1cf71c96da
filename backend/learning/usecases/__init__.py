"""Use case layer for the Learning context.

Re-export common use cases for convenient imports in tests.
"""

from .activity import (
    EnrollInput,
    EnrollUseCase,
    ReadingProgressInput,
    SubmitAttemptInput,
    SubmitAttemptUseCase,
    UpdateReadingProgressUseCase,
)
from .metrics import CourseMetricsInput, CourseMetricsUseCase
from .progress import StudentProgressInput, StudentProgressUseCase

__all__ = [
    "CourseMetricsInput",
    "CourseMetricsUseCase",
    "EnrollInput",
    "EnrollUseCase",
    "ReadingProgressInput",
    "StudentProgressInput",
    "StudentProgressUseCase",
    "SubmitAttemptInput",
    "SubmitAttemptUseCase",
    "UpdateReadingProgressUseCase",
]
