"""Pydantic schemas for request/response validation."""

from dansbag.schemas.validation import (
    ProfileInfo,
    RuleViolation,
    ValidateCommand,
    ValidationResult,
)

__all__ = [
    "ProfileInfo",
    "RuleViolation",
    "ValidateCommand",
    "ValidationResult",
]
