"""Pydantic schemas for bag validation requests and results."""

from typing import Any

from pydantic import BaseModel, Field

from dansbag.rules.models import DepositType


class ValidateCommand(BaseModel):
    """Request to validate a bag that is already on the server's filesystem."""

    bag_location: str = Field(
        ...,
        description="Absolute path of the bag directory",
        examples=["/data/deposits/0b3f2a9e/bag"],
    )
    package_type: DepositType = Field(
        default=DepositType.DEPOSIT,
        description="Profile variant to validate against",
    )


class RuleViolation(BaseModel):
    """One violated rule with its message."""

    rule: str
    violation: str


class ValidationResult(BaseModel):
    """Outcome of validating one bag."""

    bag_location: str | None = None
    name: str | None = None
    profile_version: str
    information_package_type: DepositType
    is_compliant: bool
    rule_violations: list[RuleViolation] = Field(default_factory=list)
    report: dict[str, Any] = Field(
        default_factory=dict,
        description="Full ordered report, one entry per declared rule",
    )


class ProfileInfo(BaseModel):
    """Loaded profile summary."""

    filename: str
    id: str
    name: str
    version: str
    description: str
    hash: str
    rules: int
