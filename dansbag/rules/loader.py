"""YAML profile loader.

A profile declares a rule set: clause numbers, the named check each clause
runs, its applicability and its prerequisites.
"""

import hashlib
from pathlib import Path
from typing import Any, Optional

import yaml

from dansbag.checks import CheckRegistry, checks
from dansbag.core.config import settings
from dansbag.rules.models import Applicability, Rule, RuleSet


class ProfileError(ValueError):
    """A profile cannot be turned into a rule set."""


def compute_profile_hash(content: str) -> str:
    """Compute SHA256 hash of profile content.

    Args:
        content: Raw YAML content string

    Returns:
        SHA256 hex digest
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def load_profile(
    filename: str,
    profiles_dir: Path | None = None,
) -> tuple[dict[str, Any], str]:
    """Load a profile YAML file and compute its hash.

    Args:
        filename: Name of the profile file (e.g., "dans-bagit-profile-v1.0.0.yaml")
        profiles_dir: Directory containing profiles (defaults to the configured one)

    Returns:
        Tuple of (parsed profile dict, SHA256 hash)

    Raises:
        FileNotFoundError: If profile file doesn't exist
        yaml.YAMLError: If YAML is invalid
    """
    if profiles_dir is None:
        profiles_dir = settings.profiles_dir

    filepath = Path(profiles_dir) / filename

    if not filepath.exists():
        raise FileNotFoundError(f"Profile not found: {filepath}")

    content = filepath.read_text(encoding="utf-8")
    profile_hash = compute_profile_hash(content)
    profile = yaml.safe_load(content)

    if not isinstance(profile, dict):
        raise ProfileError(f"Profile {filename} must be a mapping")

    return profile, profile_hash


def _build_rule(rule_data: dict[str, Any], registry: CheckRegistry) -> Rule:
    number = rule_data.get("number")
    if not number:
        raise ProfileError(f"Rule without a number: {rule_data}")
    number = str(number)

    check_name = rule_data.get("check")
    if check_name not in registry:
        raise ProfileError(f"Rule {number}: unknown check '{check_name}'")

    try:
        applicability = Applicability(rule_data.get("applicability", Applicability.ANY.value))
    except ValueError as e:
        raise ProfileError(f"Rule {number}: {e}") from e

    prerequisites = rule_data.get("prerequisites") or []
    if isinstance(prerequisites, str) or not isinstance(prerequisites, list):
        raise ProfileError(f"Rule {number}: prerequisites must be a list")

    args = rule_data.get("args") or {}
    try:
        check = registry.create(check_name, **args)
    except TypeError as e:
        raise ProfileError(f"Rule {number}: invalid arguments for check '{check_name}': {e}") from e

    return Rule(
        number=number,
        check=check,
        applicability=applicability,
        prerequisites=tuple(str(p) for p in prerequisites),
        description=rule_data.get("description", ""),
    )


def build_rule_set(profile: dict[str, Any], registry: Optional[CheckRegistry] = None) -> RuleSet:
    """Create a RuleSet from a parsed profile.

    Args:
        profile: Parsed profile dictionary
        registry: Check registry to resolve check names (defaults to built-in checks)

    Returns:
        RuleSet in the profile's declaration order (not yet validated)

    Raises:
        ProfileError: If a rule references an unknown check, has invalid
            arguments or an unknown applicability
    """
    registry = registry or checks
    rules_data = profile.get("rules")
    if not isinstance(rules_data, list):
        raise ProfileError("Profile must contain a list of rules")

    return RuleSet(
        rules=[_build_rule(rule_data, registry) for rule_data in rules_data],
        name=profile.get("id", "unknown"),
        version=str(profile.get("version", "unknown")),
    )


class ProfileLoader:
    """Stateful profile loader with caching."""

    def __init__(self, profiles_dir: Path | None = None) -> None:
        """Initialize loader.

        Args:
            profiles_dir: Directory containing profiles
        """
        self.profiles_dir = Path(profiles_dir or settings.profiles_dir)
        self._cache: dict[str, tuple[dict[str, Any], str]] = {}

    def load(self, filename: str, use_cache: bool = True) -> tuple[dict[str, Any], str]:
        """Load a profile with optional caching.

        Args:
            filename: Profile filename
            use_cache: Whether to use cached version if available

        Returns:
            Tuple of (profile dict, hash)
        """
        if use_cache and filename in self._cache:
            return self._cache[filename]

        profile, profile_hash = load_profile(filename, self.profiles_dir)
        self._cache[filename] = (profile, profile_hash)

        return self._cache[filename]

    def rule_set(self, filename: str) -> RuleSet:
        """Build the rule set declared by a profile."""
        profile, _ = self.load(filename)
        return build_rule_set(profile)

    def clear_cache(self) -> None:
        """Clear the profile cache."""
        self._cache.clear()

    def list_profiles(self) -> list[str]:
        """List available profile files."""
        return sorted(f.name for f in self.profiles_dir.glob("*.yaml"))

    def get_profile_info(self, filename: str) -> dict[str, Any]:
        """Get metadata about a profile.

        Args:
            filename: Profile filename

        Returns:
            Dict with id, name, version, description, hash and rule count
        """
        profile, profile_hash = self.load(filename)

        return {
            "filename": filename,
            "id": profile.get("id", "unknown"),
            "name": profile.get("name", ""),
            "version": str(profile.get("version", "unknown")),
            "description": profile.get("description", ""),
            "hash": profile_hash,
            "rules": len(profile.get("rules") or []),
        }
