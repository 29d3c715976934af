"""Structural checks: BagIt validity, manifests, required and forbidden paths."""

import hashlib
import logging
from pathlib import Path
from urllib.parse import unquote

from dansbag.rules.models import Check, Outcome
from dansbag.services.documents import BagTarget

from .registry import register_check

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("md5", "sha1", "sha256", "sha512")
PAYLOAD_DIR = "data"
CHUNK_SIZE = 1024 * 1024


def _payload_manifests(bag: Path) -> list[Path]:
    return sorted(bag.glob("manifest-*.txt"))


def _tag_manifests(bag: Path) -> list[Path]:
    return sorted(bag.glob("tagmanifest-*.txt"))


def _algorithm(manifest: Path) -> str:
    # manifest-<alg>.txt or tagmanifest-<alg>.txt
    return manifest.name.partition("-")[2][:-len(".txt")].lower()


def _decode_manifest_path(raw: str) -> str:
    # BagIt percent-encodes CR, LF and % in manifest paths
    return unquote(raw.strip().removeprefix("*"))


def _file_digest(path: Path, algorithm: str) -> str:
    digest = hashlib.new(algorithm)
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _relative_files(base: Path) -> set[str]:
    return {p.relative_to(base).as_posix() for p in base.rglob("*") if p.is_file()}


def _relative_entries(base: Path) -> set[str]:
    return {p.relative_to(base).as_posix() for p in base.rglob("*")}


def _verify_manifest(target: BagTarget, manifest: Path, errors: list[str]) -> set[str]:
    """Check that every listed file exists and has the listed checksum.

    Problems are appended to `errors`. Returns the listed paths.
    """
    algorithm = _algorithm(manifest)
    listed: set[str] = set()
    if algorithm not in SUPPORTED_ALGORITHMS:
        errors.append(f"{manifest.name}: unsupported checksum algorithm '{algorithm}'")
        return listed

    for line in target.documents.text(manifest.name).splitlines():
        if not line.strip():
            continue
        parts = line.split(maxsplit=1)
        if len(parts) != 2:
            errors.append(f"{manifest.name}: malformed line '{line}'")
            continue
        expected, raw_path = parts
        relative = _decode_manifest_path(raw_path)
        listed.add(relative)

        if relative.startswith("/") or ".." in Path(relative).parts:
            errors.append(f"{manifest.name}: path '{relative}' points outside the bag")
            continue

        file_path = target.resolve(relative)
        if not file_path.is_file():
            errors.append(f"{manifest.name}: file '{relative}' does not exist")
            continue

        actual = _file_digest(file_path, algorithm)
        logger.debug(f"Checksum of {relative} ({algorithm}): {actual}")
        if actual.lower() != expected.lower():
            errors.append(
                f"{manifest.name}: checksum mismatch for '{relative}' "
                f"(expected {expected}, actual {actual})"
            )

    return listed


@register_check("bag_is_valid")
def bag_is_valid() -> Check:
    """The bag is complete and every payload and tag checksum matches.

    Tag manifests are optional; when present their entries are verified
    like payload entries, but they need not list every tag file.
    """

    def check(target: BagTarget) -> Outcome:
        if not target.documents.is_file("bagit.txt"):
            return Outcome.violated("bagit.txt does not exist")

        manifests = _payload_manifests(target.path)
        if not manifests:
            return Outcome.violated("The bag contains no payload manifest")

        payload_files = {
            f"{PAYLOAD_DIR}/{p}" for p in _relative_files(target.resolve(PAYLOAD_DIR))
        } if target.documents.is_dir(PAYLOAD_DIR) else set()

        errors: list[str] = []
        for manifest in manifests:
            listed = _verify_manifest(target, manifest, errors)
            if _algorithm(manifest) not in SUPPORTED_ALGORITHMS:
                continue
            for missing in sorted(payload_files - listed):
                errors.append(f"{manifest.name}: payload file '{missing}' is not listed")

        for manifest in _tag_manifests(target.path):
            _verify_manifest(target, manifest, errors)

        if errors:
            return Outcome.violated(*errors)
        return Outcome.satisfied()

    return check


@register_check("bag_has_other_manifests_than_only_md5")
def bag_has_other_manifests_than_only_md5() -> Check:
    def check(target: BagTarget) -> Outcome:
        algorithms = {_algorithm(m) for m in _payload_manifests(target.path)}
        if not algorithms - {"md5"}:
            return Outcome.violated("The bag contains no manifests or only a MD5 manifest")
        return Outcome.satisfied()

    return check


@register_check("bag_contains_dir")
def bag_contains_dir(path: str) -> Check:
    def check(target: BagTarget) -> Outcome:
        if not target.documents.is_dir(path):
            return Outcome.violated(f"Path '{path}' is not a directory")
        return Outcome.satisfied()

    return check


@register_check("bag_contains_file")
def bag_contains_file(path: str) -> Check:
    def check(target: BagTarget) -> Outcome:
        if not target.documents.is_file(path):
            return Outcome.violated(f"Path '{path}' is not a file")
        return Outcome.satisfied()

    return check


@register_check("bag_dir_contains_nothing_else_than")
def bag_dir_contains_nothing_else_than(directory: str, allowed: list[str]) -> Check:
    """Everything below `directory` (files and directories) must be in `allowed`."""
    allowed_paths = {Path(p).as_posix() for p in allowed}

    def check(target: BagTarget) -> Outcome:
        base = target.resolve(directory)
        not_allowed = sorted(_relative_entries(base) - allowed_paths)
        logger.debug(f"Found items that are not allowed in path {base}: {not_allowed}")

        if not_allowed:
            return Outcome.violated(
                f"Directory {directory} contains files or directories that are not allowed: "
                + ", ".join(not_allowed)
            )
        return Outcome.satisfied()

    return check


@register_check("bag_dir_does_not_contain")
def bag_dir_does_not_contain(directory: str, forbidden: list[str]) -> Check:
    forbidden_paths = {Path(p).as_posix() for p in forbidden}

    def check(target: BagTarget) -> Outcome:
        base = target.resolve(directory)
        if not base.is_dir():
            return Outcome.satisfied()

        found = sorted(_relative_entries(base) & forbidden_paths)
        if found:
            return Outcome.violated(
                f"Directory {directory} contains files or directories that are not allowed: "
                + ", ".join(found)
            )
        return Outcome.satisfied()

    return check


@register_check("optional_bag_file_is_utf8_decodable")
def optional_bag_file_is_utf8_decodable(path: str) -> Check:
    def check(target: BagTarget) -> Outcome:
        if not target.documents.exists(path):
            return Outcome.inapplicable(f"{path} is not present")
        try:
            target.documents.text(path)
        except UnicodeDecodeError as e:
            return Outcome.violated(f"Input not valid UTF-8: {e}", error=e)
        return Outcome.satisfied()

    return check
