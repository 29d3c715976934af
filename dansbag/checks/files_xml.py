"""metadata/files.xml and original-filepaths.txt consistency checks.

files.xml describes the payload by bag-relative `filepath` attributes. When
payload files were renamed for storage, original-filepaths.txt maps each
renamed path to the original path files.xml uses; one line per file:

    data/1b2c3d  data/my report (final).pdf
"""

import logging
import posixpath
from collections import Counter

from dansbag.rules.models import Check, Outcome
from dansbag.services.documents import BagTarget

from .bag import PAYLOAD_DIR
from .dataset_xml import NAMESPACES
from .registry import register_check

logger = logging.getLogger(__name__)

FILES_XML = "metadata/files.xml"
ORIGINAL_FILEPATHS = "original-filepaths.txt"

FILES_ROOT = f"{{{NAMESPACES['files']}}}files"


def _normalize(path: str) -> str:
    return posixpath.normpath(path.strip())


def _joined(paths) -> str:
    return "{" + ", ".join(sorted(paths)) + "}"


def payload_files(target: BagTarget) -> set[str]:
    """Bag-relative paths of all files under data/."""
    if not target.documents.is_dir(PAYLOAD_DIR):
        return set()
    base = target.resolve(PAYLOAD_DIR)
    return {
        f"{PAYLOAD_DIR}/{p.relative_to(base).as_posix()}"
        for p in base.rglob("*")
        if p.is_file()
    }


def files_xml_filepaths(target: BagTarget) -> list[str]:
    """`filepath` attributes of the file elements, in document order.

    The elements may be in the files namespace or in no namespace.
    """
    root = target.documents.xml(FILES_XML)
    if root.tag == FILES_ROOT:
        elements = root.findall("files:file", NAMESPACES)
    elif root.tag == "files":
        elements = root.findall("file")
    else:
        return []
    return [e.get("filepath") for e in elements if e.get("filepath") is not None]


def original_filepaths(target: BagTarget) -> list[tuple[str, str]]:
    """(renamed, original) path pairs; empty if the file is absent or unreadable."""
    if not target.documents.is_file(ORIGINAL_FILEPATHS):
        return []
    try:
        content = target.documents.text(ORIGINAL_FILEPATHS)
    except UnicodeDecodeError as e:
        # reported by the UTF-8 check on the file itself
        logger.warning(f"Ignoring {ORIGINAL_FILEPATHS} in {target.path}: {e}")
        return []

    pairs = []
    for line in content.splitlines():
        parts = line.split(maxsplit=1)
        if len(parts) == 2:
            pairs.append((_normalize(parts[0]), _normalize(parts[1])))
    return pairs


def described_payload(target: BagTarget, filepaths: list[str]) -> set[str]:
    """files.xml paths translated to the names the files have in the bag."""
    renamed = {original: renamed for renamed, original in original_filepaths(target)}
    return {renamed.get(p, p) for p in (_normalize(p) for p in filepaths)}


@register_check("files_xml_describes_only_payload_files")
def files_xml_describes_only_payload_files() -> Check:
    """Every filepath attribute names a payload file in this bag."""

    def check(target: BagTarget) -> Outcome:
        described = described_payload(target, files_xml_filepaths(target))
        not_in_payload = described - payload_files(target)
        logger.debug(f"Paths in files.xml that are not payload files: {not_in_payload}")

        if not_in_payload:
            return Outcome.violated(
                f"files.xml: filepath attributes do not refer to payload files: {_joined(not_in_payload)}"
            )
        return Outcome.satisfied()

    return check


@register_check("files_xml_no_duplicates_and_describes_all_payload_files")
def files_xml_no_duplicates_and_describes_all_payload_files() -> Check:
    def check(target: BagTarget) -> Outcome:
        filepaths = files_xml_filepaths(target)
        errors = []

        counts = Counter(_normalize(p) for p in filepaths)
        duplicates = {p for p, n in counts.items() if n > 1}
        if duplicates:
            errors.append(f"files.xml: duplicate entries found: {_joined(duplicates)}")

        undescribed = payload_files(target) - described_payload(target, filepaths)
        logger.debug(f"Payload files not described in files.xml: {undescribed}")
        if undescribed:
            errors.append(f"files.xml: does not describe all payload files: {_joined(undescribed)}")

        if errors:
            return Outcome.violated(*errors)
        return Outcome.satisfied()

    return check


@register_check("optional_original_filepaths_is_complete")
def optional_original_filepaths_is_complete() -> Check:
    """original-filepaths.txt maps exactly the payload to exactly files.xml."""

    def check(target: BagTarget) -> Outcome:
        if not target.documents.is_file(ORIGINAL_FILEPATHS):
            return Outcome.inapplicable(f"{ORIGINAL_FILEPATHS} is not present")

        mapping = original_filepaths(target)
        renamed = {r for r, _ in mapping}
        originals = {o for _, o in mapping}
        physical = payload_files(target)
        described = {_normalize(p) for p in files_xml_filepaths(target)}

        errors = []
        if physical != renamed:
            errors.append(
                f"{ORIGINAL_FILEPATHS}: physical file paths not equal to payload in data dir. "
                f"Only in payload: {_joined(physical - renamed)}, "
                f"only in {ORIGINAL_FILEPATHS}: {_joined(renamed - physical)}"
            )
        if described != originals:
            errors.append(
                f"{ORIGINAL_FILEPATHS}: original file paths not equal to filepaths in files.xml. "
                f"Only in files.xml: {_joined(described - originals)}, "
                f"only in {ORIGINAL_FILEPATHS}: {_joined(originals - described)}"
            )

        if errors:
            return Outcome.violated(*errors)
        return Outcome.satisfied()

    return check
