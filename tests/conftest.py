"""Pytest configuration and fixtures."""

import hashlib
import logging
import threading
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from dansbag.main import app
from dansbag.rules.models import Applicability, Outcome, Rule, RuleSet

DATASET_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ddm:DDM xmlns:ddm="http://schemas.dans.knaw.nl/dataset/ddm-v2/"
         xmlns:dcterms="http://purl.org/dc/terms/"
         xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
         xmlns:id-type="http://easy.dans.knaw.nl/schemas/vocab/identifier-type/"
         xmlns:gml="http://www.opengis.net/gml">
    <ddm:profile/>
    <ddm:dcmiMetadata>
        <dcterms:identifier xsi:type="id-type:DOI">10.17026/dans-12345</dcterms:identifier>
        <dcterms:identifier xsi:type="id-type:ARCHIS-ZAAK-IDENTIFICATIE">1234567</dcterms:identifier>
    </ddm:dcmiMetadata>
</ddm:DDM>
"""

FILES_XML = """<?xml version="1.0" encoding="UTF-8"?>
<files xmlns="http://easy.dans.knaw.nl/schemas/bag/metadata/files/">
    <file filepath="data/file.txt"/>
</files>
"""

BAG_INFO = "Created: 2024-01-15T10:30:00.000+01:00\nBag-Size: 0.1 KB\n"


class SpyCheck:
    """Check double that counts invocations and returns a fixed outcome."""

    def __init__(
        self,
        outcome: Optional[Outcome] = None,
        raises: Optional[BaseException] = None,
        on_call: Optional[Callable[[], None]] = None,
    ) -> None:
        self.outcome = outcome or Outcome.satisfied()
        self.raises = raises
        self.on_call = on_call
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, target: Any) -> Outcome:
        with self._lock:
            self.calls += 1
        if self.on_call is not None:
            self.on_call()
        if self.raises is not None:
            raise self.raises
        return self.outcome


def write_bag(
    root: Path,
    files: Optional[dict[str, Any]] = None,
    algorithms: tuple[str, ...] = ("sha1",),
) -> Path:
    """Write a bag with payload manifests computed over everything in data/.

    `files` maps relative paths to content; a value of None removes a default file.
    """
    contents: dict[str, Any] = {
        "bagit.txt": "BagIt-Version: 1.0\nTag-File-Character-Encoding: UTF-8\n",
        "bag-info.txt": BAG_INFO,
        "data/file.txt": "hello world\n",
        "metadata/dataset.xml": DATASET_XML,
        "metadata/files.xml": FILES_XML,
    }
    contents.update(files or {})

    for relative, content in contents.items():
        if content is None:
            continue
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")

    payload = sorted(
        relative for relative, content in contents.items()
        if content is not None and relative.startswith("data/")
    )
    for algorithm in algorithms:
        lines = []
        for relative in payload:
            digest = hashlib.new(algorithm, (root / relative).read_bytes()).hexdigest()
            lines.append(f"{digest}  {relative}\n")
        (root / f"manifest-{algorithm}.txt").write_text("".join(lines), encoding="utf-8")

    return root


@pytest.fixture
def spy() -> type[SpyCheck]:
    """The SpyCheck class, for building counting checks."""
    return SpyCheck


@pytest.fixture
def make_rule_set() -> Callable[..., RuleSet]:
    """Build a rule set from (number, check, prerequisites[, applicability]) tuples."""

    def factory(*rows: tuple, name: str = "test-rules", version: str = "1.0.0") -> RuleSet:
        rules = []
        for row in rows:
            number, check, prerequisites = row[:3]
            applicability = row[3] if len(row) > 3 else Applicability.ANY
            rules.append(Rule(
                number=number,
                check=check,
                applicability=applicability,
                prerequisites=tuple(prerequisites),
            ))
        return RuleSet(rules, name=name, version=version)

    return factory


@pytest.fixture
def bag_dir(tmp_path: Path) -> Path:
    """A bag that complies with the deposit variant of the shipped profile."""
    return write_bag(tmp_path / "valid-bag")


@pytest.fixture
def make_bag(tmp_path: Path) -> Callable[..., Path]:
    """Factory for bags with overridden or removed files."""

    def factory(name: str = "bag", **kwargs: Any) -> Path:
        return write_bag(tmp_path / name, **kwargs)

    return factory


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Test client with the application lifespan (profile loading) applied."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def restore_root_logging() -> Generator[None, None, None]:
    """Undo handler changes made by setup_logging() in a test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
