"""Run-scoped, read-only document cache.

Many checks read the same metadata files (bag-info.txt, dataset.xml,
files.xml). A `DocumentCache` reads and parses each file once per run and
hands the same parsed result to every check. A new cache is created for
every run and discarded afterwards; nothing is shared between runs.
"""

import threading
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable


class BagInfoFormatError(ValueError):
    """bag-info.txt (or another tag file) is not well formed."""


def parse_tag_file(content: str) -> list[tuple[str, str]]:
    """Parse a BagIt tag file into ordered (label, value) pairs.

    Lines starting with whitespace continue the previous value.

    Raises:
        BagInfoFormatError: If a line is neither `Label: value` nor a continuation
    """
    elements: list[tuple[str, str]] = []

    for line_number, line in enumerate(content.splitlines(), start=1):
        if not line.strip():
            continue
        if line[0] in " \t":
            if not elements:
                raise BagInfoFormatError(
                    f"line {line_number}: continuation line without a preceding element"
                )
            label, value = elements[-1]
            elements[-1] = (label, f"{value} {line.strip()}")
            continue
        if ":" not in line:
            raise BagInfoFormatError(f"line {line_number}: missing ':' separator")

        label, value = line.split(":", 1)
        if not label.strip():
            raise BagInfoFormatError(f"line {line_number}: empty label")
        elements.append((label.strip(), value.strip()))

    return elements


class DocumentCache:
    """Memoised readers for files inside a bag.

    Failures are cached as well: if a document cannot be read or parsed,
    every check asking for it gets the same exception.
    """

    def __init__(self, bag_path: Path) -> None:
        self.bag_path = Path(bag_path)
        self._lock = threading.Lock()
        self._entries: dict[tuple[str, Path], tuple[bool, Any]] = {}

    def resolve(self, relative: str | Path) -> Path:
        return self.bag_path / relative

    def exists(self, relative: str | Path) -> bool:
        return self.resolve(relative).exists()

    def is_file(self, relative: str | Path) -> bool:
        return self.resolve(relative).is_file()

    def is_dir(self, relative: str | Path) -> bool:
        return self.resolve(relative).is_dir()

    def text(self, relative: str | Path) -> str:
        """File contents decoded as UTF-8."""
        return self._get("text", relative, lambda p: p.read_text(encoding="utf-8"))

    def xml(self, relative: str | Path) -> ET.Element:
        """Root element of a parsed XML file.

        Raises:
            xml.etree.ElementTree.ParseError: If the file is not well formed
        """
        return self._get("xml", relative, lambda p: ET.parse(p).getroot())

    def bag_info(self, relative: str | Path = "bag-info.txt") -> list[tuple[str, str]]:
        """Parsed tag file as ordered (label, value) pairs."""
        return self._get("tags", relative, lambda p: parse_tag_file(p.read_text(encoding="utf-8")))

    def bag_info_values(self, label: str, relative: str | Path = "bag-info.txt") -> list[str]:
        """All values for a label; labels compare case-insensitively."""
        wanted = label.lower()
        return [value for key, value in self.bag_info(relative) if key.lower() == wanted]

    def _get(self, kind: str, relative: str | Path, loader: Callable[[Path], Any]) -> Any:
        path = self.resolve(relative)
        key = (kind, path)

        with self._lock:
            cached = self._entries.get(key)
        if cached is None:
            try:
                cached = (True, loader(path))
            except Exception as e:
                cached = (False, e)
            with self._lock:
                # Keep whichever result was stored first
                cached = self._entries.setdefault(key, cached)

        ok, value = cached
        if not ok:
            raise value
        return value

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class BagTarget:
    """The bag handed to every check during a run."""
    path: Path
    documents: DocumentCache = field(compare=False)

    @classmethod
    def open(cls, path: Path | str) -> "BagTarget":
        """Create a target with a fresh document cache."""
        bag_path = Path(path)
        return cls(path=bag_path, documents=DocumentCache(bag_path))

    def resolve(self, relative: str | Path) -> Path:
        return self.path / relative

    @property
    def name(self) -> str:
        return self.path.name
