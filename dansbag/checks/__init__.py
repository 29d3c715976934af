"""Leaf checks for the DANS BagIt profile.

Each check is a plain callable taking a `BagTarget` and returning an
`Outcome`. Checks decide only about their own clause; skipping dependents
is the engine's job.
"""

from .registry import CheckRegistry, checks, register_check

# Import built-in checks so they self-register with the global registry.
from . import bag as _bag_checks  # noqa: F401
from . import bag_info as _bag_info_checks  # noqa: F401
from . import dataset_xml as _dataset_xml_checks  # noqa: F401
from . import files_xml as _files_xml_checks  # noqa: F401

__all__ = ["CheckRegistry", "checks", "register_check"]
