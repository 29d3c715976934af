"""bag-info.txt checks."""

import logging
import re

from dansbag.rules.models import Check, Outcome
from dansbag.services.documents import BagInfoFormatError, BagTarget
from dansbag.utils.time import parse_iso8601_datetime

from .registry import register_check

logger = logging.getLogger(__name__)

BAG_INFO = "bag-info.txt"

UUID_PATTERN = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


def is_urn_uuid(value: str) -> bool:
    """Check for a `urn:uuid:<uuid>` value.

    The scheme is case-insensitive; the UUID must be in canonical
    8-4-4-4-12 hex form.
    """
    scheme, _, rest = value.strip().partition(":")
    if scheme.lower() != "urn" or not rest.startswith("uuid:"):
        return False
    return UUID_PATTERN.fullmatch(rest[len("uuid:"):]) is not None


@register_check("bag_info_exists_and_is_well_formed")
def bag_info_exists_and_is_well_formed() -> Check:
    def check(target: BagTarget) -> Outcome:
        if not target.documents.is_file(BAG_INFO):
            return Outcome.violated("bag-info.txt does not exist")
        try:
            target.documents.bag_info()
        except (BagInfoFormatError, UnicodeDecodeError) as e:
            return Outcome.violated(f"bag-info.txt exists but is malformed: {e}", error=e)
        return Outcome.satisfied()

    return check


@register_check("bag_info_contains_exactly_one_of")
def bag_info_contains_exactly_one_of(element: str) -> Check:
    def check(target: BagTarget) -> Outcome:
        count = len(target.documents.bag_info_values(element))
        if count != 1:
            return Outcome.violated(
                f"bag-info.txt must contain exactly one '{element}' element; number found: {count}"
            )
        return Outcome.satisfied()

    return check


@register_check("bag_info_contains_at_most_one_of")
def bag_info_contains_at_most_one_of(element: str) -> Check:
    """At most one `element`; absence makes dependent rules inapplicable."""

    def check(target: BagTarget) -> Outcome:
        values = target.documents.bag_info_values(element)
        logger.debug(f"Found {values} in bag {target.path} for field {element}")

        if not values:
            return Outcome.inapplicable(f"bag-info.txt has no '{element}' element")
        if len(values) > 1:
            return Outcome.violated(f"bag-info.txt may contain at most one element: '{element}'")
        return Outcome.satisfied()

    return check


@register_check("bag_info_created_is_iso8601_date")
def bag_info_created_is_iso8601_date() -> Check:
    def check(target: BagTarget) -> Outcome:
        created = target.documents.bag_info_values("Created")[0]
        try:
            parse_iso8601_datetime(created)
        except ValueError as e:
            return Outcome.violated(f"Date '{created}' is not valid", error=e)
        return Outcome.satisfied()

    return check


@register_check("bag_info_is_version_of_is_valid_urn_uuid")
def bag_info_is_version_of_is_valid_urn_uuid() -> Check:
    def check(target: BagTarget) -> Outcome:
        values = target.documents.bag_info_values("Is-Version-Of")
        invalid = [v for v in values if not is_urn_uuid(v)]
        logger.debug(f"Invalid URN UUID's from this list ({values}) are {invalid}")

        if invalid:
            return Outcome.violated(
                "bag-info.txt Is-Version-Of value must be a valid URN: "
                f"Invalid items {{{', '.join(invalid)}}}"
            )
        return Outcome.satisfied()

    return check
