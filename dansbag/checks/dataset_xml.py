"""XML metadata checks (metadata/dataset.xml and optional metadata files)."""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator

from dansbag.rules.models import Check, Outcome
from dansbag.services.documents import BagTarget

from .registry import register_check

logger = logging.getLogger(__name__)

DATASET_XML = "metadata/dataset.xml"

NAMESPACES = {
    "ddm": "http://schemas.dans.knaw.nl/dataset/ddm-v2/",
    "dc": "http://purl.org/dc/elements/1.1/",
    "dcterms": "http://purl.org/dc/terms/",
    "xsi": "http://www.w3.org/2001/XMLSchema-instance",
    "id-type": "http://easy.dans.knaw.nl/schemas/vocab/identifier-type/",
    "gml": "http://www.opengis.net/gml",
    "files": "http://easy.dans.knaw.nl/schemas/bag/metadata/files/",
}

XSI_TYPE = f"{{{NAMESPACES['xsi']}}}type"
GML_POINT = f"{{{NAMESPACES['gml']}}}Point"
GML_POS = f"{{{NAMESPACES['gml']}}}pos"
GML_CORNERS = (
    f"{{{NAMESPACES['gml']}}}lowerCorner",
    f"{{{NAMESPACES['gml']}}}upperCorner",
)

RD_SRS_NAME = "urn:ogc:def:crs:EPSG::28992"
# Rijksdriehoek bounds (x, y) in metres
RD_X_RANGE = (-7000, 300000)
RD_Y_RANGE = (289000, 629000)


def identifiers_of_type(root: ET.Element, id_type: str) -> list[str]:
    """Text of dcterms:identifier elements whose xsi:type is `<prefix>:<id_type>`.

    The namespace prefix used in the attribute value is document-specific,
    so only the local part is compared.
    """
    values = []
    for element in root.findall("./ddm:dcmiMetadata/dcterms:identifier", NAMESPACES):
        xsi_type = element.get(XSI_TYPE, "")
        if xsi_type.rpartition(":")[2] == id_type:
            values.append((element.text or "").strip())
    return values


def _points(root: ET.Element) -> Iterator[tuple[ET.Element, ET.Element]]:
    """(coordinate element, parent) for gml:Point/gml:pos and envelope corners."""
    for parent in root.iter():
        for child in parent:
            if child.tag in GML_CORNERS or (parent.tag == GML_POINT and child.tag == GML_POS):
                yield child, parent


@register_check("bag_file_is_well_formed_xml")
def bag_file_is_well_formed_xml(path: str) -> Check:
    def check(target: BagTarget) -> Outcome:
        try:
            target.documents.xml(path)
        except ET.ParseError as e:
            return Outcome.violated(f"{path} is not well-formed XML: {e}", error=e)
        return Outcome.satisfied()

    return check


@register_check("optional_bag_file_is_well_formed_xml")
def optional_bag_file_is_well_formed_xml(path: str) -> Check:
    inner = bag_file_is_well_formed_xml(path)

    def check(target: BagTarget) -> Outcome:
        if not target.documents.is_file(path):
            return Outcome.inapplicable(f"{path} is not present")
        return inner(target)

    return check


@register_check("dataset_xml_archis_identifiers_have_at_most_10_characters")
def dataset_xml_archis_identifiers_have_at_most_10_characters() -> Check:
    def check(target: BagTarget) -> Outcome:
        root = target.documents.xml(DATASET_XML)
        too_long = [
            value for value in identifiers_of_type(root, "ARCHIS-ZAAK-IDENTIFICATIE")
            if len(value) > 10
        ]
        logger.debug(f"Invalid Archis identifiers: {too_long}")

        if too_long:
            return Outcome.violated(*[
                f"dataset.xml: Archis identifier must be 10 or fewer characters long: {value}"
                for value in too_long
            ])
        return Outcome.satisfied()

    return check


@register_check("dataset_xml_contains_at_most_one_doi_identifier")
def dataset_xml_contains_at_most_one_doi_identifier() -> Check:
    def check(target: BagTarget) -> Outcome:
        count = len(identifiers_of_type(target.documents.xml(DATASET_XML), "DOI"))
        if count == 0:
            return Outcome.inapplicable("dataset.xml has no DOI identifier")
        if count > 1:
            return Outcome.violated("dataset.xml: More than one identifier with xsi:type DOI found")
        return Outcome.satisfied()

    return check


@register_check("dataset_xml_gml_points_have_at_least_two_values")
def dataset_xml_gml_points_have_at_least_two_values() -> Check:
    """Points and envelope corners have two numeric coordinates, within RD bounds if RD."""

    def check(target: BagTarget) -> Outcome:
        root = target.documents.xml(DATASET_XML)
        errors = []

        for element, parent in _points(root):
            text = (element.text or "").strip()
            name = element.tag.rpartition("}")[2]
            is_rd = parent.get("srsName") == RD_SRS_NAME
            logger.debug(f"Validating point {text} (isRD: {is_rd})")

            try:
                parts = [float(p) for p in text.split()]
            except ValueError:
                errors.append(f"{name} has non numeric coordinates: {text}")
                continue

            if len(parts) < 2:
                errors.append(f"{name} has less than two coordinates: {text}")
            elif is_rd:
                x, y = parts[0], parts[1]
                in_bounds = (
                    RD_X_RANGE[0] <= x <= RD_X_RANGE[1]
                    and RD_Y_RANGE[0] <= y <= RD_Y_RANGE[1]
                )
                if not in_bounds:
                    errors.append(f"{name} is outside RD bounds: {text}")

        if errors:
            return Outcome.violated(*errors)
        return Outcome.satisfied()

    return check
