"""
CFDI helpers.

Only the fiscal UUID of a CFDI is tracked. It lives in the
TimbreFiscalDigital complement as the ``UUID`` attribute; namespace
prefixes differ between CFDI versions, so elements are matched on
their local name.

Uploaded files are parsed with defusedxml, which refuses DTD entity
declarations and external references.
"""

import re
from typing import Optional

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET

_UUID_PATTERN = re.compile(
    r"^[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}$"
)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def extract_cfdi_uuid(xml_bytes: bytes) -> Optional[str]:
    """
    Read the fiscal UUID from a CFDI XML document.

    Returns:
        The upper-cased UUID, or None when the document has no valid stamp

    Raises:
        ValueError: If the bytes are not well-formed XML or declare entities
    """
    try:
        root = ET.fromstring(xml_bytes)
    except ET.ParseError as e:
        raise ValueError(f"CFDI XML could not be parsed: {e}")
    except DefusedXmlException as e:
        raise ValueError(f"CFDI XML rejected: {e}")

    for element in root.iter():
        if _local_name(element.tag) != "TimbreFiscalDigital":
            continue
        value = element.attrib.get("UUID", "").strip()
        if _UUID_PATTERN.match(value):
            return value.upper()
    return None
