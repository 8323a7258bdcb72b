"""Canonical stone attributes from heterogeneous upstream payloads.

Upstream feeds (lab-grown, natural, moissanite, coloured stone indices) spell
the same field many ways: `carat`, `Carat`, `diamond_carat`, `Diamond Carat`...
normalize_stone_attributes() maps every known spelling onto one StoneAttributes
record. It is applied once at ingestion; everything downstream (variant
metafields, cart line attributes, the local diamond mirror) reads only the
canonical shape.
"""

from dataclasses import asdict, dataclass
import json
from typing import Any

# Canonical field -> known upstream spellings, most specific first.
FIELD_SPELLINGS: dict[str, tuple[str, ...]] = {
    "carat": ("carat", "Carat", "diamond_carat", "Diamond Carat", "weight", "carat_weight"),
    "color": ("color", "Color", "diamond_color", "Diamond Color", "colour"),
    "clarity": ("clarity", "Clarity", "diamond_clarity", "Diamond Clarity"),
    "cut_grade": ("cut_grade", "Cut Grade", "Cut_Grade", "cutGrade", "CutGrade", "cut"),
    "shape": ("shape", "Shape", "diamond_shape", "Diamond Shape"),
    "grading_lab": ("grading_lab", "Grading Lab", "Grading_Lab", "gradingLab", "lab", "Lab"),
    "certificate_type": (
        "certificate_type",
        "Certificate Type",
        "Certificate_Type",
        "certificateType",
        "certification",
        "Certification",
    ),
    "certificate_number": (
        "certificate_number",
        "Certificate Number",
        "Certificate_Number",
        "certificateNumber",
        "certificate_no",
        "Certificate No",
        "certificateNo",
        "cert_number",
        "Cert Number",
    ),
    "image_url": ("image_url", "imageUrl", "Image URL", "image", "image_link"),
    "item_id": ("item_id", "itemId", "Item ID", "stock_id", "stock_number"),
}

# Metafield keys (namespace `custom`) written on materialized variants.
DISPLAY_METAFIELD_KEYS = (
    "carat",
    "color",
    "clarity",
    "cut_grade",
    "certificate_type",
    "certificate_number",
)

# Cart line attribute labels, in display order.
LINE_ATTRIBUTE_LABELS: tuple[tuple[str, str], ...] = (
    ("carat", "Carat"),
    ("color", "Color"),
    ("clarity", "Clarity"),
    ("cut_grade", "Cut Grade"),
    ("grading_lab", "Grading Lab"),
    ("certificate_type", "Certificate Type"),
    ("certificate_number", "Certificate Number"),
    ("item_id", "Item ID"),
    ("image_url", "Image URL"),
)


@dataclass(frozen=True)
class StoneAttributes:
    """Canonical grading attributes of one external stone."""

    carat: str | None = None
    color: str | None = None
    clarity: str | None = None
    cut_grade: str | None = None
    shape: str | None = None
    grading_lab: str | None = None
    certificate_type: str | None = None
    certificate_number: str | None = None
    image_url: str | None = None
    item_id: str | None = None

    def as_dict(self) -> dict[str, str]:
        """Only the populated fields."""
        return {k: v for k, v in asdict(self).items() if v is not None}


def _lookup(payload: dict[str, Any], spellings: tuple[str, ...]) -> str | None:
    for key in spellings:
        for candidate in (key, key.lower(), key.upper()):
            value = payload.get(candidate)
            if value is None or value == "":
                continue
            if isinstance(value, (dict, list)):
                continue
            text = str(value).strip()
            if text:
                return text
    return None


def normalize_stone_attributes(
    payload: dict[str, Any] | None,
    *,
    image_url: str | None = None,
) -> StoneAttributes:
    """Map an upstream payload onto StoneAttributes.

    Args:
        payload: Free-form attribute payload from the external catalog.
        image_url: Image URL supplied next to the payload (wins over payload).

    Returns:
        Canonical attributes; unknown fields are ignored.
    """
    payload = payload or {}
    values = {field: _lookup(payload, spellings) for field, spellings in FIELD_SPELLINGS.items()}

    # Older feeds only carry the lab; it doubles as the certificate type.
    if values["certificate_type"] is None and values["grading_lab"] is not None:
        values["certificate_type"] = values["grading_lab"]
    if image_url:
        values["image_url"] = image_url

    return StoneAttributes(**values)


def build_variant_metafields(
    owner_id: str,
    attributes: StoneAttributes,
    payload: dict[str, Any] | None,
) -> list[dict[str, str]]:
    """Build metafieldsSet inputs for a materialized variant."""
    metafields = [
        {
            "ownerId": owner_id,
            "namespace": "custom",
            "key": "payload",
            "type": "json",
            "value": json.dumps(payload or {}, default=str),
        }
    ]
    populated = attributes.as_dict()
    for key in DISPLAY_METAFIELD_KEYS:
        if key in populated:
            metafields.append(
                {
                    "ownerId": owner_id,
                    "namespace": "custom",
                    "key": key,
                    "type": "single_line_text_field",
                    "value": populated[key],
                }
            )
    return metafields


def build_line_attributes(external_id: str, attributes: StoneAttributes) -> list[dict[str, str]]:
    """Build storefront cart line attributes ({key, value} pairs)."""
    lines = [{"key": "_external_id", "value": external_id}]
    populated = attributes.as_dict()
    for field, label in LINE_ATTRIBUTE_LABELS:
        if field in populated:
            lines.append({"key": label, "value": populated[field]})
    return lines
