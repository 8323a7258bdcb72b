import json

from stonebridge.services.stone_attributes import (
    StoneAttributes,
    build_line_attributes,
    build_variant_metafields,
    normalize_stone_attributes,
)


def test_normalize_maps_upstream_spellings():
    attrs = normalize_stone_attributes(
        {
            "Diamond Carat": 1.52,
            "diamond_color": "F",
            "Clarity": "VS1",
            "cutGrade": "Excellent",
            "Shape": "Round",
            "Grading Lab": "IGI",
            "Certificate No": "LG123456",
            "stock_id": "A-77",
        }
    )
    assert attrs.carat == "1.52"
    assert attrs.color == "F"
    assert attrs.clarity == "VS1"
    assert attrs.cut_grade == "Excellent"
    assert attrs.shape == "Round"
    assert attrs.grading_lab == "IGI"
    assert attrs.certificate_number == "LG123456"
    assert attrs.item_id == "A-77"


def test_certificate_type_falls_back_to_grading_lab():
    attrs = normalize_stone_attributes({"lab": "GIA"})
    assert attrs.certificate_type == "GIA"

    attrs = normalize_stone_attributes({"lab": "GIA", "certification": "GIA Dossier"})
    assert attrs.certificate_type == "GIA Dossier"


def test_explicit_image_url_wins_and_blank_values_are_ignored():
    attrs = normalize_stone_attributes(
        {"image": "https://cdn.test/a.jpg", "color": "  ", "clarity": {"nested": True}},
        image_url="https://cdn.test/b.jpg",
    )
    assert attrs.image_url == "https://cdn.test/b.jpg"
    assert attrs.color is None
    assert attrs.clarity is None


def test_normalize_handles_missing_payload():
    assert normalize_stone_attributes(None) == StoneAttributes()


def test_variant_metafields_include_payload_and_display_keys():
    payload = {"carat": "1.01", "color": "D", "vendor_ref": "x"}
    attrs = normalize_stone_attributes(payload)
    metafields = build_variant_metafields("gid://shopify/ProductVariant/1", attrs, payload)

    by_key = {mf["key"]: mf for mf in metafields}
    assert json.loads(by_key["payload"]["value"]) == payload
    assert by_key["payload"]["type"] == "json"
    assert by_key["carat"]["value"] == "1.01"
    assert by_key["color"]["type"] == "single_line_text_field"
    assert "clarity" not in by_key
    assert all(mf["ownerId"] == "gid://shopify/ProductVariant/1" for mf in metafields)


def test_line_attributes_start_with_external_id():
    attrs = normalize_stone_attributes({"carat": "2", "Grading Lab": "IGI"})
    lines = build_line_attributes("ext-9", attrs)
    assert lines[0] == {"key": "_external_id", "value": "ext-9"}
    assert {"key": "Carat", "value": "2"} in lines
    assert {"key": "Certificate Type", "value": "IGI"} in lines
