import pytest

from stackdriver_export.attributes import (
    AttributeValue,
    Attributes,
    TruncatableString,
    build_attributes,
    to_attribute_value,
)


def _string(text):
    return AttributeValue(TruncatableString(text))


def test_attributes_mapping():
    attributes = [
        ("http.host", "example.com:8080"),
        ("http.method", "POST"),
        ("http.path", "/path/12314/?q=ddds#123"),
        ("http.url", "https://example.com:8080/webshop/articles/4?s=1"),
        ("http.user_agent", "CERN-LineMode/2.15 libwww/2.17b3"),
        ("http.status_code", 200),
        ("http.route", "/webshop/articles/:article_id"),
    ]
    resource = {"service.name": "Test Service Name"}

    actual = build_attributes(attributes, resource)
    assert len(actual.attribute_map) == 8
    assert actual.dropped_attributes_count == 0
    assert actual.attribute_map["/http/host"] == to_attribute_value("example.com:8080")
    assert actual.attribute_map["/http/method"] == to_attribute_value("POST")
    assert actual.attribute_map["/http/path"] == to_attribute_value("/path/12314/?q=ddds#123")
    assert actual.attribute_map["/http/route"] == to_attribute_value(
        "/webshop/articles/:article_id"
    )
    assert actual.attribute_map["/http/url"] == to_attribute_value(
        "https://example.com:8080/webshop/articles/4?s=1"
    )
    assert actual.attribute_map["/http/user_agent"] == to_attribute_value(
        "CERN-LineMode/2.15 libwww/2.17b3"
    )
    assert actual.attribute_map["/http/status_code"] == to_attribute_value(200)
    assert actual.attribute_map["service.name"] == _string("Test Service Name")


def test_too_many():
    resource = {"user_agent.original": "Test Service Name UA"}
    attributes = [(f"key{i}", f"value{i}") for i in range(32)]

    actual = build_attributes(attributes, resource)
    assert len(actual.attribute_map) == 32
    assert actual.dropped_attributes_count == 1
    assert actual.attribute_map["/http/user_agent"] == to_attribute_value(
        "Test Service Name UA"
    )
    assert "key31" not in actual.attribute_map


def test_attributes_mapping_http_target():
    attributes = [("http.target", "/path/12314/?q=ddds#123")]
    actual = build_attributes(attributes, {})
    assert len(actual.attribute_map) == 1
    assert actual.dropped_attributes_count == 0
    assert actual.attribute_map["/http/path"] == to_attribute_value("/path/12314/?q=ddds#123")


def test_attributes_mapping_dropped_attributes_count():
    attributes = [
        ("answer", 42),
        (
            "long_attribute_key_dvwmacxpeefbuemoxljmqvldjxmvvihoeqnuqdsyovwgljtnemouidabhkmvsnauwfnaihekcfwhugejboiyfthyhmkpsaxtidlsbwsmirebax",
            "Some value",
        ),
    ]
    actual = build_attributes(attributes, {})
    assert actual == Attributes(
        attribute_map={"answer": to_attribute_value(42)},
        dropped_attributes_count=1,
    )
    assert len(actual.attribute_map) == 1
    assert actual.dropped_attributes_count == 1


def test_key_length_limit_is_inclusive():
    attrs = Attributes()
    attrs.push("k" * 128, "kept")
    attrs.push("k" * 129, "dropped")
    assert list(attrs.attribute_map) == ["k" * 128]
    assert attrs.dropped_attributes_count == 1


def test_no_resource_and_mapping_input():
    actual = build_attributes({"url.full": "https://example.com/"}, None)
    assert actual.attribute_map == {"/http/url": _string("https://example.com/")}


def test_resource_takes_precedence_at_limit():
    resource = {f"r{i}": i for i in range(32)}
    actual = build_attributes({"span": "x"}, resource)
    assert "span" not in actual.attribute_map
    assert actual.dropped_attributes_count == 1
    assert actual.attribute_map["r0"] == AttributeValue(0)


def test_bool_and_int_kept():
    assert to_attribute_value(True) == AttributeValue(True)
    assert to_attribute_value(-7) == AttributeValue(-7)


def test_int_out_of_range():
    with pytest.raises(ValueError):
        to_attribute_value(1 << 63)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1.0, "1"),
        (1.5, "1.5"),
        (-0.25, "-0.25"),
        (float("nan"), "NaN"),
        (float("inf"), "inf"),
        (1e20, "100000000000000000000"),
    ],
)
def test_float_becomes_string(value, expected):
    assert to_attribute_value(value) == _string(expected)


def test_arrays_become_strings():
    assert to_attribute_value([1, 2, 3]) == _string("[1,2,3]")
    assert to_attribute_value(["a", "b"]) == _string('["a","b"]')
    assert to_attribute_value([True, False]) == _string("[true,false]")


def test_unknown_type_becomes_empty_string():
    assert to_attribute_value(None) == _string("")