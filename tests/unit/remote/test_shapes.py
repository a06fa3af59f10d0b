"""
Unit tests for listing/detail parsing.
"""

import pytest

from pietracker.errors.errors import BusinessError, SchemaError
from pietracker.remote.shapes import (
    ArrayShape,
    FlattenedMapShape,
    IdMapShape,
    check_business_error,
    decode_body,
    excerpt,
    parse_listing,
    parse_pie_meta,
    raw_pie_from_wire,
)


class TestRawPieFromWire:
    """Tests for single pie decoding."""

    def test_full_object(self, wire_pie) -> None:
        raw = raw_pie_from_wire(wire_pie())

        assert raw.id == 17
        assert raw.cash == 0.5
        assert raw.dividend.gained == 1.2
        assert raw.dividend.in_cash == 0.2
        assert raw.result.invested_value == 100.0
        assert raw.result.current_value == 110.0
        assert raw.result.absolute_result == pytest.approx(10.0)
        assert raw.progress == 0.4
        assert raw.status == "AHEAD"

    def test_missing_optional_fields_default(self) -> None:
        raw = raw_pie_from_wire({"id": 3})

        assert raw.cash == 0.0
        assert raw.result.invested_value == 0.0
        assert raw.progress is None
        assert raw.status is None

    def test_numeric_strings_accepted(self) -> None:
        raw = raw_pie_from_wire({"id": "5", "cash": "1.25"})
        assert raw.id == 5
        assert raw.cash == 1.25

    def test_missing_id_raises(self) -> None:
        with pytest.raises(SchemaError):
            raw_pie_from_wire({"cash": 1.0})

    def test_non_numeric_value_raises(self) -> None:
        with pytest.raises(SchemaError, match="cash"):
            raw_pie_from_wire({"id": 1, "cash": "lots"})

    def test_bool_is_not_a_number(self) -> None:
        with pytest.raises(SchemaError):
            raw_pie_from_wire({"id": 1, "cash": True})

    def test_result_must_be_object(self) -> None:
        with pytest.raises(SchemaError, match="result"):
            raw_pie_from_wire({"id": 1, "result": [1, 2]})


class TestListingShapes:
    """The three accepted listing layouts decode to the same pies."""

    def test_array_shape(self, wire_pie) -> None:
        pies = ArrayShape().parse([wire_pie(1), wire_pie(2)])
        assert [p.id for p in pies] == [1, 2]

    def test_array_shape_rejects_object(self) -> None:
        with pytest.raises(SchemaError):
            ArrayShape().extract({"1": {}})

    def test_id_map_shape_uses_key_as_id(self, wire_pie) -> None:
        entry = wire_pie(9)
        del entry["id"]

        pies = IdMapShape().parse({"9": entry})

        assert pies[0].id == 9
        assert pies[0].result.current_value == 110.0

    def test_id_map_shape_prefers_embedded_id(self, wire_pie) -> None:
        pies = IdMapShape().parse({"whatever": wire_pie(4)})
        assert pies[0].id == 4

    def test_id_map_shape_rejects_scalar_values(self) -> None:
        with pytest.raises(SchemaError):
            IdMapShape().extract({"1.cash": 2.0})

    def test_flattened_map_shape(self) -> None:
        payload = {
            "7.cash": 1.5,
            "7.result.priceAvgInvestedValue": 50.0,
            "7.result.priceAvgValue": 60.0,
            "7.dividendDetails.gained": 0.3,
            "8.cash": 0.0,
        }

        pies = sorted(FlattenedMapShape().parse(payload), key=lambda p: p.id)

        assert [p.id for p in pies] == [7, 8]
        assert pies[0].cash == 1.5
        assert pies[0].result.invested_value == 50.0
        assert pies[0].result.current_value == 60.0
        assert pies[0].dividend.gained == 0.3

    def test_flattened_map_rejects_undotted_key(self) -> None:
        with pytest.raises(SchemaError):
            FlattenedMapShape().extract({"cash": 1.0})

    def test_flattened_map_rejects_conflicting_paths(self) -> None:
        with pytest.raises(SchemaError):
            FlattenedMapShape().extract({"7.result": 1.0, "7.result.priceAvgValue": 2.0})

    def test_shapes_are_equivalent(self, wire_pie) -> None:
        array = [wire_pie(1, invested=10.0, value=12.0)]
        id_map = {"1": {k: v for k, v in wire_pie(1, invested=10.0, value=12.0).items() if k != "id"}}
        flattened = {
            "1.cash": 0.5,
            "1.dividendDetails.gained": 1.2,
            "1.dividendDetails.reinvested": 1.0,
            "1.dividendDetails.inCash": 0.2,
            "1.result.priceAvgInvestedValue": 10.0,
            "1.result.priceAvgValue": 12.0,
            "1.result.priceAvgResult": 2.0,
            "1.result.priceAvgResultCoef": 0.2,
            "1.progress": 0.4,
            "1.status": "AHEAD",
        }

        from_array = parse_listing(array)
        from_map = parse_listing(id_map)
        from_flat = parse_listing(flattened)

        assert from_array == from_map == from_flat


class TestParseListing:
    """Tests for shape fallthrough and error classification."""

    def test_empty_array(self) -> None:
        assert parse_listing([]) == []

    def test_empty_object(self) -> None:
        assert parse_listing({}) == []

    def test_business_error_on_200_body(self) -> None:
        body = '{"code": "AuthenticationFailed", "message": "Invalid token"}'

        with pytest.raises(BusinessError) as exc:
            parse_listing(decode_body(body), body)

        assert exc.value.code == "AuthenticationFailed"
        assert exc.value.raw_body == body
        assert "Invalid token" in str(exc.value)

    def test_no_shape_matches(self) -> None:
        with pytest.raises(SchemaError) as exc:
            parse_listing("not a listing", '"not a listing"')

        assert exc.value.raw_body == '"not a listing"'
        assert "no known shape" in str(exc.value)

    def test_array_with_bad_entry_fails(self) -> None:
        with pytest.raises(SchemaError):
            parse_listing([{"id": 1}, {"cash": 3.0}])


class TestBusinessErrorCheck:
    def test_list_is_never_an_error(self) -> None:
        check_business_error([{"message": "x"}])

    def test_each_marker_key_is_detected(self) -> None:
        for key in ("code", "error", "errors", "errorMessage", "message"):
            with pytest.raises(BusinessError):
                check_business_error({key: "boom"})


class TestDecodeBody:
    def test_invalid_json(self) -> None:
        with pytest.raises(SchemaError) as exc:
            decode_body(b"<html>oops</html>")
        assert exc.value.raw_body == "<html>oops</html>"

    def test_excerpt_truncates(self) -> None:
        assert excerpt("a" * 10, limit=4) == "aaaa..."
        assert excerpt("abc", limit=4) == "abc"


class TestParsePieMeta:
    """Tests for the detail endpoint."""

    def test_epoch_seconds(self) -> None:
        meta = parse_pie_meta({"settings": {"creationDate": 1690000000, "name": "Growth"}})
        assert meta.created_at == 1690000000.0
        assert meta.name == "Growth"

    def test_iso_timestamp(self) -> None:
        meta = parse_pie_meta({"settings": {"creationDate": "1970-01-02T00:00:00Z"}})
        assert meta.created_at == 86400.0
        assert meta.name is None

    def test_numeric_string(self) -> None:
        meta = parse_pie_meta({"settings": {"creationDate": "1690000000.5"}})
        assert meta.created_at == 1690000000.5

    def test_missing_settings(self) -> None:
        with pytest.raises(SchemaError):
            parse_pie_meta({"instruments": []})

    def test_missing_creation_date(self) -> None:
        with pytest.raises(SchemaError, match="creationDate"):
            parse_pie_meta({"settings": {"name": "x"}})

    def test_garbage_creation_date(self) -> None:
        with pytest.raises(SchemaError):
            parse_pie_meta({"settings": {"creationDate": "yesterday"}})

    def test_business_error(self) -> None:
        with pytest.raises(BusinessError):
            parse_pie_meta({"errorMessage": "Pie not found"})
