import pytest

from core.schema import FieldSpec, Schema, ValidationError, check, validate

FLAVOURS = Schema.of(
    flavour=FieldSpec(type="string", enum=("vanilla", "strawberry", "chocolate"),
                      description="Pick one", required=True),
    scoops=FieldSpec(type="integer"),
)


def test_valid_input_returns_declared_fields_only():
    args = {"flavour": "vanilla", "scoops": 2, "extra": "ignored"}
    out = validate(args, FLAVOURS)
    assert out == {"flavour": "vanilla", "scoops": 2}
    # input untouched
    assert args == {"flavour": "vanilla", "scoops": 2, "extra": "ignored"}


def test_missing_required_field_is_named():
    with pytest.raises(ValidationError) as exc:
        validate({}, FLAVOURS)
    assert exc.value.errors == ["Missing required field: flavour"]


def test_none_counts_as_missing():
    ok, errors = check({"flavour": None}, FLAVOURS)
    assert not ok
    assert "Missing required field: flavour" in errors


def test_enum_is_exact_and_case_sensitive():
    with pytest.raises(ValidationError) as exc:
        validate({"flavour": "Vanilla"}, FLAVOURS)
    msg = str(exc.value)
    assert "'Vanilla'" in msg
    assert "flavour" in msg
    assert "vanilla, strawberry, chocolate" in msg


@pytest.mark.parametrize("value, typ", [
    (3, "string"),
    (True, "integer"),
    ("1", "integer"),
])
def test_wrong_type_rejected(value, typ):
    schema = Schema.of(x=FieldSpec(type=typ, required=True))
    ok, errors = check({"x": value}, schema)
    assert not ok
    assert errors[0].startswith(f"x expected {typ}")


def test_optional_field_may_be_absent():
    assert validate({"flavour": "chocolate"}, FLAVOURS) == {"flavour": "chocolate"}


def test_non_mapping_input_is_an_error():
    ok, errors = check(["vanilla"], FLAVOURS)
    assert not ok and "expected an object" in errors[0]


def test_empty_enum_rejected():
    with pytest.raises(ValueError):
        FieldSpec(type="string", enum=())


def test_wire_shape():
    wire = FLAVOURS.to_json()
    assert wire == {
        "type": "object",
        "properties": {
            "flavour": {"type": "string", "enum": ["vanilla", "strawberry", "chocolate"], "description": "Pick one"},
            "scoops": {"type": "integer"},
        },
        "required": ["flavour"],
    }


def test_restrict_keeps_only_named_fields():
    only = FLAVOURS.restrict(["flavour"])
    assert [n for n, _ in only.fields] == ["flavour"]
    assert only.fields[0][1] is FLAVOURS.fields[0][1]
