import pytest

from snap_pipeline.core.exceptions import (
    ConfigurationError,
    Constraint,
    DecodeError,
    EncodeError,
    FetchError,
    FilterError,
    ItemError,
    SnapPipelineError,
    Stage,
    StoreError,
    UploadError,
    ValidationError,
)


def test_validation_error_names_the_filter() -> None:
    error = ValidationError("pixelate size too large (max 50)", "pixelate", Constraint.OUT_OF_RANGE)
    assert str(error) == "filter 'pixelate': pixelate size too large (max 50)"
    assert error.filter_name == "pixelate"
    assert error.constraint is Constraint.OUT_OF_RANGE
    assert error.message == "pixelate size too large (max 50)"


def test_validation_error_without_filter() -> None:
    error = ValidationError("image_url is required")
    assert str(error) == "image_url is required"
    assert error.filter_name is None
    assert error.constraint is Constraint.MISSING


@pytest.mark.parametrize(
    "error_class, stage",
    [
        (FetchError, Stage.FETCH),
        (DecodeError, Stage.DECODE),
        (FilterError, Stage.FILTER),
        (EncodeError, Stage.ENCODE),
        (UploadError, Stage.UPLOAD),
        (ItemError, Stage.UNKNOWN),
    ],
)
def test_item_errors_carry_their_stage(error_class, stage) -> None:
    assert error_class("boom").stage is stage


def test_all_errors_share_a_base() -> None:
    for error_class in (ConfigurationError, StoreError, ValidationError, ItemError, FetchError):
        assert issubclass(error_class, SnapPipelineError)


def test_stage_values_are_wire_strings() -> None:
    assert [stage.value for stage in Stage] == [
        "fetch",
        "decode",
        "filter",
        "encode",
        "upload",
        "unknown",
    ]
