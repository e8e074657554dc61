"""
Tests for the dimension table loader and registry.
"""
import pytest

from modules.metrics import (
    BreakdownDimension,
    DimensionElement,
    DimensionRegistry,
    MetricsConfigError,
    UnknownDimensionError,
)


@pytest.fixture(scope="module")
def registry() -> DimensionRegistry:
    return DimensionRegistry.load()


def test_default_table_has_every_dimension(registry):
    assert set(registry.names()) == {dimension.value for dimension in BreakdownDimension}
    assert len(registry) == 6


def test_lookup_by_enum_or_name(registry):
    assert registry.get(BreakdownDimension.IDE) is registry.get("ide")
    assert registry.get("ide").collection == "totals_by_ide"
    assert "model_feature" in registry
    assert "os" not in registry


def test_unknown_dimension_lists_allowed(registry):
    with pytest.raises(UnknownDimensionError) as exc_info:
        registry.get("os")

    assert exc_info.value.dimension == "os"
    assert "ide" in exc_info.value.allowed
    assert "os" in str(exc_info.value)


def test_two_field_display_name_and_identity(registry):
    config = registry.get("language_model")
    key = config.group_key(DimensionElement(language="python", model="gpt-4o"))

    assert key == ("python", "gpt-4o")
    assert config.display_name(key) == "python | gpt-4o"
    assert config.identity(key) == {"language": "python", "model": "gpt-4o"}


def test_filter_fields_follow_element_keys(registry):
    assert registry.get("ide").filter_fields == ()
    assert registry.get("model").filter_fields == ("model", "language")
    assert registry.get("language_feature").filter_fields == ("language",)
    assert registry.get("model_feature").filter_fields == ("model",)


def test_custom_table_adds_dimension(tmp_path):
    (tmp_path / "dimensions.yaml").write_text(
        "dimensions:\n"
        "  ide_only:\n"
        "    collection: totals_by_ide\n"
        "    group_by: [ide]\n"
    )
    registry = DimensionRegistry.load(tmp_path)

    assert registry.names() == ("ide_only",)
    assert registry.get("ide_only").identity_fields == ("ide",)


@pytest.mark.parametrize("body", [
    "dimensions: {}\n",
    "dimensions:\n  bad:\n    collection: totals_by_os\n    group_by: [ide]\n",
    "dimensions:\n  bad:\n    collection: totals_by_ide\n    group_by: [os]\n",
    "dimensions:\n  bad:\n    collection: totals_by_ide\n    group_by: [ide]\n    filter_fields: [ide]\n",
    "dimensions: [unclosed\n",
])
def test_invalid_table_is_rejected(tmp_path, body):
    (tmp_path / "dimensions.yaml").write_text(body)
    with pytest.raises(MetricsConfigError):
        DimensionRegistry.load(tmp_path)


def test_missing_directory_is_rejected(tmp_path):
    with pytest.raises(MetricsConfigError):
        DimensionRegistry.load(tmp_path / "missing")
