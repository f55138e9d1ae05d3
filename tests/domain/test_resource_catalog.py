"""
Domain Layer Tests: resource catalog

Architectural Intent:
- Configuration-time validation of a resource set (no platform involved)
- Stage grouping and stage inference from dependencies
"""

import pytest

from conftest import make_spec
from stagegate.domain.entities.resource_spec import ReadinessProbe, ResourceSpec
from stagegate.domain.errors import ConfigurationError
from stagegate.domain.services.resource_catalog import ResourceCatalog, infer_stages


class TestResourceCatalog:
    def test_stages_grouped_in_ascending_order(self):
        catalog = ResourceCatalog([
            make_spec("c", stage=1, depends_on=["a"]),
            make_spec("a", stage=0),
            make_spec("b", stage=0),
        ])

        stages = catalog.stages()

        assert [stage for stage, _ in stages] == [0, 1]
        assert sorted(s.name for s in stages[0][1]) == ["a", "b"]
        assert [s.name for s in stages[1][1]] == ["c"]

    def test_sparse_stage_numbers_are_allowed(self):
        catalog = ResourceCatalog([make_spec("a", stage=0), make_spec("b", stage=5)])
        assert [stage for stage, _ in catalog.stages()] == [0, 5]

    def test_duplicate_names_rejected(self):
        with pytest.raises(ConfigurationError, match="Duplicate"):
            ResourceCatalog([make_spec("a"), make_spec("a")])

    def test_unknown_dependency_rejected(self):
        with pytest.raises(ConfigurationError, match="unknown resource 'ghost'"):
            ResourceCatalog([make_spec("a", stage=1, depends_on=["ghost"])])

    def test_cycle_reported_with_path(self):
        with pytest.raises(ConfigurationError, match="Circular dependency"):
            ResourceCatalog([
                make_spec("a", stage=1, depends_on=["b"]),
                make_spec("b", stage=1, depends_on=["a"]),
            ])

    def test_same_stage_dependency_rejected(self):
        with pytest.raises(ConfigurationError, match="same stage 0"):
            ResourceCatalog([make_spec("a"), make_spec("b", depends_on=["a"])])

    def test_forward_reference_rejected(self):
        with pytest.raises(ConfigurationError, match="later stage 2"):
            ResourceCatalog([
                make_spec("a", stage=2),
                make_spec("b", stage=1, depends_on=["a"]),
            ])

    def test_negative_stage_rejected(self):
        with pytest.raises(ConfigurationError, match="negative stage"):
            ResourceCatalog([make_spec("a", stage=-1)])

    def test_lookup_and_membership(self):
        catalog = ResourceCatalog([make_spec("a")])
        assert "a" in catalog
        assert "b" not in catalog
        assert catalog.get("a").name == "a"
        assert len(catalog) == 1


class TestInferStages:
    def test_missing_stage_is_one_past_deepest_dependency(self):
        stages = infer_stages(
            {"ns": 0, "db": None, "api": None, "web": None},
            {"db": ["ns"], "api": ["db"], "web": ["api", "ns"]},
        )
        assert stages == {"ns": 0, "db": 1, "api": 2, "web": 3}

    def test_declared_stage_is_kept(self):
        stages = infer_stages({"a": 3, "b": None}, {"b": ["a"]})
        assert stages == {"a": 3, "b": 4}

    def test_no_dependencies_means_stage_zero(self):
        assert infer_stages({"a": None}, {}) == {"a": 0}

    def test_cycle_detected_before_inference(self):
        with pytest.raises(ConfigurationError, match="Circular"):
            infer_stages({"a": None, "b": None}, {"a": ["b"], "b": ["a"]})


class TestResourceSpec:
    def test_fingerprint_is_stable_across_key_order(self):
        a = ResourceSpec("configmap/x", "configmap", payload={"a": 1, "b": {"c": 2}})
        b = ResourceSpec("configmap/x", "configmap", payload={"b": {"c": 2}, "a": 1})
        assert a.fingerprint == b.fingerprint

    def test_fingerprint_changes_with_payload(self):
        a = ResourceSpec("configmap/x", "configmap", payload={"data": {"k": "1"}})
        b = ResourceSpec("configmap/x", "configmap", payload={"data": {"k": "2"}})
        assert a.fingerprint != b.fingerprint

    def test_list_dependencies_become_tuple(self):
        spec = ResourceSpec("a", "configmap", depends_on=["b"])
        assert spec.depends_on == ("b",)

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValueError):
            ReadinessProbe(timeout_seconds=0)
