"""
Validation layer tests - field predicates and their anomaly kinds.
"""

import pytest

from formation_vault.core.errors import AnomalyError, AnomalyKind
from formation_vault.core.validation import (
    check_formation_fields,
    check_grant_fields,
    classification_rank,
    is_valid_classification,
    is_valid_cluster,
    is_valid_content_hash,
    is_valid_duration,
    is_valid_grantee,
    is_valid_metadata,
    is_valid_resonance,
    is_valid_signature,
)

HASH = "a" * 64


class TestFieldPredicates:

    @pytest.mark.parametrize("value,expected", [
        ("", False),
        ("s", True),
        ("s" * 50, True),
        ("s" * 51, False),
        (None, False),
    ])
    def test_signature_bounds(self, value, expected):
        assert is_valid_signature(value) is expected

    @pytest.mark.parametrize("value,expected", [
        ("a" * 63, False),
        ("a" * 64, True),
        ("a" * 65, False),
        ("", False),
    ])
    def test_content_hash_exact_length(self, value, expected):
        assert is_valid_content_hash(value) is expected

    @pytest.mark.parametrize("value,expected", [
        ("", False),
        ("m", True),
        ("m" * 200, True),
        ("m" * 201, False),
    ])
    def test_metadata_bounds(self, value, expected):
        assert is_valid_metadata(value) is expected

    @pytest.mark.parametrize("value,expected", [
        ("", False),
        ("c", True),
        ("c" * 20, True),
        ("c" * 21, False),
    ])
    def test_cluster_bounds(self, value, expected):
        assert is_valid_cluster(value) is expected

    @pytest.mark.parametrize("tags,expected", [
        ([], False),
        (["f1"], True),
        (["f1", "f2", "f3", "f4", "f5"], True),
        (["f1", "f2", "f3", "f4", "f5", "f6"], False),
        (["dup", "dup"], True),
        ([""], False),
        (["t" * 30], True),
        (["t" * 31], False),
        ("f1", False),
        (None, False),
    ])
    def test_resonance_tags(self, tags, expected):
        assert is_valid_resonance(tags) is expected

    @pytest.mark.parametrize("value,expected", [
        ("observer", True),
        ("manipulator", True),
        ("sovereign", True),
        ("admin", False),
        ("Observer", False),
        ("", False),
    ])
    def test_classification(self, value, expected):
        assert is_valid_classification(value) is expected

    @pytest.mark.parametrize("value,expected", [
        (0, False),
        (1, True),
        (52560, True),
        (52561, False),
        (-5, False),
        (True, False),
        ("100", False),
    ])
    def test_duration(self, value, expected):
        assert is_valid_duration(value) is expected

    def test_grantee_must_differ_from_caller(self):
        assert is_valid_grantee("R", "P") is True
        assert is_valid_grantee("P", "P") is False
        assert is_valid_grantee("   ", "P") is False

    def test_classification_ranks_are_ordered(self):
        assert classification_rank("observer") < classification_rank("manipulator") < classification_rank("sovereign")


class TestCheckHelpers:
    """Each failing field maps to exactly one anomaly kind."""

    @pytest.mark.parametrize("overrides,kind", [
        ({"signature": ""}, AnomalyKind.MALFORMED_INPUT),
        ({"content_hash": "short"}, AnomalyKind.MALFORMED_INPUT),
        ({"metadata": ""}, AnomalyKind.INVALID_METADATA),
        ({"cluster": "c" * 21}, AnomalyKind.INVALID_CLUSTER),
        ({"resonance_tags": []}, AnomalyKind.INVALID_RESONANCE),
    ])
    def test_formation_field_kinds(self, overrides, kind):
        fields = {"signature": "sig", "content_hash": HASH, "metadata": "m",
                  "resonance_tags": ["f1"], "cluster": "c1"}
        fields.update(overrides)

        with pytest.raises(AnomalyError) as exc_info:
            check_formation_fields(**fields)
        assert exc_info.value.anomaly.kind == kind

    def test_first_failing_field_wins(self):
        with pytest.raises(AnomalyError) as exc_info:
            check_formation_fields("", HASH, "", ["f1"], cluster="")
        assert exc_info.value.anomaly.kind == AnomalyKind.MALFORMED_INPUT

    def test_update_skips_cluster(self):
        check_formation_fields("sig", HASH, "m", ["f1"], require_cluster=False)

    @pytest.mark.parametrize("entity,classification,duration,kind", [
        ("P", "observer", 10, AnomalyKind.MALFORMED_INPUT),
        ("R", "reader", 10, AnomalyKind.AUTHORIZATION_FAILURE),
        ("R", "observer", 0, AnomalyKind.TEMPORAL_VIOLATION),
        ("R", "observer", 52561, AnomalyKind.TEMPORAL_VIOLATION),
    ])
    def test_grant_field_kinds(self, entity, classification, duration, kind):
        with pytest.raises(AnomalyError) as exc_info:
            check_grant_fields(entity, "P", classification, duration)
        assert exc_info.value.anomaly.kind == kind

    def test_valid_grant_fields_pass(self):
        check_grant_fields("R", "P", "sovereign", 52560)
