"""
Validation layer for formation fields.
Pure predicates, one per field, plus check helpers that turn a failing
predicate into its single anomaly kind.
"""

from typing import Sequence

from .errors import AnomalyError, AnomalyKind

SIGNATURE_MAX_LEN = 50
CONTENT_HASH_LEN = 64
METADATA_MAX_LEN = 200
CLUSTER_MAX_LEN = 20
RESONANCE_MAX_TAGS = 5
RESONANCE_TAG_MAX_LEN = 30
GRANT_MAX_DURATION = 52560

# Ordered from least to most privileged
CLASSIFICATIONS = ("observer", "manipulator", "sovereign")


def _length_between(value, low: int, high: int) -> bool:
    return isinstance(value, str) and low <= len(value) <= high


def is_valid_signature(signature) -> bool:
    return _length_between(signature, 1, SIGNATURE_MAX_LEN)


def is_valid_content_hash(content_hash) -> bool:
    return isinstance(content_hash, str) and len(content_hash) == CONTENT_HASH_LEN


def is_valid_metadata(metadata) -> bool:
    return _length_between(metadata, 1, METADATA_MAX_LEN)


def is_valid_cluster(cluster) -> bool:
    return _length_between(cluster, 1, CLUSTER_MAX_LEN)


def is_valid_resonance(tags) -> bool:
    """1-5 tags, each 1-30 characters. Duplicates are allowed."""
    if isinstance(tags, str) or not isinstance(tags, Sequence):
        return False
    if not 1 <= len(tags) <= RESONANCE_MAX_TAGS:
        return False
    return all(_length_between(tag, 1, RESONANCE_TAG_MAX_LEN) for tag in tags)


def is_valid_classification(classification) -> bool:
    return classification in CLASSIFICATIONS


def is_valid_duration(duration) -> bool:
    # bool is an int subclass; True must not pass as a one-block duration
    if isinstance(duration, bool) or not isinstance(duration, int):
        return False
    return 1 <= duration <= GRANT_MAX_DURATION


def is_valid_grantee(entity, caller: str) -> bool:
    return isinstance(entity, str) and bool(entity.strip()) and entity != caller


def classification_rank(classification: str) -> int:
    return CLASSIFICATIONS.index(classification)


def check_formation_fields(signature, content_hash, metadata, resonance_tags, cluster=None,
                           require_cluster: bool = True) -> None:
    """Raise AnomalyError for the first failing field.

    Creation validates the cluster; updates never touch it.
    """
    if not is_valid_signature(signature):
        raise AnomalyError(AnomalyKind.MALFORMED_INPUT, "signature must be 1-50 characters")
    if not is_valid_content_hash(content_hash):
        raise AnomalyError(AnomalyKind.MALFORMED_INPUT, "content hash must be exactly 64 characters")
    if not is_valid_metadata(metadata):
        raise AnomalyError(AnomalyKind.INVALID_METADATA, "metadata must be 1-200 characters")
    if require_cluster and not is_valid_cluster(cluster):
        raise AnomalyError(AnomalyKind.INVALID_CLUSTER, "cluster must be 1-20 characters")
    if not is_valid_resonance(resonance_tags):
        raise AnomalyError(AnomalyKind.INVALID_RESONANCE,
                           "resonance tags must be 1-5 entries of 1-30 characters")


def check_grant_fields(entity, caller: str, classification, duration) -> None:
    """Raise AnomalyError for the first failing grant field.

    The modification flag is not checked: a bool has no invalid value.
    """
    if not is_valid_grantee(entity, caller):
        raise AnomalyError(AnomalyKind.MALFORMED_INPUT, "grantee must be a principal other than the owner")
    if not is_valid_classification(classification):
        raise AnomalyError(AnomalyKind.AUTHORIZATION_FAILURE,
                           f"classification must be one of: {list(CLASSIFICATIONS)}")
    if not is_valid_duration(duration):
        raise AnomalyError(AnomalyKind.TEMPORAL_VIOLATION,
                           f"duration must be between 1 and {GRANT_MAX_DURATION}")
