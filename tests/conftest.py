"""
Shared fixtures: isolated stores and vaults for every test.
"""

import pytest

from formation_vault.core.schema import Context
from formation_vault.core.store import SimpleInMemoryFormationStore, SQLiteFormationStore
from formation_vault.core.vault import FormationVault

HASH_A = "a" * 64
HASH_B = "b" * 64


@pytest.fixture
def memory_store():
    """Fresh in-memory store."""
    return SimpleInMemoryFormationStore()


@pytest.fixture
def sqlite_store(tmp_path):
    """Fresh SQLite store in a temporary directory."""
    return SQLiteFormationStore(str(tmp_path / "formations.db"))


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Each backend in turn; behaviour must not depend on the backend."""
    if request.param == "memory":
        return SimpleInMemoryFormationStore()
    return SQLiteFormationStore(str(tmp_path / "formations.db"))


@pytest.fixture
def vault(store):
    return FormationVault(store)


def ctx(caller: str = "P", now: int = 1) -> Context:
    return Context(caller=caller, now=now)


def formation_fields(**overrides):
    fields = {
        "signature": "sig1",
        "content_hash": HASH_A,
        "metadata": "m",
        "cluster": "c1",
        "resonance_tags": ["f1"],
    }
    fields.update(overrides)
    return fields


def update_fields(**overrides):
    fields = formation_fields(**overrides)
    fields.pop("cluster")
    return fields
