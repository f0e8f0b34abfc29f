"""
Store backend tests - transactional rollback, persistence and clocks.
"""

import pytest

from formation_vault.core.clock import FixedClock, HeightClock, SystemClock
from formation_vault.core.db import health_check
from formation_vault.core.schema import AccessGrant, Context, Formation, RegistryState
from formation_vault.core.store import PRIMARY_SPACE, SECONDARY_SPACE, SQLiteFormationStore
from formation_vault.core.vault import FormationVault

from conftest import HASH_A, ctx, formation_fields


def _formation(formation_id=1, owner="P"):
    return Formation(formation_id, "sig", owner, HASH_A, "m", "c", ["t1", "t2"], 1, 1)


class TestTransactions:

    def test_commit_persists_writes(self, store):
        with store.transaction() as txn:
            txn.put_formation(PRIMARY_SPACE, _formation())
            txn.put_state(RegistryState(1, 1, 1, True))

        with store.reader() as view:
            assert view.get_formation(PRIMARY_SPACE, 1) == _formation()
            assert view.get_state() == RegistryState(1, 1, 1, True)

    def test_exception_discards_every_write(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction() as txn:
                txn.put_formation(PRIMARY_SPACE, _formation())
                txn.put_grant(AccessGrant(1, "R", "observer", 1, 11, False))
                txn.put_state(RegistryState(1, 1, 1, True))
                raise RuntimeError("abort")

        with store.reader() as view:
            assert view.get_formation(PRIMARY_SPACE, 1) is None
            assert view.get_grant(1, "R") is None
            assert view.get_state() == RegistryState()

    def test_rollback_restores_overwritten_values(self, store):
        with store.transaction() as txn:
            txn.put_formation(PRIMARY_SPACE, _formation())
            txn.put_state(RegistryState(1, 1, 1, True))

        with pytest.raises(RuntimeError):
            with store.transaction() as txn:
                txn.put_formation(PRIMARY_SPACE, _formation(owner="Q"))
                txn.put_formation(PRIMARY_SPACE, _formation(owner="R"))
                txn.put_formation(PRIMARY_SPACE, _formation(formation_id=2))
                txn.put_state(RegistryState(2, 2, 2, False))
                raise RuntimeError("abort")

        with store.reader() as view:
            assert view.get_formation(PRIMARY_SPACE, 1).owner == "P"
            assert view.get_formation(PRIMARY_SPACE, 2) is None
            assert view.get_state() == RegistryState(1, 1, 1, True)

    def test_spaces_are_independent(self, store):
        with store.transaction() as txn:
            txn.put_formation(SECONDARY_SPACE, _formation(owner="S"))

        with store.reader() as view:
            assert view.get_formation(PRIMARY_SPACE, 1) is None
            assert view.get_formation(SECONDARY_SPACE, 1).owner == "S"
            assert view.list_formations(PRIMARY_SPACE) == []

    def test_unknown_space_rejected(self, store):
        with store.reader() as view:
            with pytest.raises(ValueError):
                view.get_formation("tertiary", 1)

    def test_memory_store_returns_copies(self, memory_store):
        with memory_store.transaction() as txn:
            txn.put_formation(PRIMARY_SPACE, _formation())

        with memory_store.reader() as view:
            view.get_formation(PRIMARY_SPACE, 1).resonance_tags.append("sneaky")
            assert view.get_formation(PRIMARY_SPACE, 1).resonance_tags == ["t1", "t2"]


class TestSQLitePersistence:

    def test_state_survives_reopen(self, tmp_path):
        db_path = str(tmp_path / "formations.db")
        vault = FormationVault(SQLiteFormationStore(db_path))
        vault.create_formation(ctx("P", 4), **formation_fields(resonance_tags=["a", "b"]))
        vault.grant_access(ctx("P", 5), 1, "R", "observer", 10, True)

        reopened = FormationVault(SQLiteFormationStore(db_path))

        assert reopened.get_formation(1).resonance_tags == ["a", "b"]
        assert reopened.get_grant(1, "R").can_modify is True
        assert reopened.get_registry_state().total_operations == 2
        assert reopened.create_formation(ctx("Q", 6), **formation_fields()) == 2

    def test_health_check(self, sqlite_store, tmp_path):
        assert sqlite_store.health_check() is True
        assert health_check(str(tmp_path / "missing" / "nothing.db")) is False


class TestClocks:

    def test_height_clock_moves_only_on_commit(self, vault):
        clock = HeightClock(vault.store)
        assert clock.now() == 1

        vault.create_formation(ctx("P", clock.now()), **formation_fields())
        assert clock.now() == 2

        vault.create_formation(ctx("P", clock.now()), **formation_fields(signature=""))
        assert clock.now() == 2

    def test_fixed_clock(self):
        clock = FixedClock(10)
        assert clock.now() == 10
        assert clock.advance(5) == 15
        assert clock.now() == 15

    def test_system_clock_is_integer(self):
        assert isinstance(SystemClock().now(), int)

    def test_height_clock_read_inside_the_write_transaction(self, vault):
        stale = Context(caller="P", clock=HeightClock(vault.store))
        vault.create_formation(ctx("Q", 1), **formation_fields())

        assert vault.create_formation(stale, **formation_fields()) == 2
        assert vault.get_formation(2).created_at == 2
        assert vault.get_registry_state().last_calibration == 2

    def test_height_clock_uses_given_view(self, memory_store):
        clock = HeightClock(memory_store)
        with memory_store.transaction() as txn:
            txn.put_state(RegistryState(0, 1, 7, False))
            assert clock.now(txn) == 8
