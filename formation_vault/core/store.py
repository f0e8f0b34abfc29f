"""
Formation storage backends.
The registry only ever reads and writes values by key; every invocation
runs inside one transaction that is committed or discarded as a unit.
"""

import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from .db import get_db, health_check, init_db
from .schema import AccessGrant, ExtendedMetadata, Formation, FormationHistory, RegistryState
from ..util.logging import logger

PRIMARY_SPACE = "primary"
SECONDARY_SPACE = "secondary"
SPACES = (PRIMARY_SPACE, SECONDARY_SPACE)


class IFormationTransaction(ABC):
    """Key-value view of the store inside one invocation."""

    @abstractmethod
    def get_formation(self, space: str, formation_id: int) -> Optional[Formation]:
        pass

    @abstractmethod
    def put_formation(self, space: str, formation: Formation) -> None:
        pass

    @abstractmethod
    def list_formations(self, space: str, owner: str = None, limit: int = 100) -> List[Formation]:
        pass

    @abstractmethod
    def get_history(self, formation_id: int) -> Optional[FormationHistory]:
        pass

    @abstractmethod
    def put_history(self, history: FormationHistory) -> None:
        pass

    @abstractmethod
    def get_metrics(self, formation_id: int) -> Optional[ExtendedMetadata]:
        pass

    @abstractmethod
    def put_metrics(self, metrics: ExtendedMetadata) -> None:
        pass

    @abstractmethod
    def get_grant(self, formation_id: int, entity: str) -> Optional[AccessGrant]:
        pass

    @abstractmethod
    def put_grant(self, grant: AccessGrant) -> None:
        pass

    @abstractmethod
    def list_grants(self, formation_id: int) -> List[AccessGrant]:
        pass

    @abstractmethod
    def get_state(self) -> RegistryState:
        pass

    @abstractmethod
    def put_state(self, state: RegistryState) -> None:
        pass


class IFormationStore(ABC):
    """Abstract interface for formation storage."""

    provider = "abstract"

    @abstractmethod
    def transaction(self) -> Iterator[IFormationTransaction]:
        """Context manager: commit on normal exit, discard every write on exception."""
        pass

    @abstractmethod
    def reader(self) -> Iterator[IFormationTransaction]:
        """Context manager for read-only access."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        pass


def _check_space(space: str) -> None:
    if space not in SPACES:
        raise ValueError(f"Unknown record space: {space}")


_MISSING = object()


class _MemoryTables:
    def __init__(self):
        self.formations: Dict[Tuple[str, int], Formation] = {}
        self.history: Dict[int, FormationHistory] = {}
        self.metrics: Dict[int, ExtendedMetadata] = {}
        self.grants: Dict[Tuple[int, str], AccessGrant] = {}
        self.meta: Dict[str, RegistryState] = {"state": RegistryState()}


class SimpleInMemoryFormationStore(IFormationStore, IFormationTransaction):
    """In-memory store; a failed transaction replays its undo journal.

    Only keys written inside the transaction are journaled, so rollback
    cost follows the size of the call, not of the store. Values are copied
    on the way in and out, so nothing a caller holds can change stored
    state without an explicit put.
    """

    provider = "memory"

    def __init__(self):
        self._tables = _MemoryTables()
        self._lock = threading.RLock()
        self._journal: Optional[List[Tuple[dict, object, object]]] = None

    @contextmanager
    def transaction(self):
        with self._lock:
            self._journal = []
            try:
                yield self
            except BaseException:
                self._undo()
                logger.log_store_operation("rollback", self.provider, "success")
                raise
            finally:
                self._journal = None

    def _undo(self) -> None:
        # Newest first, so a key written twice ends at its pre-transaction value
        for table, key, previous in reversed(self._journal):
            if previous is _MISSING:
                table.pop(key, None)
            else:
                table[key] = previous

    def _write(self, table: dict, key, value) -> None:
        if self._journal is not None:
            self._journal.append((table, key, table.get(key, _MISSING)))
        table[key] = copy.deepcopy(value)

    @contextmanager
    def reader(self):
        with self._lock:
            yield self

    def health_check(self) -> bool:
        return True

    def get_formation(self, space, formation_id):
        _check_space(space)
        return copy.deepcopy(self._tables.formations.get((space, formation_id)))

    def put_formation(self, space, formation):
        _check_space(space)
        self._write(self._tables.formations, (space, formation.id), formation)

    def list_formations(self, space, owner=None, limit=100):
        _check_space(space)
        records = [
            f for (s, _), f in sorted(self._tables.formations.items(), key=lambda item: item[0][1])
            if s == space and (owner is None or f.owner == owner)
        ]
        return copy.deepcopy(records[:limit])

    def get_history(self, formation_id):
        return copy.deepcopy(self._tables.history.get(formation_id))

    def put_history(self, history):
        self._write(self._tables.history, history.formation_id, history)

    def get_metrics(self, formation_id):
        return copy.deepcopy(self._tables.metrics.get(formation_id))

    def put_metrics(self, metrics):
        self._write(self._tables.metrics, metrics.formation_id, metrics)

    def get_grant(self, formation_id, entity):
        return copy.deepcopy(self._tables.grants.get((formation_id, entity)))

    def put_grant(self, grant):
        self._write(self._tables.grants, (grant.formation_id, grant.entity), grant)

    def list_grants(self, formation_id):
        grants = [g for (fid, _), g in self._tables.grants.items() if fid == formation_id]
        return copy.deepcopy(sorted(grants, key=lambda g: g.entity))

    def get_state(self):
        return copy.deepcopy(self._tables.meta["state"])

    def put_state(self, state):
        self._write(self._tables.meta, "state", state)


class SQLiteTransaction(IFormationTransaction):
    """Key-value view over one open SQLite connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @staticmethod
    def _row_to_formation(row) -> Formation:
        (formation_id, signature, owner, content_hash, metadata, cluster,
         resonance_tags, created_at, updated_at) = row
        return Formation(
            id=formation_id,
            signature=signature,
            owner=owner,
            content_hash=content_hash,
            metadata=metadata,
            cluster=cluster,
            resonance_tags=json.loads(resonance_tags),
            created_at=created_at,
            updated_at=updated_at
        )

    def get_formation(self, space, formation_id):
        _check_space(space)
        row = self.conn.execute(
            "SELECT id, signature, owner, content_hash, metadata, cluster, resonance_tags, created_at, updated_at "
            "FROM formations WHERE space = ? AND id = ?",
            (space, formation_id)
        ).fetchone()
        return self._row_to_formation(row) if row else None

    def put_formation(self, space, formation):
        _check_space(space)
        self.conn.execute(
            "INSERT OR REPLACE INTO formations "
            "(space, id, signature, owner, content_hash, metadata, cluster, resonance_tags, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (space, formation.id, formation.signature, formation.owner, formation.content_hash,
             formation.metadata, formation.cluster, json.dumps(list(formation.resonance_tags)),
             formation.created_at, formation.updated_at)
        )

    def list_formations(self, space, owner=None, limit=100):
        _check_space(space)
        query = ("SELECT id, signature, owner, content_hash, metadata, cluster, resonance_tags, created_at, updated_at "
                 "FROM formations WHERE space = ?")
        params = [space]
        if owner is not None:
            query += " AND owner = ?"
            params.append(owner)
        query += " ORDER BY id LIMIT ?"
        params.append(limit)

        return [self._row_to_formation(row) for row in self.conn.execute(query, params).fetchall()]

    def get_history(self, formation_id):
        row = self.conn.execute(
            "SELECT formation_id, formation_count, last_editor, origin_tag FROM formation_history WHERE formation_id = ?",
            (formation_id,)
        ).fetchone()
        return FormationHistory(*row) if row else None

    def put_history(self, history):
        self.conn.execute(
            "INSERT OR REPLACE INTO formation_history (formation_id, formation_count, last_editor, origin_tag) "
            "VALUES (?, ?, ?, ?)",
            (history.formation_id, history.formation_count, history.last_editor, history.origin_tag)
        )

    def get_metrics(self, formation_id):
        row = self.conn.execute(
            "SELECT formation_id, stability, complexity, pattern FROM formation_metrics WHERE formation_id = ?",
            (formation_id,)
        ).fetchone()
        return ExtendedMetadata(*row) if row else None

    def put_metrics(self, metrics):
        self.conn.execute(
            "INSERT OR REPLACE INTO formation_metrics (formation_id, stability, complexity, pattern) "
            "VALUES (?, ?, ?, ?)",
            (metrics.formation_id, metrics.stability, metrics.complexity, metrics.pattern)
        )

    @staticmethod
    def _row_to_grant(row) -> AccessGrant:
        formation_id, entity, classification, granted_at, expires_at, can_modify = row
        return AccessGrant(formation_id, entity, classification, granted_at, expires_at, bool(can_modify))

    def get_grant(self, formation_id, entity):
        row = self.conn.execute(
            "SELECT formation_id, entity, classification, granted_at, expires_at, can_modify "
            "FROM access_grants WHERE formation_id = ? AND entity = ?",
            (formation_id, entity)
        ).fetchone()
        return self._row_to_grant(row) if row else None

    def put_grant(self, grant):
        self.conn.execute(
            "INSERT OR REPLACE INTO access_grants "
            "(formation_id, entity, classification, granted_at, expires_at, can_modify) VALUES (?, ?, ?, ?, ?, ?)",
            (grant.formation_id, grant.entity, grant.classification, grant.granted_at,
             grant.expires_at, grant.can_modify)
        )

    def list_grants(self, formation_id):
        rows = self.conn.execute(
            "SELECT formation_id, entity, classification, granted_at, expires_at, can_modify "
            "FROM access_grants WHERE formation_id = ? ORDER BY entity",
            (formation_id,)
        ).fetchall()
        return [self._row_to_grant(row) for row in rows]

    def get_state(self):
        row = self.conn.execute(
            "SELECT sequence_tracker, total_operations, last_calibration, flux_indicator FROM registry_state WHERE id = 1"
        ).fetchone()
        if not row:
            return RegistryState()
        sequence_tracker, total_operations, last_calibration, flux_indicator = row
        return RegistryState(sequence_tracker, total_operations, last_calibration, bool(flux_indicator))

    def put_state(self, state):
        self.conn.execute(
            "INSERT OR REPLACE INTO registry_state "
            "(id, sequence_tracker, total_operations, last_calibration, flux_indicator) VALUES (1, ?, ?, ?, ?)",
            (state.sequence_tracker, state.total_operations, state.last_calibration, state.flux_indicator)
        )


class SQLiteFormationStore(IFormationStore):
    """SQLite-backed store; one BEGIN IMMEDIATE transaction per invocation."""

    provider = "sqlite"

    def __init__(self, db_path: str = None):
        self.db_path = db_path
        self._lock = threading.RLock()
        init_db(db_path)
        logger.log_store_operation("init", self.provider, details={"db_path": db_path})

    @contextmanager
    def transaction(self):
        with self._lock, get_db(self.db_path) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield SQLiteTransaction(conn)
            except BaseException:
                conn.execute("ROLLBACK")
                logger.log_store_operation("rollback", self.provider, "success")
                raise
            conn.execute("COMMIT")

    @contextmanager
    def reader(self):
        with get_db(self.db_path) as conn:
            yield SQLiteTransaction(conn)

    def health_check(self) -> bool:
        return health_check(self.db_path)
