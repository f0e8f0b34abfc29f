"""
Formation vault operations.
Create, update, grant and the secondary-space create each run as one
all-or-nothing invocation: validation and ownership checks first, then
sequence/counter bookkeeping, record, history and metrics writes.
"""

from typing import List, Optional, Sequence, Union

from .errors import Anomaly, AnomalyError, AnomalyKind
from .profiles import SECONDARY_CREATE_PROFILE, MutationProfile, get_create_profile, get_update_profile
from .schema import AccessGrant, Context, ExtendedMetadata, Formation, FormationHistory, RegistryState
from .store import PRIMARY_SPACE, SECONDARY_SPACE, IFormationStore, IFormationTransaction
from .validation import (
    CLASSIFICATIONS,
    check_formation_fields,
    check_grant_fields,
    classification_rank,
    is_valid_classification,
)
from ..util.logging import audit_event, logger


class FormationVault:
    """Owner-gated formation registry over a transactional store."""

    def __init__(self, store: IFormationStore):
        self.store = store

    def _run(self, operation: str, ctx: Context, body, details: dict = None, payload: dict = None):
        """Run body(txn) in one transaction; anomalies roll back and come back as values.

        The logical time is fixed inside the transaction and may not fall
        behind the last committed calibration.
        """
        try:
            if not isinstance(ctx.caller, str) or not ctx.caller.strip():
                raise AnomalyError(AnomalyKind.MALFORMED_INPUT, "caller principal is required")
            with self.store.transaction() as txn:
                now = ctx.resolve_now(txn)
                last_calibration = txn.get_state().last_calibration
                if now < last_calibration:
                    raise AnomalyError(AnomalyKind.TEMPORAL_VIOLATION,
                                       f"time {now} is before last calibration {last_calibration}")
                result = body(txn)
        except AnomalyError as e:
            anomaly = e.anomaly
            logger.log_anomaly(operation, ctx.caller, anomaly.code, anomaly.kind.name, anomaly.message)
            audit_event(
                event_type=f"formation.{operation}.rejected",
                identifiers={"caller": ctx.caller, "code": anomaly.code, **(details or {})}
            )
            return anomaly

        audit_event(
            event_type=f"formation.{operation}",
            identifiers={"caller": ctx.caller, "now": ctx.now, **(details or {})},
            payload=payload
        )
        return result

    @staticmethod
    def _owned_formation(txn: IFormationTransaction, formation_id: int, caller: str) -> Formation:
        formation = txn.get_formation(PRIMARY_SPACE, formation_id)
        if formation is None:
            raise AnomalyError(AnomalyKind.FORMATION_NOT_FOUND, f"no formation with id {formation_id}")
        if formation.owner != caller:
            raise AnomalyError(AnomalyKind.DIMENSIONAL_BREACH, f"{caller} does not own formation {formation_id}")
        return formation

    @staticmethod
    def _record_formation(txn: IFormationTransaction, formation_id: int, caller: str,
                          profile: MutationProfile) -> None:
        """Write the history and metrics rows that accompany every registry mutation."""
        history = txn.get_history(formation_id)
        count = history.formation_count if history else 0
        txn.put_history(FormationHistory(
            formation_id=formation_id,
            formation_count=count + 1,
            last_editor=caller,
            origin_tag=profile.origin_tag
        ))
        txn.put_metrics(ExtendedMetadata(
            formation_id=formation_id,
            stability=profile.stability,
            complexity=profile.complexity,
            pattern=profile.pattern
        ))

    @staticmethod
    def _allocate(txn: IFormationTransaction, space: str, state: RegistryState) -> int:
        formation_id = state.sequence_tracker + 1
        if txn.get_formation(space, formation_id) is not None:
            raise AnomalyError(AnomalyKind.COLLISION, f"formation {formation_id} already exists in {space} space")
        state.sequence_tracker = formation_id
        return formation_id

    def create_formation(self, ctx: Context, signature: str, content_hash: str, metadata: str,
                         cluster: str, resonance_tags: Sequence[str],
                         profile: str = "standard") -> Union[int, Anomaly]:
        """Create a formation owned by the caller and return its id."""
        mutation = get_create_profile(profile)

        def body(txn):
            check_formation_fields(signature, content_hash, metadata, resonance_tags, cluster)
            state = txn.get_state()
            formation_id = self._allocate(txn, PRIMARY_SPACE, state)

            txn.put_formation(PRIMARY_SPACE, Formation(
                id=formation_id,
                signature=signature,
                owner=ctx.caller,
                content_hash=content_hash,
                metadata=metadata,
                cluster=cluster,
                resonance_tags=list(resonance_tags),
                created_at=ctx.now,
                updated_at=ctx.now
            ))
            self._record_formation(txn, formation_id, ctx.caller, mutation)

            state.record_operation(ctx.now, mutation.flux)
            txn.put_state(state)
            return formation_id

        result = self._run("create", ctx, body, {"profile": profile}, payload={
            "signature": signature, "content_hash": content_hash, "metadata": metadata,
            "cluster": cluster, "resonance_tags": resonance_tags
        })
        if isinstance(result, int):
            logger.log_formation_operation("create", result, ctx.caller, details={"profile": profile})
        return result

    def update_formation(self, ctx: Context, formation_id: int, signature: str, content_hash: str,
                         metadata: str, resonance_tags: Sequence[str],
                         profile: str = "standard") -> Union[bool, Anomaly]:
        """Replace the mutable fields of a formation the caller owns.

        Owner, cluster and created_at are never touched.
        """
        mutation = get_update_profile(profile)

        def body(txn):
            formation = self._owned_formation(txn, formation_id, ctx.caller)
            check_formation_fields(signature, content_hash, metadata, resonance_tags, require_cluster=False)

            formation.signature = signature
            formation.content_hash = content_hash
            formation.metadata = metadata
            formation.resonance_tags = list(resonance_tags)
            formation.updated_at = ctx.now
            txn.put_formation(PRIMARY_SPACE, formation)
            self._record_formation(txn, formation_id, ctx.caller, mutation)

            state = txn.get_state()
            state.record_operation(ctx.now, mutation.flux)
            txn.put_state(state)
            return True

        result = self._run("update", ctx, body, {"formation_id": formation_id, "profile": profile}, payload={
            "signature": signature, "content_hash": content_hash, "metadata": metadata,
            "resonance_tags": resonance_tags
        })
        if result is True:
            logger.log_formation_operation("update", formation_id, ctx.caller, details={"profile": profile})
        return result

    def create_secondary_formation(self, ctx: Context, signature: str, content_hash: str, metadata: str,
                                   cluster: str, resonance_tags: Sequence[str]) -> Union[int, Anomaly]:
        """Create a formation in the secondary space.

        Shares the id sequence with primary creation, so its history and
        metrics rows never collide with a primary record; primary reads
        never see the record itself.
        """
        def body(txn):
            check_formation_fields(signature, content_hash, metadata, resonance_tags, cluster)
            state = txn.get_state()
            formation_id = self._allocate(txn, SECONDARY_SPACE, state)

            txn.put_formation(SECONDARY_SPACE, Formation(
                id=formation_id,
                signature=signature,
                owner=ctx.caller,
                content_hash=content_hash,
                metadata=metadata,
                cluster=cluster,
                resonance_tags=list(resonance_tags),
                created_at=ctx.now,
                updated_at=ctx.now
            ))
            self._record_formation(txn, formation_id, ctx.caller, SECONDARY_CREATE_PROFILE)

            state.record_operation(ctx.now, SECONDARY_CREATE_PROFILE.flux)
            txn.put_state(state)
            return formation_id

        result = self._run("secondary_create", ctx, body)
        if isinstance(result, int):
            logger.log_formation_operation("secondary_create", result, ctx.caller)
        return result

    def grant_access(self, ctx: Context, formation_id: int, entity: str, classification: str,
                     duration: int, can_modify: bool) -> Union[bool, Anomaly]:
        """Issue or replace the grant for (formation, entity). Owner only."""
        def body(txn):
            self._owned_formation(txn, formation_id, ctx.caller)
            check_grant_fields(entity, ctx.caller, classification, duration)

            grant = AccessGrant(
                formation_id=formation_id,
                entity=entity,
                classification=classification,
                granted_at=ctx.now,
                expires_at=ctx.now + duration,
                can_modify=bool(can_modify)
            )
            txn.put_grant(grant)

            state = txn.get_state()
            state.record_operation(ctx.now)
            txn.put_state(state)
            return grant

        result = self._run("grant", ctx, body, {"formation_id": formation_id, "entity": entity})
        if isinstance(result, Anomaly):
            return result
        logger.log_grant_operation(formation_id, entity, classification, result.expires_at)
        return True

    # Read operations: no transaction, no counters

    def get_formation(self, formation_id: int) -> Optional[Formation]:
        with self.store.reader() as view:
            return view.get_formation(PRIMARY_SPACE, formation_id)

    def get_secondary_formation(self, formation_id: int) -> Optional[Formation]:
        with self.store.reader() as view:
            return view.get_formation(SECONDARY_SPACE, formation_id)

    def list_formations(self, owner: str = None, limit: int = 100) -> List[Formation]:
        with self.store.reader() as view:
            return view.list_formations(PRIMARY_SPACE, owner=owner, limit=limit)

    def get_history(self, formation_id: int) -> Optional[FormationHistory]:
        with self.store.reader() as view:
            return view.get_history(formation_id)

    def get_metrics(self, formation_id: int) -> Optional[ExtendedMetadata]:
        with self.store.reader() as view:
            return view.get_metrics(formation_id)

    def get_grant(self, formation_id: int, entity: str) -> Optional[AccessGrant]:
        with self.store.reader() as view:
            return view.get_grant(formation_id, entity)

    def list_grants(self, formation_id: int) -> List[AccessGrant]:
        with self.store.reader() as view:
            return view.list_grants(formation_id)

    def get_registry_state(self) -> RegistryState:
        with self.store.reader() as view:
            return view.get_state()

    def evaluate_clearance(self, formation_id: int, entity: str, required: str,
                           now: int) -> Union[bool, Anomaly]:
        """Report whether entity holds at least `required` on a formation at `now`.

        Read-only helper for collaborators that enforce grants; nothing in
        the registry itself is gated on it.
        """
        if not is_valid_classification(required):
            return Anomaly(AnomalyKind.AUTHORIZATION_FAILURE,
                           f"classification must be one of: {list(CLASSIFICATIONS)}")

        with self.store.reader() as view:
            formation = view.get_formation(PRIMARY_SPACE, formation_id)
            if formation is None:
                return Anomaly(AnomalyKind.FORMATION_NOT_FOUND, f"no formation with id {formation_id}")
            if formation.owner == entity:
                return True
            grant = view.get_grant(formation_id, entity)

        if grant is None:
            return Anomaly(AnomalyKind.INSUFFICIENT_CLEARANCE, f"{entity} holds no grant on {formation_id}")
        if grant.is_expired(now):
            return Anomaly(AnomalyKind.TEMPORAL_VIOLATION, f"grant for {entity} expired at {grant.expires_at}")
        if classification_rank(grant.classification) < classification_rank(required):
            return Anomaly(AnomalyKind.INSUFFICIENT_CLEARANCE,
                           f"{entity} holds {grant.classification}, {required} required")
        return True


_vault: Optional[FormationVault] = None


def get_vault() -> FormationVault:
    """Get the process-wide vault, building it from configuration on first use."""
    global _vault
    if _vault is None:
        from .config import get_store
        _vault = FormationVault(get_store())
    return _vault


def reset_vault(vault: Optional[FormationVault] = None) -> None:
    """Replace (or drop) the process-wide vault."""
    global _vault
    _vault = vault
