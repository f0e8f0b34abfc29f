#!/usr/bin/env python3
"""
Registry inspection utility - prints global counters and formation details.
"""

import argparse
import sys

from formation_vault.core.vault import get_vault
from formation_vault.util.logging import logger


def show_state(vault):
    state = vault.get_registry_state()
    print("📊 Registry state")
    print(f"   Sequence tracker:  {state.sequence_tracker}")
    print(f"   Total operations:  {state.total_operations}")
    print(f"   Last calibration:  {state.last_calibration}")
    print(f"   Flux indicator:    {state.flux_indicator}")


def show_formation(vault, formation_id):
    formation = vault.get_formation(formation_id)
    if formation is None:
        print(f"❌ No formation with id {formation_id}")
        return False

    print(f"📄 Formation {formation.id}")
    print(f"   Signature:  {formation.signature}")
    print(f"   Owner:      {formation.owner}")
    print(f"   Cluster:    {formation.cluster}")
    print(f"   Tags:       {', '.join(formation.resonance_tags)}")
    print(f"   Created at: {formation.created_at}  Updated at: {formation.updated_at}")

    history = vault.get_history(formation_id)
    if history:
        print(f"   History:    {history.formation_count} mutation(s), last by {history.last_editor} "
              f"via {history.origin_tag}")

    metrics = vault.get_metrics(formation_id)
    if metrics:
        print(f"   Metrics:    stability={metrics.stability} complexity={metrics.complexity} "
              f"pattern={metrics.pattern}")

    grants = vault.list_grants(formation_id)
    for grant in grants:
        print(f"   Grant:      {grant.entity} {grant.classification} "
              f"[{grant.granted_at}, {grant.expires_at}) can_modify={grant.can_modify}")
    return True


def main():
    parser = argparse.ArgumentParser(description="Inspect the formation registry")
    parser.add_argument("--formation", type=int, help="Show one formation with its history, metrics and grants")
    parser.add_argument("--owner", help="List formations created by this principal")
    parser.add_argument("--limit", type=int, default=20, help="Maximum formations to list (default: 20)")

    args = parser.parse_args()

    try:
        vault = get_vault()
        show_state(vault)

        if args.formation is not None:
            if not show_formation(vault, args.formation):
                sys.exit(1)
        elif args.owner:
            formations = vault.list_formations(owner=args.owner, limit=args.limit)
            print(f"📋 {len(formations)} formation(s) owned by {args.owner}")
            for formation in formations:
                print(f"   {formation.id}: {formation.signature} ({formation.cluster})")

    except Exception as e:
        print(f"❌ Registry inspection failed: {e}")
        logger.error(f"CLI registry inspection failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
