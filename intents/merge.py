# intents/merge.py
from __future__ import annotations

from typing import Dict, Iterable, List

from intents.labels import extract_protected, intent_labels, namespace_labels
from intents.model import IntentKey, intent_key, is_terminating


class SyncPlan(dict):
    """What a full sync would do to one namespace; json-serializable."""


def _live(intents: Iterable[dict]) -> List[dict]:
    # Fold in (namespace, name) order: on a key collision between two live
    # intents the greatest name wins, whatever order the store listed them in.
    return sorted((i for i in intents if not is_terminating(i)), key=intent_key)


def merge_labels(protected: Dict[str, str], union: Dict[str, str]) -> Dict[str, str]:
    """Protected labels overlaid with intent labels; an intent redeclaring a
    protected key wins."""
    merged = dict(protected)
    merged.update(union)
    return merged


def intent_union(intents: Iterable[dict]) -> Dict[str, str]:
    union: Dict[str, str] = {}
    for intent in _live(intents):
        union.update(intent_labels(intent))
    return union


def desired_labels(ns: dict, intents: Iterable[dict]) -> Dict[str, str]:
    return merge_labels(extract_protected(ns), intent_union(intents))


def labels_still_claimed(intents: Iterable[dict], excluding: IntentKey) -> Dict[str, str]:
    """Labels declared by every live intent other than `excluding`.

    Matched by identity, so a sibling with identical content still counts
    as another owner.
    """
    return intent_union(i for i in intents if intent_key(i) != tuple(excluding))


def retract_labels(
    current: Dict[str, str],
    retracted: Dict[str, str],
    claimed: Dict[str, str],
) -> Dict[str, str]:
    """
    Remove each retracted (key, value) pair from `current`.

    A pair is only removed when the namespace still carries that exact value
    and no other owner claims the same value.
    """
    out = dict(current)
    for k, v in retracted.items():
        if out.get(k) != v:
            continue
        if claimed.get(k) == v:
            continue
        del out[k]
    return out


def plan_sync(ns: dict, intents: Iterable[dict]) -> SyncPlan:
    """Compute what a full sync *would* do, without writing anything."""
    current = namespace_labels(ns)
    desired = desired_labels(ns, intents)

    add = sorted(k for k in desired if k not in current)
    change = sorted(k for k in desired if k in current and current[k] != desired[k])
    drop = sorted(k for k in current if k not in desired)

    return SyncPlan(
        namespace=((ns or {}).get("metadata", {}) or {}).get("name", ""),
        counts={"add": len(add), "change": len(change), "drop": len(drop)},
        add=add,
        change=change,
        drop=drop,
        current=current,
        desired=desired,
    )


def print_plan(plan: SyncPlan) -> None:
    ns = plan.get("namespace")
    counts = plan.get("counts", {})
    print(f"[plan] namespace={ns} add={counts.get('add',0)} change={counts.get('change',0)} drop={counts.get('drop',0)}")
    current = plan.get("current", {}) or {}
    desired = plan.get("desired", {}) or {}
    for k in ("add", "change", "drop"):
        items = plan.get(k, []) or []
        if not items:
            continue
        print(f"[plan] {k}:")
        for key in items:
            if k == "add":
                print(f"  + {key}={desired[key]}")
            elif k == "change":
                print(f"  ~ {key}={current[key]} -> {desired[key]}")
            else:
                print(f"  - {key}={current[key]}")
