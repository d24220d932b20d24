# k8s.py
from __future__ import annotations

import copy
from enum import Enum

from store import INTENT

FINALIZER = "labels.nslabel.io/label-cleanup"


class FinalizerOp(Enum):
    ATTACH = "attach"
    DETACH = "detach"


def has_finalizer(obj: dict, token: str = FINALIZER) -> bool:
    return token in (((obj or {}).get("metadata", {}) or {}).get("finalizers") or [])


def apply_finalizer(store, intent: dict, op: FinalizerOp, token: str = FINALIZER) -> bool:
    """Attach or detach our token on a LabelIntent with one versioned update.

    Returns False (and writes nothing) when the token is already in the
    requested state. The caller's dict is updated in place with what the
    store returned so a later write carries the new resourceVersion.
    """
    body = copy.deepcopy(intent)
    meta = body.setdefault("metadata", {})
    fins = list(meta.get("finalizers") or [])

    if op is FinalizerOp.ATTACH:
        if token in fins:
            return False
        fins.append(token)
    elif op is FinalizerOp.DETACH:
        if token not in fins:
            return False
        fins = [f for f in fins if f != token]
    else:
        raise ValueError(f"unknown finalizer op {op!r}")

    meta["finalizers"] = fins
    updated = store.update(INTENT, body)
    intent.clear()
    intent.update(updated or body)
    return True
