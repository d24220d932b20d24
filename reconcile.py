# reconcile.py
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from intents.labels import intent_labels, namespace_labels
from intents.merge import labels_still_claimed, plan_sync, retract_labels
from intents.model import IntentKey, intent_key, is_terminating
from k8s import FINALIZER, FinalizerOp, apply_finalizer, has_finalizer
from store import INTENT, NAMESPACE, NotFound

Action = Literal["noop", "synced", "unchanged", "retracted", "released", "orphan-deleted"]


@dataclass
class ReconcileResult:
    namespace: str
    name: str
    action: Action
    labels: Optional[Dict[str, str]] = field(default=None)


def _with_self(siblings: List[dict], intent: dict) -> List[dict]:
    # The listing may predate our own finalizer write; use the copy we hold.
    key = intent_key(intent)
    return [s for s in siblings if intent_key(s) != key] + [intent]


class Reconciler:
    """Drives one LabelIntent towards its namespace, one key per call.

    Store errors other than the NotFound cases handled here propagate to the
    caller, which is expected to retry the key from scratch.
    """

    def __init__(self, store, finalizer: str = FINALIZER, logger: Optional[logging.Logger] = None):
        self.store = store
        self.finalizer = finalizer
        self.log = logger or logging.getLogger("reconciler")

    def reconcile(self, key: IntentKey) -> ReconcileResult:
        namespace, name = key
        try:
            intent = self.store.get(INTENT, namespace, name)
        except NotFound:
            self.log.debug("gone ns=%s intent=%s", namespace, name)
            return ReconcileResult(namespace, name, "noop")

        if is_terminating(intent):
            return self._finalize(intent)

        # read the namespace first so an orphan never gets a finalizer
        try:
            ns = self.store.get(NAMESPACE, None, namespace)
        except NotFound:
            return self._delete_orphan(intent)

        try:
            if apply_finalizer(self.store, intent, FinalizerOp.ATTACH, self.finalizer):
                self.log.info("finalizer attached ns=%s intent=%s", namespace, name)
        except NotFound:
            return ReconcileResult(namespace, name, "noop")

        return self._sync(intent, ns)

    # ── full sync ────────────────────────────────────────────
    def _sync(self, intent: dict, ns: dict) -> ReconcileResult:
        namespace, name = intent_key(intent)
        siblings = _with_self(self.store.list(INTENT, namespace), intent)
        plan = plan_sync(ns, siblings)
        desired = plan["desired"]

        if desired == namespace_labels(ns):
            self.log.debug("unchanged ns=%s intent=%s", namespace, name)
            return ReconcileResult(namespace, name, "unchanged", labels=desired)

        body = copy.deepcopy(ns)
        body.setdefault("metadata", {})["labels"] = desired
        self.store.update(NAMESPACE, body)

        counts = plan["counts"]
        self.log.info(
            "synced ns=%s intent=%s add=%d change=%d drop=%d",
            namespace, name, counts["add"], counts["change"], counts["drop"],
        )
        self._log_labels(namespace, desired)
        return ReconcileResult(namespace, name, "synced", labels=desired)

    def _delete_orphan(self, intent: dict) -> ReconcileResult:
        namespace, name = intent_key(intent)
        self.log.warning("namespace missing, deleting orphan intent ns=%s intent=%s", namespace, name)
        try:
            # writes only if an earlier reconcile attached the token
            apply_finalizer(self.store, intent, FinalizerOp.DETACH, self.finalizer)
            self.store.delete(INTENT, namespace, name)
        except NotFound:
            pass
        return ReconcileResult(namespace, name, "orphan-deleted")

    # ── retraction ───────────────────────────────────────────
    def _finalize(self, intent: dict) -> ReconcileResult:
        namespace, name = intent_key(intent)
        if not has_finalizer(intent, self.finalizer):
            self.log.debug("terminating without finalizer ns=%s intent=%s", namespace, name)
            return ReconcileResult(namespace, name, "noop")

        try:
            ns = self.store.get(NAMESPACE, None, namespace)
        except NotFound:
            self._release(intent)
            self.log.info("released ns=%s intent=%s (namespace gone)", namespace, name)
            return ReconcileResult(namespace, name, "released")

        siblings = self.store.list(INTENT, namespace)
        claimed = labels_still_claimed(siblings, intent_key(intent))
        current = namespace_labels(ns)
        remaining = retract_labels(current, intent_labels(intent), claimed)

        # The namespace write must land before the finalizer goes; if it
        # raises, the token stays and the next attempt retracts again.
        if remaining != current:
            body = copy.deepcopy(ns)
            body.setdefault("metadata", {})["labels"] = remaining
            self.store.update(NAMESPACE, body)
            self.log.info(
                "retracted ns=%s intent=%s removed=%d", namespace, name, len(current) - len(remaining)
            )
            self._log_labels(namespace, remaining)

        self._release(intent)
        return ReconcileResult(namespace, name, "retracted", labels=remaining)

    def _release(self, intent: dict) -> None:
        try:
            apply_finalizer(self.store, intent, FinalizerOp.DETACH, self.finalizer)
        except NotFound:
            # object already gone; nothing left to unblock
            pass

    def _log_labels(self, namespace: str, labels: Dict[str, str]) -> None:
        if not self.log.isEnabledFor(logging.DEBUG):
            return
        for k in sorted(labels):
            self.log.debug("  %s: %s=%s", namespace, k, labels[k])
