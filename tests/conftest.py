from __future__ import annotations

import copy
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from intents.model import intent_manifest
from store import INTENT, NAMESPACE, Conflict, NotFound

Key = Tuple[str, Optional[str], str]  # (kind, namespace, name)

DELETED_AT = "2026-10-19T00:00:00Z"


class FakeStore:
    """In-memory stand-in for the apiserver.

    - every write bumps metadata.resourceVersion; update() with a stale one
      raises Conflict
    - deleting an object that carries finalizers only sets deletionTimestamp;
      it disappears once an update leaves it with no finalizers
    - `fail` queues an exception for the next matching (op, kind) call
    - `after_get` runs a callback once after the next get of a kind
    """

    def __init__(self, reverse_lists: bool = False):
        self.objects: Dict[Key, dict] = {}
        self.rv = 0
        self.reverse_lists = reverse_lists
        self.writes: List[Tuple[str, str, str]] = []
        self.failures: Dict[Tuple[str, str], List[Exception]] = {}
        self.hooks: Dict[str, List[Callable[[], None]]] = {}

    # ── test helpers ─────────────────────────────────────────
    def fail(self, op: str, kind: str, exc: Exception) -> None:
        self.failures.setdefault((op, kind), []).append(exc)

    def after_get(self, kind: str, fn: Callable[[], None]) -> None:
        self.hooks.setdefault(kind, []).append(fn)

    def add_namespace(self, name: str, labels: Optional[dict] = None) -> dict:
        return self.create(NAMESPACE, {"metadata": {"name": name, "labels": dict(labels or {})}})

    def add_intent(self, namespace: str, name: str, labels: dict) -> dict:
        return self.create(INTENT, intent_manifest(namespace, name, labels))

    def labels(self, namespace: str) -> dict:
        return dict(self.objects[self._key(NAMESPACE, None, namespace)]["metadata"].get("labels") or {})

    def raw(self, kind: str, namespace: Optional[str], name: str) -> Optional[dict]:
        return self.objects.get(self._key(kind, namespace, name))

    def namespace_writes(self) -> int:
        return sum(1 for op, kind, _ in self.writes if op == "update" and kind == NAMESPACE)

    def touch_namespace(self, name: str, **labels: str) -> None:
        """Write to a namespace behind the reconciler's back."""
        obj = self.objects[self._key(NAMESPACE, None, name)]
        obj["metadata"].setdefault("labels", {}).update(labels)
        obj["metadata"]["resourceVersion"] = self._next_rv()

    # ── store contract ───────────────────────────────────────
    @staticmethod
    def _key(kind: str, namespace: Optional[str], name: str) -> Key:
        return (kind, None if kind == NAMESPACE else namespace, name)

    def _next_rv(self) -> str:
        self.rv += 1
        return str(self.rv)

    def _maybe_fail(self, op: str, kind: str) -> None:
        queued = self.failures.get((op, kind))
        if queued:
            raise queued.pop(0)

    def _key_of(self, kind: str, body: dict) -> Key:
        meta = body.get("metadata", {})
        return self._key(kind, meta.get("namespace"), meta["name"])

    def get(self, kind: str, namespace: Optional[str], name: str) -> dict:
        self._maybe_fail("get", kind)
        obj = self.objects.get(self._key(kind, namespace, name))
        if obj is None:
            raise NotFound(f"{kind} {namespace}/{name}")
        out = copy.deepcopy(obj)
        for fn in self.hooks.pop(kind, []):
            fn()
        return out

    def list(self, kind: str, namespace: Optional[str] = None) -> List[dict]:
        self._maybe_fail("list", kind)
        items = [
            copy.deepcopy(o)
            for (k, ns, _), o in self.objects.items()
            if k == kind and (namespace is None or ns == namespace)
        ]
        return list(reversed(items)) if self.reverse_lists else items

    def create(self, kind: str, body: dict) -> dict:
        self._maybe_fail("create", kind)
        key = self._key_of(kind, body)
        if key in self.objects:
            raise Conflict(f"{key} already exists")
        obj = copy.deepcopy(body)
        obj["metadata"]["resourceVersion"] = self._next_rv()
        self.objects[key] = obj
        self.writes.append(("create", kind, key[2]))
        return copy.deepcopy(obj)

    def update(self, kind: str, body: dict) -> dict:
        self._maybe_fail("update", kind)
        key = self._key_of(kind, body)
        current = self.objects.get(key)
        if current is None:
            raise NotFound(f"{key}")
        if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise Conflict(f"{key} resourceVersion mismatch")
        obj = copy.deepcopy(body)
        obj["metadata"]["resourceVersion"] = self._next_rv()
        self.writes.append(("update", kind, key[2]))
        if obj["metadata"].get("deletionTimestamp") and not obj["metadata"].get("finalizers"):
            del self.objects[key]
        else:
            self.objects[key] = obj
        return copy.deepcopy(obj)

    def delete(self, kind: str, namespace: Optional[str], name: str) -> None:
        self._maybe_fail("delete", kind)
        key = self._key(kind, namespace, name)
        obj = self.objects.get(key)
        if obj is None:
            raise NotFound(f"{key}")
        self.writes.append(("delete", kind, name))
        if obj["metadata"].get("finalizers"):
            obj["metadata"].setdefault("deletionTimestamp", DELETED_AT)
            obj["metadata"]["resourceVersion"] = self._next_rv()
        else:
            del self.objects[key]


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
