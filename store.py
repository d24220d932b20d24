# store.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional

from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

INTENT = "LabelIntent"
NAMESPACE = "Namespace"


class StoreError(Exception):
    """Any failed store call. Every subclass is retryable at this layer."""


class NotFound(StoreError):
    pass


class Conflict(StoreError):
    """resourceVersion mismatch on update; re-read and recompute."""


class TransientStoreError(StoreError):
    pass


def translate_api_error(exc: ApiException) -> StoreError:
    status = getattr(exc, "status", None)
    reason = getattr(exc, "reason", None) or str(exc)
    if status == 404:
        return NotFound(reason)
    if status == 409:
        return Conflict(reason)
    return TransientStoreError(f"status={status} {reason}")


@contextmanager
def _translated() -> Iterator[None]:
    try:
        yield
    except ApiException as e:
        raise translate_api_error(e) from e
    except (HTTPError, OSError) as e:
        # apiserver unreachable, connection reset, timeouts
        raise TransientStoreError(str(e)) from e


def _meta(body: dict) -> dict:
    return (body or {}).get("metadata", {}) or {}


class KubeStore:
    """Generic get/list/create/update/delete over namespaces and label intents.

    Objects go in and come out as camelCase API dicts. update() is a full
    replace carrying metadata.resourceVersion, so the apiserver rejects it
    with 409 when someone else wrote in between.
    """

    def __init__(self, group: str, version: str, plural: str, api_client=None):
        self.api_client = api_client or client.ApiClient()
        self.core = client.CoreV1Api(self.api_client)
        self.custom = client.CustomObjectsApi(self.api_client)
        self.group = group
        self.version = version
        self.plural = plural

    def _crd(self) -> dict:
        return {"group": self.group, "version": self.version, "plural": self.plural}

    def _ns_dict(self, obj) -> dict:
        return self.api_client.sanitize_for_serialization(obj)

    def _check_kind(self, kind: str) -> None:
        if kind not in (INTENT, NAMESPACE):
            raise ValueError(f"unsupported kind {kind!r}")

    def get(self, kind: str, namespace: Optional[str], name: str) -> dict:
        self._check_kind(kind)
        with _translated():
            if kind == NAMESPACE:
                return self._ns_dict(self.core.read_namespace(name))
            return self.custom.get_namespaced_custom_object(
                namespace=namespace, name=name, **self._crd()
            )

    def list(self, kind: str, namespace: Optional[str] = None) -> List[dict]:
        self._check_kind(kind)
        with _translated():
            if kind == NAMESPACE:
                return [self._ns_dict(n) for n in self.core.list_namespace().items]
            if namespace:
                res = self.custom.list_namespaced_custom_object(namespace=namespace, **self._crd())
            else:
                res = self.custom.list_cluster_custom_object(**self._crd())
            return res.get("items", [])

    def create(self, kind: str, body: dict) -> dict:
        self._check_kind(kind)
        with _translated():
            if kind == NAMESPACE:
                return self._ns_dict(self.core.create_namespace(body=body))
            return self.custom.create_namespaced_custom_object(
                namespace=_meta(body).get("namespace"), body=body, **self._crd()
            )

    def update(self, kind: str, body: dict) -> dict:
        self._check_kind(kind)
        meta = _meta(body)
        with _translated():
            if kind == NAMESPACE:
                return self._ns_dict(self.core.replace_namespace(name=meta.get("name"), body=body))
            return self.custom.replace_namespaced_custom_object(
                namespace=meta.get("namespace"), name=meta.get("name"), body=body, **self._crd()
            )

    def delete(self, kind: str, namespace: Optional[str], name: str) -> None:
        self._check_kind(kind)
        with _translated():
            if kind == NAMESPACE:
                self.core.delete_namespace(name=name)
            else:
                self.custom.delete_namespaced_custom_object(
                    namespace=namespace, name=name, **self._crd()
                )
