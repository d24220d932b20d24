# app.py
from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import Iterator, List, Optional

from kubernetes import config, watch
from kubernetes.client.exceptions import ApiException
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from urllib3.exceptions import HTTPError

from config import Settings, load_settings
from intents.model import IntentKey, intent_key
from reconcile import Reconciler, ReconcileResult
from store import INTENT, Conflict, KubeStore, StoreError, TransientStoreError

log = logging.getLogger("controller")


class Shutdown:
    """Stop flag plus the watch currently streaming, so a signal can cut it short."""

    def __init__(self) -> None:
        self.event = threading.Event()
        self.watcher: Optional[watch.Watch] = None

    def request(self, *_args) -> None:
        self.event.set()
        active = self.watcher
        if active is not None:
            active.stop()

    def is_set(self) -> bool:
        return self.event.is_set()

    def wait(self, seconds: float) -> bool:
        return self.event.wait(seconds)


def load_kube() -> None:
    try:
        config.load_incluster_config()
        log.info("using in-cluster config")
    except config.ConfigException:
        config.load_kube_config()
        log.info("using kubeconfig (local)")


def reconcile_with_retry(reconciler: Reconciler, key: IntentKey, settings: Settings) -> ReconcileResult:
    """Conflicts and transient store errors restart the key from a fresh read."""
    retrying = Retrying(
        retry=retry_if_exception_type((Conflict, TransientStoreError)),
        stop=stop_after_attempt(settings.retry_attempts),
        wait=wait_exponential(multiplier=0.5, max=settings.retry_max_wait),
        reraise=True,
    )
    return retrying(reconciler.reconcile, key)


def run_key(reconciler: Reconciler, key: IntentKey, settings: Settings) -> bool:
    try:
        res = reconcile_with_retry(reconciler, key, settings)
    except StoreError as e:
        # left for the next resync
        log.warning("reconcile failed ns=%s intent=%s: %s: %s", key[0], key[1], type(e).__name__, e)
        return False
    except Exception:
        # one broken key must not take the loop down
        log.exception("reconcile crashed ns=%s intent=%s", key[0], key[1])
        return False
    if res.action != "unchanged":
        log.debug("ns=%s intent=%s action=%s", res.namespace, res.name, res.action)
    return True


def list_keys(store: KubeStore, settings: Settings) -> List[IntentKey]:
    return sorted({intent_key(i) for i in store.list(INTENT, settings.watch_namespace)})


def resync(reconciler: Reconciler, store: KubeStore, settings: Settings) -> int:
    """Reconcile every known intent once. Returns the number of failed keys."""
    keys = list_keys(store, settings)
    failed = sum(1 for key in keys if not run_key(reconciler, key, settings))
    log.info("resync keys=%d failed=%d", len(keys), failed)
    return failed


def watch_keys(store: KubeStore, settings: Settings, shutdown: Shutdown) -> Iterator[IntentKey]:
    """Yield one key per LabelIntent event until the watch window closes."""
    w = watch.Watch()
    shutdown.watcher = w
    crd = {"group": settings.group, "version": settings.version, "plural": settings.plural}
    try:
        if settings.watch_namespace:
            stream = w.stream(
                store.custom.list_namespaced_custom_object,
                namespace=settings.watch_namespace,
                timeout_seconds=settings.resync_seconds,
                **crd,
            )
        else:
            stream = w.stream(
                store.custom.list_cluster_custom_object,
                timeout_seconds=settings.resync_seconds,
                **crd,
            )
        for event in stream:
            if shutdown.is_set():
                w.stop()
                return
            obj = event.get("object")
            if not isinstance(obj, dict):
                continue
            log.debug("event %s %s", event.get("type"), intent_key(obj))
            yield intent_key(obj)
    finally:
        shutdown.watcher = None


def main() -> int:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="[%(name)s] %(message)s", stream=sys.stdout)

    load_kube()
    store = KubeStore(settings.group, settings.version, settings.plural)
    reconciler = Reconciler(store, finalizer=settings.finalizer, logger=logging.getLogger("reconciler"))

    log.info(
        "watching %s.%s/%s namespace=%s finalizer=%s",
        settings.plural, settings.group, settings.version,
        settings.watch_namespace or "*", settings.finalizer,
    )

    if settings.run_once:
        try:
            return 1 if resync(reconciler, store, settings) else 0
        except StoreError as e:
            log.error("resync failed: %s", e)
            return 1

    shutdown = Shutdown()
    signal.signal(signal.SIGTERM, shutdown.request)

    try:
        while not shutdown.is_set():
            try:
                for key in watch_keys(store, settings, shutdown):
                    run_key(reconciler, key, settings)
            except (ApiException, HTTPError) as e:
                # e.g. 410 Gone on an expired resourceVersion; the resync covers the gap
                log.warning("watch interrupted: %s", e)
                shutdown.wait(1)

            if shutdown.is_set():
                break
            try:
                resync(reconciler, store, settings)
            except StoreError as e:
                log.warning("resync failed: %s", e)
                shutdown.wait(1)
    except KeyboardInterrupt:
        pass

    log.info("shutting down")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
