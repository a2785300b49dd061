"""Application bootstrap for kubemirror.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config -> logging -> K8s client -> watcher -> REST

Shutdown stops components in reverse startup order.  Each component's stop
error is caught and logged independently so that one failing teardown does
not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from kubemirror.config import load_config
from kubemirror.models.config import KubeMirrorConfig
from kubemirror.models.objects import WatcherEvent
from kubemirror.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from kubemirror.collector.watcher import Watcher

_SHUTDOWN_GRACE_SECONDS = 15
_SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class MirrorApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe on an app that was never started or is already stopped.
    """

    def __init__(self, config: KubeMirrorConfig | None = None) -> None:
        self.config = config

        self._k8s_client: Any = None
        self._watcher: Watcher | None = None
        self._rest_server: Any = None

        # Background tasks that must be cancelled on shutdown
        self._background_tasks: list[asyncio.Task[Any]] = []

        self._running = False
        # set by stop(); a start() still in progress bails out at the next step
        self._stopping = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def watcher(self) -> Watcher | None:
        return self._watcher

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        if self.config is None:
            self.config = load_config()

        setup_logging(self.config.log.level, self.config.log.format)
        self._log = get_logger("app")
        self._log.info("kubemirror starting", version=_kubemirror_version())

        await self._start_k8s_client()
        if self._stopping:
            await self._stop_k8s_client()
            return
        await self._start_watcher()
        if self._stopping:
            self._log.info("kubemirror startup aborted")
            return
        await self._start_rest()

        self._running = True
        self._log.info("kubemirror started", kind=self._watcher.kind if self._watcher else "")

    async def _start_k8s_client(self) -> None:
        """Initialise kubernetes-asyncio from in-cluster config or kubeconfig."""
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            try:
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                self._log.info("k8s client configured from kubeconfig")

            self._k8s_client = k8s_client.ApiClient()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_watcher(self) -> None:
        """Build the watcher for the configured resource and wait for its first sync."""
        assert self._log is not None
        assert self.config is not None
        resource = self.config.resource
        self._log.debug("starting watcher", group=resource.group, plural=resource.plural)
        try:
            if not resource.group or not resource.plural:
                raise ValueError("KUBEMIRROR_GROUP and KUBEMIRROR_PLURAL must be set")

            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            from kubemirror.client import CustomObjectListClient, CustomObjectStreamSource
            from kubemirror.collector import Backoff, Watcher
            from kubemirror.filters import kind_filter

            api = k8s_client.CustomObjectsApi(self._k8s_client)
            watcher = Watcher(
                resource.kind or resource.plural,
                CustomObjectListClient(api, resource.group, resource.version, resource.plural, resource.namespace),
                CustomObjectStreamSource(
                    api,
                    resource.group,
                    resource.version,
                    resource.plural,
                    resource.namespace,
                    timeout_seconds=self.config.watch.timeout_seconds,
                ),
                kind_filter(resource.kind),
                backoff=Backoff(self.config.watch.backoff_initial, self.config.watch.backoff_max),
            )
            _log_lifecycle_events(watcher)
            # visible to stop() while the first sync is still retrying
            self._watcher = watcher
            await watcher.start()
            if not self._stopping:
                self._log.info("watcher started", objects=len(watcher.list()))
        except Exception as exc:
            raise _ComponentError("watcher", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server when enabled."""
        assert self._log is not None
        assert self.config is not None
        if not self.config.api.enabled:
            self._log.info("rest api disabled (api.enabled=false)")
            return
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from kubemirror.api import create_app

            fastapi_app = create_app(watcher=self._watcher, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop all components in reverse startup order.

        Also aborts a start() that is still waiting for the first sync.
        """
        self._stopping = True
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubemirror shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True
        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_component("watcher", self._watcher)
        await self._stop_k8s_client()

        log.info("kubemirror stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._k8s_client is None:
            return
        log = self._log or get_logger("app")
        client, self._k8s_client = self._k8s_client, None
        try:
            await client.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))


def _log_lifecycle_events(watcher: Watcher) -> None:
    """Log every change the watcher announces."""
    log = get_logger("app.events", kind=watcher.kind)

    def _name(value: Any) -> str:
        return str(value.get("name", "")) if isinstance(value, dict) else repr(value)

    watcher.on(WatcherEvent.NEW, lambda value: log.info("object_added", name=_name(value)))
    watcher.on(WatcherEvent.MOD, lambda value: log.info("object_modified", name=_name(value)))
    watcher.on(WatcherEvent.DEL, lambda value: log.info("object_deleted", name=_name(value)))
    watcher.on(WatcherEvent.SYNC, lambda: log.info("mirror_resynced", objects=len(watcher.list())))


def _kubemirror_version() -> str:
    from kubemirror import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(app: MirrorApp | None = None) -> None:
    """Create the app, register OS signals, run until shutdown is requested.

    A signal schedules ``app.stop()`` right away, so it also interrupts a
    startup that is still retrying the first sync against an unreachable API
    server.
    """
    app = app or MirrorApp()
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    shutdown_tasks: list[asyncio.Task[None]] = []

    def _request_shutdown() -> None:
        if stop_requested.is_set():
            return
        stop_requested.set()
        shutdown_tasks.append(asyncio.create_task(app.stop(), name="shutdown"))

    for sig in _SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        await stop_requested.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        for sig in _SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)
        if shutdown_tasks:
            await asyncio.gather(*shutdown_tasks)
        if app.running:
            await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
