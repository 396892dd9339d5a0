"""Remote model connection lifecycle for the Fluxgate gateway.

This module provides :class:`ClientManager`, the single point of control for
connecting to the hosted text-to-image Space and invoking its prediction
endpoint.  One manager owns at most one client handle, shared by every
request in the process.

Key Responsibilities
--------------------
- **Lazy connection** — the Gradio client is only created when the first
  prediction is requested.
- **Single-flight connect** — an :class:`asyncio.Lock` guards connection
  acquisition, so requests that arrive while no handle exists wait for one
  connect attempt instead of each starting their own.
- **Reset on failure** — :meth:`reset` drops the handle after a failed
  prediction so the next request reconnects.  A handle that another request
  has already replaced is left alone.
- **Bounded waiting** — one deadline, ``config.request_timeout`` seconds from
  :meth:`deadline`, covers waiting for the lock, connecting and predicting.
  Worker threads running blocking calls are abandoned, not cancelled, when
  it passes.

State Machine
-------------
::

    UNINITIALIZED --get_client()--> CONNECTING --ok--> READY
         ^                              |                 |
         +---- connect error/timeout ---+                 |
         +------------------ reset() ---------------------+

Usage
-----
::

    from fluxgate.core.config import config
    from fluxgate.core.client_manager import ClientManager

    mgr = ClientManager(config)
    deadline = mgr.deadline()
    client = await mgr.get_client(deadline)
    image_data, seed = await mgr.predict(client, {"prompt": "a red fox", ...}, deadline)
    await mgr.unload()
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from fluxgate.core.config import GatewayConfig
from fluxgate.core.errors import UpstreamError

logger = logging.getLogger(__name__)


class ConnectionState(str, enum.Enum):
    """Lifecycle state of the shared client handle."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"


def gradio_connect(config: GatewayConfig) -> Any:
    """Open a Gradio client for ``config.model_id``.

    Files are not downloaded: the Space's own ``FileData`` (``path``,
    ``url``, ``meta``) is what the gateway relays to callers.

    Args:
        config: Gateway configuration supplying the Space id and token.

    Returns:
        A connected :class:`gradio_client.Client`.
    """
    from gradio_client import Client

    hf_token = config.hf_token.get_secret_value() if config.hf_token else None
    return Client(config.model_id, hf_token=hf_token, download_files=False)


class ClientManager:
    """Owns the process-wide connection to the hosted model.

    Attributes:
        _config (GatewayConfig):
            Gateway configuration: model id, endpoint name, timeout.
        _connect:
            Factory called with the config to open a new client.  Blocking;
            it runs in a worker thread.
        _client:
            The connected client, or ``None`` when not connected.
        _state (ConnectionState):
            Current lifecycle state.
    """

    def __init__(
        self,
        config: GatewayConfig,
        connect: Callable[[GatewayConfig], Any] | None = None,
    ) -> None:
        self._config = config
        self._connect = connect or gradio_connect

        self._client: Any = None
        self._state = ConnectionState.UNINITIALIZED
        self._lock = asyncio.Lock()

    # -- Public interface ---------------------------------------------------

    def deadline(self) -> float:
        """Event-loop time by which a request started now must finish."""
        return asyncio.get_running_loop().time() + self._config.request_timeout

    async def get_client(self, deadline: float | None = None) -> Any:
        """Return the shared client, connecting first if necessary.

        Args:
            deadline: Event-loop time from :meth:`deadline`.  Defaults to a
                fresh ``request_timeout`` from now.

        Raises:
            UpstreamError: If the deadline passes while waiting for the lock
                or the connect.
            Exception: Whatever the connect factory raised.  The manager is
                back in ``UNINITIALIZED`` so the next call tries again.
        """
        client = self._client
        if client is not None:
            return client

        try:
            return await asyncio.wait_for(self._connect_once(), self._remaining(deadline))
        except asyncio.TimeoutError as exc:
            raise self._timeout_error() from exc

    async def predict(
        self,
        client: Any,
        params: Mapping[str, Any],
        deadline: float | None = None,
    ) -> tuple[Any, Any]:
        """Run one prediction on the remote endpoint.

        The manager does not reset itself here; the caller decides, passing
        the same ``client`` to :meth:`reset` so a newer handle survives.

        Args:
            client: Handle obtained from :meth:`get_client`.
            params: Keyword arguments for the remote endpoint (``prompt``,
                ``seed``, ``randomize_seed``, ``width``, ``height``,
                ``num_inference_steps``).
            deadline: Event-loop time from :meth:`deadline`.  Defaults to a
                fresh ``request_timeout`` from now.

        Returns:
            ``(image_data, seed)`` exactly as the remote endpoint returned
            them.

        Raises:
            UpstreamError: On timeout or a result that is not a two-element
                sequence.
            Exception: Any error raised by the remote call.
        """
        logger.info(
            "Predicting on '%s%s' (%sx%s, %s steps, seed=%s).",
            self._config.model_id,
            self._config.api_name,
            params.get("width"),
            params.get("height"),
            params.get("num_inference_steps"),
            params.get("seed"),
        )

        def _invoke() -> Any:
            return client.predict(api_name=self._config.api_name, **params)

        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(_invoke), self._remaining(deadline)
            )
        except asyncio.TimeoutError as exc:
            raise self._timeout_error() from exc
        return _unpack_result(result)

    def reset(self, client: Any = None) -> None:
        """Discard the cached handle so the next request reconnects.

        Args:
            client: The handle that failed.  When given, the cache is only
                cleared if it still holds this handle.  ``None`` clears
                whatever is cached.
        """
        if client is not None and client is not self._client:
            logger.debug("Failed handle already replaced; keeping current client.")
            return
        if self._client is not None:
            logger.info("Resetting connection to '%s'.", self._config.model_id)
        self._client = None
        if self._state is ConnectionState.READY:
            self._state = ConnectionState.UNINITIALIZED

    async def unload(self) -> None:
        """Drop the client on shutdown.  Safe to call when not connected."""
        async with self._lock:
            if self._client is None:
                return
            logger.info("Unloading client for '%s'.", self._config.model_id)
            self._client = None
            self._state = ConnectionState.UNINITIALIZED

    # -- Properties ---------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        """Whether a client handle is currently cached."""
        return self._client is not None

    # -- Internals ----------------------------------------------------------

    async def _connect_once(self) -> Any:
        async with self._lock:
            # Another request may have connected while we waited.
            if self._client is not None:
                return self._client

            self._state = ConnectionState.CONNECTING
            logger.info("Connecting to '%s'.", self._config.model_id)
            client = None
            try:
                client = await asyncio.to_thread(self._connect, self._config)
            finally:
                # Covers connect errors and a timeout cancelling the wait.
                if client is None:
                    self._state = ConnectionState.UNINITIALIZED
                    logger.warning("Connection to '%s' did not complete.", self._config.model_id)

            self._client = client
            self._state = ConnectionState.READY
            logger.info("Connected to '%s'.", self._config.model_id)
            return client

    def _remaining(self, deadline: float | None) -> float:
        if deadline is None:
            return self._config.request_timeout
        return max(deadline - asyncio.get_running_loop().time(), 0.0)

    def _timeout_error(self) -> UpstreamError:
        return UpstreamError(
            f"Image generation timed out after {self._config.request_timeout:g} seconds"
        )


def _unpack_result(result: Any) -> tuple[Any, Any]:
    """Split a remote result into ``(image_data, seed)``.

    Gradio returns multi-output endpoints as a tuple; JSON clients may hand
    back a list or a ``{"data": [...]}`` payload.
    """
    if isinstance(result, Mapping) and "data" in result:
        result = result["data"]
    if isinstance(result, (str, bytes)) or not isinstance(result, Sequence) or len(result) != 2:
        raise UpstreamError("Malformed response from image model")
    image_data, seed = result
    return image_data, seed
