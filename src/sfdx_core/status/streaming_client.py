"""Streaming API client: wait on a channel until a processor says it is done.

Timeouts are armed with :class:`threading.Timer`; outcomes settle a
:class:`concurrent.futures.Future` exactly once, whichever of completion,
processor failure, registration failure or timeout comes first.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, wait
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sfdx_core.errors import (
    CoreError,
    MissingArgError,
    MissingOrInvalidAccessTokenError,
    StreamingTimeout,
    StreamingTimeoutError,
)
from sfdx_core.logging import mask_secret
from sfdx_core.settings import get_settings
from sfdx_core.status.bayeux import (
    TRANSPORT_DOWN,
    TRANSPORT_UP,
    BayeuxClient,
    CometClient,
    CometExtension,
    Message,
)

if TYPE_CHECKING:
    from sfdx_core.org import Org

logger = logging.getLogger(__name__)

T = TypeVar("T")

SYSTEM_CHANNEL_PREFIX = "/system"
SYSTEM_CHANNEL_API_VERSION = "36.0"


@dataclass(frozen=True, slots=True)
class StatusResult(Generic[T]):
    """What a stream processor returns for each message."""

    completed: bool
    payload: T | None = None


StreamProcessor = Callable[[Message], StatusResult[Any]]


@dataclass
class StreamingOptions(Generic[T]):
    """Everything needed to listen on one channel.

    Timeouts are in seconds and default to ``SFDX_HANDSHAKE_TIMEOUT`` and
    ``SFDX_SUBSCRIBE_TIMEOUT``. Channels under ``/system`` always use API
    version 36.0.
    """

    org: Org | None
    api_version: str | None
    channel: str | None
    stream_processor: Callable[[Message], StatusResult[T]] | None
    handshake_timeout: float | None = None
    subscribe_timeout: float | None = None
    transport_factory: Callable[[str], CometClient] = BayeuxClient

    def __post_init__(self) -> None:
        for which in ("org", "api_version", "channel", "stream_processor"):
            if not getattr(self, which):
                raise MissingArgError(which)

        if str(self.channel).startswith(SYSTEM_CHANNEL_PREFIX):
            self.api_version = SYSTEM_CHANNEL_API_VERSION

        settings = get_settings()
        if self.handshake_timeout is None:
            self.handshake_timeout = settings.handshake_timeout
        if self.subscribe_timeout is None:
            self.subscribe_timeout = settings.subscribe_timeout


class StreamingConnectionState(str, Enum):
    CONNECTED = "connected"


class StreamingState(str, Enum):
    IDLE = "idle"
    HANDSHAKING = "handshaking"
    HANDSHAKEN = "handshaken"
    SUBSCRIBING = "subscribing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    DISCONNECTED = "disconnected"


ALLOWED_TRANSITIONS: dict[StreamingState, set[StreamingState]] = {
    StreamingState.IDLE: {StreamingState.HANDSHAKING, StreamingState.SUBSCRIBING, StreamingState.DISCONNECTED},
    StreamingState.HANDSHAKING: {StreamingState.HANDSHAKEN, StreamingState.TIMED_OUT, StreamingState.DISCONNECTED},
    StreamingState.HANDSHAKEN: {StreamingState.SUBSCRIBING, StreamingState.DISCONNECTED},
    StreamingState.SUBSCRIBING: {
        StreamingState.COMPLETED,
        StreamingState.FAILED,
        StreamingState.TIMED_OUT,
        StreamingState.DISCONNECTED,
    },
    StreamingState.COMPLETED: {StreamingState.DISCONNECTED},
    StreamingState.FAILED: {StreamingState.DISCONNECTED},
    StreamingState.TIMED_OUT: {StreamingState.DISCONNECTED},
    StreamingState.DISCONNECTED: set(),
}


class StreamingClient(Generic[T]):
    """Listens on one channel of an org's streaming endpoint.

    Create with :meth:`init`; then optionally :meth:`handshake`, then
    :meth:`subscribe`. A client is single use.
    """

    def __init__(self, options: StreamingOptions[T]) -> None:
        if options.org is None:
            raise MissingArgError("org")
        self._options = options
        self._org = options.org
        self._lock = threading.Lock()
        self._state = StreamingState.IDLE

        instance_url = self._org.get_connection().instance_url
        self.target_url = "/".join([instance_url, "cometd", str(options.api_version)])

        self._comet = options.transport_factory(self.target_url)
        self._comet.on(TRANSPORT_UP, lambda: logger.debug("Transport up", extra={"url": self.target_url}))
        self._comet.on(TRANSPORT_DOWN, lambda: logger.debug("Transport down", extra={"url": self.target_url}))
        self._comet.add_extension(CometExtension(incoming=self._log_incoming))
        self._comet.disable("websocket")

    @classmethod
    def init(cls, options: StreamingOptions[T]) -> StreamingClient[T]:
        """Refresh the org's session and build a client carrying its token.

        Raises:
            MissingOrInvalidAccessTokenError: The refreshed token is empty or too short.
        """

        if options.org is None:
            raise MissingArgError("org")
        options.org.refresh_auth()

        client = cls(options)
        token = options.org.get_connection().get_connection_options().access_token
        if not token or len(token) <= 5:
            raise MissingOrInvalidAccessTokenError(
                "Missing or invalid access token.",
                actions=["Re-authorize the org."],
            )
        logger.debug("Streaming client created", extra={"url": client.target_url, "token": mask_secret(token)})
        client._comet.set_header("Authorization", f"OAuth {token}")
        return client

    @property
    def state(self) -> StreamingState:
        return self._state

    @property
    def comet(self) -> CometClient:
        return self._comet

    def handshake(self) -> StreamingConnectionState:
        """Block until the transport has a session, or the handshake timeout fires.

        Raises:
            StreamingTimeoutError: ``name == "handshake"`` on timeout.
        """

        self._transition(StreamingState.HANDSHAKING)
        outcome: Future[StreamingConnectionState] = Future()

        def on_timeout() -> None:
            self._disconnect_transport()
            error = StreamingTimeoutError(
                StreamingTimeout.HANDSHAKE,
                f"The streaming client timed out connecting to {self.target_url}",
            )
            self._settle(outcome, StreamingState.TIMED_OUT, error=error)

        def on_handshake() -> None:
            timer.cancel()
            self._settle(outcome, StreamingState.HANDSHAKEN, result=StreamingConnectionState.CONNECTED)

        timer = self._start_timer(self._options.handshake_timeout, on_timeout)
        try:
            self._comet.handshake(on_handshake)
            return outcome.result()
        finally:
            timer.cancel()

    def subscribe(self, stream_init: Callable[[], None] | None = None) -> T | None:
        """Listen on the channel until the processor reports completion.

        ``stream_init`` runs once the server acknowledges the subscription,
        which is the point where triggering the awaited server action is safe.

        Raises:
            StreamingTimeoutError: ``name == "subscribe"`` on timeout.
            Exception: Whatever the stream processor or ``stream_init`` raised.
        """

        processor = self._options.stream_processor
        if processor is None:
            raise MissingArgError("stream_processor")
        self._transition(StreamingState.SUBSCRIBING)
        outcome: Future[T | None] = Future()

        def on_timeout() -> None:
            self._disconnect_transport()
            error = StreamingTimeoutError(
                StreamingTimeout.SUBSCRIBE,
                f"The streaming client timed out waiting on channel {self._options.channel}",
            )
            self._settle(outcome, StreamingState.TIMED_OUT, error=error)

        def on_message(message: Message) -> None:
            if outcome.done():
                return
            try:
                result = processor(message)
            except Exception as e:
                timer.cancel()
                self._settle(outcome, StreamingState.FAILED, error=e)
                return
            if result is not None and result.completed:
                timer.cancel()
                self._comet.disconnect()
                self._settle(outcome, StreamingState.COMPLETED, result=result.payload)

        timer = self._start_timer(self._options.subscribe_timeout, on_timeout)
        try:
            registration = self._comet.subscribe(str(self._options.channel), on_message)
            done, _ = wait([registration, outcome], return_when=FIRST_COMPLETED)
            if registration in done and not outcome.done():
                error = registration.exception()
                if error is not None:
                    timer.cancel()
                    self._settle(outcome, StreamingState.FAILED, error=error)
                else:
                    logger.debug("Subscribed", extra={"channel": self._options.channel})
                    if stream_init is not None:
                        self._run_stream_init(stream_init, outcome, timer)
            return outcome.result()
        finally:
            timer.cancel()

    def disconnect(self) -> None:
        self._disconnect_transport()
        with self._lock:
            self._state = StreamingState.DISCONNECTED

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run_stream_init(
        self,
        stream_init: Callable[[], None],
        outcome: Future[Any],
        timer: threading.Timer,
    ) -> None:
        try:
            stream_init()
        except Exception as e:
            timer.cancel()
            self._settle(outcome, StreamingState.FAILED, error=e)

    def _transition(self, new_state: StreamingState) -> None:
        with self._lock:
            if new_state not in ALLOWED_TRANSITIONS[self._state]:
                raise CoreError(
                    f"Streaming client is {self._state.value}; cannot start {new_state.value}.",
                    "StreamingClientInUse",
                )
            self._state = new_state

    def _settle(
        self,
        outcome: Future[Any],
        state: StreamingState,
        *,
        result: Any = None,
        error: BaseException | None = None,
    ) -> bool:
        with self._lock:
            if outcome.done():
                return False
            self._state = state
            if error is not None:
                outcome.set_exception(error)
            else:
                outcome.set_result(result)
            return True

    def _disconnect_transport(self) -> None:
        # Without a client id there is no session to leave.
        if self._comet.client_id is None:
            self._comet.close_dispatcher()
        else:
            self._comet.disconnect()

    @staticmethod
    def _start_timer(seconds: float | None, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(float(seconds or 0), callback)
        timer.daemon = True
        timer.start()
        return timer

    def _log_incoming(self, message: Message) -> Message:
        logger.debug("Streaming message received", extra={"channel": message.get("channel")})
        return message
