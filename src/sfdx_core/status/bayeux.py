"""Bayeux/CometD long-polling transport.

Only the ``long-polling`` connection type is implemented. Every message is a
JSON array POSTed to the endpoint URL; ``/meta/connect`` runs on a daemon
thread once a subscription is registered.
"""

from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

import requests

from sfdx_core.errors import CoreError

logger = logging.getLogger(__name__)

Message = dict[str, Any]
MessageListener = Callable[[Message], None]

BAYEUX_VERSION = "1.0"
LONG_POLLING = "long-polling"

TRANSPORT_UP = "transport:up"
TRANSPORT_DOWN = "transport:down"


@dataclass(frozen=True, slots=True)
class CometExtension:
    """Hooks applied to every message. Returning None drops the message."""

    incoming: Callable[[Message], Message | None] | None = None
    outgoing: Callable[[Message], Message | None] | None = None


class CometClient(ABC):
    """What the streaming client needs from a CometD implementation."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._listeners: dict[str, list[Callable[[], None]]] = defaultdict(list)

    def on(self, event: str, listener: Callable[[], None]) -> None:
        self._listeners[event].append(listener)

    def emit(self, event: str) -> None:
        for listener in list(self._listeners[event]):
            listener()

    @property
    @abstractmethod
    def client_id(self) -> str | None: ...

    @abstractmethod
    def disable(self, label: str) -> None: ...

    @abstractmethod
    def add_extension(self, extension: CometExtension) -> None: ...

    @abstractmethod
    def set_header(self, name: str, value: str) -> None: ...

    @abstractmethod
    def handshake(self, callback: Callable[[], None]) -> None:
        """Start the handshake; ``callback`` runs once it succeeds."""

    @abstractmethod
    def subscribe(self, channel: str, listener: MessageListener) -> Future[None]:
        """Register ``listener``; the future resolves on the server's acknowledgment."""

    @abstractmethod
    def disconnect(self) -> None:
        """Leave the session politely."""

    @abstractmethod
    def close_dispatcher(self) -> None:
        """Stop all network activity without talking to the server."""


class BayeuxClient(CometClient):
    """CometD client over ``requests``."""

    def __init__(
        self,
        url: str,
        *,
        session: requests.Session | None = None,
        retry_interval: float = 1.0,
        request_timeout: float = 120.0,
    ) -> None:
        super().__init__(url)
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        self._retry_interval = retry_interval
        self._request_timeout = request_timeout

        self._client_id: str | None = None
        self._ids = itertools.count(1)
        self._extensions: list[CometExtension] = []
        self._disabled: set[str] = set()
        self._subscriptions: dict[str, MessageListener] = {}
        self._pending: set[Future[None]] = set()
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._connect_thread: threading.Thread | None = None

    @property
    def client_id(self) -> str | None:
        return self._client_id

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def disable(self, label: str) -> None:
        self._disabled.add(label)
        logger.debug("Disabled transport feature", extra={"feature": label})

    def add_extension(self, extension: CometExtension) -> None:
        self._extensions.append(extension)

    def set_header(self, name: str, value: str) -> None:
        self._session.headers[name] = value

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    def handshake(self, callback: Callable[[], None]) -> None:
        thread = threading.Thread(
            target=self._handshake_until_closed,
            args=(callback,),
            name="bayeux-handshake",
            daemon=True,
        )
        thread.start()

    def _handshake_until_closed(self, callback: Callable[[], None]) -> None:
        while not self.closed:
            if self._handshake_once():
                callback()
                return
            self._closed.wait(self._retry_interval)

    def _handshake_once(self) -> bool:
        try:
            reply = self._send_meta(
                {
                    "channel": "/meta/handshake",
                    "version": BAYEUX_VERSION,
                    "minimumVersion": BAYEUX_VERSION,
                    "supportedConnectionTypes": [LONG_POLLING],
                }
            )
        except (requests.RequestException, ValueError) as e:
            logger.debug("Handshake request failed", extra={"url": self.url, "error": str(e)})
            return False

        if not reply.get("successful") or not reply.get("clientId"):
            logger.debug("Handshake rejected", extra={"url": self.url, "error": reply.get("error")})
            return False

        self._client_id = str(reply["clientId"])
        logger.debug("Handshake completed", extra={"url": self.url})
        self.emit(TRANSPORT_UP)
        return True

    def subscribe(self, channel: str, listener: MessageListener) -> Future[None]:
        registration: Future[None] = Future()
        with self._lock:
            self._pending.add(registration)
            self._subscriptions[channel] = listener

        thread = threading.Thread(
            target=self._register,
            args=(channel, registration),
            name=f"bayeux-subscribe-{channel}",
            daemon=True,
        )
        thread.start()
        return registration

    def _register(self, channel: str, registration: Future[None]) -> None:
        try:
            if self._client_id is None and not self._handshake_once():
                raise CoreError(f"Unable to handshake with {self.url}", "HandshakeFailed")
            reply = self._send_meta(
                {"channel": "/meta/subscribe", "clientId": self._client_id, "subscription": channel}
            )
            if not reply.get("successful"):
                raise CoreError(
                    str(reply.get("error") or f"Subscription to {channel} was rejected"),
                    "SubscriptionFailed",
                    data={"channel": channel},
                )
            self._ensure_connect_loop()
            self._resolve(registration, None)
        except (CoreError, requests.RequestException, ValueError) as e:
            with self._lock:
                self._subscriptions.pop(channel, None)
            self._resolve(registration, e)

    def _resolve(self, registration: Future[None], error: BaseException | None) -> None:
        with self._lock:
            self._pending.discard(registration)
            if registration.done():
                return
            if error is None:
                registration.set_result(None)
            else:
                registration.set_exception(error)

    def _ensure_connect_loop(self) -> None:
        with self._lock:
            if self._connect_thread is not None and self._connect_thread.is_alive():
                return
            self._connect_thread = threading.Thread(
                target=self._connect_loop, name="bayeux-connect", daemon=True
            )
            self._connect_thread.start()

    def _connect_loop(self) -> None:
        while not self.closed and self._client_id is not None:
            try:
                replies = self._send(
                    [{"channel": "/meta/connect", "clientId": self._client_id, "connectionType": LONG_POLLING}]
                )
            except (requests.RequestException, ValueError) as e:
                if self.closed:
                    return
                logger.debug("Connect request failed", extra={"url": self.url, "error": str(e)})
                self.emit(TRANSPORT_DOWN)
                self._closed.wait(self._retry_interval)
                continue

            interval = 0.0
            for message in replies:
                if message.get("channel") != "/meta/connect":
                    self._dispatch(message)
                    continue
                advice = message.get("advice") or {}
                interval = float(advice.get("interval", 0)) / 1000
                if not message.get("successful") and advice.get("reconnect") == "none":
                    logger.debug("Server advised not to reconnect", extra={"url": self.url})
                    self.emit(TRANSPORT_DOWN)
                    return
            if interval:
                self._closed.wait(interval)

    def _dispatch(self, message: Message) -> None:
        listener = self._subscriptions.get(str(message.get("channel")))
        if listener is not None and "data" in message:
            listener(message)

    def disconnect(self) -> None:
        if self.closed:
            return
        client_id = self._client_id
        self._closed.set()
        if client_id is not None:
            try:
                self._send([{"channel": "/meta/disconnect", "clientId": client_id}])
            except (requests.RequestException, ValueError) as e:
                logger.debug("Disconnect request failed", extra={"url": self.url, "error": str(e)})
        self._shutdown()

    def close_dispatcher(self) -> None:
        if self.closed:
            return
        self._closed.set()
        self._shutdown()

    def _shutdown(self) -> None:
        self._client_id = None
        with self._lock:
            pending = list(self._pending)
        for registration in pending:
            self._resolve(registration, CoreError(f"Transport to {self.url} was closed", "TransportClosed"))
        self._session.close()
        self.emit(TRANSPORT_DOWN)

    # ------------------------------------------------------------------
    # Wire
    # ------------------------------------------------------------------

    def _send_meta(self, message: Message) -> Message:
        channel = message["channel"]
        reply: Message | None = None
        for incoming in self._send([message]):
            if incoming.get("channel") == channel and reply is None:
                reply = incoming
            else:
                self._dispatch(incoming)
        if reply is None:
            raise ValueError(f"No reply for {channel}")
        return reply

    def _send(self, messages: list[Message]) -> list[Message]:
        outgoing: list[Message] = []
        for message in messages:
            message = {"id": str(next(self._ids)), **message}
            for extension in self._extensions:
                if extension.outgoing is None:
                    continue
                transformed = extension.outgoing(message)
                if transformed is None:
                    break
                message = transformed
            else:
                outgoing.append(message)

        resp = self._session.post(self.url, json=outgoing, timeout=self._request_timeout)
        resp.raise_for_status()
        body = resp.json()
        if not isinstance(body, list):
            body = [body]

        received: list[Message] = []
        for message in body:
            for extension in self._extensions:
                if extension.incoming is None:
                    continue
                message = extension.incoming(message)
                if message is None:
                    break
            if message is not None:
                received.append(message)
        return received
