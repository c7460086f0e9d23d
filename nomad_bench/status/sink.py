"""Metrics sink speaking the Graphite plaintext protocol.

Samples are sent with a synchronous ``graphyte.Sender``. The sender opens a
TCP connection per sample, so a failed write needs no reconnect handling:
the next sample simply tries again.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Tuple

import graphyte

DEFAULT_GRAPHITE_PORT = 2003


class SinkError(Exception):
    """Raised when the metrics sink cannot be reached or written to."""

    def __init__(self, address: str, message: str, cause: Optional[Exception] = None):
        self.address = address
        self.cause = cause
        super().__init__(f"[{address}] {message}")


def parse_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``). The port defaults to 2003."""
    text = address.strip()
    if not text:
        raise SinkError(address, "empty sink address")

    if text.startswith("["):
        host, sep, rest = text[1:].partition("]")
        if not sep:
            raise SinkError(address, "unterminated IPv6 address")
        port_text = rest[1:] if rest.startswith(":") else ""
    elif text.count(":") == 1:
        host, _, port_text = text.partition(":")
    else:
        host, port_text = text, ""

    if not host:
        raise SinkError(address, "missing host")
    if not port_text:
        return host, DEFAULT_GRAPHITE_PORT
    try:
        port = int(port_text)
    except ValueError:
        raise SinkError(address, f"invalid port {port_text!r}") from None
    if not 0 < port < 65536:
        raise SinkError(address, f"port out of range: {port}")
    return host, port


class GraphiteSink:
    """Graphite plaintext sink backed by graphyte."""

    def __init__(self, address: str, prefix: str = "", timeout: float = 5.0):
        self.address = address
        self.host, self.port = parse_address(address)
        # graphyte joins prefix and name with a dot itself
        self.prefix = prefix.rstrip(".")
        self.timeout = timeout
        self._sender: Optional[graphyte.Sender] = graphyte.Sender(
            self.host,
            port=self.port,
            prefix=self.prefix or None,
            timeout=timeout,
            raise_send_errors=True,
        )

    def connect(self) -> None:
        """Check that the sink accepts connections.

        Raises:
            SinkError: If the sink is closed or unreachable.
        """
        sender = self._require_open()
        try:
            sender.send_message(b"")
        except OSError as e:
            raise SinkError(self.address, f"connect failed: {e}", e) from e

    def set(self, name: str, value: float, timestamp: datetime) -> None:
        """Write one sample.

        Raises:
            SinkError: If the sample could not be written.
        """
        sender = self._require_open()
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        try:
            sender.send(name, value, timestamp=timestamp.timestamp())
        except (OSError, ValueError) as e:
            raise SinkError(self.address, f"write failed: {e}", e) from e

    def _require_open(self) -> graphyte.Sender:
        if self._sender is None:
            raise SinkError(self.address, "sink is closed")
        return self._sender

    def close(self) -> None:
        """Stop the sender. Safe to call more than once."""
        sender, self._sender = self._sender, None
        if sender is not None:
            sender.stop()

    def __enter__(self) -> "GraphiteSink":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def connect(address: str, prefix: str = "", timeout: float = 5.0) -> GraphiteSink:
    """Open a sink at ``address``.

    Raises:
        SinkError: If the address is invalid or the sink is unreachable.
    """
    sink = GraphiteSink(address, prefix=prefix, timeout=timeout)
    sink.connect()
    return sink
