# castctl/transport/tls.py
from __future__ import annotations

import logging
import socket
import ssl
from typing import Optional

from .base import Transport
from .errors import TransportIOError, TransportOpenError


class TLSTransport(Transport):
    """
    TLS stream transport implemented with the standard socket/ssl modules.

    Cast receivers present self-signed certificates, so certificate and
    hostname verification are disabled.

    Inbound bytes are pulled into an internal buffer without blocking;
    available()/peek()/read() only ever look at that buffer.
    """

    def __init__(
        self,
        *,
        connect_timeout: float = 5.0,
        write_timeout: float = 1.0,
        recv_chunk: int = 4096,
        logger: Optional[logging.Logger] = None,
    ):
        self.connect_timeout = connect_timeout
        self.write_timeout = write_timeout
        self.recv_chunk = recv_chunk
        self._log = logger or logging.getLogger(__name__)
        self.sock: Optional[ssl.SSLSocket] = None
        self._rx = bytearray()
        self._peer_closed = False

    @staticmethod
    def _context() -> ssl.SSLContext:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        return ctx

    def connect(self, host: str, port: int) -> None:
        self.close()
        try:
            raw = socket.create_connection((host, port), timeout=self.connect_timeout)
        except OSError as e:
            raise TransportOpenError(f"could not reach {host}:{port}: {e}") from None

        try:
            self.sock = self._context().wrap_socket(raw, server_hostname=host)
        except (ssl.SSLError, OSError) as e:
            raw.close()
            raise TransportOpenError(f"TLS handshake with {host}:{port} failed: {e}") from None

        self.sock.settimeout(self.write_timeout)
        self._peer_closed = False
        self._log.debug("TLS_CONNECTED host=%s port=%d cipher=%s", host, port, self.sock.cipher())

    def close(self) -> None:
        if self.sock is not None:
            try:
                self.sock.close()
            finally:
                self.sock = None
        self._rx.clear()

    def connected(self) -> bool:
        if self.sock is None:
            return False
        try:
            self._fill()
        except TransportIOError:
            return False
        return self.sock is not None and not self._peer_closed

    def available(self) -> int:
        self._fill()
        return len(self._rx)

    def peek(self, n: int) -> bytes:
        self._fill()
        return bytes(self._rx[:n])

    def read(self, n: int) -> bytes:
        self._fill()
        out = bytes(self._rx[:n])
        del self._rx[:n]
        return out

    def write(self, data: bytes) -> int:
        if self.sock is None:
            raise TransportIOError("write while transport not open")

        view = memoryview(data)
        total = 0
        try:
            while total < len(data):
                total += self.sock.send(view[total:])
        except (socket.timeout, ssl.SSLWantWriteError):
            # accepted bytes are reported; the caller decides about short writes
            pass
        except OSError as e:
            self._drop()
            raise TransportIOError(f"TLS write failed: {e}") from None
        return total

    def _fill(self) -> None:
        """Move everything the socket has ready into the receive buffer."""
        if self.sock is None or self._peer_closed:
            return

        self.sock.setblocking(False)
        try:
            while True:
                chunk = self.sock.recv(self.recv_chunk)
                if not chunk:
                    self._peer_closed = True
                    self._log.info("TLS_PEER_CLOSED")
                    break
                self._rx.extend(chunk)
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError, BlockingIOError):
            pass
        except OSError as e:
            self._drop()
            raise TransportIOError(f"TLS read failed: {e}") from None
        finally:
            if self.sock is not None:
                self.sock.settimeout(self.write_timeout)

    def _drop(self) -> None:
        try:
            if self.sock is not None:
                self.sock.close()
        except OSError:
            pass
        self.sock = None
