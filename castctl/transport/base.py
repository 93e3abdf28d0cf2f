# castctl/transport/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Transport(ABC):
    """
    Abstract stream transport (TLS socket, test fakes, ...).

    Contract:
      - connect()/close() manage the underlying connection.
      - available() returns how many inbound bytes can be read without blocking.
      - peek(n) returns up to n buffered bytes without consuming them.
      - read(n) returns 0..n buffered bytes and consumes them.
      - write(data) returns the number of bytes accepted, which may be short.
    """

    @abstractmethod
    def connect(self, host: str, port: int) -> None: ...

    @abstractmethod
    def connected(self) -> bool: ...

    @abstractmethod
    def available(self) -> int: ...

    @abstractmethod
    def peek(self, n: int) -> bytes: ...

    @abstractmethod
    def read(self, n: int) -> bytes: ...

    @abstractmethod
    def write(self, data: bytes) -> int: ...

    @abstractmethod
    def close(self) -> None: ...

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        self.close()
