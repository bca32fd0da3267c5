"""RESP value model."""

from dataclasses import dataclass
from typing import Iterable, Tuple, Union

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class Value:
    """Base class for every wire-level RESP value."""

    def render(self) -> str:
        raise NotImplementedError

    def __str__(self):
        return self.render()


def _check_line(text: str, kind: str):
    if "\r" in text or "\n" in text:
        raise ValueError(f"{kind} cannot contain CR or LF: {text!r}")


@dataclass(frozen=True)
class SimpleString(Value):
    text: str

    def __post_init__(self):
        _check_line(self.text, "simple string")

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class Error(Value):
    text: str

    def __post_init__(self):
        _check_line(self.text, "error")

    def render(self) -> str:
        return f"(error) {self.text}"


@dataclass(frozen=True)
class Integer(Value):
    value: int

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"integer reply must be an int, got {self.value!r}")
        if not INT64_MIN <= self.value <= INT64_MAX:
            raise ValueError(f"integer out of signed 64-bit range: {self.value}")

    def render(self) -> str:
        return f"(integer) {self.value}"


@dataclass(frozen=True)
class BulkString(Value):
    """
    Binary-safe string. Text payloads are stored as their UTF-8 bytes, so the
    length written on the wire is always the byte length.
    """

    data: bytes

    def __init__(self, data: Union[str, bytes, bytearray, memoryview]):
        if isinstance(data, str):
            data = data.encode("utf-8")
        elif isinstance(data, (bytearray, memoryview)):
            data = bytes(data)
        elif not isinstance(data, bytes):
            raise TypeError(f"bulk string payload must be str or bytes, got {data!r}")
        object.__setattr__(self, "data", data)

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class Null(Value):
    """The nil reply (`$-1`). Distinct from an empty bulk string."""

    def render(self) -> str:
        return "(nil)"


NULL = Null()


@dataclass(frozen=True)
class Array(Value):
    items: Tuple[Value, ...]

    def __init__(self, items: Iterable[Value] = ()):
        items = tuple(items)
        for item in items:
            if not isinstance(item, Value):
                raise TypeError(f"array elements must be RESP values, got {item!r}")
        object.__setattr__(self, "items", items)

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def render(self) -> str:
        if not self.items:
            return "(empty array)"
        return "\n".join(
            f"{i}) {item.render()}" for i, item in enumerate(self.items, start=1)
        )


def from_args(args: Iterable[str]) -> Value:
    """
    Build an outgoing command: one bulk string per argument.
    An empty argument list yields NULL, not an empty array.
    """
    args = list(args)
    if not args:
        return NULL
    return Array(BulkString(arg) for arg in args)


def render(value: Value) -> str:
    """Human-readable, redis-cli style form of a value."""
    return value.render()


class Command:
    """Builders for commands the client sends often."""

    @staticmethod
    def get(key: str) -> Value:
        return from_args(["GET", key])

    @staticmethod
    def set(key: str, value: str) -> Value:
        return from_args(["SET", key, value])
