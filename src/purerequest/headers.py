"""Case-insensitive, multi-value HTTP header collection."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Optional, Union

HeaderValue = Union[str, list[str]]
HeaderInit = Union["Headers", Mapping[str, HeaderValue], Iterable[tuple[str, str]], None]


class Headers:
    """
    Ordered header store keyed by lower-cased name.

    Entries are kept as a list of ``(name, values)`` pairs in insertion order.
    Names are folded to lower case once, on the way in, so every lookup is a
    plain string comparison.

    Example:
        headers = Headers({"Accept": "*/*"})
        headers.append("Set-Cookie", "a=1")
        headers.append("set-cookie", "b=2")
        headers.get("SET-COOKIE")  # "a=1"
        headers.raw()  # {"accept": "*/*", "set-cookie": ["a=1", "b=2"]}
    """

    def __init__(self, init: HeaderInit = None) -> None:
        self._entries: list[tuple[str, list[str]]] = []
        if init is None:
            return
        if isinstance(init, Headers):
            for name, values in init._entries:
                self._entries.append((name, list(values)))
        elif isinstance(init, Mapping):
            for name, value in init.items():
                if isinstance(value, (list, tuple)):
                    for item in value:
                        self.append(name, item)
                else:
                    self.append(name, value)
        else:
            for name, value in init:
                self.append(name, value)

    @staticmethod
    def _key(name: str) -> str:
        return str(name).lower()

    def _index(self, key: str) -> int:
        for i, (name, _) in enumerate(self._entries):
            if name == key:
                return i
        return -1

    def set(self, name: str, value: str) -> None:
        """Replace every value of ``name`` with ``value``."""
        key = self._key(name)
        idx = self._index(key)
        if idx == -1:
            self._entries.append((key, [str(value)]))
        else:
            self._entries[idx] = (key, [str(value)])

    def append(self, name: str, value: str) -> None:
        """Add ``value`` alongside any existing values of ``name``."""
        key = self._key(name)
        idx = self._index(key)
        if idx == -1:
            self._entries.append((key, [str(value)]))
        else:
            self._entries[idx][1].append(str(value))

    def get(self, name: str) -> Optional[str]:
        """Return the first value of ``name``, or None."""
        idx = self._index(self._key(name))
        if idx == -1:
            return None
        return self._entries[idx][1][0]

    def get_all(self, name: str) -> list[str]:
        idx = self._index(self._key(name))
        if idx == -1:
            return []
        return list(self._entries[idx][1])

    def has(self, name: str) -> bool:
        return self._index(self._key(name)) != -1

    def delete(self, name: str) -> None:
        """Remove every value of ``name``. Missing names are ignored."""
        idx = self._index(self._key(name))
        if idx != -1:
            del self._entries[idx]

    def raw(self) -> dict[str, HeaderValue]:
        """
        Export the headers as a plain dict.

        Single values are exported as strings, repeated ones as lists.
        """
        return {name: values[0] if len(values) == 1 else list(values) for name, values in self._entries}

    def items(self) -> Iterator[tuple[str, str]]:
        """Yield one ``(name, value)`` pair per value, in insertion order."""
        for name, values in self._entries:
            for value in values:
                yield name, value

    def copy(self) -> Headers:
        return Headers(self)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __iter__(self) -> Iterator[str]:
        return iter([name for name, _ in self._entries])

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"Headers({self.raw()!r})"
