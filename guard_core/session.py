"""
session.py - read-only wrapper around a captured Steam web-session cookie set.

The cookies come from an external login flow (browser, exported JSON). The
core only renders them into a Cookie header; it never changes or saves them.
"""

from types import MappingProxyType
from typing import Mapping
import json

from guard_core import settings


class Session:
    def __init__(self, cookies: Mapping[str, str]):
        for name, value in cookies.items():
            # HTTP headers are ASCII
            if not (str(name).isascii() and str(value).isascii()):
                raise ValueError(f"cookie {name!r} contains non-ASCII characters")
        self._cookies = MappingProxyType(dict(cookies))

    @property
    def cookies(self) -> Mapping[str, str]:
        return self._cookies

    @property
    def is_authenticated(self) -> bool:
        """True once the login flow captured the steamLoginSecure cookie."""
        return settings.SESSION_MARKER_COOKIE in self._cookies

    def cookie_header(self) -> dict:
        if not self._cookies:
            return {}
        return {"Cookie": "; ".join(f"{name}={value}" for name, value in self._cookies.items())}

    @classmethod
    def from_json(cls, data) -> "Session":
        """
        Accept either {"name": "value", ...} or a browser export
        [{"name": ..., "value": ...}, ...].
        """
        if isinstance(data, dict):
            return cls({str(k): str(v) for k, v in data.items()})
        if isinstance(data, list):
            cookies = {}
            for item in data:
                if isinstance(item, dict) and "name" in item and "value" in item:
                    cookies[str(item["name"])] = str(item["value"])
            return cls(cookies)
        raise ValueError("cookie data must be an object or a list of {name, value}")

    @classmethod
    def from_file(cls, path: str) -> "Session":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_json(json.load(f))

    def __repr__(self):
        # cookie values are credentials
        return f"Session(cookies={sorted(self._cookies)})"
