"""
Small helpers shared by the test modules.
"""

import io
import urllib.error
import urllib.request

from archsetup.adapters.mock import MockAdapter


def answers(*lines: str) -> io.StringIO:
    """A stdin stand-in holding one answer per line."""
    return io.StringIO("".join(f"{line}\n" for line in lines))


def commands(mock: MockAdapter) -> list[list[str]]:
    """argv of every command the mock received, in order."""
    return [ctx.params["argv"] for ctx in mock.call_log]


class _Response(io.BytesIO):
    pass


def serve(monkeypatch, routes: dict[str, bytes]) -> list[str]:
    """Answer urlopen from ``routes``; unknown URLs fail. Returns the URLs requested."""
    requested: list[str] = []

    def fake_urlopen(req, timeout=None):
        requested.append(req.full_url)
        if req.full_url not in routes:
            raise urllib.error.URLError(f"no route to {req.full_url}")
        return _Response(routes[req.full_url])

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    return requested
