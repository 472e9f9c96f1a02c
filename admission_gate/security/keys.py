"""Client key derivation and skip predicates.

A client key identifies who a request counts against. The default
derivation trusts the usual reverse-proxy headers, then falls back to
the socket peer, then to the "unknown" sentinel so every request gets
a key.
"""

from collections.abc import Callable, Iterable

from starlette.requests import Request

UNKNOWN_CLIENT = "unknown"
DEFAULT_KEY_HEADERS = ("x-forwarded-for", "x-real-ip", "forwarded")


def make_key_generator(header_names: Iterable[str]) -> Callable[[Request], str]:
    """Build a key generator that consults `header_names` in order."""
    names = [h.strip().lower() for h in header_names if h.strip()]

    def key_generator(request: Request) -> str:
        for name in names:
            value = request.headers.get(name)
            if not value:
                continue
            if name == "x-forwarded-for":
                # Left-most hop is the originating client
                value = value.split(",")[0]
            value = value.strip()
            if value:
                return value
        if request.client and request.client.host:
            return request.client.host
        return UNKNOWN_CLIENT

    return key_generator


default_key_generator = make_key_generator(DEFAULT_KEY_HEADERS)


def never_skip(request: Request, key: str) -> bool:
    return False


def path_skipper(paths: Iterable[str]) -> Callable[[Request, str], bool]:
    """Skip predicate exempting exact request paths (e.g. health checks)."""
    exempt = frozenset(paths)

    def skip(request: Request, key: str) -> bool:
        return request.url.path in exempt

    return skip
