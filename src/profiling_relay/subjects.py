"""
Subject components and span names for each kind of unit of work

Components are the strings a unit of work is matched against by the
include/exclude filters. An HTTP request, for example, yields its verb and
path in several spellings plus the handler that served it, so a pattern may
target any of them.
"""

import re
from typing import Iterable, List, Optional

HTTP = "http"
CONSOLE = "console"
QUEUE = "queue"
SCHEDULE = "schedule"
EXCEPTION = "exception"

_QUALIFIER_RE = re.compile(r"[.\\:]")


def span_name(kind: str, identifier: str) -> str:
    """Standard span name, ``{kind}.{identifier}``"""
    return f"{kind}.{identifier}"


def _with_leading_slash(path: str) -> str:
    return "/" + path.lstrip("/")


def _without_leading_slash(path: str) -> str:
    return path.lstrip("/") or "/"


def class_basename(qualified_name: str) -> str:
    """``app.jobs.SendMail`` -> ``SendMail``; also splits on ``\\`` and ``:``"""
    return _QUALIFIER_RE.split(qualified_name)[-1] or qualified_name


def http_span_name(method: str, path: str, route: Optional[str] = None) -> str:
    return span_name(HTTP, f"{method.upper()}.{_with_leading_slash(route or path)}")


def console_span_name(command: str) -> str:
    return span_name(CONSOLE, command)


def queue_span_name(job_name: str) -> str:
    return span_name(QUEUE, class_basename(job_name))


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            out.append(value)
    return out


def http_components(
    method: str,
    path: str,
    route: Optional[str] = None,
    route_methods: Iterable[str] = (),
    handler: Optional[str] = None,
) -> List[str]:
    """Components describing an HTTP request

    ``route`` is the matched route template (``/users/{id}``) and ``handler``
    the qualified name of the view that served it, either dotted
    (``app.views.UserView.get``) or ``Owner@method``.
    """
    method = method.upper()
    slashed = _with_leading_slash(path)
    bare = _without_leading_slash(path)
    components = [
        f"{method} {slashed}",
        f"{method} {bare}",
        bare,
        slashed,
    ]

    if route is not None:
        route_slashed = _with_leading_slash(route)
        route_bare = _without_leading_slash(route)
        components.extend([route_bare, route_slashed])
        for route_method in route_methods or (method,):
            route_method = route_method.upper()
            components.append(f"{route_method} {route_bare}")
            components.append(f"{route_method} {route_slashed}")

    if handler:
        components.append(handler)
        if "@" in handler:
            components.append(handler.split("@", 1)[0])
        elif "." in handler:
            components.append(handler.rsplit(".", 1)[0])

    return _unique(components)


def console_components(command: str) -> List[str]:
    return _unique([command])


def queue_components(job_name: str) -> List[str]:
    return _unique([job_name, class_basename(job_name)])
