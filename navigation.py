from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

MANAGERS_PATH = "/home/managers"
MAINTENANCES_PATH = f"{MANAGERS_PATH}/maintenances"
SIGNIN_PATH = "/signin"

ROUTES: List[Tuple[re.Pattern[str], str]] = [
    (re.compile(r"^/$"), "landing"),
    (re.compile(r"^/signin/?$"), "signin"),
    (re.compile(r"^/home/managers/?$"), "properties"),
    (re.compile(r"^/home/managers/maintenances/?$"), "maintenances_index"),
    (re.compile(r"^/home/managers/maintenances/(?P<property_id>[^/]+)/?$"), "maintenances"),
]

# Landing page anchors shown in the header and the mobile menu.
LANDING_NAVIGATION = [
    {"name": "home", "href": "/"},
    {"name": "features", "href": "#features"},
    {"name": "pricing", "href": "#pricing"},
    {"name": "contact", "href": "#contact"},
]


def resolve_route(path: str) -> Tuple[str, Dict[str, str]]:
    clean = (path or "/").split("?", 1)[0].split("#", 1)[0] or "/"
    for pattern, name in ROUTES:
        match = pattern.match(clean)
        if match:
            return name, match.groupdict()
    return "not_found", {}


def maintenance_path(property_id: Any) -> str:
    return f"{MAINTENANCES_PATH}/{property_id}"


def url_sync_script(path: str) -> str:
    """Browser-side snippet that moves the address bar to ``path`` without a reload."""
    target = json.dumps(path)
    return f"if (window.location.pathname !== {target}) {{ window.history.pushState(null, '', {target}); }}"


class Navigator:
    """Moves the app to another route. Passed to the components that redirect.

    ``push`` only changes the server-side route state; the root component
    renders :func:`url_sync_script` for the new path so the address bar follows.
    """

    def __init__(self, current: str, set_path: Callable[[str], None]) -> None:
        self.current = current
        self._set_path = set_path

    def push(self, path: str) -> None:
        if path == self.current:
            return
        logger.debug("Navigating from %s to %s", self.current, path)
        self.current = path
        self._set_path(path)
