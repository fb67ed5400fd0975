from __future__ import annotations

import asyncio
import itertools
import os

from flask import Flask, jsonify, request
from reactpy import component, hooks, html
from reactpy.backend.flask import Options, configure
from reactpy.backend.hooks import use_location

import config
import store_client
from components import (
    Header,
    MaintenanceNavigation,
    PropertiesPage,
    PropertyMaintenances,
    ThemeProvider,
    ThemeToggle,
    Toasts,
    load_properties_safe,
)
from navigation import MANAGERS_PATH, MAINTENANCES_PATH, Navigator, resolve_route, url_sync_script

app = Flask(__name__)

TOAST_IDS = itertools.count(1)


def cors_origin_for_request() -> str | None:
    origin = request.headers.get("Origin")
    if not origin:
        return None
    if "*" in config.CORS_ALLOWED_ORIGINS:
        return "*"
    if origin in config.CORS_ALLOWED_ORIGINS:
        return origin
    return None


@app.before_request
def api_cors_preflight():
    if request.method == "OPTIONS" and request.path.startswith("/api/"):
        return "", 204


@app.after_request
def add_api_cors_headers(response):
    if not request.path.startswith("/api/"):
        return response

    origin = cors_origin_for_request()
    if origin:
        response.headers["Access-Control-Allow-Origin"] = origin
        if origin != "*":
            response.headers["Vary"] = "Origin"

    response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Max-Age"] = "600"
    return response


@app.route("/api/health")
def api_health():
    return jsonify({"status": "ok"})


@app.route("/api/properties", methods=["GET"])
def api_properties():
    body, status = store_client.store_json_request("GET", store_client.PROPERTIES_PATH)
    if status >= 400:
        app.logger.warning("Property list relay returned %s", status)
    return jsonify(body), status


@app.route("/api/maintenances/<property_id>", methods=["GET"])
def api_maintenances(property_id: str):
    body, status = store_client.store_json_request(
        "GET", store_client.MAINTENANCES_PATH, params={"property": property_id}
    )
    if status >= 400:
        app.logger.warning("Maintenance list relay for %s returned %s", property_id, status)
    return jsonify(body), status


APP_CSS = """
:root { color-scheme: dark; --accent: #a020f0; --ok: #25f609; --danger: #ff5c5c; }
* { box-sizing: border-box; }
body { margin: 0; font-family: "Inter", "Segoe UI", sans-serif; }
.theme-root { min-height: 100vh; }
.theme-dark { background: #0b0b10; color: #f4f4f8; }
.theme-light { background: #f6f6fb; color: #14141c; }
.landing-header { position: fixed; left: 0; top: 0; width: 100%; z-index: 20; }
.header-inner { max-width: 1200px; margin: 0 auto; padding: 12px; display: flex; align-items: center; justify-content: space-between; }
.nav-desktop { display: none; align-items: center; gap: 24px; }
.nav-desktop ul, .nav-mobile ul { list-style: none; margin: 0; padding: 0; display: flex; gap: 48px; }
.nav-link { color: inherit; text-decoration: none; text-transform: capitalize; }
.nav-link:hover { color: var(--accent); border-bottom: 1px solid var(--accent); }
.menu-toggle { font-size: 24px; background: none; border: 0; color: inherit; cursor: pointer; }
.nav-drawer { position: fixed; bottom: 0; left: -100%; width: 100%; max-width: 320px; height: 100vh; transition: left .2s; background: #111; }
.nav-drawer.open { left: 0; }
.nav-mobile ul { flex-direction: column; gap: 16px; padding: 24px; }
@media (min-width: 768px) {
  .nav-desktop { display: flex; }
  .menu-toggle, .nav-drawer { display: none; }
}
.page { max-width: 1200px; margin: 0 auto; padding: 88px 16px 32px; display: grid; gap: 16px; }
.topbar { display: flex; justify-content: space-between; align-items: center; gap: 12px; }
.card { border: 1px solid rgba(127, 127, 127, .25); border-radius: 12px; padding: 16px; }
.section-head { display: flex; justify-content: space-between; align-items: center; gap: 12px; margin-bottom: 12px; }
.meta { opacity: .7; font-size: 14px; }
.table-wrap { overflow-x: auto; }
.table-shell { max-width: 360px; }
@media (min-width: 640px) { .table-shell { max-width: 100%; } }
.table { width: 100%; border-collapse: collapse; }
.table th, .table td { text-align: left; padding: 8px; border-bottom: 1px solid rgba(127, 127, 127, .2); }
.btn { border: 1px solid rgba(127, 127, 127, .35); border-radius: 8px; padding: 6px 12px; background: transparent; color: inherit; cursor: pointer; }
.btn.primary { background: var(--accent); border-color: var(--accent); color: #fff; }
.btn.icon { color: var(--ok); border: 0; font-size: 18px; }
.btn:disabled { opacity: .5; cursor: not-allowed; }
.modal { position: fixed; inset: 0; background: rgba(0, 0, 0, .6); display: grid; place-items: center; z-index: 40; }
.modal-card { width: min(425px, 92vw); background: #16161f; color: #f4f4f8; border-radius: 12px; padding: 20px; }
.modal-head { display: flex; justify-content: space-between; gap: 12px; }
.form { display: grid; gap: 12px; }
.field { display: grid; gap: 4px; }
.input { padding: 8px; border-radius: 8px; border: 1px solid rgba(127, 127, 127, .4); background: transparent; color: inherit; }
.input-invalid { border-color: var(--danger); }
.field-error { color: var(--danger); font-size: 13px; }
.form-actions { display: flex; justify-content: flex-end; gap: 8px; }
.banner { padding: 10px 12px; border-radius: 8px; }
.banner-danger { background: rgba(255, 92, 92, .15); color: var(--danger); }
.toasts { position: fixed; right: 16px; bottom: 16px; display: grid; gap: 8px; z-index: 50; }
.toast { display: flex; gap: 12px; align-items: center; background: #1f1f2a; color: #fff; padding: 10px 14px; border-radius: 10px; }
"""


@component
def LandingPage(navigator: Navigator):
    return html.div(
        Header(navigator),
        html.main(
            {"class": "page"},
            html.section(
                {"class": "card", "id": "features"},
                html.h1("Property management without the paperwork"),
                html.p({"class": "meta"}, "Track properties, units, water rates and maintenance from one dashboard."),
            ),
            html.section(
                {"class": "card", "id": "pricing"},
                html.h2("Pricing"),
                html.p({"class": "meta"}, "One plan per manager. Unlimited properties."),
            ),
            html.section(
                {"class": "card", "id": "contact"},
                html.h2("Contact"),
                html.p({"class": "meta"}, "Questions? Reach the LPMS team from your manager dashboard."),
            ),
        ),
    )


@component
def SigninPage(navigator: Navigator):
    return html.main(
        {"class": "page"},
        html.section(
            {"class": "card"},
            html.h1("Sign in"),
            html.p(
                {"class": "meta"},
                "Your session is missing or has expired. Set LPMS_API_TOKEN for this server and reload.",
            ),
            html.div(
                {"class": "form-actions"},
                html.button({"class": "btn ghost", "type": "button", "on_click": lambda e: navigator.push("/")}, "Home"),
                html.button(
                    {"class": "btn primary", "type": "button", "on_click": lambda e: navigator.push(MANAGERS_PATH)},
                    "Continue",
                ),
            ),
        ),
    )


@component
def ManagerShell(navigator: Navigator, title: str, *children):
    return html.main(
        {"class": "page"},
        html.div(
            {"class": "topbar"},
            html.h1(title),
            html.div(
                html.button({"class": "btn ghost", "type": "button", "on_click": lambda e: navigator.push(MANAGERS_PATH)}, "Properties"),
                html.button({"class": "btn ghost", "type": "button", "on_click": lambda e: navigator.push(MAINTENANCES_PATH)}, "Maintenances"),
                ThemeToggle(),
            ),
        ),
        *children,
    )


MANAGER_ROUTES = {"properties", "maintenances_index", "maintenances"}


@component
def App():
    location = use_location()
    path, set_path = hooks.use_state(location.pathname or "/")
    data, set_data = hooks.use_state(None)
    reload_count, set_reload_count = hooks.use_state(0)
    toasts, set_toasts = hooks.use_state([])

    navigator = Navigator(path, set_path)
    route, params = resolve_route(path)
    needs_properties = route in MANAGER_ROUTES

    @hooks.use_effect(dependencies=[needs_properties, reload_count])
    async def load_properties():
        if not needs_properties:
            return
        set_data(await asyncio.to_thread(load_properties_safe))

    def refresh() -> None:
        set_reload_count(lambda count: count + 1)

    def notify(message: str) -> None:
        toast = {"id": next(TOAST_IDS), "message": message}
        set_toasts(lambda prev: [*prev[-2:], toast])

    def dismiss(toast_id: int) -> None:
        set_toasts(lambda prev: [item for item in prev if item["id"] != toast_id])

    properties = (data or {}).get("properties", [])

    if route == "landing":
        page = LandingPage(navigator)
    elif route == "signin":
        page = SigninPage(navigator)
    elif needs_properties and data is None:
        page = ManagerShell(navigator, "Manager dashboard", html.div({"class": "meta"}, "Loading properties..."))
    elif needs_properties and data.get("unauthorized"):
        page = SigninPage(navigator)
    elif needs_properties and data.get("error"):
        page = ManagerShell(
            navigator,
            "Dashboard unavailable",
            html.section(
                {"class": "card"},
                html.div({"class": "meta"}, "Properties could not be loaded. Check LPMS_API_URL and the store."),
                html.pre({"class": "meta", "style": {"whiteSpace": "pre-wrap"}}, data.get("error")),
                html.div(
                    {"class": "form-actions"},
                    html.button({"class": "btn primary", "type": "button", "on_click": lambda e: refresh()}, "Retry"),
                ),
            ),
        )
    elif route == "properties":
        page = ManagerShell(navigator, "Manager dashboard", PropertiesPage(properties, refresh, notify, navigator))
    elif route == "maintenances_index":
        first_id = properties[0].get("id") if properties else None
        page = ManagerShell(
            navigator,
            "Maintenances",
            MaintenanceNavigation(first_id, navigator),
            html.div({"class": "meta"}, "Loading maintenances..." if first_id is not None else "Add a property first."),
        )
    elif route == "maintenances":
        property_id = params["property_id"]
        page = ManagerShell(
            navigator,
            "Maintenances",
            PropertyMaintenances(properties, property_id, navigator, notify, key=f"maintenances-{property_id}"),
        )
    else:
        page = html.main(
            {"class": "page"},
            html.section(
                {"class": "card"},
                html.h1("Page not found"),
                html.button({"class": "btn primary", "type": "button", "on_click": lambda e: navigator.push("/")}, "Go home"),
            ),
        )

    return html.div(
        {"id": "lpms-root"},
        html.style(APP_CSS),
        html.script(url_sync_script(path)),
        ThemeProvider(
            page,
            Toasts(toasts, dismiss),
            default_theme=config.DEFAULT_THEME,
            storage_key=config.THEME_STORAGE_KEY,
        ),
    )


configure(
    app,
    App,
    Options(
        head=(
            {"tagName": "title", "children": ["LPMS"]},
            {
                "tagName": "meta",
                "attributes": {"name": "viewport", "content": "width=device-width, initial-scale=1"},
            },
        )
    ),
)


if __name__ == "__main__":
    app.run(
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "5000")),
        debug=os.environ.get("FLASK_DEBUG", "0") == "1",
    )
