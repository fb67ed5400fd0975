from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List

from reactpy import component, event, hooks, html

import config
import store_client
from navigation import (
    LANDING_NAVIGATION,
    MANAGERS_PATH,
    SIGNIN_PATH,
    Navigator,
    maintenance_path,
)
from property_forms import EditSession, form_fields
from store_client import StoreError, StoreUnauthorized

logger = logging.getLogger(__name__)

# Theme choice per storage key, kept for the life of the process.
THEME_STORE: Dict[str, str] = {}
ThemeContext = hooks.create_context({"theme": config.DEFAULT_THEME, "set_theme": None})

MAINTENANCE_COLUMNS = [
    {"key": "maintenance_date", "label": "Date"},
    {"key": "unit", "label": "Unit"},
    {"key": "description", "label": "Description"},
    {"key": "cost", "label": "Cost"},
]


def load_properties_safe() -> Dict[str, Any]:
    try:
        properties = store_client.list_properties()
    except StoreError as exc:
        logger.exception("Failed to load properties")
        return {"properties": [], "error": str(exc), "unauthorized": isinstance(exc, StoreUnauthorized)}
    return {"properties": properties, "error": "", "unauthorized": False}


def unit_label(unit: Any) -> str:
    if isinstance(unit, dict):
        return str(unit.get("unit_number") or unit.get("name") or unit.get("id") or "")
    return "" if unit is None else str(unit)


def format_cell(column: Dict[str, str], row: Dict[str, Any]) -> str:
    value = row.get(column["key"])
    if column["key"] == "unit":
        return unit_label(value) or str(row.get("unit_number") or "")
    return "" if value is None else str(value)


def use_session(form_key: str) -> tuple[EditSession, Callable[[], None]]:
    """Keep an ``EditSession`` across renders and re-render after mutating it."""
    session_ref = hooks.use_ref(None)
    if session_ref.current is None:
        session_ref.current = EditSession(form_key)
    _, set_version = hooks.use_state(0)

    def rerender() -> None:
        set_version(lambda version: version + 1)

    return session_ref.current, rerender


def render_field(form_key: str, field: Dict[str, Any], session: EditSession, rerender, choices=None):
    name = field["name"]
    value = session.draft.get(name, "")
    error = session.errors.get(name)

    def on_change(event_data: Dict[str, Any]) -> None:
        session.set_field(name, event_data.get("target", {}).get("value", ""))
        rerender()

    disabled = session.in_flight
    if field["input_type"] == "select":
        control = html.select(
            {"name": name, "class": "input", "value": str(value or ""), "disabled": disabled, "on_change": on_change},
            html.option({"value": ""}, f"Select {field['label'].lower()}"),
            *[
                html.option({"key": str(option["value"]), "value": str(option["value"])}, option["label"])
                for option in (choices or {}).get(name, [])
            ],
        )
    else:
        input_type = {"integer": "number", "date": "date"}.get(field["input_type"], "text")
        control = html.input(
            {
                "name": name,
                "class": f"input {'input-invalid' if error else ''}",
                "type": input_type,
                "placeholder": field.get("placeholder", ""),
                "default_value": "" if value is None else str(value),
                "disabled": disabled,
                "on_change": on_change,
            }
        )
    return html.div(
        {"class": "field", "key": name},
        html.label({"class": "label"}, field["label"]),
        control,
        html.div({"class": "field-error"}, error) if error else None,
    )


def render_modal(title: str, description: str, on_close, busy: bool, *body):
    return html.div(
        {"class": "modal"},
        html.div(
            {"class": "modal-card", "role": "dialog"},
            html.div(
                {"class": "modal-head"},
                html.div(
                    html.h3({"class": "modal-title"}, title),
                    html.p({"class": "meta"}, description),
                ),
                html.button({"class": "btn ghost", "type": "button", "disabled": busy, "on_click": on_close}, "Close"),
            ),
            *body,
        ),
    )


def submit_handler(
    session: EditSession,
    rerender: Callable[[], None],
    send: Callable[[Dict[str, Any]], Any],
    notify: Callable[[str], None],
    on_saved: Callable[[], None],
    navigator: Navigator,
):
    @event(prevent_default=True)
    async def handle_submit(event_data: Dict[str, Any]) -> None:
        outcome = await session.submit(send, on_change=rerender)
        rerender()
        if outcome.reauthenticate:
            navigator.push(SIGNIN_PATH)
        if outcome.ok:
            notify(outcome.message)
        if outcome.refresh:
            on_saved()

    return handle_submit


def render_session_form(form_key: str, session: EditSession, rerender, on_submit, on_close, choices=None):
    return html.form(
        {"class": "form", "on_submit": on_submit},
        html.div({"class": "banner banner-danger", "role": "alert"}, session.failure) if session.failure else None,
        *[render_field(form_key, field, session, rerender, choices) for field in form_fields(form_key)],
        html.div(
            {"class": "form-actions"},
            html.button({"type": "button", "class": "btn ghost", "disabled": session.in_flight, "on_click": on_close}, "Cancel"),
            html.button(
                {"type": "submit", "class": "btn primary", "disabled": session.in_flight},
                "Saving..." if session.in_flight else "Save",
            ),
        ),
    )


@component
def EditPropertyDialog(
    property: Dict[str, Any],
    on_saved: Callable[[], None],
    notify: Callable[[str], None],
    navigator: Navigator,
    update: Callable[[Any, Dict[str, Any]], Any] = store_client.update_property,
):
    session, rerender = use_session("property")

    def open_dialog(event_data: Dict[str, Any] | None = None) -> None:
        session.open(property)
        rerender()

    def close_dialog(event_data: Dict[str, Any] | None = None) -> None:
        if session.cancel():
            rerender()

    handle_submit = submit_handler(
        session,
        rerender,
        lambda payload: update(property["id"], payload),
        notify,
        on_saved,
        navigator,
    )

    trigger = html.button(
        {"class": "btn icon", "type": "button", "title": "Edit property", "on_click": open_dialog},
        "✎",
    )
    if not session.is_open:
        return trigger
    return html.span(
        trigger,
        render_modal(
            "Edit Property",
            "Make changes to your property here. Click save when you're done.",
            close_dialog,
            session.in_flight,
            render_session_form("property", session, rerender, handle_submit, close_dialog),
        ),
    )


@component
def AddUnitMaintenanceModal(
    units: List[Dict[str, Any]],
    property_id: Any,
    on_saved: Callable[[], None],
    notify: Callable[[str], None],
    navigator: Navigator,
    create: Callable[[Dict[str, Any]], Any] = store_client.add_maintenance,
):
    session, rerender = use_session("maintenance")
    choices = {"unit": [{"value": unit.get("id"), "label": unit_label(unit)} for unit in units]}

    def open_modal(event_data: Dict[str, Any] | None = None) -> None:
        session.open(
            {
                "property": property_id,
                "unit": units[0].get("id") if units else "",
                "maintenance_date": datetime.now().strftime("%Y-%m-%d"),
            }
        )
        rerender()

    def close_modal(event_data: Dict[str, Any] | None = None) -> None:
        if session.cancel():
            rerender()

    handle_submit = submit_handler(session, rerender, create, notify, on_saved, navigator)

    trigger = html.button({"class": "btn primary", "type": "button", "on_click": open_modal}, "Add maintenance")
    if not session.is_open:
        return trigger
    return html.span(
        trigger,
        render_modal(
            "Add Maintenance",
            "Record work done on one of this property's units.",
            close_modal,
            session.in_flight,
            render_session_form("maintenance", session, rerender, handle_submit, close_modal, choices),
        ),
    )


@component
def MaintenancesTable(data: List[Dict[str, Any]], columns: List[Dict[str, str]]):
    if not data:
        return html.div({"class": "meta"}, "No maintenance records yet.")
    return html.div(
        {"class": "table-wrap"},
        html.table(
            {"class": "table"},
            html.thead(html.tr(*[html.th({"key": column["key"]}, column["label"]) for column in columns])),
            html.tbody(
                *[
                    html.tr(
                        {"key": row.get("id", idx)},
                        *[html.td({"key": column["key"]}, format_cell(column, row)) for column in columns],
                    )
                    for idx, row in enumerate(data)
                ]
            ),
        ),
    )


@component
def PropertyDetailsHeader(property_id: Any, title: str, properties: List[Dict[str, Any]], on_change, action_modal=None):
    return html.div(
        {"class": "section-head"},
        html.div(
            html.h2(title),
            html.select(
                {
                    "class": "input",
                    "value": "" if property_id is None else str(property_id),
                    "on_change": lambda event_data: on_change(event_data.get("target", {}).get("value", "")),
                },
                *[
                    html.option({"key": str(item.get("id")), "value": str(item.get("id"))}, item.get("property_name") or "")
                    for item in properties
                ],
            ),
        ),
        html.div(action_modal) if action_modal else None,
    )


@component
def PropertyMaintenances(
    properties: List[Dict[str, Any]],
    property_id: Any,
    navigator: Navigator,
    notify: Callable[[str], None],
    fetch: Callable[[Any], List[Dict[str, Any]]] = store_client.list_maintenances,
):
    first_id = properties[0].get("id") if properties else None
    selected, set_selected = hooks.use_state(property_id if property_id is not None else first_id)
    maintenances, set_maintenances = hooks.use_state([])
    load_error, set_load_error = hooks.use_state("")
    reload_count, set_reload_count = hooks.use_state(0)
    tracker = hooks.use_ref(None)
    if tracker.current is None:
        tracker.current = store_client.RequestTracker()

    match = [item for item in properties if str(item.get("id")) == str(selected)]
    property = match[0] if match else None
    units = (property or {}).get("unit_set") or []

    @hooks.use_effect(dependencies=[selected, reload_count])
    async def load_maintenances() -> None:
        if selected in (None, ""):
            return
        ticket = tracker.current.begin(selected)
        try:
            rows = await asyncio.to_thread(fetch, selected)
        except StoreError as exc:
            logger.warning("Loading maintenances for %s failed: %s", selected, exc)
            if not tracker.current.is_current(ticket):
                return
            set_maintenances([])
            set_load_error(str(exc))
            if isinstance(exc, StoreUnauthorized):
                navigator.push(SIGNIN_PATH)
            return
        if not tracker.current.is_current(ticket):
            logger.debug("Dropping stale maintenances for %s", selected)
            return
        set_load_error("")
        set_maintenances(rows)

    def on_change(value: str) -> None:
        set_selected(value)

    def reload() -> None:
        set_reload_count(lambda count: count + 1)

    return html.main(
        PropertyDetailsHeader(
            selected,
            "Maintenances Data",
            properties,
            on_change,
            AddUnitMaintenanceModal(units, selected, reload, notify, navigator, key=f"add-{selected}") if units else None,
        ),
        html.div({"class": "banner banner-danger"}, load_error) if load_error else None,
        html.div({"class": "table-shell"}, MaintenancesTable(maintenances, MAINTENANCE_COLUMNS)),
    )


@component
def MaintenanceNavigation(property_id: Any, navigator: Navigator):
    @hooks.use_effect(dependencies=[property_id])
    def redirect() -> None:
        if property_id not in (None, ""):
            navigator.push(maintenance_path(property_id))

    return None


@component
def PropertiesPage(
    properties: List[Dict[str, Any]],
    on_saved: Callable[[], None],
    notify: Callable[[str], None],
    navigator: Navigator,
):
    fields = form_fields("property")
    if not properties:
        body = html.div({"class": "meta"}, "No properties yet.")
    else:
        body = html.div(
            {"class": "table-wrap"},
            html.table(
                {"class": "table"},
                html.thead(html.tr(*[html.th({"key": field["name"]}, field["label"]) for field in fields], html.th("Actions"))),
                html.tbody(
                    *[
                        html.tr(
                            {"key": item.get("id", idx)},
                            *[html.td({"key": field["name"]}, str(item.get(field["name"]) or "")) for field in fields],
                            html.td(
                                EditPropertyDialog(item, on_saved, notify, navigator, key=f"edit-{item.get('id')}"),
                                html.button(
                                    {
                                        "class": "btn ghost",
                                        "type": "button",
                                        "on_click": lambda e, item=item: navigator.push(maintenance_path(item.get("id"))),
                                    },
                                    "Maintenances",
                                ),
                            ),
                        )
                        for idx, item in enumerate(properties)
                    ]
                ),
            ),
        )
    return html.section(
        {"class": "card"},
        html.div(
            {"class": "section-head"},
            html.div(html.h2("Properties"), html.div({"class": "meta"}, "Edit property details and rates.")),
        ),
        body,
    )


@component
def NavMobile(navigator: Navigator, on_navigate: Callable[[], None]):
    return html.nav(
        {"class": "nav-mobile"},
        html.ul(
            *[
                html.li({"key": item["name"]}, nav_link(item, navigator, on_navigate))
                for item in LANDING_NAVIGATION
            ],
        ),
        SigninButton(navigator),
    )


def nav_link(item: Dict[str, str], navigator: Navigator, on_navigate: Callable[[], None] | None = None):
    if not item["href"].startswith("/"):
        return html.a({"class": "nav-link", "href": item["href"]}, item["name"])

    @event(prevent_default=True)
    def go(event_data: Dict[str, Any]) -> None:
        if on_navigate:
            on_navigate()
        navigator.push(item["href"])

    return html.a({"class": "nav-link", "href": item["href"], "on_click": go}, item["name"])


@component
def SigninButton(navigator: Navigator):
    target = MANAGERS_PATH if config.API_TOKEN else SIGNIN_PATH
    return html.button(
        {"class": "btn primary", "type": "button", "on_click": lambda e: navigator.push(target)},
        "Sign in →",
    )


@component
def Header(navigator: Navigator):
    mobile_nav, set_mobile_nav = hooks.use_state(False)

    return html.header(
        {"class": "landing-header"},
        html.div(
            {"class": "header-inner"},
            nav_link({"name": "LPMS", "href": "/"}, navigator),
            html.button(
                {
                    "class": "menu-toggle",
                    "type": "button",
                    "aria-expanded": "true" if mobile_nav else "false",
                    "on_click": lambda e: set_mobile_nav(lambda value: not value),
                },
                "✕" if mobile_nav else "☰",
            ),
            html.nav(
                {"class": "nav-desktop"},
                html.ul(*[html.li({"key": item["name"]}, nav_link(item, navigator)) for item in LANDING_NAVIGATION]),
                SigninButton(navigator),
            ),
            html.div(
                {"class": f"nav-drawer {'open' if mobile_nav else ''}"},
                NavMobile(navigator, lambda: set_mobile_nav(False)),
            ),
        ),
    )


@component
def ThemeProvider(*children, default_theme: str = config.DEFAULT_THEME, storage_key: str = config.THEME_STORAGE_KEY):
    theme, set_theme_state = hooks.use_state(lambda: THEME_STORE.get(storage_key, default_theme))

    def set_theme(value: str) -> None:
        THEME_STORE[storage_key] = value
        set_theme_state(value)

    return ThemeContext(
        html.div({"class": f"theme-root theme-{theme}"}, *children),
        value={"theme": theme, "set_theme": set_theme},
    )


@component
def ThemeToggle():
    context = hooks.use_context(ThemeContext)
    theme = context["theme"]
    set_theme = context["set_theme"]
    next_theme = "light" if theme == "dark" else "dark"
    return html.button(
        {
            "class": "btn ghost",
            "type": "button",
            "disabled": set_theme is None,
            "on_click": lambda e: set_theme(next_theme) if set_theme else None,
        },
        f"{next_theme.capitalize()} mode",
    )


@component
def Toasts(messages: List[Dict[str, Any]], on_dismiss: Callable[[int], None]):
    return html.div(
        {"class": "toasts", "role": "status"},
        *[
            html.div(
                {"class": "toast", "key": item["id"]},
                html.span(item["message"]),
                html.button({"class": "btn ghost", "type": "button", "on_click": lambda e, item=item: on_dismiss(item["id"])}, "Dismiss"),
            )
            for item in messages
        ],
    )
