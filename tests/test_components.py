"""Render and interaction checks for the ReactPy components.

Interaction tests drive a ``Layout`` the way the browser client does: they
deliver events to handler targets taken from the rendered model and apply the
layout updates that come back.
"""

import asyncio
import copy
import threading
from datetime import datetime
from unittest.mock import MagicMock

from reactpy import component, hooks, html
from reactpy.core.layout import Layout

from components import (
    MAINTENANCE_COLUMNS,
    AddUnitMaintenanceModal,
    EditPropertyDialog,
    Header,
    MaintenanceNavigation,
    MaintenancesTable,
    PropertiesPage,
    PropertyMaintenances,
    format_cell,
)
from navigation import Navigator, maintenance_path
from store_client import StoreUnauthorized, StoreUnavailable

EXPIRED = "Your session has expired. Sign in again."


def render(element):
    async def _render():
        async with Layout(element) as layout:
            update = await layout.render()
            return update["model"]

    return asyncio.run(_render())


def text_of(model) -> str:
    if isinstance(model, str):
        return model
    if not model:
        return ""
    return " ".join(text_of(child) for child in model.get("children", []))


def navigator():
    return Navigator("/", lambda path: None)


class RecordingNavigator:
    def __init__(self, current="/home/managers"):
        self.current = current
        self.pushed = []

    def push(self, path):
        self.pushed.append(path)


def find_node(model, tag, **attributes):
    if not isinstance(model, dict):
        return None
    attrs = model.get("attributes", {})
    if model.get("tagName") == tag and all(attrs.get(key) == value for key, value in attributes.items()):
        return model
    for child in model.get("children", []):
        found = find_node(child, tag, **attributes)
        if found is not None:
            return found
    return None


def handler_target(node, name):
    wanted = name.replace("_", "").lower()
    for key, handler in node.get("eventHandlers", {}).items():
        if key.replace("_", "").lower() == wanted:
            return handler["target"]
    raise AssertionError(f"{node.get('tagName')} has no {name} handler")


def apply_update(tree, update):
    parts = [part for part in update["path"].split("/") if part]
    if not parts:
        return update["model"]
    tree = copy.deepcopy(tree)
    node = tree
    for part in parts[:-1]:
        node = node[int(part)] if part.isdigit() else node[part]
    last = parts[-1]
    node[int(last) if last.isdigit() else last] = update["model"]
    return tree


class Screen:
    """The client side of a layout: the latest full model plus event delivery."""

    def __init__(self, layout):
        self.layout = layout
        self.tree = None

    async def render(self, timeout=2.0):
        update = await asyncio.wait_for(self.layout.render(), timeout)
        self.tree = apply_update(self.tree, update)
        return self.tree

    async def render_until(self, predicate, timeout=2.0):
        while not predicate(self.tree):
            await self.render(timeout)
        return self.tree

    def find(self, tag, **attributes):
        node = find_node(self.tree, tag, **attributes)
        assert node is not None, f"no <{tag}> matching {attributes}"
        return node

    async def deliver(self, node, name, *data):
        target = handler_target(node, name)
        await self.layout.deliver({"type": "layout-event", "target": target, "data": list(data) or [{}]})

    async def fire(self, node, name, *data):
        await self.deliver(node, name, *data)
        return await self.render()

    async def type_into(self, name, value):
        return await self.fire(self.find("input", name=name), "on_change", {"target": {"value": value}})


async def settle():
    for _ in range(10):
        await asyncio.sleep(0)


def run_screen(element, scenario):
    async def _run():
        async with Layout(element) as layout:
            screen = Screen(layout)
            await screen.render()
            return await scenario(screen)

    return asyncio.run(_run())


def test_header_shows_brand_navigation_and_sign_in():
    text = text_of(render(Header(navigator())))

    assert "LPMS" in text
    for name in ("home", "features", "pricing", "contact"):
        assert name in text
    assert "Sign in" in text


def test_maintenances_table_lists_rows():
    rows = [
        {"id": 1, "maintenance_date": "2024-05-01", "unit": {"id": 71, "unit_number": "A1"}, "description": "Fixed leak", "cost": "1500.00"},
        {"id": 2, "maintenance_date": "2024-05-03", "unit": 72, "description": "Painted hall", "cost": "800"},
    ]

    text = text_of(render(MaintenancesTable(rows, MAINTENANCE_COLUMNS)))

    assert "Fixed leak" in text
    assert "A1" in text
    assert "Painted hall" in text
    assert "Description" in text


def test_maintenances_table_empty_state():
    text = text_of(render(MaintenancesTable([], MAINTENANCE_COLUMNS)))

    assert text.strip() == "No maintenance records yet."


def test_edit_dialog_starts_closed(sample_property):
    text = text_of(render(EditPropertyDialog(sample_property, lambda: None, lambda message: None, navigator())))

    assert "Edit Property" not in text
    assert "✎" in text


def test_properties_page_lists_properties(sample_property):
    text = text_of(render(PropertiesPage([sample_property], lambda: None, lambda message: None, navigator())))

    assert "ABC Apartments" in text
    assert "D0064" in text
    assert "Maintenances" in text


def test_format_cell_for_unit_column():
    unit_column = {"key": "unit", "label": "Unit"}

    assert format_cell(unit_column, {"unit": {"id": 71, "unit_number": "A1"}}) == "A1"
    assert format_cell(unit_column, {"unit": 72}) == "72"
    assert format_cell({"key": "cost", "label": "Cost"}, {"cost": None}) == ""


def test_edit_dialog_submit_notifies_refreshes_and_closes(sample_property):
    notify = MagicMock()
    on_saved = MagicMock()
    update = MagicMock(return_value={"id": 7})
    nav = RecordingNavigator()

    async def scenario(screen):
        await screen.fire(screen.find("button", title="Edit property"), "on_click")
        assert "Edit Property" in text_of(screen.tree)
        return await screen.fire(screen.find("form"), "on_submit")

    tree = run_screen(EditPropertyDialog(sample_property, on_saved, notify, nav, update=update), scenario)

    notify.assert_called_once_with("ABC Apartments details updated")
    on_saved.assert_called_once_with()
    assert "Edit Property" not in text_of(tree)
    assert find_node(tree, "form") is None
    property_id, payload = update.call_args[0]
    assert property_id == 7
    assert payload["number_of_floors"] == 0
    assert nav.pushed == []


def test_edit_dialog_disables_save_while_request_is_in_flight(sample_property):
    notify = MagicMock()
    on_saved = MagicMock()
    gate = threading.Event()

    def update(property_id, payload):
        gate.wait(5)
        return {"id": property_id}

    async def scenario(screen):
        await screen.fire(screen.find("button", title="Edit property"), "on_click")
        submitting = asyncio.create_task(screen.deliver(screen.find("form"), "on_submit"))
        try:
            await screen.render_until(lambda tree: "Saving..." in text_of(tree))
            save = screen.find("button", type="submit")
            assert save["attributes"]["disabled"] is True
            notify.assert_not_called()
            on_saved.assert_not_called()
        finally:
            gate.set()
        await submitting
        return await screen.render_until(lambda tree: find_node(tree, "form") is None)

    run_screen(EditPropertyDialog(sample_property, on_saved, notify, RecordingNavigator(), update=update), scenario)

    notify.assert_called_once_with("ABC Apartments details updated")
    on_saved.assert_called_once_with()


def test_edit_dialog_failure_stays_open_and_redirects_on_expired_session(sample_property):
    notify = MagicMock()
    on_saved = MagicMock()
    update = MagicMock(side_effect=StoreUnauthorized(EXPIRED, 401))
    nav = RecordingNavigator()

    async def scenario(screen):
        await screen.fire(screen.find("button", title="Edit property"), "on_click")
        return await screen.fire(screen.find("form"), "on_submit")

    tree = run_screen(EditPropertyDialog(sample_property, on_saved, notify, nav, update=update), scenario)

    assert "Edit Property" in text_of(tree)
    banner = find_node(tree, "div", role="alert")
    assert banner is not None
    assert EXPIRED in text_of(banner)
    assert find_node(tree, "button", type="submit")["attributes"]["disabled"] is False
    assert nav.pushed == ["/signin"]
    notify.assert_not_called()
    on_saved.assert_not_called()


def test_edit_dialog_invalid_draft_is_not_sent(sample_property):
    update = MagicMock()

    async def scenario(screen):
        await screen.fire(screen.find("button", title="Edit property"), "on_click")
        await screen.type_into("property_name", "AB")
        return await screen.fire(screen.find("form"), "on_submit")

    tree = run_screen(EditPropertyDialog(sample_property, MagicMock(), MagicMock(), RecordingNavigator(), update=update), scenario)

    update.assert_not_called()
    assert "String must contain at least 3 character(s)" in text_of(tree)


async def add_maintenance_scenario(screen):
    await screen.fire(screen.find("button", type="button"), "on_click")
    await screen.type_into("description", "Fixed leak")
    await screen.type_into("cost", "1500.00")
    return await screen.fire(screen.find("form"), "on_submit")


def test_add_maintenance_submit_notifies_and_refreshes(sample_property):
    notify = MagicMock()
    on_saved = MagicMock()
    create = MagicMock(return_value={"id": 30})
    units = sample_property["unit_set"]

    tree = run_screen(
        AddUnitMaintenanceModal(units, 7, on_saved, notify, RecordingNavigator(), create=create),
        add_maintenance_scenario,
    )

    notify.assert_called_once_with("Maintenance record added")
    on_saved.assert_called_once_with()
    assert find_node(tree, "form") is None
    payload = create.call_args[0][0]
    assert payload["property"] == 7
    assert payload["unit"] == "71"
    assert payload["description"] == "Fixed leak"
    assert payload["maintenance_date"] == datetime.now().strftime("%Y-%m-%d")


def test_add_maintenance_expired_session_redirects_to_sign_in(sample_property):
    notify = MagicMock()
    on_saved = MagicMock()
    nav = RecordingNavigator()
    create = MagicMock(side_effect=StoreUnauthorized(EXPIRED, 403))

    tree = run_screen(
        AddUnitMaintenanceModal(sample_property["unit_set"], 7, on_saved, notify, nav, create=create),
        add_maintenance_scenario,
    )

    assert nav.pushed == ["/signin"]
    assert EXPIRED in text_of(find_node(tree, "div", role="alert"))
    notify.assert_not_called()
    on_saved.assert_not_called()


def test_maintenance_navigation_redirects_once_per_identifier():
    nav = RecordingNavigator("/home/managers/maintenances")
    controls = {}

    @component
    def Host():
        property_id, set_property_id = hooks.use_state(None)
        _, set_tick = hooks.use_state(0)
        controls["set_property_id"] = set_property_id
        controls["rerender"] = lambda: set_tick(lambda tick: tick + 1)
        return html.div(MaintenanceNavigation(property_id, nav))

    async def scenario(screen):
        await settle()
        assert nav.pushed == []

        controls["set_property_id"](42)
        await screen.render()
        await settle()
        assert nav.pushed == [maintenance_path(42)]

        controls["rerender"]()
        await screen.render()
        await settle()
        assert nav.pushed == [maintenance_path(42)]

    run_screen(Host(), scenario)


def maintenance_row(row_id, description):
    return {"id": row_id, "maintenance_date": "2024-05-01", "unit": 71, "description": description, "cost": "10"}


TWO_PROPERTIES = [
    {"id": 1, "property_name": "One Court", "unit_set": []},
    {"id": 2, "property_name": "Two Court", "unit_set": []},
]


def test_property_maintenances_drops_response_for_previous_selection():
    gate = threading.Event()
    slow_started = threading.Event()
    calls = []

    def fetch(property_id):
        calls.append(property_id)
        if property_id == "1":
            slow_started.set()
            gate.wait(5)
            return [maintenance_row(10, "STALE-ONE")]
        return [maintenance_row(20, "FRESH-TWO")]

    async def scenario(screen):
        try:
            assert await asyncio.to_thread(slow_started.wait, 2)
            await screen.fire(screen.find("select"), "on_change", {"target": {"value": "2"}})
            await screen.render_until(lambda tree: "FRESH-TWO" in text_of(tree))
        finally:
            gate.set()
        await asyncio.sleep(0.05)
        try:
            await screen.render(timeout=0.3)
        except asyncio.TimeoutError:
            pass
        return screen.tree

    tree = run_screen(PropertyMaintenances(TWO_PROPERTIES, "1", RecordingNavigator(), MagicMock(), fetch=fetch), scenario)

    text = text_of(tree)
    assert "FRESH-TWO" in text
    assert "STALE-ONE" not in text
    assert calls == ["1", "2"]


def test_property_maintenances_expired_session_shows_banner_and_redirects():
    nav = RecordingNavigator()
    fetch = MagicMock(side_effect=StoreUnauthorized(EXPIRED, 401))

    async def scenario(screen):
        return await screen.render_until(lambda tree: EXPIRED in text_of(tree))

    tree = run_screen(PropertyMaintenances(TWO_PROPERTIES, "1", nav, MagicMock(), fetch=fetch), scenario)

    assert nav.pushed == ["/signin"]
    assert "No maintenance records yet." in text_of(tree)


def test_property_maintenances_unavailable_store_shows_banner_without_redirect():
    nav = RecordingNavigator()
    fetch = MagicMock(side_effect=StoreUnavailable("The property store is unavailable. Try again.", 502))

    async def scenario(screen):
        return await screen.render_until(lambda tree: "unavailable" in text_of(tree))

    run_screen(PropertyMaintenances(TWO_PROPERTIES, "1", nav, MagicMock(), fetch=fetch), scenario)

    assert nav.pushed == []
    fetch.assert_called_once_with("1")
