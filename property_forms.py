"""Validated edit forms for store records.

``FORM_DEFS`` is the rule table. ``EditSession`` is the open/closed edit
surface: it seeds a draft from a record, validates it, and turns a valid draft
into the payload sent to the store.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List

from store_client import StoreError, StoreRejected, StoreUnauthorized

logger = logging.getLogger(__name__)

DECIMAL_PATTERN = re.compile(r"\d+(\.\d+)?", re.ASCII)

FORM_DEFS: Dict[str, Dict[str, Any]] = {
    "property": {
        "label": "Property",
        "success": "{property_name} details updated",
        "fields": [
            {
                "name": "property_name",
                "label": "Name",
                "input_type": "text",
                "placeholder": "ABC apartments",
                "min_length": 3,
                "max_length": 20,
            },
            {
                "name": "property_lrl",
                "label": "LRL",
                "input_type": "text",
                "placeholder": "D0064",
                "min_length": 3,
                "max_length": 10,
            },
            {
                "name": "water_rate_per_unit",
                "label": "Water Rate per Unit",
                "input_type": "decimal",
                "placeholder": "27.00",
                "message": "Invalid decimal format for water_rate_per_unit",
            },
            {"name": "number_of_floors", "label": "Floors", "input_type": "integer", "null_as": 0},
            {"name": "number_of_units", "label": "Units", "input_type": "integer"},
        ],
    },
    "maintenance": {
        "label": "Maintenance",
        "success": "Maintenance record added",
        "fields": [
            {"name": "unit", "label": "Unit", "input_type": "select", "message": "Select a unit"},
            {
                "name": "description",
                "label": "Description",
                "input_type": "text",
                "placeholder": "Replaced kitchen tap",
                "min_length": 3,
                "max_length": 200,
            },
            {"name": "cost", "label": "Cost", "input_type": "decimal", "placeholder": "1500.00"},
            {"name": "maintenance_date", "label": "Date", "input_type": "date"},
        ],
    },
}


def form_fields(form_key: str) -> List[Dict[str, Any]]:
    return FORM_DEFS[form_key]["fields"]


def field_def(form_key: str, name: str) -> Dict[str, Any]:
    for field in form_fields(form_key):
        if field["name"] == name:
            return field
    raise KeyError(f"{form_key} has no field {name!r}")


def parse_integer_input(raw: Any) -> Any:
    """Parse a numeric input; text that is not a whole number comes back unchanged."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    text = "" if raw is None else str(raw).strip()
    try:
        return int(text)
    except ValueError:
        return text


def seed_value(field: Dict[str, Any], value: Any) -> Any:
    if field["input_type"] == "integer":
        if value is None:
            return field.get("null_as")
        return parse_integer_input(value)
    return "" if value is None else str(value)


def initial_draft(form_key: str, record: Dict[str, Any]) -> Dict[str, Any]:
    return {field["name"]: seed_value(field, record.get(field["name"])) for field in form_fields(form_key)}


def apply_field(form_key: str, draft: Dict[str, Any], name: str, raw: Any) -> Dict[str, Any]:
    field = field_def(form_key, name)
    if field["input_type"] == "integer":
        value = parse_integer_input(raw)
    else:
        value = "" if raw is None else str(raw)
    return {**draft, name: value}


def check_field(field: Dict[str, Any], value: Any) -> str | None:
    name = field["name"]
    input_type = field["input_type"]

    if input_type == "integer":
        if isinstance(value, int) and not isinstance(value, bool):
            return None
        shown = "" if value is None else str(value).strip()
        return f"Expected number, received {shown or 'nothing'}"

    if input_type == "decimal":
        if isinstance(value, str) and DECIMAL_PATTERN.fullmatch(value):
            return None
        return field.get("message") or f"Invalid decimal format for {name}"

    if input_type == "date":
        try:
            datetime.strptime(str(value or ""), "%Y-%m-%d")
        except ValueError:
            return "Expected a date as YYYY-MM-DD"
        return None

    if input_type == "select":
        if value in (None, ""):
            return field.get("message") or "Required"
        return None

    if not isinstance(value, str):
        return f"Expected string, received {type(value).__name__}"
    min_length = field.get("min_length")
    max_length = field.get("max_length")
    if min_length is not None and len(value) < min_length:
        return f"String must contain at least {min_length} character(s)"
    if max_length is not None and len(value) > max_length:
        return f"String must contain at most {max_length} character(s)"
    return None


def validate_draft(form_key: str, draft: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for field in form_fields(form_key):
        message = check_field(field, draft.get(field["name"]))
        if message:
            errors[field["name"]] = message
    return errors


@dataclass
class SubmitOutcome:
    ok: bool
    message: str = ""
    refresh: bool = False
    reauthenticate: bool = False


class EditSession:
    """One edit surface: ``Closed -> Open -> Closed``.

    The record passed to :meth:`open` is kept as a read-only snapshot; the
    draft is discarded whenever the session closes.
    """

    def __init__(self, form_key: str) -> None:
        self.form_key = form_key
        self.is_open = False
        self.in_flight = False
        self.record: Dict[str, Any] = {}
        self.draft: Dict[str, Any] = {}
        self.errors: Dict[str, str] = {}
        self.failure = ""
        self.submit_attempted = False

    def open(self, record: Dict[str, Any]) -> None:
        self.record = dict(record)
        self.draft = initial_draft(self.form_key, record)
        self.errors = {}
        self.failure = ""
        self.submit_attempted = False
        self.in_flight = False
        self.is_open = True

    def cancel(self) -> bool:
        if self.in_flight:
            return False
        self._close()
        return True

    def _close(self) -> None:
        self.is_open = False
        self.draft = {}
        self.errors = {}
        self.failure = ""
        self.submit_attempted = False

    def set_field(self, name: str, raw: Any) -> None:
        if not self.is_open or self.in_flight:
            return
        self.draft = apply_field(self.form_key, self.draft, name, raw)
        if self.submit_attempted:
            self.errors = validate_draft(self.form_key, self.draft)

    def payload(self) -> Dict[str, Any]:
        return {**self.record, **self.draft}

    def begin_submit(self) -> Dict[str, Any] | None:
        if not self.is_open or self.in_flight:
            return None
        self.submit_attempted = True
        self.failure = ""
        self.errors = validate_draft(self.form_key, self.draft)
        if self.errors:
            return None
        self.in_flight = True
        return self.payload()

    def complete(self) -> str:
        message = FORM_DEFS[self.form_key]["success"].format_map(_Blank(self.record))
        self.in_flight = False
        self._close()
        return message

    def fail(self, exc: StoreError) -> None:
        self.in_flight = False
        notes: List[str] = []
        if isinstance(exc, StoreRejected):
            known = {field["name"] for field in form_fields(self.form_key)}
            self.errors = {name: msg for name, msg in exc.field_errors.items() if name in known}
            notes = [msg for name, msg in exc.field_errors.items() if name not in known]
            detail = exc.body.get("detail") if isinstance(exc.body, dict) else None
            if isinstance(detail, str) and detail:
                notes.append(detail)
        self.failure = " ".join([str(exc), *notes])

    async def submit(
        self,
        send: Callable[[Dict[str, Any]], Any],
        on_change: Callable[[], None] | None = None,
    ) -> SubmitOutcome:
        """Validate, run ``send(payload)`` in a worker thread, then close or keep the failure.

        ``on_change`` is called once validation has run, before the request
        goes out, so the caller can show the in-flight state.
        """
        payload = self.begin_submit()
        if on_change is not None:
            on_change()
        if payload is None:
            return SubmitOutcome(ok=False)
        try:
            await asyncio.to_thread(send, payload)
        except StoreError as exc:
            logger.warning("%s submission failed: %s", self.form_key, exc)
            self.fail(exc)
            return SubmitOutcome(
                ok=False,
                message=self.failure,
                reauthenticate=isinstance(exc, StoreUnauthorized),
            )
        return SubmitOutcome(ok=True, message=self.complete(), refresh=True)


class _Blank(dict):
    def __missing__(self, key: str) -> str:
        return ""
