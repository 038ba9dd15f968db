"""Server-rendered admin pages.

Each page is a plain HTML document that loads App Bridge, so ``fetch`` calls
made from it carry the session token automatically. Forms post back to the
page's own URL with an ``action`` field, exactly like the JSON clients do.
"""

from __future__ import annotations

import json
from html import escape
from typing import Any, Iterable
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import HTMLResponse

from app.core.config import SHOPIFY_API_KEY
from app.models.appointment import APPOINTMENT_STATUSES
from app.services.shopify_auth import add_document_response_headers, embedded_query

STATUS_TONES = {
    "confirmed": "success",
    "completed": "info",
    "cancelled": "critical",
}

NAV_LINKS = (
    ("/app", "Dashboard"),
    ("/app/appointments", "Appointments"),
    ("/app/barbers", "Barbers"),
    ("/app/services", "Services"),
    ("/app/inquiries", "Inquiries"),
)


def _e(value: Any) -> str:
    if value is None:
        return ""
    return escape(str(value), quote=True)


def _date(value: str | None) -> str:
    if not value:
        return ""
    return _e(value[:10])


def _badge(label: str, tone: str) -> str:
    return f"<span class='badge badge-{tone}'>{_e(label)}</span>"


def _status_badge(status: str) -> str:
    return _badge(status, STATUS_TONES.get(status, "warning"))


def _table(headings: Iterable[str], rows: list[list[str]], empty: str) -> str:
    if not rows:
        return f"<p class='subdued'>{_e(empty)}</p>"
    head = "".join(f"<th>{_e(heading)}</th>" for heading in headings)
    body = "".join("<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>" for row in rows)
    return f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"


def _options(pairs: Iterable[tuple[Any, str]], selected: Any = None) -> str:
    rendered = []
    for value, label in pairs:
        mark = " selected" if str(value) == str(selected) else ""
        rendered.append(f"<option value='{_e(value)}'{mark}>{_e(label)}</option>")
    return "".join(rendered)


def _layout(title: str, body: str, nav_query: str = "") -> str:
    nav = "".join(f"<a href='{_e(href + nav_query)}'>{_e(label)}</a>" for href, label in NAV_LINKS)
    return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width,initial-scale=1" />
  <meta name="shopify-api-key" content="{_e(SHOPIFY_API_KEY)}" />
  <script src="https://cdn.shopify.com/shopifycloud/app-bridge.js"></script>
  <title>{_e(title)}</title>
  <style>
    body {{ margin: 0; font-family: -apple-system, BlinkMacSystemFont, "San Francisco", "Segoe UI", Roboto, sans-serif;
           background: #f1f2f4; color: #303030; }}
    nav {{ display: flex; gap: 16px; padding: 12px 20px; background: #fff; border-bottom: 1px solid #e3e3e3; }}
    nav a {{ color: #005bd3; text-decoration: none; font-size: 14px; }}
    main {{ max-width: 1100px; margin: 0 auto; padding: 20px; }}
    h1 {{ font-size: 20px; }}
    .card {{ background: #fff; border-radius: 12px; padding: 16px; margin-bottom: 16px;
             box-shadow: 0 1px 0 rgba(26,26,26,.07); }}
    .grid {{ display: grid; grid-template-columns: repeat(4, 1fr); gap: 16px; }}
    .stat {{ font-size: 28px; font-weight: 600; color: #29845a; }}
    table {{ width: 100%; border-collapse: collapse; font-size: 13px; }}
    th, td {{ text-align: left; padding: 8px; border-bottom: 1px solid #ebebeb; vertical-align: top; }}
    .badge {{ padding: 2px 8px; border-radius: 8px; font-size: 12px; }}
    .badge-success {{ background: #cdfee1; }}
    .badge-info {{ background: #e0f0ff; }}
    .badge-critical {{ background: #fedad9; }}
    .badge-warning {{ background: #ffef9d; }}
    .subdued {{ color: #616161; }}
    form.inline {{ display: inline; }}
    label {{ display: block; font-size: 12px; margin: 8px 0 4px; }}
    input, select, textarea {{ width: 100%; padding: 6px 8px; border: 1px solid #8a8a8a; border-radius: 8px; }}
    button {{ margin-top: 10px; padding: 6px 12px; border-radius: 8px; border: none; background: #303030;
              color: #fff; cursor: pointer; }}
    button.plain {{ background: none; color: #005bd3; padding: 0; margin: 0; }}
    button.danger {{ background: #c70a24; }}
  </style>
</head>
<body>
  <nav>{nav}</nav>
  <main>
    <h1>{_e(title)}</h1>
    {body}
  </main>
  <script>
    document.querySelectorAll("form[data-action]").forEach(function (form) {{
      form.addEventListener("submit", async function (event) {{
        event.preventDefault();
        if (form.dataset.confirm && !window.confirm(form.dataset.confirm)) {{
          return;
        }}
        const response = await fetch(window.location.pathname, {{ method: "POST", body: new FormData(form) }});
        const payload = await response.json().catch(function () {{ return {{}}; }});
        if (!response.ok || payload.success === false) {{
          window.alert(payload.error || "Request failed");
          return;
        }}
        window.location.assign(window.location.pathname + {json.dumps(nav_query)});
      }});
    }});
  </script>
</body>
</html>"""


def render_dashboard(
    shop: dict[str, Any],
    stats: dict[str, int],
    recent_appointments: list[dict[str, Any]],
    pending_inquiries: list[dict[str, Any]],
    nav_query: str = "",
) -> str:
    cards = "".join(
        f"<div class='card'><div>{_e(label)}</div><div class='stat'>{stats.get(key, 0)}</div></div>"
        for key, label in (
            ("barbers", "Barbers"),
            ("services", "Services"),
            ("appointments", "Appointments"),
            ("inquiries", "Inquiries"),
        )
    )

    appointment_rows = []
    for appointment in recent_appointments:
        service = (appointment.get("service") or {}).get("name", "")
        barber = (appointment.get("barber") or {}).get("name") or "Any barber"
        appointment_rows.append(
            [
                f"<strong>{_e(appointment['customerName'])}</strong>",
                f"{_e(service)} with {_e(barber)}",
                _date(appointment.get("appointmentDate")),
                _badge(appointment["status"], "success" if appointment["status"] == "confirmed" else "info"),
            ]
        )

    inquiry_rows = [
        [
            f"<strong>{_e(inquiry['name'])}</strong>",
            f"{_e((inquiry.get('message') or '')[:100])}...",
            _date(inquiry.get("createdAt")),
        ]
        for inquiry in pending_inquiries
    ]

    body = f"""
    <p>Welcome to your Barber Shop Management App, {_e(shop.get('shopName'))}.</p>
    <div class="grid">{cards}</div>
    <div class="card">
      <h2>Recent Appointments</h2>
      {_table(["Customer", "Service", "Date", "Status"], appointment_rows, "No appointments yet")}
      <a href="{_e('/app/appointments' + nav_query)}">View all appointments</a>
    </div>
    <div class="card">
      <h2>Pending Inquiries</h2>
      {_table(["Name", "Message", "Received"], inquiry_rows, "No pending inquiries")}
      <a href="{_e('/app/inquiries' + nav_query)}">View all inquiries</a>
    </div>"""
    return _layout("Barber Shop Dashboard", body, nav_query)


def render_appointments(
    appointments: list[dict[str, Any]],
    services: list[dict[str, Any]],
    barbers: list[dict[str, Any]],
    nav_query: str = "",
) -> str:
    status_pairs = [(status, status.capitalize()) for status in APPOINTMENT_STATUSES]
    rows = []
    for appointment in appointments:
        service = (appointment.get("service") or {}).get("name", "")
        barber = (appointment.get("barber") or {}).get("name") or "Any barber"
        status_form = f"""<form class="inline" data-action="updateStatus">
          <input type="hidden" name="action" value="updateStatus" />
          <input type="hidden" name="id" value="{appointment['id']}" />
          <select name="status" onchange="this.form.requestSubmit()">{_options(status_pairs, appointment['status'])}</select>
        </form>"""
        rows.append(
            [
                _e(appointment["customerName"]),
                _e(appointment["customerEmail"]),
                _e(service),
                _e(barber),
                _date(appointment.get("appointmentDate")),
                _status_badge(appointment["status"]),
                status_form,
            ]
        )

    service_options = _options(
        [("", "Select a service")] + [(s["id"], f"{s['name']} - {s.get('price') or ''}") for s in services]
    )
    barber_options = _options([("", "Any available barber")] + [(b["id"], b["name"]) for b in barbers])

    body = f"""
    <div class="card">
      {_table(["Customer", "Email", "Service", "Barber", "Date", "Status", "Actions"], rows, "No appointments yet")}
    </div>
    <div class="card">
      <h2>Book New Appointment</h2>
      <form data-action="create">
        <input type="hidden" name="action" value="create" />
        <label>Customer Name</label><input name="customerName" autocomplete="off" />
        <label>Customer Email</label><input name="customerEmail" type="email" autocomplete="off" />
        <label>Customer Phone</label><input name="customerPhone" type="tel" autocomplete="off" />
        <label>Service</label><select name="serviceId">{service_options}</select>
        <label>Barber (Optional)</label><select name="barberId">{barber_options}</select>
        <label>Appointment Date &amp; Time</label><input name="appointmentDate" type="datetime-local" />
        <label>Notes (Optional)</label><textarea name="notes" rows="3"></textarea>
        <button type="submit">Book Appointment</button>
      </form>
    </div>"""
    return _layout("Appointment Management", body, nav_query)


def _active_badge(is_active: bool) -> str:
    return _badge("Active" if is_active else "Inactive", "success" if is_active else "critical")


def _delete_form(record_id: int, prompt: str) -> str:
    return f"""<form class="inline" data-action="delete" data-confirm="{_e(prompt)}">
      <input type="hidden" name="action" value="delete" />
      <input type="hidden" name="id" value="{record_id}" />
      <button class="plain" type="submit">Delete</button>
    </form>"""


def _edit_form(record: dict[str, Any], fields: list[tuple[str, str, str]]) -> str:
    inputs = "".join(
        f"<label>{_e(label)}</label>"
        + (
            f"<textarea name='{name}' rows='3'>{_e(record.get(name))}</textarea>"
            if kind == "textarea"
            else f"<input name='{name}' value='{_e(record.get(name))}' autocomplete='off' />"
        )
        for name, label, kind in fields
    )
    status_select = _options([("true", "Active"), ("false", "Inactive")], "true" if record.get("isActive") else "false")
    return f"""<details><summary>Edit</summary>
      <form data-action="update">
        <input type="hidden" name="action" value="update" />
        <input type="hidden" name="id" value="{record['id']}" />
        {inputs}
        <label>Status</label><select name="isActive">{status_select}</select>
        <button type="submit">Save</button>
      </form>
    </details>"""


def _create_form(title: str, fields: list[tuple[str, str, str]]) -> str:
    inputs = "".join(
        f"<label>{_e(label)}</label>"
        + (f"<textarea name='{name}' rows='3'></textarea>" if kind == "textarea" else f"<input name='{name}' autocomplete='off' />")
        for name, label, kind in fields
    )
    return f"""<div class="card">
      <h2>{_e(title)}</h2>
      <form data-action="create">
        <input type="hidden" name="action" value="create" />
        {inputs}
        <button type="submit">{_e(title)}</button>
      </form>
    </div>"""


BARBER_FIELDS = [
    ("name", "Name", "text"),
    ("specialty", "Specialty", "text"),
    ("bio", "Bio", "textarea"),
    ("imageUrl", "Image URL", "text"),
]

SERVICE_FIELDS = [
    ("name", "Service Name", "text"),
    ("description", "Description", "textarea"),
    ("price", "Price", "text"),
    ("duration", "Duration", "text"),
]


def render_barbers(barbers: list[dict[str, Any]], nav_query: str = "") -> str:
    rows = [
        [
            _e(barber["name"]),
            _e(barber.get("specialty") or "General"),
            _active_badge(barber["isActive"]),
            _edit_form(barber, BARBER_FIELDS) + _delete_form(barber["id"], "Are you sure you want to delete this barber?"),
        ]
        for barber in barbers
    ]
    body = f"""
    <div class="card">
      <h2>Your Barbers</h2>
      {_table(["Name", "Specialty", "Status", "Actions"], rows, "No barbers yet")}
    </div>
    {_create_form("Add Barber", BARBER_FIELDS)}"""
    return _layout("Barber Management", body, nav_query)


def render_services(services: list[dict[str, Any]], nav_query: str = "") -> str:
    rows = [
        [
            _e(service["name"]),
            _e(service.get("price")),
            _e(service.get("duration")),
            _active_badge(service["isActive"]),
            _edit_form(service, SERVICE_FIELDS)
            + _delete_form(service["id"], "Are you sure you want to delete this service?"),
        ]
        for service in services
    ]
    body = f"""
    <div class="card">
      <h2>Your Services</h2>
      {_table(["Name", "Price", "Duration", "Status", "Actions"], rows, "No services yet")}
    </div>
    {_create_form("Add Service", SERVICE_FIELDS)}"""
    return _layout("Service Management", body, nav_query)


def render_inquiries(inquiries: list[dict[str, Any]], nav_query: str = "") -> str:
    rows = [
        [
            _e(inquiry["name"]),
            _e(inquiry.get("email")),
            _e(inquiry.get("message")),
            _status_badge(inquiry["status"]) if inquiry["status"] != "new" else _badge("new", "critical"),
            _date(inquiry.get("createdAt")),
        ]
        for inquiry in inquiries
    ]
    body = f"""
    <div class="card">
      {_table(["Name", "Email", "Message", "Status", "Received"], rows, "No inquiries yet")}
    </div>"""
    return _layout("Customer Inquiries", body, nav_query)


def page_response(content: str, shop_domain: str | None) -> HTMLResponse:
    response = HTMLResponse(content)
    add_document_response_headers(response, shop_domain)
    return response


def page_query(request: Request, shop_domain: str) -> str:
    """Query string that keeps links and reloads inside the embedded admin."""
    return "?" + urlencode(embedded_query(request.query_params, shop_domain))


def render_session_token_bounce() -> str:
    # App Bridge reads shopify-reload and navigates there with a fresh id_token
    return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="shopify-api-key" content="{_e(SHOPIFY_API_KEY)}" />
  <script src="https://cdn.shopify.com/shopifycloud/app-bridge.js"></script>
</head>
<body></body>
</html>"""
