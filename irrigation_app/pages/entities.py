"""
Entity list pages
- One table + form dialog builder shared by every mirrored entity
- Columns and form fields are declared per page below
"""
import reflex as rx
from typing import Dict, List

from irrigation_app.components.layout import live_indicator, shell
from irrigation_app.components.status_badge import status_badge
from irrigation_app.states.entities import (
    AlertsState,
    AreasState,
    CanalsState,
    GatesState,
    MonitoringState,
)
from irrigation_app.states.session import SessionState


def _cell(record, key: str, kind: str) -> rx.Component:
    if kind == "status":
        return rx.table.cell(status_badge(record[key]))
    return rx.table.cell(record[key])


def _row(state, columns: List[tuple], editable: bool):
    def render(record: Dict) -> rx.Component:
        actions = rx.table.cell(
            rx.cond(
                SessionState.can_manage,
                rx.hstack(
                    rx.icon_button(rx.icon("pencil", size=14), size="1", variant="ghost",
                                   on_click=state.open_edit(record)),
                    rx.icon_button(rx.icon("trash-2", size=14), size="1", variant="ghost", color_scheme="red",
                                   on_click=state.delete_record(record["id"])),
                    spacing="1",
                ),
            )
        )
        cells = [_cell(record, key, kind) for key, _, kind in columns]
        if editable:
            cells.append(actions)
        return rx.table.row(*cells)
    return render


def entity_table(state, columns: List[tuple], rows: rx.Var, editable: bool = True) -> rx.Component:
    """columns: (record key, header, kind) where kind is "text" or "status"."""
    headers = [rx.table.column_header_cell(title) for _, title, _ in columns]
    if editable:
        headers.append(rx.table.column_header_cell(""))
    return rx.cond(
        state.loading & (state.record_count == 0),
        rx.center(rx.spinner(size="3"), padding="8"),
        rx.cond(
            rows.length() > 0,
            rx.table.root(
                rx.table.header(rx.table.row(*headers)),
                rx.table.body(rx.foreach(rows, _row(state, columns, editable))),
                variant="surface",
                width="100%",
            ),
            rx.center(rx.text("Belum ada data", color="gray"), padding="8"),
        ),
    )


def _field(state, field: Dict) -> rx.Component:
    name = field["name"]
    default = state.editing[name].to(str)
    kind = field.get("kind", "text")
    if kind == "choice":
        control = rx.select(field["choices"], name=name, default_value=rx.cond(default != "", default, field["choices"][0]))
    elif kind == "options":
        control = rx.el.select(
            rx.foreach(field["options"], lambda o: rx.el.option(o["name"], value=o["id"])),
            name=name,
            default_value=default,
            class_name="w-full border border-gray-300 rounded-md p-2",
        )
    else:
        extra = {"type": "number", "step": "any"} if kind == "number" else {"type": "text"}
        control = rx.input(
            name=name,
            default_value=default,
            required=field.get("required", False),
            **extra,
        )
    return rx.vstack(rx.text(field["label"], size="2", weight="medium"), control, spacing="1", width="100%")


def form_dialog(state, title: str, fields: List[Dict]) -> rx.Component:
    return rx.dialog.root(
        rx.dialog.content(
            rx.dialog.title(rx.cond(state.editing_id != "", f"Ubah {title}", f"Tambah {title}")),
            rx.form(
                rx.vstack(
                    *[_field(state, f) for f in fields],
                    rx.hstack(
                        rx.dialog.close(rx.button("Batal", variant="soft", color_scheme="gray", type="button")),
                        rx.button(
                            rx.cond(state.is_saving, "Menyimpan...", "Simpan"),
                            type="submit",
                            disabled=state.is_saving,
                            loading=state.is_saving,
                        ),
                        justify="end",
                        width="100%",
                    ),
                    spacing="3",
                ),
                on_submit=state.save_record,
            ),
        ),
        open=state.dialog_open,
        on_open_change=state.set_dialog_open,
    )


def page_header(state, title: str, subtitle: str, can_add: rx.Var) -> rx.Component:
    return rx.hstack(
        rx.vstack(
            rx.heading(title, size="6"),
            rx.text(subtitle, size="2", color="gray"),
            live_indicator(state.live, state.last_update),
            spacing="1",
            align="start",
        ),
        rx.spacer(),
        rx.input(
            placeholder="Cari...",
            value=state.search_query,
            on_change=state.set_search_query,
            width="220px",
        ),
        rx.cond(
            can_add,
            rx.button(rx.icon("plus", size=16), "Tambah", on_click=state.open_create),
        ),
        width="100%",
        align="center",
        class_name="mb-4",
    )


def error_banner(state) -> rx.Component:
    return rx.cond(
        state.error_message != "",
        rx.callout(state.error_message, icon="triangle-alert", color_scheme="red", class_name="mb-4"),
    )


def areas_page() -> rx.Component:
    return shell(
        page_header(AreasState, "Daerah Irigasi", "Kelola daerah irigasi", SessionState.can_manage),
        error_banner(AreasState),
        entity_table(
            AreasState,
            [("name", "Nama", "text"), ("location", "Lokasi", "text"),
             ("total_area", "Luas (ha)", "text"), ("status", "Status", "status")],
            AreasState.filtered_records,
        ),
        form_dialog(AreasState, "Daerah", [
            {"name": "name", "label": "Nama", "required": True},
            {"name": "location", "label": "Lokasi", "required": True},
            {"name": "total_area", "label": "Luas (ha)", "kind": "number", "required": True},
            {"name": "status", "label": "Status", "kind": "choice", "choices": ["active", "maintenance", "inactive"]},
            {"name": "lat", "label": "Latitude", "kind": "number"},
            {"name": "lng", "label": "Longitude", "kind": "number"},
        ]),
        on_mount=AreasState.on_mount,
        on_unmount=AreasState.on_unmount,
        active_route="/areas",
    )


def canals_page() -> rx.Component:
    return shell(
        page_header(CanalsState, "Saluran", "Kelola saluran irigasi", SessionState.can_manage),
        error_banner(CanalsState),
        entity_table(
            CanalsState,
            [("name", "Nama", "text"), ("area_name", "Daerah", "text"), ("length", "Panjang (m)", "text"),
             ("width", "Lebar (m)", "text"), ("capacity", "Kapasitas (m³/s)", "text"), ("status", "Status", "status")],
            CanalsState.visible_canals,
        ),
        form_dialog(CanalsState, "Saluran", [
            {"name": "name", "label": "Nama", "required": True},
            {"name": "area_id", "label": "Daerah", "kind": "options", "options": CanalsState.area_options},
            {"name": "length", "label": "Panjang (m)", "kind": "number", "required": True},
            {"name": "width", "label": "Lebar (m)", "kind": "number", "required": True},
            {"name": "capacity", "label": "Kapasitas (m³/s)", "kind": "number", "required": True},
            {"name": "status", "label": "Status", "kind": "choice", "choices": ["good", "needs_repair", "critical"]},
            {"name": "last_inspection", "label": "Inspeksi terakhir (YYYY-MM-DD)"},
        ]),
        on_mount=[CanalsState.on_mount, CanalsState.load_options],
        on_unmount=CanalsState.on_unmount,
        active_route="/canals",
    )


def gates_page() -> rx.Component:
    return shell(
        page_header(GatesState, "Pintu Air", "Kelola pintu air", SessionState.can_manage),
        error_banner(GatesState),
        rx.select(
            ["all", "open", "closed", "partial"],
            value=GatesState.status_filter,
            on_change=GatesState.set_status_filter,
            class_name="mb-4",
        ),
        entity_table(
            GatesState,
            [("name", "Nama", "text"), ("canal_name", "Saluran", "text"), ("type", "Tipe", "text"),
             ("status", "Status", "status"), ("condition", "Kondisi", "status")],
            GatesState.visible_gates,
        ),
        form_dialog(GatesState, "Pintu Air", [
            {"name": "name", "label": "Nama", "required": True},
            {"name": "canal_id", "label": "Saluran", "kind": "options", "options": GatesState.canal_options},
            {"name": "type", "label": "Tipe", "kind": "choice", "choices": ["intake", "distribution", "drainage"]},
            {"name": "status", "label": "Status", "kind": "choice", "choices": ["open", "closed", "partial"]},
            {"name": "condition", "label": "Kondisi", "kind": "choice", "choices": ["good", "fair", "poor"]},
            {"name": "last_maintenance", "label": "Pemeliharaan terakhir (YYYY-MM-DD)"},
        ]),
        on_mount=[GatesState.on_mount, GatesState.load_options],
        on_unmount=GatesState.on_unmount,
        active_route="/gates",
    )


def monitoring_page() -> rx.Component:
    summary = MonitoringState.summary
    return shell(
        page_header(MonitoringState, "Monitoring", "100 pembacaan terbaru", SessionState.is_authenticated),
        error_banner(MonitoringState),
        rx.grid(
            rx.text("Hari ini: ", summary["today"]),
            rx.text("Waspada: ", summary["warning"]),
            rx.text("Kritis: ", summary["critical"]),
            columns="3",
            spacing="4",
            class_name="mb-4",
        ),
        entity_table(
            MonitoringState,
            [("recorded_at", "Waktu", "text"), ("gate_name", "Pintu Air", "text"),
             ("water_level", "Tinggi Muka Air (m)", "text"), ("discharge", "Debit (m³/s)", "text"),
             ("condition", "Kondisi", "status")],
            MonitoringState.visible_readings,
        ),
        form_dialog(MonitoringState, "Pembacaan", [
            {"name": "gate_id", "label": "Pintu Air", "kind": "options", "options": MonitoringState.gate_options},
            {"name": "water_level", "label": "Tinggi Muka Air (m)", "kind": "number", "required": True},
            {"name": "discharge", "label": "Debit (m³/s)", "kind": "number", "required": True},
            {"name": "condition", "label": "Kondisi", "kind": "choice", "choices": ["normal", "warning", "critical"]},
            {"name": "notes", "label": "Catatan"},
            {"name": "video_url", "label": "URL Video"},
        ]),
        on_mount=[MonitoringState.on_mount, MonitoringState.load_options],
        on_unmount=MonitoringState.on_unmount,
        active_route="/monitoring",
    )


def alert_item(alert: Dict) -> rx.Component:
    return rx.hstack(
        status_badge(alert["type"]),
        rx.vstack(
            rx.text(alert["title"], size="3", weight="medium"),
            rx.text(alert["location"], " - ", alert["created_at"], size="1", color="gray"),
            spacing="0",
            align="start",
        ),
        rx.spacer(),
        rx.cond(
            alert["is_read"],
            rx.badge("Dibaca", variant="soft", color_scheme="gray"),
            rx.cond(
                SessionState.is_authenticated,
                rx.button("Tandai dibaca", size="1", variant="soft", on_click=AlertsState.mark_read(alert["id"])),
            ),
        ),
        width="100%",
        class_name="p-3 bg-white border border-gray-200 rounded-lg",
    )


def alerts_list() -> rx.Component:
    return rx.vstack(
        rx.foreach(AlertsState.filtered_records, alert_item),
        spacing="2",
        width="100%",
    )


def alerts_page() -> rx.Component:
    return shell(
        rx.hstack(
            rx.vstack(
                rx.heading("Notifikasi", size="6"),
                rx.text(AlertsState.unread_count, " belum dibaca", size="2", color="gray"),
                live_indicator(AlertsState.live, AlertsState.last_update),
                spacing="1",
                align="start",
            ),
            rx.spacer(),
            rx.cond(
                SessionState.is_authenticated,
                rx.button("Tandai semua dibaca", variant="soft", on_click=AlertsState.mark_all_read),
            ),
            width="100%",
            class_name="mb-4",
        ),
        error_banner(AlertsState),
        alerts_list(),
        on_mount=AlertsState.on_mount,
        on_unmount=AlertsState.on_unmount,
        active_route="/alerts",
    )
