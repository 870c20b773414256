"""Reports page: period / area / condition filter over monitoring readings"""
import reflex as rx

from irrigation_app.components.layout import live_indicator, shell, stat_card
from irrigation_app.pages.entities import entity_table, error_banner
from irrigation_app.states.reports import ReportsState

CONDITIONS = ["all", "normal", "warning", "critical"]


def _labelled(label: str, control: rx.Component) -> rx.Component:
    return rx.vstack(rx.text(label, size="2", weight="medium"), control, spacing="1", width="100%")


def filter_card() -> rx.Component:
    return rx.card(
        rx.hstack(
            rx.icon("calendar", size=18),
            rx.heading("Filter Periode", size="3"),
            align="center",
            spacing="2",
            class_name="mb-3",
        ),
        rx.grid(
            _labelled(
                "Tanggal Mulai",
                rx.input(type="date", value=ReportsState.start_date, on_change=ReportsState.set_start_date),
            ),
            _labelled(
                "Tanggal Akhir",
                rx.input(type="date", value=ReportsState.end_date, on_change=ReportsState.set_end_date),
            ),
            _labelled(
                "Daerah Irigasi",
                rx.el.select(
                    rx.el.option("Semua Daerah", value="all"),
                    rx.foreach(ReportsState.area_options, lambda o: rx.el.option(o["name"], value=o["id"])),
                    value=ReportsState.area_filter,
                    on_change=ReportsState.set_area_filter,
                    class_name="w-full border border-gray-300 rounded-md p-2",
                ),
            ),
            _labelled(
                "Kondisi",
                rx.select(CONDITIONS, value=ReportsState.condition_filter, on_change=ReportsState.set_condition_filter),
            ),
            columns=rx.breakpoints(initial="1", sm="2", lg="4"),
            spacing="4",
            width="100%",
        ),
        rx.button("Atur ulang", variant="soft", size="1", on_click=ReportsState.reset_filters, class_name="mt-3"),
        width="100%",
        class_name="mb-4",
    )


def reports_page() -> rx.Component:
    summary = ReportsState.summary
    return shell(
        rx.hstack(
            rx.vstack(
                rx.heading("Laporan", size="6"),
                rx.text(ReportsState.period_label, size="2", color="gray"),
                live_indicator(ReportsState.live, ReportsState.last_update),
                spacing="1",
                align="start",
            ),
            width="100%",
            class_name="mb-4",
        ),
        error_banner(ReportsState),
        filter_card(),
        rx.grid(
            stat_card("Pembacaan", summary["total"], icon="activity"),
            stat_card("Waspada", summary["warning"], icon="triangle-alert"),
            stat_card("Kritis", summary["critical"], icon="octagon-alert"),
            stat_card("Rata-rata TMA (m)", summary["avg_water_level"], icon="ruler"),
            stat_card("Rata-rata Debit (m³/s)", summary["avg_discharge"], icon="waves"),
            columns=rx.breakpoints(initial="1", sm="2", lg="5"),
            spacing="4",
            width="100%",
            class_name="mb-4",
        ),
        entity_table(
            ReportsState,
            [("recorded_at", "Waktu", "text"), ("gate_name", "Pintu Air", "text"),
             ("water_level", "Tinggi Muka Air (m)", "text"), ("discharge", "Debit (m³/s)", "text"),
             ("condition", "Kondisi", "status")],
            ReportsState.rows,
            editable=False,
        ),
        on_mount=ReportsState.on_mount,
        on_unmount=ReportsState.on_unmount,
        active_route="/reports",
    )
