"""Dashboard page: summary tiles, latest alerts and recent video readings"""
import reflex as rx
from typing import Dict

from irrigation_app.components.layout import live_indicator, shell, stat_card
from irrigation_app.components.status_badge import status_badge
from irrigation_app.pages.entities import alerts_list
from irrigation_app.states.dashboard import DashboardState
from irrigation_app.states.entities import AlertsState, MonitoringState


def video_item(reading: Dict) -> rx.Component:
    return rx.hstack(
        rx.icon("video", size=16),
        rx.vstack(
            rx.link(reading["gate_name"], href=reading["video_url"], is_external=True, weight="medium"),
            rx.text(reading["recorded_at"], size="1", color="gray"),
            spacing="0",
            align="start",
        ),
        rx.spacer(),
        status_badge(reading["condition"]),
        width="100%",
        class_name="p-2 border-b border-gray-100",
    )


def dashboard_page() -> rx.Component:
    stats = DashboardState.stats
    return shell(
        rx.hstack(
            rx.heading("Dashboard", size="6"),
            rx.spacer(),
            live_indicator(DashboardState.live, DashboardState.last_update),
            width="100%",
            class_name="mb-4",
        ),
        rx.cond(
            DashboardState.error_message != "",
            rx.callout(DashboardState.error_message, icon="triangle-alert", color_scheme="red", class_name="mb-4"),
        ),
        rx.grid(
            stat_card("Daerah Irigasi", stats["total_areas"], icon="map"),
            stat_card("Saluran", stats["total_canals"], icon="waves"),
            stat_card("Pintu Air", stats["total_gates"], icon="door-open"),
            stat_card("Data Monitoring", stats["active_monitoring"], icon="activity"),
            stat_card("Peringatan Kritis", stats["critical_alerts"], subtitle="belum dibaca", icon="octagon-alert"),
            stat_card("Volume Air", DashboardState.water_volume_label, icon="droplets"),
            columns=rx.breakpoints(initial="1", sm="2", lg="3"),
            spacing="4",
            width="100%",
        ),
        rx.grid(
            rx.card(
                rx.heading("Peringatan Terbaru", size="4", class_name="mb-2"),
                alerts_list(),
            ),
            rx.card(
                rx.heading("Video Terbaru", size="4", class_name="mb-2"),
                rx.foreach(MonitoringState.videos, video_item),
            ),
            columns=rx.breakpoints(initial="1", lg="2"),
            spacing="4",
            width="100%",
            class_name="mt-6",
        ),
        on_mount=[DashboardState.on_mount, AlertsState.on_mount, MonitoringState.on_mount],
        on_unmount=[DashboardState.on_unmount, AlertsState.on_unmount, MonitoringState.on_unmount],
        active_route="/",
    )
