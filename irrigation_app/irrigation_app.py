"""
Irrigation Monitoring Dashboard
- List pages for areas, canals, gates, monitoring readings and alerts, plus reports
- Every page mirrors its table and follows changes pushed over LISTEN/NOTIFY
"""

import reflex as rx
from reflex.utils import console

from irrigation_app.runtime import sync_lifespan
from irrigation_app.utils.logger import setup_logging

from irrigation_app.pages.dashboard import dashboard_page
from irrigation_app.pages.entities import (
    alerts_page,
    areas_page,
    canals_page,
    gates_page,
    monitoring_page,
)
from irrigation_app.pages.reports import reports_page
from irrigation_app.states.session import SessionState

setup_logging()

# ============================================================================
# APP CONFIGURATION
# ============================================================================
app = rx.App(
    theme=rx.theme(
        appearance="light",
        has_background=True,
        radius="medium",
        accent_color="blue",
    ),
)

# Store, listener and pool live for the whole process
app.register_lifespan_task(sync_lifespan)

# ============================================================================
# PAGE REGISTRATION
# ============================================================================
PAGES = [
    (dashboard_page, "/", "Dashboard"),
    (areas_page, "/areas", "Daerah Irigasi"),
    (canals_page, "/canals", "Saluran"),
    (gates_page, "/gates", "Pintu Air"),
    (monitoring_page, "/monitoring", "Monitoring"),
    (alerts_page, "/alerts", "Notifikasi"),
    (reports_page, "/reports", "Laporan"),
]

for page, route, title in PAGES:
    app.add_page(
        page,
        route=route,
        title=f"{title} - SIIRIGASI",
        on_load=SessionState.load_actor,
    )

console.log(f"Irrigation app: {len(PAGES)} pages registered")
