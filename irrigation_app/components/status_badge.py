import reflex as rx

# status value -> (label, icon, color)
STATUS_STYLES = {
    "active": ("Aktif", "check", "green"),
    "maintenance": ("Pemeliharaan", "wrench", "yellow"),
    "inactive": ("Nonaktif", "ban", "gray"),
    "good": ("Baik", "check", "green"),
    "fair": ("Cukup", "minus", "yellow"),
    "poor": ("Buruk", "triangle-alert", "red"),
    "needs_repair": ("Perlu Perbaikan", "wrench", "orange"),
    "critical": ("Kritis", "octagon-alert", "red"),
    "open": ("Terbuka", "door-open", "green"),
    "closed": ("Tertutup", "door-closed", "gray"),
    "partial": ("Sebagian", "circle-dot", "yellow"),
    "normal": ("Normal", "check", "green"),
    "warning": ("Waspada", "triangle-alert", "yellow"),
    "info": ("Info", "info", "blue"),
}


def _badge(status: str):
    label, icon, color = STATUS_STYLES.get(status, (status, "circle", "gray"))
    return rx.badge(
        rx.icon(icon, size=14),
        label,
        color_scheme=color,
        radius="large",
        variant="surface",
        size="1",
    )


def status_badge(status):
    # rx.match avoids Python truthiness on Vars
    return rx.match(
        status,
        *[(key, _badge(key)) for key in STATUS_STYLES],
        rx.badge(status, variant="surface", size="1"),
    )
