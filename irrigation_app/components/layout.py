import reflex as rx

from ..states.session import SessionState as S

MENU = [
    {"icon": "layout-dashboard", "name": "Dashboard", "path": "/", "desc": "Ringkasan irigasi"},
    {"icon": "map", "name": "Areas", "path": "/areas", "desc": "Daerah irigasi"},
    {"icon": "waves", "name": "Canals", "path": "/canals", "desc": "Saluran"},
    {"icon": "door-open", "name": "Gates", "path": "/gates", "desc": "Pintu air"},
    {"icon": "activity", "name": "Monitoring", "path": "/monitoring", "desc": "Tinggi muka air"},
    {"icon": "bell", "name": "Alerts", "path": "/alerts", "desc": "Notifikasi"},
    {"icon": "file-text", "name": "Reports", "path": "/reports", "desc": "Laporan"},
]


def collapsed_sidebar() -> rx.Component:
    """Icon-only sidebar"""
    return rx.box(
        rx.flex(
            rx.button(
                rx.icon("panel-left-open", size=20),
                variant="ghost",
                size="2",
                class_name="hover:bg-gray-100 rounded-lg p-2",
                on_click=S.toggle_sidebar,
            ),
            direction="column",
            align="center",
            class_name="pb-4 border-b border-gray-200",
        ),
        rx.vstack(
            *[
                rx.button(
                    rx.icon(menu["icon"], size=18),
                    variant="ghost",
                    size="3",
                    class_name="w-full hover:bg-blue-50",
                    on_click=lambda path=menu["path"]: rx.redirect(path),
                )
                for menu in MENU
            ],
            spacing="2",
            align="stretch",
            class_name="pt-4",
        ),
        height="100vh",
        width="64px",
        flex_shrink="0",
        class_name="hidden lg:flex flex-col border-r border-gray-200 bg-white shadow-lg sticky top-0",
    )


def nav_link(menu: dict, active: str) -> rx.Component:
    selected = active == menu["path"]
    color = "gray.300" if selected else "black"
    return rx.link(
        rx.flex(
            rx.icon(menu["icon"], size=20, color=color),
            rx.text(menu["name"], size="3", weight="bold" if selected else "medium", color=color),
            align="center",
            gap="3",
        ),
        href=menu["path"],
        title=menu["desc"],
        class_name=("w-full p-3 rounded-lg bg-black shadow-lg" if selected
                    else "w-full p-3 rounded-lg transition-all duration-200 hover:bg-gray-100 text-black"),
    )


def sidebar(active: str = "/") -> rx.Component:
    return rx.box(
        rx.flex(
            rx.button(
                rx.icon("panel-left-close", size=20),
                variant="ghost",
                size="2",
                class_name="hover:bg-gray-100 rounded-lg p-2",
                on_click=S.toggle_sidebar,
            ),
            rx.text("SIIRIGASI", size="5", weight="bold"),
            align="center",
            gap="3",
            width="100%",
            class_name="pb-4 border-b border-gray-200",
        ),
        rx.vstack(
            *[nav_link(menu, active) for menu in MENU],
            spacing="2",
            align="stretch",
            class_name="pt-6",
        ),
        rx.spacer(),
        rx.cond(
            S.is_authenticated,
            rx.vstack(
                rx.text(S.user_name, size="2", weight="medium"),
                rx.badge(S.role_label, variant="soft"),
                rx.button("Keluar", size="1", variant="ghost", on_click=S.logout),
                spacing="1",
                align="start",
                class_name="pt-4 border-t border-gray-200",
            ),
        ),
        height="100vh",
        width="256px",
        flex_shrink="0",
        class_name="hidden lg:flex flex-col border-r border-gray-200 bg-white shadow-lg sticky top-0 p-4",
    )


def live_indicator(live: rx.Var, last_update: rx.Var) -> rx.Component:
    """Push-update status next to page titles"""
    return rx.hstack(
        rx.cond(
            live,
            rx.badge(rx.icon("radio", size=12), "Live", color_scheme="green", variant="soft"),
            rx.badge(rx.icon("wifi-off", size=12), "Offline", color_scheme="gray", variant="soft"),
        ),
        rx.text(last_update, size="1", color="gray"),
        spacing="2",
        align="center",
    )


def stat_card(title: str, value: rx.Var | str, subtitle: str | None = None, icon: str = "bar-chart") -> rx.Component:
    return rx.el.div(
        rx.hstack(
            rx.el.span(title, class_name="text-xs font-medium text-gray-500"),
            rx.spacer(),
            rx.icon(icon, size=16, color="gray"),
            width="100%",
        ),
        rx.el.span(value, class_name="text-2xl font-semibold text-gray-900 mt-1"),
        rx.el.span(subtitle or "", class_name="text-xs text-gray-500 mt-1"),
        class_name="bg-white border border-gray-200 rounded-xl shadow-sm p-5 flex flex-col",
    )


def shell(*children: rx.Component, on_mount=None, on_unmount=None, active_route: str = "/") -> rx.Component:
    return rx.el.div(
        rx.cond(
            S.sidebar_collapsed,
            collapsed_sidebar(),
            sidebar(active_route),
        ),
        rx.el.div(
            rx.el.div(
                *children,
                class_name="w-full min-h-screen p-6",
            ),
            class_name="flex-1 min-h-screen bg-gray-50",
        ),
        class_name="w-full min-h-screen bg-white flex",
        on_mount=on_mount,
        on_unmount=on_unmount,
    )
