"""Session state: signed-in actor, role gates and the shared sidebar toggle."""
import reflex as rx
from reflex.utils import console

from irrigation_app.auth import Actor, RoleDirectory, can_manage, can_manage_users, ROLE_LABELS
from irrigation_app.runtime import runtime
from irrigation_app.sync.errors import StoreError


class SessionState(rx.State):
    """Actor resolved from the identity service's user id cookie"""

    # Set by the external identity service after sign-in
    user_id: str = rx.Cookie("", name="irrigation_user")

    user_name: str = ""
    role: str = ""
    sidebar_collapsed: bool = False

    def toggle_sidebar(self):
        self.sidebar_collapsed = not self.sidebar_collapsed

    def actor(self) -> Actor | None:
        if not self.user_id or not self.role:
            return None
        return Actor(id=self.user_id, name=self.user_name, role=self.role)

    @rx.var
    def is_authenticated(self) -> bool:
        return bool(self.user_id and self.role)

    @rx.var
    def can_manage(self) -> bool:
        return can_manage(self.actor())

    @rx.var
    def can_manage_users(self) -> bool:
        return can_manage_users(self.actor())

    @rx.var
    def role_label(self) -> str:
        return ROLE_LABELS.get(self.role, "")

    @rx.event(background=True)
    async def load_actor(self):
        """Resolve profile and role for the cookie's user id"""
        async with self:
            user_id = self.user_id

        if not user_id:
            return

        registry = runtime.require()
        try:
            actor = await RoleDirectory(registry.context.store).resolve(user_id)
        except StoreError as e:
            console.error(f"Actor lookup failed: {e}")
            yield rx.toast.error("Failed to load user profile")
            return

        async with self:
            if actor is None:
                self.user_name = ""
                self.role = ""
            else:
                self.user_name = actor.name
                self.role = actor.role

    @rx.event
    def logout(self):
        self.user_id = ""
        self.user_name = ""
        self.role = ""
        return rx.redirect("/")
