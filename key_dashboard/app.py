#!/usr/bin/env python3
"""
API Key Dashboard TUI

A terminal dashboard for managing API key records, built with Textual.
It talks to the key service (``key-dashboard-server``) over HTTP and keeps
a local mirror of the key list that only changes once the service confirms.

Run:
  key-dashboard
  python -m key_dashboard
"""

from __future__ import annotations

from datetime import datetime, timezone
from functools import partial

from dotenv import load_dotenv
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.command import Hit, Hits, Provider
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    RichLog,
    Rule,
    Static,
    TabbedContent,
    TabPane,
)

from key_dashboard import __version__
from key_dashboard.client import KeysApiClient
from key_dashboard.config import DashboardConfig
from key_dashboard.controller import DashboardController
from key_dashboard.screens import ConfirmScreen, HelpScreen, KeyFormScreen

EMPTY_STATE = "No keys yet. Create one to get started."


# ---------------------------------------------------------------------------
# Command palette provider
# ---------------------------------------------------------------------------


class KeyDashboardCommands(Provider):
    """Command palette provider for the dashboard actions."""

    async def search(self, query: str) -> Hits:
        app = self.app
        assert isinstance(app, KeyDashboardApp)

        commands: list[tuple[str, str, str]] = [
            ("Create Key", "Create a new API key", "create"),
            ("Edit Key", "Edit the selected key", "edit"),
            ("Refresh", "Refresh the key list", "refresh"),
            ("Revoke / Restore Key", "Toggle the selected key's status", "toggle_revoke"),
            ("Delete Key", "Delete the selected key", "delete"),
            ("Help", "Show keyboard shortcuts", "help"),
            ("Switch to Keys Tab", "Show the keys table", "tab_keys"),
            ("Switch to Activity Tab", "Show the activity log", "tab_activity"),
            ("Quit", "Exit the application", "quit"),
        ]

        matcher = self.matcher(query)
        for name, description, action in commands:
            score = matcher.match(name)
            if score > 0:
                yield Hit(
                    score,
                    matcher.highlight(name),
                    partial(app.run_action, action),
                    help=description,
                )


# ---------------------------------------------------------------------------
# Main application
# ---------------------------------------------------------------------------


class KeyDashboardApp(App):
    """API Key Dashboard."""

    COMMANDS = {KeyDashboardCommands}

    CSS = """
    /* ── Layout ─────────────────────────────────────────────── */

    #status-row {
        height: 1;
        background: $primary-background-darken-2;
        padding: 0 2;
    }

    #conn-status {
        width: 1fr;
    }

    #key-count {
        width: auto;
        min-width: 16;
        text-align: right;
        color: $success;
    }

    #list-status {
        height: auto;
        padding: 0 2;
        color: $text-muted;
    }

    #list-status.error {
        color: $error;
    }

    /* ── Tabs ───────────────────────────────────────────────── */

    #main-tabs {
        height: 1fr;
    }

    #activity-log {
        height: 1fr;
        border: none;
        padding: 0 1;
    }

    /* ── Action bar ─────────────────────────────────────────── */

    #action-bar {
        height: auto;
        padding: 0 1;
        dock: bottom;
        background: $surface;
    }

    #action-bar Button {
        margin: 0 0 0 1;
        min-width: 12;
    }

    DataTable {
        height: 1fr;
    }

    DataTable > .datatable--cursor {
        background: $accent 30%;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", priority=True),
        Binding("f1", "help", "Help"),
        Binding("question_mark", "help", "Help", show=False),
        Binding("r", "refresh", "Refresh"),
        Binding("c", "create", "Create"),
        Binding("e", "edit", "Edit"),
        Binding("v", "toggle_revoke", "Revoke/Restore"),
        Binding("d", "delete", "Delete"),
        Binding("1", "tab_keys", "Keys tab", show=False),
        Binding("2", "tab_activity", "Activity tab", show=False),
    ]

    TITLE = "API Key Dashboard"
    SUB_TITLE = f"v{__version__}"

    def __init__(self, config: DashboardConfig | None = None) -> None:
        super().__init__()
        self.dashboard_config = config or DashboardConfig.from_env()
        self.client = KeysApiClient(
            self.dashboard_config.api_url, timeout=self.dashboard_config.timeout
        )
        self.controller = DashboardController(self.client, on_change=self._sync_view)
        self._form_screen: KeyFormScreen | None = None
        self._view_ready = False

    # ── Compose ─────────────────────────────────────────────

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        with VerticalScroll():
            with Horizontal(id="status-row"):
                yield Static(f" {self.client.name}: {self.client.display_info}", id="conn-status")
                yield Static("0 active keys", id="key-count")

            yield Rule()
            yield Static("", id="list-status")

            with TabbedContent(id="main-tabs"):
                with TabPane("Keys", id="tab-keys"):
                    yield DataTable(id="keys-table")
                with TabPane("Activity Log", id="tab-activity"):
                    yield RichLog(
                        id="activity-log",
                        highlight=True,
                        markup=True,
                    )

        with Horizontal(id="action-bar"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("Generate key", id="btn-create", variant="success")
            yield Button("Edit", id="btn-edit", variant="primary")
            yield Button("Revoke/Restore", id="btn-revoke", variant="warning")
            yield Button("Delete", id="btn-delete", variant="error")
            yield Button("Help", id="btn-help")

        yield Footer()

    # ── Lifecycle ───────────────────────────────────────────

    def on_mount(self) -> None:
        table = self.query_one("#keys-table", DataTable)
        table.add_columns(
            "Status",
            "Label",
            "Prefix",
            "Type",
            "Limit",
            "Created",
            "Last used",
            "ID",
        )
        table.cursor_type = "row"
        table.zebra_stripes = True
        self._view_ready = True

        self._log_activity(f"Application started ({self.client.display_info})")
        self.action_refresh()
        if self.dashboard_config.refresh_interval > 0:
            self.set_interval(self.dashboard_config.refresh_interval, self._do_auto_refresh)

    def _do_auto_refresh(self) -> None:
        self.action_refresh()

    # ── Activity log ────────────────────────────────────────

    def _log_activity(self, message: str, level: str = "info") -> None:
        """Write a timestamped entry to the activity log."""
        log = self.query_one("#activity-log", RichLog)
        now = datetime.now(timezone.utc).strftime("%H:%M:%S")
        color = {
            "info": "cyan",
            "success": "green",
            "warning": "yellow",
            "error": "red",
        }.get(level, "white")
        log.write(f"[dim]{now}[/dim]  [{color}]{message}[/{color}]")

    # ── Rendering ───────────────────────────────────────────

    def _sync_view(self) -> None:
        """Bring widgets in line with the controller state."""
        if not self._view_ready:
            return
        state = self.controller

        count = state.total_active
        self.query_one("#key-count", Static).update(
            f"{count} active key{'' if count == 1 else 's'}"
        )

        status = self.query_one("#list-status", Static)
        status.remove_class("error")
        if state.loading:
            status.update("Loading keys…")
        elif state.pending:
            status.update("Applying changes…")
        elif state.error:
            status.add_class("error")
            status.update(state.error)
        elif state.is_empty:
            status.update(EMPTY_STATE)
        else:
            status.update("")

        self._populate_table()

        if state.action_message:
            message = state.action_message
            state.action_message = None
            ok = message.endswith("successfully.")
            self.notify(message, severity="information" if ok else "error")
            self._log_activity(message, "success" if ok else "error")

        if not state.modal_open and self._form_screen is not None:
            screen, self._form_screen = self._form_screen, None
            if screen is self.screen:
                screen.dismiss()

    def _populate_table(self) -> None:
        table = self.query_one("#keys-table", DataTable)
        table.clear()
        for key in self.controller.keys:
            marker = (
                "[bold red]● revoked[/bold red]"
                if key.get("revoked")
                else "[bold green]● active [/bold green]"
            )
            limit = key.get("monthlyLimit")
            table.add_row(
                marker,
                key.get("label") or "—",
                f"{key.get('prefix', '?')}••••••",
                (key.get("keyType") or "?").capitalize(),
                f"{limit:,}" if key.get("limitEnabled") and limit else "—",
                _fmt_date(key.get("createdAt")),
                _fmt_date(key.get("lastUsed")),
                str(key.get("id", "?"))[:12] + "…",
                key=str(key.get("id", "")),
            )

    def _get_selected_key(self) -> dict | None:
        table = self.query_one("#keys-table", DataTable)
        if table.row_count == 0:
            self.notify("No keys in table", severity="warning")
            return None

        cursor = table.cursor_coordinate
        try:
            row_key = table.coordinate_to_cell_key(cursor).row_key
        except Exception:
            self.notify("Select a key in the table first", severity="warning")
            return None

        key = self.controller.find(str(row_key.value))
        if key is None:
            self.notify("Cannot identify selected key", severity="warning")
        return key

    # ── Event handlers ──────────────────────────────────────

    @on(DataTable.RowSelected, "#keys-table")
    def on_row_selected(self, event: DataTable.RowSelected) -> None:
        self.action_edit()

    @on(Button.Pressed, "#btn-refresh")
    def on_refresh_pressed(self) -> None:
        self.action_refresh()

    @on(Button.Pressed, "#btn-create")
    def on_create_pressed(self) -> None:
        self.action_create()

    @on(Button.Pressed, "#btn-edit")
    def on_edit_pressed(self) -> None:
        self.action_edit()

    @on(Button.Pressed, "#btn-revoke")
    def on_revoke_pressed(self) -> None:
        self.action_toggle_revoke()

    @on(Button.Pressed, "#btn-delete")
    def on_delete_pressed(self) -> None:
        self.action_delete()

    @on(Button.Pressed, "#btn-help")
    def on_help_pressed(self) -> None:
        self.action_help()

    # ── Actions ─────────────────────────────────────────────

    def action_help(self) -> None:
        self.push_screen(HelpScreen())

    def action_tab_keys(self) -> None:
        self.query_one("#main-tabs", TabbedContent).active = "tab-keys"

    def action_tab_activity(self) -> None:
        self.query_one("#main-tabs", TabbedContent).active = "tab-activity"

    @work(exclusive=True, group="refresh")
    async def action_refresh(self) -> None:
        await self.controller.refresh()
        if self.controller.error:
            self.notify(f"Refresh failed: {self.controller.error}", severity="error")
            self._log_activity(f"Refresh failed: {self.controller.error}", "error")
        else:
            self._log_activity(f"Refreshed: {len(self.controller.keys)} key(s) loaded")

    def _open_form(self) -> None:
        self._form_screen = KeyFormScreen(self.controller)
        self.push_screen(self._form_screen)

    def action_create(self) -> None:
        self.controller.open_create()
        self._open_form()

    def action_edit(self) -> None:
        key = self._get_selected_key()
        if not key:
            return
        self.controller.open_edit(key)
        self._open_form()

    def action_toggle_revoke(self) -> None:
        key = self._get_selected_key()
        if key:
            self._do_toggle_revoke(key)

    @work(group="mutate")
    async def _do_toggle_revoke(self, key: dict) -> None:
        next_state = not key.get("revoked")
        prefix = key.get("prefix", "?")
        if await self.controller.toggle_revoke(key["id"], next_state):
            verb = "Revoked" if next_state else "Restored"
            self.notify(f"{verb} key {prefix}…")
            self._log_activity(f"{verb} key [bold]{prefix}[/bold]", "warning")

    def action_delete(self) -> None:
        key = self._get_selected_key()
        if not key:
            return

        prefix = key.get("prefix", "?")

        def on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self._do_delete(key)

        self.push_screen(
            ConfirmScreen(
                title="Delete API Key",
                body=f"Delete key [bold]{prefix}[/bold]?\n"
                f"Label: {key.get('label') or '—'}\n"
                "The record is removed permanently.",
                confirm_label="Delete",
            ),
            on_confirm,
        )

    @work(group="mutate")
    async def _do_delete(self, key: dict) -> None:
        prefix = key.get("prefix", "?")
        if await self.controller.delete(key["id"]):
            self.notify(f"Key deleted: {prefix}")
            self._log_activity(f"Deleted key [bold]{prefix}[/bold]", "warning")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fmt_date(iso: str | None) -> str:
    if not iso:
        return "—"
    try:
        return datetime.fromisoformat(iso.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return iso[:19]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    load_dotenv()
    app = KeyDashboardApp()
    app.run()


if __name__ == "__main__":
    main()
