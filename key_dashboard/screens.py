"""Modal screens for the key dashboard.

Screens:
  - KeyFormScreen:  Create / edit form bound to the controller's draft
  - ConfirmScreen:  Confirmation dialog for destructive actions
  - HelpScreen:     Keyboard shortcuts reference
"""

from __future__ import annotations

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    Input,
    Label,
    Select,
    Static,
    Switch,
)

from key_dashboard.controller import DashboardController
from key_dashboard.mapper import KeyType

KEY_TYPE_OPTIONS = [
    ("Development — rate limited to 100 requests/minute", KeyType.DEVELOPMENT.value),
    ("Production — rate limited to 1,000 requests/minute", KeyType.PRODUCTION.value),
]


# ---------------------------------------------------------------------------
# Key form screen
# ---------------------------------------------------------------------------


class KeyFormScreen(ModalScreen[None]):
    """Form for creating or editing a key.

    The screen only edits ``controller.form``; the app closes it once the
    controller resets its modal state.
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel", show=False)]

    CSS = """
    KeyFormScreen {
        align: center middle;
    }
    #form-dialog {
        width: 80;
        height: auto;
        max-height: 32;
        border: thick $accent;
        padding: 1 2;
        background: $surface;
    }
    .dialog-title {
        text-style: bold;
        color: $success;
        margin-bottom: 1;
    }
    .field-label {
        margin-top: 1;
        color: $text-muted;
    }
    .hint {
        color: $text-disabled;
    }
    #limit-row {
        height: auto;
        margin-top: 1;
    }
    #limit-row Label {
        padding: 1 1 0 0;
    }
    #form-buttons {
        margin-top: 1;
        height: auto;
        align-horizontal: right;
    }
    #form-buttons Button {
        margin-left: 1;
    }
    """

    def __init__(self, controller: DashboardController) -> None:
        super().__init__()
        self.controller = controller

    def compose(self) -> ComposeResult:
        form = self.controller.form
        title = "Edit API Key" if self.controller.editing else "Create API Key"
        with Vertical(id="form-dialog"):
            yield Label(title, classes="dialog-title")

            yield Label("Key name — a unique name to identify this key", classes="field-label")
            yield Input(value=form.label, placeholder="Key Name", id="key-label")

            yield Label("Key type — choose the environment for this key", classes="field-label")
            yield Select(
                KEY_TYPE_OPTIONS,
                id="key-type",
                value=form.key_type,
                allow_blank=False,
            )

            with Horizontal(id="limit-row"):
                yield Label("Limit monthly usage*")
                yield Switch(value=form.limit_enabled, id="limit-enabled")
            yield Input(
                value=form.monthly_limit,
                placeholder="1000",
                id="monthly-limit",
                type="integer",
                disabled=not form.limit_enabled,
            )
            yield Label(
                "*Limits are recorded with the key; they are not enforced here.",
                classes="hint",
            )

            with Horizontal(id="form-buttons"):
                yield Button("Cancel", id="btn-cancel-form")
                yield Button("Save", variant="success", id="btn-save")

    @on(Switch.Changed, "#limit-enabled")
    def limit_toggled(self, event: Switch.Changed) -> None:
        self.query_one("#monthly-limit", Input).disabled = not event.value

    def _read_form(self) -> None:
        form = self.controller.form
        form.label = self.query_one("#key-label", Input).value
        form.key_type = str(self.query_one("#key-type", Select).value)
        form.limit_enabled = self.query_one("#limit-enabled", Switch).value
        form.monthly_limit = self.query_one("#monthly-limit", Input).value

    @on(Button.Pressed, "#btn-save")
    @on(Input.Submitted, "#key-label")
    def do_save(self) -> None:
        self._read_form()
        if not self.controller.can_save:
            self.notify("Key name is required", severity="error")
            return
        self.app.run_worker(self.controller.save(), group="mutate")

    @on(Button.Pressed, "#btn-cancel-form")
    def do_cancel(self) -> None:
        self.controller.reset_modal()

    def action_cancel(self) -> None:
        self.controller.reset_modal()


# ---------------------------------------------------------------------------
# Confirm screen
# ---------------------------------------------------------------------------


class ConfirmScreen(ModalScreen[bool]):
    """Confirmation dialog for destructive actions."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancel", show=False),
        Binding("y", "confirm", "Confirm", show=False),
        Binding("n", "cancel", "Cancel", show=False),
    ]

    CSS = """
    ConfirmScreen {
        align: center middle;
    }
    #confirm-dialog {
        width: 60;
        height: auto;
        max-height: 14;
        border: thick $error;
        padding: 1 2;
        background: $surface;
    }
    .confirm-title {
        text-style: bold;
        color: $error;
        margin-bottom: 1;
    }
    .confirm-body {
        margin-bottom: 1;
    }
    .confirm-hint {
        color: $text-disabled;
        margin-bottom: 1;
    }
    #confirm-buttons {
        height: auto;
        align-horizontal: right;
    }
    #confirm-buttons Button {
        margin-left: 1;
    }
    """

    def __init__(self, title: str, body: str, confirm_label: str = "Confirm") -> None:
        super().__init__()
        self._title = title
        self._body = body
        self._confirm_label = confirm_label

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(self._title, classes="confirm-title")
            yield Label(self._body, classes="confirm-body")
            yield Label(
                "Press [bold]Y[/bold] to confirm or [bold]N[/bold] / Esc to cancel",
                classes="confirm-hint",
            )
            with Horizontal(id="confirm-buttons"):
                yield Button("Cancel", id="btn-cancel-confirm")
                yield Button(
                    self._confirm_label,
                    variant="error",
                    id="btn-do-confirm",
                )

    @on(Button.Pressed, "#btn-do-confirm")
    def do_confirm(self) -> None:
        self.dismiss(True)

    @on(Button.Pressed, "#btn-cancel-confirm")
    def do_cancel_btn(self) -> None:
        self.dismiss(False)

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


# ---------------------------------------------------------------------------
# Help screen
# ---------------------------------------------------------------------------


class HelpScreen(ModalScreen[None]):
    """Keyboard shortcuts and usage reference."""

    BINDINGS = [
        Binding("escape", "close", "Close", show=False),
        Binding("f1", "close", "Close", show=False),
        Binding("question_mark", "close", "Close", show=False),
    ]

    CSS = """
    HelpScreen {
        align: center middle;
    }
    #help-dialog {
        width: 72;
        height: auto;
        max-height: 34;
        border: thick $accent;
        padding: 1 2;
        background: $surface;
    }
    .dialog-title {
        text-style: bold;
        color: $accent;
        margin-bottom: 1;
    }
    #help-content {
        height: auto;
        max-height: 26;
        overflow-y: auto;
    }
    """

    HELP_TEXT = """\
[bold]Keyboard Shortcuts[/bold]

  [bold cyan]General[/bold cyan]
  [dim]F1[/dim] / [dim]?[/dim]       Show this help
  [dim]q[/dim]            Quit
  [dim]Ctrl+P[/dim]       Command palette

  [bold cyan]Key Management[/bold cyan]
  [dim]r[/dim]            Refresh key list
  [dim]c[/dim]            Create new key
  [dim]e[/dim] / [dim]Enter[/dim]    Edit selected key
  [dim]v[/dim]            Revoke / restore selected key
  [dim]d[/dim]            Delete selected key

  [bold cyan]View[/bold cyan]
  [dim]1[/dim]            Switch to Keys tab
  [dim]2[/dim]            Switch to Activity tab

[bold]Connection[/bold]
  The dashboard talks to the key service over HTTP.
       Env: KEYS_API_URL (default http://localhost:8000)
  The service reaches the api_keys table through Supabase.
       Env: SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY
       or DATABASE_URL / SUPABASE_DB_URL for direct PostgreSQL

[bold]Prefixes[/bold]
  The 6-character prefix is a display label, not a secret.
  Monthly limits are informational and not enforced.
"""

    def compose(self) -> ComposeResult:
        with Vertical(id="help-dialog"):
            yield Label("Help — API Key Dashboard", classes="dialog-title")
            with VerticalScroll(id="help-content"):
                yield Static(self.HELP_TEXT)
            yield Button("Close (Esc)", variant="primary", id="btn-close-help")

    @on(Button.Pressed, "#btn-close-help")
    def do_close(self) -> None:
        self.dismiss(None)

    def action_close(self) -> None:
        self.dismiss(None)
