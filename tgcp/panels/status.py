"""Bottom bar: filter/command input, errors, status and toasts."""

from __future__ import annotations

from rich.text import Text

from tgcp.state import AppState, Mode

MAX_SUGGESTIONS = 6


def _command_line(state: AppState) -> Text:
    command = state.command
    line = Text.assemble((":", "bold cyan"), command.text, ("_", "blink"))
    if command.suggestions:
        line.append("   ")
        for index, suggestion in enumerate(command.suggestions[:MAX_SUGGESTIONS]):
            style = "reverse" if index == command.suggestion_index else "dim"
            line.append(suggestion, style=style)
            line.append(" ")
    return line


def _hint(state: AppState) -> Text:
    definition = state.definition
    parts = ["? help", "/ filter", ": command"]
    if definition is not None:
        parts.extend(f"{action.key} {action.display_name.lower()}" for action in definition.actions[:4])
        parts.extend(f"{link.shortcut} {link.display_name.lower()}" for link in definition.sub_resources[:2])
    return Text("  ".join(parts), style="dim")


def render(state: AppState) -> Text:
    if state.mode == Mode.FILTER:
        return Text.assemble(("/", "bold cyan"), state.filter_text, ("_", "blink"))
    if state.mode == Mode.COMMAND:
        return _command_line(state)

    if state.last_error:
        return Text(f"Error: {state.last_error}", style="bold red", no_wrap=True, overflow="ellipsis")
    toast = state.notifications.toast()
    if toast:
        return Text(toast, style="yellow", no_wrap=True, overflow="ellipsis")
    if state.status_message:
        return Text(state.status_message, style="green", no_wrap=True, overflow="ellipsis")
    if state.selected_rows:
        return Text(f"{len(state.selected_rows)} selected (esc clears)", style="cyan")
    return _hint(state)
