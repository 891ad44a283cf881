"""CSS styles for the REPL Sessions TUI."""

APP_CSS = """
Screen {
    layout: horizontal;
}

#repl-container {
    width: 1fr;
    height: 100%;
}

#session-bar {
    height: 1;
    background: $surface;
    padding: 0 1;
}

#transcript {
    height: 1fr;
    border: solid $primary;
    padding: 0 1;
}

#repl-input {
    height: 3;
    border: solid $secondary;
    padding: 0 1;
}

#repl-input:focus {
    border: solid $success;
}

#panel-container {
    width: 45%;
    height: 100%;
    border: solid $warning;
}

#panel-container.hidden {
    display: none;
}

.panel-header {
    height: auto;
    background: $surface;
    padding: 0 1;
    text-style: bold;
    color: $warning;
}

#debug-panel {
    height: 1fr;
    overflow-y: auto;
    scrollbar-gutter: stable;
    padding: 0 1;
}

#debug-panel:focus {
    border: solid $success;
}

Footer {
    background: $surface;
}
"""
