INSTRUCTIONS = """## Workflow
- You are connected to the `structurizr_dsl_mcp` server; it captures Structurizr DSL syntax errors from the browser running the Structurizr UI.
- Start with `connectToBrowser` (Chrome already running with `--remote-debugging-port`) or `launchBrowser` so console errors are captured automatically.
- Call `getDslErrors` to list captured errors; each entry carries `line`, `file`, `context` and a `suggestion` with `issue` and `fix`.
- Paste an error line into `processDslError` when it was copied by hand instead of captured.
- `fixDslError` only echoes advice. This MCP never edits `workspace.dsl`; apply fixes in the editor.
- Use `clearDslErrors` after fixing a batch so later listings only show new problems.

## Tool Cheatsheet
- `processDslError`: Parse one `workspace.dsl: <message> at line <N> of <file>:<context>` line and store it.
- `getDslErrors`: Return the newest errors (oldest first); pass `unique=true` to collapse repeats.
- `clearDslErrors`: Empty the error log.
- `fixDslError`: Produce advisory text for a line/fix pair.
- `launchBrowser`: Start Chromium on the Structurizr UI with error monitoring.
- `connectToBrowser`: Attach to an existing Chromium over the remote-debugging port.
- `checkBrowserStatus`: Show which page is monitored and whether Playwright is installed.
- `getToolSpec`: Export the current tool metadata for auditing.

## Positioning
- Line numbers are 1-based and refer to the file named in `file`. Column is always 1 because Structurizr does not report one.
- Errors that do not follow the DSL error shape are rejected with `parse_failure`; they are not Structurizr DSL syntax errors.
"""
