"""Main CLI application using Cyclopts."""

import cyclopts

from hem.cli.commands import config, hooks, run

app = cyclopts.App(
    name="hem",
    help="OpenNebula Hook Execution Manager",
)

app.command(run.run, name="run")
app.command(hooks.hooks, name="hooks")
app.command(config.show_config, name="config")


def main() -> None:
    app()
