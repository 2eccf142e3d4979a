import logging
import functools

import click
import psutil
from click.shell_completion import get_completion_class

from batterrier.batteryLimiter import BatteryLimiter, Percent, locate_battery
from batterrier.errors import BatterrierError, ParseError
from batterrier.utils import CommandRunner, configure_logging, read_config

PROG_NAME = "batterrier"
COMPLETION_SHELLS = ("bash", "zsh", "fish")


class PercentType(click.ParamType):
    name = "percent"

    def convert(self, value, param, ctx):
        if isinstance(value, Percent):
            return value
        try:
            return Percent.parse(str(value))
        except ParseError as e:
            self.fail(str(e), param, ctx)


def handle_errors(command):
    @functools.wraps(command)
    def wrapper(*args, **kwargs):
        try:
            return command(*args, **kwargs)
        except BatterrierError as e:
            logging.error(f"{command.__name__} failed: {e}", extra={"file_only": True})
            raise click.ClickException(str(e)) from e

    return wrapper


def make_limiter(config, battery=None):
    if battery is None:
        battery = locate_battery(config["power_supply_dir"])
    runner = CommandRunner(config["elevate_command"])
    return BatteryLimiter(battery, runner, service_path=config["service_path"])


def format_limit(limit):
    return "Not set" if limit is None else f"🔋{limit}"


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    help="JSON config file overriding the defaults.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr.")
@click.version_option(package_name=PROG_NAME, prog_name=PROG_NAME)
@click.pass_context
def cli(ctx, config_file, verbose):
    """Limit the battery charge level."""
    if ctx.invoked_subcommand == "completions":
        return
    try:
        config = read_config(config_file)
    except (OSError, ValueError) as e:
        raise click.UsageError(f"Cannot load config: {e}")
    configure_logging(config["log_dir"], verbose=verbose)
    logging.info(f"Running {ctx.invoked_subcommand}")
    ctx.obj = config


@cli.command("set")
@click.option(
    "-p",
    "--persist",
    is_flag=True,
    default=False,
    help="Persist after system reboot, i.e. create a systemd service.",
)
@click.argument("value", type=PercentType())
@click.pass_obj
@handle_errors
def set_limit(config, persist, value):
    """Change battery charge limit to VALUE [0, 100]."""
    limiter = make_limiter(config)
    transition = limiter.set(value, persist=persist)
    if transition.changed:
        click.echo(str(transition))
    else:
        click.echo(f"🔋{value} (unchanged)")
    if persist:
        click.echo(f"Systemd service installed at {limiter.service_path}")


@cli.command()
@click.pass_obj
@handle_errors
def get(config):
    """Print current battery charge limit."""
    current, persisted = make_limiter(config).get()
    click.echo(f"current: {format_limit(current)}")
    click.echo(f"persisted: {format_limit(persisted)}")


@cli.command()
@click.pass_obj
@handle_errors
def clean(config):
    """Restore 100% battery limit and remove systemd service."""
    transition = make_limiter(config).clean()
    click.echo(str(transition))


@cli.command()
@click.pass_obj
@handle_errors
def info(config):
    """Print battery info."""
    battery = locate_battery(config["power_supply_dir"])
    click.echo(f"Path: {battery.path}")
    status = psutil.sensors_battery()
    if status is not None:
        source = "plugged in" if status.power_plugged else "on battery"
        click.echo(f"Charge: {round(status.percent)}% ({source})")
    attributes = make_limiter(config, battery).info()
    if attributes:
        click.echo(attributes)


@cli.command()
@click.argument("shell", type=click.Choice(COMPLETION_SHELLS))
def completions(shell):
    """Generate shell completions.

    \b
    Example:
    $ batterrier completions zsh > _batterrier
    $ sudo mv _batterrier /usr/local/share/zsh/site-functions
    """
    completion_class = get_completion_class(shell)
    completion = completion_class(cli, {}, PROG_NAME, "_BATTERRIER_COMPLETE")
    click.echo(completion.source())


def main():
    cli(prog_name=PROG_NAME)


if __name__ == "__main__":
    main()
