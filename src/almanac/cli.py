"""Almanac CLI - preview recurrences and zone conversions."""

import json
import logging
import sys

import click

from .config import load_config
from .core import timeutil
from .core.errors import CalendarError
from .core.event import Event, sort_events_by_start
from .manager import CalendarManager


@click.group()
@click.version_option(package_name="almanac")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """Almanac - multi-calendar scheduling engine."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _show_events(events: list[Event], zone, as_json: bool, empty_msg: str = "No events.") -> None:
    """Shared event display logic."""
    events = sort_events_by_start(events)
    if as_json:
        click.echo(
            json.dumps(
                [
                    {
                        "name": e.name,
                        "start": timeutil.to_local(e.start, zone).isoformat(),
                        "end": timeutil.to_local(e.effective_end, zone).isoformat(),
                        "location": e.location,
                        "status": e.status.value,
                    }
                    for e in events
                ],
                indent=2,
            )
        )
        return

    if not events:
        click.echo(empty_msg)
        return

    current_date = None
    for event in events:
        start = timeutil.to_local(event.start, zone)
        end = timeutil.to_local(event.effective_end, zone)
        if start.date() != current_date:
            if current_date is not None:
                click.echo()
            click.echo(f"### {start.strftime('%A, %B %d %Y')}")
            current_date = start.date()
        loc = f" @ {event.location}" if event.location else ""
        click.echo(f"  {start.strftime('%H:%M')}-{end.strftime('%H:%M')} {event.name}{loc}")


@main.command()
@click.argument("name")
@click.argument("start")
@click.option("--end", default=None, help="End as YYYY-MM-DDThh:mm (omit for all-day)")
@click.option("--weekdays", required=True, help="Weekday codes from MTWRFSU, e.g. MWF")
@click.option("--count", type=int, default=None, help="Number of weeks")
@click.option("--until", default=None, help="Last date, YYYY-MM-DD or YYYY-MM-DDThh:mm")
@click.option("--location", default=None)
@click.option("--timezone", "zone", default=None, help="IANA zone (default from config)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def expand(name, start, end, weekdays, count, until, location, zone, as_json):
    """Expand a weekly recurring event and list its occurrences."""
    if (count is None) == (until is None):
        click.echo("Error: give exactly one of --count or --until", err=True)
        sys.exit(1)

    config = load_config()
    manager = CalendarManager(config)
    try:
        calendar = manager.create_calendar("preview", zone or config.default_timezone)
        base = calendar.new_event(name, start).end(end).location(location).build()
        if count is not None:
            events = calendar.add_recurring(base, weekdays, count)
        else:
            events = calendar.add_recurring_until(base, weekdays, until)
    except CalendarError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _show_events(events, calendar.zone, as_json, "No occurrences.")


@main.command()
@click.argument("when")
@click.option("--from", "from_zone", default=None, help="Source IANA zone (default from config)")
@click.option("--to", "to_zone", required=True, help="Target IANA zone")
def convert(when, from_zone, to_zone):
    """Show a wall-clock time from one zone in another."""
    config = load_config()
    try:
        source = timeutil.resolve_zone(from_zone or config.default_timezone)
        target = timeutil.resolve_zone(to_zone)
        instant = timeutil.parse(when, source)
        converted = timeutil.format(instant, target)
    except CalendarError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"{timeutil.format(instant, source)} {source.key} = {converted} {target.key}")


if __name__ == "__main__":
    main()
