"""Admin CLI for Keep Me Posted."""

from __future__ import annotations

import asyncio

import click
import structlog

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
)


def run_async(coro):
    """Run an async function in a new event loop."""
    return asyncio.run(coro)


@click.group()
def cli():
    """Keep Me Posted administration CLI."""
    pass


# --- Setup ---


@cli.command("init-db")
def init_db():
    """Create database tables that do not exist yet."""
    run_async(_init_db())


async def _init_db():
    from keepposted.database import dispose_engine, init_models

    await init_models()
    await dispose_engine()
    click.echo("Database tables ready.")


# --- Location ---


@cli.command()
@click.argument("query")
def search(query):
    """Show autocomplete suggestions for QUERY."""
    run_async(_search(query))


async def _search(query):
    from keepposted.location.search import LocationSearch

    searcher = LocationSearch()
    task = searcher.search(query)
    if task is None:
        click.echo("Empty query.")
        return
    suggestions = await task
    if not suggestions:
        click.echo("No suggestions.")
    for s in suggestions:
        click.echo(f"{s.title}  ({s.subtitle})" if s.subtitle else s.title)


@cli.command()
@click.argument("lat", type=float)
@click.argument("lng", type=float)
def geocode(lat, lng):
    """Show the home label and pin address for LAT LNG."""
    run_async(_geocode(lat, lng))


async def _geocode(lat, lng):
    from keepposted.location.geocoding import pin_address, place_label, reverse_geocode
    from keepposted.schemas.geo import Coordinate

    place = await reverse_geocode(Coordinate(lat, lng))
    click.echo(f"Label:   {place_label(place)}")
    click.echo(f"Address: {pin_address(place)}")


# --- Places ---


@cli.command()
@click.argument("user_id")
def places(user_id):
    """List USER_ID's saved places, newest first."""
    run_async(_places(user_id))


async def _places(user_id):
    from keepposted.database import dispose_engine, get_session_factory
    from keepposted.places.store import SavedPlaces

    store = SavedPlaces(get_session_factory(), redis_client=None)
    docs = await store.fetch(user_id)
    if not docs:
        click.echo("No saved locations yet.")
    for doc in docs:
        click.echo(
            f"{doc.date_added:%Y-%m-%d %H:%M}  {doc.name}  "
            f"({doc.latitude:.5f}, {doc.longitude:.5f})  {doc.address or 'Pinned Location'}"
        )
    await dispose_engine()


# --- Devices ---


@cli.command("pair-device")
@click.argument("user_id")
def pair_device(user_id):
    """Generate OwnTracks credentials for USER_ID's phone."""
    run_async(_pair_device(user_id))


async def _pair_device(user_id):
    from keepposted.config import get_settings
    from keepposted.database import dispose_engine, get_session_factory
    from keepposted.location.owntracks import generate_pairing_credentials

    settings = get_settings()
    async with get_session_factory()() as session:
        creds = await generate_pairing_credentials(
            session, user_id, settings.owntracks_endpoint_url
        )
    click.echo(creds.setup_instructions)
    await dispose_engine()


if __name__ == "__main__":
    cli()
