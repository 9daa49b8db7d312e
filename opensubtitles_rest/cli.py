import asyncio
import logging
import sys

import click

from .client import OpenSubtitlesClient
from .config import get_config


def _fail(outcome):
    click.echo(f"Error: {outcome}", err=True)
    sys.exit(1)


def _parse_options(values):
    options = {}
    for value in values:
        if '=' not in value:
            raise click.BadParameter(f"expected key=value, got {value!r}", param_hint='--option')
        key, option_value = value.split('=', 1)
        options[key.strip()] = option_value.strip()
    return options


async def _with_session(client, username, password, action):
    """Log in, run ``action(credential)``, and always log out again. Returns the failed login otherwise."""
    login = await client.login(username, password)
    if not login.ok or login.data is None:
        return login
    credential = login.data
    try:
        return await action(credential)
    finally:
        logout = await client.logout(credential)
        if not logout.ok:
            click.echo(f"Warning: logout failed: {logout}", err=True)


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging.')
@click.pass_context
def cli(ctx, debug):
    """OpenSubtitles.com REST API client."""
    config = get_config()
    if debug or config.DEBUG:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)
    ctx.obj = OpenSubtitlesClient.from_config(config)
    ctx.call_on_close(ctx.obj.close)


credentials_options = [
    click.option('--username', envvar='OPENSUBTITLES_USERNAME', required=True),
    click.option('--password', envvar='OPENSUBTITLES_PASSWORD', required=True, prompt=True, hide_input=True),
]


def with_credentials(func):
    for option in reversed(credentials_options):
        func = option(func)
    return func


@cli.command("languages")
@click.pass_obj
def languages_command(client):
    """List the languages OpenSubtitles supports."""
    outcome = asyncio.run(client.get_language_list())
    if not outcome.ok:
        _fail(outcome)
    for language in outcome.data or []:
        click.echo(f"{language.language_code}\t{language.language_name}")


@cli.command("search")
@click.option('-o', '--option', 'option_values', multiple=True, help='Search option as key=value.')
@click.pass_obj
def search_command(client, option_values):
    """Search subtitles, e.g. -o imdb_id=tt0111161 -o languages=en."""
    options = _parse_options(option_values)
    result = asyncio.run(client.search_subtitles(options))
    for record in result.records:
        attributes = record.get('attributes', {})
        files = attributes.get('files') or [{}]
        click.echo(f"{files[0].get('file_id')}\t{attributes.get('language')}\t{attributes.get('release')}")
    click.echo(f"{len(result.records)} result(s), {result.pages_fetched} page(s), stop: {result.stop_reason}")
    if not result.final_outcome.ok:
        _fail(result.final_outcome)


@cli.command("user-info")
@with_credentials
@click.pass_obj
def user_info_command(client, username, password):
    """Show download quota of the account."""
    outcome = asyncio.run(_with_session(client, username, password, client.get_user_info))
    if not outcome.ok or outcome.data is None:
        _fail(outcome)
    info = outcome.data
    click.echo(f"User {info.user_id} ({info.level}), VIP: {info.vip}")
    click.echo(f"Downloads: {info.downloads_count}/{info.allowed_downloads}, remaining {info.remaining_downloads}")


@cli.command("link")
@click.argument("file_id", type=int)
@with_credentials
@click.pass_obj
def link_command(client, file_id, username, password):
    """Resolve the download link of FILE_ID."""
    outcome = asyncio.run(_with_session(
        client, username, password, lambda credential: client.get_subtitle_link(file_id, credential)))
    if not outcome.ok or outcome.data is None:
        _fail(outcome)
    click.echo(outcome.data.link)
    click.echo(f"Remaining downloads: {outcome.data.remaining}", err=True)


@cli.command("download")
@click.argument("url")
@click.option('-O', '--output', type=click.Path(dir_okay=False, writable=True), required=True)
@click.pass_obj
def download_command(client, url, output):
    """Save the subtitle file behind a resolved download URL."""
    outcome = asyncio.run(client.download_subtitle(url))
    if not outcome.ok:
        _fail(outcome)
    with open(output, 'wb') as f:
        f.write(outcome.data or b'')
    click.echo(f"Saved {len(outcome.data or b'')} bytes to {output}")


if __name__ == '__main__':
    cli()
