import urllib.parse

import click
from flask import current_app
from flask.cli import with_appcontext

from .api_client import ApiError, EzittClient
from .relationships import Party, link_status


@click.command("link-status")
@click.argument("request_type")
@click.argument("first")
@click.argument("second")
@with_appcontext
def link_status_command(request_type, first, second):
    """Report whether two parties are linked, e.g. employer-merchant employer:E1 merchant:M1."""
    try:
        first_party, second_party = Party.parse(first), Party.parse(second)
    except ValueError as e:
        raise click.BadParameter(str(e))
    cfg = current_app.config
    with EzittClient(cfg["EZITT_API_BASE_URL"], timeout=cfg["EZITT_API_TIMEOUT"],
                     transport=cfg.get("EZITT_API_TRANSPORT")) as client:
        try:
            linked = link_status(client, request_type, first_party, second_party)
        except ApiError as e:
            raise click.ClickException(f"Could not fetch requests: {e.message}")
    click.echo("linked" if linked else "not linked")


@click.command("list-routes")
@with_appcontext
def list_routes_command():
    """Print all registered routes with their endpoint and methods."""
    output = []
    for rule in current_app.url_map.iter_rules():
        methods = ','.join(sorted(rule.methods))
        line = urllib.parse.unquote(f"{rule.endpoint:40s} {methods:25s} {rule}")
        output.append(line)
    for line in sorted(output):
        click.echo(line)


def register_cli(app):
    app.cli.add_command(link_status_command)
    app.cli.add_command(list_routes_command)
