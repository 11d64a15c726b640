"""Command-line interface for oauth_tooling.

Example:
    >>> # From terminal:
    >>> # oauth-tooling --version
    >>> # oauth-tooling token --endpoint https://auth.example.com/oauth2/access_token \\
    >>> #     --credentials-dir ./credentials --scope orders.read --query realm=/services
    >>> # oauth-tooling token --grant-type refresh_token --refresh-token <token> ...
    >>> # oauth-tooling tokeninfo --endpoint https://auth.example.com/oauth2/tokeninfo <token>
    >>> # oauth-tooling auth-url --endpoint https://auth.example.com/oauth2/authorize \\
    >>> #     --client-id my-client --redirect-uri https://app.example.com/callback
"""

import asyncio
import json
from typing import Annotated, Optional

import typer
from pydantic import ValidationError

from oauth_tooling import __version__
from oauth_tooling.auth.introspection import TOKEN_LOCATIONS, TokenInfoClient
from oauth_tooling.auth.oauth2 import (
    PASSWORD_CREDENTIALS_GRANT,
    AccessTokenRequest,
    create_auth_code_request_uri,
    get_access_token,
)
from oauth_tooling.errors import OAuthToolingError
from oauth_tooling.observability import configure_logging

app = typer.Typer(help="OAuth2 token acquisition and token-info CLI.")

_verbose: bool = False


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show oauth-tooling version and exit.",
    callback=_version_callback,
    is_eager=True,
)


def _parse_query(pairs: Optional[list[str]]) -> dict[str, str] | None:
    """Turn repeated ``KEY=VALUE`` options into a dict."""
    if not pairs:
        return None
    params: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}", param_hint="--query")
        params[key] = value
    return params


def _describe_validation_error(exc: ValidationError) -> str:
    """Flatten pydantic errors into ``field: message; field: message``."""
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def _fail(exc: OAuthToolingError) -> None:
    typer.echo(f"Error [{exc.code}]: {exc.message}", err=True)
    if _verbose:
        typer.echo(json.dumps(exc.to_dict(), indent=2), err=True)
    raise typer.Exit(code=1)


@app.callback()
def cli(
    version: bool = VERSION_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output."),
) -> None:
    """oauth-tooling CLI entrypoint."""
    global _verbose
    _verbose = verbose
    configure_logging(log_level="DEBUG" if verbose else "WARNING", force=True)


@app.command("token")
def token(
    endpoint: Annotated[str, typer.Option("--endpoint", "-e", help="Token endpoint URL.")],
    credentials_dir: Annotated[
        str,
        typer.Option("--credentials-dir", "-c", help="Directory with client.json/user.json."),
    ],
    grant_type: Annotated[
        str,
        typer.Option("--grant-type", "-g", help="password, authorization_code or refresh_token."),
    ] = PASSWORD_CREDENTIALS_GRANT,
    scope: Annotated[
        Optional[list[str]], typer.Option("--scope", "-s", help="Scope to request (repeatable).")
    ] = None,
    code: Annotated[Optional[str], typer.Option("--code", help="Authorization code.")] = None,
    redirect_uri: Annotated[
        Optional[str], typer.Option("--redirect-uri", help="Redirect URI used for the code.")
    ] = None,
    refresh_token: Annotated[
        Optional[str], typer.Option("--refresh-token", help="Refresh token.")
    ] = None,
    query: Annotated[
        Optional[list[str]],
        typer.Option("--query", "-q", help="Extra KEY=VALUE query parameter (repeatable)."),
    ] = None,
) -> None:
    """Acquire an access token and print the token response as JSON."""
    try:
        request = AccessTokenRequest(
            grant_type=grant_type,
            access_token_endpoint=endpoint,
            credentials_dir=credentials_dir,
            scopes=scope or [],
            query_params=_parse_query(query),
            code=code,
            redirect_uri=redirect_uri,
            refresh_token=refresh_token,
        )
    except ValidationError as exc:
        raise typer.BadParameter(_describe_validation_error(exc)) from exc
    try:
        response = asyncio.run(get_access_token(request))
    except OAuthToolingError as exc:
        _fail(exc)
        return
    typer.echo(json.dumps(response.model_dump(), indent=2))


@app.command("tokeninfo")
def tokeninfo(
    access_token: Annotated[str, typer.Argument(help="Access token to look up.")],
    endpoint: Annotated[str, typer.Option("--endpoint", "-e", help="Token-info endpoint URL.")],
    token_location: Annotated[
        str, typer.Option("--token-location", help="Send the token as 'query' or 'header'.")
    ] = "query",
) -> None:
    """Look up an access token and print its token info as JSON."""
    if token_location not in TOKEN_LOCATIONS:
        raise typer.BadParameter(
            f"must be one of {', '.join(TOKEN_LOCATIONS)}", param_hint="--token-location"
        )
    client = TokenInfoClient(token_location=token_location)  # type: ignore[arg-type]
    try:
        info = asyncio.run(client.introspect(endpoint, access_token))
    except OAuthToolingError as exc:
        _fail(exc)
        return
    typer.echo(json.dumps(info.model_dump(), indent=2))


@app.command("auth-url")
def auth_url(
    endpoint: Annotated[str, typer.Option("--endpoint", "-e", help="Authorization endpoint URL.")],
    client_id: Annotated[str, typer.Option("--client-id", help="OAuth2 client id.")],
    redirect_uri: Annotated[str, typer.Option("--redirect-uri", help="Redirect URI.")],
    scope: Annotated[
        Optional[list[str]], typer.Option("--scope", "-s", help="Scope to request (repeatable).")
    ] = None,
    state: Annotated[Optional[str], typer.Option("--state", help="Opaque state value.")] = None,
    query: Annotated[
        Optional[list[str]],
        typer.Option("--query", "-q", help="Extra KEY=VALUE query parameter (repeatable)."),
    ] = None,
) -> None:
    """Print the URI that starts an authorization-code flow."""
    typer.echo(
        create_auth_code_request_uri(
            endpoint,
            client_id,
            redirect_uri,
            scopes=scope,
            state=state,
            query_params=_parse_query(query),
        )
    )


def main() -> None:
    """Run the oauth-tooling CLI."""
    app()


if __name__ == "__main__":
    main()
