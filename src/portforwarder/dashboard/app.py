"""Flask dashboard over the tunnel manager's control surface."""

from flask import Flask, Response, make_response, render_template_string, request

from ..common.logging import get_logger
from ..common.utils import format_seconds
from ..tunnel.exceptions import TunnelNotFoundError
from ..tunnel.manager import TunnelManager
from ..tunnel.models import TunnelType, TunnelView
from ..version import __version__
from .datasource import generate_datasource

logger = get_logger(__name__)

LAYOUT = """\
<!doctype html>
<html>
<head>
<title>{{ title }}</title>
<link rel="stylesheet" href="/style.css">
<meta name="viewport" content="width=device-width, initial-scale=1">
</head>
<body>
<main>
{{ body|safe }}
</main>
<footer>
<p>Version: {{ version }}</p>
</footer>
</body>
</html>
"""

INDEX = """\
<h1>Tunnels</h1>
<a href="/list">List tunnels</a>
"""

TUNNEL_TABLE = """\
<table>
<thead>
<tr><th>Context</th><th>Target</th><th>Local port</th><th>State</th></tr>
</thead>
<tbody>
{% for t in tunnels %}
<tr>
<td>{{ t.context }}</td>
<td>{{ t.target }}<span class="notimportant">:{{ t.destination_port }}\
{% if t.namespace|lower != "default" %} ({{ t.namespace }}){% endif %}</span></td>
<td>{{ t.local_port }}</td>
<td>
{% if t.is_running %}
<a href="/stopTunnel?id={{ t.id }}" class="running" title="Stop tunnel">&#x23F9;</a>
<a href="/restartTunnel?id={{ t.id }}" class="running" title="Restart tunnel">&#x27F3;</a>
<span class="notimportant">{{ checked_ago(t.last_checked_ago) }}</span>
{% else %}
<a href="/startTunnel?id={{ t.id }}" class="stopped" title="Start tunnel">&#x23F5;</a>
{% endif %}
{% if t.type == database_type %}
<a href="/intellij?id={{ t.id }}" target="_blank" class="iconlink" \
title="Generate IntelliJ Datasource">&#x1F5C2;</a>
{% elif t.type == http_type %}
<a href="http://{{ host }}:{{ t.local_port }}" class="iconlink" \
target="_blank">&#x1F517;</a>
{% endif %}
</td>
</tr>
{% endfor %}
</tbody>
</table>
"""

STYLES = """\
html { margin: 0; padding: 0; }
body {
    font-family: Arial, sans-serif;
    margin: 0; padding: 0;
    background-color: #151515;
    color: #b0b0b0;
}
main { margin: 1rem; width: fit-content; }
footer {
    margin: 1rem;
    color: #888;
    font-size: 75%;
    border-top: 1px solid #282828;
}
table { border-collapse: collapse; }
th, td { border: 1px solid #444; padding: 8px; text-align: left; }
th { background-color: #282828; }
tr:nth-child(even) { background-color: #1c1c1c; }
tr:hover { background-color: #222; }
a { text-decoration: none; color: #ddd; font-weight: bold; }
a:hover { text-decoration: underline; }
.notimportant { color: #888; font-size: 75%; }
.running { color: green; }
.stopped { color: red; }
.running:hover, .stopped:hover, .iconlink:hover { text-decoration: none; }
"""


def sort_for_display(tunnels: list[TunnelView]) -> list[TunnelView]:
    """Start-on-startup tunnels first, then by target and context."""
    return sorted(tunnels, key=lambda t: (not t.start_on_startup, t.target, t.context))


def request_host() -> str:
    host = request.headers.get("Host")
    if not host:
        return "127.0.0.1"
    return host.split(":")[0]


def create_app(manager: TunnelManager, refresh_interval: int = 60) -> Flask:
    """Create the dashboard application.

    Args:
        manager: Tunnel manager the dashboard reads and controls
        refresh_interval: Seconds between automatic reloads of the list page,
            zero disables it

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.config["REFRESH_INTERVAL"] = refresh_interval

    def page(title: str, body: str) -> str:
        return render_template_string(
            LAYOUT, title=title, body=body, version=__version__
        )

    def action(title: str, operation: str, tunnel_id: str | None) -> Response:
        logger.info("Dashboard action", action=operation, tunnel_id=tunnel_id)
        try:
            if not tunnel_id:
                logger.warning("Dashboard action without tunnel id", action=operation)
            elif operation == "start":
                manager.start_tunnel(tunnel_id)
            elif operation == "stop":
                manager.stop_tunnel(tunnel_id)
            else:
                manager.restart_tunnel(tunnel_id)
        except TunnelNotFoundError as e:
            logger.warning("Dashboard action on unknown tunnel", error=str(e))

        response = make_response(page(title, "OK"), 302)
        response.headers["Location"] = "/list"
        response.headers["Refresh"] = "0 url=/list"
        return response

    @app.get("/")
    def index() -> str:
        return page("Tunnels", INDEX)

    @app.get("/list")
    def list_tunnels() -> Response:
        body = render_template_string(
            TUNNEL_TABLE,
            tunnels=sort_for_display(manager.list_tunnels()),
            host=request_host(),
            checked_ago=format_seconds,
            database_type=TunnelType.DATABASE,
            http_type=TunnelType.HTTP,
        )
        response = make_response(page("Tunnels", body))
        refresh = app.config["REFRESH_INTERVAL"]
        if refresh > 0:
            response.headers["Refresh"] = f"{refresh} url=/list"
        return response

    @app.get("/startTunnel")
    def start_tunnel() -> Response:
        return action("Starting tunnel", "start", request.args.get("id"))

    @app.get("/stopTunnel")
    def stop_tunnel() -> Response:
        return action("Stopping tunnel", "stop", request.args.get("id"))

    @app.get("/restartTunnel")
    def restart_tunnel() -> Response:
        return action("Restarting tunnel", "restart", request.args.get("id"))

    @app.get("/style.css")
    def styles() -> Response:
        response = make_response(STYLES)
        response.headers["Content-Type"] = "text/css"
        response.headers["Cache-Control"] = "max-age=300"
        return response

    @app.get("/intellij")
    def intellij() -> Response:
        tunnel_id = request.args.get("id")
        text = "Not found"
        try:
            view = manager.get_tunnel(tunnel_id or "")
        except TunnelNotFoundError:
            view = None
        if (
            view is not None
            and view.type == TunnelType.DATABASE
            and view.database is not None
        ):
            text = generate_datasource(
                view.context, view.database, request_host(), view.local_port
            )
        response = make_response(text)
        response.headers["Content-Type"] = "text/plain"
        return response

    return app
