"""Client reload script rendered once per reloader and injected into pages.

The script opens a WebSocket back to the reloader. Any message triggers a
reload; messages naming a stylesheet only re-fetch the page's CSS. If the
connection drops it retries, and reloads once the reloader is back.
"""

import json
from string import Template

_SOURCE_TEMPLATE = Template("""\
(function() {
  if (window.__liveReload) { return; }
  window.__liveReload = true;
  var host = $host || window.location.hostname || "localhost";
  var url = "ws://" + host + ":" + $port + $path;
  var retryMs = 1000;
  var dropped = false;
  function refreshStyles() {
    var links = document.querySelectorAll('link[rel="stylesheet"]');
    for (var i = 0; i < links.length; i++) {
      var href = links[i].href.replace(/[?&]livereload=\\d+/, "");
      links[i].href = href + (href.indexOf("?") < 0 ? "?" : "&") + "livereload=" + Date.now();
    }
  }
  function connect() {
    var ws = new WebSocket(url);
    ws.onopen = function() {
      if (dropped) { window.location.reload(); }
    };
    ws.onmessage = function(evt) {
      if (/\\.css$$/i.test(evt.data)) { refreshStyles(); }
      else { window.location.reload(); }
    };
    ws.onclose = function() {
      dropped = true;
      setTimeout(connect, retryMs);
    };
  }
  connect();
})();
""")


class ReloadScript(str):
    """Rendered script fragment.

    A plain string that also implements ``__html__``, so template engines
    following the MarkupSafe protocol (Jinja2 among them) embed it
    without escaping.
    """

    __slots__ = ()

    def __html__(self) -> str:
        return str(self)


def render_reload_source(port: int, path: str = "/ws", host: str | None = None) -> str:
    """Render the client JavaScript bound to a reloader endpoint.

    Args:
        port: Port the WebSocket endpoint listens on.
        path: URL path of the WebSocket endpoint.
        host: Host the browser should connect to. None means the host the
            page itself was served from.

    Returns:
        The JavaScript source, without a ``<script>`` wrapper.

    Raises:
        ValueError: If the port or path is invalid.
    """
    if not 0 < port < 65536:
        raise ValueError(f"invalid port: {port}")
    if not path.startswith("/"):
        raise ValueError(f"path must start with '/': {path!r}")
    return _SOURCE_TEMPLATE.substitute(
        host=json.dumps(host) if host else "null",
        port=json.dumps(port),
        path=json.dumps(path),
    )


def render_reload_script(port: int, path: str = "/ws", host: str | None = None) -> ReloadScript:
    """Render the ``<script>`` fragment embedded into served pages."""
    source = render_reload_source(port, path=path, host=host)
    return ReloadScript(f"<script data-live-reload>\n{source}</script>\n")


def browser_host(bind_host: str) -> str | None:
    """Host name to embed in the script for a given bind address.

    Wildcard and loopback binds defer to the page's own host.
    """
    if bind_host in ("", "0.0.0.0", "::", "127.0.0.1", "localhost", "::1"):
        return None
    return bind_host


def inject_script(body: str, script: str) -> str:
    """Insert the script just before ``</body>`` (or ``</html>``, or at the end).

    Bodies that already contain the script are returned unchanged.
    """
    if "data-live-reload" in body:
        return body
    if "</body>" in body:
        return body.replace("</body>", script + "</body>", 1)
    if "</html>" in body:
        return body.replace("</html>", script + "</html>", 1)
    return body + script
