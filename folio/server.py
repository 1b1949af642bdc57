"""Development server for Folio.

Serves the built site with live reload for local authoring:
- Builds into a staging directory and swaps it into place, so the served
  site is never half written.
- Injects a reload script into HTML responses.
- Answers directory listings and missing paths with a 404, using 404.html
  when the site has one.
- Watches the site root and triggers rebuilds plus client reloads.

A failed rebuild is reported and the previous output keeps being served.

Key classes:
- DevServer: Main class for running the development server.
- _ReloadHandler: HTTP request handler that injects the reload script.
- _ChangeHandler: File system event handler for triggering rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import io
import json
import os
import shutil
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import click
import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import build_site
from .config import load_config
from .errors import BuildError


RELOAD_SCRIPT = """<script>
new WebSocket("ws://" + location.hostname + ":{ws_port}").onmessage = (event) => {{
  if (JSON.parse(event.data).type === "reload") location.reload();
}};
</script>
"""


def inject_reload(html: str, script: str) -> str:
    """Insert the reload script before the last </body>, or append it."""
    head, tag, tail = html.rpartition("</body>")
    if not tag:
        return html + script
    return head + script + tag + tail


class _ReloadHandler(SimpleHTTPRequestHandler):
    """Serves the output directory, adding the reload script to HTML.

    Directories without an index and missing files get a 404, using the
    site's 404.html when it has one.
    """

    reload_script = RELOAD_SCRIPT.format(ws_port=4001)

    def send_head(self):
        path = Path(self.translate_path(self.path))
        if path.is_dir():
            path = path / "index.html"
        if not path.is_file():
            page = Path(self.directory) / "404.html"
            if not page.is_file():
                self.send_error(404, "File not found")
                return None
            return self._send_page(404, page)
        if path.suffix != ".html":
            return super().send_head()
        return self._send_page(200, path)

    def _send_page(self, status: int, page: Path):
        body = inject_reload(page.read_text(encoding="utf-8"), self.reload_script)
        encoded = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        return io.BytesIO(encoded)


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        project_root: Root directory of the site.
        config: Site configuration.
        output_dir: Directory where built site is served.
        ws_port: Port for WebSocket connections.
        http_port: Port for HTTP server.
    """

    def __init__(
        self,
        project_root: Path,
        http_port: int | None = None,
        ws_port: int | None = None,
    ):
        """Initialize the development server.

        Args:
            project_root: Root directory of the site.
            http_port: Optional override for the configured HTTP port.
            ws_port: Optional override for the websocket port. Defaults to
                the configured ``ws_port``, or the HTTP port plus one when
                the HTTP port is overridden.
        """
        self.project_root = project_root
        self.config = load_config(project_root)
        self.output_dir = self.config.output_dir
        self._staging_dir = self.output_dir.with_name(self.output_dir.name + ".staging")
        self.http_port = http_port or self.config.port
        if ws_port is not None:
            self.ws_port = ws_port
        elif http_port is not None or self.config.ws_port is None:
            self.ws_port = self.http_port + 1
        else:
            self.ws_port = self.config.ws_port
        self._reload_script = RELOAD_SCRIPT.format(ws_port=self.ws_port)
        # Links in the served pages point at the local server.
        self._root_url = f"http://localhost:{self.http_port}"
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._lock = threading.Lock()
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.05
        self._post_build_delay = 0.05

    def start(
        self, include_drafts: bool = False
    ) -> None:  # pragma: no cover - integration path
        self._build(include_drafts)
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _build(self, include_drafts: bool) -> bool:
        """Build into staging and swap it in. Returns False if the build failed."""
        staging = self._prepare_staging_dir()
        try:
            result = build_site(
                self.project_root,
                output_dir=staging,
                include_drafts=include_drafts,
                root_url=self._root_url,
                clean_output=True,
            )
        except BuildError as exc:
            click.echo(click.style(f"Build failed: {exc}", fg="red"), err=True)
            shutil.rmtree(staging, ignore_errors=True)
            return False
        for warning in result.report.warnings:
            click.echo(click.style(f"  warning: {warning}", fg="yellow"), err=True)
        for error in result.report.errors:
            click.echo(click.style(f"  error: {error}", fg="red"), err=True)
        self._activate_staging(staging)
        return True

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        click.echo(f"Serving {self.output_dir} at http://localhost:{self.http_port}")
        httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            click.echo(f"WebSocket server failed to start (port {self.ws_port}): {exc}")

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, "0.0.0.0", self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self):
        message = json.dumps({"type": "reload"})
        # broadcast skips closed connections and must run on the loop thread.
        self._loop.call_soon_threadsafe(
            websockets.broadcast, set(self._ws_clients), message
        )

    def _start_watcher(self, include_drafts: bool) -> None:
        handler = _ChangeHandler(self, include_drafts)
        observer = Observer()
        observer.schedule(handler, str(self.project_root), recursive=True)
        observer.start()
        self._observer = observer

    def is_ignored(self, path: Path) -> bool:
        """Check whether a changed path should not trigger a rebuild."""
        for ignored in (self.output_dir, self._staging_dir):
            if path == ignored or ignored in path.parents:
                return True
        return any(part in (".git", "node_modules", "__pycache__") for part in path.parts)

    def rebuild(self, include_drafts: bool) -> None:
        now = time.time()
        if (now - self._last_rebuild_at) < self._debounce_seconds:
            return
        if not self._lock.acquire(blocking=False):
            return
        try:
            signature = self._compute_signature()
            if signature is not None and signature == self._last_signature:
                return
            click.echo("Change detected; rebuilding...")
            if not self._build(include_drafts):
                return
            self._last_signature = signature
            if self._post_build_delay:
                time.sleep(self._post_build_delay)
            self._broadcast_reload()
        finally:
            self._last_rebuild_at = time.time()
            self._lock.release()

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        for path in sorted(self.project_root.rglob("*")):
            if path.is_dir() or self.is_ignored(path):
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.project_root)
            entries.append((str(rel), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None

    def _prepare_staging_dir(self) -> Path:
        staging = self._staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True, exist_ok=True)
        return staging

    def _activate_staging(self, staging: Path) -> None:
        target = self.output_dir
        if target.exists():
            shutil.rmtree(target)
        os.replace(staging, target)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def on_any_event(self, event):
        if event.is_directory:
            return
        if self.server.is_ignored(Path(event.src_path)):
            return
        self.server.rebuild(self.include_drafts)
