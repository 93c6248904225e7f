"""Local preview server for the generated site.

Requests are mapped onto the output directory through the same base path
the build uses for links. With live reload enabled, HTML responses carry a
small ``EventSource`` client and :meth:`PreviewServer.trigger_reload`
pushes a ``reload`` event to every connected browser.
"""
from __future__ import annotations

import errno
import logging
import posixpath
import queue
import threading
import time
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlsplit

from .errors import ConfigError
from .paths import strip_base_path

logger = logging.getLogger(__name__)

LIVE_RELOAD_PATH = "/__live-reload"
LIVE_RELOAD_MARKER = "data-preview-live-reload"
KEEPALIVE_SECONDS = 15.0

CONTENT_TYPES = {
    ".html": "text/html; charset=utf-8",
    ".xml": "application/xml; charset=utf-8",
    ".json": "application/json; charset=utf-8",
    ".svg": "image/svg+xml",
    ".css": "text/css; charset=utf-8",
    ".js": "text/javascript; charset=utf-8",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".ico": "image/x-icon",
    ".txt": "text/plain; charset=utf-8",
}


@dataclass(frozen=True)
class Resolution:
    status: int
    path: Optional[Path] = None
    location: Optional[str] = None


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


def safe_join(root: Path, pathname: str) -> Optional[Path]:
    normalized = posixpath.normpath("/" + unquote(pathname)).lstrip("/")
    target = (root / normalized).resolve()
    if not target.is_relative_to(root):
        return None
    return target


def resolve_request(output_dir: Path, base_path: str, url_path: str) -> Resolution:
    target = strip_base_path(base_path, url_path)
    if target is None:
        return Resolution(302, location=base_path or "/")

    root = output_dir.resolve()
    absolute = safe_join(root, target)
    if absolute is not None:
        candidates = [absolute, absolute / "index.html"]
        if absolute != root:
            candidates.append(absolute.with_name(absolute.name + ".html"))
        for candidate in candidates:
            if candidate.is_file():
                return Resolution(200, path=candidate)

    not_found = root / "404.html"
    if not_found.is_file():
        return Resolution(404, path=not_found)
    return Resolution(404)


def live_reload_script(base_path: str) -> str:
    endpoint = f"{base_path}{LIVE_RELOAD_PATH}"
    return (
        f"<script {LIVE_RELOAD_MARKER}>(function(){{"
        f'const source=new EventSource("{endpoint}");'
        'source.addEventListener("reload",function(){window.location.reload();});'
        "})();</script>"
    )


def inject_live_reload(html_text: str, base_path: str) -> str:
    if LIVE_RELOAD_MARKER in html_text:
        return html_text
    script = live_reload_script(base_path)
    if "</body>" in html_text:
        return html_text.replace("</body>", f"{script}</body>", 1)
    return html_text + script


class PreviewHandler(BaseHTTPRequestHandler):
    server_version = "mdblog-preview"

    @property
    def preview(self) -> "PreviewServer":
        return self.server.preview

    def do_GET(self) -> None:
        pathname = urlsplit(self.path).path or "/"
        preview = self.preview
        if preview.is_live_reload_request(pathname):
            if not preview.live_reload:
                self.send_text(404, "Not Found")
                return
            self.stream_events()
            return

        resolution = resolve_request(preview.output_dir, preview.base_path, pathname)
        if resolution.location is not None:
            self.send_response(302)
            self.send_header("Location", resolution.location)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return
        if resolution.path is None:
            self.send_text(404, "Not Found")
            return
        self.send_file(resolution.status, resolution.path)

    def send_text(self, status: int, text: str) -> None:
        self.send_body(status, "text/plain; charset=utf-8", text.encode("utf-8"))

    def send_body(self, status: int, content_type: str, data: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def send_file(self, status: int, path: Path) -> None:
        try:
            data = path.read_bytes()
        except OSError as exc:
            logger.error("Failed to read %s: %s", path, exc)
            self.send_text(500, "Internal Server Error")
            return
        content_type = content_type_for(path)
        if path.suffix.lower() == ".html" and self.preview.live_reload:
            text = inject_live_reload(data.decode("utf-8"), self.preview.base_path)
            data = text.encode("utf-8")
        self.send_body(status, content_type, data)

    def stream_events(self) -> None:
        self.close_connection = True
        client = self.preview.register_client()
        try:
            self.send_response(200)
            self.send_header("Content-Type", "text/event-stream")
            self.send_header("Cache-Control", "no-cache")
            self.send_header("Connection", "keep-alive")
            self.end_headers()
            self.wfile.write(b"retry: 1000\n\n")
            self.wfile.flush()
            while True:
                try:
                    message = client.get(timeout=KEEPALIVE_SECONDS)
                except queue.Empty:
                    message = ": keepalive\n\n"
                if message is None:
                    break
                self.wfile.write(message.encode("utf-8"))
                self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Live reload client went away")
        finally:
            self.preview.unregister_client(client)

    def log_message(self, format: str, *args) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class PreviewHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    preview: "PreviewServer"


class PreviewServer:
    def __init__(
        self,
        output_dir: Path,
        base_path: str = "",
        host: str = "127.0.0.1",
        port: int = 4173,
        live_reload: bool = False,
    ):
        self.output_dir = Path(output_dir)
        self.base_path = base_path
        self.live_reload = live_reload
        self._clients: set[queue.Queue] = set()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        try:
            self.httpd = PreviewHTTPServer((host, port), PreviewHandler)
        except OSError as exc:
            if exc.errno == errno.EADDRINUSE:
                raise ConfigError(
                    f"Preview server failed: {host}:{port} is already in use. "
                    "Set PREVIEW_PORT to another port."
                ) from exc
            raise
        self.httpd.preview = self

    @property
    def address(self) -> tuple[str, int]:
        host, port = self.httpd.server_address[:2]
        return str(host), int(port)

    @property
    def url(self) -> str:
        host, port = self.address
        return f"http://{host}:{port}{self.base_path or '/'}"

    def is_live_reload_request(self, pathname: str) -> bool:
        return pathname in (f"{self.base_path}{LIVE_RELOAD_PATH}", LIVE_RELOAD_PATH)

    def register_client(self) -> queue.Queue:
        client: queue.Queue = queue.Queue()
        with self._lock:
            self._clients.add(client)
        return client

    def unregister_client(self, client: queue.Queue) -> None:
        with self._lock:
            self._clients.discard(client)

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def _broadcast(self, message: Optional[str]) -> None:
        with self._lock:
            clients = list(self._clients)
        for client in clients:
            client.put(message)

    def trigger_reload(self) -> None:
        if not self.live_reload:
            return
        self._broadcast(f"event: reload\ndata: {int(time.time() * 1000)}\n\n")

    def close_clients(self) -> None:
        self._broadcast(None)
        with self._lock:
            self._clients.clear()

    def serve_forever(self) -> None:
        logger.info("Preview server running: %s", self.url)
        self.httpd.serve_forever()

    def start(self) -> None:
        self._thread = threading.Thread(target=self.serve_forever, name="preview-server", daemon=True)
        self._thread.start()

    def shutdown(self) -> None:
        self.close_clients()
        if self._thread is not None:
            self.httpd.shutdown()
            self._thread.join(timeout=5)
            self._thread = None
        self.httpd.server_close()
