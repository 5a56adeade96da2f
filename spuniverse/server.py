from __future__ import annotations

import http.server
import json
from typing import Any, Dict, Tuple

from .engine import Engine


def handle_run_request(engine: Engine, body: bytes) -> Tuple[int, Dict[str, Any]]:
    try:
        payload = json.loads(body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, ValueError) as exc:
        return 400, {"status": "error", "message": f"Invalid JSON body: {exc}"}
    if not isinstance(payload, dict) or not isinstance(payload.get("command"), str):
        return 400, {"status": "error", "message": "Body must be an object with a 'command' string"}

    token = payload.get("confirm")
    output = engine.run_command(payload["command"], confirm=lambda _prompt: token)
    return 200, {"status": "success", "output": output}


def make_server(engine: Engine, host: str = "127.0.0.1", port: int = 3000) -> http.server.HTTPServer:
    class _SPURunHandler(http.server.BaseHTTPRequestHandler):
        server_version = "SPU/1.0"

        def log_message(self, fmt: str, *args: Any) -> None:  # noqa: D401
            return

        def _send_json(self, status: int, payload: Any) -> None:
            raw = json.dumps(payload, ensure_ascii=False).encode("utf-8")
            self.send_response(int(status))
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(raw)))
            self.end_headers()
            self.wfile.write(raw)

        def do_POST(self) -> None:  # noqa: N802
            if self.path.split("?", 1)[0] != "/api/run":
                self._send_json(404, {"status": "error", "message": f"Unknown path: {self.path}"})
                return
            try:
                n = int(self.headers.get("Content-Length", "0") or "0")
            except ValueError:
                n = 0
            body = self.rfile.read(n) if n > 0 else b""
            status, response = handle_run_request(engine, body)
            self._send_json(status, response)

        def do_GET(self) -> None:  # noqa: N802
            self._send_json(404, {"status": "error", "message": f"Unknown path: {self.path}"})

    return http.server.HTTPServer((host, int(port)), _SPURunHandler)
