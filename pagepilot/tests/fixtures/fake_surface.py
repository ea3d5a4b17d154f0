"""In-memory navigation surface used by the test suite.

Navigations complete asynchronously, like a real browser: ``open`` returns
once the load has started and the load finishes on a later loop iteration
(or when ``finish_load`` is called for manual surfaces).
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote

from pagepilot.bridge import PARAMS_PREAMBLE
from pagepilot.errors import RemoteEvaluationError
from pagepilot.surface.interface import ISurface
from pagepilot.types import ClipRect, PageSettings, Resource, Viewport

Responder = Callable[[str, Dict[str, Any]], Any]


class FakeSurface(ISurface):
    def __init__(
        self,
        responder: Optional[Responder] = None,
        auto_load: bool = True,
        statuses: Optional[Dict[str, int]] = None,
        failing_urls: Optional[List[str]] = None,
        missing_scripts: Optional[List[str]] = None,
    ):
        super().__init__()
        self.responder = responder
        self.auto_load = auto_load
        self.statuses = statuses or {}
        self.failing_urls = failing_urls or []
        self.missing_scripts = missing_scripts or []
        self.location = "about:blank"
        self.params: Dict[str, Any] = {}
        self.params_installs: List[Dict[str, Any]] = []
        self.evaluated: List[Tuple[str, Any]] = []
        self.opened: List[str] = []
        self.injected: List[str] = []
        self.captures: List[Tuple[str, Optional[ClipRect]]] = []
        self.uploads: List[Tuple[str, str]] = []
        self.viewports: List[Viewport] = []
        self.settings: Optional[PageSettings] = None
        self.start_count = 0
        self.closed = False
        self._tasks: List[asyncio.Task] = []

    async def start(self, settings: PageSettings) -> None:
        self.settings = settings
        self.start_count += 1

    async def close(self) -> None:
        for task in self._tasks:
            task.cancel()
        self.closed = True

    async def open(self, url: str) -> None:
        self.opened.append(url)
        self.emit_load_started()
        if self.auto_load:
            self._tasks.append(asyncio.ensure_future(self.finish_load(url)))

    async def finish_load(self, url: str) -> None:
        """Complete the navigation to ``url``."""
        await asyncio.sleep(0)
        if url in self.failing_urls:
            await self.emit_load_finished("fail")
            return
        self.location = url
        self.emit_resource_received(Resource(url=url, status=self.statuses.get(url, 200)))
        await self.emit_load_finished("success")

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.evaluated.append((expression, arg))
        if expression == PARAMS_PREAMBLE:
            self.params = json.loads(unquote(arg))
            self.params_installs.append(self.params)
            return True
        if "ClientUtils" in expression:
            return True
        if expression == "() => document.location.href":
            return self.location
        if self.responder is None:
            return None
        result = self.responder(expression, self.params)
        if isinstance(result, Exception):
            raise RemoteEvaluationError(str(result), expression)
        return result

    async def inject_script(self, path: str) -> bool:
        if path in self.missing_scripts:
            return False
        self.injected.append(path)
        return True

    async def capture(self, path: str, clip: Optional[ClipRect] = None) -> None:
        if path.endswith(".fail"):
            raise OSError(f"cannot write {path}")
        self.captures.append((path, clip or self.clip_rect))

    async def upload_file(self, selector: str, path: str) -> None:
        self.uploads.append((selector, path))

    async def set_viewport(self, viewport: Viewport) -> None:
        self.viewports.append(viewport)
