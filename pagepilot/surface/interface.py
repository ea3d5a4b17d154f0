"""Navigation surface interface definitions.

This module defines the boundary between the step engine and the host that
actually loads documents: the surface the engine drives, and the listener
through which the surface reports navigation lifecycle events.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from pagepilot.types import ClipRect, PageSettings, Resource, Viewport


class ILifecycleListener(ABC):
    """Receiver of navigation lifecycle notifications.

    Notifications are delivered on the event loop that drives the session.
    """

    @abstractmethod
    def on_load_started(self) -> None:
        """A main-frame navigation has started."""
        pass

    @abstractmethod
    async def on_load_finished(self, status: str) -> None:
        """A main-frame navigation has finished.

        Args:
            status: "success" or "fail"
        """
        pass

    @abstractmethod
    def on_resource_received(self, resource: Resource) -> None:
        """A response has been received for a resource."""
        pass

    @abstractmethod
    def on_console_message(self, message: str) -> None:
        """The remote context wrote a line to its console."""
        pass


class ISurface(ABC):
    """Interface for navigation surfaces.

    This abstract class defines the required methods that any surface
    implementation must provide. All methods are coroutines; implementations
    backed by blocking drivers run them off the event loop.
    """

    def __init__(self) -> None:
        self.listeners: List[ILifecycleListener] = []
        self.clip_rect: Optional[ClipRect] = None

    def subscribe(self, listener: ILifecycleListener) -> None:
        """Register a lifecycle listener."""
        if listener not in self.listeners:
            self.listeners.append(listener)

    def emit_load_started(self) -> None:
        for listener in list(self.listeners):
            listener.on_load_started()

    async def emit_load_finished(self, status: str) -> None:
        for listener in list(self.listeners):
            await listener.on_load_finished(status)

    def emit_resource_received(self, resource: Resource) -> None:
        for listener in list(self.listeners):
            listener.on_resource_received(resource)

    def emit_console_message(self, message: str) -> None:
        for listener in list(self.listeners):
            listener.on_console_message(message)

    @abstractmethod
    async def start(self, settings: PageSettings) -> None:
        """Launch the surface and apply the page settings.

        Args:
            settings: User agent, viewport and clip region to apply
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the surface and clean up resources."""
        pass

    @abstractmethod
    async def open(self, url: str) -> None:
        """Start navigating to ``url``.

        Returns once the navigation has been dispatched; completion is
        reported through the lifecycle listeners.
        """
        pass

    @abstractmethod
    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Evaluate JavaScript source in the remote context.

        Args:
            expression: A function source or an expression
            arg: A JSON-representable argument passed to the function

        Returns:
            The JSON-representable result of the evaluation

        Raises:
            RemoteEvaluationError: If the remote context rejects the expression
        """
        pass

    @abstractmethod
    async def inject_script(self, path: str) -> bool:
        """Inject a local script file into the remote context."""
        pass

    @abstractmethod
    async def capture(self, path: str, clip: Optional[ClipRect] = None) -> None:
        """Render the surface to an image file.

        Args:
            path: Target file path
            clip: Region to render; the surface clip region or the full page when omitted

        Raises:
            SurfaceError: If the underlying driver fails to render
        """
        pass

    @abstractmethod
    async def upload_file(self, selector: str, path: str) -> None:
        """Attach a local file to the file input matching ``selector``."""
        pass

    @abstractmethod
    async def set_viewport(self, viewport: Viewport) -> None:
        """Change the viewport size."""
        pass
