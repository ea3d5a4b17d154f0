"""Remote call bridge.

Marshals a function and its parameters into the navigated document's own
script context. Parameters travel two ways:

- as ``window.__pilot_params__``, installed by a preamble that parses a
  serialized payload inside the remote context, and
- as ``%name%`` placeholders in the function source, replaced by the JSON
  literal of the matching parameter.

Only JSON-representable values can cross the boundary.
"""

import logging
import re
from typing import Any, Dict, Optional, TYPE_CHECKING
from urllib.parse import quote

from pydantic import ValidationError

from pagepilot.errors import RemoteEvaluationError, SurfaceError
from pagepilot.types import RemoteCallEnvelope

if TYPE_CHECKING:
    from pagepilot.session import Session

logger = logging.getLogger(__name__)

PARAMS_GLOBAL = "__pilot_params__"

PLACEHOLDER_PATTERN = re.compile(r"%([A-Za-z_$][A-Za-z0-9_$]*)%")

# Parses the URI-encoded JSON payload into the well-known global. A parse
# failure leaves an empty mapping behind and is relayed through the console.
PARAMS_PREAMBLE = """(payload) => {
    window.%(name)s = {};
    try {
        window.%(name)s = JSON.parse(decodeURIComponent(payload));
    } catch (e) {
        console.log("[pilot:error] Unable to replace parameters: " + e);
    }
    return true;
}""" % {"name": PARAMS_GLOBAL}


def substitute_placeholders(source: str, envelope: RemoteCallEnvelope) -> str:
    """Replace every ``%name%`` placeholder with the literal of ``params[name]``.

    Substitution is a single pass over the original source, so a value whose
    literal contains a placeholder-shaped token is never expanded again.
    Placeholders without a matching parameter are left untouched.
    """

    def _replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name in envelope.params:
            return envelope.literal(name)
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, source)


class RemoteBridge:
    """Evaluates functions inside the remote context of a session's surface."""

    def __init__(self, session: "Session"):
        self.session = session

    def build_envelope(self, params: Optional[Dict[str, Any]]) -> RemoteCallEnvelope:
        """Validate ``params`` at the call boundary.

        Unrepresentable parameters are logged and replaced by an empty mapping.
        """
        if params is None:
            return RemoteCallEnvelope()
        try:
            return RemoteCallEnvelope(params=params)
        except ValidationError as e:
            self.session.log(
                f"Unable to serialize evaluation parameters: {e.error_count()} invalid value(s)",
                "error",
            )
            logger.debug(f"Rejected parameters: {e}")
            return RemoteCallEnvelope()

    async def install_params(self, envelope: RemoteCallEnvelope) -> None:
        """Install the parameters as a remote global."""
        payload = quote(envelope.serialize(), safe="")
        await self.session.surface.evaluate(PARAMS_PREAMBLE, payload)

    async def evaluate(self, fn: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Evaluate ``fn`` in the remote context with ``params`` available.

        Args:
            fn: JavaScript function source or expression
            params: JSON-representable parameters

        Returns:
            The evaluation result, or None when the remote side failed
        """
        envelope = self.build_envelope(params)
        source = substitute_placeholders(fn, envelope)
        try:
            await self.install_params(envelope)
            return await self.session.surface.evaluate(source)
        except (RemoteEvaluationError, SurfaceError) as e:
            self.session.log(f"Remote evaluation failed: {e.message}", "error", "remote")
            return None
