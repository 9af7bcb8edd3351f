"""Densify data forwarder discovery.

The forwarder ships its settings as a Java-properties blob inside a config
map.  We scan every config map in the cluster for the one carrying the
Densify copyright line, parse it with ``javaproperties`` and expose its
keys (``host``, ``protocol``, ``port``, ``cluster_name``, ...).
"""

from __future__ import annotations

import logging
from typing import Optional

import javaproperties

from helmopt import config
from helmopt.errors import TransportError
from helmopt.tools.shell import Shell
from helmopt.tools.utils import load_json

logger = logging.getLogger("helmopt.forwarder")


def parse_properties(text: str) -> dict[str, str]:
    """Parse a Java properties document (``key=value``, ``key: value`` or ``key value``)."""
    return javaproperties.loads(text)


def load_forwarder_config(shell: Shell, kubectl: str = config.KUBECTL_BIN) -> Optional[dict[str, str]]:
    """Return the forwarder properties, or ``None`` when no forwarder is installed."""
    result = shell.run([kubectl, "get", "configmaps", "-A", "-o", "json"])
    if not result.ok:
        logger.warning("Could not list config maps: %s", result.stderr)
        return None
    try:
        items = load_json(result.stdout, "kubectl get configmaps").get("items", [])
    except TransportError as exc:
        logger.warning("%s", exc)
        return None

    for item in items:
        blob = (item.get("data") or {}).get(config.FORWARDER_DATA_KEY)
        if isinstance(blob, str) and config.FORWARDER_MARKER in blob:
            try:
                return parse_properties(blob)
            except ValueError as exc:
                logger.warning("Forwarder config is not valid properties: %s", exc)
                return None
    return None


def forwarder_url(properties: Optional[dict[str, str]]) -> str:
    """Build ``protocol://host:port`` from the forwarder settings, or ``""``."""
    if not properties:
        return ""
    protocol = properties.get("protocol")
    host = properties.get("host")
    port = properties.get("port")
    if not (protocol and host and port):
        return ""
    return f"{protocol}://{host}:{port}"
