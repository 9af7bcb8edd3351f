"""Credential store backed by a Kubernetes generic secret.

Holds the adapter selection, connection settings and the remote cluster
mapping under one secret (``helm-optimize-plugin``).  Kubernetes secrets
cannot be patched key-by-key through ``kubectl create``, so every write is
delete-then-recreate.  A failure between the two steps loses the stored
configuration and the user is asked again on the next run.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

from helmopt import config
from helmopt.errors import TransportError
from helmopt.tools.shell import Shell
from helmopt.tools.utils import load_json

logger = logging.getLogger("helmopt.secrets")


class SecretStore:
    """Retrieve / store / delete string key-value pairs in one secret."""

    def __init__(
        self,
        shell: Shell,
        name: str = config.SECRET_NAME,
        fallback_namespace: str = config.DEFAULT_NAMESPACE,
        kubectl: str = config.KUBECTL_BIN,
    ) -> None:
        self.shell = shell
        self.name = name
        self.fallback_namespace = fallback_namespace
        self.kubectl = kubectl
        self._namespace: Optional[str] = None

    # ------------------------------------------------------------------
    # Namespace discovery
    # ------------------------------------------------------------------

    @property
    def namespace(self) -> str:
        if self._namespace is None:
            self._namespace = self.locate_namespace()
        return self._namespace

    def locate_namespace(self) -> str:
        """Find the namespace already holding the secret, else use the fallback."""
        result = self.shell.run(
            [self.kubectl, "get", "secrets", "-o", "json", "--all-namespaces"]
        )
        if result.ok:
            try:
                items = load_json(result.stdout, "kubectl get secrets").get("items", [])
            except TransportError as exc:
                logger.warning("Could not scan secrets: %s", exc)
                items = []
            for item in items:
                meta = item.get("metadata", {})
                if meta.get("name") == self.name and meta.get("namespace"):
                    self._namespace = meta["namespace"]
                    return self._namespace
        else:
            logger.debug("Secret scan failed: %s", result.stderr)
        self._namespace = self.fallback_namespace
        return self._namespace

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def retrieve(self) -> dict[str, str]:
        """Return the decoded secret data, or an empty dict if there is none."""
        result = self.shell.run([
            self.kubectl, "get", "secret", self.name,
            "--namespace", self.namespace, "-o", "jsonpath={.data}",
        ])
        if not result.ok or not result.stdout.strip():
            return {}
        try:
            encoded = load_json(result.stdout, "kubectl get secret")
        except TransportError as exc:
            logger.warning("Ignoring unreadable secret %s: %s", self.name, exc)
            return {}
        decoded: dict[str, str] = {}
        for key, value in (encoded or {}).items():
            try:
                decoded[key] = base64.b64decode(value).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                logger.warning("Skipping undecodable secret key %s", key)
        return decoded

    def store(self, updates: dict[str, str]) -> None:
        """Merge *updates* into the secret (delete, then recreate)."""
        merged = self.retrieve()
        merged.update(updates)
        self._recreate(merged)

    def remove(self, *keys: str) -> None:
        """Drop *keys* from the secret, keeping everything else."""
        remaining = {k: v for k, v in self.retrieve().items() if k not in keys}
        self._recreate(remaining)

    def delete(self) -> None:
        self.shell.run([
            self.kubectl, "delete", "secret", self.name,
            "--namespace", self.namespace, "--ignore-not-found",
        ])

    def _recreate(self, data: dict[str, str]) -> None:
        cmd = [
            self.kubectl, "create", "secret", "generic", self.name,
            "--namespace", self.namespace,
        ]
        cmd += [f"--from-literal={key}={value}" for key, value in data.items()]
        self.delete()
        self.shell.run(cmd).check()
        logger.debug("Stored %d key(s) in secret %s/%s", len(data), self.namespace, self.name)
