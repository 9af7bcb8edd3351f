"""Resolution engine: picks the resources block for every container.

Sources are tried in a fixed order and the first success wins:

1. the backend adapter's recommendation (cached per cluster),
2. the live cluster's copy of the same workload,
3. the ``resources`` block the chart already carries.

If all three come up empty a warning is logged and the container is left
alone.  Nothing is retried.
"""

from __future__ import annotations

import logging

from helmopt.errors import (
    InsightNotFoundError,
    SpecValidationError,
    TransportError,
)
from helmopt.manifest import ClassifiedManifest, Container
from helmopt.models import RecommendationKey, Resolution, ResolutionSource
from helmopt.session import Session
from helmopt.tools.k8s_connector import fetch_live_resources

logger = logging.getLogger("helmopt.resolver")

# sources that overwrite the chart's resources block
_WRITING_SOURCES = (ResolutionSource.backend, ResolutionSource.cluster)


class ResolutionEngine:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.adapter = session.require_adapter()

    def key_for(self, manifest: ClassifiedManifest, container: Container) -> RecommendationKey:
        return RecommendationKey(
            cluster=self.session.remote_cluster,
            namespace=manifest.namespace,
            object_type=manifest.kind,
            object_name=manifest.name,
            container_name=container.name,
        )

    def resolve(self, manifest: ClassifiedManifest, container: Container) -> Resolution:
        """Run the fallback chain for one container without touching the document."""
        key = self.key_for(manifest, container)
        resolution = Resolution(key=key)

        try:
            spec, approval = self.adapter.get_insight(key)
        except (InsightNotFoundError, SpecValidationError, TransportError) as exc:
            logger.info("%s: backend has no usable recommendation (%s)", key, exc)
            resolution.failures.append(f"backend: {exc}")
        else:
            resolution.source = ResolutionSource.backend
            resolution.resources = spec.to_resources()
            resolution.approval = approval
            return resolution

        try:
            live = fetch_live_resources(self.session.shell, key, self.session.kubectl)
        except (InsightNotFoundError, TransportError) as exc:
            logger.info("%s: not available from cluster (%s)", key, exc)
            resolution.failures.append(f"cluster: {exc}")
        else:
            resolution.source = ResolutionSource.cluster
            resolution.resources = live
            return resolution

        default = container.resources
        if default:
            resolution.source = ResolutionSource.chart_default
            resolution.resources = default
            return resolution

        logger.warning("%s: no default config present, resources left unset", key)
        return resolution

    def apply(self, manifest: ClassifiedManifest) -> list[Resolution]:
        """Resolve every named container of *manifest* and write the results in place."""
        resolutions: list[Resolution] = []
        for container in manifest.containers:
            if not container.name:
                continue
            resolution = self.resolve(manifest, container)
            if resolution.source in _WRITING_SOURCES and resolution.resources:
                container.set_resources(resolution.resources)
            resolutions.append(resolution)
        return resolutions
