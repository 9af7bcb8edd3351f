"""helm-optimize: apply container resource recommendations to Helm charts."""

__version__ = "1.0.0"
