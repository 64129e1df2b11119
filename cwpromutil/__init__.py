"""Turn CloudWatch metric results and tagged resources into Prometheus metrics."""

__version__ = "0.1.0"
__all__ = ["naming", "metrics", "migrate"]