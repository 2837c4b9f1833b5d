"""
k8s-image-exporter - Kubernetes image age and vulnerability metrics

Publishes Prometheus metrics for the container images running in a cluster:
days since each image was built, and ECR scan finding counts by severity.
"""

__version__ = "1.0.0"
