"""kube-swarm: Kubernetes-driven cluster membership for peer processes."""

__version__ = "0.1.0"
