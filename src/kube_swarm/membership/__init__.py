"""Membership layer: reconcile discovered peers on a fixed cadence."""

from kube_swarm.membership.reconciler import Reconciler, ReconcilerState, TickReport, diff
from kube_swarm.membership.scheduler import Scheduler

__all__ = ["Reconciler", "ReconcilerState", "Scheduler", "TickReport", "diff"]
