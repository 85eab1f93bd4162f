"""Aggregation of instance states into a single deployment state."""

from __future__ import annotations

from collections.abc import Iterable

from appdeck.models.deployment import DeploymentState


def aggregate_state(states: Iterable[DeploymentState]) -> DeploymentState:
    """Reduce the states of a deployment's instances to one state.

    An empty deployment is ``unknown`` and a deployment whose instances all
    agree takes their state. Mixed deployments are classified by the first
    matching rule: any ``error`` wins, then any ``deploying``, then a mix
    containing ``deployed`` is ``partial``, then any ``failed``. Everything
    else (for example ``undeployed`` next to ``failed``) is ``partial``.

    Args:
        states: Instance states in any order

    Returns:
        The aggregated deployment state
    """
    distinct = set(states)
    if not distinct:
        return DeploymentState.UNKNOWN
    if len(distinct) == 1:
        return next(iter(distinct))

    if DeploymentState.ERROR in distinct:
        return DeploymentState.ERROR
    if DeploymentState.DEPLOYING in distinct:
        return DeploymentState.DEPLOYING
    if DeploymentState.DEPLOYED in distinct or DeploymentState.PARTIAL in distinct:
        return DeploymentState.PARTIAL
    if DeploymentState.FAILED in distinct:
        return DeploymentState.FAILED
    return DeploymentState.PARTIAL
