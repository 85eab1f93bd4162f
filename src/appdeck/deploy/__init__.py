"""AppDeck deployment engine.

This package provides the local process deployer together with the pieces
it is built from: artifact resources, the instance launcher, port
allocation, health probing, the deployment registry and status aggregation.
"""

from appdeck.deploy.resources import FileSystemResource, Resource

__all__ = [
    "FileSystemResource",
    "Resource",
]
