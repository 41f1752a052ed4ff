"""
Typed errors raised by the pipeline and the retrieval path.
"""


class GameClusterError(Exception):
    """Base class for every error raised by this package"""


class SchemaMismatch(GameClusterError):
    """Attribute and tag sources cannot be combined into feature vectors."""


class UntrainedModel(GameClusterError):
    """Export or query attempted before a clustering run completed."""


class NotFound(GameClusterError):
    """No exported record exists for the requested app id."""

    def __init__(self, app_id):
        super().__init__(f"No cluster record for app_id={app_id}")
        self.app_id = app_id


class InconsistentClusterOutput(GameClusterError):
    """
    The clustering primitive assigned a cluster id that has no entry in the
    distance vector it returned for the same game.
    """

    def __init__(self, app_id: int, cluster_id: int, n_distances: int):
        super().__init__(
            f"cluster_id={cluster_id} out of range for {n_distances} distances "
            f"(app_id={app_id})"
        )
        self.app_id = app_id
        self.cluster_id = cluster_id
        self.n_distances = n_distances
