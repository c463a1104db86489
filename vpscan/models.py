"""Pydantic models for density-clustering parameters and run summaries."""

from typing import List, Literal

from pydantic import BaseModel, Field, computed_field


class ClusterParameters(BaseModel):
    """Density clustering configuration parameters."""

    epsilon: float = Field(ge=0, description="Neighborhood radius")
    min_pts: int = Field(
        ge=0,
        description="A point seeds a cluster when its neighbor count (itself included) exceeds this",
    )
    metric: Literal["euclidean", "manhattan", "chebyshev"] = Field(
        default="euclidean", description="Distance metric for the tree and the neighborhoods"
    )
    strategy: Literal["stack", "parent", "brute"] = Field(
        default="stack", description="Radius search used to build the neighbor graph"
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {"epsilon": 1.5, "min_pts": 1},
                {"epsilon": 0.17, "min_pts": 10, "metric": "euclidean", "strategy": "parent"},
            ]
        },
    }


class ClusteringSummary(BaseModel):
    """Outcome and timings of one clustering run."""

    n_points: int = Field(ge=0, description="Number of clustered points")
    n_clusters: int = Field(ge=0, description="Number of clusters found")
    n_outliers: int = Field(ge=0, description="Number of points labeled as outliers")
    cluster_sizes: List[int] = Field(
        default_factory=list, description="Size of each cluster, indexed by cluster id"
    )
    n_edges: int = Field(ge=0, description="Total adjacency entries in the neighbor graph")
    build_ms: float = Field(ge=0, description="Tree construction time in milliseconds")
    graph_ms: float = Field(ge=0, description="Neighbor graph construction time in milliseconds")
    label_ms: float = Field(ge=0, description="Labeling time in milliseconds")
    parameters_used: ClusterParameters

    @computed_field
    @property
    def coverage_ratio(self) -> float:
        """Share of points that belong to a cluster."""
        if self.n_points == 0:
            return 0.0
        return (self.n_points - self.n_outliers) / self.n_points
