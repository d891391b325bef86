from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SwotCategory = Literal["strength", "weakness", "opportunity", "threat"]
VariableKind = Literal["stock", "flow", "auxiliary", "decision"]
TimeHorizon = Literal["short-term", "medium-term", "long-term"]
PoliticalDimension = Literal["power", "institutions", "incentives", "resources"]
Polarity = Literal["same", "opposite"]
LoopType = Literal["reinforcing", "balancing"]
Tier = Literal["high", "medium", "low"]


class SwotEntry(BaseModel):
    """A SWOT variable with its systems-thinking metadata."""

    id: str = Field(..., description="Stable entry ID")
    category: SwotCategory = Field(..., description="SWOT quadrant")
    text: str = Field(..., description="Entry text as typed by the user")
    variable_type: VariableKind = Field(default="stock", description="System dynamics role")
    time_horizon: TimeHorizon = Field(default="medium-term", description="When effects are expected")
    political_dimension: PoliticalDimension = Field(
        default="institutions", description="Political-economy factor the entry relates to"
    )
    stakeholder: str = Field(default="", description="Actor owning or affected by the entry")


class CldNode(BaseModel):
    """A variable on the causal loop diagram."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique node ID, stable across edits")
    swot_item_id: Optional[str] = Field(default=None, description="Originating SWOT entry, if any")
    label: str = Field(..., description="Display text")
    category: SwotCategory = Field(..., description="SWOT quadrant (inherited from the entry)")
    node_type: VariableKind = Field(default="auxiliary", description="Stock, flow, auxiliary or decision")
    x: float = Field(default=0.0, description="Canvas position, unused by the analysis")
    y: float = Field(default=0.0, description="Canvas position, unused by the analysis")


class CausalLink(BaseModel):
    """A signed, optionally delayed causal edge between two nodes."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique link ID")
    source_id: str = Field(..., description="Cause node ID")
    target_id: str = Field(..., description="Effect node ID")
    polarity: Polarity = Field(default="same", description="same (+) or opposite (-)")
    has_delay: bool = Field(default=False, description="Effect is not immediate")


class FeedbackLoop(BaseModel):
    """A simple directed cycle of the diagram with its classification."""

    model_config = ConfigDict(frozen=True)

    id: str
    nodes: List[str] = Field(..., description="Node IDs in traversal order, smallest ID first")
    link_ids: List[str] = Field(..., description="Link traversed out of each node, same order as nodes")
    type: LoopType
    description: str
    opposite_links: int = Field(default=0, description="Number of sign-inverting links on the loop")
    has_delay: bool = Field(default=False, description="At least one link on the loop is delayed")


class LeveragePoint(BaseModel):
    """A node ranked by its structural intervention value."""

    model_config = ConfigDict(frozen=True)

    id: str
    node_id: str
    type: str = Field(..., description="Why the node is a leverage point")
    impact: Tier
    description: str
    score: int = Field(default=0, description="Combined heuristic score used for ranking")
    heuristics: List[str] = Field(default_factory=list, description="Heuristics the node satisfies")
    loop_ids: List[str] = Field(default_factory=list, description="Loops the node lies on")


class PoliticalEconomy(BaseModel):
    """Four-field political-economy annotation of a strategic option."""

    model_config = ConfigDict(frozen=True)

    power_alignment: str
    institutional_capacity: str
    time_horizon: str
    stakeholder_coalition: str


class StrategicOption(BaseModel):
    """An intervention proposal synthesized from one or more leverage points."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    feasibility: Tier
    political_economy: PoliticalEconomy
    leverage_points: List[str] = Field(..., description="IDs of the leverage points addressed")
