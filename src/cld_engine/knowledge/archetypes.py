"""
System archetype templates.

Each archetype is a variant of a tagged union keyed by ``type``. A variant
declares its own named variables, the role each variable plays on the
diagram, and the signed links between them, so applying an archetype to a
diagram is a plain expansion into nodes and links.
"""
from __future__ import annotations

from typing import Annotated, ClassVar, Dict, List, Literal, NamedTuple, Tuple, Union

from pydantic import BaseModel, Field, TypeAdapter

from ..graph.builder import CausalGraph, GraphError
from .types import CausalLink, CldNode


class Role(NamedTuple):
    category: str
    node_type: str
    x: float
    y: float


class TemplateLink(NamedTuple):
    source: str
    target: str
    polarity: str
    has_delay: bool = False


class ArchetypeBase(BaseModel):
    id: str = Field(..., description="Stable analysis ID, used to namespace generated nodes")
    title: str = Field(default="", description="User title for this analysis")
    analysis: str = Field(default="", description="Free-text analysis notes")
    instantiate: bool = Field(default=False, description="Expand the template into the diagram")

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    roles: ClassVar[Dict[str, Role]] = {}
    links: ClassVar[Tuple[TemplateLink, ...]] = ()

    def variables(self) -> Dict[str, str]:
        return {field: getattr(self, field) for field in self.roles}

    def node_id(self, field: str) -> str:
        return f"{self.id}:{field}"

    def template(self) -> Tuple[List[CldNode], List[CausalLink]]:
        nodes = [
            CldNode(
                id=self.node_id(field),
                label=getattr(self, field),
                category=role.category,
                node_type=role.node_type,
                x=role.x,
                y=role.y,
            )
            for field, role in self.roles.items()
        ]
        links = [
            CausalLink(
                id=f"{self.id}:{l.source}->{l.target}",
                source_id=self.node_id(l.source),
                target_id=self.node_id(l.target),
                polarity=l.polarity,
                has_delay=l.has_delay,
            )
            for l in self.links
        ]
        return nodes, links


class FixesThatFail(ArchetypeBase):
    type: Literal["fixes_that_fail"] = "fixes_that_fail"
    symptom: str = "Symptom"
    fix: str = "Fix"
    consequence: str = "Consequence"

    name: ClassVar[str] = "Fixes that Fail"
    description: ClassVar[str] = (
        "A quick fix relieves a symptom but has delayed unintended consequences "
        "that make the symptom worse."
    )
    roles: ClassVar[Dict[str, Role]] = {
        "symptom": Role("weakness", "stock", 100, 100),
        "fix": Role("strength", "decision", 250, 50),
        "consequence": Role("threat", "auxiliary", 350, 150),
    }
    links: ClassVar[Tuple[TemplateLink, ...]] = (
        TemplateLink("symptom", "fix", "same"),
        TemplateLink("fix", "symptom", "opposite"),
        TemplateLink("fix", "consequence", "same", True),
        TemplateLink("consequence", "symptom", "same"),
    )


class LimitsToGrowth(ArchetypeBase):
    type: Literal["limits_to_growth"] = "limits_to_growth"
    action: str = "Growing Action"
    condition: str = "Performance"
    limit: str = "Limiting Condition"

    name: ClassVar[str] = "Limits to Growth"
    description: ClassVar[str] = (
        "A reinforcing growth process runs into a balancing constraint that "
        "slows or reverses success."
    )
    roles: ClassVar[Dict[str, Role]] = {
        "action": Role("strength", "flow", 60, 100),
        "condition": Role("opportunity", "stock", 200, 100),
        "limit": Role("threat", "auxiliary", 340, 100),
    }
    links: ClassVar[Tuple[TemplateLink, ...]] = (
        TemplateLink("action", "condition", "same"),
        TemplateLink("condition", "action", "same"),
        TemplateLink("condition", "limit", "same"),
        TemplateLink("limit", "condition", "opposite", True),
    )


class ShiftingTheBurden(ArchetypeBase):
    type: Literal["shifting_the_burden"] = "shifting_the_burden"
    symptom: str = "Problem Symptom"
    symptomatic_solution: str = "Symptomatic Solution"
    fundamental_solution: str = "Fundamental Solution"
    side_effect: str = "Side Effect"

    name: ClassVar[str] = "Shifting the Burden"
    description: ClassVar[str] = (
        "A symptomatic solution relieves pressure while its side effect erodes "
        "the capacity to apply the fundamental solution."
    )
    roles: ClassVar[Dict[str, Role]] = {
        "symptom": Role("weakness", "stock", 200, 40),
        "symptomatic_solution": Role("strength", "decision", 80, 140),
        "fundamental_solution": Role("opportunity", "decision", 320, 140),
        "side_effect": Role("threat", "auxiliary", 200, 220),
    }
    links: ClassVar[Tuple[TemplateLink, ...]] = (
        TemplateLink("symptom", "symptomatic_solution", "same"),
        TemplateLink("symptomatic_solution", "symptom", "opposite"),
        TemplateLink("symptom", "fundamental_solution", "same"),
        TemplateLink("fundamental_solution", "symptom", "opposite", True),
        TemplateLink("symptomatic_solution", "side_effect", "same"),
        TemplateLink("side_effect", "fundamental_solution", "opposite", True),
    )


class DriftingGoals(ArchetypeBase):
    type: Literal["drifting_goals"] = "drifting_goals"
    goal: str = "Goal"
    gap: str = "Gap"
    pressure: str = "Pressure to Lower Goal"
    action: str = "Corrective Action"

    name: ClassVar[str] = "Drifting Goals"
    description: ClassVar[str] = (
        "A gap between goal and performance is closed by lowering the goal "
        "instead of taking corrective action."
    )
    roles: ClassVar[Dict[str, Role]] = {
        "goal": Role("strength", "stock", 200, 20),
        "gap": Role("weakness", "auxiliary", 200, 100),
        "pressure": Role("threat", "auxiliary", 60, 100),
        "action": Role("opportunity", "decision", 340, 100),
    }
    links: ClassVar[Tuple[TemplateLink, ...]] = (
        TemplateLink("goal", "gap", "same"),
        TemplateLink("gap", "pressure", "same"),
        TemplateLink("pressure", "goal", "opposite", True),
        TemplateLink("gap", "action", "same"),
        TemplateLink("action", "gap", "opposite", True),
    )


class SuccessToTheSuccessful(ArchetypeBase):
    type: Literal["success_to_the_successful"] = "success_to_the_successful"
    resource: str = "Resources to A instead of B"
    success_a: str = "Success A"
    success_b: str = "Success B"

    name: ClassVar[str] = "Success to the Successful"
    description: ClassVar[str] = (
        "Two activities compete for limited resources; the more successful one "
        "gets more resources, fueling further success."
    )
    roles: ClassVar[Dict[str, Role]] = {
        "resource": Role("opportunity", "flow", 200, 100),
        "success_a": Role("strength", "stock", 80, 50),
        "success_b": Role("weakness", "stock", 320, 150),
    }
    links: ClassVar[Tuple[TemplateLink, ...]] = (
        TemplateLink("success_a", "resource", "same"),
        TemplateLink("resource", "success_a", "same"),
        TemplateLink("resource", "success_b", "opposite"),
        TemplateLink("success_b", "resource", "opposite"),
    )


class Escalation(ArchetypeBase):
    type: Literal["escalation"] = "escalation"
    party_a: str = "Activity of A"
    party_b: str = "Activity of B"
    relative_advantage: str = "Results of A relative to B"

    name: ClassVar[str] = "Escalation"
    description: ClassVar[str] = (
        "Two parties compete for superiority, and every action by one is met "
        "by a counter-action from the other."
    )
    roles: ClassVar[Dict[str, Role]] = {
        "party_a": Role("strength", "decision", 60, 100),
        "relative_advantage": Role("opportunity", "auxiliary", 200, 100),
        "party_b": Role("threat", "decision", 340, 100),
    }
    links: ClassVar[Tuple[TemplateLink, ...]] = (
        TemplateLink("party_a", "relative_advantage", "same"),
        TemplateLink("relative_advantage", "party_a", "opposite"),
        TemplateLink("relative_advantage", "party_b", "same", True),
        TemplateLink("party_b", "relative_advantage", "opposite"),
    )


class GrowthAndUnderinvestment(ArchetypeBase):
    type: Literal["growth_and_underinvestment"] = "growth_and_underinvestment"
    demand: str = "Demand"
    performance: str = "Performance"
    capacity: str = "Capacity"
    investment: str = "Investment in Capacity"

    name: ClassVar[str] = "Growth and Underinvestment"
    description: ClassVar[str] = (
        "Growth approaches a limit which can be eliminated by investment, but "
        "investment is not made fast enough."
    )
    roles: ClassVar[Dict[str, Role]] = {
        "demand": Role("opportunity", "flow", 60, 60),
        "performance": Role("strength", "stock", 200, 100),
        "capacity": Role("weakness", "stock", 340, 60),
        "investment": Role("opportunity", "decision", 340, 160),
    }
    links: ClassVar[Tuple[TemplateLink, ...]] = (
        TemplateLink("demand", "performance", "same"),
        TemplateLink("performance", "demand", "same"),
        TemplateLink("capacity", "performance", "same"),
        TemplateLink("performance", "investment", "opposite"),
        TemplateLink("investment", "capacity", "same", True),
    )


class TragedyOfTheCommons(ArchetypeBase):
    type: Literal["tragedy_of_the_commons"] = "tragedy_of_the_commons"
    activity_a: str = "Activity of A"
    activity_b: str = "Activity of B"
    total_activity: str = "Total Activity"
    resource: str = "Shared Resource"

    name: ClassVar[str] = "Tragedy of the Commons"
    description: ClassVar[str] = (
        "Individuals use a commonly available resource for personal gain, "
        "leading to the depletion of that resource."
    )
    roles: ClassVar[Dict[str, Role]] = {
        "activity_a": Role("strength", "flow", 60, 40),
        "activity_b": Role("strength", "flow", 60, 160),
        "total_activity": Role("threat", "auxiliary", 200, 100),
        "resource": Role("weakness", "stock", 340, 100),
    }
    links: ClassVar[Tuple[TemplateLink, ...]] = (
        TemplateLink("activity_a", "total_activity", "same"),
        TemplateLink("activity_b", "total_activity", "same"),
        TemplateLink("total_activity", "resource", "opposite", True),
        TemplateLink("resource", "activity_a", "same"),
        TemplateLink("resource", "activity_b", "same"),
    )


Archetype = Annotated[
    Union[
        FixesThatFail,
        LimitsToGrowth,
        ShiftingTheBurden,
        DriftingGoals,
        SuccessToTheSuccessful,
        Escalation,
        GrowthAndUnderinvestment,
        TragedyOfTheCommons,
    ],
    Field(discriminator="type"),
]

ARCHETYPE_TYPES: Dict[str, type] = {
    cls.model_fields["type"].default: cls
    for cls in (
        FixesThatFail,
        LimitsToGrowth,
        ShiftingTheBurden,
        DriftingGoals,
        SuccessToTheSuccessful,
        Escalation,
        GrowthAndUnderinvestment,
        TragedyOfTheCommons,
    )
}

_adapter = TypeAdapter(Archetype)


def parse_archetype(data: Dict) -> ArchetypeBase:
    """Validate a raw dict into the archetype variant named by its `type`."""
    return _adapter.validate_python(data)


def instantiate_archetype(
    graph: CausalGraph, archetype: ArchetypeBase
) -> Tuple[List[CldNode], List[CausalLink]]:
    """Add an archetype's nodes and links to a diagram, all or nothing."""
    nodes, links = archetype.template()
    clashes = [n.id for n in nodes if n.id in graph.nodes]
    existing_links = {l.id for l in graph.links}
    clashes += [l.id for l in links if l.id in existing_links]
    if clashes:
        raise GraphError(
            f"Archetype {archetype.id} clashes with existing ids: {', '.join(clashes)}"
        )
    for node in nodes:
        graph.add_node(node)
    for link in links:
        graph.add_link(link)
    return nodes, links
