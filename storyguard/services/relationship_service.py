"""Relationship service - character relationships and network analysis."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

import networkx as nx

from storyguard.memory.entities import Relationship
from storyguard.services._base import EntityServiceBase, apply_changes, build_model, find_index
from storyguard.utils.constants import DEFAULT_RELATIONSHIP_TYPES
from storyguard.utils.exceptions import DuplicateEntityError, EntityNotFoundError

logger = logging.getLogger(__name__)

TOP_CONNECTED = 5
TOP_CLUSTERS = 3
TOP_DIVERSE_PAIRS = 3


@dataclass
class ConnectedCharacter:
    """A character and the number of relationships it takes part in."""

    name: str
    count: int


@dataclass
class DiversePair:
    """Two characters and the distinct relationship types between them."""

    characters: tuple[str, str]
    types: list[str]

    @property
    def count(self) -> int:
        """Number of distinct relationship types."""
        return len(self.types)

    @property
    def label(self) -> str:
        """Both names joined with an ampersand."""
        return " & ".join(self.characters)


@dataclass
class NetworkAnalysis:
    """Summary of the character relationship network."""

    character_count: int = 0
    relationship_count: int = 0
    most_connected: list[ConnectedCharacter] = field(default_factory=list)
    clusters: list[list[str]] = field(default_factory=list)
    diverse_pairs: list[DiversePair] = field(default_factory=list)
    isolated: list[str] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        """False when there are no characters or no relationships to analyze."""
        return self.character_count > 0 and self.relationship_count > 0


class RelationshipService(EntityServiceBase):
    """Create and query relationships between characters.

    Both ends of a relationship must be existing characters. The same pair
    may be linked several times with different types.
    """

    kind = "relationship"

    def list_relationships(self) -> list[Relationship]:
        """Return all relationships sorted by first character, then second."""
        return sorted(
            self.db.relationships,
            key=lambda r: (r.character1.lower(), r.character2.lower(), r.type.lower()),
        )

    def get_relationship(self, relationship_id: str) -> Relationship:
        """Return the relationship with *relationship_id*."""
        relationships = self.db.relationships
        return relationships[find_index(relationships, relationship_id, self.kind)]

    def for_character(self, name: str) -> list[Relationship]:
        """Return relationships involving the character called *name*."""
        return [r for r in self.list_relationships() if r.involves(name)]

    def types(self) -> list[str]:
        """Default relationship types followed by any custom ones in use."""
        result = list(DEFAULT_RELATIONSHIP_TYPES)
        for relationship in self.db.relationships:
            if relationship.type.lower() not in (t.lower() for t in result):
                result.append(relationship.type)
        return result

    def _canonical_names(self, relationship: Relationship) -> Relationship:
        names = {c.full_name.lower(): c.full_name for c in self.db.characters}
        resolved = {}
        for side in ("character1", "character2"):
            value = getattr(relationship, side)
            canonical = names.get(" ".join(value.split()).lower())
            if canonical is None:
                raise EntityNotFoundError(
                    f"Character '{value}' does not exist", kind="character", key=value
                )
            resolved[side] = canonical
        return relationship.model_copy(update=resolved)

    def _check_unique(self, relationship: Relationship, exclude_id: str | None = None) -> None:
        for other in self.db.relationships:
            if other.id == exclude_id:
                continue
            if (
                other.pair_key() == relationship.pair_key()
                and other.type.lower() == relationship.type.lower()
            ):
                raise DuplicateEntityError(
                    f"'{other.character1}' and '{other.character2}' already have "
                    f"a '{other.type}' relationship",
                    kind=self.kind,
                    name=relationship.type,
                    existing_id=other.id,
                )

    def add_relationship(
        self, character1: str, character2: str, rel_type: str = "other", **fields: Any
    ) -> Relationship:
        """Link two characters.

        Raises:
            ValidationError: If the data is invalid (e.g. a self-relationship).
            EntityNotFoundError: If either character does not exist.
            DuplicateEntityError: If the pair already has this type.
        """
        relationship = build_model(
            Relationship,
            {"character1": character1, "character2": character2, "type": rel_type, **fields},
        )
        with self.database.lock:
            relationship = self._canonical_names(relationship)
            self._check_unique(relationship)
            self.db.relationships.append(relationship)
            self._commit(
                "added",
                f"Added {relationship.type} relationship between "
                f"{relationship.character1} and {relationship.character2}",
                relationship.id,
            )
        logger.info(
            "Added relationship %s -[%s]- %s",
            relationship.character1,
            relationship.type,
            relationship.character2,
        )
        return relationship

    def update_relationship(self, relationship_id: str, **changes: Any) -> Relationship:
        """Update fields of an existing relationship."""
        with self.database.lock:
            relationships = self.db.relationships
            index = find_index(relationships, relationship_id, self.kind)
            updated = self._canonical_names(apply_changes(relationships[index], changes))
            self._check_unique(updated, exclude_id=relationship_id)
            relationships[index] = updated
            self._commit("updated", f"Updated relationship {relationship_id}", relationship_id)
        logger.info("Updated relationship %s", relationship_id)
        return updated

    def delete_relationship(self, relationship_id: str) -> Relationship:
        """Delete a relationship."""
        with self.database.lock:
            relationships = self.db.relationships
            relationship = relationships.pop(find_index(relationships, relationship_id, self.kind))
            self._commit(
                "deleted",
                f"Deleted relationship between {relationship.character1} "
                f"and {relationship.character2}",
                relationship_id,
            )
        logger.info("Deleted relationship %s", relationship_id)
        return relationship

    # ========== Network analysis ==========

    def build_graph(self, series: str | None = None) -> nx.MultiGraph:
        """Build an undirected multigraph of characters and their relationships.

        Args:
            series: Only include characters from this series (case-insensitive).
                Relationships are kept when both ends are included.

        Returns:
            Graph with one node per character full name and one edge per
            relationship, carrying ``type`` and ``id`` attributes.
        """
        graph = nx.MultiGraph()
        characters = self.db.characters
        if series:
            characters = [c for c in characters if c.series.lower() == series.lower()]
        for character in characters:
            graph.add_node(
                character.full_name,
                id=character.id,
                series=character.series,
                role=character.role,
            )
        for relationship in self.db.relationships:
            if relationship.character1 in graph and relationship.character2 in graph:
                graph.add_edge(
                    relationship.character1,
                    relationship.character2,
                    key=relationship.id,
                    id=relationship.id,
                    type=relationship.type,
                )
        logger.debug(
            "Built relationship graph: %d nodes, %d edges",
            graph.number_of_nodes(),
            graph.number_of_edges(),
        )
        return graph

    def analyze_network(self, series: str | None = None) -> NetworkAnalysis:
        """Summarize the relationship network.

        Args:
            series: Limit the analysis to characters of one series.
        """
        graph = self.build_graph(series)
        analysis = NetworkAnalysis(
            character_count=graph.number_of_nodes(),
            relationship_count=graph.number_of_edges(),
        )
        if not analysis.has_data:
            logger.debug("Not enough data for network analysis")
            return analysis

        degrees = sorted(graph.degree(), key=lambda item: (-item[1], item[0].lower()))
        analysis.most_connected = [
            ConnectedCharacter(name=name, count=count) for name, count in degrees[:TOP_CONNECTED]
        ]

        components = [
            sorted(component, key=str.lower)
            for component in nx.connected_components(graph)
            if len(component) > 1
        ]
        components.sort(key=lambda members: (-len(members), members[0].lower()))
        analysis.clusters = components[:TOP_CLUSTERS]

        pair_types: dict[tuple[str, str], list[str]] = defaultdict(list)
        for first, second, rel_type in graph.edges(data="type"):
            pair = tuple(sorted((first, second)))
            if rel_type not in pair_types[pair]:
                pair_types[pair].append(rel_type)
        pairs = [DiversePair(characters=pair, types=types) for pair, types in pair_types.items()]
        pairs.sort(key=lambda p: (-p.count, p.label.lower()))
        analysis.diverse_pairs = pairs[:TOP_DIVERSE_PAIRS]

        analysis.isolated = sorted(
            (name for name, degree in graph.degree() if degree == 0), key=str.lower
        )
        analysis.insights = _network_insights(analysis)
        logger.info(
            "Network analysis: %d characters, %d relationships, %d clusters, %d isolated",
            analysis.character_count,
            analysis.relationship_count,
            len(analysis.clusters),
            len(analysis.isolated),
        )
        return analysis


def _network_insights(analysis: NetworkAnalysis) -> list[str]:
    insights = []
    if analysis.most_connected:
        top = analysis.most_connected[0]
        insights.append(
            f"{top.name} is the most connected character with {top.count} relationships."
        )
    if analysis.clusters:
        insights.append(
            f"Your story has {len(analysis.clusters)} distinct social groups, "
            f"the largest containing {len(analysis.clusters[0])} characters."
        )
    if analysis.isolated:
        insights.append(f"{len(analysis.isolated)} characters have no relationships yet.")
    if analysis.diverse_pairs and analysis.diverse_pairs[0].count > 1:
        pair = analysis.diverse_pairs[0]
        insights.append(
            f"The relationship between {pair.label} is the most complex, "
            f"with {pair.count} different types."
        )
    connected = analysis.character_count - len(analysis.isolated)
    percent = round(connected / analysis.character_count * 100)
    insights.append(f"{percent}% of your characters are connected in the relationship network.")
    return insights
