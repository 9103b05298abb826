"""System prompt builder for Natural Language to SQL conversion."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Union

import jinja2

from ..schema import SchemaEntity
from .analyzer import QueryAnalysis, QueryAnalyzer
from .formatters import SchemaContextFormatter
from .models import PromptBundle, SQLExample

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_TEMPLATE = "system_prompt.md.jinja"


@dataclass
class SystemPromptBuilder:
    """
    Builds the prompts sent to remote generators: a system prompt describing the relevant
    slice of the schema as JSON and the expected JSON answer, and a user prompt quoting the
    request.
    """

    analyzer: QueryAnalyzer = field(default_factory=QueryAnalyzer)
    """Finds the entities a request mentions."""

    examples: List[SQLExample] = field(default_factory=list)
    """Custom examples rendered into the system prompt, grouped by category."""

    env: jinja2.Environment = field(init=False, default=None)
    """The environment to use with jinja2."""

    def __post_init__(self):
        template_dir = os.path.join(os.path.dirname(__file__), "templates")
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(template_dir),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def build_prompt(self, prompt: str, entities: Sequence[SchemaEntity]) -> PromptBundle:
        """
        Build the system and user prompts for a request.

        :param prompt: The natural language request
        :param entities: All schema entities
        :return: Both prompts and the entities described in the system prompt
        """
        analysis = self.analyzer.analyze(prompt, entities)
        relevant = relevant_entities(analysis, entities)
        system = self.build_system_prompt(relevant)
        logger.debug(
            "Built prompt with %d of %d entities (%d characters)",
            len(relevant),
            len(entities),
            len(system),
        )
        return PromptBundle(system=system, user=self.build_user_prompt(prompt), entities=relevant)

    def build_system_prompt(self, entities: Sequence[SchemaEntity]) -> str:
        """
        Render the system prompt for a set of entities.

        :param entities: The entities to describe
        :return: The system prompt
        """
        formatter = SchemaContextFormatter(entities)
        template = self.env.get_template(SYSTEM_PROMPT_TEMPLATE)
        return template.render(
            schema_json=formatter.format_as_json(),
            schema_outline=formatter.format_for_prompt(),
            entity_names=formatter.get_entity_names(),
            examples_by_category=self._examples_by_category(),
        ).strip()

    @staticmethod
    def build_user_prompt(prompt: str) -> str:
        return (
            f'User request:\n"{prompt}"\n\n'
            "Generate the SQL query for this request based on the provided schema."
        )

    def add_example(self, description: str, natural_language: str, sql: str, category: str = "general"):
        """
        Add a custom SQL example to the system prompt.

        :param description: Brief description of what the query does
        :param natural_language: Natural language version of the query
        :param sql: The SQL answering it
        :param category: Category for grouping (e.g., "filtering", "joins")
        """
        self.examples.append(
            SQLExample(
                description=description,
                natural_language=natural_language,
                sql=sql,
                category=category,
            )
        )

    def dump_to_file(self, file_path: Union[str, Path], entities: Sequence[SchemaEntity]):
        """
        Dump the system prompt for the given entities to a file.

        :param file_path: Path where the system prompt will be saved
        :param entities: The entities to describe
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            f.write(self.build_system_prompt(entities))

    def _examples_by_category(self) -> Dict[str, List[SQLExample]]:
        categories: Dict[str, List[SQLExample]] = {}
        for example in self.examples:
            categories.setdefault(example.category, []).append(example)
        return categories


def relevant_entities(analysis: QueryAnalysis, entities: Sequence[SchemaEntity]) -> List[SchemaEntity]:
    """
    The mentioned entities, the owners of mentioned fields and every entity with a relation
    pointing at one of them. Falls back to the whole schema when nothing was recognised.

    :param analysis: The analysis of the request
    :param entities: All schema entities
    :return: The entities to describe, in schema order
    """
    names = [entity.name for entity in analysis.mentioned_entities]
    for field_ref in analysis.mentioned_fields:
        if field_ref.entity.name not in names:
            names.append(field_ref.entity.name)
    if not names:
        return list(entities)

    ids = {entity.entity_id for entity in entities if entity.name in names}
    relevant = [
        entity
        for entity in entities
        if entity.name in names
        or any(relation.target in names or relation.target in ids for relation in entity.relations)
    ]
    return relevant or list(entities)
