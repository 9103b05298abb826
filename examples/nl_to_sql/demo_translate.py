"""
Demo script for Natural Language to SQL translation.

This script demonstrates:
1. Describing a schema the way the introspection collaborator delivers it
2. Translating requests with the local rule-based engine
3. Building the system prompt a remote model would receive, with custom examples
4. Dumping the system prompt to a file
5. Running the service with the strategy read from NL_TO_SQL_* settings
"""

from pathlib import Path

from schemaquery.nl_to_sql import LocalRuleBasedGenerator, SystemPromptBuilder, create_service
from schemaquery.schema import load_entities

SCHEMA = [
    {
        "name": "User",
        "fqcn": "App\\Entity\\User",
        "tableName": "user",
        "fields": [
            {"name": "id", "type": "integer"},
            {"name": "email", "type": "string", "unique": True},
            {"name": "name", "type": "string"},
            {"name": "active", "type": "boolean"},
            {"name": "created_at", "type": "datetime_immutable"},
        ],
        "associations": [
            {"fieldName": "orders", "targetEntity": "Order", "type": "OneToMany", "mappedBy": "user"},
        ],
    },
    {
        "name": "Order",
        "fqcn": "App\\Entity\\Order",
        "tableName": "order",
        "fields": [
            {"name": "id", "type": "integer"},
            {"name": "total", "type": "decimal"},
            {"name": "status", "type": "string"},
        ],
        "associations": [
            {"fieldName": "user", "targetEntity": "User", "type": "ManyToOne", "inversedBy": "orders"},
        ],
    },
]

REQUESTS = [
    "show users with email containing gmail",
    "select email of user where active = true order by created_at desc limit 10",
    "show orders where user email = alice",
    "show users where orders total greater than 100",
    "show me the weather",
]


def main():
    """Main demo function."""
    print("=" * 80)
    print("Natural Language to SQL Demo")
    print("=" * 80)
    print()

    # Step 1: Load the schema
    print("Step 1: Loading the schema...")
    entities = load_entities(SCHEMA)
    print(f"  ✓ Loaded {len(entities)} entities: {', '.join(entity.name for entity in entities)}")
    print()

    # Step 2: Translate locally
    print("Step 2: Translating with the local rule-based engine...")
    generator = LocalRuleBasedGenerator(aliases={"User": ["customer", "customers"]})
    for request in REQUESTS:
        result = generator.generate(request, entities)
        print(f"  > {request}")
        if result.success:
            print("    " + result.sql.replace("\n", "\n    "))
            print(f"    confidence={result.confidence} paths={result.paths}")
        else:
            print(f"    {result.error}: {result.message}")
            print(f"    suggestions: {result.suggestions}")
        print()

    # Step 3: Build the system prompt for a remote model
    print("Step 3: Building the system prompt with custom examples...")
    prompt_builder = SystemPromptBuilder()
    prompt_builder.add_example(
        description="Active users",
        natural_language="show active users",
        sql="SELECT u.* FROM \"user\" u WHERE u.active = TRUE",
        category="filtering",
    )
    prompt_builder.add_example(
        description="Orders of a user",
        natural_language="show orders of alice",
        sql="SELECT o.* FROM \"order\" o INNER JOIN \"user\" u ON o.user_id = u.id WHERE u.name = 'alice'",
        category="joins",
    )
    bundle = prompt_builder.build_prompt("show orders where user email = alice", entities)
    print(f"  ✓ System prompt: {len(bundle.system)} characters, "
          f"{len(bundle.entities)} entities described")
    print()

    # Step 4: Dump to file
    print("Step 4: Dumping the system prompt to file...")
    output_file = Path("examples/nl_to_sql/output") / "sql_system_prompt.md"
    prompt_builder.dump_to_file(output_file, entities)
    print(f"  ✓ System prompt saved to: {output_file}")
    print()

    # Step 5: The configured service
    print("Step 5: Translating with the configured service...")
    service = create_service(aliases={"User": ["customer", "customers"]})
    print(f"  • Strategy: {service.strategy}")
    print(f"  • AI model: {service.ai_model_name or 'none configured'}")
    estimate = service.estimate_cost(REQUESTS[0], entities)
    if estimate is not None:
        print(f"  • Estimated cost: ${estimate.amount:.4f}")
    print(f"  • Result: {service.generate(REQUESTS[0], entities).to_dict()}")
    print()

    print("=" * 80)
    print("Demo completed successfully!")
    print("=" * 80)


if __name__ == "__main__":
    main()
