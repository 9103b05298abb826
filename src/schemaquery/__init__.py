"""
schemaquery - documents a relational schema and translates natural-language requests into SQL.

To avoid circular imports, import classes from their subpackages:
    from schemaquery.schema import SchemaEntity
    from schemaquery.nl_to_sql import NaturalLanguageToSQLService
"""
