from __future__ import annotations

import datetime
from typing import Dict, Optional, Type, Union


STRING = "string"
NUMBER = "number"
BOOLEAN = "boolean"
DATETIME = "datetime"
JSON = "json"
BINARY = "binary"

PYTHON_TO_SEMANTIC_TYPES: Dict[Type, str] = {
    int: NUMBER,
    float: NUMBER,
    str: STRING,
    bool: BOOLEAN,
    bytes: BINARY,
    dict: JSON,
    list: JSON,
    datetime.datetime: DATETIME,
    datetime.date: DATETIME,
    datetime.time: DATETIME,
}

STRING_TO_SEMANTIC_TYPES: Dict[str, str] = {
    # numeric column types
    "int": NUMBER,
    "integer": NUMBER,
    "smallint": NUMBER,
    "bigint": NUMBER,
    "float": NUMBER,
    "double": NUMBER,
    "decimal": NUMBER,
    "number": NUMBER,
    "numeric": NUMBER,
    "real": NUMBER,
    # boolean
    "bool": BOOLEAN,
    "boolean": BOOLEAN,
    # temporal
    "date": DATETIME,
    "date_immutable": DATETIME,
    "datetime": DATETIME,
    "datetime_immutable": DATETIME,
    "datetimetz": DATETIME,
    "datetimetz_immutable": DATETIME,
    "time": DATETIME,
    "time_immutable": DATETIME,
    "timestamp": DATETIME,
    "dateinterval": STRING,
    # structured
    "json": JSON,
    "jsonb": JSON,
    "array": JSON,
    "simple_array": JSON,
    # binary
    "binary": BINARY,
    "blob": BINARY,
    # textual
    "string": STRING,
    "str": STRING,
    "text": STRING,
    "ascii_string": STRING,
    "guid": STRING,
    "uuid": STRING,
    "enum": STRING,
}


def get_semantic_type(raw_type: Optional[Union[Type, str]]) -> str:
    """
    Get the semantic category used for literal coercion from a raw column or Python type.

    :param raw_type: The ORM/database type name or a Python type object
    :return: One of the semantic categories, ``string`` when unknown
    """
    if raw_type is None:
        return STRING

    # Handle string type names
    if isinstance(raw_type, str):
        return STRING_TO_SEMANTIC_TYPES.get(raw_type.strip().lower(), STRING)

    # Handle type objects
    return PYTHON_TO_SEMANTIC_TYPES.get(raw_type, STRING)
