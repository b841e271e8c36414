"""JSON Schemas for persisted corpus files, checked with jsonschema on load."""

from __future__ import annotations

import jsonschema

from kjvtools.errors import ParseError


TOKEN_SCHEMA = {
    "type": "object",
    "minProperties": 1,
    "maxProperties": 1,
    "properties": {
        "t": {"type": "string"},
        "add": {"type": "string"},
        "nd": {"type": "string"},
    },
    "additionalProperties": False,
}

CHAPTER_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "canonical chapter",
    "type": "object",
    "required": ["schema", "work", "osis", "abbr", "chapter", "verses"],
    "properties": {
        "schema": {"type": "integer"},
        "work": {"type": "string"},
        "osis": {"type": "string"},
        "abbr": {"type": "string"},
        "chapter": {"type": "integer"},
        "verses": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["v", "plain", "tokens"],
                "properties": {
                    "v": {"type": "integer"},
                    "plain": {"type": "string"},
                    "tokens": {"type": "array", "items": TOKEN_SCHEMA},
                },
            },
        },
        "footnotes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "mark", "at", "text"],
                "properties": {
                    "id": {"type": "string"},
                    "mark": {"type": "string"},
                    "at": {
                        "type": "object",
                        "required": ["v"],
                        "properties": {"v": {"type": "integer"}},
                    },
                    "text": {"type": "string"},
                },
            },
        },
    },
}

BOOKS_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "books.json",
    "type": "object",
    "required": ["books"],
    "properties": {
        "schema": {"type": "integer"},
        "work": {"type": "string"},
        "books": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["osis", "abbr", "name", "testament", "order", "chapters"],
                "properties": {
                    "osis": {"type": "string", "minLength": 1},
                    "abbr": {"type": "string", "minLength": 1},
                    "name": {"type": "string"},
                    "aliases": {"type": "array", "items": {"type": "string"}},
                    "testament": {"type": "string"},
                    "order": {"type": "integer"},
                    "chapters": {"type": "integer", "minimum": 1},
                },
            },
        },
    },
}

ALIASES_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "aliases.json",
    "type": "object",
    "additionalProperties": {
        "type": "object",
        "required": ["source_abbr", "chapters"],
        "properties": {
            "source_abbr": {"type": "string"},
            "chapters": {
                "type": "object",
                "additionalProperties": {"type": "string"},
            },
        },
    },
}

FILEMAP_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "filemap.json",
    "type": "object",
    "additionalProperties": {"type": "string"},
}


def check(data, schema: dict, path: str | None = None) -> None:
    """Raise ParseError if `data` does not match `schema`."""
    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        msg = f"{schema.get('title', 'document')} fails schema validation: {e.message}"
        if where:
            msg += f" (at {where})"
        raise ParseError(msg, path=path) from e
