from __future__ import annotations

from typing import Any

import jsonschema

STORY_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "backend": {"type": "string"},
        "config": {"type": "object"},
        "setup": {"$ref": "#/definitions/phase"},
        "steps": {"$ref": "#/definitions/actions"},
        "cleanup": {"$ref": "#/definitions/phase"},
        "teardown": {"$ref": "#/definitions/phase"},
    },
    "additionalProperties": False,
    "definitions": {
        "actions": {
            "oneOf": [
                {"type": "null"},
                {"type": "array", "items": {"$ref": "#/definitions/action"}},
            ]
        },
        "phase": {
            "oneOf": [
                {"$ref": "#/definitions/actions"},
                {"$ref": "#/definitions/session"},
            ]
        },
        "session": {
            "type": "object",
            "properties": {
                "server": {"type": "boolean"},
                "stop_server": {"type": "boolean"},
                "players": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["username"],
                        "properties": {
                            "name": {"type": "string"},
                            "username": {"type": "string", "minLength": 1},
                        },
                    },
                },
            },
            "additionalProperties": False,
        },
        "action": {
            "type": "object",
            "anyOf": [
                {"required": ["action"]},
                {"required": ["type"]},
            ],
            "properties": {
                "action": {"type": "string", "minLength": 1},
                "type": {"type": "string", "minLength": 1},
                "name": {"type": "string"},
                "store_as": {"type": "string", "minLength": 1},
                "storeAs": {"type": "string", "minLength": 1},
            },
        },
    },
}


def validate_story(payload: dict[str, Any]) -> None:
    jsonschema.validate(instance=payload, schema=STORY_SCHEMA)
