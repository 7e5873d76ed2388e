"""
Request-schema normalization

Turns the JSON-Schema body of a fal.ai endpoint into an ordered list of
ModelParameter descriptors the UI can render. Everything here is pure: no
network, no store, and malformed input never raises. Unsupported properties
are skipped and logged.
"""

import logging
import re
from typing import Any

from catalog_sync.models import ModelParameter, ParameterType

logger = logging.getLogger(__name__)

DEFAULT_UI_GROUP = "general"
UI_GROUP_EXTENSIONS = ("x-ui-group", "x-group")
MAX_REF_DEPTH = 8

_JSON_TYPE_MAP = {
    "string": ParameterType.STRING,
    "integer": ParameterType.NUMBER,
    "number": ParameterType.NUMBER,
    "boolean": ParameterType.BOOLEAN,
    "array": ParameterType.ARRAY,
    "object": ParameterType.OBJECT,
}


def extract_input_schema(openapi: Any) -> dict[str, Any] | None:
    """Extract the request body schema of the inference endpoint from an OpenAPI document.

    Takes the first path with a POST operation, reads its
    ``requestBody.content["application/json"].schema`` and resolves a single
    ``$ref`` into ``components/schemas``.

    Returns:
        The input schema, or None when the document has none
    """
    if not isinstance(openapi, dict) or not isinstance(openapi.get("paths"), dict):
        return None

    post = next(
        (
            path_item["post"]
            for path_item in openapi["paths"].values()
            if isinstance(path_item, dict) and isinstance(path_item.get("post"), dict)
        ),
        None,
    )
    if post is None:
        return None

    request_body = post.get("requestBody")
    content = request_body.get("content") if isinstance(request_body, dict) else None
    json_content = content.get("application/json") if isinstance(content, dict) else None
    schema = json_content.get("schema") if isinstance(json_content, dict) else None
    if not isinstance(schema, dict):
        return None

    if "$ref" in schema:
        resolved = _resolve_ref(schema["$ref"], get_component_schemas(openapi))
        if resolved is not None:
            return resolved

    return schema


def get_component_schemas(openapi: Any) -> dict[str, Any]:
    """Return ``components/schemas`` of an OpenAPI document, or an empty dict"""
    if not isinstance(openapi, dict):
        return {}
    components = openapi.get("components")
    schemas = components.get("schemas") if isinstance(components, dict) else None
    return schemas if isinstance(schemas, dict) else {}


def _resolve_ref(ref: Any, definitions: dict[str, Any]) -> dict[str, Any] | None:
    if not isinstance(ref, str):
        return None
    resolved = definitions.get(ref.rsplit("/", 1)[-1])
    return resolved if isinstance(resolved, dict) else None


def humanize_name(name: str) -> str:
    """``num_inference_steps`` -> ``Num Inference Steps``"""
    words = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", name)
    words = re.sub(r"[_\-\s]+", " ", words).strip()
    return " ".join(word[:1].upper() + word[1:] for word in words.split(" ")) or name


def _resolve_property(
    prop: dict[str, Any], definitions: dict[str, Any], depth: int = 0
) -> dict[str, Any] | None:
    """Collapse $ref / anyOf / oneOf / allOf wrappers into one concrete subschema.

    Keys declared on the wrapper itself (title, description, default, ...)
    take precedence over those of the resolved branch.
    """
    if depth > MAX_REF_DEPTH:
        return None

    if "$ref" in prop:
        target = _resolve_ref(prop["$ref"], definitions)
        if target is None:
            return None
        inner = _resolve_property(target, definitions, depth + 1)
        if inner is None:
            return None
        overrides = {key: value for key, value in prop.items() if key != "$ref"}
        return {**inner, **overrides}

    if "type" in prop or "enum" in prop:
        return prop

    for combinator in ("anyOf", "oneOf", "allOf"):
        branches = prop.get(combinator)
        if not isinstance(branches, list):
            continue
        for branch in branches:
            if not isinstance(branch, dict) or branch.get("type") == "null":
                continue
            inner = _resolve_property(branch, definitions, depth + 1)
            if inner is not None:
                overrides = {key: value for key, value in prop.items() if key != combinator}
                return {**inner, **overrides}
        return None

    return prop


def _declared_type(prop: dict[str, Any]) -> str | None:
    declared = prop.get("type")
    if isinstance(declared, list):
        declared = next((t for t in declared if isinstance(t, str) and t != "null"), None)
    if isinstance(declared, str):
        return declared

    default = prop.get("default")
    if isinstance(default, bool):
        return "boolean"
    if isinstance(default, (int, float)):
        return "number"
    if isinstance(default, str):
        return "string"
    if isinstance(default, list):
        return "array"
    if isinstance(default, dict):
        return "object"
    return None


def _unique(values: list[Any]) -> list[Any]:
    unique: list[Any] = []
    for value in values:
        if value not in unique:
            unique.append(value)
    return unique


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return float(value)
    except OverflowError:
        return None


def _parse_property(
    name: str,
    prop: dict[str, Any],
    position: int,
    required: set[str],
    definitions: dict[str, Any],
) -> ModelParameter | None:
    resolved = _resolve_property(prop, definitions)
    if resolved is None:
        logger.debug(f"Skipping property '{name}': unresolvable schema")
        return None

    allowed_values = None
    if isinstance(resolved.get("enum"), list) and resolved["enum"]:
        param_type = ParameterType.ENUM
        allowed_values = _unique(resolved["enum"])
    else:
        json_type = _declared_type(resolved)
        param_type = _JSON_TYPE_MAP.get(json_type) if json_type else None
        if param_type is None:
            logger.debug(f"Skipping property '{name}': unsupported type {json_type!r}")
            return None
        items = resolved.get("items")
        if param_type == ParameterType.ARRAY and isinstance(items, dict):
            item_schema = _resolve_property(items, definitions) or {}
            if isinstance(item_schema.get("enum"), list) and item_schema["enum"]:
                allowed_values = _unique(item_schema["enum"])

    min_value = max_value = None
    if param_type == ParameterType.NUMBER:
        min_value = _as_number(resolved.get("minimum"))
        max_value = _as_number(resolved.get("maximum"))

    title = resolved.get("title")
    description = resolved.get("description")
    examples = resolved.get("examples")
    placeholder = None
    if isinstance(examples, list) and examples and examples[0] is not None:
        placeholder = str(examples[0])

    ui_group = DEFAULT_UI_GROUP
    for extension in UI_GROUP_EXTENSIONS:
        if isinstance(resolved.get(extension), str) and resolved[extension]:
            ui_group = resolved[extension]
            break

    return ModelParameter(
        name=name,
        type=param_type,
        required=name in required,
        default_value=resolved.get("default"),
        min_value=min_value,
        max_value=max_value,
        allowed_values=allowed_values,
        ui_label=title if isinstance(title, str) and title else humanize_name(name),
        ui_placeholder=placeholder,
        ui_help_text=description if isinstance(description, str) else None,
        ui_order=position,
        ui_group=ui_group,
    )


def parse_schema_to_parameters(
    schema: Any, definitions: dict[str, Any] | None = None
) -> list[ModelParameter]:
    """Parse a request schema into ordered parameter descriptors.

    ``ui_order`` is the property's position in the schema's ``properties``
    mapping, so the source document's order is preserved. Properties that
    cannot be parsed are skipped; the result may be empty.

    Args:
        schema: JSON-Schema object with ``properties`` and ``required``
        definitions: Named schemas that property ``$ref`` values point into
            (the OpenAPI ``components/schemas``)

    Returns:
        Parameters sorted by ``ui_order``
    """
    if not isinstance(schema, dict):
        return []
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return []

    required_list = schema.get("required")
    required = {item for item in required_list if isinstance(item, str)} if isinstance(
        required_list, list
    ) else set()
    definitions = definitions or {}

    parameters = []
    for position, (name, prop) in enumerate(properties.items()):
        if not isinstance(name, str) or not isinstance(prop, dict):
            logger.debug(f"Skipping malformed property at position {position}")
            continue
        try:
            parameter = _parse_property(name, prop, position, required, definitions)
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Skipping property '{name}': {e}")
            continue
        if parameter is not None:
            parameters.append(parameter)

    return parameters
