"""
Schema Resolver

Builds the RunConfig for a run from the live database schema and the
user's property selections. Property names can be renamed in Notion at
any time, so every selection is looked up by id and the current name is
taken from the schema. The same goes for status option names.

Nothing in this module writes to Notion. Every failure raises SchemaError
before the run has touched a single record.
"""

import logging
from typing import Any, Dict, List, Optional

from notion_recurring.config.constants import (
    COMPLETED_GROUP_NAME,
    COMPLETED_OPTION_NAMES,
    DEFAULT_PROPERTY_NAMES,
    ERROR_MISSING_PROPERTY,
    ERROR_MISSING_STATUS_OPTION,
    ERROR_UNRESOLVED_STATUS_OPTION,
    ERROR_WRONG_PROPERTY_TYPE,
    NOT_STARTED_GROUP_NAME,
    NOT_STARTED_OPTION_NAMES,
    ROLE_LABELS,
    ROLE_PROPERTY_TYPES,
)
from notion_recurring.integrations.recurring_tasks.models import (
    CheckboxCompletion,
    CompletionField,
    FieldRef,
    PropertySelections,
    RunConfig,
    StatusCompletion,
    StatusOption,
)
from notion_recurring.utils.error_handling import SchemaError

logger = logging.getLogger(__name__)


def _field_ref(name: str, prop: Dict[str, Any]) -> FieldRef:
    return FieldRef(name=prop.get("name", name), id=prop["id"], type=prop["type"])


def _quoted(values) -> str:
    return " or ".join(f"'{v}'" for v in values)


def find_property_by_id(schema: Dict[str, Dict[str, Any]], property_id: str) -> Optional[FieldRef]:
    """Look up a property in a database schema by its id."""
    for name, prop in schema.items():
        if prop.get("id") == property_id:
            return _field_ref(name, prop)
    return None


def resolve_field(
    schema: Dict[str, Dict[str, Any]],
    role: str,
    selected_id: Optional[str] = None,
    required: bool = True
) -> Optional[FieldRef]:
    """
    Resolve the property for one role.

    The explicit selection wins when it still exists. A selection that no
    longer exists falls back to a property named after the role.

    Args:
        schema: Database properties keyed by name
        role: Role key, e.g. "due" or "next_due"
        selected_id: Property id chosen by the user
        required: Whether a missing property is an error

    Returns:
        FieldRef, or None when the role is optional and unresolved

    Raises:
        SchemaError: Missing required property or wrong property type
    """
    label = ROLE_LABELS[role]
    types = ROLE_PROPERTY_TYPES[role]
    names = DEFAULT_PROPERTY_NAMES[role]

    if selected_id:
        ref = find_property_by_id(schema, selected_id)
        if ref is not None:
            if ref.type not in types:
                raise SchemaError(
                    ERROR_WRONG_PROPERTY_TYPE.format(
                        label=label, name=ref.name, actual=ref.type, types=_quoted(types)
                    ),
                    role=role,
                    required_types=types
                )
            return ref
        logger.warning(
            f"Selected {label} property (id {selected_id}) no longer exists; "
            f"looking for a property named {_quoted(names)}"
        )

    for candidate in names:
        prop = schema.get(candidate)
        if prop and prop.get("type") in types:
            return _field_ref(candidate, prop)

    if not required:
        return None

    raise SchemaError(
        ERROR_MISSING_PROPERTY.format(
            label=label, names=_quoted(names) or "(any name)", types=_quoted(types)
        ),
        role=role,
        required_types=types
    )


def _status_options(prop: Dict[str, Any]) -> List[Dict[str, Any]]:
    return (prop.get("status") or {}).get("options") or []


def _first_option_in_group(prop: Dict[str, Any], group_name: str) -> Optional[Dict[str, Any]]:
    options = {option["id"]: option for option in _status_options(prop)}
    for group in (prop.get("status") or {}).get("groups") or []:
        if group.get("name") == group_name:
            for option_id in group.get("option_ids") or []:
                if option_id in options:
                    return options[option_id]
    return None


def resolve_status_option(
    prop: Dict[str, Any],
    role: str,
    option_label: str,
    selected_id: Optional[str],
    fallback_names,
    fallback_group: str
) -> StatusOption:
    """
    Re-derive a status option's current name from its id.

    Without a selection, the option is matched by common names and then by
    the first option of the matching Notion status group.

    Raises:
        SchemaError: The selected option id is gone or no option matches
    """
    options = _status_options(prop)
    label = ROLE_LABELS[role]
    prop_name = prop.get("name", "")

    if selected_id:
        for option in options:
            if option.get("id") == selected_id:
                return StatusOption(id=option["id"], name=option["name"])
        raise SchemaError(
            ERROR_MISSING_STATUS_OPTION.format(
                option=option_label, label=label, name=prop_name, option_id=selected_id
            ),
            role=role,
            required_types=("status",)
        )

    by_name = {option.get("name"): option for option in options}
    for name in fallback_names:
        if name in by_name:
            return StatusOption(id=by_name[name]["id"], name=name)

    option = _first_option_in_group(prop, fallback_group)
    if option is not None:
        return StatusOption(id=option["id"], name=option["name"])

    raise SchemaError(
        ERROR_UNRESOLVED_STATUS_OPTION.format(option=option_label, label=label, name=prop_name),
        role=role,
        required_types=("status",)
    )


def resolve_completion(
    schema: Dict[str, Dict[str, Any]],
    ref: FieldRef,
    role: str,
    not_started_id: Optional[str],
    completed_id: Optional[str]
) -> CompletionField:
    """Build the completion variant for a resolved checkbox or status property."""
    if ref.type == "checkbox":
        return CheckboxCompletion(field=ref)

    prop = next(p for p in schema.values() if p.get("id") == ref.id)
    prop = {**prop, "name": ref.name}
    not_started = resolve_status_option(
        prop, role, '"Not Started"', not_started_id,
        NOT_STARTED_OPTION_NAMES, NOT_STARTED_GROUP_NAME
    )
    completed = resolve_status_option(
        prop, role, '"Done"', completed_id,
        COMPLETED_OPTION_NAMES, COMPLETED_GROUP_NAME
    )
    return StatusCompletion(field=ref, not_started=not_started, completed=completed)


def resolve_title(schema: Dict[str, Dict[str, Any]]) -> Optional[FieldRef]:
    """The database's title property, if any."""
    for name, prop in schema.items():
        if prop.get("type") == "title":
            return _field_ref(name, prop)
    return None


def resolve_run_config(
    schema: Dict[str, Dict[str, Any]],
    selections: Optional[PropertySelections] = None
) -> RunConfig:
    """
    Validate the live schema against the user's selections.

    Args:
        schema: The `properties` object of a retrieved database
        selections: Property and status option ids chosen by the user

    Returns:
        Immutable RunConfig for this run

    Raises:
        SchemaError: If any required property or status option is missing
    """
    selections = selections or PropertySelections()

    due = resolve_field(schema, "due", selections.due)
    completion_ref = resolve_field(schema, "completion", selections.completion)
    next_due = resolve_field(schema, "next_due", selections.next_due)
    utc_offset = resolve_field(schema, "utc_offset", selections.utc_offset)
    type_marker = resolve_field(schema, "type_marker", selections.type_marker)

    completion = resolve_completion(
        schema, completion_ref, "completion",
        selections.completion_not_started, selections.completion_completed
    )

    secondary = None
    if selections.secondary_completion:
        secondary_ref = resolve_field(
            schema, "secondary_completion", selections.secondary_completion
        )
        if secondary_ref.id == completion_ref.id:
            raise SchemaError(
                f"The secondary task status property '{secondary_ref.name}' is the same "
                f"as the primary one. Choose a different property or leave it empty.",
                role="secondary_completion",
                required_types=ROLE_PROPERTY_TYPES["secondary_completion"]
            )
        secondary = resolve_completion(
            schema, secondary_ref, "secondary_completion",
            selections.secondary_not_started, selections.secondary_completed
        )

    config = RunConfig(
        due=due,
        completion=completion,
        next_due=next_due,
        utc_offset=utc_offset,
        type_marker=type_marker,
        secondary_completion=secondary,
        title=resolve_title(schema),
    )
    logger.info(f"Resolved run config: {config}")
    return config


def candidate_properties(schema: Dict[str, Dict[str, Any]], role: str) -> List[FieldRef]:
    """
    List the properties that could fill a role, likely matches first.

    Properties whose name contains one of the role's default names sort to
    the top, in the order of those names.
    """
    types = ROLE_PROPERTY_TYPES[role]
    names = DEFAULT_PROPERTY_NAMES[role] or DEFAULT_PROPERTY_NAMES["completion"]

    def rank(ref: FieldRef) -> int:
        for index, name in enumerate(names):
            if name in ref.name:
                return index
        return len(names)

    refs = [
        _field_ref(name, prop) for name, prop in schema.items()
        if prop.get("type") in types
    ]
    return sorted(refs, key=rank)
