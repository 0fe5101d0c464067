"""Built-in error templates and the registry that renders them."""

from typing import Any

from .errors import EnvelopeError, ErrorCategory, ErrorTemplate

BUILTIN_TEMPLATES = (
    ErrorTemplate(
        code="INVALID_ARGUMENTS",
        category=ErrorCategory.ARGUMENTS,
        message_template="Invalid {operation} arguments",
        suggestion_template=(
            "Pass a single arguments object or graphql-core's positional form "
            "(schema, document, root_value, context_value, ...)"
        ),
    ),
    ErrorTemplate(
        code="INVALID_CONTEXT_EXTENSION",
        category=ErrorCategory.CONTEXT,
        message_template="Context extension must be a mapping, got {type_name}",
        suggestion_template="Call extend_context with a dict of keys to merge",
    ),
    ErrorTemplate(
        code="CONTEXT_NOT_MUTABLE",
        category=ErrorCategory.CONTEXT,
        message_template="Request context must be a mutable mapping, got {type_name}",
        detail_template="Plugins extend the request context in place",
        suggestion_template="Use a dict as context_value",
    ),
    ErrorTemplate(
        code="PARSE_FAILED",
        category=ErrorCategory.PARSE,
        message_template="Failed to parse document.",
        detail_template="The parse phase produced neither a document nor an error",
    ),
    ErrorTemplate(
        code="SCHEMA_NOT_SET",
        category=ErrorCategory.SCHEMA,
        message_template="No schema has been set",
        suggestion_template="Add a plugin that calls set_schema, e.g. SchemaPlugin(schema)",
    ),
    ErrorTemplate(
        code="PLUGIN_LOAD_FAILED",
        category=ErrorCategory.PLUGIN,
        message_template="Failed to load plugin '{plugin}'",
    ),
    ErrorTemplate(
        code="UNKNOWN_BUILTIN_PLUGIN",
        category=ErrorCategory.PLUGIN,
        message_template="Unknown builtin plugin: {plugin}",
        suggestion_template="Available builtin plugins: {available}",
    ),
    ErrorTemplate(
        code="CONFIG_INVALID",
        category=ErrorCategory.CONFIG,
        message_template="Configuration is invalid",
        suggestion_template="Check envelope.yaml against the documented keys",
    ),
    ErrorTemplate(
        code="INTERNAL_ERROR",
        category=ErrorCategory.SYSTEM,
        message_template="Internal orchestrator error",
    ),
)


def _render(text: str | None, values: dict[str, Any]) -> str | None:
    # Placeholders without a value are left in the text
    if text is None:
        return None
    try:
        return text.format(**values)
    except KeyError:
        return text


class ErrorRegistry:
    """Error templates by code, starting with ``BUILTIN_TEMPLATES``.

    Plugins may ``register`` their own codes; registering an existing code
    replaces its template.
    """

    def __init__(self) -> None:
        self._templates = {template.code: template for template in BUILTIN_TEMPLATES}

    def register(self, template: ErrorTemplate) -> None:
        self._templates[template.code] = template

    def get_template(self, code: str) -> ErrorTemplate | None:
        return self._templates.get(code)

    def list_codes(self) -> list[str]:
        return sorted(self._templates)

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: EnvelopeError | None = None,
    ) -> EnvelopeError:
        """Render the template for ``code`` with ``context``.

        ``context`` fills the template placeholders. Its ``detail``, ``phase``
        and ``plugin`` keys also become the error fields of the same name; an
        explicit ``detail`` replaces the template's.

        Raises:
            ValueError: ``code`` has no template
        """
        template = self._templates.get(code)
        if template is None:
            raise ValueError(f"Unknown error code: {code}")

        values = context or {}
        return EnvelopeError(
            code=code,
            category=template.category,
            message=_render(template.message_template, values),
            detail=values.get("detail") or _render(template.detail_template, values),
            suggestion=_render(template.suggestion_template, values),
            phase=values.get("phase"),
            plugin=values.get("plugin"),
            cause=cause,
        )
