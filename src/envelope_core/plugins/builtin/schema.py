"""Plugin that provides the schema."""

from graphql import GraphQLSchema

from envelope_core.types import OnPluginInitPayload

from ..base import Plugin


class SchemaPlugin(Plugin):
    """Sets the orchestrator schema during plugin initialization."""

    name = "schema"

    def __init__(self, schema: GraphQLSchema):
        super().__init__()
        self.schema = schema

    def on_plugin_init(self, payload: OnPluginInitPayload) -> None:
        payload.set_schema(self.schema)
