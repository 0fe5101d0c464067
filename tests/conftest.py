"""
Pytest configuration and shared fixtures for orchestrator tests.
"""

import sys
from pathlib import Path
from typing import Any

import pytest
from graphql import GraphQLResolveInfo, GraphQLSchema, build_schema

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from envelope_core.telemetry import reset_logging, reset_telemetry  # noqa: E402

SCHEMA_SDL = """
type Query {
  me: User!
  fail: String
  greeting(name: String!): String!
}

type User {
  id: ID!
  name: String!
}

type Subscription {
  alphabet: String
  message: String
}
"""

ME = {"id": "1", "name": "Dotan"}


def build_test_schema() -> GraphQLSchema:
    """Build the shared test schema with resolvers attached."""
    schema = build_schema(SCHEMA_SDL)

    def resolve_me(_root: Any, _info: GraphQLResolveInfo) -> dict[str, str]:
        return dict(ME)

    def resolve_fail(_root: Any, _info: GraphQLResolveInfo) -> str:
        raise RuntimeError("database password is hunter2")

    def resolve_greeting(_root: Any, _info: GraphQLResolveInfo, name: str) -> str:
        return f"Hello {name}"

    async def subscribe_alphabet(_root: Any, _info: GraphQLResolveInfo):
        for letter in ("a", "b", "c", "d"):
            yield letter

    async def subscribe_message(_root: Any, info: GraphQLResolveInfo):
        async for message in info.context["subscribe_source"]:
            yield message

    def resolve_event(event: Any, _info: GraphQLResolveInfo) -> Any:
        return event

    query_fields = schema.query_type.fields
    query_fields["me"].resolve = resolve_me
    query_fields["fail"].resolve = resolve_fail
    query_fields["greeting"].resolve = resolve_greeting

    subscription_fields = schema.subscription_type.fields
    subscription_fields["alphabet"].subscribe = subscribe_alphabet
    subscription_fields["alphabet"].resolve = resolve_event
    subscription_fields["message"].subscribe = subscribe_message
    subscription_fields["message"].resolve = resolve_event

    return schema


# =============================================================================
# Schema Fixtures
# =============================================================================


@pytest.fixture
def schema() -> GraphQLSchema:
    """Fresh test schema (resolver instrumentation mutates field resolvers)."""
    return build_test_schema()


@pytest.fixture
def me() -> dict[str, str]:
    return dict(ME)


# =============================================================================
# Telemetry Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_telemetry():
    """Reset global telemetry and logging state around each test."""
    reset_telemetry()
    yield
    reset_telemetry()
    reset_logging()


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests")
