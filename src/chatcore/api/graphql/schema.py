from pathlib import Path

from ariadne import load_schema_from_path, make_executable_schema

from .resolvers import bindables

SCHEMA_PATH = Path(__file__).parent / "schema.graphql"

type_defs = load_schema_from_path(str(SCHEMA_PATH))

# convert_names_case maps camelCase arguments (conversationId) to snake_case kwargs
schema = make_executable_schema(type_defs, *bindables, convert_names_case=True)
