"""Pydantic models for target database introspection."""

from pydantic import BaseModel


class TableRef(BaseModel):
    """A (schema, table) pair found in the target catalog."""

    schema_name: str
    table_name: str

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}"
