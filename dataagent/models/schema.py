"""
Schema handed to SQL generation: recalled tables, columns and relations
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ColumnDTO(BaseModel):
    name: str
    type: str = ""
    description: str = ""
    samples: List[str] = Field(default_factory=list)


class TableDTO(BaseModel):
    name: str
    description: str = ""
    columns: List[ColumnDTO] = Field(default_factory=list)
    primary_keys: List[str] = Field(default_factory=list)
    # Declared keys of this table, "table.col=table.col"
    foreign_keys: List[str] = Field(default_factory=list)

    def column(self, name: str) -> Optional[ColumnDTO]:
        for col in self.columns:
            if col.name == name:
                return col
        return None


class SchemaDTO(BaseModel):
    database_name: str = ""
    tables: List[TableDTO] = Field(default_factory=list)
    # "table.col=table.col"
    foreign_keys: List[str] = Field(default_factory=list)

    def table(self, name: str) -> Optional[TableDTO]:
        for t in self.tables:
            if t.name == name:
                return t
        return None

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    def column_index(self) -> Dict[str, set]:
        return {t.name: {c.name for c in t.columns} for t in self.tables}

    def render(self) -> str:
        """Compact text form used in prompts"""
        lines = [f"# Database: {self.database_name}"] if self.database_name else []
        for t in self.tables:
            header = f"## {t.name}"
            if t.description:
                header += f" -- {t.description}"
            lines.append(header)
            for c in t.columns:
                pk = " PK" if c.name in t.primary_keys else ""
                desc = f" -- {c.description}" if c.description else ""
                samples = f" e.g. {', '.join(c.samples[:3])}" if c.samples else ""
                lines.append(f"  - {c.name} {c.type}{pk}{desc}{samples}")
        if self.foreign_keys:
            lines.append("## Foreign keys")
            lines.extend(f"  - {fk}" for fk in self.foreign_keys)
        return "\n".join(lines)
