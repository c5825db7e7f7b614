"""
Tests for the schema foreign-key closure.
"""

from dataagent.models.schema import ColumnDTO, SchemaDTO, TableDTO
from dataagent.schema.closure import (
    SchemaClosureBuilder,
    parse_relation,
    split_foreign_keys,
)


def table(name, *columns, fks=()):
    return TableDTO(name=name, columns=[ColumnDTO(name=c) for c in columns], foreign_keys=list(fks))


class CatalogSource:
    """Full catalog; records every lookup"""

    def __init__(self, tables):
        self.tables = {t.name: t for t in tables}
        self.table_calls = []
        self.column_calls = []

    def fetch_tables(self, agent_id, names):
        self.table_calls.append(list(names))
        return [self.tables[n].model_copy(deep=True) for n in names if n in self.tables]

    def fetch_columns(self, agent_id, table_name, names):
        self.column_calls.append((table_name, list(names)))
        source = self.tables.get(table_name)
        if source is None:
            return []
        return [c for c in source.columns if c.name in names]


CATALOG = [
    table("orders", "id", "user_id", "product_id", "region_code", "amount",
          fks=["orders.user_id=users.id", "orders.product_id=products.id"]),
    table("users", "id", "name", "company_id", fks=["users.company_id=companies.id"]),
    table("products", "id", "title"),
    table("companies", "id", "name"),
    table("regions", "code", "label"),
]


def assert_closed(schema: SchemaDTO):
    index = schema.column_index()
    for fk in schema.foreign_keys:
        (st, sc), (tt, tc) = parse_relation(fk)
        assert sc in index.get(st, set()), f"{st}.{sc} missing for {fk}"
        assert tc in index.get(tt, set()), f"{tt}.{tc} missing for {fk}"


def test_closure_pulls_in_referenced_tables_and_columns():
    recalled = SchemaDTO(tables=[table(
        "orders", "amount", fks=["orders.user_id=users.id", "orders.product_id=products.id"],
    )])
    source = CatalogSource(CATALOG)

    closed = SchemaClosureBuilder(source).close("shop", recalled)

    assert set(closed.table_names) == {"orders", "users", "products"}
    assert {"user_id", "product_id", "amount"} <= {c.name for c in closed.table("orders").columns}
    assert set(closed.foreign_keys) == {"orders.user_id=users.id", "orders.product_id=products.id"}
    assert_closed(closed)
    assert source.table_calls == [["users", "products"]], "missing tables fetched in one batch"


def test_closure_expands_one_hop_only():
    recalled = SchemaDTO(tables=[table("orders", "amount", fks=["orders.user_id=users.id"])])

    closed = SchemaClosureBuilder(CatalogSource(CATALOG)).close("shop", recalled)

    assert "companies" not in closed.table_names
    assert "users.company_id=companies.id" not in closed.foreign_keys
    assert_closed(closed)


def test_logical_relations_touching_recalled_tables_are_merged():
    recalled = SchemaDTO(tables=[table("orders", "amount")])
    logical = ["orders.region_code = regions.code", "products.id=companies.id", "not a relation"]

    closed = SchemaClosureBuilder(CatalogSource(CATALOG)).close("shop", recalled, logical)

    assert "regions" in closed.table_names
    assert closed.foreign_keys == ["orders.region_code=regions.code"]
    assert_closed(closed)


def test_relations_with_unresolvable_endpoints_are_dropped():
    recalled = SchemaDTO(tables=[table("orders", "amount", fks=["orders.warehouse_id=warehouses.id"])])

    closed = SchemaClosureBuilder(CatalogSource(CATALOG)).close("shop", recalled)

    assert closed.table_names == ["orders"]
    assert closed.foreign_keys == []
    assert closed.table("orders").foreign_keys == []


def test_schema_level_keys_are_deduplicated():
    recalled = SchemaDTO(
        tables=[table("orders", "amount", fks=["orders.user_id=users.id"]), table("users", "id")],
        foreign_keys=["orders.user_id=users.id", "orders.user_id = users.id"],
    )

    closed = SchemaClosureBuilder(CatalogSource(CATALOG)).close("shop", recalled)

    assert closed.foreign_keys == ["orders.user_id=users.id"]


def test_closure_does_not_mutate_its_input():
    recalled = SchemaDTO(tables=[table("orders", "amount", fks=["orders.user_id=users.id"])])
    SchemaClosureBuilder(CatalogSource(CATALOG)).close("shop", recalled)
    assert recalled.table_names == ["orders"]
    assert [c.name for c in recalled.tables[0].columns] == ["amount"]


def test_supplement_adds_suggested_tables_and_recloses():
    recalled = SchemaDTO(tables=[table("products", "id", "title")])
    builder = SchemaClosureBuilder(CatalogSource(CATALOG))

    expanded, added = builder.supplement("shop", recalled, ["orders", "products", "ghosts"])

    assert added == ["orders"]
    assert {"orders", "products", "users"} <= set(expanded.table_names)
    assert_closed(expanded)


def test_supplement_with_nothing_new_returns_schema_unchanged():
    recalled = SchemaDTO(tables=[table("products", "id")])
    expanded, added = SchemaClosureBuilder(CatalogSource(CATALOG)).supplement("shop", recalled, ["ghosts"])
    assert added == []
    assert expanded is recalled


def test_relation_parsing():
    assert parse_relation("orders.user_id = users.id") == (("orders", "user_id"), ("users", "id"))
    assert parse_relation("`orders`.`user_id`=`users`.`id`") == (("orders", "user_id"), ("users", "id"))
    assert parse_relation("orders.user_id") is None
    assert parse_relation("a = b.c") is None
    assert split_foreign_keys("a.x=b.y、c.z=d.w; e.f=g.h") == ["a.x=b.y", "c.z=d.w", "e.f=g.h"]
