"""
Relation store shared by the bronze, silver and gold layers.

Every relation is published by staging its full contents into a fresh
versioned table and then swapping the layer's pointer row to it in a single
transaction. Readers always resolve the pointer first, so a half-written
replacement is never visible and a failed replace leaves the previously
committed version in place.
"""

import logging
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy import Column, Integer, MetaData, Table, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.types import Date, DateTime, Numeric, TypeEngine

from db.db_utils import get_engine, get_session, create_all_tables
from db.models import RelationPointer, utcnow
from DWH.common.exceptions import StoreReadError, StoreWriteError, SchemaMismatchError

logger = logging.getLogger(__name__)

ROW_SEQ = "_row_seq"


def _type_class(type_: Any) -> type:
    return type_ if isinstance(type_, type) else type(type_)


def coerce_frame(df: pd.DataFrame, schema: Dict[str, TypeEngine]) -> pd.DataFrame:
    """
    Coerce a frame to the pandas dtypes implied by a relation schema.

    Dates become datetime64, integers nullable Int64, numerics float64 and
    everything else object with None for missing values.
    """
    df = df.copy()
    for col, type_ in schema.items():
        kind = _type_class(type_)
        if issubclass(kind, (Date, DateTime)):
            df[col] = pd.to_datetime(df[col], errors="coerce")
        elif issubclass(kind, Integer):
            numeric = pd.to_numeric(df[col], errors="coerce").astype("float64")
            df[col] = numeric.where(numeric == numeric.round()).astype("Int64")
        elif issubclass(kind, Numeric):
            df[col] = pd.to_numeric(df[col], errors="coerce").astype("float64")
        else:
            df[col] = pd.Series(
                [None if pd.isna(v) else v for v in df[col].astype(object)],
                index=df.index,
                dtype=object,
            )
    return df[list(schema)]


def to_db_records(df: pd.DataFrame, schema: Dict[str, TypeEngine]) -> List[Dict[str, Any]]:
    """Convert a frame to insertable records of plain Python values."""
    columns = {}
    for col, type_ in schema.items():
        kind = _type_class(type_)
        series = df[col]
        if issubclass(kind, DateTime):
            series = pd.to_datetime(series, errors="coerce")
            columns[col] = [None if pd.isna(v) else v.to_pydatetime() for v in series]
            continue
        if issubclass(kind, Date):
            series = pd.to_datetime(series, errors="coerce")
            columns[col] = [None if pd.isna(v) else v.date() for v in series]
            continue
        if issubclass(kind, Integer):
            series = pd.to_numeric(series, errors="coerce").astype("Int64")
        elif issubclass(kind, Numeric):
            series = pd.to_numeric(series, errors="coerce").astype("float64")
        columns[col] = [None if pd.isna(v) else v for v in series.astype(object)]

    return [
        {ROW_SEQ: seq, **{col: values[seq] for col, values in columns.items()}}
        for seq in range(len(df))
    ]


class RelationStore:
    """
    Versioned, atomically replaced relations for one warehouse layer.

    Args:
        layer: Layer name (bronze, silver, gold)
        relations: Mapping of relation name to column schema
        engine: SQLAlchemy engine (default engine if omitted)
    """

    def __init__(
        self,
        layer: str,
        relations: Dict[str, Dict[str, TypeEngine]],
        engine: Optional[Engine] = None,
    ):
        self.layer = layer
        self.relations = relations
        self.engine = engine or get_engine()
        create_all_tables(self.engine)

    def __repr__(self):
        return f"<RelationStore(layer={self.layer}, relations={len(self.relations)})>"

    # NAMING

    def schema(self, relation: str) -> Dict[str, TypeEngine]:
        if relation not in self.relations:
            raise SchemaMismatchError(
                f"Unknown relation '{relation}'", layer=self.layer, relation=relation
            )
        return self.relations[relation]

    def physical_name(self, relation: str, version: int) -> str:
        return f"{self.layer}__{relation}__v{version}"

    def _table(self, relation: str, physical_name: str) -> Table:
        columns = [Column(ROW_SEQ, Integer, primary_key=True, autoincrement=False)]
        columns += [Column(name, type_) for name, type_ in self.schema(relation).items()]
        return Table(physical_name, MetaData(), *columns)

    # POINTER MANAGEMENT

    def _pointer(self, relation: str) -> Optional[RelationPointer]:
        session = get_session(self.engine)
        try:
            return session.query(RelationPointer).filter_by(
                layer=self.layer, relation=relation
            ).first()
        finally:
            session.close()

    def current_version(self, relation: str) -> Optional[int]:
        pointer = self._pointer(relation)
        return pointer.version if pointer else None

    def exists(self, relation: str) -> bool:
        return self._pointer(relation) is not None

    def row_count(self, relation: str) -> int:
        pointer = self._pointer(relation)
        return pointer.row_count if pointer else 0

    def _swap_pointer(self, relation: str, version: int, physical: str, rows: int, run_id: Optional[str]) -> Optional[str]:
        """Point the relation at a staged table; returns the superseded table name."""
        session = get_session(self.engine)
        try:
            pointer = session.query(RelationPointer).filter_by(
                layer=self.layer, relation=relation
            ).first()
            previous = pointer.physical_table if pointer else None
            if pointer:
                pointer.version = version
                pointer.physical_table = physical
                pointer.row_count = rows
                pointer.run_id = run_id
                pointer.committed_at = utcnow()
            else:
                session.add(RelationPointer(
                    layer=self.layer,
                    relation=relation,
                    version=version,
                    physical_table=physical,
                    row_count=rows,
                    run_id=run_id,
                ))
            session.commit()
            return previous
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    # TABLE CLEANUP

    def _drop_table(self, physical: str) -> None:
        try:
            Table(physical, MetaData()).drop(self.engine, checkfirst=True)
        except SQLAlchemyError as e:
            logger.warning(f"Could not drop {physical} ({e}); it will be dropped on the next replace")

    def _drop_stale_versions(self, relation: str, keep: Optional[str]) -> None:
        """Drop versioned tables left behind by interrupted replacements."""
        prefix = f"{self.layer}__{relation}__v"
        for name in inspect(self.engine).get_table_names():
            if name.startswith(prefix) and name != keep:
                logger.info(f"Dropping stale relation version {name}")
                self._drop_table(name)

    # PUBLIC INTERFACE

    def replace(self, relation: str, df: pd.DataFrame, run_id: Optional[str] = None) -> int:
        """
        Atomically substitute the full contents of a relation.

        Args:
            relation: Relation name
            df: Complete new contents (must carry every schema column)
            run_id: Run identifier stored on the pointer row

        Returns:
            Number of rows committed

        Raises:
            SchemaMismatchError: If the frame lacks schema columns or has uncastable values
            StoreWriteError: If staging or the pointer swap fails
        """
        schema = self.schema(relation)
        missing = [c for c in schema if c not in df.columns]
        if missing:
            raise SchemaMismatchError(
                f"Frame for {self.layer}.{relation} is missing columns {missing}",
                layer=self.layer,
                relation=relation,
            )
        try:
            records = to_db_records(df, schema)
        except (TypeError, ValueError) as e:
            raise SchemaMismatchError(
                f"Frame for {self.layer}.{relation} has values not castable to the schema",
                layer=self.layer,
                relation=relation,
                original_error=e,
            ) from e

        pointer = self._pointer(relation)
        current = pointer.physical_table if pointer else None
        self._drop_stale_versions(relation, keep=current)

        version = (pointer.version if pointer else 0) + 1
        physical = self.physical_name(relation, version)
        table = self._table(relation, physical)

        # Stage: the new version is invisible until the pointer moves
        try:
            with self.engine.begin() as conn:
                table.create(conn)
                if records:
                    conn.execute(table.insert(), records)
        except SQLAlchemyError as e:
            self._drop_table(physical)
            raise StoreWriteError(
                f"Failed to stage {self.layer}.{relation}",
                layer=self.layer,
                relation=relation,
                original_error=e,
            ) from e

        # Swap
        try:
            previous = self._swap_pointer(relation, version, physical, len(records), run_id)
        except SQLAlchemyError as e:
            self._drop_table(physical)
            raise StoreWriteError(
                f"Failed to commit {self.layer}.{relation}",
                layer=self.layer,
                relation=relation,
                original_error=e,
            ) from e

        if previous and previous != physical:
            self._drop_table(previous)

        logger.info(f"  Replaced {self.layer}.{relation} -> v{version} ({len(records)} records)")
        return len(records)

    def read(self, relation: str) -> pd.DataFrame:
        """
        Read the committed contents of a relation in write order.

        Raises:
            StoreReadError: If the relation was never committed or cannot be read
        """
        schema = self.schema(relation)
        pointer = self._pointer(relation)
        if pointer is None:
            raise StoreReadError(
                f"Relation {self.layer}.{relation} has no committed version",
                layer=self.layer,
                relation=relation,
            )

        table = self._table(relation, pointer.physical_table)
        stmt = select(*[table.c[name] for name in schema]).order_by(table.c[ROW_SEQ])
        try:
            with self.engine.connect() as conn:
                df = pd.read_sql(stmt, conn)
        except SQLAlchemyError as e:
            raise StoreReadError(
                f"Failed to read {self.layer}.{relation}",
                layer=self.layer,
                relation=relation,
                original_error=e,
            ) from e

        return coerce_frame(df, schema)

    def read_all(self) -> Dict[str, pd.DataFrame]:
        return {relation: self.read(relation) for relation in self.relations}


def bronze_store(engine: Optional[Engine] = None) -> RelationStore:
    from db.models_bronze import LAYER, BRONZE_RELATIONS
    return RelationStore(LAYER, BRONZE_RELATIONS, engine)


def silver_store(engine: Optional[Engine] = None) -> RelationStore:
    from db.models_silver import LAYER, SILVER_RELATIONS
    return RelationStore(LAYER, SILVER_RELATIONS, engine)


def gold_store(engine: Optional[Engine] = None) -> RelationStore:
    from db.models_gold import LAYER, GOLD_RELATIONS
    return RelationStore(LAYER, GOLD_RELATIONS, engine)
