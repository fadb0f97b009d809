from typing import Iterable, List, Optional, Type

import pandas as pd
from pydantic import BaseModel
from sqlalchemy import Table, func, select
from sqlalchemy.engine import Engine

UPSERT_CHUNK_SIZE = 500


def frame_to_models(df: pd.DataFrame, model: Type[BaseModel], overrides: Optional[dict] = None) -> list:
    if df.empty:
        return []
    records = df.astype(object).where(pd.notna(df), None).to_dict(orient='records')
    overrides = overrides or {}
    return [model.model_validate({**record, **overrides}) for record in records]


def models_to_frame(models: Iterable[BaseModel], table: Table) -> pd.DataFrame:
    columns = [c.name for c in table.columns]
    rows = [m.model_dump(include=set(columns)) for m in models]
    df = pd.DataFrame(rows)
    # autoincrement keys are assigned by the database
    for column in table.primary_key.columns:
        if column.autoincrement is True and column.name in df.columns and df[column.name].isna().all():
            df = df.drop(columns=[column.name])
    return df


class TableRepository:
    """Shared read/count/upsert plumbing over one SQLAlchemy table."""

    model: Type[BaseModel]

    def __init__(self, engine: Engine):
        self.engine = engine

    def _read(self, table: Table, *where, overrides: Optional[dict] = None, order_by=None) -> list:
        query = select(table)
        for clause in where:
            query = query.where(clause)
        query = query.order_by(order_by if order_by is not None else table.c.id)
        df = pd.read_sql(query, self.engine)
        return frame_to_models(df, self.model, overrides)

    def _count(self, table: Table, *where) -> int:
        query = select(func.count()).select_from(table)
        for clause in where:
            query = query.where(clause)
        with self.engine.connect() as conn:
            return int(conn.execute(query).scalar_one())

    def _upsert(self, table: Table, models: List[BaseModel]) -> List[BaseModel]:
        """Delete rows with colliding ids, then append the batch, in one transaction."""
        if not models:
            return []
        # a feed may repeat an id; the last occurrence wins
        df = models_to_frame(models, table).drop_duplicates('id', keep='last')
        dtype = {c.name: c.type for c in table.columns if c.name in df.columns}
        ids = df['id'].tolist()
        with self.engine.begin() as conn:
            for start in range(0, len(ids), UPSERT_CHUNK_SIZE):
                chunk = ids[start:start + UPSERT_CHUNK_SIZE]
                conn.execute(table.delete().where(table.c.id.in_(chunk)))
            df.to_sql(
                table.name,
                conn,
                if_exists='append',
                index=False,
                dtype=dtype,
                chunksize=UPSERT_CHUNK_SIZE,
            )
        return list(models)
