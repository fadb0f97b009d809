from datetime import datetime
from typing import Optional

import pandas as pd
from sqlalchemy import select

from transit_graph.common.models import Dataset, DatasetStatistics
from transit_graph.common.schema import datasets
from transit_graph.repositories.base import TableRepository, frame_to_models


class DatasetRepository(TableRepository):
    model = Dataset

    def get_latest_dataset(self) -> Optional[Dataset]:
        query = select(datasets).order_by(datasets.c.created_at.desc(), datasets.c.id.desc()).limit(1)
        found = frame_to_models(pd.read_sql(query, self.engine), Dataset)
        return found[0] if found else None

    def get_dataset(self, version: str) -> Optional[Dataset]:
        found = self._read(datasets, datasets.c.version == version)
        return found[0] if found else None

    def create_dataset(self, dataset: Dataset) -> Dataset:
        values = dataset.model_dump(exclude={'id'})
        if values.get('created_at') is None:
            values['created_at'] = datetime.now()
        with self.engine.begin() as conn:
            result = conn.execute(datasets.insert().values(**values))
            new_id = result.inserted_primary_key[0]
        return dataset.model_copy(update={'id': new_id, 'created_at': values['created_at']})

    def update_statistics(self, version: str, statistics: DatasetStatistics) -> None:
        with self.engine.begin() as conn:
            result = conn.execute(
                datasets.update()
                .where(datasets.c.version == version)
                .values(**statistics.model_dump())
            )
        if result.rowcount == 0:
            raise ValueError(f"Dataset {version} not found")
