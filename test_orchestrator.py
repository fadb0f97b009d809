import pytest

from transit_graph.common.config import PipelineConfig, resolve_pipeline_config
from transit_graph.workers.orchestrator import create_orchestrator

from conftest import CITY_DIRECTORY


def test_pipeline_chain_runs_builder_after_synthesizer(engine, cache, dataset, alpha_stop):
    orchestrator = create_orchestrator(engine, cache, PipelineConfig(hub_city='Alpha', horizon_days=1),
                                       CITY_DIRECTORY, silent=True)

    results = orchestrator.run('virtual-entities-generator')

    assert [r.worker_id for r in results] == ['virtual-entities-generator', 'graph-builder']
    assert all(r.success and not r.skipped for r in results)
    assert cache.get('graph:version').startswith('graph-v')


def test_chain_stops_on_skip(engine, cache, dataset, alpha_stop):
    orchestrator = create_orchestrator(engine, cache, PipelineConfig(hub_city='Alpha', horizon_days=1),
                                       CITY_DIRECTORY, silent=True)
    orchestrator.run('virtual-entities-generator')

    results = orchestrator.run('virtual-entities-generator')

    assert len(results) == 1
    assert results[0].skipped


def test_unknown_worker(engine, cache):
    orchestrator = create_orchestrator(engine, cache, PipelineConfig(), CITY_DIRECTORY, silent=True)
    with pytest.raises(KeyError):
        orchestrator.run('nope')


def test_config_from_environment(monkeypatch):
    monkeypatch.setenv('TG_HUB_CITY', 'Мирный')
    monkeypatch.setenv('TG_MESH_CAP', '12')
    monkeypatch.setenv('TG_HORIZON_DAYS', 'not-a-number')
    monkeypatch.delenv('TG_BACKUP_DIR', raising=False)

    config = resolve_pipeline_config()

    assert config.hub_city == 'Мирный'
    assert config.mesh_cap == 12
    assert config.horizon_days == 365
    assert config.backup_dir is None
