import argparse
import logging
import sys

from transit_graph.common.cache import get_cache_client
from transit_graph.common.config import resolve_pipeline_config
from transit_graph.common.database import get_db_engine
from transit_graph.ingest.city_directory import load_city_directory
from transit_graph.processing.load_raw_data import load_real_dataset
from transit_graph.workers.graph_builder_worker import WORKER_ID as GRAPH_BUILDER_ID
from transit_graph.workers.orchestrator import create_orchestrator
from transit_graph.workers.virtual_entities_worker import WORKER_ID as VIRTUAL_ENTITIES_ID


def main():
    parser = argparse.ArgumentParser(description="sparse-region transit graph pipeline")
    parser.add_argument('--silent', action='store_true', help='run in silent mode, suppressing progress bars')
    subparsers = parser.add_subparsers(dest='command', required=True)

    load_parser = subparsers.add_parser('load', help='load stops/routes/flights json exports as a new dataset')
    load_parser.add_argument('data_dir', help='directory holding stops.json, routes.json and flights.json')

    subparsers.add_parser('synthesize', help='generate virtual stops, routes and flights')
    subparsers.add_parser('build-graph', help='build, publish and activate a new graph version')

    pipeline_parser = subparsers.add_parser('pipeline', help='synthesize then build the graph')
    pipeline_parser.add_argument('--data-dir', help='load this directory as a dataset first')
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING if args.silent else logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    config = resolve_pipeline_config()
    engine = get_db_engine(config.database_url)

    if args.command == 'load':
        dataset = load_real_dataset(args.data_dir, engine, silent=args.silent)
        return 0 if dataset is not None else 1

    if args.command == 'pipeline' and args.data_dir:
        if load_real_dataset(args.data_dir, engine, silent=args.silent) is None:
            return 1

    cache = get_cache_client(config.redis_url)
    city_directory = load_city_directory(config.city_directory)
    orchestrator = create_orchestrator(engine, cache, config, city_directory, silent=args.silent)

    if args.command == 'synthesize':
        results = orchestrator.run(VIRTUAL_ENTITIES_ID, follow_chain=False)
    elif args.command == 'build-graph':
        results = orchestrator.run(GRAPH_BUILDER_ID)
    else:
        results = orchestrator.run(VIRTUAL_ENTITIES_ID)
        # synthesizer skips once virtual entities exist; the graph may still be stale
        if results[-1].worker_id != GRAPH_BUILDER_ID and results[-1].skipped:
            results += orchestrator.run(GRAPH_BUILDER_ID)

    for result in results:
        status = 'skipped' if result.skipped else ('ok' if result.success else 'failed')
        logging.info(f"{result.worker_id}: {status} - {result.message}")
    return 0 if all(r.success for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
