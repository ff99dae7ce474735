import argparse

from src.config.settings import DEFAULT_CONFIG_PATH
from src.wiki_index.domain.models import DeleteUpdateMode
from src.wiki_index.indexing import run_indexing


# python -m src.wiki_index --config resources/conf.json
def main() -> None:
    parser = argparse.ArgumentParser(description="Index a Wikipedia XML dump into Elasticsearch.")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Path to conf.json")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in DeleteUpdateMode],
        default=DeleteUpdateMode.NA.value,
        help="DELETE recreates the index, UPDATE skips pages already indexed",
    )
    parser.add_argument("--workers", type=int, default=None, help="Worker threads (default: CPU count)")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    args = parser.parse_args()

    summary = run_indexing(
        config_path=args.config,
        mode=args.mode,
        workers=args.workers,
        show_progress=not args.no_progress,
    )
    print(summary)


if __name__ == "__main__":
    main()
