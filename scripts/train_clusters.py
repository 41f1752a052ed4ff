"""
Game clustering training run

Builds feature vectors from the Steam catalog and tag data, assigns KMeans
clusters, exports every clustered game to the store and records the run in
MLflow.

Usage:
    python scripts/train_clusters.py --clusters 12 --inspect-app-id 320

Input files:
    - data/steam.csv                (catalog: appid, name, platforms, ratings, price ...)
    - data/steamspy_tag_data.csv    (appid + one column per tag)
    - data/steam_media_data.csv     (steam_appid, header_image ...)

Output:
    - game_clusters table (GAMECLUSTER_DATABASE_URL)
    - models/cluster_snapshot.pkl
    - mlruns/
"""

import argparse
import os
import sys
from typing import Dict

import pandas as pd
from dotenv import load_dotenv

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

load_dotenv()

from gamecluster.pipeline.features import APP_ID, prepare_attributes
from gamecluster.recommender.neighbors import CosineRerankRetriever
from gamecluster.recommender.store import GameClusterStore
from gamecluster.services.training_service import ClusterTrainingService
from gamecluster.utils.config_loader import config
from gamecluster.utils.database import SessionLocal, init_db
from gamecluster.utils.logger import get_logger

logger = get_logger(__name__)


def load_tags(tag_path: str) -> pd.DataFrame:
    tags = pd.read_csv(tag_path)
    return tags.rename(columns={"appid": APP_ID})


def load_image_urls(media_path: str) -> Dict[int, str]:
    if not media_path or not os.path.exists(media_path):
        logger.warning(f"Media file not found, exporting without images: {media_path}")
        return {}

    media = pd.read_csv(media_path, usecols=["steam_appid", "header_image"])
    media = media.dropna(subset=["steam_appid"]).drop_duplicates(subset="steam_appid", keep="last")
    return {
        int(app_id): str(url) if isinstance(url, str) else ""
        for app_id, url in zip(media["steam_appid"], media["header_image"])
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Train game clusters and export them to the store")
    parser.add_argument("--games", default="data/steam.csv")
    parser.add_argument("--tags", default="data/steamspy_tag_data.csv")
    parser.add_argument("--media", default="data/steam_media_data.csv")
    parser.add_argument("--clusters", type=int, default=None, help="K (config clustering.n_clusters by default)")
    parser.add_argument("--config", default=None, help="config.json path")
    parser.add_argument("--no-tracking", action="store_true", help="skip MLflow logging")
    parser.add_argument("--inspect-app-id", type=int, default=None, help="print cosine neighbours of this game")
    parser.add_argument("--inspect-count", type=int, default=5)
    return parser.parse_args()


def main():
    """Entry point"""
    args = parse_args()

    try:
        config.load_config(args.config)
    except FileNotFoundError:
        logger.warning("config.json not found, using built-in defaults")

    init_db()
    db = SessionLocal()

    try:
        attributes = prepare_attributes(pd.read_csv(args.games))
        tags = load_tags(args.tags)
        image_urls = load_image_urls(args.media)

        service = ClusterTrainingService(
            db,
            config,
            track_experiments=False if args.no_tracking else None,
        )
        result = service.run(attributes, tags, image_urls=image_urls, n_clusters=args.clusters)

        logger.info(f"Exported {result.export.written} games (run_id={result.snapshot.run_id})")

        if args.inspect_app_id is not None:
            retriever = CosineRerankRetriever(GameClusterStore(db), result.snapshot)
            anchor = GameClusterStore(db).get_by_id(args.inspect_app_id)
            logger.info(f"Cosine neighbours of app_id={anchor.app_id} ({anchor.metadata.title}):")
            for record, similarity in retriever.rank(anchor.cluster_id, anchor.app_id)[:args.inspect_count]:
                logger.info(f"  - {record.metadata.title} (id={record.app_id}, cosine={similarity:.4f})")

        logger.info("MLflow UI: mlflow ui --port 5000")
        sys.exit(0)

    except Exception as e:
        logger.error(f"Training failed: {e}", exc_info=True)
        sys.exit(1)

    finally:
        db.close()


if __name__ == "__main__":
    main()
