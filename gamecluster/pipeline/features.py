"""
Feature engineering: game attributes + tag presence -> fixed-length vectors

Vector layout (length 5 + T):
    [positive_ratio (min-max), price (min-max), is_win, is_mac, is_linux, tag_0 .. tag_T-1]

Continuous bounds are fit once over the whole surviving corpus and frozen in
FeatureBounds; re-scoring later (cosine re-ranking, a new batch) must reuse
the same bounds instead of fitting new ones.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from gamecluster.errors import SchemaMismatch
from gamecluster.models.schemas import GameMetadata
from gamecluster.utils.logger import get_logger

logger = get_logger(__name__)

APP_ID = "app_id"
CONTINUOUS_COLUMNS = ["positive_ratio", "price"]
PLATFORM_COLUMNS = ["is_win", "is_mac", "is_linux"]
REQUIRED_ATTRIBUTE_COLUMNS = [APP_ID] + CONTINUOUS_COLUMNS + PLATFORM_COLUMNS
N_BASE_FEATURES = len(CONTINUOUS_COLUMNS) + len(PLATFORM_COLUMNS)


@dataclass(frozen=True)
class FeatureBounds:
    """Min/max of each continuous field, fit once per training run"""
    ratio_min: float
    ratio_max: float
    price_min: float
    price_max: float
    tag_width: int

    @property
    def vector_length(self) -> int:
        return N_BASE_FEATURES + self.tag_width


@dataclass
class FeatureSet:
    """Vectors of every game that survived the join, sorted by app_id"""
    app_ids: List[int]
    vectors: np.ndarray
    games: pd.DataFrame
    tag_matrix: np.ndarray
    bounds: FeatureBounds
    dropped: int = 0

    def __len__(self) -> int:
        return len(self.app_ids)

    def metadata(self, image_urls: Optional[Mapping[int, str]] = None) -> Dict[int, GameMetadata]:
        """
        Typed metadata for each game, keyed by app_id.

        Args:
            image_urls: header image per app_id (missing ids get "")
        """
        image_urls = image_urls or {}
        result = {}
        for row, tags in zip(self.games.itertuples(index=False), self.tag_matrix):
            app_id = int(getattr(row, APP_ID))
            result[app_id] = GameMetadata(
                app_id=app_id,
                title=str(getattr(row, "title", "") or ""),
                release_date=_optional_str(getattr(row, "release_date", None)),
                positive_ratio=float(row.positive_ratio),
                price=float(row.price),
                is_win=bool(row.is_win),
                is_mac=bool(row.is_mac),
                is_linux=bool(row.is_linux),
                tag_vector=tags.tolist(),
                image_url=image_urls.get(app_id, ""),
            )
        return result


def _optional_str(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    return str(value)


def _scale(values: np.ndarray, lower: float, upper: float) -> np.ndarray:
    span = upper - lower
    if span <= 0:
        return np.zeros_like(values, dtype=np.float64)
    return (values - lower) / span


def prepare_attributes(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize raw catalog columns into game attributes.

    Expected raw columns: appid, name, release_date, platforms,
    positive_ratings, negative_ratings, price

    Returns:
        DataFrame: app_id, title, release_date, positive_ratio, price,
        is_win, is_mac, is_linux
    """
    positive = raw["positive_ratings"].fillna(0).astype(float)
    negative = raw["negative_ratings"].fillna(0).astype(float)
    total = positive + negative
    platforms = raw["platforms"].fillna("").astype(str).str.lower()

    if "release_date" in raw.columns:
        released = pd.to_datetime(raw["release_date"], errors="coerce")
    else:
        released = pd.Series(pd.NaT, index=raw.index)

    frame = pd.DataFrame({
        APP_ID: raw["appid"].astype(int),
        "title": raw["name"].fillna("").astype(str),
        "release_date": [d.date().isoformat() if not pd.isna(d) else None for d in released],
        "positive_ratio": np.where(total > 0, positive / total.where(total > 0, 1.0), 0.0),
        "price": raw["price"].fillna(0).astype(float).clip(lower=0.0),
        "is_win": platforms.str.contains("windows"),
        "is_mac": platforms.str.contains("mac"),
        "is_linux": platforms.str.contains("linux"),
    })
    logger.info(f"Attributes prepared: {len(frame)} games")
    return frame


class FeatureBuilder:
    """
    Joins attributes with tag data and encodes feature vectors.

    Games present in the attributes but absent from the tag source are
    dropped; a game may simply have no tag data.
    """

    def __init__(self, expected_tag_width: Optional[int] = None):
        """
        Args:
            expected_tag_width: tag column count the tag source must have
                (None accepts any non-zero width)
        """
        self.expected_tag_width = expected_tag_width

    def _tag_columns(self, tags: pd.DataFrame) -> List[str]:
        return [c for c in tags.columns if c != APP_ID]

    def validate(self, attributes: pd.DataFrame, tags: pd.DataFrame, bounds: Optional[FeatureBounds] = None) -> List[str]:
        """
        Check both sources before anything is encoded.

        Returns:
            The tag column names, in order

        Raises:
            SchemaMismatch: missing columns, no tag columns, or wrong tag width
        """
        missing = [c for c in REQUIRED_ATTRIBUTE_COLUMNS if c not in attributes.columns]
        if missing:
            raise SchemaMismatch(f"Attribute source is missing columns: {missing}")

        if APP_ID not in tags.columns:
            raise SchemaMismatch(f"Tag source has no '{APP_ID}' column")

        tag_columns = self._tag_columns(tags)
        if not tag_columns:
            raise SchemaMismatch("Tag source has zero tag columns")

        expected = bounds.tag_width if bounds is not None else self.expected_tag_width
        if expected is not None and len(tag_columns) != expected:
            raise SchemaMismatch(
                f"Tag width mismatch: expected {expected}, got {len(tag_columns)}"
            )

        return tag_columns

    def fit_bounds(self, games: pd.DataFrame, tag_width: int) -> FeatureBounds:
        """Fit the continuous bounds over all surviving games."""
        bounds = FeatureBounds(
            ratio_min=float(games["positive_ratio"].min()),
            ratio_max=float(games["positive_ratio"].max()),
            price_min=float(games["price"].min()),
            price_max=float(games["price"].max()),
            tag_width=tag_width,
        )
        logger.info(
            f"Bounds fitted: ratio=[{bounds.ratio_min}, {bounds.ratio_max}], "
            f"price=[{bounds.price_min}, {bounds.price_max}], tag_width={tag_width}"
        )
        return bounds

    @staticmethod
    def encode(games: pd.DataFrame, tag_matrix: np.ndarray, bounds: FeatureBounds) -> np.ndarray:
        """
        Encode already-joined games with frozen bounds.

        Returns:
            ndarray of shape (n_games, 5 + T)
        """
        ratio = _scale(games["positive_ratio"].to_numpy(dtype=np.float64), bounds.ratio_min, bounds.ratio_max)
        price = _scale(games["price"].to_numpy(dtype=np.float64), bounds.price_min, bounds.price_max)
        platforms = games[PLATFORM_COLUMNS].to_numpy(dtype=bool).astype(np.float64)

        return np.column_stack([ratio, price, platforms, tag_matrix])

    @staticmethod
    def encode_metadata(metadata: Sequence[GameMetadata], bounds: FeatureBounds) -> np.ndarray:
        """
        Rebuild feature vectors from stored metadata blobs.

        Raises:
            SchemaMismatch: a stored tag vector has the wrong width
        """
        for item in metadata:
            if len(item.tag_vector) != bounds.tag_width:
                raise SchemaMismatch(
                    f"Stored tag vector of app_id={item.app_id} has width "
                    f"{len(item.tag_vector)}, expected {bounds.tag_width}"
                )

        games = pd.DataFrame(
            [[m.positive_ratio, m.price, m.is_win, m.is_mac, m.is_linux] for m in metadata],
            columns=CONTINUOUS_COLUMNS + PLATFORM_COLUMNS,
        )
        tag_matrix = np.array([m.tag_vector for m in metadata], dtype=np.float64).reshape(len(metadata), bounds.tag_width)
        return FeatureBuilder.encode(games, (tag_matrix > 0).astype(np.float64), bounds)

    def build(self, attributes: pd.DataFrame, tags: pd.DataFrame, bounds: Optional[FeatureBounds] = None) -> FeatureSet:
        """
        Join, normalize and encode.

        Args:
            attributes: one row per game (see REQUIRED_ATTRIBUTE_COLUMNS)
            tags: app_id plus T tag columns
            bounds: frozen bounds of an earlier run (fit here when None)

        Returns:
            FeatureSet sorted by app_id

        Raises:
            SchemaMismatch: the sources cannot be combined
        """
        tag_columns = self.validate(attributes, tags, bounds)

        attrs = attributes.drop_duplicates(subset=APP_ID, keep="last").set_index(APP_ID)
        tag_frame = tags.drop_duplicates(subset=APP_ID, keep="last").set_index(APP_ID)

        common = attrs.index.intersection(tag_frame.index).sort_values()
        dropped = len(attrs) - len(common)
        if dropped:
            logger.debug(f"{dropped} games without tag data dropped")

        if len(common) == 0:
            raise SchemaMismatch("No app_id is present in both the attribute and tag sources")

        try:
            raw_tags = tag_frame.loc[common, tag_columns].to_numpy(dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise SchemaMismatch(f"Tag source holds non-numeric values: {e}") from e

        tag_matrix = (np.nan_to_num(raw_tags, nan=0.0) > 0).astype(np.float64)
        games = attrs.loc[common].reset_index()

        if bounds is None:
            bounds = self.fit_bounds(games, len(tag_columns))

        vectors = self.encode(games, tag_matrix, bounds)

        logger.info(
            f"Feature vectors built: {len(games)} games x {vectors.shape[1]} features "
            f"({dropped} dropped)"
        )
        return FeatureSet(
            app_ids=[int(a) for a in games[APP_ID]],
            vectors=vectors,
            games=games,
            tag_matrix=tag_matrix,
            bounds=bounds,
            dropped=dropped,
        )
