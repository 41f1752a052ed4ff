"""
Tests for feature engineering.
"""

import numpy as np
import pandas as pd
import pytest

from gamecluster.errors import SchemaMismatch
from gamecluster.pipeline.features import N_BASE_FEATURES, FeatureBuilder, prepare_attributes


class TestFeatureBuilder:
    """Join, normalization and encoding."""

    def test_vector_length_is_base_plus_tag_width(self, attributes, tags):
        features = FeatureBuilder().build(attributes, tags)

        assert features.vectors.shape == (4, N_BASE_FEATURES + 3)
        assert features.bounds.vector_length == 8

    def test_games_without_tags_are_dropped(self, attributes, tags):
        features = FeatureBuilder().build(attributes, tags)

        assert features.app_ids == [10, 20, 30, 40]
        assert 50 not in features.app_ids
        assert features.dropped == 1

    def test_continuous_fields_are_min_max_scaled(self, attributes, tags):
        features = FeatureBuilder().build(attributes, tags)
        ratio = features.vectors[:, 0]
        price = features.vectors[:, 1]

        # app 10 has the best ratio and lowest price, app 40 the opposite
        assert ratio[0] == pytest.approx(1.0)
        assert ratio[3] == pytest.approx(0.0)
        assert price[0] == pytest.approx(0.0)
        assert price[3] == pytest.approx(1.0)
        assert np.all((features.vectors >= 0.0) & (features.vectors <= 1.0))

    def test_bounds_fit_on_surviving_games_only(self, attributes, tags):
        features = FeatureBuilder().build(attributes, tags)

        assert features.bounds.price_max == 40.0
        assert features.bounds.ratio_min == 0.1

    def test_platform_flags_and_tag_presence(self, attributes, tags):
        features = FeatureBuilder().build(attributes, tags)
        row_20 = features.vectors[features.app_ids.index(20)]

        assert row_20[2:5].tolist() == [1.0, 1.0, 0.0]
        assert row_20[5:].tolist() == [1.0, 0.0, 1.0]

    def test_input_order_does_not_change_vectors(self, attributes, tags):
        builder = FeatureBuilder()
        first = builder.build(attributes, tags)
        second = builder.build(attributes.iloc[::-1], tags.iloc[::-1])

        assert first.app_ids == second.app_ids
        np.testing.assert_allclose(first.vectors, second.vectors)

    def test_constant_field_scales_to_zero(self, attributes, tags):
        attributes = attributes.assign(price=5.0)
        features = FeatureBuilder().build(attributes, tags)

        assert np.all(features.vectors[:, 1] == 0.0)

    def test_frozen_bounds_are_reused(self, attributes, tags):
        builder = FeatureBuilder()
        bounds = builder.build(attributes, tags).bounds

        subset = builder.build(attributes[attributes["app_id"].isin([10, 20])], tags, bounds=bounds)

        assert subset.bounds is bounds
        # scaled against the full-corpus bounds, not refit on two games
        assert subset.vectors[1, 1] == pytest.approx(20.0 / 40.0)

    def test_metadata_carries_raw_fields(self, attributes, tags):
        features = FeatureBuilder().build(attributes, tags)
        metadata = features.metadata({10: "https://img/10.jpg"})

        assert metadata[10].title == "Alpha"
        assert metadata[10].image_url == "https://img/10.jpg"
        assert metadata[20].image_url == ""
        assert metadata[30].release_date is None
        assert metadata[40].tag_vector == [0.0, 1.0, 0.0]

    def test_encode_metadata_matches_build(self, attributes, tags):
        features = FeatureBuilder().build(attributes, tags)
        metadata = features.metadata()

        rebuilt = FeatureBuilder.encode_metadata([metadata[a] for a in features.app_ids], features.bounds)

        np.testing.assert_allclose(rebuilt, features.vectors)


class TestSchemaMismatch:
    """Sources that cannot be combined."""

    def test_missing_attribute_column(self, attributes, tags):
        with pytest.raises(SchemaMismatch, match="missing columns"):
            FeatureBuilder().build(attributes.drop(columns=["price"]), tags)

    def test_zero_tag_columns(self, attributes):
        with pytest.raises(SchemaMismatch, match="zero tag columns"):
            FeatureBuilder().build(attributes, pd.DataFrame({"app_id": [10, 20]}))

    def test_tag_source_without_app_id(self, attributes, tags):
        with pytest.raises(SchemaMismatch):
            FeatureBuilder().build(attributes, tags.rename(columns={"app_id": "appid"}))

    def test_unexpected_tag_width(self, attributes, tags):
        with pytest.raises(SchemaMismatch, match="Tag width mismatch"):
            FeatureBuilder(expected_tag_width=5).build(attributes, tags)

    def test_no_common_games(self, attributes, tags):
        with pytest.raises(SchemaMismatch):
            FeatureBuilder().build(attributes, tags.assign(app_id=[1, 2, 3, 4]))

    def test_non_numeric_tags(self, attributes, tags):
        with pytest.raises(SchemaMismatch, match="non-numeric"):
            FeatureBuilder().build(attributes, tags.assign(rpg=["a", "b", "c", "d"]))

    def test_stored_vector_width_mismatch(self, attributes, tags, make_metadata, bounds):
        with pytest.raises(SchemaMismatch):
            FeatureBuilder.encode_metadata([make_metadata(1, tags=(1.0, 0.0))], bounds)


class TestPrepareAttributes:
    """Raw catalog columns -> attributes."""

    def test_ratio_price_and_platforms(self):
        raw = pd.DataFrame({
            "appid": [10, 20],
            "name": ["Alpha", None],
            "release_date": ["2019-01-01", "not a date"],
            "platforms": ["windows;mac;linux", "windows"],
            "positive_ratings": [90, 0],
            "negative_ratings": [10, 0],
            "price": [9.99, None],
        })

        frame = prepare_attributes(raw)

        assert frame["app_id"].tolist() == [10, 20]
        assert frame["positive_ratio"].tolist() == pytest.approx([0.9, 0.0])
        assert frame["price"].tolist() == pytest.approx([9.99, 0.0])
        assert frame["is_mac"].tolist() == [True, False]
        assert frame["is_linux"].tolist() == [True, False]
        assert frame["release_date"].tolist() == ["2019-01-01", None]
        assert frame["title"].tolist() == ["Alpha", ""]
