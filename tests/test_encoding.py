import pandas as pd
import pytest

from charge_level.encoding import (
    decode_features,
    decode_value,
    encode_features,
    encode_value,
    make_feature_frame,
)
from charge_level.errors import EncodingError


def _sample_records() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "age": [19, 33, 46, 60],
            "sex": ["female", "male", "male", "female"],
            "bmi": [27.9, 22.7, 33.4, 25.8],
            "children": [0, 1, 3, 0],
            "smoker": ["yes", "no", "no", "yes"],
            "region": ["southwest", "northwest", "southeast", "northeast"],
        }
    )


def test_encode_features_maps_codes():
    encoded = encode_features(_sample_records())

    assert encoded["sex"].tolist() == [0, 1, 1, 0]
    assert encoded["smoker"].tolist() == [1, 0, 0, 1]
    assert encoded["region"].tolist() == [4, 2, 3, 1]
    assert isinstance(encoded["region"].dtype, pd.CategoricalDtype)
    assert encoded["age"].tolist() == [19, 33, 46, 60]


def test_encode_is_case_and_whitespace_insensitive():
    assert encode_value("sex", " Male ") == 1
    assert encode_value("region", "NorthEast") == 1


def test_round_trip_recovers_all_categories():
    records = _sample_records()
    decoded = decode_features(encode_features(records))

    pd.testing.assert_frame_equal(decoded, records)
    assert decode_value("sex", 1) == "male"
    assert [decode_value("region", code) for code in (1, 2, 3, 4)] == [
        "northeast",
        "northwest",
        "southeast",
        "southwest",
    ]


@pytest.mark.parametrize("column, value", [("sex", "other"), ("smoker", "sometimes")])
def test_unknown_binary_values_raise(column, value):
    records = _sample_records()
    records.loc[0, column] = value

    with pytest.raises(EncodingError) as excinfo:
        encode_features(records)
    assert excinfo.value.column == column


def test_unknown_region_raises_by_default():
    records = _sample_records()
    records.loc[2, "region"] = "midwest"

    with pytest.raises(EncodingError):
        encode_features(records)


def test_unknown_region_falls_back_to_southwest_when_permissive():
    records = _sample_records()
    records.loc[2, "region"] = "midwest"

    encoded = encode_features(records, permissive_region=True)
    assert encoded.loc[2, "region"] == 4


def test_missing_categorical_column_is_rejected():
    with pytest.raises(ValueError, match="region"):
        encode_features(_sample_records().drop(columns=["region"]))


def test_make_feature_frame_matches_encoder_schema():
    single = make_feature_frame(19, 0, 27.9, 0, 1, 4)
    encoded = encode_features(_sample_records().iloc[[0]])

    assert list(single.columns) == list(encoded.columns)
    assert single.dtypes["region"] == encoded.dtypes["region"]
    assert single.iloc[0]["region"] == 4


def test_make_feature_frame_rejects_unknown_codes():
    with pytest.raises(EncodingError):
        make_feature_frame(30, 0, 25.0, 0, 1, 7)

