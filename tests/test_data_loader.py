import pytest

from charge_level.data_loader import load_insurance_data


def test_load_selects_required_columns(tmp_path, raw_df):
    path = tmp_path / "insurance.csv"
    raw_df.assign(extra=1).to_csv(path, index=False)

    df = load_insurance_data(path)
    assert list(df.columns) == ["age", "sex", "bmi", "children", "smoker", "region", "charges"]
    assert len(df) == len(raw_df)


def test_missing_columns_raise(tmp_path, raw_df):
    path = tmp_path / "insurance.csv"
    raw_df.drop(columns=["charges"]).to_csv(path, index=False)

    with pytest.raises(ValueError, match="charges"):
        load_insurance_data(path)
