from .encoding import decode_value, make_feature_frame
from .models import Classifier


def describe_prediction(model: Classifier, age, sex, bmi, children, smoker, region) -> str:
    """
    Predict the charge level of one person and phrase it as a sentence.

    `sex`, `smoker` and `region` are the encoded values (e.g. sex=1 for male,
    region=3 for southeast).
    """
    X = make_feature_frame(age, sex, bmi, children, smoker, region)
    label = model.predict(X)[0]

    smoker_text = "a smoker" if int(smoker) == 1 else "a non-smoker"
    child_text = "1 child" if int(children) == 1 else f"{int(children)} children"
    return (
        f"A {age} year old {decode_value('sex', int(sex))} with a BMI of {float(bmi):.1f}, "
        f"{child_text}, who is {smoker_text} living in the "
        f"{decode_value('region', int(region))} region is predicted to have "
        f"{label} insurance charges."
    )
