import pytest

from substudio.confidence import (
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    clamp_confidence,
    detect_cultural_adaptations,
    score_translation,
)


def test_well_formed_translation_hits_the_ceiling():
    assert score_translation("Hello world", "Hola mundo") == MAX_CONFIDENCE


def test_extreme_length_ratio_is_penalised():
    assert score_translation("Hello there my friend", "Hi") == pytest.approx(0.76)


def test_dropped_number_is_penalised():
    assert score_translation("I have 3 apples", "Tengo manzanas") == pytest.approx(0.90)


def test_long_output_line_gets_no_bonus():
    assert score_translation("a" * 60, "b" * 60) == pytest.approx(0.96)


def test_empty_original_skips_the_ratio_check():
    assert score_translation("", "x") == pytest.approx(0.96)


@pytest.mark.parametrize("original, translated", [
    ("Hi", "x" * 500),
    ("12 34 56", "nothing"),
    ("line", "one\ntwo\n" + "z" * 80),
])
def test_score_stays_in_bounds(original, translated):
    assert MIN_CONFIDENCE <= score_translation(original, translated) <= MAX_CONFIDENCE


def test_clamp_confidence():
    assert clamp_confidence(-3) == MIN_CONFIDENCE
    assert clamp_confidence(5) == MAX_CONFIDENCE
    assert clamp_confidence(5, upper=1.0) == 1.0
    assert clamp_confidence(0.5) == 0.5


def test_title_and_time_adaptations_detected():
    adaptations = detect_cultural_adaptations(
        "Hello, Mr. Smith! It's 3:00 PM.",
        "¡Hola, Sr. Smith! Son las 15:00.",
    )
    assert adaptations == ["Title adaptation", "Time format adaptation"]


def test_preserved_markers_are_not_adaptations():
    assert detect_cultural_adaptations(
        "Hello, Mr. Smith! It's 3:00 PM.",
        "Hallo, Mr. Smith! Es ist 3:00 PM.",
    ) == []


def test_currency_and_date_adaptations():
    adaptations = detect_cultural_adaptations("It costs $20 on 12/25/2024", "Cuesta 20 € el 25.12.2024")
    assert adaptations == ["Currency adaptation", "Date format adaptation"]


def test_markers_absent_from_source_are_ignored():
    assert detect_cultural_adaptations("Good morning", "Dr. Buenos días $5") == []
