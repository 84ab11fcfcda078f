import pytest

from substudio.exceptions import FormattingError, SessionBusyError
from substudio.models import Segment, TranslationResult
from substudio.session import SubtitleSession
from substudio.subtitle_formatter import SRTFormatter


def make_segments():
    return [
        Segment(id="segment-0", start_time=0.0, end_time=2.5, text="Hello"),
        Segment(id="segment-1", start_time=2.5, end_time=3661.042, text="Goodbye"),
    ]


def test_srt_blocks_use_comma_milliseconds():
    srt = SRTFormatter().format_segments(make_segments())

    assert srt == (
        "1\n00:00:00,000 --> 00:00:02,500\nHello\n\n"
        "2\n00:00:02,500 --> 01:01:01,042\nGoodbye\n\n"
    )


def test_translated_and_bilingual_content():
    segment = Segment(id="a", start_time=0, end_time=1, text="Hello", translation="Hola")
    formatter = SRTFormatter()

    assert formatter.format_segments([segment]).endswith("Hola\n\n")
    assert formatter.format_segments([segment], bilingual=True).endswith("Hello\nHola\n\n")


def test_inverted_times_are_exported_unchanged():
    segment = Segment(id="a", start_time=5.0, end_time=1.0, text="Backwards")

    srt = SRTFormatter().format_segments([segment])

    assert "00:00:05,000 --> 00:00:01,000" in srt


def test_write_failure_is_a_formatting_error(tmp_path):
    with pytest.raises(FormattingError):
        SRTFormatter().write(make_segments(), str(tmp_path / "missing" / "out.srt"))


def test_add_assigns_unique_ids():
    session = SubtitleSession()

    ids = [session.add().id for _ in range(50)]

    assert len(set(ids)) == 50
    assert session.segments[0].text == "New subtitle text"
    assert (session.segments[0].start_time, session.segments[0].end_time) == (0.0, 3.0)


def test_update_edits_in_place_without_validation():
    session = SubtitleSession()
    segment = session.add("draft")

    session.update(segment.id, text="final", start_time=9.0, end_time=4.0)

    assert session.get(segment.id).text == "final"
    assert session.get(segment.id).end_time == 4.0


def test_update_rejects_unknown_id_and_field():
    session = SubtitleSession()
    segment = session.add()

    with pytest.raises(KeyError):
        session.update("nope", text="x")
    with pytest.raises(AttributeError):
        session.update(segment.id, speaker="Bob")
    with pytest.raises(AttributeError):
        session.update(segment.id, id="other")


def test_delete_and_clear():
    session = SubtitleSession()
    session.load(make_segments())

    assert session.delete("segment-0") is True
    assert session.delete("segment-0") is False
    assert [s.id for s in session] == ["segment-1"]
    session.clear()
    assert len(session) == 0


def test_load_with_translations_turns_on_bilingual():
    session = SubtitleSession()
    segments = make_segments()
    segments[0].translation = "Hola"

    session.load(segments)

    assert session.bilingual
    assert session.has_translations


def test_translations_merge_by_id_after_edits():
    session = SubtitleSession()
    session.load(make_segments())
    added = session.add("Inserted")
    session.delete("segment-0")

    updated = session.apply_translations({
        "segment-0": TranslationResult("Hola", 0.9, provider="gpt-4o"),
        "segment-1": TranslationResult("Adiós", 0.8, provider="gpt-4o"),
        added.id: TranslationResult("Inserted", 0.1, error="all failed"),
    })

    assert updated == 1
    assert session.get("segment-1").translation == "Adiós"
    assert session.get("segment-1").translation_confidence == 0.8
    assert session.get(added.id).translation is None


def test_busy_blocks_a_second_operation():
    session = SubtitleSession()

    with session.busy("transcription"):
        assert session.active_operation == "transcription"
        with pytest.raises(SessionBusyError):
            with session.busy("translation"):
                pass
    assert session.active_operation is None

    with session.busy("translation"):
        pass


def test_export_is_idempotent(tmp_path):
    session = SubtitleSession(bilingual=True)
    session.load(make_segments())
    session.update("segment-0", translation="Hola")

    first = session.export_srt()
    second = session.export_srt()

    assert first == second
    assert "Hello\nHola" in first
    assert session.get("segment-0").text == "Hello"
    assert session.export_srt(bilingual=False).startswith("1\n00:00:00,000 --> 00:00:02,500\nHola\n")

    path = tmp_path / "out.srt"
    session.export_to_file(str(path))
    assert path.read_text(encoding="utf-8") == first
