"""Tests for ffmpeg failure classification."""

import pytest

from llmffmpeg.diagnose import GENERIC_SUGGESTION, RULES, ErrorKind, classify


class TestClassify:
    """Tests for classify against real-world ffmpeg output."""

    @pytest.mark.parametrize("text, kind", [
        ("clip.mp4: No such file or directory", ErrorKind.FILE_NOT_FOUND),
        ("in.mp4: Invalid data found when processing input", ErrorKind.INVALID_DATA),
        ("Unknown encoder 'libfdk_aac'", ErrorKind.CODEC_NOT_FOUND),
        ("Encoder (codec hevc) not found for output stream #0:0", ErrorKind.CODEC_NOT_FOUND),
        ("out.mp4: Permission denied", ErrorKind.PERMISSION_DENIED),
        ("Stream specifier ':s' in filtergraph description matches no streams.", ErrorKind.STREAM_SPECIFIER),
        ("File 'out.mp3' already exists. Overwrite? [y/N] Not overwriting - exiting", ErrorKind.OUTPUT_EXISTS),
        ("Unrecognized option 'vcodecc'.", ErrorKind.UNRECOGNIZED_OPTION),
        ("Error splitting the argument list: Invalid argument", ErrorKind.ARGUMENT_SPLITTING),
        ("Unrecognized option 'foo'.\nError splitting the argument list: Option not found",
         ErrorKind.UNRECOGNIZED_OPTION),
        ("Output file #0 does not contain any stream", ErrorKind.NO_OUTPUT),
        ("Nothing was written into output file 0 (out.mp4), because at least one of its streams received no packets.",
         ErrorKind.NO_OUTPUT),
        ("[mp4 @ 0x1] Could not find tag for codec pcm_s16be in stream #1, codec not currently supported in container",
         ErrorKind.CONTAINER_CODEC),
    ])
    def test_known_patterns(self, text, kind):
        assert classify(text).kind is kind

    def test_subtitle_in_container_beats_generic_codec(self):
        text = (
            "[mp4 @ 0x55d] Could not find tag for codec subrip in stream #2, "
            "codec not currently supported in container"
        )
        # the generic rule matches this text too
        codec_rule = next(r for r in RULES if r.kind is ErrorKind.CODEC_NOT_FOUND)
        assert codec_rule.matches(text)
        assert classify(text).kind is ErrorKind.SUBTITLE_CONTAINER

    def test_subtitle_text_to_bitmap(self):
        text = "Subtitle encoding currently only possible from text to text or bitmap to bitmap"
        assert classify(text).kind is ErrorKind.SUBTITLE_CONTAINER

    def test_list_order_breaks_ties(self):
        text = "in.mp4: No such file or directory\nUnknown encoder 'libx265'"
        assert classify(text).kind is ErrorKind.FILE_NOT_FOUND

    def test_unknown_falls_back_to_generic(self):
        diagnosis = classify("something odd happened")
        assert diagnosis.kind is ErrorKind.UNKNOWN
        assert diagnosis.suggestion == GENERIC_SUGGESTION

    def test_deterministic(self):
        text = "Unknown encoder 'libfoo'"
        assert classify(text) == classify(text)

    def test_custom_rules(self):
        assert classify("No such file or directory", rules=()).kind is ErrorKind.UNKNOWN
