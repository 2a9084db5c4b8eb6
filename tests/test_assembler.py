"""Tests for sentence reassembly."""

import pytest

from gps_to_mqtt.assembler import SentenceAssembler

from tests.conftest import GGA_SENTENCE, VTG_SENTENCE


@pytest.fixture
def received():
    return []


@pytest.fixture
def assembler(received):
    return SentenceAssembler(received.append)


class TestSentenceAssembler:
    def test_complete_line(self, assembler, received):
        assembler.feed(VTG_SENTENCE)

        assert received == [VTG_SENTENCE]
        assert assembler.pending == ""

    def test_sentence_split_over_two_lines(self, assembler, received):
        assembler.feed(GGA_SENTENCE[:40])
        assert received == []
        assert assembler.pending == GGA_SENTENCE[:40]

        assembler.feed(GGA_SENTENCE[40:])
        assert received == [GGA_SENTENCE]

    def test_sentence_split_over_three_lines(self, assembler, received):
        assembler.feed("$GNVTG,054.7,T,")
        assembler.feed("034.4,M,005.5,")
        assembler.feed("N,010.2,K*48")

        assert received == [VTG_SENTENCE]

    def test_new_sentence_flushes_pending(self, assembler, received):
        assembler.feed("$GNVTG,054.7,T")
        assembler.feed(GGA_SENTENCE)

        assert received == ["$GNVTG,054.7,T", GGA_SENTENCE]

    def test_noise_without_sentence_dropped(self, assembler, received):
        assembler.feed("garbage")
        assembler.feed("")

        assert received == []
        assert assembler.pending == ""

    def test_reset_discards_fragment(self, assembler, received):
        assembler.feed("$GNVTG,054.7,T,")
        assembler.reset()
        assembler.feed("034.4,M,005.5,N,010.2,K*48")

        assert received == []
        assert assembler.fragments_dropped == 1

    def test_callback_errors_do_not_stop_assembly(self, received):
        def on_sentence(sentence):
            received.append(sentence)
            raise RuntimeError("boom")

        assembler = SentenceAssembler(on_sentence)
        assembler.feed(VTG_SENTENCE)
        assembler.feed(GGA_SENTENCE)

        assert received == [VTG_SENTENCE, GGA_SENTENCE]
        assert assembler.sentences_emitted == 2
