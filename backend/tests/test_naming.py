"""Tests for filename sanitization and random name parts."""
import string

import pytest

from vinyl_vault.files.naming import MAX_NAME_LENGTH, random_hex, sanitize_filename


class TestSanitizeFilename:
    def test_space_becomes_underscore(self):
        assert sanitize_filename("My Song") == "My_Song"

    def test_every_reserved_character_is_replaced(self):
        assert sanitize_filename('a/b\\c:d*e?f"g<h>i|j') == "a_b_c_d_e_f_g_h_i_j"

    def test_other_characters_are_kept(self):
        assert sanitize_filename("Sigur Rós - Ágætis byrjun") == "Sigur_Rós_-_Ágætis_byrjun"

    def test_truncates_to_max_length(self):
        result = sanitize_filename("x" * 250)
        assert len(result) == MAX_NAME_LENGTH == 100

    @pytest.mark.parametrize("length, char", [(150, "é"), (120, "🎵"), (101, "日")])
    def test_truncates_multibyte_by_code_point(self, length, char):
        result = sanitize_filename(char * length)

        assert len(result) == MAX_NAME_LENGTH
        assert result == char * MAX_NAME_LENGTH
        assert result.encode("utf-8").decode("utf-8") == result

    @pytest.mark.parametrize(
        "name",
        [
            "My Song",
            'a/b\\c:d*e?f"g<h>i|j',
            "../../etc/passwd",
            "Sigur Rós - Ágætis byrjun",
            "🎵 " * 80,
            "x" * 250,
            "",
        ],
    )
    def test_idempotent(self, name):
        once = sanitize_filename(name)
        assert sanitize_filename(once) == once

    def test_traversal_sequence_loses_its_separators(self):
        assert "/" not in sanitize_filename("../../etc/passwd")

    def test_empty_input_gives_empty_output(self):
        assert sanitize_filename("") == ""

    def test_deterministic(self):
        assert sanitize_filename("A: B?") == sanitize_filename("A: B?")


class TestRandomHex:
    def test_default_length(self):
        value = random_hex()
        assert len(value) == 8
        assert set(value) <= set(string.hexdigits.lower())

    def test_odd_length(self):
        assert len(random_hex(5)) == 5

    def test_values_differ(self):
        assert len({random_hex() for _ in range(20)}) > 1
