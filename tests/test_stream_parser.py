import unittest

from seqdx.stream_parser import (
    DifferentialItem,
    LineReassembler,
    classify,
    parse_differential,
    strip_ansi,
)


class LineReassemblerTests(unittest.TestCase):
    def test_complete_lines_are_emitted(self) -> None:
        r = LineReassembler()
        self.assertEqual(r.feed("data: A\ndata: B\n"), ["data: A", "data: B"])
        self.assertEqual(r.pending, "")

    def test_partial_line_is_carried_to_next_chunk(self) -> None:
        r = LineReassembler()
        self.assertEqual(r.feed("data: A\nda"), ["data: A"])
        self.assertEqual(r.pending, "da")
        self.assertEqual(r.feed("ta: B"), [])
        self.assertEqual(r.feed("\n"), ["data: B"])

    def test_blank_lines_are_kept(self) -> None:
        r = LineReassembler()
        self.assertEqual(r.feed("\n\n"), ["", ""])

    def test_empty_chunk_yields_nothing(self) -> None:
        r = LineReassembler()
        r.feed("data: partial")
        self.assertEqual(r.feed(""), [])
        self.assertEqual(r.pending, "data: partial")

    def test_close_drops_unterminated_fragment(self) -> None:
        r = LineReassembler()
        r.feed("data: A\ndata: B")
        self.assertEqual(r.close(), "data: B")
        self.assertEqual(r.pending, "")
        with self.assertRaises(RuntimeError):
            r.feed("data: C\n")


class ClassifyEventPrefixTests(unittest.TestCase):
    def test_non_data_frames_are_ignored(self) -> None:
        for line in ("event: update", "id: 7", ": keepalive", "", "   ", "data:no-space"):
            with self.subTest(line=line):
                self.assertEqual(classify(line).kind, "ignored")

    def test_bare_prefix_is_ignored(self) -> None:
        self.assertEqual(classify("data: ").kind, "ignored")
        self.assertEqual(classify("data:    ").kind, "ignored")

    def test_surrounding_whitespace_is_trimmed(self) -> None:
        c = classify("   data:   Consider vasculitis.   \r")
        self.assertEqual(c.kind, "content")
        self.assertEqual(c.text, "Consider vasculitis.")


class ClassifyAnsiTests(unittest.TestCase):
    def test_sgr_sequences_are_removed(self) -> None:
        self.assertEqual(strip_ansi("\x1b[1;32mok\x1b[0m"), "ok")

    def test_line_of_only_color_codes_is_ignored(self) -> None:
        self.assertEqual(classify("data: \x1b[0m\x1b[1;31m").kind, "ignored")

    def test_status_is_detected_after_stripping(self) -> None:
        c = classify("data: \x1b[1;32m✅ Consensus reached\x1b[0m")
        self.assertEqual(c.kind, "status")
        self.assertEqual(c.text, "✅ Consensus reached")


class ClassifyDifferentialTests(unittest.TestCase):
    def test_updated_marker_with_dash_items(self) -> None:
        c = classify("data: 📊 Differential Diagnosis Updated: - Lupus: 42%")
        self.assertEqual(c.kind, "differential")
        self.assertEqual(c.items, (DifferentialItem("Lupus", "42%"),))
        self.assertEqual(c.text, "📊 Differential Diagnosis Updated: - Lupus: 42%")

    def test_top_marker_with_numbered_items_keeps_first_three(self) -> None:
        line = (
            "data: 🏥 TOP DIFFERENTIAL DIAGNOSES: "
            "1. Systemic Lupus   Probability: 80% "
            "2. Vasculitis   Probability: 15% "
            "3. Sarcoidosis   Probability: 4% "
            "4. Lymphoma   Probability: 1%"
        )
        c = classify(line)
        self.assertEqual(c.kind, "differential")
        self.assertEqual(
            [(i.diagnosis, i.probability) for i in c.items],
            [("Systemic Lupus", "80%"), ("Vasculitis", "15%"), ("Sarcoidosis", "4%")],
        )

    def test_marker_without_items_falls_through(self) -> None:
        c = classify("data: 📊 Differential Diagnosis Updated")
        self.assertEqual(c.kind, "status")

    def test_items_without_marker_are_plain_content(self) -> None:
        c = classify("data: - Lupus: 42%")
        self.assertEqual(c.kind, "content")
        self.assertEqual(c.text, "- Lupus: 42%")

    def test_differential_wins_over_agent_header(self) -> None:
        c = classify("data: 📊 Differential Diagnosis Updated: - Lupus: 42% Agent Name: Dr. House")
        self.assertEqual(c.kind, "differential")

    def test_parse_differential_mixed_forms(self) -> None:
        items = parse_differential("1. Gout   Probability: 60% - Pseudogout: 30%")
        self.assertEqual(
            items,
            (DifferentialItem("Gout", "60%"), DifferentialItem("Pseudogout", "30%")),
        )


class ClassifyAgentTests(unittest.TestCase):
    def test_boxed_header_yields_agent_name(self) -> None:
        c = classify("data: ╭── Agent Name: Dr. House ──╮")
        self.assertEqual(c.kind, "agent")
        self.assertEqual(c.text, "Dr. House")

    def test_name_with_hyphen_and_dots(self) -> None:
        c = classify("data: ╭───── Agent Name: Dr. Test-Chooser  ─────╮")
        self.assertEqual(c.text, "Dr. Test-Chooser")

    def test_name_stops_at_first_disallowed_character(self) -> None:
        c = classify("data: Agent Name: Dr. Stewardship (budget)")
        self.assertEqual(c.kind, "agent")
        self.assertEqual(c.text, "Dr. Stewardship")

    def test_blank_name_header_is_terminal_and_empty(self) -> None:
        c = classify("data: ╭── Agent Name: ──╮")
        self.assertEqual(c.kind, "empty")
        self.assertEqual(c.text, "")

    def test_agent_header_with_status_icon_is_still_an_agent(self) -> None:
        c = classify("data: 🧠 Agent Name: Dr. Hypothesis")
        self.assertEqual(c.kind, "agent")
        self.assertEqual(c.text, "Dr. Hypothesis")


class ClassifyStatusTests(unittest.TestCase):
    def test_gathering_history(self) -> None:
        c = classify("data: 🤔 Gathering history...")
        self.assertEqual(c.kind, "status")
        self.assertEqual(c.text, "🤔 Gathering history...")

    def test_icon_within_first_five_characters(self) -> None:
        c = classify("data: [1] 🧪 Ordering CBC")
        self.assertEqual(c.kind, "status")
        self.assertEqual(c.text, "[1] 🧪 Ordering CBC")

    def test_icon_after_fifth_character_is_content(self) -> None:
        c = classify("data: Result 🧪 pending")
        self.assertEqual(c.kind, "content")

    def test_long_line_is_content(self) -> None:
        text = "✅ " + "x" * 150
        c = classify(f"data: {text}")
        self.assertEqual(c.kind, "content")
        self.assertEqual(c.text, text)

    def test_line_of_149_characters_is_status(self) -> None:
        text = "✅" + "x" * 148
        self.assertEqual(len(text), 149)
        self.assertEqual(classify(f"data: {text}").kind, "status")


class ClassifyContentTests(unittest.TestCase):
    def test_box_edges_are_stripped(self) -> None:
        c = classify("data: │ Consider vasculitis. │")
        self.assertEqual(c.kind, "content")
        self.assertEqual(c.text, "Consider vasculitis.")

    def test_pure_border_is_empty(self) -> None:
        for line in ("data: ╰──────╯", "data: ╭────╮", "data: │  │", "data: ── __ --"):
            with self.subTest(line=line):
                self.assertEqual(classify(line).kind, "empty")

    def test_markup_is_preserved(self) -> None:
        c = classify("data: **Plan:** order ANA and anti-dsDNA")
        self.assertEqual(c.text, "**Plan:** order ANA and anti-dsDNA")

    def test_classification_is_total(self) -> None:
        odd = ["data: \x1b[", "data: 1. : 5%", "data: ╭", "data: 📊", "\x00", "data: %%%", "data: -"]
        for line in odd:
            with self.subTest(line=line):
                self.assertIn(
                    classify(line).kind,
                    {"ignored", "empty", "differential", "agent", "status", "content"},
                )
