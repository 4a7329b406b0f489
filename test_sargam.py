from sargam import Note, PlainText, SargamLine, classify_line, is_sargam, parse_notes, split_lines


def test_sargam_line_is_detected():
    assert is_sargam("S R G M P D N S'")
    assert is_sargam("G M P, N S' N P, M G R S")
    assert is_sargam("  s r g m.  ")


def test_prose_is_not_sargam():
    assert not is_sargam("Here is the Aaroha:")
    assert not is_sargam("Sing Sa Re Ga")
    assert not is_sargam("")
    assert not is_sargam("   ")


def test_notes_keep_octave_marks_and_separators():
    notes = parse_notes("N S' N P, M")
    assert [n.symbol for n in notes] == ["N", "S'", "N", "P", ",", "M"]
    assert notes[1] == Note("S", "'")
    assert notes[4].is_rest
    assert [n.spoken for n in notes if not n.is_rest] == ["Ni", "Sa", "Ni", "Pa", "Ma"]


def test_classification_is_idempotent():
    line = classify_line("G M P, N S' N P, M G R S")
    assert isinstance(line, SargamLine)
    assert line.text == "G M P, N S' N P, M G R S"
    assert classify_line(line.text) == line


def test_split_lines_strips_asterisks_and_keeps_blank_lines():
    lines = split_lines("**Aaroha**\nS R G M P D N S'\n\nTry it slowly.")
    assert lines[0] == PlainText("Aaroha")
    assert isinstance(lines[1], SargamLine)
    assert len(lines[1].notes) == 8
    assert lines[2] == PlainText("")
    assert lines[3] == PlainText("Try it slowly.")
