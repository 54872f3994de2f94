from DualChat.core.models import (
    AppendAction,
    AppendToSectionAction,
    InvalidAction,
    NotepadUpdate,
    ParsedAIResponse,
    PrependAction,
    ReplaceAllAction,
    ReplaceSectionAction,
    SearchAndReplaceAction,
    Sender,
)
from DualChat.core.notepad import INITIAL_NOTEPAD_CONTENT, Notepad, apply_modifications

SECTIONED = "\n".join(
    [
        "# Plan",
        "intro",
        "## Goals",
        "old goal",
        "### Detail",
        "old detail",
        "## Risks",
        "risk one",
    ]
)


def parsed_with(*mods, error=None, text="ok") -> ParsedAIResponse:
    return ParsedAIResponse(
        spoken_text=text,
        notepad_update=NotepadUpdate(modifications=list(mods), error=error),
    )


# === apply_modifications ===


def test_replace_all_is_exact():
    result = apply_modifications("anything", [ReplaceAllAction(content="X")])

    assert result.new_content == "X"
    assert result.errors == []


def test_append_and_prepend_add_newline_separator():
    result = apply_modifications("middle", [AppendAction(content="end"), PrependAction(content="start")])

    assert result.new_content == "start\nmiddle\nend"


def test_append_after_trailing_newline_does_not_double():
    result = apply_modifications("line\n", [AppendAction(content="next")])

    assert result.new_content == "line\nnext"


def test_replace_section_keeps_heading_and_swallows_deeper_headings():
    result = apply_modifications(SECTIONED, [ReplaceSectionAction(header="Goals", content="new goal")])

    assert result.errors == []
    assert result.new_content == "# Plan\nintro\n## Goals\n\nnew goal\n## Risks\nrisk one"
    assert "### Detail" not in result.new_content


def test_replace_section_accepts_hashes_and_any_case():
    result = apply_modifications(SECTIONED, [ReplaceSectionAction(header="## risks", content="none")])

    assert result.new_content.endswith("## Risks\n\nnone")


def test_replace_section_runs_to_end_of_document():
    result = apply_modifications(SECTIONED, [ReplaceSectionAction(header="Plan", content="all gone")])

    assert result.new_content == "# Plan\n\nall gone"


def test_append_to_section_inserts_before_next_heading():
    result = apply_modifications(SECTIONED, [AppendToSectionAction(header="Goals", content="- extra")])

    lines = result.new_content.split("\n")
    assert lines.index("- extra") < lines.index("## Risks")
    assert lines.index("- extra") > lines.index("old detail")


def test_missing_header_is_reported_and_batch_continues():
    result = apply_modifications(
        "text",
        [ReplaceSectionAction(header="Nope", content="x"), AppendAction(content="more")],
    )

    assert result.new_content == "text\nmore"
    assert result.errors == ['Action 1 ("replace_section") failed: header "Nope" not found.']


def test_blank_header_is_rejected():
    content = "intro\n###\nbody"
    result = apply_modifications(
        content,
        [
            ReplaceSectionAction(header="   ", content="x"),
            AppendToSectionAction(header="##", content="y"),
        ],
    )

    assert result.new_content == content
    assert result.errors == [
        'Action 1 ("replace_section") failed: empty header.',
        'Action 2 ("append_to_section") failed: empty header.',
    ]


def test_search_and_replace_first_only():
    result = apply_modifications("a-a-a", [SearchAndReplaceAction(find="a", replacement="b")])

    assert result.new_content == "b-a-a"


def test_search_and_replace_all():
    result = apply_modifications("a-a-a", [SearchAndReplaceAction(find="a", replacement="b", all=True)])

    assert result.new_content == "b-b-b"


def test_search_and_replace_is_literal():
    result = apply_modifications(
        "cost: $1.00 (approx)",
        [SearchAndReplaceAction(find="$1.00 (approx)", replacement=r"\1 $2")],
    )

    assert result.new_content == r"cost: \1 $2"


def test_search_and_replace_not_found_warns():
    result = apply_modifications("hello", [SearchAndReplaceAction(find="missing text here", replacement="x")])

    assert result.new_content == "hello"
    assert result.errors == ['Action 1 ("search_and_replace") warning: text "missing text here..." not found.']


def test_search_and_replace_empty_find_is_an_error():
    result = apply_modifications("hello", [SearchAndReplaceAction(find="", replacement="x")])

    assert result.new_content == "hello"
    assert len(result.errors) == 1


def test_invalid_action_is_rejected():
    result = apply_modifications("hello", [InvalidAction(index=0, reason="unknown action 'zap'")])

    assert result.new_content == "hello"
    assert result.errors == ["Action 1 rejected: unknown action 'zap'."]


# === Notepad history ===


def test_new_notepad_starts_with_initial_content():
    notepad = Notepad()

    assert notepad.content == INITIAL_NOTEPAD_CONTENT
    assert not notepad.can_undo
    assert not notepad.can_redo


def test_saved_content_is_restored():
    notepad = Notepad(saved_content="# Saved")

    assert notepad.content == "# Saved"


def test_undo_redo_bounds():
    notepad = Notepad(initial_content="v0")
    notepad.commit("v1", Sender.COGNITO)
    notepad.commit("v2", Sender.MUSE)

    assert notepad.undo() and notepad.content == "v1"
    assert notepad.undo() and notepad.content == "v0"
    assert not notepad.undo()
    assert notepad.content == "v0"

    assert notepad.redo() and notepad.redo()
    assert not notepad.redo()
    assert notepad.content == "v2"
    assert notepad.last_updated_by is None


def test_commit_truncates_redo_tail():
    notepad = Notepad(initial_content="v0")
    notepad.commit("v1", Sender.COGNITO)
    notepad.commit("v2", Sender.COGNITO)
    notepad.undo()
    notepad.undo()

    notepad.commit("branch", Sender.USER)

    assert notepad.history == ["v0", "branch"]
    assert notepad.history_index == 1
    assert not notepad.can_redo
    assert notepad.previous_content == "v0"


def test_update_manual_only_commits_changes():
    notepad = Notepad(initial_content="v0")

    assert not notepad.update_manual("v0")
    assert notepad.update_manual("mine")
    assert notepad.last_updated_by == Sender.USER
    assert len(notepad.history) == 2


def test_clear_is_undoable():
    notepad = Notepad(initial_content="v0")
    notepad.commit("work", Sender.MUSE)

    notepad.clear()

    assert notepad.content == "v0"
    assert notepad.undo()
    assert notepad.content == "work"


# === apply_response ===


def test_apply_response_commits_one_entry_per_reply():
    notepad = Notepad(initial_content="start")
    feedback = notepad.apply_response(
        parsed_with(AppendAction(content="a"), AppendAction(content="b")),
        Sender.MUSE,
    )

    assert feedback.changed
    assert notepad.content == "start\na\nb"
    assert len(notepad.history) == 2
    assert notepad.last_updated_by == Sender.MUSE
    assert feedback.notifications == []
    assert feedback.feedback_note is None


def test_apply_response_without_update_is_a_no_op():
    notepad = Notepad(initial_content="start")
    feedback = notepad.apply_response(ParsedAIResponse(spoken_text="hi"), Sender.COGNITO)

    assert not feedback.changed
    assert len(notepad.history) == 1


def test_apply_response_reports_partial_failure():
    notepad = Notepad(initial_content="start")
    feedback = notepad.apply_response(
        parsed_with(ReplaceSectionAction(header="Missing", content="x"), AppendAction(content="ok")),
        Sender.COGNITO,
    )

    assert notepad.content == "start\nok"
    assert feedback.errors == ['Action 1 ("replace_section") failed: header "Missing" not found.']
    assert feedback.notifications[0].startswith("[System] Some of Cognito's notepad modifications did not apply")
    assert feedback.feedback_note == (
        '[System Error] Notepad update failed: Action 1 ("replace_section") failed: header "Missing" not found.'
    )


def test_apply_response_reports_parse_error():
    notepad = Notepad(initial_content="start")
    feedback = notepad.apply_response(
        parsed_with(error="Failed to parse AI JSON response."),
        Sender.MUSE,
    )

    assert not feedback.changed
    assert feedback.parse_error == "Failed to parse AI JSON response."
    assert feedback.notifications == [
        "[System] Muse ran into a problem updating the notepad: Failed to parse AI JSON response."
    ]
    assert feedback.feedback_note == "[System Error] Notepad update parsing failed: Failed to parse AI JSON response."


def test_apply_response_with_unchanged_content_does_not_commit():
    notepad = Notepad(initial_content="same")
    feedback = notepad.apply_response(parsed_with(ReplaceAllAction(content="same")), Sender.COGNITO)

    assert not feedback.changed
    assert len(notepad.history) == 1
