import pytest
from pharmacyline.interpreter import (
    CONTEXTS,
    MAIN_MENU,
    INFO_MORE_OFFER,
    FAQ_FOLLOWUP,
    POST_REFILL_OPTIONS,
    SPOKEN_TEXT,
    SPOKEN_OR_KEYED_TEXT,
    Intent,
    IntentKind,
    RawTurnInput,
    interpret,
    interpret_turn,
)
from pharmacyline.states import State


class TestMainMenu:
    @pytest.mark.parametrize("text,kind", [
        ("I need a refill", IntentKind.REFILL),
        ("refill", IntentKind.REFILL),
        ("what are your hours", IntentKind.INFORMATION),
        ("information please", IntentKind.INFORMATION),
        ("can I talk to the pharmacist", IntentKind.PHARMACIST),
    ])
    def test_keywords(self, text, kind):
        assert interpret(text, None, MAIN_MENU).kind == kind

    @pytest.mark.parametrize("digit,kind", [
        ("1", IntentKind.REFILL),
        ("2", IntentKind.INFORMATION),
        ("0", IntentKind.PHARMACIST),
    ])
    def test_digits(self, digit, kind):
        assert interpret(None, digit, MAIN_MENU).kind == kind

    def test_unrecognized(self):
        assert interpret("banana", None, MAIN_MENU).kind == IntentKind.UNRECOGNIZED

    def test_unmapped_digit_unrecognized(self):
        assert interpret(None, "7", MAIN_MENU).kind == IntentKind.UNRECOGNIZED

    def test_unmapped_digit_falls_back_to_speech(self):
        assert interpret("refill", "7", MAIN_MENU).kind == IntentKind.REFILL

    def test_silence_is_no_input(self):
        assert interpret(None, None, MAIN_MENU).kind == IntentKind.NO_INPUT
        assert interpret("   ", "", MAIN_MENU).kind == IntentKind.NO_INPUT

    def test_refill_checked_before_information(self):
        assert interpret("refill hours", None, MAIN_MENU).kind == IntentKind.REFILL


class TestKeypressPrecedence:
    @pytest.mark.parametrize("context,digit,text", [
        (MAIN_MENU, "2", "I need a refill"),
        (MAIN_MENU, "0", "refill"),
        (INFO_MORE_OFFER, "2", "more"),
        (FAQ_FOLLOWUP, "1", "menu"),
        (POST_REFILL_OPTIONS, "2", "yes"),
    ])
    def test_mapped_keypress_beats_conflicting_speech(self, context, digit, text):
        assert interpret(text, digit, context).kind == context.digits[digit]


class TestMenus:
    def test_info_more(self):
        assert interpret("tell me more", None, INFO_MORE_OFFER).kind == IntentKind.ASK_MORE

    def test_info_menu(self):
        assert interpret("menu", None, INFO_MORE_OFFER).kind == IntentKind.RETURN_TO_MENU

    def test_faq_another_question(self):
        assert interpret("another question", None, FAQ_FOLLOWUP).kind == IntentKind.ASK_ANOTHER

    def test_post_refill_yes(self):
        assert interpret("yes please", None, POST_REFILL_OPTIONS).kind == IntentKind.AFFIRM

    def test_post_refill_no(self):
        assert interpret("no thanks", None, POST_REFILL_OPTIONS).kind == IntentKind.DECLINE

    @pytest.mark.parametrize("text,context,kind", [
        ("tell me anymore", INFO_MORE_OFFER, IntentKind.ASK_MORE),
        ("take me to the submenu", INFO_MORE_OFFER, IntentKind.RETURN_TO_MENU),
        ("are you open 24hours", MAIN_MENU, IntentKind.INFORMATION),
        ("questions", FAQ_FOLLOWUP, IntentKind.ASK_ANOTHER),
        ("yesss", POST_REFILL_OPTIONS, IntentKind.AFFIRM),
    ])
    def test_keyword_inside_a_word_matches(self, text, context, kind):
        assert interpret(text, None, context).kind == kind

    def test_menu_keywords_do_not_leak_between_contexts(self):
        assert interpret("refill", None, POST_REFILL_OPTIONS).kind == IntentKind.UNRECOGNIZED


class TestVerbatimCapture:
    def test_speech_captured_verbatim(self):
        intent = interpret("  Jane Doe ", None, SPOKEN_TEXT)
        assert intent == Intent(IntentKind.FREE_TEXT, "Jane Doe")

    def test_speech_only_ignores_keypress(self):
        assert interpret(None, "5", SPOKEN_TEXT).kind == IntentKind.NO_INPUT

    def test_keyed_digits_captured(self):
        assert interpret(None, "01011980", SPOKEN_OR_KEYED_TEXT) == Intent(IntentKind.FREE_TEXT, "01011980")

    def test_keypress_preferred_over_speech(self):
        assert interpret("four five", "45", SPOKEN_OR_KEYED_TEXT).text == "45"

    def test_silence(self):
        assert interpret("", None, SPOKEN_OR_KEYED_TEXT).kind == IntentKind.NO_INPUT


class TestInterpretTurn:
    def test_every_capture_state_has_a_context(self):
        for state in State:
            if state.is_capture:
                assert state in CONTEXTS, state.value

    def test_uses_receiving_state_context(self):
        raw = RawTurnInput(free_text="I need a refill")
        assert interpret_turn(State.MAIN_MENU, raw).kind == IntentKind.REFILL
        assert interpret_turn(State.NAME_CAPTURE, raw).kind == IntentKind.FREE_TEXT

    def test_non_capture_state_unrecognized(self):
        raw = RawTurnInput(free_text="hello")
        assert interpret_turn(State.HANGUP, raw).kind == IntentKind.UNRECOGNIZED
