"""Turn raw caller input into an intent.

Each capture state has one entry in CONTEXTS declaring which keypresses and
keywords it understands. Menus map input to a closed set of intents; verbatim
contexts (name, date of birth, prescription number, open question) hand the
caller's words back unchanged.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from pharmacyline.states import State
from pharmacyline.validation import match_any_keyword

logger = logging.getLogger(__name__)


class IntentKind(Enum):
    REFILL = "refill"
    INFORMATION = "information"
    PHARMACIST = "pharmacist"
    ASK_MORE = "ask_more"
    ASK_ANOTHER = "ask_another"
    RETURN_TO_MENU = "return_to_menu"
    AFFIRM = "affirm"
    DECLINE = "decline"
    UNRECOGNIZED = "unrecognized"
    NO_INPUT = "no_input"
    FREE_TEXT = "free_text"


@dataclass(frozen=True)
class Intent:
    kind: IntentKind
    text: str = ""


@dataclass(frozen=True)
class RawTurnInput:
    free_text: str | None = None
    keypress: str | None = None


@dataclass(frozen=True)
class ExpectedIntents:
    """What one capture state listens for.

    `keywords` is ordered: the first intent whose keyword set matches wins.
    """

    digits: dict[str, IntentKind] = field(default_factory=dict)
    keywords: tuple[tuple[IntentKind, frozenset[str]], ...] = ()
    verbatim: bool = False
    accepts_keypress: bool = True


MAIN_MENU = ExpectedIntents(
    digits={"1": IntentKind.REFILL, "2": IntentKind.INFORMATION, "0": IntentKind.PHARMACIST},
    keywords=(
        (IntentKind.REFILL, frozenset({"refill"})),
        (IntentKind.INFORMATION, frozenset({"information", "hours"})),
        (IntentKind.PHARMACIST, frozenset({"pharmacist"})),
    ),
)

INFO_MORE_OFFER = ExpectedIntents(
    digits={"1": IntentKind.ASK_MORE, "2": IntentKind.RETURN_TO_MENU},
    keywords=(
        (IntentKind.ASK_MORE, frozenset({"more"})),
        (IntentKind.RETURN_TO_MENU, frozenset({"menu"})),
    ),
)

FAQ_FOLLOWUP = ExpectedIntents(
    digits={"1": IntentKind.ASK_ANOTHER, "2": IntentKind.RETURN_TO_MENU},
    keywords=(
        (IntentKind.ASK_ANOTHER, frozenset({"question"})),
        (IntentKind.RETURN_TO_MENU, frozenset({"menu"})),
    ),
)

POST_REFILL_OPTIONS = ExpectedIntents(
    digits={"1": IntentKind.AFFIRM, "2": IntentKind.DECLINE},
    keywords=(
        (IntentKind.AFFIRM, frozenset({"yes"})),
        (IntentKind.DECLINE, frozenset({"no"})),
    ),
)

SPOKEN_TEXT = ExpectedIntents(verbatim=True, accepts_keypress=False)
SPOKEN_OR_KEYED_TEXT = ExpectedIntents(verbatim=True, accepts_keypress=True)

# States that never gather input expect nothing.
NOTHING = ExpectedIntents()

CONTEXTS = {
    State.MAIN_MENU: MAIN_MENU,
    State.INFO_MORE_OFFER: INFO_MORE_OFFER,
    State.FAQ_CAPTURE: SPOKEN_TEXT,
    State.FAQ_FOLLOWUP: FAQ_FOLLOWUP,
    State.NAME_CAPTURE: SPOKEN_TEXT,
    State.DOB_CAPTURE: SPOKEN_OR_KEYED_TEXT,
    State.RX_NUMBER_CAPTURE: SPOKEN_OR_KEYED_TEXT,
    State.POST_REFILL_OPTIONS: POST_REFILL_OPTIONS,
}


def context_for(state: State) -> ExpectedIntents:
    return CONTEXTS.get(state, NOTHING)


def interpret(
    free_text: str | None,
    keypress: str | None,
    context: ExpectedIntents,
) -> Intent:
    text = (free_text or "").strip()
    keys = (keypress or "").strip() if context.accepts_keypress else ""

    if not text and not keys:
        return Intent(IntentKind.NO_INPUT)

    if context.verbatim:
        # Touch-tone is unambiguous; prefer it over a transcript.
        return Intent(IntentKind.FREE_TEXT, keys or text)

    # Touch-tone wins outright when the digit is mapped for this menu
    if keys in context.digits:
        return Intent(context.digits[keys], text)

    if text:
        for kind, keywords in context.keywords:
            if match_any_keyword(text, keywords):
                return Intent(kind, text)

    logger.debug("Unrecognized input (keypress=%r)", keys)
    return Intent(IntentKind.UNRECOGNIZED, text)


def interpret_turn(state: State, raw: RawTurnInput) -> Intent:
    """Interpret one turn's raw input in the context of the state receiving it."""
    return interpret(raw.free_text, raw.keypress, context_for(state))
