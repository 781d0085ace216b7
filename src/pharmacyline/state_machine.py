import logging
from dataclasses import dataclass, field
from enum import Enum

from pharmacyline.config import PharmacyInfo
from pharmacyline.interpreter import Intent, IntentKind
from pharmacyline.prompts import (
    STATE_PROMPTS,
    NOT_UNDERSTOOD,
    NO_QUESTION_HEARD,
    NO_NAME_HEARD,
    NO_DOB_HEARD,
    IDENTITY_VERIFIED,
    ANSWER_UNAVAILABLE,
    VERIFICATION_FAILED,
    REFILL_NOT_ELIGIBLE,
    prompt_values,
    render_lines,
)
from pharmacyline.session import CallSession, encode_session
from pharmacyline.states import State
from pharmacyline.tools import DEFAULT_PICKUP_ETA, RefillStatus
from pharmacyline.validation import normalize_prescription_number

logger = logging.getLogger(__name__)


class InputMode(Enum):
    SPEECH = "speech"
    DTMF = "dtmf"


SPEECH_ONLY = (InputMode.SPEECH,)
SPEECH_AND_DTMF = (InputMode.SPEECH, InputMode.DTMF)

# (accepted input modes, timeout seconds) for every state that gathers input
CAPTURE_SETTINGS = {
    State.MAIN_MENU: (SPEECH_AND_DTMF, 3),
    State.INFO_MORE_OFFER: (SPEECH_AND_DTMF, 2),
    State.FAQ_CAPTURE: (SPEECH_ONLY, 5),
    State.FAQ_FOLLOWUP: (SPEECH_AND_DTMF, 2),
    State.NAME_CAPTURE: (SPEECH_ONLY, 5),
    State.DOB_CAPTURE: (SPEECH_AND_DTMF, 5),
    State.RX_NUMBER_CAPTURE: (SPEECH_AND_DTMF, 5),
    State.POST_REFILL_OPTIONS: (SPEECH_AND_DTMF, 3),
}

# Announcing states speak and move straight on without waiting for input
AUTO_ADVANCE = {
    State.GREETING: State.MAIN_MENU,
    State.INFO_SUMMARY: State.INFO_MORE_OFFER,
    State.FAQ_ANSWERED: State.FAQ_FOLLOWUP,
    State.REFILL_INTRO: State.NAME_CAPTURE,
    State.REFILL_RESULT: State.POST_REFILL_OPTIONS,
}

# Input received at a state -> states the resulting step may enter
TRANSITIONS = {
    State.GREETING: {State.GREETING},
    State.MAIN_MENU: {State.REFILL_INTRO, State.INFO_SUMMARY, State.PHARMACIST_TRANSFER, State.MAIN_MENU},
    State.INFO_SUMMARY: {State.INFO_MORE_OFFER},
    State.INFO_MORE_OFFER: {State.FAQ_CAPTURE, State.MAIN_MENU},
    State.FAQ_CAPTURE: {State.FAQ_ANSWERED, State.PHARMACIST_TRANSFER, State.MAIN_MENU},
    State.FAQ_ANSWERED: {State.FAQ_FOLLOWUP},
    State.FAQ_FOLLOWUP: {State.FAQ_CAPTURE, State.MAIN_MENU},
    State.REFILL_INTRO: {State.NAME_CAPTURE},
    State.NAME_CAPTURE: {State.DOB_CAPTURE, State.PHARMACIST_TRANSFER},
    State.DOB_CAPTURE: {State.RX_NUMBER_CAPTURE, State.PHARMACIST_TRANSFER},
    State.RX_NUMBER_CAPTURE: {State.REFILL_RESULT, State.PHARMACIST_TRANSFER, State.RX_NUMBER_CAPTURE},
    State.REFILL_RESULT: {State.POST_REFILL_OPTIONS},
    State.POST_REFILL_OPTIONS: {State.MAIN_MENU, State.HANGUP},
    State.PHARMACIST_TRANSFER: set(),
    State.HANGUP: set(),
}

STATE_TOOLS = {
    State.FAQ_CAPTURE: ["answer_question"],
    State.DOB_CAPTURE: ["verify_identity"],
    State.RX_NUMBER_CAPTURE: ["submit_refill"],
}


@dataclass(frozen=True)
class CaptureSpec:
    """How the transport should collect the next turn and where to send it."""

    modes: tuple[InputMode, ...]
    timeout: int
    state: State
    token: str = ""


@dataclass(frozen=True)
class DialogueStep:
    next_state: State
    prompt: tuple[str, ...]
    session: CallSession
    capture: CaptureSpec | None = None
    terminal: bool = False


@dataclass(frozen=True)
class Action:
    """Result of processing one turn.

    Either a finished step, or a request to call one collaborator tool with
    `tool_args`; the tool's result then goes to handle_tool_result() along
    with the updated `session`.
    """

    step: DialogueStep | None = None
    call_tool: str = ""
    tool_args: dict = field(default_factory=dict)
    session: CallSession = field(default_factory=CallSession)


class StateMachine:
    """Call flow for the pharmacy phone line.

    Pure: every method maps (state, session, input) to a new value and keeps
    nothing between calls, so one instance serves any number of concurrent
    calls.
    """

    def __init__(self, info: PharmacyInfo):
        self.info = info

    def valid_transitions(self, state: State) -> set[State]:
        return TRANSITIONS.get(state, set())

    def available_tools(self, state: State) -> list[str]:
        return STATE_TOOLS.get(state, [])

    def start(self) -> DialogueStep:
        """Step for a brand-new call."""
        return self.enter(State.GREETING, CallSession())

    def process(self, state: State, session: CallSession, intent: Intent) -> Action:
        handler = getattr(self, f"_handle_{state.value}")
        return handler(session, intent)

    def handle_tool_result(self, state: State, session: CallSession, tool: str, result: dict) -> DialogueStep:
        handler = getattr(self, f"_tool_result_{tool}", None)
        if handler is None:
            logger.error("No result handler for tool %s in %s", tool, state.value)
            return self._escalate(session, f"unknown tool {tool}")
        return handler(session, result)

    def enter(self, state: State, session: CallSession, lead: tuple[str, ...] = (), **values: str) -> DialogueStep:
        """Build the step for entering `state`.

        Announcing states chain into their successor; the step keeps `state`
        as next_state but captures input for the state it settles in.
        """
        lines = list(lead)
        fill = prompt_values(
            self.info,
            caller_name=session.caller_name,
            prescription_number=session.prescription_number,
            **values,
        )
        settled = state
        while True:
            lines.extend(render_lines(STATE_PROMPTS[settled], fill))
            if not settled.is_announce:
                break
            settled = AUTO_ADVANCE[settled]

        return DialogueStep(
            next_state=state,
            prompt=tuple(lines),
            session=session,
            capture=self._capture(settled, session),
            terminal=settled.is_terminal,
        )

    def _capture(self, state: State, session: CallSession) -> CaptureSpec | None:
        if state not in CAPTURE_SETTINGS:
            return None
        modes, timeout = CAPTURE_SETTINGS[state]
        return CaptureSpec(modes=modes, timeout=timeout, state=state, token=encode_session(session))

    def _go(self, state: State, session: CallSession, lead: tuple[str, ...] = (), **values: str) -> Action:
        return Action(step=self.enter(state, session, lead, **values), session=session)

    def _escalate(self, session: CallSession, reason: str, lead: tuple[str, ...] = ()) -> DialogueStep:
        logger.warning("Escalating to pharmacist: %s", reason)
        return self.enter(State.PHARMACIST_TRANSFER, session, lead)

    # ── State handlers ──

    def _handle_greeting(self, session: CallSession, intent: Intent) -> Action:
        step = self.start()
        return Action(step=step, session=step.session)

    def _handle_main_menu(self, session: CallSession, intent: Intent) -> Action:
        if intent.kind is IntentKind.REFILL:
            # The refill branch always starts from a clean session
            return self._go(State.REFILL_INTRO, CallSession())
        if intent.kind is IntentKind.INFORMATION:
            return self._go(State.INFO_SUMMARY, session)
        if intent.kind is IntentKind.PHARMACIST:
            logger.info("Caller asked for a pharmacist")
            return self._go(State.PHARMACIST_TRANSFER, session)
        if intent.kind is IntentKind.UNRECOGNIZED:
            return self._go(State.MAIN_MENU, session, lead=(NOT_UNDERSTOOD,))
        # Silence re-prompts with no retry cap
        return self._go(State.MAIN_MENU, session)

    def _handle_info_summary(self, session: CallSession, intent: Intent) -> Action:
        return self._go(State.INFO_MORE_OFFER, session)

    def _handle_info_more_offer(self, session: CallSession, intent: Intent) -> Action:
        if intent.kind is IntentKind.ASK_MORE:
            return self._go(State.FAQ_CAPTURE, session)
        return self._go(State.MAIN_MENU, session)

    def _handle_faq_capture(self, session: CallSession, intent: Intent) -> Action:
        if intent.kind is IntentKind.FREE_TEXT and intent.text:
            return Action(
                call_tool="answer_question",
                tool_args={"question": intent.text},
                session=session,
            )
        return self._go(State.MAIN_MENU, session, lead=(NO_QUESTION_HEARD,))

    def _handle_faq_answered(self, session: CallSession, intent: Intent) -> Action:
        return self._go(State.FAQ_FOLLOWUP, session)

    def _handle_faq_followup(self, session: CallSession, intent: Intent) -> Action:
        if intent.kind is IntentKind.ASK_ANOTHER:
            return self._go(State.FAQ_CAPTURE, session)
        return self._go(State.MAIN_MENU, session)

    def _handle_refill_intro(self, session: CallSession, intent: Intent) -> Action:
        return self._go(State.NAME_CAPTURE, session)

    def _handle_name_capture(self, session: CallSession, intent: Intent) -> Action:
        if intent.kind is IntentKind.FREE_TEXT and intent.text:
            return self._go(State.DOB_CAPTURE, session.with_name(intent.text))
        # No name, no verification: escalate rather than loop
        return Action(step=self._escalate(session, "no name captured", lead=(NO_NAME_HEARD,)), session=session)

    def _handle_dob_capture(self, session: CallSession, intent: Intent) -> Action:
        if not (intent.kind is IntentKind.FREE_TEXT and intent.text):
            return Action(step=self._escalate(session, "no date of birth captured", lead=(NO_DOB_HEARD,)), session=session)
        if not session.caller_name:
            return Action(
                step=self._escalate(session, "date of birth without a caller name", lead=(VERIFICATION_FAILED,)),
                session=session,
            )
        updated = session.with_date_of_birth(intent.text)
        return Action(
            call_tool="verify_identity",
            tool_args={"name": updated.caller_name, "dob": updated.date_of_birth},
            session=updated,
        )

    def _handle_rx_number_capture(self, session: CallSession, intent: Intent) -> Action:
        rx_number = ""
        if intent.kind is IntentKind.FREE_TEXT:
            rx_number = normalize_prescription_number(intent.text)
        if not rx_number:
            return self._go(State.RX_NUMBER_CAPTURE, session)
        if not (session.caller_name and session.date_of_birth):
            return Action(
                step=self._escalate(session, "prescription number without verified identity", lead=(VERIFICATION_FAILED,)),
                session=session,
            )
        updated = session.with_prescription_number(rx_number)
        return Action(
            call_tool="submit_refill",
            tool_args={
                "name": updated.caller_name,
                "dob": updated.date_of_birth,
                "rx_number": updated.prescription_number,
            },
            session=updated,
        )

    def _handle_refill_result(self, session: CallSession, intent: Intent) -> Action:
        return self._go(State.POST_REFILL_OPTIONS, session)

    def _handle_post_refill_options(self, session: CallSession, intent: Intent) -> Action:
        if intent.kind is IntentKind.AFFIRM:
            # Identity details stay in the refill branch
            return self._go(State.MAIN_MENU, CallSession())
        return self._go(State.HANGUP, session)

    def _handle_pharmacist_transfer(self, session: CallSession, intent: Intent) -> Action:
        return self._go(State.PHARMACIST_TRANSFER, session)

    def _handle_hangup(self, session: CallSession, intent: Intent) -> Action:
        return self._go(State.HANGUP, session)

    # ── Tool result handlers ──

    def _tool_result_answer_question(self, session: CallSession, result: dict) -> DialogueStep:
        answer = result.get("answer")
        if result.get("error") or not isinstance(answer, str) or not answer.strip():
            return self._escalate(session, "answer service failed", lead=(ANSWER_UNAVAILABLE,))
        return self.enter(State.FAQ_ANSWERED, session, answer=answer.strip())

    def _tool_result_verify_identity(self, session: CallSession, result: dict) -> DialogueStep:
        if result.get("verified") is True:
            lead = (IDENTITY_VERIFIED.format(caller_name=session.caller_name),)
            return self.enter(State.RX_NUMBER_CAPTURE, session, lead)
        return self._escalate(session, "identity not verified", lead=(VERIFICATION_FAILED,))

    def _tool_result_submit_refill(self, session: CallSession, result: dict) -> DialogueStep:
        status = RefillStatus.parse(result.get("status"))
        if status is RefillStatus.APPROVED:
            pickup_eta = result.get("pickup_eta") or DEFAULT_PICKUP_ETA
            return self.enter(State.REFILL_RESULT, session, pickup_eta=pickup_eta)
        # Every denial reason gets the same generic apology
        return self._escalate(session, f"refill {status.value}", lead=(REFILL_NOT_ELIGIBLE,))
