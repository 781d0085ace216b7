from enum import Enum

CAPTURE_STATES = {
    "main_menu", "info_more_offer", "faq_capture", "faq_followup",
    "name_capture", "dob_capture", "rx_number_capture", "post_refill_options",
}
ANNOUNCE_STATES = {
    "greeting", "info_summary", "faq_answered", "refill_intro", "refill_result",
}
TERMINAL_STATES = {"pharmacist_transfer", "hangup"}


class State(Enum):
    GREETING = "greeting"
    MAIN_MENU = "main_menu"
    REFILL_INTRO = "refill_intro"
    NAME_CAPTURE = "name_capture"
    DOB_CAPTURE = "dob_capture"
    RX_NUMBER_CAPTURE = "rx_number_capture"
    REFILL_RESULT = "refill_result"
    POST_REFILL_OPTIONS = "post_refill_options"
    INFO_SUMMARY = "info_summary"
    INFO_MORE_OFFER = "info_more_offer"
    FAQ_CAPTURE = "faq_capture"
    FAQ_ANSWERED = "faq_answered"
    FAQ_FOLLOWUP = "faq_followup"
    PHARMACIST_TRANSFER = "pharmacist_transfer"
    HANGUP = "hangup"

    @property
    def is_capture(self) -> bool:
        return self.value in CAPTURE_STATES

    @property
    def is_announce(self) -> bool:
        return self.value in ANNOUNCE_STATES

    @property
    def is_terminal(self) -> bool:
        return self.value in TERMINAL_STATES
