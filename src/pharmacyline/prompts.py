from pharmacyline.config import PharmacyInfo
from pharmacyline.states import State

# Lines spoken on entering each state. Placeholders are filled from the
# pharmacy info, the call session and the transition's own values.
STATE_PROMPTS = {
    State.GREETING: (
        "Welcome to {pharmacy_name}. This call may be recorded for quality and training purposes.",
    ),
    State.MAIN_MENU: (
        'For prescription refills, say "refill" or press 1. '
        'For store hours and information, say "information" or press 2. '
        'To speak with a pharmacist, say "pharmacist" or press 0.',
    ),
    State.INFO_SUMMARY: (
        "{pharmacy_name} is located at {pharmacy_address}. Our hours are {pharmacy_hours}.",
    ),
    State.INFO_MORE_OFFER: (
        'For more information, say "more" or press 1. '
        'To return to the main menu, say "menu" or press 2.',
    ),
    State.FAQ_CAPTURE: (
        "What would you like to know about our pharmacy?",
    ),
    State.FAQ_ANSWERED: (
        "{answer}",
    ),
    State.FAQ_FOLLOWUP: (
        "Would you like to ask another question or return to the main menu? "
        'Say "question" or press 1 for another question. '
        'Say "menu" or press 2 to return to the main menu.',
    ),
    State.REFILL_INTRO: (
        "To request a prescription refill, I'll need to verify your identity.",
    ),
    State.NAME_CAPTURE: (
        "Please say your full name.",
    ),
    State.DOB_CAPTURE: (
        "Thank you. Please say or enter your date of birth in month, day, year format. "
        "For example, January 1st, 1980.",
    ),
    State.RX_NUMBER_CAPTURE: (
        "Please say or enter your prescription number. You can find this on your prescription label.",
    ),
    State.REFILL_RESULT: (
        "Thank you. I've submitted a request to refill prescription number {prescription_number}. "
        "Your refill should be ready for pickup {pickup_eta}. "
        "We'll send a text message when it's ready.",
    ),
    State.POST_REFILL_OPTIONS: (
        "Is there anything else you need help with today? "
        'Say "yes" or press 1 for more options, or say "no" or press 2 to end the call.',
    ),
    State.PHARMACIST_TRANSFER: (
        "Transferring you to a pharmacist. Please hold.",
    ),
    State.HANGUP: (
        "Thank you for calling {pharmacy_name}. Have a great day!",
    ),
}

# Lead-in lines spoken by a transition before the next state's own prompt.
NOT_UNDERSTOOD = "I did not understand your response."
NO_QUESTION_HEARD = "I didn't catch that. Let me take you back to the main menu."
NO_NAME_HEARD = "I'm sorry, I didn't catch your name."
NO_DOB_HEARD = "I'm sorry, I didn't catch your date of birth."
IDENTITY_VERIFIED = "Thank you for verifying your identity, {caller_name}."
ANSWER_UNAVAILABLE = (
    "I apologize, but I'm having trouble answering your question right now. "
    "Let me connect you with a pharmacist who can help."
)
VERIFICATION_FAILED = (
    "I'm having trouble verifying your information. "
    "Let me transfer you to a pharmacist who can help."
)
REFILL_NOT_ELIGIBLE = (
    "I'm sorry, but it looks like this prescription may not be eligible for refill at this time. "
    "Let me connect you with a pharmacist who can assist you further."
)

ANSWER_PERSONA = """You are a helpful pharmacy assistant AI for {pharmacy_name}.
Provide brief, accurate information about pharmacy services, general medication information, and store policies.
The pharmacy is located at {pharmacy_address}. Hours: {pharmacy_hours}.
Your answer is read aloud on a phone call, so use plain spoken sentences with no lists or formatting."""

ANSWER_RULES = """RULES
- Do not provide medical advice.
- Do not discuss specific medications, dosages, or interactions. Suggest speaking with the pharmacist instead.
- Do not discuss prices or insurance details.
- Keep the answer under {max_words} words, about {max_seconds} seconds of speech."""


def prompt_values(info: PharmacyInfo, **extra: str) -> dict:
    values = {
        "pharmacy_name": info.name,
        "pharmacy_address": info.address,
        "pharmacy_hours": info.hours,
    }
    values.update(extra)
    return values


def render_lines(lines: tuple[str, ...], values: dict) -> tuple[str, ...]:
    return tuple(line.format(**values) for line in lines)


def get_answer_system_prompt(info: PharmacyInfo, max_words: int, max_seconds: int) -> str:
    persona = ANSWER_PERSONA.format(**prompt_values(info))
    rules = ANSWER_RULES.format(max_words=max_words, max_seconds=max_seconds)
    return f"{persona}\n\n{rules}"
