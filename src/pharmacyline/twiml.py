"""Render dialogue steps as Twilio TwiML.

Earlier prompt lines are spoken as plain <Say>; the last line goes inside
the <Gather> so the caller can answer over it. Terminal steps end with a
<Dial> to the pharmacist line or a <Hangup>.
"""

from twilio.twiml.voice_response import VoiceResponse

from pharmacyline.config import PharmacyInfo, Settings
from pharmacyline.state_machine import CaptureSpec, DialogueStep
from pharmacyline.states import State

TURN_PATH = "/voice/turn/{state}"


def action_url(capture: CaptureSpec, base_url: str = "") -> str:
    url = base_url + TURN_PATH.format(state=capture.state.value)
    if capture.token:
        url = f"{url}?{capture.token}"
    return url


def render_step(step: DialogueStep, info: PharmacyInfo, settings: Settings) -> str:
    response = VoiceResponse()
    voice = {"voice": settings.voice_name, "language": settings.voice_language}

    lines = list(step.prompt)
    gathered = lines.pop() if step.capture and lines else None
    for line in lines:
        response.say(line, **voice)

    if step.capture:
        gather = response.gather(
            input=" ".join(mode.value for mode in step.capture.modes),
            timeout=step.capture.timeout,
            speech_timeout="auto",
            speech_model="phone_call",
            action_on_empty_result=True,
            action=action_url(step.capture, settings.public_base_url),
            method="POST",
        )
        if gathered:
            gather.say(gathered, **voice)
    elif step.next_state is State.PHARMACIST_TRANSFER:
        response.dial(info.transfer_phone)
    else:
        response.hangup()

    return str(response)
