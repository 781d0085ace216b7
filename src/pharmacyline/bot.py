import os
import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from pharmacyline.answers import AnswerClient
from pharmacyline.config import load_pharmacy_info, load_settings, validate_config
from pharmacyline.controller import TurnController
from pharmacyline.interpreter import RawTurnInput
from pharmacyline.session import CallSession, decode_session
from pharmacyline.state_machine import StateMachine
from pharmacyline.states import State
from pharmacyline.tools import RecordsClient, StubRecords
from pharmacyline.twiml import render_step

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


class DropQueryFilter(logging.Filter):
    """Strip the query string from uvicorn access log lines.

    Gather action URLs carry the caller's session (name, date of birth,
    prescription number) in the query, which must never reach the logs.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        # uvicorn.access args: (client_addr, method, path_with_query, http_version, status_code)
        if isinstance(record.args, tuple) and len(record.args) == 5:
            args = list(record.args)
            args[2] = str(args[2]).split("?", 1)[0]
            record.args = tuple(args)
        return True


logging.getLogger("uvicorn.access").addFilter(DropQueryFilter())


def build_controller() -> TurnController:
    info = load_pharmacy_info()
    settings = load_settings()
    if settings.records_api_url:
        records = RecordsClient(base_url=settings.records_api_url, api_key=settings.records_api_key)
    else:
        logger.warning("RECORDS_API_URL not set, using stub records system")
        records = StubRecords()
    answers = AnswerClient(api_key=settings.openai_api_key, model=settings.openai_model)
    return TurnController(StateMachine(info), answers, records)


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_config()
    if getattr(app.state, "controller", None) is None:
        app.state.controller = build_controller()
    app.state.settings = load_settings()
    yield
    await app.state.controller.close()


app = FastAPI(title="Pharmacy Phone Line", lifespan=lifespan)


def _twiml(request: Request, step) -> Response:
    controller: TurnController = request.app.state.controller
    xml = render_step(step, controller.machine.info, request.app.state.settings)
    return Response(content=xml, media_type="application/xml")


@app.get("/health")
async def health():
    return PlainTextResponse("ok")


@app.post("/voice/incoming")
async def incoming_call(request: Request):
    """Twilio voice webhook for a new inbound call."""
    form = await request.form()
    logger.info("Incoming call %s", form.get("CallSid", ""))
    return _twiml(request, request.app.state.controller.start_call())


@app.post("/voice/turn/{state}")
async def turn(state: str, request: Request):
    """Gather action: one caller turn delivered to the state that asked for it."""
    controller: TurnController = request.app.state.controller
    form = await request.form()
    raw = RawTurnInput(
        free_text=form.get("SpeechResult") or None,
        keypress=form.get("Digits") or None,
    )
    try:
        current = State(state)
    except ValueError:
        logger.warning("Turn for unknown state %r, restarting at main menu", state)
        current, session, raw = State.MAIN_MENU, CallSession(), RawTurnInput()
    else:
        session = decode_session(request.url.query)

    step = await controller.handle_turn(current, session, raw)
    return _twiml(request, step)


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8765"))
    uvicorn.run("pharmacyline.bot:app", host="0.0.0.0", port=port, reload=True)
