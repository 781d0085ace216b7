#!/usr/bin/env python3
"""Walk through a call on the console, no phone or Twilio account needed.

Usage:
    python scripts/simulate_call.py              # stub records, canned AI answers
    python scripts/simulate_call.py --live-ai    # real answers (needs OPENAI_API_KEY)
    python scripts/simulate_call.py --records-url https://records.example.com

At each prompt type what the caller says. "#3" presses 3, an empty line is
silence, Ctrl-D hangs up.
"""

import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

from pharmacyline.answers import AnswerClient, AnswerPolicy
from pharmacyline.config import load_pharmacy_info
from pharmacyline.controller import TurnController
from pharmacyline.interpreter import RawTurnInput
from pharmacyline.session import decode_session
from pharmacyline.state_machine import DialogueStep, StateMachine
from pharmacyline.tools import RecordsClient, StubRecords


class CannedAnswers:
    """Offline answer service for rehearsing the FAQ branch."""

    async def ask(self, question: str, policy: AnswerPolicy) -> dict:
        return {"answer": f"{policy.info.name} can help with that. Our hours are {policy.info.hours}."}

    async def close(self):
        pass


def parse_line(line: str) -> RawTurnInput:
    """Map one typed console line to a turn: "#12" is a keypress, "" is silence."""
    text = line.strip()
    if not text:
        return RawTurnInput()
    if text.startswith("#"):
        return RawTurnInput(keypress=text[1:].strip() or None)
    return RawTurnInput(free_text=text)


def format_step(step: DialogueStep) -> str:
    lines = [f"[{step.next_state.value}]"]
    lines.extend(f"  Agent: {line}" for line in step.prompt)
    if step.capture:
        modes = "+".join(mode.value for mode in step.capture.modes)
        lines.append(
            f"  (listening: {modes}, {step.capture.timeout}s -> {step.capture.state.value}"
            f"{' ?' + step.capture.token if step.capture.token else ''})"
        )
    elif step.terminal:
        lines.append("  (call ends)")
    return "\n".join(lines)


async def run(controller: TurnController) -> None:
    step = controller.start_call()
    print(format_step(step))
    try:
        while not step.terminal:
            try:
                line = input("Caller> ")
            except EOFError:
                print("\n(caller hung up)")
                return
            # Carry the session through its token, exactly as the transport does
            session = decode_session(step.capture.token)
            step = await controller.handle_turn(step.capture.state, session, parse_line(line))
            print(format_step(step))
    finally:
        await controller.close()


def main():
    parser = argparse.ArgumentParser(description="Simulate a pharmacy phone call on the console")
    parser.add_argument("--live-ai", action="store_true", help="Answer open questions with the real AI service")
    parser.add_argument("--records-url", type=str, default=None, help="Pharmacy records API base URL (default: stub)")
    args = parser.parse_args()

    load_dotenv()
    info = load_pharmacy_info()

    if args.live_ai:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            print("Error: --live-ai needs OPENAI_API_KEY", file=sys.stderr)
            sys.exit(1)
        answers = AnswerClient(api_key=api_key, model=os.getenv("OPENAI_MODEL") or "gpt-4o-mini")
    else:
        answers = CannedAnswers()

    if args.records_url:
        records = RecordsClient(base_url=args.records_url, api_key=os.getenv("RECORDS_API_KEY", ""))
    else:
        records = StubRecords()

    asyncio.run(run(TurnController(StateMachine(info), answers, records)))


if __name__ == "__main__":
    main()
