import logging

from pharmacyline.answers import AnswerClient, AnswerPolicy
from pharmacyline.interpreter import RawTurnInput, interpret_turn
from pharmacyline.session import CallSession
from pharmacyline.state_machine import Action, DialogueStep, StateMachine
from pharmacyline.states import State
from pharmacyline.tools import RecordsClient, StubRecords

logger = logging.getLogger(__name__)


class TurnController:
    """Runs one caller turn end to end.

    1. Interpret the raw input in the context of the receiving state
    2. Feed the intent to StateMachine.process()
    3. If the action names a tool: call the collaborator once, then
       StateMachine.handle_tool_result()
    4. Return the resulting DialogueStep for rendering

    Holds only collaborators, never per-call data; the session comes in
    with the turn and goes back out on the step.
    """

    def __init__(
        self,
        machine: StateMachine,
        answers: AnswerClient,
        records: RecordsClient | StubRecords,
        policy: AnswerPolicy | None = None,
    ):
        self.machine = machine
        self.answers = answers
        self.records = records
        self.policy = policy or AnswerPolicy(info=machine.info)

    def start_call(self) -> DialogueStep:
        step = self.machine.start()
        logger.info("Call started -> %s", step.next_state.value)
        return step

    async def handle_turn(self, state: State, session: CallSession, raw: RawTurnInput) -> DialogueStep:
        intent = interpret_turn(state, raw)
        action = self.machine.process(state, session, intent)

        if action.call_tool:
            if action.call_tool in self.machine.available_tools(state):
                result = await self._run_tool(action)
            else:
                logger.error("Tool %s is not available in %s", action.call_tool, state.value)
                result = {"error": f"tool {action.call_tool} not available in {state.value}"}
            step = self.machine.handle_tool_result(state, action.session, action.call_tool, result)
        else:
            step = action.step

        if step.next_state is not state and step.next_state not in self.machine.valid_transitions(state):
            logger.warning("Unexpected transition %s -> %s", state.value, step.next_state.value)

        logger.info(
            "Turn: %s --%s--> %s%s",
            state.value,
            intent.kind.value,
            step.next_state.value,
            " (terminal)" if step.terminal else "",
        )
        return step

    async def _run_tool(self, action: Action) -> dict:
        tool = action.call_tool
        args = action.tool_args
        logger.info("Calling tool %s", tool)
        try:
            if tool == "answer_question":
                return await self.answers.ask(args["question"], self.policy)
            if tool == "verify_identity":
                return await self.records.verify_identity(args["name"], args["dob"])
            if tool == "submit_refill":
                return await self.records.submit_refill(args["name"], args["dob"], args["rx_number"])
        except Exception as e:
            logger.error("Tool %s raised: %s", tool, e)
            return {"error": str(e)}
        logger.error("Unknown tool requested: %s", tool)
        return {"error": f"unknown tool {tool}"}

    async def close(self):
        await self.answers.close()
        await self.records.close()
