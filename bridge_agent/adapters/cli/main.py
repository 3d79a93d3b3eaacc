"""Terminal adapter — chat with the agent, answer confirmations and signatures inline."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import uuid

from bridge_agent import create_engine
from bridge_agent.engine.agent import AgentEngine
from bridge_agent.engine.models import AgentRunResult, PendingActionType, UserContext

DEMO_WALLET = "0x000000000000000000000000000000000000dEaD"


def _print_result(result: AgentRunResult) -> None:
    if result.error:
        print(f"! {result.error}", flush=True)
    elif result.response_text:
        print(f"agent> {result.response_text}", flush=True)


async def _answer_pending(engine: AgentEngine, result: AgentRunResult, session_id: str) -> AgentRunResult:
    while result.awaiting_action and result.session and result.session.pending_action:
        action = result.session.pending_action
        print(f"[{action.type.value}] {action.message}", flush=True)
        if action.type is PendingActionType.SIGNATURE:
            print(json.dumps(action.data.get("transactions", []), indent=2), flush=True)
        answer = input("approve? [y/N] > " if action.type is not PendingActionType.INPUT else "> ").strip()
        confirmed = answer.lower() in ("y", "yes")
        response_data = {"txHash": "0x" + uuid.uuid4().hex * 2} if confirmed else None
        result = await engine.resume(
            session_id,
            user_response=answer,
            action_id=action.action_id,
            confirmed=confirmed or action.type is PendingActionType.INPUT,
            response_data=response_data,
        )
        _print_result(result)
    return result


async def run_cli(wallet: str = DEMO_WALLET) -> None:
    engine = create_engine()
    session_id = f"cli-{uuid.uuid4().hex[:8]}"
    user = UserContext(user_id="cli-user", wallet_address=wallet)

    while True:
        try:
            text = input("you> ").strip()
        except EOFError:
            break
        if not text:
            continue
        result = await engine.run(text, session_id=session_id, user=user, thread_id=session_id, restart=True)
        _print_result(result)
        await _answer_pending(engine, result, session_id)


def main() -> None:
    logging.basicConfig(level=logging.WARNING)
    wallet = sys.argv[1] if len(sys.argv) > 1 else DEMO_WALLET
    try:
        asyncio.run(run_cli(wallet))
    except KeyboardInterrupt:
        print(file=sys.stderr)


if __name__ == "__main__":
    main()
