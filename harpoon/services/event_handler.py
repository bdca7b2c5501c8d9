import logging

from harpoon.core.config import Rule
from harpoon.services.dispatcher import CommandDispatcher, DispatchResult
from harpoon.services.payloads import HookWithRepository, decode_push

logger = logging.getLogger(__name__)

PUSH_EVENT = "push"


def log_push_commits(envelope: HookWithRepository, body: bytes) -> None:
    """Show the commits of a push for the operator; has no effect on dispatch."""
    push = decode_push(body)
    logger.info(
        f"[push] detected on {envelope.repository.full_name} "
        f"with ref {envelope.ref} with the following commits:"
    )
    for commit in push.commits:
        logger.info(f"[push]\t{commit.timestamp} - {commit.message} by {commit.author.name}")


async def handle_event(
    event_type: str,
    envelope: HookWithRepository,
    body: bytes,
    rule: Rule,
    dispatcher: CommandDispatcher,
) -> DispatchResult:
    logger.info(
        f"[event_handler] Handling '{event_type}' on {envelope.repository.full_name} "
        f"ref={envelope.ref} → {rule.cmd}"
    )
    if event_type == PUSH_EVENT:
        log_push_commits(envelope, body)

    return await dispatcher.dispatch(rule)
