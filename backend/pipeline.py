import logging
from datetime import datetime
from typing import Optional

from models import CommandFragment, ReconcileResult
from reconciler import reconcile
from resolver import CommandResolver
from splitter import split_into_fragments
from temporal import extract_timezone_hint, local_now

logger = logging.getLogger(__name__)


async def parse_transcript(transcript: str, resolver: CommandResolver,
                           last_scheduled_id: Optional[str] = None,
                           multiple_commands: bool = True,
                           batch_mode: bool = False,
                           now: Optional[datetime] = None) -> ReconcileResult:
    """
    Transcript -> fragments -> resolved commands -> reconciled commands.

    Fragments are resolved concurrently but reconciled in spoken order.
    batch_mode asks the LLM to split the transcript in a single call.
    """
    cleaned, tz = extract_timezone_hint(transcript)
    now = now or local_now(tz)
    if not cleaned:
        return ReconcileResult(last_scheduled_id=last_scheduled_id)

    if multiple_commands and batch_mode:
        commands = await resolver.resolve_batch(cleaned, now, tz)
    else:
        if multiple_commands:
            fragments = split_into_fragments(cleaned)
        else:
            fragments = [CommandFragment(text=cleaned, source_index=0)]
        commands = await resolver.resolve_fragments(fragments, now, tz)

    result = reconcile(commands, cleaned, last_scheduled_id, now=now, tz=tz)
    logger.info("Parsed %r into %d command(s), %d update(s)",
                cleaned, len(result.commands), len(result.updates))
    return result
