#!/usr/bin/env python3
"""Print a user's conversation list as the messaging UI would show it.

Usage:
    python -m scripts.inspect_conversations <user_id>
"""
import asyncio
import sys

from campus_messaging.database import async_session
from campus_messaging.schemas.message import MessageRecord
from campus_messaging.schemas.profile import ProfileDto
from campus_messaging.services.aggregator import aggregate_conversations, counterpart_ids, preview_text
from campus_messaging.services.message_store import MessageStore
from campus_messaging.services.profiles import ProfileDirectory


async def main(user_id: str):
    async with async_session() as session:
        store = MessageStore(session, user_id)
        messages = [MessageRecord.model_validate(m) for m in await store.list_for_user(user_id)]
        found = await ProfileDirectory(session).get_profiles(counterpart_ids(messages, user_id))

    profiles = {pid: ProfileDto.model_validate(p) for pid, p in found.items()}
    summaries = aggregate_conversations(messages, user_id, profiles)

    print(f"{len(messages)} messages, {len(summaries)} conversations for {user_id}")
    hidden = counterpart_ids(messages, user_id) - set(profiles)
    if hidden:
        print(f"  ({len(hidden)} hidden: profile not found: {', '.join(sorted(hidden))})")
    for s in summaries:
        unread = f" [{s.unread_count} unread]" if s.unread_count else ""
        print(f"  - {s.profile.name} ({s.other_user_id}){unread}")
        print(f"      {s.last_message.created_at.isoformat()}  {preview_text(s, user_id)}")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1]))
