"""Command-line family tree viewer - reads the row store directly."""

import argparse

from familytree.config import settings
from familytree.graph.codec import decode_rows
from familytree.graph.member_store import TreeMemberStore
from familytree.linking.invitation_store import InvitationStore
from familytree.logging import configure_logging
from familytree.models import InvitationStatus


def describe(member) -> str:
    name = member.name or "(unnamed)"
    icon = "👨" if member.gender.value == "male" else "👩"
    parts = [f"{icon} {name}"]
    if member.birth_year or member.death_year:
        parts.append(f"({member.birth_year or '?'}-{member.death_year or ''})")
    if member.is_linked:
        parts.append(f"🔗 {member.linked_user_id}")
    return " ".join(parts)


def print_branch(members, member_id, depth, seen):
    if member_id in seen:
        return
    seen.add(member_id)
    member = members[member_id]
    indent = "   " * depth
    line = describe(member)
    if member.spouse_id and member.spouse_id in members:
        seen.add(member.spouse_id)
        line += f"  ❤  {describe(members[member.spouse_id])}"
    print(f"{indent}• {line}")
    for child_id in member.children_ids:
        print_branch(members, child_id, depth + 1, seen)


def main():
    parser = argparse.ArgumentParser(description="Print one owner's family tree")
    parser.add_argument("owner_id", help="Tree owner account id")
    parser.add_argument("--db", default=settings.database.tree_db_path, help="Member database path")
    parser.add_argument("--invitations-db", default=settings.database.invitations_db_path)
    args = parser.parse_args()
    configure_logging(settings.log_level)

    print("=" * 80)
    print(f"🌳 FAMILY TREE - {args.owner_id}")
    print("=" * 80)

    store = TreeMemberStore(db_path=args.db)
    result = decode_rows(store.select_by_owner_sync(args.owner_id))
    members = result.members

    print(f"\n📊 Statistics:")
    print(f"   👤 {len(members)} Members")
    print(f"   🔗 {sum(1 for m in members.values() if m.is_linked)} Linked")
    print()

    # Walk up from the root to the oldest ancestor couple, then print down
    seen = set()
    start = result.root_id
    climbed = set()
    while start is not None and members[start].parent_ids and start not in climbed:
        climbed.add(start)
        start = members[start].parent_ids[0]
    if start is not None:
        print_branch(members, start, 0, seen)

    # Branches cut off from the root
    detached = [m for m in members.values() if m.id not in seen and not m.parent_ids]
    if detached:
        print(f"\n{'=' * 80}")
        print(f"❓ Detached branches ({len(detached)}):")
        for member in detached:
            print_branch(members, member.id, 1, seen)

    if result.unparseable:
        print(f"\n{'=' * 80}")
        print(f"⚠️  Unwired rows ({len(result.unparseable)}):")
        for bad in result.unparseable:
            print(f"   • {bad.member_id}: {bad.tag!r} - {bad.reason}")

    pending = InvitationStore(db_path=args.invitations_db).list_by_participant(
        args.owner_id, InvitationStatus.PENDING
    )
    if pending:
        print(f"\n{'=' * 80}")
        print(f"✉️  Pending invitations ({len(pending)}):")
        for invitation in pending:
            print(f"   • {invitation.sender_id} -> {invitation.receiver_id}: {invitation.relation_type}")

    print(f"\n{'=' * 80}")
    print("✅ Done!")
    print()


if __name__ == "__main__":
    main()
