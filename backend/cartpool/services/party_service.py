"""
services/party_service.py — Party and membership coordination.

Rules enforced here:
  - item_count >= 1, members_count >= 1, start_time < end_time
    (INVALID_ITEM_COUNT / INVALID_MEMBERS_COUNT / INVALID_TIME_RANGE, 422)
  - only the party leader (its creator) manages invites, details and the
    lifecycle (NOT_PARTY_LEADER, 403)
  - DONE and CANCELED parties accept no further invite or detail changes
    (PARTY_CLOSED, 409)
  - status becomes JOINED as soon as the ACCEPTED count equals
    members_count; it is recomputed right after every invite change and
    never demoted

Leader checks come in two forms:
  - _get_led_party(): one lookup by party id AND creator id. A missing
    party and a foreign party both fail NOT_PARTY_LEADER. Used by
    handle_join_request and get_members_after_party_closed.
  - _get_party_or_404() then _require_leader(): PARTY_NOT_FOUND first,
    NOT_PARTY_LEADER second. Used by update, complete and cancel.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; services only flush. A request is
    one transaction: both rows written by create_party commit together.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.cartpool.errors import AppError, ErrorCode
from backend.cartpool.models.item import Item
from backend.cartpool.models.party import Party, PartyStatus
from backend.cartpool.models.party_member import InviteStatus, PartyMember, PartyMemberRole
from backend.cartpool.models.user import User
from backend.cartpool.services import geo_query
from backend.cartpool.services.time_window import (
    Clock,
    format_party_time,
    is_valid_window,
    local_now,
    parse_time_window,
)

logger = logging.getLogger(__name__)

LEADER_LABEL = "Leader"
MEMBER_LABEL = "Member"


# ── Private helpers ────────────────────────────────────────────────────────

def _get_party_or_404(party_id: int, session: Session) -> Party:
    """Returns the Party or raises PARTY_NOT_FOUND (404)."""
    party = session.get(Party, party_id)
    if party is None:
        raise AppError(
            ErrorCode.PARTY_NOT_FOUND,
            f"Party {party_id} does not exist.",
            404,
        )
    return party


def _get_led_party(
        party_id: int,
        caller_id: int,
        session: Session,
        for_update: bool = False,
) -> Party:
    """
    Returns the party only if caller_id created it, else NOT_PARTY_LEADER (403).

    for_update=True takes a row lock on the party so that concurrent invite
    handling on the same party runs one request at a time.
    """
    stmt = select(Party).where(
        Party.id == party_id,
        Party.creator_id == caller_id,
    )
    if for_update:
        stmt = stmt.with_for_update()

    party = session.execute(stmt).scalar_one_or_none()
    if party is None:
        raise AppError(
            ErrorCode.NOT_PARTY_LEADER,
            "Only the party leader may perform this action.",
            403,
        )
    return party


def _require_leader(party: Party, caller_id: int) -> None:
    """Raises NOT_PARTY_LEADER (403) unless caller_id created the party."""
    if party.creator_id != caller_id:
        raise AppError(
            ErrorCode.NOT_PARTY_LEADER,
            "Only the party leader may perform this action.",
            403,
        )


def _require_open(party: Party) -> None:
    """Raises PARTY_CLOSED (409) if the party is DONE or CANCELED."""
    if party.is_terminal:
        raise AppError(
            ErrorCode.PARTY_CLOSED,
            f"Party {party.id} is {party.party_status.value} and can no longer be changed.",
            409,
        )


def _get_item_or_404(item_id: int, session: Session) -> Item:
    item = session.get(Item, item_id)
    if item is None:
        raise AppError(
            ErrorCode.ITEM_NOT_FOUND,
            f"Item {item_id} does not exist.",
            404,
            field="item_id",
        )
    return item


def _check_item_count(item_count: int) -> None:
    if item_count < 1:
        raise AppError(
            ErrorCode.INVALID_ITEM_COUNT,
            "item_count must be at least 1.",
            422,
            field="item_count",
        )


def _check_time_window(start_time, end_time) -> None:
    if not is_valid_window(start_time, end_time):
        raise AppError(
            ErrorCode.INVALID_TIME_RANGE,
            "The start time must be earlier than the end time.",
            422,
            field="start_time",
        )


def _check_members_count(members_count: int) -> None:
    if members_count < 1:
        raise AppError(
            ErrorCode.INVALID_MEMBERS_COUNT,
            "members_count must be at least 1.",
            422,
            field="members_count",
        )


def _count_accepted(party_id: int, session: Session) -> int:
    return session.execute(
        select(func.count())
        .select_from(PartyMember)
        .where(
            PartyMember.party_id == party_id,
            PartyMember.invite_status == InviteStatus.ACCEPTED,
        )
    ).scalar_one()


def recompute_status(
        current: PartyStatus,
        members_count: int,
        accepted_count: int,
) -> PartyStatus:
    """
    Status a party should have after an invite change.

    Moves RECRUITING to JOINED when the ACCEPTED count reaches exactly
    members_count. Every other status is returned unchanged: a JOINED party
    that loses an accepted member stays JOINED.
    """
    if current == PartyStatus.RECRUITING and accepted_count == members_count:
        return PartyStatus.JOINED
    return current


def _refresh_status(party: Party, session: Session) -> None:
    accepted = _count_accepted(party.id, session)
    target = recompute_status(party.party_status, party.members_count, accepted)
    if target == PartyStatus.JOINED and party.party_status != PartyStatus.JOINED:
        party.transition_to_joined()
        session.flush()
        logger.info(
            "Party %s is now JOINED (%s/%s accepted)",
            party.id, accepted, party.members_count,
        )


def _build_party_dict(party: Party, role: str | None) -> dict:
    """Serialises a Party to a plain dict, labelled with the caller's role."""
    return {
        "id": party.id,
        "market_name": party.market_name,
        "market_address": party.market_address,
        "latitude": party.latitude,
        "longitude": party.longitude,
        "item_id": party.item_id,
        "category": party.item.category if party.item is not None else None,
        "item_count": party.item_count,
        "item_unit": party.item_unit,
        "start_time": format_party_time(party.start_time),
        "end_time": format_party_time(party.end_time),
        "members_count": party.members_count,
        "party_status": party.party_status.value,
        "role": role,
    }


def _build_member_dict(member: PartyMember) -> dict:
    return {
        "id": member.id,
        "party_id": member.party_id,
        "user_id": member.user_id,
        "email": member.user.email if member.user is not None else None,
        "role": member.role.value,
        "invite_status": member.invite_status.value,
    }


# ── Public service functions ───────────────────────────────────────────────

def create_party(
        data: dict,
        caller_id: int,
        session: Session,
        clock: Clock = local_now,
) -> dict:
    """
    Creates a party led by caller_id.

    Args:
        data:      Validated dict from CreatePartySchema.
        caller_id: The authenticated user; becomes LEADER with an ACCEPTED
                   invite.
        clock:     Supplies the year that "MM-DD HH:MM" times are anchored to.

    Raises:
      AppError(ITEM_NOT_FOUND, 404)
      AppError(INVALID_ITEM_COUNT, 422)
      AppError(INVALID_TIME_RANGE, 422)
      AppError(INVALID_MEMBERS_COUNT, 422)
      ValueError — start/end text is not "MM-DD HH:MM"

    Returns: party dict labelled "Leader".
    """
    item = _get_item_or_404(data["item_id"], session)
    _check_item_count(data["item_count"])

    start_time, end_time = parse_time_window(data["start_time"], data["end_time"], clock)
    _check_time_window(start_time, end_time)
    _check_members_count(data["members_count"])

    party = Party(
        market_name=data["market_name"],
        market_address=data["market_address"],
        latitude=data["latitude"],
        longitude=data["longitude"],
        item=item,
        item_count=data["item_count"],
        item_unit=data["item_unit"],
        start_time=start_time,
        end_time=end_time,
        members_count=data["members_count"],
        creator_id=caller_id,
        party_status=PartyStatus.RECRUITING,
    )
    session.add(party)
    session.flush()  # populate party.id before creating the leader membership

    leader = PartyMember(
        user_id=caller_id,
        party=party,
        role=PartyMemberRole.LEADER,
        invite_status=InviteStatus.ACCEPTED,
    )
    session.add(leader)
    session.flush()

    logger.info("Party %s created by user %s", party.id, caller_id)
    return _build_party_dict(party, LEADER_LABEL)


def request_join(party_id: int, caller_id: int, session: Session) -> dict:
    """
    Files a join request: a MEMBER membership with a PENDING invite.

    Raises:
      AppError(PARTY_NOT_FOUND, 404)
      AppError(PARTY_NOT_RECRUITING, 409) — party is past recruiting
      AppError(ALREADY_MEMBER, 409)       — caller already holds a membership
    """
    party = _get_party_or_404(party_id, session)

    if party.party_status != PartyStatus.RECRUITING:
        raise AppError(
            ErrorCode.PARTY_NOT_RECRUITING,
            f"Party {party_id} is not recruiting members.",
            409,
        )

    existing = session.execute(
        select(PartyMember).where(
            PartyMember.party_id == party_id,
            PartyMember.user_id == caller_id,
        )
    ).scalar_one_or_none()

    if existing is not None:
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            f"You have already joined or requested to join party {party_id}.",
            409,
        )

    member = PartyMember(
        user_id=caller_id,
        party=party,
        role=PartyMemberRole.MEMBER,
        invite_status=InviteStatus.PENDING,
    )
    session.add(member)
    try:
        session.flush()
    except IntegrityError:
        # A concurrent request inserted the same (party, user) pair first.
        session.rollback()
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            f"You have already joined or requested to join party {party_id}.",
            409,
        ) from None

    return _build_member_dict(member)


def handle_join_request(
        party_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> dict:
    """
    Leader decision on a join request, followed by a status recomputation.

    When data carries both user_id and invite_status, that user's invite
    status is overwritten with the new value. The recomputation always
    runs, so a call without a target only re-evaluates JOINED.

    Raises:
      AppError(NOT_PARTY_LEADER, 403)       — party missing or not led by caller
      AppError(PARTY_CLOSED, 409)           — party is DONE or CANCELED
      AppError(PARTY_MEMBER_NOT_FOUND, 404) — user_id holds no membership
    """
    party = _get_led_party(party_id, caller_id, session, for_update=True)
    _require_open(party)

    target_user_id = data.get("user_id")
    new_status = data.get("invite_status")

    if target_user_id is not None and new_status is not None:
        member = session.execute(
            select(PartyMember).where(
                PartyMember.party_id == party_id,
                PartyMember.user_id == target_user_id,
            )
        ).scalar_one_or_none()

        if member is None:
            raise AppError(
                ErrorCode.PARTY_MEMBER_NOT_FOUND,
                f"User {target_user_id} is not a member of party {party_id}.",
                404,
                field="user_id",
            )

        member.update_invite_status(InviteStatus(new_status))
        session.flush()
        logger.info(
            "Party %s: invite of user %s set to %s",
            party_id, target_user_id, member.invite_status.value,
        )

    _refresh_status(party, session)
    return _build_party_dict(party, LEADER_LABEL)


def complete_party(party_id: int, caller_id: int, session: Session) -> dict:
    """
    Marks the shopping trip DONE.

    Accepted from every status, including CANCELED.

    Raises:
      AppError(PARTY_NOT_FOUND, 404)
      AppError(NOT_PARTY_LEADER, 403)
    """
    party = _get_party_or_404(party_id, session)
    _require_leader(party, caller_id)

    party.complete()
    session.flush()
    logger.info("Party %s completed", party_id)
    return _build_party_dict(party, LEADER_LABEL)


def cancel_party(party_id: int, caller_id: int, session: Session) -> dict:
    """
    Marks the party CANCELED.

    Accepted from every status, including DONE.

    Raises:
      AppError(PARTY_NOT_FOUND, 404)
      AppError(NOT_PARTY_LEADER, 403)
    """
    party = _get_party_or_404(party_id, session)
    _require_leader(party, caller_id)

    party.cancel()
    session.flush()
    logger.info("Party %s canceled", party_id)
    return _build_party_dict(party, LEADER_LABEL)


def get_members_after_party_closed(
        party_id: int,
        caller_id: int,
        session: Session,
) -> list[dict]:
    """
    Lists the ACCEPTED members of a DONE party, leader included.

    Raises:
      AppError(NOT_PARTY_LEADER, 403) — party missing or not led by caller
      AppError(PARTY_NOT_DONE, 409)   — party is not DONE yet
    """
    party = _get_led_party(party_id, caller_id, session)

    if party.party_status != PartyStatus.DONE:
        raise AppError(
            ErrorCode.PARTY_NOT_DONE,
            f"Party {party_id} has not been completed yet.",
            409,
        )

    return [_build_member_dict(m) for m in party.members if m.is_accepted]


def update_party(
        party_id: int,
        data: dict,
        caller_id: int,
        session: Session,
        clock: Clock = local_now,
) -> dict:
    """
    Replaces the item, quantity, time window and target member count, then
    re-evaluates the status: lowering members_count to the ACCEPTED count
    moves a RECRUITING party to JOINED.

    Raises:
      AppError(PARTY_NOT_FOUND, 404)
      AppError(NOT_PARTY_LEADER, 403)
      AppError(PARTY_CLOSED, 409)
      AppError(ITEM_NOT_FOUND, 404)
      AppError(INVALID_ITEM_COUNT, 422)
      AppError(INVALID_TIME_RANGE, 422)
      AppError(INVALID_MEMBERS_COUNT, 422)
      ValueError — start/end text is not "MM-DD HH:MM"
    """
    party = _get_party_or_404(party_id, session)
    _require_leader(party, caller_id)
    _require_open(party)

    item = _get_item_or_404(data["item_id"], session)
    _check_item_count(data["item_count"])

    start_time, end_time = parse_time_window(data["start_time"], data["end_time"], clock)
    _check_time_window(start_time, end_time)
    _check_members_count(data["members_count"])

    party.update_details(
        item,
        data["item_count"],
        data["item_unit"],
        start_time,
        end_time,
        data["members_count"],
    )
    session.flush()
    _refresh_status(party, session)

    return _build_party_dict(party, LEADER_LABEL)


def get_my_parties(caller_id: int, session: Session) -> list[dict]:
    """
    Parties the caller created ("Leader") followed by parties the caller
    holds any membership in ("Member"). A party appears once; when the
    caller both created and joined it, the "Leader" entry is kept.
    """
    created = session.execute(
        select(Party)
        .where(Party.creator_id == caller_id)
        .order_by(Party.id.asc())
    ).scalars().all()

    memberships = session.execute(
        select(PartyMember)
        .where(PartyMember.user_id == caller_id)
        .order_by(PartyMember.id.asc())
    ).scalars().all()

    result: list[dict] = []
    seen: set[int] = set()

    for party in created:
        result.append(_build_party_dict(party, LEADER_LABEL))
        seen.add(party.id)

    for member in memberships:
        party = member.party
        if party.id in seen:
            continue
        result.append(_build_party_dict(party, MEMBER_LABEL))
        seen.add(party.id)

    return result


def get_party(party_id: int, caller_id: int, session: Session) -> dict:
    """
    Party details with its member list.

    The role label is "Leader" for the creator, "Member" for anyone holding
    a membership, and None for everyone else.
    """
    party = _get_party_or_404(party_id, session)

    if party.creator_id == caller_id:
        role = LEADER_LABEL
    elif any(m.user_id == caller_id for m in party.members):
        role = MEMBER_LABEL
    else:
        role = None

    result = _build_party_dict(party, role)
    result["members"] = [_build_member_dict(m) for m in party.members]
    return result


def is_user_in_party(party_id: int, caller_id: int, session: Session) -> bool:
    """
    True if caller_id holds any membership in the party, whatever its
    role or invite status.

    Raises:
      AppError(PARTY_NOT_FOUND, 404)
    """
    party = _get_party_or_404(party_id, session)
    return any(m.user_id == caller_id for m in party.members)


def get_nearby_parties(
        caller_id: int,
        session: Session,
        radius_km: float = geo_query.DEFAULT_RADIUS_KM,
        include_terminal: bool = False,
) -> list[dict]:
    """
    Parties within radius_km of the caller's stored location, nearest first.

    Raises:
      AppError(USER_NOT_FOUND, 404)     — caller identity no longer exists
      AppError(LOCATION_NOT_SET, 422)   — caller never stored a location
    """
    user = session.get(User, caller_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {caller_id} not found.",
            404,
        )

    if not user.has_location:
        raise AppError(
            ErrorCode.LOCATION_NOT_SET,
            "Set your location before searching for nearby parties.",
            422,
        )

    return geo_query.find_nearby(
        user.latitude,
        user.longitude,
        session,
        radius_km=radius_km,
        include_terminal=include_terminal,
    )
