"""
Connection and company-follow service functions.
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Literal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services import notifications as notification_service
from api.services.common import load_user, page_offset, paginated, user_summary
from core.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from core.utils.datetime import isoformat
from database.engine import AsyncSessionLocal
from database.models.companies import Company, CompanyFollow
from database.models.connections import Connection, ConnectionStatus
from database.models.notifications import NotificationType
from database.models.users import User

logger = logging.getLogger(__name__)


async def connected_user_ids(session: AsyncSession, user_id: int) -> List[int]:
    """Ids of every user with an accepted connection to ``user_id``."""
    result = await session.execute(
        select(Connection).where(
            Connection.status == ConnectionStatus.ACCEPTED,
            or_(Connection.user_low_id == user_id, Connection.user_high_id == user_id),
        )
    )
    return [c.other_user(user_id) for c in result.scalars().all()]


async def are_connected(session: AsyncSession, a: int, b: int) -> bool:
    low, high = Connection.ordered_pair(a, b)
    status = await session.scalar(
        select(Connection.status).where(
            Connection.user_low_id == low, Connection.user_high_id == high
        )
    )
    return status == ConnectionStatus.ACCEPTED


def serialize_connection(connection: Connection, other: User | None) -> Dict[str, Any]:
    return {
        "id": connection.id,
        "requester_id": connection.requester_id,
        "addressee_id": connection.addressee_id,
        "status": connection.status.value,
        "user": user_summary(other),
        "created_at": isoformat(connection.created_at),
    }


async def send_connection_request(user_id: int, target_user_id: int) -> Dict[str, Any]:
    if user_id == target_user_id:
        raise ValidationError("You cannot connect with yourself")

    async with AsyncSessionLocal() as session:
        requester = await load_user(session, user_id)
        target = await load_user(session, target_user_id)

        low, high = Connection.ordered_pair(user_id, target_user_id)
        existing = await session.scalar(
            select(Connection).where(
                Connection.user_low_id == low, Connection.user_high_id == high
            )
        )
        if existing is not None:
            if existing.status == ConnectionStatus.ACCEPTED:
                raise ConflictError("You are already connected with this user")
            raise ConflictError("A connection request between you is already pending")

        connection = Connection(
            requester_id=user_id,
            addressee_id=target_user_id,
            user_low_id=low,
            user_high_id=high,
            status=ConnectionStatus.PENDING,
        )
        session.add(connection)
        notification = notification_service.stage_notification(
            session,
            target_user_id,
            NotificationType.CONNECTION_REQUEST,
            f"{requester.full_name or 'Someone'} sent you a connection request",
            related_id=user_id,
        )
        await session.commit()

    notification_service.publish([notification])
    return serialize_connection(connection, target)


async def _load_incoming_request(
    session: AsyncSession, user_id: int, connection_id: int
) -> Connection:
    connection = await session.scalar(select(Connection).where(Connection.id == connection_id))
    if connection is None or connection.status != ConnectionStatus.PENDING:
        raise NotFoundError("Connection request not found")
    if connection.addressee_id != user_id:
        raise UnauthorizedError("Unauthorized: This request was not sent to you")
    return connection


async def accept_connection_request(user_id: int, connection_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        connection = await _load_incoming_request(session, user_id, connection_id)
        addressee = await load_user(session, user_id)

        connection.status = ConnectionStatus.ACCEPTED
        notification = notification_service.stage_notification(
            session,
            connection.requester_id,
            NotificationType.CONNECTION_REQUEST,
            f"{addressee.full_name or 'Someone'} accepted your connection request",
            related_id=user_id,
        )
        await session.commit()

        requester = await session.scalar(
            select(User).where(User.id == connection.requester_id)
        )

    notification_service.publish([notification])
    return serialize_connection(connection, requester)


async def reject_connection_request(user_id: int, connection_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        connection = await _load_incoming_request(session, user_id, connection_id)
        await session.delete(connection)
        await session.commit()
    return {"message": "Connection request rejected", "id": connection_id}


async def remove_connection(user_id: int, other_user_id: int) -> Dict[str, Any]:
    """Remove a connection, or withdraw a pending request, with another user."""
    low, high = Connection.ordered_pair(user_id, other_user_id)
    async with AsyncSessionLocal() as session:
        connection = await session.scalar(
            select(Connection).where(
                Connection.user_low_id == low, Connection.user_high_id == high
            )
        )
        if connection is None:
            raise NotFoundError("Connection not found")
        await session.delete(connection)
        await session.commit()
    return {"message": "Connection removed successfully", "user_id": other_user_id}


async def list_connections(user_id: int, page: int = 1, page_size: int = 20) -> Dict[str, Any]:
    conditions = [
        Connection.status == ConnectionStatus.ACCEPTED,
        or_(Connection.user_low_id == user_id, Connection.user_high_id == user_id),
    ]
    async with AsyncSessionLocal() as session:
        total = await session.scalar(select(func.count(Connection.id)).where(*conditions)) or 0
        result = await session.execute(
            select(Connection)
            .where(*conditions)
            .order_by(Connection.updated_at.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = []
        for connection in result.scalars().all():
            other = await session.scalar(
                select(User).where(User.id == connection.other_user(user_id))
            )
            if other is not None:
                items.append(serialize_connection(connection, other))

    return paginated(items, total, page, page_size)


async def list_connection_requests(
    user_id: int, direction: Literal["incoming", "outgoing"] = "incoming"
) -> List[Dict[str, Any]]:
    column = Connection.addressee_id if direction == "incoming" else Connection.requester_id
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Connection)
            .where(column == user_id, Connection.status == ConnectionStatus.PENDING)
            .order_by(Connection.created_at.desc())
        )
        items = []
        for connection in result.scalars().all():
            other = await session.scalar(
                select(User).where(User.id == connection.other_user(user_id))
            )
            if other is not None:
                items.append(serialize_connection(connection, other))
    return items


async def get_connection_suggestions(user_id: int, limit: int = 10) -> List[Dict[str, Any]]:
    """
    People connected to the caller's connections, most mutual connections first.

    Users the caller is already connected to, or has a pending request with,
    are left out.
    """
    async with AsyncSessionLocal() as session:
        await load_user(session, user_id)
        friends = set(await connected_user_ids(session, user_id))
        if not friends:
            return []

        known = await session.execute(
            select(Connection).where(
                or_(Connection.user_low_id == user_id, Connection.user_high_id == user_id)
            )
        )
        excluded = {c.other_user(user_id) for c in known.scalars().all()} | {user_id}

        result = await session.execute(
            select(Connection).where(
                Connection.status == ConnectionStatus.ACCEPTED,
                or_(Connection.user_low_id.in_(friends), Connection.user_high_id.in_(friends)),
            )
        )
        mutual = Counter()
        for connection in result.scalars().all():
            for friend in (connection.user_low_id, connection.user_high_id):
                candidate = connection.other_user(friend)
                if friend in friends and candidate not in excluded:
                    mutual[candidate] += 1

        ranked = sorted(mutual.items(), key=lambda item: (-item[1], item[0]))
        suggestions = []
        for candidate_id, count in ranked:
            user = await session.scalar(select(User).where(User.id == candidate_id))
            if user is None:
                continue
            suggestions.append({**user_summary(user), "mutual_connections": count})
            if len(suggestions) == limit:
                break

    return suggestions


# ==================== Company follows ===================== #
async def _load_company(session: AsyncSession, company_id: int) -> Company:
    company = await session.scalar(select(Company).where(Company.id == company_id))
    if company is None:
        raise NotFoundError("Company not found")
    return company


async def follow_company(user_id: int, company_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        await load_user(session, user_id)
        company = await _load_company(session, company_id)
        existing = await session.scalar(
            select(CompanyFollow).where(
                CompanyFollow.user_id == user_id, CompanyFollow.company_id == company.id
            )
        )
        if existing is not None:
            raise ConflictError("You are already following this company")
        session.add(CompanyFollow(user_id=user_id, company_id=company.id))
        await session.commit()
    return {"message": "Company followed successfully", "company_id": company_id}


async def unfollow_company(user_id: int, company_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        existing = await session.scalar(
            select(CompanyFollow).where(
                CompanyFollow.user_id == user_id, CompanyFollow.company_id == company_id
            )
        )
        if existing is None:
            raise NotFoundError("You are not following this company")
        await session.delete(existing)
        await session.commit()
    return {"message": "Company unfollowed successfully", "company_id": company_id}


async def list_followed_companies(user_id: int) -> List[Dict[str, Any]]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Company, CompanyFollow.created_at)
            .join(CompanyFollow, CompanyFollow.company_id == Company.id)
            .where(CompanyFollow.user_id == user_id)
            .order_by(CompanyFollow.created_at.desc())
        )
        return [
            {
                "id": company.id,
                "name": company.name,
                "logo": company.logo,
                "industry": company.industry,
                "followed_at": isoformat(followed_at),
            }
            for company, followed_at in result.all()
        ]
