"""
Tests for rider applications, approval and the assignment claim.
"""

import pytest
from sqlalchemy import select

from parcelflow.app.core.exceptions import ConflictError, NotFoundError
from parcelflow.app.models.enums import RiderStatus, WorkStatus, UserRole
from parcelflow.app.models.rider import Rider
from parcelflow.app.models.user import User
from parcelflow.app.core.timeutils import utcnow
from parcelflow.app.services.rider_work_state import RiderWorkStateManager


@pytest.mark.asyncio
async def test_apply_creates_pending_rider(db_session):
    riders = RiderWorkStateManager(db_session)

    rider = await riders.apply({"name": "Karim", "email": "karim@test.com", "rider_district": "Dhaka"})
    await db_session.commit()

    assert rider.id is not None
    assert rider.status == RiderStatus.PENDING
    assert rider.work_status is None


@pytest.mark.asyncio
async def test_duplicate_application_conflicts(db_session):
    riders = RiderWorkStateManager(db_session)
    await riders.apply({"name": "Karim", "email": "karim@test.com"})
    await db_session.commit()

    with pytest.raises(ConflictError):
        await riders.apply({"name": "Karim again", "email": "karim@test.com"})


@pytest.mark.asyncio
async def test_approval_promotes_user_to_rider(db_session):
    db_session.add(User(email="karim@test.com", role=UserRole.USER, created_at=utcnow()))
    await db_session.commit()

    riders = RiderWorkStateManager(db_session)
    rider = await riders.apply({"name": "Karim", "email": "karim@test.com"})
    await riders.set_status(rider.id, RiderStatus.APPROVED)
    await db_session.commit()

    refreshed = (await db_session.execute(select(Rider).where(Rider.email == "karim@test.com"))).scalar_one()
    user = (await db_session.execute(select(User).where(User.email == "karim@test.com"))).scalar_one()
    assert refreshed.status == RiderStatus.APPROVED
    assert refreshed.work_status == WorkStatus.AVAILABLE
    assert user.role == UserRole.RIDER


@pytest.mark.asyncio
async def test_approval_keeps_admin_role(db_session):
    db_session.add(User(email="boss@test.com", role=UserRole.ADMIN, created_at=utcnow()))
    await db_session.commit()

    riders = RiderWorkStateManager(db_session)
    await riders.apply({"name": "Boss", "email": "boss@test.com"})
    await riders.approve("boss@test.com")
    await db_session.commit()

    user = (await db_session.execute(select(User).where(User.email == "boss@test.com"))).scalar_one()
    assert user.role == UserRole.ADMIN


@pytest.mark.asyncio
async def test_rejection_only_changes_status(db_session):
    riders = RiderWorkStateManager(db_session)
    rider = await riders.apply({"name": "Karim", "email": "karim@test.com"})

    await riders.set_status(rider.id, RiderStatus.REJECTED)
    await db_session.commit()

    assert rider.status == RiderStatus.REJECTED
    assert rider.work_status is None


@pytest.mark.asyncio
async def test_assign_claims_available_rider_once(db_session, make_rider):
    rider = await make_rider("rider@test.com")
    riders = RiderWorkStateManager(db_session)

    await riders.assign(rider.id)
    await db_session.commit()

    claimed = await riders.get(rider.id)
    assert claimed.work_status == WorkStatus.IN_DELIVERY

    # Second claim on the same rider loses
    with pytest.raises(ConflictError) as exc_info:
        await riders.assign(rider.id)
    assert exc_info.value.details["work_status"] == WorkStatus.IN_DELIVERY.value


@pytest.mark.asyncio
async def test_assign_rejects_unapproved_rider(db_session, make_rider):
    rider = await make_rider("pending@test.com", status=RiderStatus.PENDING, work_status=None)
    riders = RiderWorkStateManager(db_session)

    with pytest.raises(ConflictError):
        await riders.assign(rider.id)


@pytest.mark.asyncio
async def test_assign_unknown_rider(db_session):
    with pytest.raises(NotFoundError):
        await RiderWorkStateManager(db_session).assign(999)


@pytest.mark.asyncio
async def test_release_makes_rider_available(db_session, make_rider):
    await make_rider("rider@test.com", work_status=WorkStatus.IN_DELIVERY)
    riders = RiderWorkStateManager(db_session)

    assert await riders.release("rider@test.com") is True
    await db_session.commit()

    rider = await riders.get_by_email("rider@test.com")
    assert rider.work_status == WorkStatus.AVAILABLE

    assert await riders.release("nobody@test.com") is False


@pytest.mark.asyncio
async def test_reapproval_keeps_rider_in_delivery(db_session, make_rider):
    rider = await make_rider("rider@test.com", work_status=WorkStatus.IN_DELIVERY)
    riders = RiderWorkStateManager(db_session)

    approved = await riders.set_status(rider.id, RiderStatus.APPROVED)
    await db_session.commit()
    assert approved.work_status == WorkStatus.IN_DELIVERY

    with pytest.raises(ConflictError):
        await riders.assign(rider.id)
