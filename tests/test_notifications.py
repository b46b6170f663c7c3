"""Tests for the notification emitter, email provider and outbox relay."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from consultdesk.models.notification import (
    DomainEvent,
    EventKind,
    EventStatus,
    Notification,
    NotificationType,
)
from consultdesk.models.provider import Provider
from consultdesk.services.exceptions import DependencyFailureError
from consultdesk.services.notifications import (
    EmailProvider,
    MessageProviderError,
    NotificationEmitter,
    NotificationEvent,
    OutboxRelay,
    notification_type_for,
)

from tests.conftest import PROVIDER_A_ID, PROVIDER_B_ID, RecordingEmitter


async def stored_notifications(session: AsyncSession) -> list[Notification]:
    result = await session.execute(select(Notification).order_by(Notification.created_at))
    return list(result.scalars().all())


def reminder_for(provider_id: str) -> NotificationEvent:
    return NotificationEvent(
        kind=EventKind.REMINDER,
        provider_id=provider_id,
        message="Reminder: Your upcoming consultation is on 2024-01-10 at 10:00.",
        context={"date": "2024-01-10", "time": "10:00"},
    )


class TestEmailProvider:
    """Tests for the email provider abstraction."""

    @pytest.mark.asyncio
    async def test_send_returns_message_id(self) -> None:
        provider = EmailProvider(from_email="desk@clinic.example", from_name="Desk")

        message_id, metadata = await provider.send(
            recipient="dr.adams@clinic.example",
            subject="Upcoming Consultation Reminder",
            body="Reminder",
            context={"date": "2024-01-10"},
        )

        assert message_id.startswith("email_")
        assert metadata["to"] == "dr.adams@clinic.example"
        assert metadata["from"] == "Desk <desk@clinic.example>"

    @pytest.mark.asyncio
    async def test_empty_recipient_raises(self) -> None:
        provider = EmailProvider()

        with pytest.raises(MessageProviderError):
            await provider.send(recipient="", subject="s", body="b")


class TestNotificationEmitter:
    """Tests for storing notifications and sending emails."""

    @pytest.mark.asyncio
    async def test_emit_stores_notification_and_sends_email(
        self,
        async_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        cardiologists: list[Provider],
    ) -> None:
        email = EmailProvider()
        email.send = AsyncMock(return_value=("email_1", {}))
        emitter = NotificationEmitter(session_factory, email_provider=email)

        await emitter.emit(reminder_for(PROVIDER_A_ID))

        notifications = await stored_notifications(async_session)
        assert len(notifications) == 1
        assert notifications[0].provider_id == PROVIDER_A_ID
        assert notifications[0].type == NotificationType.CONSULTATION
        assert notifications[0].is_read is False

        kwargs = email.send.await_args.kwargs
        assert kwargs["recipient"] == "dr.adams@clinic.example"
        assert kwargs["subject"] == "Upcoming Consultation Reminder"
        assert kwargs["context"]["provider_name"] == "Dr Adams"

    @pytest.mark.asyncio
    async def test_email_disabled_still_stores_notification(
        self,
        async_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        cardiologists: list[Provider],
    ) -> None:
        email = EmailProvider()
        email.send = AsyncMock()
        emitter = NotificationEmitter(session_factory, email_provider=email, email_enabled=False)

        await emitter.emit(reminder_for(PROVIDER_A_ID))

        assert len(await stored_notifications(async_session)) == 1
        email.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_email_failure_raises_dependency_failure(
        self,
        async_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        cardiologists: list[Provider],
    ) -> None:
        email = EmailProvider()
        email.send = AsyncMock(side_effect=MessageProviderError("SMTP down"))
        emitter = NotificationEmitter(session_factory, email_provider=email)

        with pytest.raises(DependencyFailureError) as exc_info:
            await emitter.emit(reminder_for(PROVIDER_A_ID))

        assert isinstance(exc_info.value.__cause__, MessageProviderError)
        # Notification is not kept when the email could not be sent
        assert await stored_notifications(async_session) == []

    @pytest.mark.asyncio
    async def test_transport_error_raises_dependency_failure(
        self,
        async_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        cardiologists: list[Provider],
    ) -> None:
        email = EmailProvider()
        email.send = AsyncMock(side_effect=ConnectionError("SMTP connection reset"))
        emitter = NotificationEmitter(session_factory, email_provider=email)

        with pytest.raises(DependencyFailureError) as exc_info:
            await emitter.emit(reminder_for(PROVIDER_A_ID))

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert await stored_notifications(async_session) == []

    @pytest.mark.asyncio
    async def test_unknown_provider_raises_dependency_failure(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        emitter = NotificationEmitter(session_factory)

        with pytest.raises(DependencyFailureError):
            await emitter.emit(reminder_for(PROVIDER_A_ID))

    def test_license_expiry_has_its_own_category(self) -> None:
        assert notification_type_for(EventKind.LICENSE_EXPIRY) == NotificationType.LICENSE_EXPIRY
        assert notification_type_for(EventKind.MISSED) == NotificationType.CONSULTATION


class TestOutboxRelay:
    """Tests for re-driving pending events."""

    async def add_event(self, session: AsyncSession, provider_id: str) -> DomainEvent:
        event = DomainEvent(
            kind=EventKind.MISSED,
            provider_id=provider_id,
            message="A consultation was missed.",
            context={"time": "10:00"},
            status=EventStatus.PENDING,
            attempts=0,
        )
        session.add(event)
        await session.commit()
        return event

    @pytest.mark.asyncio
    async def test_delivers_pending_events(
        self,
        async_session: AsyncSession,
        cardiologists: list[Provider],
        recording_emitter: RecordingEmitter,
    ) -> None:
        await self.add_event(async_session, PROVIDER_A_ID)
        await self.add_event(async_session, PROVIDER_B_ID)
        relay = OutboxRelay(async_session, recording_emitter)

        results = await relay.deliver_pending()

        assert results == {"processed": 2, "delivered": 2, "failed": 0}
        assert recording_emitter.events[0].context == {"time": "10:00"}
        assert await relay.get_pending_events() == []

    @pytest.mark.asyncio
    async def test_failed_event_parked_after_max_attempts(
        self,
        async_session: AsyncSession,
        cardiologists: list[Provider],
    ) -> None:
        event = await self.add_event(async_session, PROVIDER_A_ID)
        relay = OutboxRelay(
            async_session,
            RecordingEmitter(fail_for={PROVIDER_A_ID}),
            max_attempts=2,
        )

        first = await relay.deliver_pending()
        assert first["failed"] == 1
        assert event.status == EventStatus.PENDING

        second = await relay.deliver_pending()
        assert second["failed"] == 1
        assert event.status == EventStatus.FAILED
        assert event.attempts == 2

        third = await relay.deliver_pending()
        assert third["processed"] == 0

    @pytest.mark.asyncio
    async def test_unexpected_emitter_error_is_recorded(
        self,
        async_session: AsyncSession,
        cardiologists: list[Provider],
        recording_emitter: RecordingEmitter,
    ) -> None:
        failing = await self.add_event(async_session, PROVIDER_A_ID)
        await self.add_event(async_session, PROVIDER_B_ID)

        async def emit(event: NotificationEvent) -> None:
            if event.provider_id == PROVIDER_A_ID:
                raise RuntimeError("socket closed")
            await recording_emitter.emit(event)

        emitter = AsyncMock()
        emitter.emit.side_effect = emit
        relay = OutboxRelay(async_session, emitter)

        results = await relay.deliver_pending()

        assert results == {"processed": 2, "delivered": 1, "failed": 1}
        assert failing.status == EventStatus.PENDING
        assert failing.last_error == "socket closed"
        assert [e.provider_id for e in recording_emitter.events] == [PROVIDER_B_ID]

    @pytest.mark.asyncio
    async def test_delivered_events_are_skipped(
        self,
        async_session: AsyncSession,
        cardiologists: list[Provider],
        recording_emitter: RecordingEmitter,
    ) -> None:
        event = await self.add_event(async_session, PROVIDER_A_ID)
        event.mark_delivered()
        await async_session.commit()
        relay = OutboxRelay(async_session, recording_emitter)

        results = await relay.deliver([event])

        assert results == {"delivered": 0, "failed": 0}
        assert recording_emitter.events == []
