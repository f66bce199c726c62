"""Unit tests for the Dispatch Executor state machine."""

import logging
from unittest.mock import Mock

import pytest

from notifier.config.models import NotificationKind
from notifier.notifications.executor import DispatchExecutor
from notifier.notifications.models import (
    DeliveryError,
    DispatchState,
    ErrorKind,
    NotificationRequest,
    RecipientOverrides,
    TransportError,
)
from notifier.notifications.templates import TemplateRenderer

from tests.helpers import FakeTransportProvider, full_payload, minimal_payload
from tests.helpers.environment import GENERIC_SMTP_ENV, HOSTED_MAILBOX_ENV

ALL_KINDS = [kind.value for kind in NotificationKind]


def make_executor(registry, settings, provider, environ, renderer=None):
    return DispatchExecutor(
        registry=registry,
        settings=settings,
        renderer=renderer,
        transport_provider=provider,
        environ=environ,
    )


class TestSuccessfulDispatch:
    @pytest.mark.parametrize("kind", ALL_KINDS)
    def test_every_kind_dispatches(self, executor, fake_provider, now, kind):
        result = executor.dispatch(NotificationRequest(kind, minimal_payload(kind)), now)

        assert result.success, result.error_message
        assert result.message_id == "<fake-1@example.com>"
        assert fake_provider.calls == ["open", "verify", "send", "close"]

    def test_result_fields(self, executor, fake_provider, now):
        result = executor.dispatch(
            NotificationRequest("application_approved", full_payload("application_approved")),
            now,
        )

        assert result.kind == "application_approved"
        assert result.recipient == "jane@example.com"
        assert result.accepted_recipients == [
            "jane@example.com",
            "mentor@example.com",
            "lead@example.com",
        ]
        assert result.rejected_recipients == []
        assert result.error_kind is None
        assert result.metadata == {"project": "Community Garden App"}

    def test_message_is_fully_formed(self, executor, fake_provider, now):
        executor.dispatch(
            NotificationRequest("application_approved", full_payload("application_approved")),
            now,
        )

        message = fake_provider.sent[0]
        assert message.sender_name == "Favored Online"
        assert message.sender_address == "notifications@favoredsite.com"
        assert message.recipients.cc == ("mentor@example.com", "lead@example.com")
        assert message.content.subject == (
            "🎉 Application Approved: Welcome to Community Garden App"
        )

    def test_scheme_selects_credentials(self, executor, fake_provider, now):
        executor.dispatch(NotificationRequest("project_approved", minimal_payload("project_approved")), now)
        executor.dispatch(
            NotificationRequest("application_approved", minimal_payload("application_approved")),
            now,
        )

        generic, hosted = fake_provider.configs
        assert generic.scheme == "generic-smtp"
        assert generic.sender_address == "noreply@example.com"
        assert hosted.scheme == "hosted-mailbox"
        assert hosted.sender_address == "notifications@favoredsite.com"

    def test_reply_to_falls_back_to_sender(self, executor, fake_provider, now):
        executor.dispatch(
            NotificationRequest(
                "event_group_member_approved", minimal_payload("event_group_member_approved")
            ),
            now,
        )

        message = fake_provider.sent[0]
        assert message.recipients.reply_to == "notifications@favoredsite.com"
        assert message.sender_name == "Favored Online - Event Groups"

    def test_event_submission_alerts_admin_and_replies_to_organizer(
        self, executor, fake_provider, now
    ):
        result = executor.dispatch(
            NotificationRequest(
                "event_submission_admin", full_payload("event_submission_admin")
            ),
            now,
        )

        message = fake_provider.sent[0]
        assert message.recipients.to == "admin@favoredsite.com"
        assert message.recipients.reply_to == "riley@example.com"
        assert message.sender_name == "Favored Online - Event Submissions"
        assert result.metadata == {
            "organizer": "riley@example.com",
            "eventTitle": "Intro to Pytest",
            "submissionDate": "1/5/2026 at 3:04:05 PM",
        }

    def test_badge_award_copies_additional_emails(self, executor, fake_provider, now):
        result = executor.dispatch(
            NotificationRequest("badge_awarded", full_payload("badge_awarded")), now
        )

        message = fake_provider.sent[0]
        assert message.recipients.all == ["member@example.com", "mentor@example.com"]
        assert message.sender_name == "Favored Online - TechTalent Badges"
        assert result.metadata == {
            "badgeCategory": "quality-assurance",
            "badgeLevel": "expert",
            "projectTitle": "Volunteer Scheduler",
        }

    def test_mention_without_recipient_email_is_rejected(self, executor, fake_provider, now):
        payload = full_payload("community_mention")
        del payload["mentionedUser"]["email"]

        result = executor.dispatch(NotificationRequest("community_mention", payload), now)

        assert result.error_kind == ErrorKind.VALIDATION
        assert "mentionedUser.email" in result.error_message
        assert fake_provider.open_count == 0

    def test_overrides_reach_the_envelope(self, executor, fake_provider, now):
        request = NotificationRequest(
            "project_approved",
            minimal_payload("project_approved"),
            RecipientOverrides(to="override@example.com", cc=("copy@example.com",)),
        )

        result = executor.dispatch(request, now)

        assert result.recipient == "override@example.com"
        assert fake_provider.sent[0].recipients.all == ["override@example.com", "copy@example.com"]

    def test_partial_refusal_still_succeeds(self, registry, settings, transport_env, now):
        provider = FakeTransportProvider(refuse=["lead@example.com"])
        executor = make_executor(registry, settings, provider, transport_env)

        result = executor.dispatch(
            NotificationRequest("application_approved", full_payload("application_approved")),
            now,
        )

        assert result.success
        assert result.rejected_recipients == ["lead@example.com"]
        assert "lead@example.com" not in result.accepted_recipients


class TestValidationFailures:
    def test_missing_fields_never_open_a_transport(self, executor, fake_provider, now):
        result = executor.dispatch(NotificationRequest("application_approved", {}), now)

        assert not result.success
        assert result.error_kind == ErrorKind.VALIDATION
        assert result.failed_at == DispatchState.VALIDATING
        assert fake_provider.open_count == 0
        assert fake_provider.calls == []

    def test_unknown_kind(self, executor, fake_provider, now):
        result = executor.dispatch(NotificationRequest("send_fax", {}), now)

        assert result.error_kind == ErrorKind.VALIDATION
        assert result.error_message == "Unknown notification kind: send_fax"
        assert fake_provider.open_count == 0

    def test_validation_runs_before_configuration(self, registry, settings, now):
        """Invalid requests are rejected even when no credentials exist."""
        provider = FakeTransportProvider()
        executor = make_executor(registry, settings, provider, environ={})

        result = executor.dispatch(NotificationRequest("project_approved", {}), now)

        assert result.error_kind == ErrorKind.VALIDATION


class TestConfigurationFailures:
    def test_missing_credentials(self, registry, settings, now):
        provider = FakeTransportProvider()
        executor = make_executor(registry, settings, provider, environ=dict(GENERIC_SMTP_ENV))

        result = executor.dispatch(
            NotificationRequest("application_approved", minimal_payload("application_approved")),
            now,
        )

        assert result.error_kind == ErrorKind.CONFIGURATION
        assert result.failed_at == DispatchState.CONFIG_RESOLVING
        assert "HOSTED_MAILBOX_USER" in result.error_message
        assert "HOSTED_MAILBOX_PASSWORD" in result.error_message
        assert provider.open_count == 0

    def test_other_scheme_unaffected(self, registry, settings, now):
        provider = FakeTransportProvider()
        executor = make_executor(registry, settings, provider, environ=dict(HOSTED_MAILBOX_ENV))

        hosted = executor.dispatch(
            NotificationRequest("application_approved", minimal_payload("application_approved")),
            now,
        )
        generic = executor.dispatch(
            NotificationRequest("project_approved", minimal_payload("project_approved")), now
        )

        assert hosted.success
        assert generic.error_kind == ErrorKind.CONFIGURATION

    def test_reads_os_environ_by_default(self, registry, settings, now, mock_env_vars):
        provider = FakeTransportProvider()
        executor = make_executor(registry, settings, provider, environ=None)

        result = executor.dispatch(
            NotificationRequest("project_approved", minimal_payload("project_approved")), now
        )

        assert result.success


class TestTransportLifecycle:
    def test_verify_failure_closes_and_skips_render(
        self, registry, settings, transport_env, now
    ):
        provider = FakeTransportProvider(
            verify_error=TransportError("Mail relay rejected the configured credentials")
        )
        renderer = Mock(wraps=TemplateRenderer(registry, settings))
        executor = make_executor(registry, settings, provider, transport_env, renderer)

        result = executor.dispatch(
            NotificationRequest("project_approved", minimal_payload("project_approved")), now
        )

        assert result.error_kind == ErrorKind.TRANSPORT
        assert result.failed_at == DispatchState.VERIFYING
        assert result.error_message == "Mail relay rejected the configured credentials"
        assert provider.calls == ["open", "verify", "close"]
        renderer.render_context.assert_not_called()

    def test_render_failure_closes_without_sending(
        self, registry, settings, transport_env, now
    ):
        provider = FakeTransportProvider()
        renderer = Mock(wraps=TemplateRenderer(registry, settings))
        renderer.render_context.side_effect = KeyError("project_title")
        executor = make_executor(registry, settings, provider, transport_env, renderer)

        result = executor.dispatch(
            NotificationRequest("project_approved", minimal_payload("project_approved")), now
        )

        assert result.error_kind == ErrorKind.RENDER
        assert result.failed_at == DispatchState.RENDERING
        assert result.error_message == "Unexpected error while rendering"
        assert provider.calls == ["open", "verify", "close"]

    def test_primary_refusal_is_delivery_error(self, registry, settings, transport_env, now):
        provider = FakeTransportProvider(refuse=["owner@example.com"])
        executor = make_executor(registry, settings, provider, transport_env)

        result = executor.dispatch(
            NotificationRequest("project_approved", minimal_payload("project_approved")), now
        )

        assert result.error_kind == ErrorKind.DELIVERY
        assert result.failed_at == DispatchState.SENDING
        assert result.recipient == "owner@example.com"
        assert provider.close_count == 1

    def test_send_failure_closes_once(self, registry, settings, transport_env, now):
        provider = FakeTransportProvider(send_error=DeliveryError("Email delivery failed"))
        executor = make_executor(registry, settings, provider, transport_env)

        result = executor.dispatch(
            NotificationRequest("project_approved", minimal_payload("project_approved")), now
        )

        assert result.error_kind == ErrorKind.DELIVERY
        assert provider.calls == ["open", "verify", "send", "close"]

    def test_unexpected_send_exception_is_classified(
        self, registry, settings, transport_env, now
    ):
        provider = FakeTransportProvider(send_error=RuntimeError("socket exploded"))
        executor = make_executor(registry, settings, provider, transport_env)

        result = executor.dispatch(
            NotificationRequest("project_approved", minimal_payload("project_approved")), now
        )

        assert result.error_kind == ErrorKind.DELIVERY
        assert result.error_message == "Unexpected error while sending"
        assert "socket exploded" not in result.error_message
        assert provider.close_count == 1

    def test_keyboard_interrupt_propagates_after_close(
        self, registry, settings, transport_env, now
    ):
        provider = FakeTransportProvider(send_error=KeyboardInterrupt())
        executor = make_executor(registry, settings, provider, transport_env)

        with pytest.raises(KeyboardInterrupt):
            executor.dispatch(
                NotificationRequest("project_approved", minimal_payload("project_approved")),
                now,
            )

        assert provider.calls[-1] == "close"
        assert provider.close_count == 1

    def test_open_failure_is_transport_error(self, registry, settings, transport_env, now):
        provider = Mock()
        provider.open.side_effect = RuntimeError("no sockets left")
        executor = make_executor(registry, settings, provider, transport_env)

        result = executor.dispatch(
            NotificationRequest("project_approved", minimal_payload("project_approved")), now
        )

        assert result.error_kind == ErrorKind.TRANSPORT
        assert result.failed_at == DispatchState.TRANSPORT_OPENING

    def test_one_transport_per_dispatch(self, executor, fake_provider, now):
        for _ in range(3):
            executor.dispatch(
                NotificationRequest("project_approved", minimal_payload("project_approved")),
                now,
            )

        assert fake_provider.open_count == 3
        assert fake_provider.close_count == 3


class TestDispatchLogging:
    def test_lifecycle_events_logged(self, executor, now, caplog):
        with caplog.at_level(logging.DEBUG, logger="notifier.notifications.executor"):
            executor.dispatch(
                NotificationRequest("project_approved", minimal_payload("project_approved")),
                now,
            )

        events = [getattr(record, "event", None) for record in caplog.records]
        assert "dispatch.started" in events
        assert "dispatch.transport.verified" in events
        assert "dispatch.succeeded" in events
        assert all(record.component == "dispatch" for record in caplog.records if hasattr(record, "event"))

    def test_validation_failure_logged_as_warning(self, executor, now, caplog):
        with caplog.at_level(logging.INFO, logger="notifier.notifications.executor"):
            executor.dispatch(NotificationRequest("project_approved", {}), now)

        failures = [r for r in caplog.records if getattr(r, "event", "") == "dispatch.validating.failed"]
        assert len(failures) == 1
        assert failures[0].levelno == logging.WARNING
