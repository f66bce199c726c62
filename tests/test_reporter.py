"""Tests for translating dispatch results into responses."""

import pytest

from notifier.notifications.models import DispatchResult, DispatchState, ErrorKind
from notifier.notifications.reporter import (
    STATUS_BY_ERROR_KIND,
    bad_request,
    build_response,
    method_not_allowed,
)


@pytest.mark.parametrize(
    "error_kind, status",
    [
        (ErrorKind.VALIDATION, 400),
        (ErrorKind.CONFIGURATION, 500),
        (ErrorKind.TRANSPORT, 500),
        (ErrorKind.RENDER, 500),
        (ErrorKind.DELIVERY, 502),
    ],
)
def test_failure_status_codes(error_kind, status):
    result = DispatchResult.failure(
        "project_approved", error_kind, "Something went wrong", DispatchState.SENDING
    )

    response = build_response(result)

    assert response.status_code == status
    assert response.body == {
        "success": False,
        "error": "Something went wrong",
        "errorKind": error_kind.value,
    }


def test_every_error_kind_has_a_status():
    assert set(STATUS_BY_ERROR_KIND) == set(ErrorKind)


def test_success_body():
    result = DispatchResult(
        kind="event_group_join_request",
        success=True,
        message_id="<abc@example.com>",
        recipient="groupadmin@example.com",
        accepted_recipients=["groupadmin@example.com"],
        metadata={"applicant": "member@example.com", "eventGroup": "Python Meetup"},
    )

    response = build_response(result, "Join request sent")

    assert response.status_code == 200
    assert response.body == {
        "success": True,
        "message": "Join request sent",
        "results": [
            {
                "type": "event_group_join_request",
                "recipient": "groupadmin@example.com",
                "messageId": "<abc@example.com>",
                "acceptedRecipients": ["groupadmin@example.com"],
                "rejectedRecipients": [],
                "applicant": "member@example.com",
                "eventGroup": "Python Meetup",
            }
        ],
    }


def test_metadata_cannot_replace_standard_keys():
    result = DispatchResult(
        kind="project_approved",
        success=True,
        message_id="<abc@example.com>",
        recipient="owner@example.com",
        metadata={"recipient": "spoofed@example.com"},
    )

    entry = build_response(result).body["results"][0]

    assert entry["recipient"] == "owner@example.com"


def test_default_success_message():
    result = DispatchResult(kind="project_approved", success=True, message_id="<x@example.com>")
    assert build_response(result).body["message"] == "Notification sent successfully"


def test_failure_body_has_no_diagnostics():
    result = DispatchResult.failure(
        "project_approved",
        ErrorKind.TRANSPORT,
        "Unable to connect to the mail relay",
        DispatchState.VERIFYING,
    )

    body = build_response(result).body

    assert set(body) == {"success", "error", "errorKind"}


def test_method_not_allowed():
    response = method_not_allowed()
    assert response.status_code == 405
    assert response.body == {"success": False, "error": "Method not allowed. Use POST."}


def test_bad_request():
    response = bad_request("Request body must be a JSON object")
    assert response.status_code == 400
    assert response.body["errorKind"] == "ValidationError"
