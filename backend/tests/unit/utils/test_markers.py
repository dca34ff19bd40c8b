"""Tests for ferry.utils.markers module."""

import pytest

from ferry.utils.markers import (
    MarkedMessage,
    Provider,
    SegmentKind,
    find_destination_markers,
    find_provider_markers,
    marker_for_webhook,
    webhook_name_for_team,
)


@pytest.mark.unit
class TestFindProviderMarkers:
    """Tests for provider service marker recognition."""

    def test_finds_single_service(self) -> None:
        assert find_provider_markers("High CPU @pagerduty-api-critical", Provider.PAGERDUTY) == ["api-critical"]

    def test_preserves_order_and_duplicates(self) -> None:
        message = "{{#is_alert}}@pagerduty-db @pagerduty-api{{/is_alert}} {{#is_warning}}@pagerduty-db{{/is_warning}}"
        assert find_provider_markers(message, Provider.PAGERDUTY) == ["db", "api", "db"]

    def test_template_braces_terminate_service_key(self) -> None:
        message = "{{#is_alert}}@pagerduty-api-critical{{/is_alert}}"
        assert find_provider_markers(message, Provider.PAGERDUTY) == ["api-critical"]

    def test_providers_are_separate_namespaces(self) -> None:
        message = "@pagerduty-api @opsgenie-ops-team"
        assert find_provider_markers(message, Provider.PAGERDUTY) == ["api"]
        assert find_provider_markers(message, Provider.OPSGENIE) == ["ops-team"]

    @pytest.mark.parametrize("message", ["", "No markers here", "mail@pagerduty.com", "@pagerduty"])
    def test_messages_without_markers(self, message: str) -> None:
        assert find_provider_markers(message, Provider.PAGERDUTY) == []

    def test_accepts_provider_value_string(self) -> None:
        assert find_provider_markers("@opsgenie-x", "opsgenie") == ["x"]


@pytest.mark.unit
class TestFindDestinationMarkers:
    """Tests for incident.io webhook marker recognition."""

    def test_finds_default_and_team_markers(self) -> None:
        message = "Alert @webhook-incident-io-api-team and @webhook-incident-io"
        assert find_destination_markers(message) == ["@webhook-incident-io-api-team", "@webhook-incident-io"]

    def test_ignores_other_webhooks(self) -> None:
        assert find_destination_markers("Alert @webhook-slack-alerts @webhook-other") == []

    def test_empty_message(self) -> None:
        assert find_destination_markers("") == []


@pytest.mark.unit
class TestWebhookNames:
    """Tests for webhook resource names and message markers."""

    @pytest.mark.parametrize("team,expected", [
        (None, "incident-io"),
        ("", "incident-io"),
        ("api-team", "incident-io-api-team"),
    ])
    def test_webhook_name_for_team(self, team, expected: str) -> None:
        assert webhook_name_for_team(team) == expected

    def test_marker_for_webhook(self) -> None:
        assert marker_for_webhook("incident-io") == "@webhook-incident-io"
        assert marker_for_webhook("incident-io-platform-team") == "@webhook-incident-io-platform-team"

    def test_team_marker_is_recognized(self) -> None:
        marker = marker_for_webhook(webhook_name_for_team("platform-team"))
        assert find_destination_markers(f"Alert {marker}") == [marker]


@pytest.mark.unit
class TestMarkedMessageParsing:
    """Tests for the segment model of monitor messages."""

    @pytest.mark.parametrize("message", [
        "",
        "plain text",
        "High CPU @pagerduty-api-critical",
        "Line 1\n@pagerduty-x\n  Line 3 @webhook-incident-io-team-a\n",
        "{{#is_alert}}@pagerduty-db{{/is_alert}}  @webhook-incident-io\t",
    ])
    def test_render_reproduces_message(self, message: str) -> None:
        assert MarkedMessage.parse(message, Provider.PAGERDUTY).render() == message

    def test_segments(self) -> None:
        marked = MarkedMessage.parse("Alert @pagerduty-x @webhook-incident-io-y", Provider.PAGERDUTY)

        assert [segment.kind for segment in marked.segments] == [
            SegmentKind.TEXT, SegmentKind.PROVIDER, SegmentKind.TEXT, SegmentKind.DESTINATION,
        ]
        assert marked.provider_services == ["x"]
        assert marked.destination_markers == ["@webhook-incident-io-y"]

    def test_other_provider_markers_stay_text(self) -> None:
        marked = MarkedMessage.parse("@pagerduty-api @opsgenie-ops", Provider.OPSGENIE)

        assert marked.provider_services == ["ops"]
        assert marked.segments[0].kind == SegmentKind.TEXT

    def test_str_and_repr(self) -> None:
        marked = MarkedMessage.parse("Alert @pagerduty-x", Provider.PAGERDUTY)

        assert str(marked) == "Alert @pagerduty-x"
        assert "pagerduty" in repr(marked)


@pytest.mark.unit
class TestMarkedMessageRemoval:
    """Tests for removing markers and joining the surrounding text."""

    @pytest.mark.parametrize("message,expected", [
        ("Alert @pagerduty-x @webhook-incident-io-y", "Alert @webhook-incident-io-y"),
        ("@pagerduty-x at start", "at start"),
        ("at end @pagerduty-x", "at end"),
        ("a @pagerduty-x @pagerduty-y b", "a b"),
        ("a\t@pagerduty-x   b", "a b"),
        ("Line 1\n@pagerduty-x\nLine 3", "Line 1\nLine 3"),
        ("a @pagerduty-x\nb", "a\nb"),
        ("a\n  @pagerduty-x b", "a\nb"),
        ("@pagerduty-x", ""),
        ("{{#is_alert}}@pagerduty-x{{/is_alert}} body", "{{#is_alert}}{{/is_alert}} body"),
        ("{{#is_alert}}@pagerduty-x@pagerduty-y{{/is_alert}}", "{{#is_alert}}{{/is_alert}}"),
        ("foo@pagerduty-x,bar", "foo,bar"),
        ("{{#is_alert}}\n@pagerduty-x\n{{/is_alert}}", "{{#is_alert}}\n{{/is_alert}}"),
    ])
    def test_remove_provider_markers(self, message: str, expected: str) -> None:
        marked = MarkedMessage.parse(message, Provider.PAGERDUTY)
        assert marked.without(SegmentKind.PROVIDER).render() == expected

    def test_remove_destination_markers(self) -> None:
        message = "Alert @pagerduty-x @webhook-incident-io\n@webhook-incident-io-team-a\nFooter"
        marked = MarkedMessage.parse(message, Provider.PAGERDUTY)

        assert marked.without(SegmentKind.DESTINATION).render() == "Alert @pagerduty-x\nFooter"

    def test_template_newlines_are_preserved(self) -> None:
        message = "{{#is_alert}}\nCPU high @pagerduty-api\n{{/is_alert}}\n\nRunbook: https://example.com"
        marked = MarkedMessage.parse(message, Provider.PAGERDUTY)

        result = marked.without(SegmentKind.PROVIDER).render()

        assert result == "{{#is_alert}}\nCPU high\n{{/is_alert}}\n\nRunbook: https://example.com"

    def test_nothing_to_remove_returns_same_instance(self) -> None:
        marked = MarkedMessage.parse("Alert @pagerduty-x", Provider.PAGERDUTY)
        assert marked.without(SegmentKind.DESTINATION) is marked

    def test_text_cannot_be_removed(self) -> None:
        marked = MarkedMessage.parse("Alert", Provider.PAGERDUTY)
        with pytest.raises(ValueError, match="Only marker segments"):
            marked.without(SegmentKind.TEXT)

    def test_removal_result_is_reparsed(self) -> None:
        marked = MarkedMessage.parse("Alert @pagerduty-x @webhook-incident-io", Provider.PAGERDUTY)
        stripped = marked.without(SegmentKind.PROVIDER)

        assert stripped.provider_services == []
        assert stripped.destination_markers == ["@webhook-incident-io"]


@pytest.mark.unit
class TestMarkedMessageAppend:
    """Tests for appending webhook markers."""

    @pytest.mark.parametrize("message,expected", [
        ("", "@webhook-incident-io"),
        ("Alert", "Alert @webhook-incident-io"),
        ("Alert ", "Alert @webhook-incident-io"),
        ("Alert\n", "Alert\n@webhook-incident-io"),
    ])
    def test_append_single_marker(self, message: str, expected: str) -> None:
        marked = MarkedMessage.parse(message, Provider.PAGERDUTY)
        assert marked.with_markers(["@webhook-incident-io"]).render() == expected

    def test_append_accepts_marker_without_at_sign(self) -> None:
        marked = MarkedMessage.parse("Alert", Provider.PAGERDUTY)
        assert marked.with_markers(["webhook-incident-io"]).render() == "Alert @webhook-incident-io"

    def test_append_several_markers_in_order(self) -> None:
        marked = MarkedMessage.parse("Alert", Provider.PAGERDUTY)
        result = marked.with_markers(["@webhook-incident-io-a", "@webhook-incident-io-b"])

        assert result.render() == "Alert @webhook-incident-io-a @webhook-incident-io-b"
        assert result.destination_markers == ["@webhook-incident-io-a", "@webhook-incident-io-b"]
