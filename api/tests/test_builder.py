from datetime import datetime, timedelta, timezone

import pytest

from mercury.builder import (
    CONFIG_VAR_CHANGE_TITLE,
    DYNO_CRASH_TITLE,
    ROLLBACK_TITLE,
    NormalizedMessage,
    build,
    format_timestamp,
)
from mercury.errors import MessageValidationError
from mercury.events import ConfigVarChange, DirectMessage, DynoCrash, Rollback, SlackDestination

AT = datetime(2023, 8, 3, 10, 0, 30, 693808, tzinfo=timezone.utc)
PLAYGROUND = SlackDestination(channel="playground")


class TestDirectMessage:
    def test_passes_fields_through(self):
        event = DirectMessage(
            channel="playground",
            title="Mercury",
            description="Running the example",
            link="https://unsplash.com/",
        )
        assert build(event) == NormalizedMessage(
            channel="playground",
            title="Mercury",
            description="Running the example",
            link="https://unsplash.com/",
        )

    def test_mention_is_kept(self):
        event = DirectMessage(channel="playground", title="Mercury", description="", cc="api")
        assert build(event).cc == "api"

    def test_leading_hash_is_dropped(self):
        event = DirectMessage(channel="#playground", title="Mercury", description="")
        assert build(event).channel == "playground"

    def test_empty_description_is_allowed(self):
        event = DirectMessage(channel="playground", title="Mercury", description="")
        assert build(event).description == ""

    @pytest.mark.parametrize("channel", ["", "   ", "#"])
    def test_empty_channel(self, channel):
        with pytest.raises(MessageValidationError) as exc_info:
            build(DirectMessage(channel=channel, title="Mercury", description=""))
        assert exc_info.value.field == "channel"

    @pytest.mark.parametrize("title", ["", "  "])
    def test_empty_title(self, title):
        with pytest.raises(MessageValidationError) as exc_info:
            build(DirectMessage(channel="playground", title=title, description=""))
        assert exc_info.value.field == "title"


class TestHerokuEvents:
    def test_dyno_crash(self):
        event = DynoCrash(app="my-app", dyno="web.1", at=AT, exit_status=137)
        assert build(event, PLAYGROUND) == NormalizedMessage(
            channel="playground",
            title=DYNO_CRASH_TITLE,
            description="my-app: dyno web.1 crashed with status code 137 at 2023-08-03 10:00:30 UTC",
        )

    def test_rollback(self):
        event = Rollback(app="my-app", release="v6640", at=AT)
        assert build(event, PLAYGROUND) == NormalizedMessage(
            channel="playground",
            title=ROLLBACK_TITLE,
            description="my-app: rolled back to v6640 at 2023-08-03 10:00:30 UTC",
        )

    def test_config_var_change(self):
        event = ConfigVarChange(app="my-app", at=AT, change="Set FOO")
        assert build(event, PLAYGROUND) == NormalizedMessage(
            channel="playground",
            title=CONFIG_VAR_CHANGE_TITLE,
            description="my-app: config vars changed (Set FOO) at 2023-08-03 10:00:30 UTC",
        )

    def test_events_never_carry_a_link(self):
        for event in (
            DynoCrash(app="a", dyno="web.1", at=AT, exit_status=1),
            Rollback(app="a", release="v1", at=AT),
            ConfigVarChange(app="a", at=AT, change="Set A"),
        ):
            message = build(event, PLAYGROUND)
            assert message.link is None
            assert message.cc is None

    def test_titles_are_stable_per_kind(self):
        first = build(DynoCrash(app="a", dyno="web.1", at=AT, exit_status=1), PLAYGROUND)
        second = build(DynoCrash(app="b", dyno="worker.2", at=AT, exit_status=9), PLAYGROUND)
        assert first.title == second.title

    def test_destination_is_required(self):
        with pytest.raises(ValueError):
            build(Rollback(app="my-app", release="v1", at=AT))

    def test_empty_destination_channel(self):
        with pytest.raises(MessageValidationError):
            build(Rollback(app="my-app", release="v1", at=AT), SlackDestination(channel=""))


@pytest.mark.parametrize(
    "event,destination",
    [
        (DirectMessage(channel="#playground", title="Mercury", description="x"), None),
        (DynoCrash(app="my-app", dyno="web.1", at=AT, exit_status=137), PLAYGROUND),
        (Rollback(app="my-app", release="v6640", at=AT), PLAYGROUND),
        (ConfigVarChange(app="my-app", at=AT, change="Set FOO"), PLAYGROUND),
    ],
)
def test_build_is_deterministic(event, destination):
    assert build(event, destination) == build(event, destination)


class TestFormatTimestamp:
    def test_utc(self):
        assert format_timestamp(AT) == "2023-08-03 10:00:30 UTC"

    def test_other_offsets_are_converted(self):
        at = datetime(2023, 8, 3, 12, 0, 30, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(at) == "2023-08-03 10:00:30 UTC"

    def test_naive_is_treated_as_utc(self):
        assert format_timestamp(datetime(2023, 8, 3, 10, 0, 30)) == "2023-08-03 10:00:30 UTC"
